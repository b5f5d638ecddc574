"""Caller identity for API requests."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException

USER_HEADER = "X-User-Id"


async def get_current_user(
    x_user_id: Annotated[str | None, Header(alias=USER_HEADER)] = None,
) -> str:
    """Resolve the calling user from the request header.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail=f"Missing {USER_HEADER} header")
    return x_user_id.strip()


CurrentUser = Annotated[str, Depends(get_current_user)]
