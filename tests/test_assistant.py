"""Tests for AssistantClient retry and fallback behavior."""

import random
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import pytest

from taskpilot.assistant import client as client_module
from taskpilot.assistant import heuristics
from taskpilot.assistant.client import (
    AssistantClient,
    AssistantUnavailableError,
    create_claude_client_factory,
)


@dataclass
class FakeTextBlock:
    text: str


@dataclass
class FakeAssistantMessage:
    content: list[Any]


class FakeSDKClient:
    """Stands in for ClaudeSDKClient: replays a scripted outcome."""

    def __init__(self, outcome: str | Exception) -> None:
        self.outcome = outcome
        self.prompts: list[str] = []

    async def __aenter__(self) -> "FakeSDKClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        return None

    async def query(self, prompt: str) -> None:
        self.prompts.append(prompt)
        if isinstance(self.outcome, Exception):
            raise self.outcome

    async def receive_response(self) -> AsyncIterator[Any]:
        yield FakeAssistantMessage(content=[FakeTextBlock(text=f"  {self.outcome}"), object()])
        yield object()


@dataclass
class ScriptedFactory:
    outcomes: list[str | Exception]
    created: list[FakeSDKClient] = field(default_factory=list)

    def __call__(self) -> FakeSDKClient:
        sdk_client = FakeSDKClient(self.outcomes[len(self.created)])
        self.created.append(sdk_client)
        return sdk_client


@pytest.fixture(autouse=True)
def fake_message_types(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(client_module, "AssistantMessage", FakeAssistantMessage)
    monkeypatch.setattr(client_module, "TextBlock", FakeTextBlock)


@pytest.fixture
def sleeps() -> list[float]:
    return []


def make_assistant(
    outcomes: list[str | Exception], sleeps: list[float], enabled: bool = True
) -> tuple[AssistantClient, ScriptedFactory]:
    factory = ScriptedFactory(outcomes)

    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    assistant = AssistantClient(
        enabled=enabled,
        client_factory=factory,  # type: ignore[arg-type]
        max_retries=3,
        retry_base_delay=0.5,
        sleep=record_sleep,
        rng=random.Random(3),
    )
    return assistant, factory


@pytest.mark.asyncio
async def test_ask_returns_text(sleeps: list[float]) -> None:
    assistant, factory = make_assistant(["Plan your day."], sleeps)

    assert await assistant.ask("How should I plan?") == "Plan your day."
    assert factory.created[0].prompts == ["How should I plan?"]
    assert sleeps == []


@pytest.mark.asyncio
async def test_ask_retries_with_backoff(sleeps: list[float]) -> None:
    assistant, factory = make_assistant(
        [RuntimeError("boom"), ConnectionError("down"), "Third time lucky."], sleeps
    )

    assert await assistant.ask("hi") == "Third time lucky."
    assert len(factory.created) == 3
    assert sleeps == [0.5, 1.0]


@pytest.mark.asyncio
async def test_ask_gives_up_after_max_retries(sleeps: list[float]) -> None:
    assistant, factory = make_assistant([RuntimeError("a"), RuntimeError("b"), RuntimeError("c")], sleeps)

    with pytest.raises(AssistantUnavailableError, match="c"):
        await assistant.ask("hi")

    assert len(factory.created) == 3
    # No wait after the final attempt
    assert sleeps == [0.5, 1.0]


@pytest.mark.asyncio
async def test_ask_empty_response_is_not_retried(sleeps: list[float]) -> None:
    assistant, factory = make_assistant(["   "], sleeps)

    with pytest.raises(AssistantUnavailableError, match="empty"):
        await assistant.ask("hi")

    assert len(factory.created) == 1


@pytest.mark.asyncio
async def test_disabled_assistant_never_calls_client(sleeps: list[float]) -> None:
    assistant, factory = make_assistant([], sleeps, enabled=False)

    with pytest.raises(AssistantUnavailableError, match="disabled"):
        await assistant.ask("hi")

    assert factory.created == []


@pytest.mark.asyncio
async def test_reply_falls_back_to_tips(sleeps: list[float]) -> None:
    assistant, _ = make_assistant([RuntimeError("a"), RuntimeError("b"), RuntimeError("c")], sleeps)

    response = await assistant.reply("Any productivity tips?")

    assert response in heuristics.FALLBACK_RESPONSES[0][1]


@pytest.mark.asyncio
async def test_reply_passes_through_answer(sleeps: list[float]) -> None:
    assistant, _ = make_assistant(["Batch your errands."], sleeps)

    assert await assistant.reply("errands?") == "Batch your errands."


@pytest.mark.integration
@pytest.mark.asyncio
async def test_real_assistant_answers(monkeypatch: pytest.MonkeyPatch) -> None:
    """Talks to the real assistant. Requires a working Claude Code installation."""
    monkeypatch.undo()
    assistant = AssistantClient(enabled=True, client_factory=create_claude_client_factory("sonnet"))

    response = await assistant.ask("Give one short tip for planning a workday.")

    assert len(response) > 0
