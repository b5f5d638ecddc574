"""Generative assistant backed by the Claude Code SDK."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from claude_code_sdk import AssistantMessage, ClaudeCodeOptions, ClaudeSDKClient, TextBlock

from taskpilot.assistant.heuristics import fallback_response

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful AI assistant that helps with task management and productivity. "
    "Provide concise, practical advice."
)


class AssistantUnavailableError(Exception):
    """Assistant is disabled or every attempt to reach it failed."""


def create_claude_client_factory(model: str) -> Callable[[], ClaudeSDKClient]:
    """Create a factory returning a fresh SDK client per prompt.

    The assistant only answers questions, so it gets no tools and a single turn.
    """

    def factory() -> ClaudeSDKClient:
        options = ClaudeCodeOptions(
            model=model,
            system_prompt=SYSTEM_PROMPT,
            allowed_tools=[],
            max_turns=1,
        )
        return ClaudeSDKClient(options=options)

    return factory


class AssistantClient:
    """Sends prompts to the assistant with retry, falling back to canned tips."""

    def __init__(
        self,
        enabled: bool,
        client_factory: Callable[[], ClaudeSDKClient],
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the assistant.

        Args:
            enabled: When False every prompt is answered from the fallback tips
            client_factory: Returns a new SDK client for each attempt
            max_retries: Total attempts per prompt
            retry_base_delay: Seconds to wait after the first failure, doubled each time
            sleep: Awaitable sleep, replaceable in tests
            rng: Random source for fallback tips
        """
        self.enabled = enabled
        self._client_factory = client_factory
        self._max_retries = max(1, max_retries)
        self._retry_base_delay = retry_base_delay
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def ask(self, prompt: str) -> str:
        """Send a prompt and return the assistant's text.

        Raises:
            AssistantUnavailableError: If disabled or all attempts failed
        """
        if not self.enabled:
            raise AssistantUnavailableError("Assistant is disabled")

        last_error: Exception | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                response = await self._send(prompt)
            except Exception as e:
                last_error = e
                if attempt < self._max_retries:
                    delay = self._retry_base_delay * 2 ** (attempt - 1)
                    logger.warning(
                        f"[Assistant] Attempt {attempt} failed ({e}), retrying in {delay:.1f}s"
                    )
                    await self._sleep(delay)
                continue

            if response:
                return response
            logger.warning("[Assistant] Empty response from assistant")
            raise AssistantUnavailableError("Assistant returned an empty response")

        logger.error(f"[Assistant] Giving up after {self._max_retries} attempts: {last_error}")
        raise AssistantUnavailableError(str(last_error)) from last_error

    async def reply(self, prompt: str, topic: str | None = None) -> str:
        """Answer a prompt, using a canned tip when the assistant is unavailable.

        Args:
            prompt: Full prompt sent to the assistant
            topic: Text the fallback tip is matched against, defaults to the prompt
        """
        try:
            return await self.ask(prompt)
        except AssistantUnavailableError as e:
            logger.info(f"[Assistant] Using fallback response: {e}")
            return fallback_response(topic or prompt, self._rng)

    async def _send(self, prompt: str) -> str:
        client = self._client_factory()
        response_text = ""

        async with client:
            await client.query(prompt)
            async for message in client.receive_response():
                if isinstance(message, AssistantMessage):
                    for block in message.content:
                        if isinstance(block, TextBlock):
                            response_text += block.text

        logger.info(f"[Assistant] Response length: {len(response_text)} chars")
        return response_text.strip()
