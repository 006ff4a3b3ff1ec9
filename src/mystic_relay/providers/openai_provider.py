from typing import AsyncGenerator

import httpx
import openai
from loguru import logger
from tenacity import AsyncRetrying

from mystic_relay.errors import RateLimited, UpstreamError, UpstreamFailure, UpstreamUnavailable
from mystic_relay.provider import UpstreamChunk
from mystic_relay.providers.common import default_retry_kwargs

# Only opening the stream is retried; a stream that broke halfway is not replayed.
_RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
)


def _to_openai_messages(system_prompt: str, prompt: str) -> list[dict]:
    out: list[dict] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    out.append({"role": "user", "content": prompt})
    return out


def translate_error(ex: Exception) -> UpstreamFailure:
    """Map an OpenAI or transport exception onto the upstream failure kinds."""
    if isinstance(ex, openai.RateLimitError):
        return RateLimited(str(ex))
    if isinstance(ex, openai.APIStatusError) and ex.status_code == 429:
        return RateLimited(str(ex))
    # APITimeoutError is a subclass of APIConnectionError
    if isinstance(ex, openai.APIConnectionError):
        return UpstreamUnavailable(str(ex))
    if isinstance(ex, (httpx.ConnectError, httpx.ConnectTimeout)):
        return UpstreamUnavailable(str(ex))
    return UpstreamError(str(ex) or type(ex).__name__)


class OpenAIStreamConsumer:
    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
        retry_attempts: int = 3,
        retry_min_wait: float = 1.0,
        client: openai.AsyncOpenAI | None = None,
    ):
        self._client = client or openai.AsyncOpenAI(api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._retry_attempts = retry_attempts
        self._retry_min_wait = retry_min_wait

    async def _open_stream(self, messages: list[dict]):
        retry_kwargs = default_retry_kwargs(_RETRYABLE_ERRORS, self._retry_attempts, min_wait=self._retry_min_wait)
        async for attempt in AsyncRetrying(**retry_kwargs):
            with attempt:
                return await self._client.chat.completions.create(
                    model=self._model,
                    max_tokens=self._max_tokens,
                    temperature=self._temperature,
                    messages=messages,
                    stream=True,
                )

    async def stream(self, prompt: str, system_prompt: str) -> AsyncGenerator[UpstreamChunk, None]:
        """Stream a completion from OpenAI, yielding every text delta as it arrives.

        Each chunk carries the delta and the full text accumulated so far.
        Provider failures surface as UpstreamFailure subclasses.
        """
        messages = _to_openai_messages(system_prompt, prompt)
        logger.debug(
            f"API request: model={self._model}, max_tokens={self._max_tokens}, "
            f"temperature={self._temperature}, prompt_len={len(prompt)}"
        )

        try:
            stream = await self._open_stream(messages)
        except (openai.OpenAIError, httpx.HTTPError) as ex:
            raise translate_error(ex) from ex

        text_content = ""
        chunk_count = 0
        try:
            async for chunk in stream:
                choice = chunk.choices[0] if chunk.choices else None
                if choice is None:
                    continue

                delta = choice.delta
                if delta is None or not delta.content:
                    continue

                text_content += delta.content
                chunk_count += 1
                yield UpstreamChunk(text=delta.content, accumulated=text_content)
        except (openai.OpenAIError, httpx.HTTPError) as ex:
            raise translate_error(ex) from ex
        finally:
            await stream.close()

        logger.debug(f"API response: chunks={chunk_count}, text_len={len(text_content)}")
