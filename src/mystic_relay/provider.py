from dataclasses import dataclass
from typing import AsyncGenerator, Protocol, runtime_checkable


@dataclass(frozen=True)
class UpstreamChunk:
    text: str
    accumulated: str


@runtime_checkable
class UpstreamStreamConsumer(Protocol):
    def stream(self, prompt: str, system_prompt: str) -> AsyncGenerator[UpstreamChunk, None]:
        """Stream one completion as text chunks, each carrying the running full text.

        Raises UpstreamUnavailable, RateLimited or UpstreamError.
        """
        ...


def create_consumer(
    provider_name: str,
    api_key: str,
    *,
    model: str,
    max_tokens: int,
    temperature: float,
    retry_attempts: int = 3,
) -> UpstreamStreamConsumer:
    """Factory: create an UpstreamStreamConsumer by provider name."""
    name = provider_name.strip().lower()
    if name == "openai":
        from mystic_relay.providers.openai_provider import OpenAIStreamConsumer
        return OpenAIStreamConsumer(
            api_key,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            retry_attempts=retry_attempts,
        )
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'openai'")
