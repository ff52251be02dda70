"""Provider fallback: walk the (credential, model) matrix, then one secondary provider."""

from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

from loguru import logger

from ..config import Config, ProviderConfig, SecondaryProviderConfig
from .client import Messages, ProviderClient, ProviderError

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000


class AllProvidersFailedError(Exception):
    """Every matrix pair and the secondary provider failed."""


@dataclass
class Completion:
    content: str
    model_id: str
    provider_id: str


@dataclass
class StreamToken:
    text: str


@dataclass
class StreamReset:
    """Tokens received since the previous reset came from a pair that failed."""
    provider_id: str
    model_id: str
    reason: str


@dataclass
class StreamSummary:
    content: str
    model_id: str
    provider_id: str


StreamItem = Union[StreamToken, StreamReset, StreamSummary]
ClientFactory = Callable[..., ProviderClient]


class FallbackGenerator:
    """Turns a set of flaky endpoints into one completion or a hard failure.

    Attempts are strictly sequential. Each (credential, model) pair gets
    exactly one call; the first non-empty answer wins and nothing after it
    is probed.
    """

    def __init__(
        self,
        providers: list[ProviderConfig],
        secondary: SecondaryProviderConfig,
        timeout: Optional[float] = None,
        client_factory: ClientFactory = ProviderClient,
    ):
        self.providers = providers
        self.secondary = secondary
        self.timeout = timeout
        self.client_factory = client_factory

    @classmethod
    def from_config(cls, config: Config, client_factory: ClientFactory = ProviderClient) -> "FallbackGenerator":
        return cls(
            providers=config.providers,
            secondary=config.secondary,
            timeout=config.request_timeout,
            client_factory=client_factory,
        )

    def _matrix(self) -> Iterator[tuple[Optional[ProviderClient], str, str]]:
        """Yield (client, model, label) in priority order.

        The client is None when it could not be constructed; the caller
        treats that as a failed pair.
        """
        for provider in self.providers:
            credentials = provider.credentials()
            if not credentials:
                logger.warning(f"Provider {provider.name} has no credentials configured, skipping")
                continue
            for key_index, api_key in enumerate(credentials, start=1):
                logger.info(f"Trying {provider.name} key {key_index}...")
                try:
                    client = self.client_factory(
                        name=provider.name,
                        api_key=api_key,
                        base_url=provider.base_url,
                        timeout=self.timeout,
                    )
                except Exception as exc:
                    logger.warning(f"Could not build client for {provider.name} key {key_index}: {exc}")
                    client = None
                for model in provider.models:
                    yield client, model, f"{provider.name} key {key_index} / {model}"

    def _secondary_client(self) -> ProviderClient:
        api_key = self.secondary.credential()
        if not api_key:
            raise AllProvidersFailedError(
                f"All providers failed; secondary provider {self.secondary.name} has no credential"
            )
        try:
            return self.client_factory(
                name=self.secondary.name,
                api_key=api_key,
                base_url=self.secondary.base_url,
                timeout=self.timeout,
            )
        except Exception as exc:
            logger.error(f"Secondary provider {self.secondary.name} unavailable: {exc}")
            raise AllProvidersFailedError("All AI providers failed") from exc

    def generate(
        self,
        messages: Messages,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> Completion:
        for client, model, label in self._matrix():
            if client is None:
                continue
            logger.debug(f"Attempting {label}")
            try:
                content = client.complete(messages, model, temperature=temperature, max_tokens=max_tokens)
            except Exception as exc:
                logger.warning(f"Failed {label}: {exc}")
                continue
            logger.info(f"Success with {label}")
            return Completion(content=content, model_id=model, provider_id=client.name)

        logger.warning(f"All primary providers failed, using {self.secondary.name} fallback...")
        client = self._secondary_client()
        try:
            content = client.complete(
                messages, self.secondary.model, temperature=temperature, max_tokens=max_tokens
            )
        except ProviderError as exc:
            logger.error(f"Secondary provider {self.secondary.name} failed: {exc}")
            raise AllProvidersFailedError("All AI providers failed") from exc

        logger.info(f"{self.secondary.name} fallback successful")
        return Completion(content=content, model_id=self.secondary.model, provider_id=self.secondary.name)

    def generate_stream(
        self,
        messages: Messages,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> Iterator[StreamItem]:
        """Streaming variant of :meth:`generate` with the same fallback policy.

        Tokens are forwarded as they arrive. When a pair fails after
        forwarding tokens a StreamReset is yielded; consumers drop what they
        buffered since the previous reset. The closing StreamSummary only
        ever holds the winning pair's text.
        """
        for client, model, label in self._matrix():
            if client is None:
                continue
            logger.debug(f"Attempting streamed {label}")
            parts: list[str] = []
            try:
                for delta in client.complete_stream(
                    messages, model, temperature=temperature, max_tokens=max_tokens
                ):
                    parts.append(delta)
                    yield StreamToken(delta)
                content = "".join(parts)
                if not content.strip():
                    raise ProviderError(client.name, model, "empty completion")
            except Exception as exc:
                logger.warning(f"Failed {label} mid-stream: {exc}")
                if parts:
                    yield StreamReset(provider_id=client.name, model_id=model, reason=str(exc))
                continue
            logger.info(f"Streamed success with {label}")
            yield StreamSummary(content=content, model_id=model, provider_id=client.name)
            return

        logger.warning(f"All primary providers failed, streaming from {self.secondary.name} fallback...")
        client = self._secondary_client()
        parts = []
        try:
            for delta in client.complete_stream(
                messages, self.secondary.model, temperature=temperature, max_tokens=max_tokens
            ):
                parts.append(delta)
                yield StreamToken(delta)
            content = "".join(parts)
            if not content.strip():
                raise ProviderError(self.secondary.name, self.secondary.model, "empty completion")
        except ProviderError as exc:
            logger.error(f"Secondary provider {self.secondary.name} failed: {exc}")
            if parts:
                yield StreamReset(provider_id=self.secondary.name, model_id=self.secondary.model, reason=str(exc))
            raise AllProvidersFailedError("All AI providers failed") from exc

        yield StreamSummary(content=content, model_id=self.secondary.model, provider_id=self.secondary.name)
