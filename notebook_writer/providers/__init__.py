from .client import ProviderClient, ProviderError
from .fallback import (
    AllProvidersFailedError,
    Completion,
    FallbackGenerator,
    StreamReset,
    StreamSummary,
    StreamToken,
)

__all__ = [
    "ProviderClient",
    "ProviderError",
    "AllProvidersFailedError",
    "Completion",
    "FallbackGenerator",
    "StreamReset",
    "StreamSummary",
    "StreamToken",
]
