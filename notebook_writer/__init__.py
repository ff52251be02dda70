"""Multi-step notebook generation on top of unreliable text-generation providers."""

from .config import Config
from .engine import PhaseEngine
from .models import GenerationRequest, GenerationResult, Section
from .providers import AllProvidersFailedError, FallbackGenerator, ProviderClient
from .recovery import recover
from .streaming import StreamAdapter

__version__ = "0.1.0"

__all__ = [
    "Config",
    "PhaseEngine",
    "GenerationRequest",
    "GenerationResult",
    "Section",
    "AllProvidersFailedError",
    "FallbackGenerator",
    "ProviderClient",
    "recover",
    "StreamAdapter",
]
