"""anyls package root."""

from anyls.exceptions import (
    AnyLsError,
    DocumentNotFound,
    ProviderError,
    ProviderUnavailable,
    ToolInvocationError,
)

__all__ = [
    "__version__",
    "AnyLsError",
    "DocumentNotFound",
    "ProviderError",
    "ProviderUnavailable",
    "ToolInvocationError",
]

__version__ = "0.1.0"
