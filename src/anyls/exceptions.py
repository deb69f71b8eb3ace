"""Error kinds raised across anyls."""

from __future__ import annotations


class AnyLsError(RuntimeError):
    """Base class for every error anyls raises on purpose."""


class ConfigError(AnyLsError):
    pass


class ProviderUnavailable(AnyLsError):
    """A provider's external prerequisite is missing.

    Raised only while probing providers at startup. The registry treats it as
    a silent capability reduction, never as a failure of the session.
    """

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider} unavailable: {reason}")
        self.provider = provider
        self.reason = reason


class ProviderError(AnyLsError):
    """A provider call failed while computing a result for a document."""


class ToolInvocationError(ProviderError):
    """Spawning or talking to an external tool failed."""


class EncodingError(ToolInvocationError):
    """An external tool produced output that is not valid UTF-8."""


class DocumentNotFound(AnyLsError):
    def __init__(self, uri: str) -> None:
        super().__init__(f"No such document: {uri}")
        self.uri = uri
