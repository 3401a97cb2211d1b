from __future__ import annotations


class ConfigError(ValueError):
    """Missing or invalid credential, parameter or config value."""


class ProviderError(Exception):
    """Base class for provider-level failures."""


class ProviderConnectionError(ProviderError):
    """
    Backend unreachable when the provider is initialised or called.
    Fatal to selecting that provider, not to the process.
    """


class TransportError(ProviderError):
    """
    Mid-call network or protocol failure. Streaming calls deliver it as the
    error of the terminal StreamChunk instead of raising it.
    """

    def __init__(self, message: str, *, provider: str = "", status: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class EmptyResponseError(ProviderError):
    """Well-formed call that came back with zero choices/candidates."""


class RegistryError(LookupError):
    """Registry misuse."""


class ProviderNotFoundError(RegistryError):
    pass


class DuplicateProviderError(RegistryError):
    pass


class HistoryError(OSError):
    """History store could not be read or written."""


class StreamCancelled(ProviderError):
    """The caller cancelled a stream before its terminal chunk arrived."""
