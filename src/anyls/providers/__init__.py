from anyls.providers.contract import Provider, ProviderKind
from anyls.providers.just import JustProvider
from anyls.providers.props import PropsProvider
from anyls.providers.registry import ProviderRegistry, probe_providers

__all__ = [
    "JustProvider",
    "PropsProvider",
    "Provider",
    "ProviderKind",
    "ProviderRegistry",
    "probe_providers",
]
