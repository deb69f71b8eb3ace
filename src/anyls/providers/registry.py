from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterator

from lsprotocol.types import ServerCapabilities

from anyls.capabilities import merge_capabilities
from anyls.config import AnyLsConfig
from anyls.exceptions import ProviderUnavailable
from anyls.providers.contract import Provider
from anyls.providers.just import JustProvider, Runner, Which, run_process
from anyls.providers.props import PropsProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Providers active for this session, in registration order.

    Order matters twice: it is the order documents receive their providers
    in, and the first registered provider wins capability conflicts.
    """

    def __init__(self) -> None:
        self._providers: list[Provider] = []

    def register(self, provider: Provider) -> None:
        self._providers.append(provider)
        logger.info("Registered provider %s", provider.kind.value)

    def providers_for(self, filetype: str) -> tuple[Provider, ...]:
        return tuple(provider for provider in self._providers if provider.supports(filetype))

    def merged_capabilities(self) -> ServerCapabilities:
        return merge_capabilities(provider.capabilities() for provider in self._providers)

    def close(self) -> None:
        for provider in self._providers:
            provider.close()

    def __iter__(self) -> Iterator[Provider]:
        return iter(tuple(self._providers))

    def __len__(self) -> int:
        return len(self._providers)


def probe_providers(
    root: Path,
    config: AnyLsConfig | None = None,
    *,
    runner: Runner = run_process,
    which: Which = shutil.which,
) -> ProviderRegistry:
    """Construct every provider whose prerequisites are met, once, at startup."""
    config = config or AnyLsConfig()
    registry = ProviderRegistry()
    if config.just.enabled:
        try:
            registry.register(
                JustProvider.probe(config.just.executable, runner=runner, which=which)
            )
        except ProviderUnavailable as exc:
            logger.info("Skipping provider: %s", exc)
    if config.definitions.enabled:
        registry.register(
            PropsProvider.from_root(root, max_depth=config.definitions.max_depth)
        )
    return registry
