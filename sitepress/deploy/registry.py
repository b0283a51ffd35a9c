"""Provider registry: lazily creates and caches hosting providers by name."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sitepress.deploy.base import load_provider_class

if TYPE_CHECKING:
    from sitepress.config import DeployConfig, ProviderConfig
    from sitepress.deploy.base import DeploymentProvider


class ProviderRegistry:
    """Registry of named providers from ``deploy.providers`` in app.yaml."""

    def __init__(self, config: DeployConfig) -> None:
        self._config = config
        self._providers: dict[str, DeploymentProvider] = {}

    @property
    def default_provider(self) -> str:
        return self._config.default_provider

    @property
    def provider_names(self) -> list[str]:
        return list(self._config.providers.keys())

    def register(self, name: str, provider: DeploymentProvider) -> None:
        """Install an already-built provider under ``name``."""
        self._providers[name] = provider

    async def get(self, name: str | None = None) -> DeploymentProvider:
        """Return the provider for *name*, creating it on first access."""
        name = name or self._config.default_provider
        if name not in self._providers:
            provider_cfg = self._config.providers.get(name)
            if provider_cfg is None:
                raise KeyError(f"Unknown deployment provider: {name!r}")
            self._providers[name] = create_provider(provider_cfg)
        return self._providers[name]

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
        self._providers.clear()


def create_provider(config: ProviderConfig) -> DeploymentProvider:
    """Instantiate a provider from configuration."""
    backend = config.backend

    if backend == "vercel":
        from sitepress.deploy.vercel import VercelProvider

        return VercelProvider(config)

    if backend == "netlify":
        from sitepress.deploy.netlify import NetlifyProvider

        return NetlifyProvider(config)

    if ":" in backend:
        cls = load_provider_class(backend)
        return cls(config)

    raise ValueError(
        f"Unknown deployment backend '{backend}'. Use 'vercel', 'netlify', or 'module:ClassName'."
    )
