"""
Sandbox provider factory.

This module provides a factory function to create the appropriate
sandbox provider based on configuration.
"""

import logging
from enum import Enum
from typing import Optional, Union

from agent_sandbox.config.settings import Settings, get_settings
from agent_sandbox.sandbox.config import DockerEngineConfig
from agent_sandbox.sandbox.exceptions import ConfigurationError
from agent_sandbox.sandbox.protocol import SandboxProvider
from agent_sandbox.sandbox.providers.docker_provider import DockerSandboxProvider
from agent_sandbox.sandbox.providers.e2b_provider import E2BSandboxProvider
from agent_sandbox.sandbox.providers.stub_provider import StubSandboxProvider

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    """Closed set of sandbox provider variants."""

    MANAGED = "managed"
    CONTAINER_ENGINE = "container-engine"
    STUB = "stub"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ProviderType":
        """
        Resolve a configured provider name.

        Empty values select the stub. ``e2b``/``vercel`` and ``docker`` are
        accepted as aliases.

        Raises:
            ConfigurationError: If the name is not recognized
        """
        name = (value or "").strip().lower()
        if not name:
            return cls.STUB
        name = _ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise ConfigurationError(
                f"Unknown sandbox provider: {value}. "
                f"Available providers: {', '.join(p.value for p in cls)}"
            ) from None


_ALIASES = {
    "e2b": ProviderType.MANAGED.value,
    "vercel": ProviderType.MANAGED.value,
    "docker": ProviderType.CONTAINER_ENGINE.value,
}


def get_sandbox_provider(
    provider: Union[ProviderType, str, None] = None,
    settings: Optional[Settings] = None,
) -> SandboxProvider:
    """
    Get the configured sandbox provider.

    Args:
        provider: Provider to build (defaults to ``settings.sandbox_provider``)
        settings: Application settings (loaded from env if not provided)

    Returns:
        SandboxProvider instance (managed, container-engine or stub)

    Raises:
        ConfigurationError: If the provider is not recognized or missing
            required config

    Example:
        >>> provider = get_sandbox_provider()
        >>> provider = get_sandbox_provider("docker")
        >>> result = await provider.create(SandboxConfig(ports=[3000]))
    """
    if settings is None:
        settings = get_settings()

    provider_type = (
        provider if isinstance(provider, ProviderType)
        else ProviderType.parse(provider if provider is not None else settings.sandbox_provider)
    )

    logger.info(f"Creating {provider_type.value} sandbox provider")

    if provider_type is ProviderType.MANAGED:
        if not settings.e2b_api_key:
            raise ConfigurationError(
                "E2B_API_KEY environment variable is required for the managed provider"
            )
        return E2BSandboxProvider(
            api_key=settings.e2b_api_key,
            template_id=settings.e2b_template_id,
        )

    if provider_type is ProviderType.CONTAINER_ENGINE:
        return DockerSandboxProvider(DockerEngineConfig.from_settings(settings))

    return StubSandboxProvider()
