"""Logfire observability for the Lending Library MCP Server."""

import logging

import logfire

from .config import ObservabilityConfig

logger = logging.getLogger(__name__)

_config: ObservabilityConfig | None = None


def initialize_observability(config: ObservabilityConfig | None = None) -> None:
    """Initialize Logfire with configuration."""
    global _config  # noqa: PLW0603
    _config = config or ObservabilityConfig()

    if not _config.enabled:
        logger.debug("Observability disabled via configuration")
        return

    logfire.configure(
        token=_config.token,
        service_name=_config.service_name,
        environment=_config.environment,
        send_to_logfire=_config.should_send,
        console=_config.console,
    )
    logger.debug("Logfire configured for %s", _config.environment)


def get_config() -> ObservabilityConfig:
    """Get current observability configuration."""
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ObservabilityConfig()
    return _config


__all__ = [
    "ObservabilityConfig",
    "get_config",
    "initialize_observability",
]
