"""Logfire settings, read from the ``LOGFIRE_*`` variables Logfire itself uses."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class ObservabilityConfig(BaseSettings):
    """Configuration for Logfire observability."""

    model_config = SettingsConfigDict(env_prefix="LOGFIRE_", case_sensitive=False, extra="ignore")

    token: str | None = None
    service_name: str = "lending-library-mcp"
    environment: str = "development"

    enabled: bool = True
    # stdout belongs to the stdio transport
    console: bool = False
    # None: export only in production
    send_to_logfire: bool | None = None

    @property
    def should_send(self) -> bool:
        if self.send_to_logfire is None:
            return self.environment == "production"
        return self.send_to_logfire
