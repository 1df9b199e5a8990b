"""Application settings and configuration."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "agent-sandbox"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = Field(default="INFO")

    # Provider selection: managed, container-engine or stub
    sandbox_provider: str = Field(default="stub")

    # Managed service (E2B)
    e2b_api_key: str = Field(default="")
    e2b_template_id: Optional[str] = Field(default=None)

    # Container engine
    docker_binary: str = Field(default="docker")
    sandbox_docker_image: str = Field(default="coding-agent-sandbox:latest")
    docker_network: str = Field(default="coding-agent-network")
    sandbox_memory_limit: str = Field(default="2g")
    sandbox_cpu_limit: str = Field(default="2")
    sandbox_keep_volume: bool = Field(default=False)
    sandbox_project_dir: str = Field(default="/workspace/project")
    sandbox_workspace_mount: str = Field(default="/workspace")
    sandbox_command_timeout: float = Field(default=120.0, gt=0)
    sandbox_default_port: int = Field(default=3000, gt=0, lt=65536)
    sandbox_host_gateway: bool = Field(default=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
