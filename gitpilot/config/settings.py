"""Configuration settings models using Pydantic."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExecutorConfig(BaseModel):
    """Configuration for spawning git processes."""

    timeout_ms: int = Field(default=30000, ge=100)
    guard_timeout_ms: int = Field(default=5000, ge=100)
    clone_timeout_ms: int = Field(default=300000, ge=1000)
    max_output_chars: int = Field(default=100000, ge=1000)
    env: dict[str, str] = Field(
        default_factory=lambda: {"GIT_TERMINAL_PROMPT": "0", "GIT_EDITOR": "true"}
    )


class WorkflowsConfig(BaseModel):
    """Configuration for composite workflows."""

    default_remote: str = "origin"
    main_branches: list[str] = Field(default_factory=lambda: ["main", "master"])
    protected_branches: list[str] = Field(default_factory=lambda: ["main", "master", "develop"])
    min_commit_message_length: int = Field(default=3, ge=1)
    tag_prefix: str = "v"
    backup_prefix: str = "backup"

    @field_validator("default_remote", "backup_prefix")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()


class IdentityConfig(BaseModel):
    """Configuration for resolving which alias was invoked."""

    freshness_window_seconds: float = Field(default=5.0, ge=0.0)
    wrapper_dirs: list[str] = Field(default_factory=list)
    shell_command_var: str = "_"

    @property
    def resolved_wrapper_dirs(self) -> list[Path]:
        """Wrapper directories with ~ expanded."""
        return [Path(d).expanduser() for d in self.wrapper_dirs]


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file: Optional[str] = None

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @property
    def resolved_file(self) -> Optional[Path]:
        return Path(self.file).expanduser() if self.file else None


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="GITPILOT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    workflows: WorkflowsConfig = Field(default_factory=WorkflowsConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; environment variables win over them
        return env_settings, init_settings, dotenv_settings, file_secret_settings
