"""Configuration management using Pydantic.

Provides:
- Typed configuration models with validation
- YAML file loading with defaults
- Environment variable overrides
- Configuration initialization and display
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fwr.core.exceptions import ConfigurationError


# Default configuration paths
DEFAULT_CONFIG_PATH = Path("/etc/fwr/config.yaml")
DEFAULT_AUDIT_LOG_PATH = Path("/var/log/fwr/audit.log")
DEFAULT_FIREWALL_CMD = "firewall-cmd"


class QueryFailurePolicy(str, Enum):
    """What to do when an existence check cannot be trusted."""
    ASSUME_ABSENT = "assume-absent"  # Treat as "not present"
    FAIL = "fail"                    # Report a failed result


class FirewalldConfig(BaseModel):
    """firewall-cmd invocation settings."""

    executable: str = DEFAULT_FIREWALL_CMD
    query_failure: QueryFailurePolicy = QueryFailurePolicy.ASSUME_ABSENT
    default_zone: Optional[str] = None

    @field_validator("executable")
    @classmethod
    def validate_executable(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("executable cannot be empty")
        return v.strip()

    @field_validator("default_zone")
    @classmethod
    def validate_default_zone(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class AuditConfig(BaseModel):
    """Audit log settings."""

    enabled: bool = True
    log_path: Path = DEFAULT_AUDIT_LOG_PATH
    max_size_mb: int = 100
    backup_count: int = 10

    @field_validator("max_size_mb", "backup_count")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class MachineConfig(BaseModel):
    """Root configuration model, loaded from /etc/fwr/config.yaml."""

    firewalld: FirewalldConfig = Field(default_factory=FirewalldConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    @classmethod
    def load(cls, path: Path) -> "MachineConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If file not found or invalid
        """
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                hint="Create it with: fwr config init",
            )

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {path}",
                details=[str(e)],
            ) from e
        except PermissionError:
            raise ConfigurationError(
                f"Cannot read configuration file: {path}",
                hint="Check file permissions or run with sudo",
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Invalid configuration: {path} must contain a mapping",
            )

        try:
            return cls(**data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration in {path}",
                details=[str(err["loc"]) + ": " + err["msg"] for err in e.errors()],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "MachineConfig":
        """Load configuration, falling back to defaults if file doesn't exist."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if path.exists():
            return cls.load(path)
        return cls()

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        data = self.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, sort_keys=False)


class EnvironmentOverrides(BaseSettings):
    """Overrides read from FWR_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="FWR_", extra="ignore")

    firewall_cmd: Optional[str] = None
    query_failure: Optional[QueryFailurePolicy] = None
    audit_enabled: Optional[bool] = None


class AppConfig:
    """Application configuration combining the config file and environment.

    This is the main interface for accessing configuration throughout the app.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[MachineConfig] = None,
    ) -> None:
        """Initialize application configuration.

        Args:
            config_path: Path to config file (uses default if None)
            config: Pre-loaded config (skips file loading if provided)
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = config or MachineConfig.load_or_default(self.config_path)
        self._apply_overrides(EnvironmentOverrides())

    def _apply_overrides(self, env: EnvironmentOverrides) -> None:
        if env.firewall_cmd:
            self._config.firewalld.executable = env.firewall_cmd
        if env.query_failure is not None:
            self._config.firewalld.query_failure = env.query_failure
        if env.audit_enabled is not None:
            self._config.audit.enabled = env.audit_enabled

    @property
    def config(self) -> MachineConfig:
        """Get the machine configuration."""
        return self._config

    @property
    def firewalld(self) -> FirewalldConfig:
        """Shortcut to firewalld config."""
        return self._config.firewalld

    @property
    def audit(self) -> AuditConfig:
        """Shortcut to audit config."""
        return self._config.audit


def get_example_config() -> str:
    """Generate example configuration file content."""
    return """# firewalld reconciler configuration
# Environment overrides: FWR_FIREWALL_CMD, FWR_QUERY_FAILURE, FWR_AUDIT_ENABLED

firewalld:
  executable: firewall-cmd
  # What to do when --list-* fails or writes to stderr:
  #   assume-absent: treat the object as not present (may issue a change)
  #   fail: report a failed result without changing anything
  query_failure: assume-absent
  # Zone used when a request does not name one (null = daemon default zone)
  default_zone: null

audit:
  enabled: true
  log_path: /var/log/fwr/audit.log
  max_size_mb: 100
  backup_count: 10
"""


def init_config(path: Path, force: bool = False) -> None:
    """Initialize a new configuration file.

    Args:
        path: Path to create config file
        force: Overwrite if exists

    Raises:
        ConfigurationError: If file exists and force is False
    """
    if path.exists() and not force:
        raise ConfigurationError(
            f"Configuration file already exists: {path}",
            hint="Use --force to overwrite",
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_example_config())
    os.chmod(path, 0o600)
