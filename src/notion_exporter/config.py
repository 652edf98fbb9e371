# ABOUTME: Configuration loading and validation for notion-exporter.
# ABOUTME: Parses an optional config.yaml into a validated dataclass.

from dataclasses import dataclass, fields, replace
from pathlib import Path
import os
import yaml

from .errors import CredentialMissingError


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass
class ExportConfig:
    """Settings shared by every export run."""
    token_env: str = "NOTION_TOKEN"
    recursive: bool = False
    requests_per_second: float = 2.5
    max_retries: int = 3
    timeout_ms: int = 60_000
    download_images: bool = True

    def __post_init__(self):
        if not self.token_env:
            raise ConfigError("token_env must not be empty")
        if self.requests_per_second <= 0:
            raise ConfigError(f"requests_per_second must be positive, got {self.requests_per_second}")
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.timeout_ms < 1:
            raise ConfigError(f"timeout_ms must be positive, got {self.timeout_ms}")

    def get_token(self) -> str:
        """Retrieve the Notion token from the configured environment variable."""
        token = os.environ.get(self.token_env)
        if not token:
            raise CredentialMissingError(self.token_env)
        return token

    def with_overrides(self, **overrides) -> "ExportConfig":
        """Return a copy with the given non-None values applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


def load_config(path: Path | None) -> ExportConfig:
    """Load and validate configuration from a YAML file.

    A missing path (None) yields the defaults; an explicit path that does
    not exist is an error.
    """
    if path is None:
        return ExportConfig()

    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}")

    if raw is None:
        return ExportConfig()
    if not isinstance(raw, dict):
        raise ConfigError("Config file must contain a YAML mapping")

    known = {f.name for f in fields(ExportConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown config field(s): {', '.join(unknown)}")

    try:
        return ExportConfig(**raw)
    except TypeError as e:
        raise ConfigError(f"Invalid config value: {e}")
