"""Configuration management for sparklib."""

from __future__ import annotations

from pathlib import Path
from typing import Any

try:
    import tomllib as _toml  # Python 3.11+

    TOMLDecodeError = _toml.TOMLDecodeError
except ModuleNotFoundError:
    import tomli as _toml  # type: ignore[no-redef]
    from tomli import TOMLDecodeError  # type: ignore

CONFIG_FILE = "sparklib.toml"

DEFAULT_CONFIG = """# sparklib configuration

[repository]
# Directory holding one subdirectory per library
root_path = "libraries"

# Descriptor layout written when adding libraries (1 legacy, 2 current)
layout = 2

[registry]
# Remote library registry
endpoint = "https://build.particle.io/"
timeout = 30
catalog_path = "libs.json"
library_path = "libs/{name}.json"
api_key = ""

[logging]
level = "INFO"
format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
"""


class Config:
    """Configuration manager for sparklib."""

    def __init__(self, config_path: Path | None = None):
        """Initialize configuration from TOML file."""
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILE

        self.config_path = config_path
        self._config: dict[str, Any] = {}

        if config_path.exists():
            self._load_config()

    def _load_config(self) -> None:
        """Load configuration from TOML file."""
        try:
            with open(self.config_path, "rb") as f:
                self._config = _toml.load(f)
        except TOMLDecodeError as e:
            raise ValueError(
                f"Invalid TOML configuration in {self.config_path}: {e}"
            ) from e
        except OSError as e:
            raise ValueError(
                f"Failed to load configuration from {self.config_path}: {e}"
            ) from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dotted key."""
        value: Any = self._config

        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    @property
    def repository_root(self) -> Path:
        """Get the local repository root path."""
        root = Path(self.get("repository.root_path", "libraries"))

        # Relative paths are relative to the config file
        if not root.is_absolute():
            root = self.config_path.parent / root

        return root

    @property
    def repository_layout(self) -> int:
        """Get the descriptor layout used when adding libraries."""
        value = self.get("repository.layout", 2)
        return int(value) if value is not None else 2

    @property
    def registry_endpoint(self) -> str:
        value = self.get("registry.endpoint", "https://build.particle.io/")
        return str(value) if value is not None else "https://build.particle.io/"

    @property
    def registry_timeout(self) -> float:
        value = self.get("registry.timeout", 30)
        return float(value) if value is not None else 30.0

    @property
    def registry_catalog_path(self) -> str:
        value = self.get("registry.catalog_path", "libs.json")
        return str(value) if value is not None else "libs.json"

    @property
    def registry_library_path(self) -> str:
        value = self.get("registry.library_path", "libs/{name}.json")
        return str(value) if value is not None else "libs/{name}.json"

    @property
    def registry_api_key(self) -> str:
        value = self.get("registry.api_key", "")
        return str(value) if value is not None else ""

    @property
    def log_level(self) -> str:
        value = self.get("logging.level", "INFO")
        return str(value).upper() if value is not None else "INFO"

    @property
    def log_format(self) -> str:
        value = self.get(
            "logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        return str(value)
