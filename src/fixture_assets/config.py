"""
Configuration for the convenience layers (pytest plugin, manifest loading).

The core API (ensure / AssetMaterializer) takes its cache directory and
options as arguments; this module only resolves defaults for callers that
don't want to pass them around.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from fixture_assets.download.http_client import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from fixture_assets.errors import ConfigurationError
from fixture_assets.hashing import DEFAULT_CHUNK_SIZE

# Default config path: fixture_assets.yaml in the working directory
DEFAULT_CONFIG_PATH = Path("fixture_assets.yaml")
CONFIG_PATH_ENV = "FIXTURE_ASSETS_CONFIG"
CONFIG_SECTION = "fixture_assets"

TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean for {key}: '{value}'")


def _parse_positive(key: str, value: Any, kind: type) -> Any:
    try:
        parsed = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid {kind.__name__} for {key}: '{value}'", cause=e
        ) from e
    if parsed <= 0:
        raise ConfigurationError(f"{key} must be positive, got {parsed}")
    return parsed


@dataclass
class AssetsConfig:
    """Settings for materializing test assets.

    Attributes:
        cache_dir: Directory holding materialized assets
        manifest_path: Optional YAML asset manifest
        timeout_seconds: Total timeout per fetch
        chunk_size: Streaming and hashing chunk size in bytes
        max_connections: HTTP connection pool size
        verify_ssl: Verify TLS certificates
        user_agent: User-Agent header for HTTP fetches
    """

    cache_dir: Path = Path(".fixture-assets")
    manifest_path: Optional[Path] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_connections: int = 10
    verify_ssl: bool = True
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def load_config(cls, config_path: Optional[Path] = None) -> "AssetsConfig":
        """Load configuration from a YAML file and environment variables.

        Configuration priority (highest to lowest):
        1. Environment variables
        2. YAML file (under 'fixture_assets:' key)
        3. Dataclass defaults

        The YAML file is config_path, else $FIXTURE_ASSETS_CONFIG, else
        ./fixture_assets.yaml. A missing default file is fine; a missing
        file that was asked for explicitly is an error.

        Optional env vars:
            FIXTURE_ASSETS_CACHE_DIR: Cache directory (default: .fixture-assets)
            FIXTURE_ASSETS_MANIFEST: YAML asset manifest (default: none)
            FIXTURE_ASSETS_TIMEOUT_SECONDS: Fetch timeout (default: 300)
            FIXTURE_ASSETS_CHUNK_SIZE: Chunk size in bytes (default: 65536)
            FIXTURE_ASSETS_MAX_CONNECTIONS: Connection pool size (default: 10)
            FIXTURE_ASSETS_VERIFY_SSL: Verify TLS certificates (default: true)
            FIXTURE_ASSETS_USER_AGENT: User-Agent header

        Raises:
            ConfigurationError: Unreadable file or invalid values
        """
        explicit = config_path is not None or bool(os.getenv(CONFIG_PATH_ENV))
        config_path = Path(
            config_path or os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
        )

        # Load from YAML
        data: Dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    yaml_data = yaml.safe_load(f) or {}
            except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
                raise ConfigurationError(
                    f"Cannot load config file {config_path}", cause=e
                ) from e
            if not isinstance(yaml_data, dict):
                raise ConfigurationError(f"Config file {config_path} must be a mapping")
            data = yaml_data.get(CONFIG_SECTION) or {}
            if not isinstance(data, dict):
                raise ConfigurationError(
                    f"'{CONFIG_SECTION}' in {config_path} must be a mapping"
                )
        elif explicit:
            raise ConfigurationError(f"Config file not found: {config_path}")

        cache_dir = os.getenv("FIXTURE_ASSETS_CACHE_DIR", data.get("cache_dir", ".fixture-assets"))
        if not str(cache_dir).strip():
            raise ConfigurationError("cache_dir must not be empty")

        manifest = os.getenv("FIXTURE_ASSETS_MANIFEST", data.get("manifest_path"))

        return cls(
            cache_dir=Path(cache_dir),
            manifest_path=Path(manifest) if manifest else None,
            timeout_seconds=_parse_positive(
                "timeout_seconds",
                os.getenv(
                    "FIXTURE_ASSETS_TIMEOUT_SECONDS",
                    data.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
                ),
                float,
            ),
            chunk_size=_parse_positive(
                "chunk_size",
                os.getenv(
                    "FIXTURE_ASSETS_CHUNK_SIZE",
                    data.get("chunk_size", DEFAULT_CHUNK_SIZE),
                ),
                int,
            ),
            max_connections=_parse_positive(
                "max_connections",
                os.getenv(
                    "FIXTURE_ASSETS_MAX_CONNECTIONS",
                    data.get("max_connections", 10),
                ),
                int,
            ),
            verify_ssl=_parse_bool(
                "verify_ssl",
                os.getenv("FIXTURE_ASSETS_VERIFY_SSL", data.get("verify_ssl", True)),
            ),
            user_agent=os.getenv(
                "FIXTURE_ASSETS_USER_AGENT",
                data.get("user_agent", DEFAULT_USER_AGENT),
            ),
        )

    def materializer_options(self) -> Dict[str, Any]:
        """Keyword arguments for AssetMaterializer / ensure()."""
        return {
            "timeout_seconds": self.timeout_seconds,
            "chunk_size": self.chunk_size,
            "max_connections": self.max_connections,
            "verify_ssl": self.verify_ssl,
            "user_agent": self.user_agent,
        }
