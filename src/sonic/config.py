from __future__ import annotations

import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field


class PrimaryConfig(BaseModel):
    """Primary matching service."""

    base_url: str = Field(default="http://localhost:8080")
    timeout_s: float = Field(default=30.0, gt=0)


class AcoustIDConfig(BaseModel):
    """AcoustID lookup service."""

    api_key: str | None = Field(default=None)
    base_url: str = Field(default="https://api.acoustid.org/v2")
    timeout_s: float = Field(default=30.0, gt=0)


class CatalogConfig(BaseModel):
    """Spotify catalog used for enrichment."""

    # Bearer token; unset means unauthenticated searches
    client_credential: str | None = Field(default=None)
    base_url: str = Field(default="https://api.spotify.com/v1")
    timeout_s: float = Field(default=30.0, gt=0)


class RecognitionConfig(BaseModel):
    """Recognition pipeline settings."""

    enrichment_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    use_custom_algorithm: bool = Field(default=False)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="WARNING")  # DEBUG, INFO, WARNING, ERROR
    # Rich already renders time and level
    format: str = Field(default="%(message)s")
    hash_paths: bool = Field(default=False)


def _truthy(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class Config(BaseModel):
    """
    Main configuration for sonic.

    Loads from TOML file with optional environment variable overrides.
    """

    primary: PrimaryConfig = Field(default_factory=PrimaryConfig)
    acoustid: AcoustIDConfig = Field(default_factory=AcoustIDConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """
        Load configuration from TOML file with environment variable overrides.

        Environment variables take precedence and follow the pattern:
        SONIC_<SECTION>_<KEY> (e.g., SONIC_PRIMARY_BASE_URL)

        All values are gathered into a single dictionary first, then validated
        by Pydantic to ensure consistent type checking and coercion.
        """
        config_dict: dict[str, object] = {}

        if config_path and config_path.exists():
            config_dict = tomllib.loads(config_path.read_text())

        config_dict = cls._merge_env_overrides(config_dict)
        return cls.model_validate(config_dict)

    @staticmethod
    def _section(config_dict: dict[str, object], name: str) -> dict[str, object]:
        section = config_dict.setdefault(name, {})
        if not isinstance(section, dict):
            section = {}
            config_dict[name] = section
        return section

    @classmethod
    def _merge_env_overrides(cls, config_dict: dict[str, object]) -> dict[str, object]:
        """
        Merge environment variable overrides into config dictionary.

        Returns a new dictionary with env vars applied, ready for Pydantic validation.
        """
        env_prefix = "SONIC_"

        primary = cls._section(config_dict, "primary")
        if base_url := os.getenv(f"{env_prefix}PRIMARY_BASE_URL"):
            primary["base_url"] = base_url
        if timeout := os.getenv(f"{env_prefix}PRIMARY_TIMEOUT_S"):
            primary["timeout_s"] = timeout

        acoustid = cls._section(config_dict, "acoustid")
        if api_key := os.getenv("ACOUSTID_API_KEY"):
            acoustid["api_key"] = api_key
        if api_key := os.getenv(f"{env_prefix}ACOUSTID_API_KEY"):
            acoustid["api_key"] = api_key
        if base_url := os.getenv(f"{env_prefix}ACOUSTID_BASE_URL"):
            acoustid["base_url"] = base_url
        if timeout := os.getenv(f"{env_prefix}ACOUSTID_TIMEOUT_S"):
            acoustid["timeout_s"] = timeout

        catalog = cls._section(config_dict, "catalog")
        if token := os.getenv("SPOTIFY_ACCESS_TOKEN"):
            catalog["client_credential"] = token
        if token := os.getenv(f"{env_prefix}CATALOG_CLIENT_CREDENTIAL"):
            catalog["client_credential"] = token
        if base_url := os.getenv(f"{env_prefix}CATALOG_BASE_URL"):
            catalog["base_url"] = base_url
        if timeout := os.getenv(f"{env_prefix}CATALOG_TIMEOUT_S"):
            catalog["timeout_s"] = timeout

        recognition = cls._section(config_dict, "recognition")
        if threshold := os.getenv(f"{env_prefix}RECOGNITION_ENRICHMENT_THRESHOLD"):
            recognition["enrichment_threshold"] = threshold
        if custom := os.getenv(f"{env_prefix}RECOGNITION_USE_CUSTOM_ALGORITHM"):
            recognition["use_custom_algorithm"] = _truthy(custom)

        logging_config = cls._section(config_dict, "logging")
        if log_level := os.getenv(f"{env_prefix}LOGGING_LEVEL"):
            logging_config["level"] = log_level
        if log_format := os.getenv(f"{env_prefix}LOGGING_FORMAT"):
            logging_config["format"] = log_format
        if log_hash_paths := os.getenv(f"{env_prefix}LOGGING_HASH_PATHS"):
            logging_config["hash_paths"] = _truthy(log_hash_paths)

        return config_dict


## Tests


def test_config_defaults():
    config = Config()
    assert config.primary.base_url == "http://localhost:8080"
    assert config.acoustid.api_key is None
    assert config.catalog.client_credential is None
    assert config.recognition.enrichment_threshold == 0.5
    assert config.recognition.use_custom_algorithm is False


def test_config_from_dict():
    config = Config.model_validate(
        {
            "primary": {"base_url": "http://matcher:9000"},
            "recognition": {"use_custom_algorithm": True},
        }
    )
    assert config.primary.base_url == "http://matcher:9000"
    assert config.recognition.use_custom_algorithm is True


def test_config_env_overrides(
    monkeypatch,  # pyright: ignore[reportMissingParameterType,reportUnknownParameterType]
):
    monkeypatch.setenv("SONIC_PRIMARY_BASE_URL", "http://env:8080")  # pyright: ignore[reportUnknownMemberType]
    monkeypatch.setenv("ACOUSTID_API_KEY", "envkey")  # pyright: ignore[reportUnknownMemberType]
    monkeypatch.setenv("SONIC_RECOGNITION_ENRICHMENT_THRESHOLD", "0.7")  # pyright: ignore[reportUnknownMemberType]

    config = Config.load()
    assert config.primary.base_url == "http://env:8080"
    assert config.acoustid.api_key == "envkey"
    assert config.recognition.enrichment_threshold == 0.7


def test_config_load_nonexistent_file():
    config = Config.load(Path("/nonexistent/config.toml"))
    assert config.primary.base_url == "http://localhost:8080"


def test_config_logging_format_env(
    monkeypatch,  # pyright: ignore[reportMissingParameterType,reportUnknownParameterType]
):
    assert Config().logging.format == "%(message)s"
    monkeypatch.setenv("SONIC_LOGGING_FORMAT", "%(name)s: %(message)s")  # pyright: ignore[reportUnknownMemberType]
    assert Config.load().logging.format == "%(name)s: %(message)s"
