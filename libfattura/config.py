import json
import logging
import logging.config
import os
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

import envtoml
from dotenv import load_dotenv

from .extractor import DEFAULT_TOLERANCE
from .theme import DisplayConfig

DEFAULT_LOGGING_CONFIG_FILE = Path(__file__).parent / "logging.json"


@dataclass(frozen=True)
class ServerConfig:
    """Listening address of the conversion service."""

    host: str = "0.0.0.0"
    port: int = 3000


@dataclass(frozen=True)
class ExtractionConfig:
    """Extraction policy."""

    tolerance: Decimal = DEFAULT_TOLERANCE


@dataclass(frozen=True)
class AppConfig:
    """Root container for all configuration sections."""

    display: DisplayConfig = field(default_factory=DisplayConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    # Non-TOML configuration state
    config_file: Path | None = field(default=None, repr=False)


def _get_path_from_env(env_var: str, check_exists: bool = True) -> Path | None:
    """Get a path from an environment variable and validate it, None when unset."""
    path_str = os.getenv(env_var)
    if not path_str:
        return None
    path = Path(path_str)
    if check_exists and not path.exists():
        raise FileNotFoundError(f"Path from '{env_var}' does not exist: {path}")
    return path


def build_config(toml_config: dict[str, Any], config_file: Path | None = None) -> AppConfig:
    """Build the dataclasses from an already loaded TOML mapping."""
    server = toml_config.get("server", {})
    extraction = toml_config.get("extraction", {})

    return AppConfig(
        display=DisplayConfig.from_mapping(toml_config.get("display")),
        server=ServerConfig(host=str(server.get("host", "0.0.0.0")), port=int(server.get("port", 3000))),
        extraction=ExtractionConfig(tolerance=Decimal(str(extraction.get("tolerance", DEFAULT_TOLERANCE)))),
        config_file=config_file,
    )


@lru_cache(maxsize=1)
def get_config(
    env: str = "localhost",
    config_file: str | Path | None = None,
    secrets_path: str | Path | None = None,
) -> AppConfig:
    """
    Load configuration from files and environment, returning a frozen AppConfig instance.

    Loading precedence:
    1. Arguments passed to this function.
    2. Environment variables (LIBFATTURA_CONFIG_FILE, LIBFATTURA_SECRETS_PATH).
    3. Built-in defaults when no configuration file is found.

    The result is cached, so subsequent calls with the same arguments will not reload files.

    Args:
        env: The environment name (e.g., 'localhost', 'production'), selects `.env.{env}`.
        config_file: Path to the main TOML config file. Overrides LIBFATTURA_CONFIG_FILE env var.
        secrets_path: Path to the directory containing .env files. Overrides LIBFATTURA_SECRETS_PATH.

    Returns:
        An immutable, nested AppConfig object.
    """
    # 1. Load the .env file, if any, so that envtoml can expand ${ENV_VAR} placeholders
    secrets_dir_path = Path(secrets_path) if secrets_path else _get_path_from_env("LIBFATTURA_SECRETS_PATH")
    if secrets_dir_path is not None:
        env_file_path = secrets_dir_path / f".env.{env}"
        if not env_file_path.exists():
            raise FileNotFoundError(f"Environment file for env '{env}' not found at: {env_file_path}")
        load_dotenv(env_file_path)

    # 2. Load the TOML configuration, falling back to defaults
    config_file_path = Path(config_file) if config_file else _get_path_from_env("LIBFATTURA_CONFIG_FILE")
    if config_file_path is None:
        return AppConfig()

    with open(config_file_path) as f:
        toml_config = envtoml.load(f)

    return build_config(toml_config, config_file=config_file_path)


def setup_logging(verbose: bool = False) -> None:
    """
    Setup logging for the CLI application.

    This should be called from the CLI entrypoint. It is not part of the
    core configuration loading to keep the library decoupled from logging setup.
    The dictConfig JSON file is taken from LIBFATTURA_LOGGING_CONFIG_FILE, or
    the bundled default.
    """
    logging_config_file = _get_path_from_env("LIBFATTURA_LOGGING_CONFIG_FILE") or DEFAULT_LOGGING_CONFIG_FILE
    with open(logging_config_file) as f:
        logging_config: dict[str, Any] = json.load(f)

    if verbose:
        # For CLI, make console more verbose
        if "console" in logging_config.get("handlers", {}):
            logging_config["handlers"]["console"]["level"] = "DEBUG"
        _setup_library_logging()

    logging.config.dictConfig(logging_config)


def _setup_library_logging() -> None:
    """Enable verbose logging for the PDF and HTTP libraries."""
    logging.getLogger("fpdf").setLevel(logging.DEBUG)
    logging.getLogger("werkzeug").setLevel(logging.DEBUG)
