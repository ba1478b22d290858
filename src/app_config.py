"""Application configuration module for the diagram localizer."""
import logging
import os
import sys
from dataclasses import dataclass
from typing import Dict, Any, Optional

import yaml
from dotenv import load_dotenv

from src.errors import SetupError
from src.logging_config import setup_logger


@dataclass
class AppConfig:
    """Application configuration dataclass."""
    # Core paths
    source_dir: str
    dest_dir: str
    translations_dir: str

    # Source and output formats
    source_extension: str
    output_format: str

    # Renderer configuration
    renderer_path: str
    renderer_config_file: Optional[str]
    puppeteer_config_file: Optional[str]
    renderer_theme: str
    renderer_background: str
    renderer_timeout: Optional[float]

    # Report files
    missing_keys_file: str
    duplicate_keys_file: str
    deleted_keys_file: str

    # Processing settings
    strict_duplicates: bool
    show_progress: bool


def _load_dotenv_file(base_dir: str) -> Optional[str]:
    """Load a .env file from the working directory if there is one."""
    dotenv_path = os.path.join(base_dir, '.env')
    if os.path.exists(dotenv_path):
        load_dotenv(dotenv_path)
        return dotenv_path
    return None


def _load_yaml_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Read the YAML settings as a dict.

    The file is `config_file`, else `$DIAGRAM_LOCALIZER_CONFIG_FILE`, else
    `./config.yaml`. Any problem with it is reported on stderr (logging is not
    configured yet) and an empty dict is returned.
    """
    if not config_file:
        config_file = os.environ.get('DIAGRAM_LOCALIZER_CONFIG_FILE', 'config.yaml')

    if not os.path.isabs(config_file):
        config_file = os.path.abspath(config_file)

    config = {}
    problem = None
    try:
        if not os.path.exists(config_file):
            problem = "not found"
        else:
            with open(config_file, 'r', encoding='utf-8') as stream:
                loaded = yaml.safe_load(stream)
            if loaded is None:
                problem = "is empty"
            elif not isinstance(loaded, dict):
                problem = "is not a YAML mapping"
            else:
                config = loaded
    except yaml.YAMLError as e:
        problem = f"is not valid YAML ({e})"
    except OSError as e:
        problem = f"could not be read ({e})"

    if problem:
        print(f"Warning: config file '{config_file}' {problem}; using defaults.", file=sys.stderr)
    return config


def _setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up logger based on configuration."""
    log_config = config.get('logging') or {}
    log_level_str = os.environ.get('LOG_LEVEL', log_config.get('log_level', 'INFO')).upper()
    log_file_path = log_config.get('log_file_path', 'logs/diagram_localizer.log')
    log_to_console = log_config.get('log_to_console', True)
    return setup_logger(log_level_str, log_file_path, log_to_console)


def _parse_timeout(value: Any) -> Optional[float]:
    """
    A positive number of seconds; zero or a negative value disables the timeout.

    Raises:
        SetupError: If `value` is not a number.
    """
    if value is None:
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError) as e:
        raise SetupError(f"Invalid renderer timeout '{value}': expected a number of seconds") from e
    return timeout if timeout > 0 else None


def load_app_config(config_file: Optional[str] = None, configure_logging: bool = True) -> AppConfig:
    """
    Load application configuration from YAML file and environment variables.

    Args:
        config_file: Explicit path of the YAML file (e.g. from --config).
        configure_logging: Set up the package logger from the `logging` section.

    Returns:
        AppConfig: The loaded application configuration.

    Raises:
        SetupError: If a setting has an unusable value.
    """
    dotenv_path = _load_dotenv_file(os.getcwd())

    config = _load_yaml_config(config_file)

    if configure_logging:
        logger = _setup_logger_from_config(config)
    else:
        logger = logging.getLogger("diagram_localizer")

    if dotenv_path:
        logger.info("Loaded environment variables from: %s", dotenv_path)

    renderer = config.get('renderer') or {}
    reports = config.get('reports') or {}

    renderer_path = os.environ.get('MMDC_PATH', renderer.get('executable', './node_modules/.bin/mmdc'))
    renderer_timeout = _parse_timeout(
        os.environ.get('RENDER_TIMEOUT_SECONDS', renderer.get('timeout_seconds', 120))
    )

    source_extension = config.get('source_extension', '.mmd')
    if not source_extension.startswith('.'):
        source_extension = f".{source_extension}"

    return AppConfig(
        source_dir=config.get('source_dir', './Documents/Edition-files'),
        dest_dir=config.get('dest_dir', './Documents/Graph'),
        translations_dir=config.get('translations_dir', './Translations/Mermaid'),
        source_extension=source_extension,
        output_format=config.get('output_format', 'svg'),
        renderer_path=renderer_path,
        renderer_config_file=renderer.get('config_file', './mermaid-config.json'),
        puppeteer_config_file=renderer.get('puppeteer_config_file'),
        renderer_theme=renderer.get('theme', 'dark'),
        renderer_background=renderer.get('background', 'transparent'),
        renderer_timeout=renderer_timeout,
        missing_keys_file=reports.get('missing_keys_file', './Translations/addedKey.json'),
        duplicate_keys_file=reports.get('duplicate_keys_file', './Translations/duplicateKey.json'),
        deleted_keys_file=reports.get('deleted_keys_file', './Translations/deletedKey.json'),
        strict_duplicates=bool(config.get('strict_duplicates', False)),
        show_progress=bool(config.get('show_progress', True)),
    )
