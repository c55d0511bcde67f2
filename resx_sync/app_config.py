"""Application configuration module for the resx synchronization tool."""
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from resx_sync.file_classifier import DEFAULT_EXCLUDED_FOLDERS, DEFAULT_RESOURCE_EXTENSION
from resx_sync.lokalise_client import DEFAULT_API_BASE_URL, DEFAULT_MAX_REQUESTS_PER_SECOND
from resx_sync.logging_config import setup_logger

DEFAULT_LOCALES = ['fr-CA', 'es-MX', 'de-DE', 'ja-JP', 'zh-Hans']
DEFAULT_CONFIG_FILE_NAME = 'resx_sync.yaml'


@dataclass
class AppConfig:
    """Application configuration dataclass."""
    # Run target
    root_path: str
    project_id: str
    api_token: str
    locales: List[str]
    source_locale: str

    # Processing settings
    timeout_minutes: float
    dry_run: bool
    verbose: bool

    # Remote settings
    api_base_url: str
    max_requests_per_second: float
    upload_timeout_seconds: float
    job_poll_interval_seconds: float
    upload_tags: List[str]

    # Discovery
    resource_extension: str
    excluded_folders: List[str]

    # Reporting
    failure_report_path: Optional[str] = None

    @property
    def export_timeout_seconds(self) -> float:
        return self.timeout_minutes * 60


def _compute_project_root() -> str:
    """The directory .env and the YAML config are looked up from."""
    return os.path.abspath(os.getcwd())


def _load_dotenv_files(project_root: str) -> None:
    """Load .env files from project root or docker directory."""
    dotenv_path_project_root = os.path.join(project_root, '.env')
    dotenv_path_docker_dir = os.path.join(project_root, 'docker', '.env')

    if os.path.exists(dotenv_path_project_root):
        load_dotenv(dotenv_path_project_root)
    elif os.path.exists(dotenv_path_docker_dir):
        load_dotenv(dotenv_path_docker_dir)


def _load_yaml_config(project_root: str) -> Dict[str, Any]:
    """Load the YAML configuration file, falling back to defaults on any problem."""
    default_config_path = os.path.join(project_root, DEFAULT_CONFIG_FILE_NAME)
    config_file = os.environ.get('RESX_SYNC_CONFIG_FILE', default_config_path)

    if not os.path.isabs(config_file):
        config_file = os.path.abspath(config_file)

    config = {}
    try:
        if not os.path.exists(config_file):
            print(f"Note: Configuration file '{config_file}' not found. Using defaults and command-line options.",
                  file=sys.stderr)
            return config

        if not os.access(config_file, os.R_OK):
            print(f"Error: Configuration file '{config_file}' exists but is not readable. Check file permissions.",
                  file=sys.stderr)
            return config

        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
            if loaded_config is None:
                print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
                      file=sys.stderr)
            elif isinstance(loaded_config, dict):
                config = loaded_config
                print(f"Successfully loaded configuration from: {config_file}", file=sys.stderr)
            else:
                print(f"Error: Configuration file '{config_file}' must contain a YAML dictionary. Using defaults.",
                      file=sys.stderr)

    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
    except OSError as e:
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        print("Using default configuration.", file=sys.stderr)

    return config


def _setup_logger_from_config(config: Dict[str, Any], verbose: bool) -> logging.Logger:
    """Set up logger based on configuration; verbose forces DEBUG."""
    log_config = config.get('logging', {}) or {}
    log_level_str = 'DEBUG' if verbose else log_config.get('log_level', 'INFO').upper()
    log_file_path = log_config.get('log_file_path', 'logs/resx_sync.log')
    log_to_console = log_config.get('log_to_console', True)
    return setup_logger(log_level_str, log_file_path, log_to_console)


def _log_dotenv_status(logger: logging.Logger, project_root: str) -> None:
    """Log the status of .env file loading."""
    dotenv_path_project_root = os.path.join(project_root, '.env')
    dotenv_path_docker_dir = os.path.join(project_root, 'docker', '.env')

    if os.path.exists(dotenv_path_project_root):
        logger.info("Loaded environment variables from: %s", dotenv_path_project_root)
    elif os.path.exists(dotenv_path_docker_dir):
        logger.info("Loaded environment variables from: %s", dotenv_path_docker_dir)
    else:
        logger.debug(
            "No .env file found in '%s' or '%s'. Relying on system environment variables if any.",
            dotenv_path_project_root,
            dotenv_path_docker_dir
        )


def parse_locale_list(value: Any) -> List[str]:
    """Accept a comma-separated string or a list and return trimmed, non-empty locales."""
    if value is None:
        return []
    items = value.split(',') if isinstance(value, str) else value
    locales: List[str] = []
    for item in items:
        locale = str(item).strip()
        if locale and locale not in locales:
            locales.append(locale)
    return locales


def _pick(overrides: Dict[str, Any], key: str, env_name: Optional[str], config: Dict[str, Any], default: Any) -> Any:
    """Resolve a setting: command-line override, then environment, then YAML, then default."""
    if overrides.get(key) is not None:
        return overrides[key]
    if env_name and os.environ.get(env_name):
        return os.environ[env_name]
    if config.get(key) is not None:
        return config[key]
    return default


def load_app_config(overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
    """
    Load application configuration from YAML, environment variables and CLI overrides.

    Args:
        overrides: Values from the command line. ``None`` entries are ignored.

    Returns:
        AppConfig: The loaded application configuration.
    """
    overrides = overrides or {}
    project_root = _compute_project_root()

    _load_dotenv_files(project_root)
    config = _load_yaml_config(project_root)

    verbose = bool(_pick(overrides, 'verbose', None, config, False))
    logger = _setup_logger_from_config(config, verbose)
    _log_dotenv_status(logger, project_root)

    project_id = _pick(overrides, 'project_id', 'LOKALISE_PROJECT_ID', config, None)
    if not project_id:
        logger.critical("CRITICAL: Lokalise project ID not provided.")
        logger.critical("Use --project-id, set LOKALISE_PROJECT_ID, or add 'project_id' to the config file.")
        sys.exit(1)

    api_token = _pick(overrides, 'api_token', 'LOKALISE_API_TOKEN', config, None)
    if not api_token:
        logger.critical("CRITICAL: Lokalise API token not provided.")
        logger.critical("Use --api-token or set the LOKALISE_API_TOKEN environment variable.")
        sys.exit(1)

    locales = parse_locale_list(_pick(overrides, 'locales', 'RESX_SYNC_LOCALES', config, DEFAULT_LOCALES))
    if not locales:
        logger.critical("CRITICAL: No target locales configured.")
        sys.exit(1)

    timeout_minutes = float(_pick(overrides, 'timeout_minutes', 'RESX_SYNC_TIMEOUT_MINUTES', config, 10))
    if timeout_minutes <= 0:
        logger.critical("CRITICAL: timeout_minutes must be positive, got %s.", timeout_minutes)
        sys.exit(1)

    root_path = os.path.abspath(_pick(overrides, 'root_path', None, config, project_root))

    return AppConfig(
        root_path=root_path,
        project_id=str(project_id),
        api_token=str(api_token),
        locales=locales,
        source_locale=config.get('source_locale', 'en'),
        timeout_minutes=timeout_minutes,
        dry_run=bool(_pick(overrides, 'dry_run', None, config, False)),
        verbose=verbose,
        api_base_url=config.get('api_base_url', DEFAULT_API_BASE_URL),
        max_requests_per_second=float(config.get('max_requests_per_second', DEFAULT_MAX_REQUESTS_PER_SECOND)),
        upload_timeout_seconds=float(config.get('upload_timeout_seconds', 300)),
        job_poll_interval_seconds=float(config.get('job_poll_interval_seconds', 2)),
        upload_tags=list(config.get('upload_tags', ['auto-upload'])),
        resource_extension=config.get('resource_extension', DEFAULT_RESOURCE_EXTENSION),
        excluded_folders=list(config.get('excluded_folders', DEFAULT_EXCLUDED_FOLDERS)),
        failure_report_path=config.get('failure_report_path'),
    )
