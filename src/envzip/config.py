"""Connection and project settings for the sync CLI and MCP server.

Reads settings from CLI args, environment variables, .env files, the
``envzip.config`` key=value file and YAML config fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > envzip.config > YAML config > Built-in defaults

Environment variables:
    ENVZIP_API_KEY: API key for the remote store (required)
    ENVZIP_PROJECT_KEY: Project identifier (required)
    ENVZIP_LOCAL_ENV_PATH: Path to the local .env file (required)
    ENVZIP_STAGE: development, staging or production (required)
    ENVZIP_ENDPOINT: Remote endpoint URL (optional)
    ENVZIP_AUTHOR: Identity recorded on changes (optional, default: OS user)
    ENVZIP_INSECURE: Skip SSL verification (optional, default: false)
"""

import getpass
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from . import codec
from .errors import ConfigError
from .models import Session, Stage

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "envzip.config"
DEFAULT_ENDPOINT = "https://api.envzip.dev/v1"
REQUIRED_FIELDS = ("api_key", "project_key", "local_env_path", "stage")

# Older config files used these names
_FILE_ALIASES = {
    "envzip_key": "api_key",
    "projectkey": "project_key",
    "appwrite_endpoint": "remote_endpoint",
}


@dataclass
class Config:
    api_key: str
    project_key: str
    local_env_path: str
    stage: str
    remote_endpoint: str = DEFAULT_ENDPOINT
    author: str = ""
    insecure: bool = False
    debug: bool = False

    def session(self) -> Session:
        """Build the caller context for core operations."""
        return Session(
            author=self.author,
            project_id=self.project_key,
            stage=Stage(self.stage),
        )


def read_config_file(path: Path) -> dict[str, str]:
    """Read an ``envzip.config`` file into a dict of canonical field names.

    Returns an empty dict when the file does not exist.
    """
    if not path.exists():
        return {}
    raw = codec.parse(path.read_text(encoding="utf-8"))
    return {_FILE_ALIASES.get(k, k): v for k, v in raw.items()}


def write_config_file(path: Path, values: dict[str, str]) -> None:
    """Write *values* as ``key=value`` lines, keeping any existing comments."""
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    content = codec.serialize(existing, values)
    path.write_text(content + "\n", encoding="utf-8")


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ConfigError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ConfigError: If a required field is empty, the stage is unknown
            or the endpoint URL is malformed.
    """
    for field_name in REQUIRED_FIELDS:
        if not str(getattr(config, field_name)).strip():
            raise ConfigError(
                f"Missing required field '{field_name}'. "
                f"Run 'envzip init' or set it in {CONFIG_FILENAME}."
            )

    valid_stages = [s.value for s in Stage]
    if config.stage not in valid_stages:
        raise ConfigError(
            f"Invalid stage '{config.stage}': must be one of {valid_stages}"
        )

    config.remote_endpoint = config.remote_endpoint.strip()
    if not config.remote_endpoint.startswith(("http://", "https://")):
        raise ConfigError(
            f"Invalid endpoint '{config.remote_endpoint}': must start with http:// or https://"
        )
    if not urlparse(config.remote_endpoint).hostname:
        raise ConfigError(
            f"Invalid endpoint '{config.remote_endpoint}': URL must include a hostname"
        )
    config.remote_endpoint = config.remote_endpoint.removesuffix("/")

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    api_key: str | None = None,
    project_key: str | None = None,
    local_env_path: str | None = None,
    stage: str | None = None,
    remote_endpoint: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    config_file: Path | None = None,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > envzip.config > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        api_key: Override API key.
        project_key: Override project key.
        local_env_path: Override local .env path.
        stage: Override stage.
        remote_endpoint: Override remote endpoint.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        config_file: Path of the key=value config file.  Defaults to
            ``envzip.config`` in the current directory.
        yaml_fallbacks: Dict of values from the YAML ``remote`` section.

    Returns:
        Validated Config instance.

    Raises:
        ConfigError: If a required field is missing after checking all
            sources, or a value is invalid.
    """
    fb = yaml_fallbacks or {}
    file_values = read_config_file(config_file or Path.cwd() / CONFIG_FILENAME)

    def pick(cli: str | None, env_key: str, name: str) -> str:
        value = cli or os.getenv(env_key) or file_values.get(name) or fb.get(name)
        return value.strip() if value else ""

    final_api_key = pick(api_key, "ENVZIP_API_KEY", "api_key")
    final_project = pick(project_key, "ENVZIP_PROJECT_KEY", "project_key")
    final_path = pick(local_env_path, "ENVZIP_LOCAL_ENV_PATH", "local_env_path")
    final_stage = pick(stage, "ENVZIP_STAGE", "stage")
    final_endpoint = (
        pick(remote_endpoint, "ENVZIP_ENDPOINT", "remote_endpoint")
        or DEFAULT_ENDPOINT
    )
    final_author = pick(None, "ENVZIP_AUTHOR", "author") or getpass.getuser()

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("ENVZIP_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    config = Config(
        api_key=final_api_key,
        project_key=final_project,
        local_env_path=final_path,
        stage=final_stage,
        remote_endpoint=final_endpoint,
        author=final_author,
        insecure=final_insecure,
        debug=debug or bool(_get_bool_env("ENVZIP_DEBUG")),
    )

    validate_config(config)

    return config
