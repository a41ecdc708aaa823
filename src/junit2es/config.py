"""Configuration models and loading for junit2es.

Settings come from, highest precedence first: command-line flags, a YAML or
TOML config file, ``ES_*`` environment variables.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .env_expansion import expand_env_vars, find_hardcoded_secrets, load_dotenv_file
from .exceptions import ConfigError
from .mapper import TestRun

logger = logging.getLogger(__name__)

VALID_SERVER_MODES = ["stack", "serverless"]

CONFIG_SUFFIXES = [".yaml", ".yml", ".toml"]

# Environment fallbacks for the elasticsearch section
ENV_VARS = {
    "url": "ES_URL",
    "index": "ES_INDEX",
    "api_key": "ES_API_KEY",
    "server_mode": "ES_SERVER_MODE",
}

# Command-line flag for each required elasticsearch field
CLI_FLAGS = {
    "url": "--es-url",
    "index": "--es-index",
    "api_key": "--es-api-key",
    "server_mode": "--es-server-mode",
}

_INDEX_FORBIDDEN_CHARS = set('\\/*?"<>| ,#:')


def index_name_problem(name: str) -> str | None:
    """Describe why ``name`` is not a valid Elasticsearch index name.

    Returns:
        A message, or None if the name is valid.
    """
    if not name:
        return "index name must not be empty"
    if name != name.lower():
        return "index name must be lowercase"
    if name in (".", ".."):
        return "index name cannot be '.' or '..'"
    if name[0] in "-_+":
        return "index name cannot start with '-', '_' or '+'"
    bad = sorted(_INDEX_FORBIDDEN_CHARS.intersection(name))
    if bad:
        return f"index name contains forbidden characters: {' '.join(repr(c) for c in bad)}"
    if len(name.encode("utf-8")) > 255:
        return "index name is longer than 255 bytes"
    return None


class ElasticsearchConfig(BaseModel):
    """Connection settings for the Elasticsearch backend."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(description="Elasticsearch endpoint, e.g. https://elastic.example.com")
    index: str = Field(description="Target index name")
    api_key: str = Field(repr=False, description="Base64 encoded API key")
    server_mode: str = Field(description="Deployment flavour: 'stack' or 'serverless'")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"url must start with http:// or https://, got '{v}'")
        return v.rstrip("/")

    @field_validator("index")
    @classmethod
    def validate_index(cls, v: str) -> str:
        problem = index_name_problem(v)
        if problem:
            raise ValueError(problem)
        return v

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("api_key must not be empty")
        return v.strip()

    @field_validator("server_mode")
    @classmethod
    def validate_server_mode(cls, v: str) -> str:
        if v not in VALID_SERVER_MODES:
            raise ValueError(
                f"Invalid server_mode: {v}. Must be one of: {', '.join(VALID_SERVER_MODES)}"
            )
        return v


class RunMetadataConfig(BaseModel):
    """Run metadata attached to every uploaded document."""

    model_config = ConfigDict(extra="forbid")

    runner_name: str | None = Field(default=None, description="CI runner name")
    run_id: str | None = Field(default=None, description="CI run identifier")
    extra: str | dict[str, Any] | None = Field(
        default=None, description="Arbitrary extra value stored under 'extra'"
    )

    @field_validator("run_id", mode="before")
    @classmethod
    def coerce_run_id(cls, v: Any) -> Any:
        # Run ids are often numeric in YAML (run_id: 1234)
        if isinstance(v, int):
            return str(v)
        return v

    def to_test_run(self) -> TestRun:
        return TestRun(runner_name=self.runner_name, run_id=self.run_id, extra=self.extra)


class UploaderConfig(BaseModel):
    """Complete configuration for an upload."""

    model_config = ConfigDict(extra="forbid")

    elasticsearch: ElasticsearchConfig
    run: RunMetadataConfig = Field(default_factory=RunMetadataConfig)


def read_config_file(config_path: str | Path) -> dict[str, Any]:
    """Parse a YAML or TOML config file without validating it.

    Raises:
        ConfigError: If the file is missing, has an unsupported extension or
            cannot be parsed.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    content = path.read_text()
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            data = tomllib.loads(content)
        else:
            raise ConfigError(
                f"Unsupported config format: {path.suffix}. Use one of {', '.join(CONFIG_SUFFIXES)}"
            )
    except (yaml.YAMLError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return data


def load_raw_config(config_path: str | Path, warn_security: bool = True) -> dict[str, Any]:
    """Read a config file and expand environment variable references.

    Args:
        config_path: Path to the YAML or TOML file.
        warn_security: Log a warning for credentials written in clear text.

    Raises:
        ConfigError: If the file cannot be read or a referenced variable is unset.
    """
    raw = read_config_file(config_path)

    if warn_security:
        for warning in find_hardcoded_secrets(raw):
            logger.warning(warning)

    load_dotenv_file()
    try:
        return expand_env_vars(raw)
    except ValueError as e:
        raise ConfigError(str(e)) from e


def load_config(config_path: str | Path, warn_security: bool = True) -> UploaderConfig:
    """Load and validate a complete config file.

    Raises:
        ConfigError: If the file is invalid or incomplete.
    """
    return _validate(load_raw_config(config_path, warn_security=warn_security))


def build_config(
    config_path: str | Path | None = None,
    elasticsearch: dict[str, Any] | None = None,
    run: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> UploaderConfig:
    """Merge config file, environment and command-line values.

    Args:
        config_path: Optional YAML/TOML config file.
        elasticsearch: Command-line overrides for the elasticsearch section;
            None values are ignored.
        run: Command-line overrides for the run section; None values are ignored.
        environ: Environment to read ``ES_*`` fallbacks from (defaults to os.environ).

    Returns:
        Validated UploaderConfig.

    Raises:
        ConfigError: If required settings are missing or invalid.
    """
    environ = os.environ if environ is None else environ
    raw = load_raw_config(config_path) if config_path else {}

    es_section = dict(raw.get("elasticsearch") or {})
    for field, env_var in ENV_VARS.items():
        if es_section.get(field) is None and environ.get(env_var):
            es_section[field] = environ[env_var]
    es_section.update({k: v for k, v in (elasticsearch or {}).items() if v is not None})

    missing = [field for field in CLI_FLAGS if not es_section.get(field)]
    if missing:
        flags = " and ".join(CLI_FLAGS[field] for field in missing)
        raise ConfigError(
            f"Missing required Elasticsearch settings: {flags} "
            f"(or set them in the config file or via {', '.join(ENV_VARS[f] for f in missing)})"
        )

    run_section = dict(raw.get("run") or {})
    run_section.update({k: v for k, v in (run or {}).items() if v is not None})

    merged = dict(raw)
    merged["elasticsearch"] = es_section
    merged["run"] = run_section
    return _validate(merged)


def _validate(data: dict[str, Any]) -> UploaderConfig:
    try:
        return UploaderConfig(**data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e
