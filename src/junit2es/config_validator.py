"""Configuration validation with detailed error messages and suggestions."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .config import (
    CONFIG_SUFFIXES,
    ENV_VARS,
    VALID_SERVER_MODES,
    UploaderConfig,
    index_name_problem,
    read_config_file,
)
from .env_expansion import expand_env_vars, find_hardcoded_secrets
from .exceptions import ConfigError


@dataclass
class ConfigValidationError:
    """A validation error with context and suggestions."""

    field: str
    error: str
    suggestion: str | None = None


@dataclass
class ValidationResult:
    """Result of configuration validation."""

    valid: bool
    errors: list[ConfigValidationError]
    warnings: list[ConfigValidationError]

    @property
    def has_errors(self) -> bool:
        """Check if there are any errors."""
        return len(self.errors) > 0

    @property
    def has_warnings(self) -> bool:
        """Check if there are any warnings."""
        return len(self.warnings) > 0


class ConfigValidator:
    """Validates YAML/TOML configuration files for junit2es."""

    def __init__(self) -> None:
        self.errors: list[ConfigValidationError] = []
        self.warnings: list[ConfigValidationError] = []

    def validate_file(self, config_path: str | Path) -> ValidationResult:
        """Validate a configuration file.

        Args:
            config_path: Path to the configuration file.

        Returns:
            ValidationResult with errors and warnings.
        """
        self.errors = []
        self.warnings = []

        path = Path(config_path)
        if not path.exists():
            self._error(
                "file",
                f"Configuration file not found: {path}",
                "Check the file path and ensure the file exists.",
            )
            return self._result()

        if path.suffix not in CONFIG_SUFFIXES:
            self._error(
                "file",
                f"Unsupported file extension: {path.suffix}",
                "Configuration files must use .yaml, .yml, or .toml extension.",
            )
            return self._result()

        try:
            raw_config = read_config_file(path)
        except ConfigError as e:
            self._error(
                "syntax",
                str(e),
                "Check the file syntax. Common issues: incorrect indentation, "
                "missing colons, unquoted special characters.",
            )
            return self._result()

        for message in find_hardcoded_secrets(raw_config):
            self.warnings.append(
                ConfigValidationError(
                    field="security",
                    error=message,
                    suggestion="Use api_key: ${ES_API_KEY} and export the key in the environment",
                )
            )

        self._validate_structure(raw_config)

        if not self.has_errors:
            self._validate_with_pydantic(raw_config)

        return self._result()

    def _validate_structure(self, config: dict[str, Any]) -> None:
        """Check sections and field values before model validation."""
        unknown = sorted(set(config) - {"elasticsearch", "run"})
        for key in unknown:
            self._error(
                key,
                f"Unknown top-level section: '{key}'",
                "Valid sections are 'elasticsearch' and 'run'.",
            )

        es = config.get("elasticsearch")
        if es is None:
            self.warnings.append(
                ConfigValidationError(
                    field="elasticsearch",
                    error="No elasticsearch section; settings must come from flags or ES_* vars",
                    suggestion="Add an 'elasticsearch' section with url, index and api_key.",
                )
            )
        elif not isinstance(es, dict):
            self._error(
                "elasticsearch",
                "elasticsearch must be a dictionary/object",
                "Use 'elasticsearch:' followed by indented fields like 'url:' and 'index:'",
            )
        else:
            self._validate_elasticsearch(es)

        run = config.get("run")
        if run is not None and not isinstance(run, dict):
            self._error(
                "run",
                "run must be a dictionary/object",
                "Use 'run:' followed by runner_name, run_id and extra",
            )

    def _validate_elasticsearch(self, es: dict[str, Any]) -> None:
        for field, env_var in ENV_VARS.items():
            if field not in es and not os.environ.get(env_var):
                self.warnings.append(
                    ConfigValidationError(
                        field=f"elasticsearch.{field}",
                        error=f"{field} is not set in the file and {env_var} is not exported",
                        suggestion=f"Add '{field}' or pass it on the command line",
                    )
                )

        url = es.get("url")
        if isinstance(url, str) and not _is_reference(url):
            if not url.startswith(("http://", "https://")):
                self._error(
                    "elasticsearch.url",
                    f"url must start with http:// or https://, got '{url}'",
                    "Use the full endpoint, e.g. https://elastic.example.com:9200",
                )

        index = es.get("index")
        if isinstance(index, str) and not _is_reference(index):
            problem = index_name_problem(index)
            if problem:
                self._error(
                    "elasticsearch.index",
                    problem,
                    "Use a lowercase name such as 'test-results'",
                )

        mode = es.get("server_mode")
        if isinstance(mode, str) and not _is_reference(mode) and mode not in VALID_SERVER_MODES:
            self._error(
                "elasticsearch.server_mode",
                f"Invalid server_mode: '{mode}'",
                f"Valid modes: {', '.join(VALID_SERVER_MODES)}",
            )

    def _validate_with_pydantic(self, config: dict[str, Any]) -> None:
        """Validate the expanded config against the models.

        Missing fields are skipped; they may still be supplied on the
        command line.
        """
        try:
            expanded = expand_env_vars(config)
        except ValueError as e:
            self.warnings.append(
                ConfigValidationError(
                    field="environment",
                    error=str(e),
                    suggestion="Export the variable before running junit2es",
                )
            )
            return

        try:
            UploaderConfig(**expanded)
        except ValidationError as e:
            for error in e.errors():
                if error.get("type") == "missing":
                    continue
                self._error(
                    ".".join(str(loc) for loc in error["loc"]),
                    error["msg"],
                    _pydantic_suggestion(error),
                )

    def _error(self, field: str, error: str, suggestion: str | None = None) -> None:
        self.errors.append(ConfigValidationError(field=field, error=error, suggestion=suggestion))

    def _result(self) -> ValidationResult:
        return ValidationResult(
            valid=not self.has_errors, errors=self.errors, warnings=self.warnings
        )

    @property
    def has_errors(self) -> bool:
        """Check if there are any validation errors."""
        return len(self.errors) > 0


def _is_reference(value: str) -> bool:
    return "${" in value


def _pydantic_suggestion(error: dict[str, Any]) -> str | None:
    error_type = error.get("type", "")
    field = error.get("loc", [])[-1] if error.get("loc") else ""

    suggestions = {
        "extra_forbidden": f"Remove the unknown field '{field}'",
        "string_type": f"'{field}' should be a text string, not a number or other type",
        "value_error": "Check the field value meets the validation requirements",
    }
    for pattern, suggestion in suggestions.items():
        if pattern in error_type:
            return suggestion
    return None


def validate_config(config_path: str | Path) -> ValidationResult:
    """Validate a configuration file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        ValidationResult with errors and warnings.
    """
    return ConfigValidator().validate_file(config_path)
