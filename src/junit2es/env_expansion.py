"""Environment variable expansion for configuration files."""

import os
import re
from pathlib import Path
from typing import Any

# ${VAR} or ${VAR:-default}
_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")

_SECRET_KEYS = ("api_key", "apikey", "api-key", "password", "token", "secret")


def load_dotenv_file(dotenv_path: Path | None = None) -> None:
    """Load KEY=VALUE lines from a .env file into the environment.

    Variables that are already set are left untouched.

    Args:
        dotenv_path: Path to .env file. Defaults to ``.env`` in the current directory.
    """
    dotenv_path = dotenv_path or Path(".env")
    if not dotenv_path.is_file():
        return

    for raw_line in dotenv_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export ") :]

        key, value = (part.strip() for part in line.split("=", 1))
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        os.environ.setdefault(key, value)


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ``${VAR}`` references in config values.

    ``${VAR:-default}`` falls back to ``default`` when VAR is unset.

    Raises:
        ValueError: If a referenced variable is unset and has no default.
    """
    if isinstance(value, str):
        return _VAR_PATTERN.sub(_substitute, value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _substitute(match: re.Match) -> str:
    name, default = match.group(1), match.group(2)
    env_value = os.environ.get(name)
    if env_value is not None:
        return env_value
    if default is not None:
        return default
    raise ValueError(
        f"Environment variable '{name}' is not set. "
        f"Set it or provide a default with ${{{name}:-default}}."
    )


def find_hardcoded_secrets(config: dict[str, Any]) -> list[str]:
    """List config paths that look like literal credentials.

    Values written as ``${VAR}`` references are not reported.

    Args:
        config: Raw (unexpanded) configuration dictionary.

    Returns:
        Warning messages, one per suspicious value.
    """
    warnings: list[str] = []
    pending: list[tuple[Any, str]] = [(config, "")]

    while pending:
        node, path = pending.pop()
        if not isinstance(node, dict):
            continue
        for key, value in node.items():
            key_path = f"{path}.{key}" if path else str(key)
            if isinstance(value, dict):
                pending.append((value, key_path))
                continue
            if not isinstance(value, str) or not value or "${" in value:
                continue
            if any(marker in str(key).lower() for marker in _SECRET_KEYS):
                warnings.append(
                    f"Credential appears to be hardcoded at '{key_path}'. "
                    f"Consider referencing an environment variable, e.g. ${{ES_API_KEY}}."
                )

    return sorted(warnings)
