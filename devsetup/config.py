"""Loading of ``.devsetup.json`` and runtime settings.

File shape::

    {
      "dependencies": [
        {
          "id": "node",
          "name": "Node.js",
          "requiredVersion": "^18.17.0",
          "cliName": "node",
          "versionFlag": "-v"
        }
      ]
    }
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError, format_field_error
from .execution import INSTALL_TIMEOUT
from .json_parser import preprocess_jsonish
from .models import DependencyRequirement
from .probe import OS_RELEASE_PATH
from .versions import parse_range

_logging = logging.getLogger(__name__)

SILENT_TIMEOUT_ENV_VAR = "DEVSETUP_SILENT_TIMEOUT"
CATALOG_ENV_VAR = "DEVSETUP_CATALOG"

_REQUIRED_FIELDS = {
    "id": "id",
    "name": "name",
    "requiredVersion": "required_version",
    "cliName": "cli_name",
}


@dataclass
class Settings:
    """Runtime knobs, overridable through the environment."""

    silent_timeout: float = INSTALL_TIMEOUT
    os_release_path: Path = OS_RELEASE_PATH
    catalog_path: Path | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls()
        raw_timeout = os.environ.get(SILENT_TIMEOUT_ENV_VAR)
        if raw_timeout:
            try:
                settings.silent_timeout = float(raw_timeout)
            except ValueError:
                raise ConfigError(
                    f"{SILENT_TIMEOUT_ENV_VAR} must be a number of seconds, got {raw_timeout!r}"
                )
            if settings.silent_timeout <= 0:
                raise ConfigError(f"{SILENT_TIMEOUT_ENV_VAR} must be positive")
        if os.environ.get(CATALOG_ENV_VAR):
            settings.catalog_path = Path(os.environ[CATALOG_ENV_VAR]).expanduser()
        return settings


def _format_syntax_error(original_text: str, error: json.JSONDecodeError) -> str:
    """Format a JSON syntax error with the offending line and a caret."""
    lines = original_text.split("\n")
    parts = [f"Config syntax error at line {error.lineno}, col {error.colno}: {error.msg}"]
    if 1 <= error.lineno <= len(lines):
        parts.append(lines[error.lineno - 1])
        parts.append(" " * (error.colno - 1) + "^")
    return "\n".join(parts)


def load_jsonish(path_or_text: Path | str) -> dict:
    """Parse a JSON-ish file or string into a dict.

    Raises:
        ConfigError: If the file cannot be read, has syntax errors or is
            not a JSON object
    """
    if isinstance(path_or_text, Path):
        try:
            original_text = path_or_text.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path_or_text}")
        except PermissionError:
            raise ConfigError(f"Permission denied reading config file: {path_or_text}")
        except UnicodeDecodeError:
            raise ConfigError(f"Config file is not valid UTF-8: {path_or_text}")
        except OSError as e:
            raise ConfigError(f"Error reading config file {path_or_text}: {e}")
    else:
        original_text = path_or_text

    try:
        result = json.loads(preprocess_jsonish(original_text))
    except json.JSONDecodeError as e:
        raise ConfigError(_format_syntax_error(original_text, e)) from e

    if not isinstance(result, dict):
        raise ConfigError(f"Config must be a JSON object, got {type(result).__name__}")
    return result


def _parse_requirement(data: object, index: int) -> DependencyRequirement:
    if not isinstance(data, dict):
        raise ConfigError(
            f"dependencies[{index}] must be an object, got {type(data).__name__}"
        )

    label = data.get("id") if isinstance(data.get("id"), str) else None
    entity = f"Dependency '{label}'" if label else f"dependencies[{index}]"

    values: dict[str, str] = {}
    for json_name, attr in _REQUIRED_FIELDS.items():
        value = data.get(json_name)
        if value is None:
            raise ConfigError(format_field_error(entity, json_name, "is required"))
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(
                format_field_error(entity, json_name, "must be a non-empty string")
            )
        values[attr] = value.strip()

    version_flag = data.get("versionFlag", "--version")
    if not isinstance(version_flag, str):
        raise ConfigError(format_field_error(entity, "versionFlag", "must be a string"))

    if any(ch.isspace() for ch in values["cli_name"]):
        raise ConfigError(
            format_field_error(entity, "cliName", "must be a single executable name")
        )
    if parse_range(values["required_version"]) is None:
        raise ConfigError(
            format_field_error(
                entity,
                "requiredVersion",
                f"is not a valid semver range: {values['required_version']!r}",
            )
        )

    return DependencyRequirement(version_flag=version_flag.strip(), **values)


def parse_requirements(data: dict) -> list[DependencyRequirement]:
    """Validate the ``dependencies`` list of a parsed config.

    A missing list means nothing is declared.

    Raises:
        ConfigError: With a field path for the first invalid entry
    """
    raw = data.get("dependencies")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"dependencies must be a list, got {type(raw).__name__}")

    requirements = []
    seen: set[str] = set()
    for i, item in enumerate(raw):
        requirement = _parse_requirement(item, i)
        if requirement.id in seen:
            raise ConfigError(f"dependencies[{i}]: duplicate id '{requirement.id}'")
        seen.add(requirement.id)
        requirements.append(requirement)
    return requirements


def load_requirements(path: Path | None) -> list[DependencyRequirement]:
    """Load declared dependencies; no file means nothing to audit."""
    if path is None:
        _logging.info("No .devsetup.json found; nothing to audit.")
        return []
    _logging.info(f"Found config file at: {path}")
    return parse_requirements(load_jsonish(path))


__all__ = [
    "Settings",
    "load_jsonish",
    "parse_requirements",
    "load_requirements",
]
