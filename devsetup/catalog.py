"""Static package-name catalog.

Maps a dependency id to the package name each platform key knows it by.
The bundled table lives in ``data/packages.yaml``.

Caching Strategy:
- The default catalog is loaded once on first access and cached in a
  module-level variable
- Use clear_cache() to force a reload (tests, or DEVSETUP_CATALOG changes)
"""

import logging
from pathlib import Path

import yaml

from .errors import ConfigError

_logging = logging.getLogger(__name__)

PLATFORM_KEYS = frozenset({"win32", "darwin", "apt", "dnf", "pacman", "zypper"})

_catalog_cache: "PackageCatalog | None" = None


def get_packaged_catalog_path() -> Path:
    """Return path to the bundled package table."""
    return Path(__file__).parent / "data" / "packages.yaml"


class PackageCatalog:
    """Read-only lookup of package names by dependency id and platform key."""

    def __init__(self, entries: dict[str, dict[str, str | None]]):
        self._entries = {
            dep_id: dict(names) for dep_id, names in entries.items()
        }

    def lookup(self, dependency_id: str, platform_key: str | None) -> str | None:
        """Return the package name, or None when nothing is configured.

        An unknown dependency and a platform without a package both return
        None; callers cannot and should not tell them apart.
        """
        if not platform_key:
            return None
        names = self._entries.get(dependency_id)
        if not names:
            return None
        return names.get(platform_key) or None

    def ids(self) -> list[str]:
        return sorted(self._entries)

    def __contains__(self, dependency_id: object) -> bool:
        return dependency_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _validate_entries(data: object, source: Path) -> dict[str, dict[str, str | None]]:
    """Validate raw YAML data.

    Raises:
        ConfigError: If the shape or platform keys are wrong
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Catalog {source} must be a mapping, got {type(data).__name__}"
        )

    entries: dict[str, dict[str, str | None]] = {}
    for dep_id, names in data.items():
        if not isinstance(dep_id, str) or not dep_id.strip():
            raise ConfigError(f"Catalog {source} has an invalid dependency id: {dep_id!r}")
        if not isinstance(names, dict):
            raise ConfigError(
                f"Catalog entry '{dep_id}' must be a mapping of platform to package name"
            )
        for key, value in names.items():
            if key not in PLATFORM_KEYS:
                allowed = ", ".join(sorted(PLATFORM_KEYS))
                raise ConfigError(
                    f"Catalog entry '{dep_id}' has unknown platform '{key}'. "
                    f"Must be one of: {allowed}"
                )
            if value is not None and (not isinstance(value, str) or not value.strip()):
                raise ConfigError(
                    f"Catalog entry '{dep_id}' field '{key}' must be a non-empty string or null"
                )
        entries[dep_id] = names
    return entries


def load_catalog(path: Path | None = None) -> PackageCatalog:
    """Load a catalog from YAML.

    Without a path the bundled table is returned, cached after the first
    call.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    global _catalog_cache

    if path is None and _catalog_cache is not None:
        return _catalog_cache

    source = path or get_packaged_catalog_path()
    try:
        with open(source, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Catalog file not found: {source}")
    except OSError as e:
        raise ConfigError(f"Error reading catalog file {source}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Catalog file {source} is not valid YAML: {e}") from e

    catalog = PackageCatalog(_validate_entries(data, source))
    _logging.debug(f"Loaded {len(catalog)} catalog entries from {source}")

    if path is None:
        _catalog_cache = catalog
    return catalog


def clear_cache() -> None:
    """Drop the cached default catalog."""
    global _catalog_cache
    _catalog_cache = None


__all__ = [
    "PLATFORM_KEYS",
    "PackageCatalog",
    "get_packaged_catalog_path",
    "load_catalog",
    "clear_cache",
]
