"""Version extraction and semantic-version range checks."""

import logging
import re

import semantic_version

_logging = logging.getLogger(__name__)

# major[.minor[.patch]] not glued to other digits, e.g. "v18.17.1", "go1.22"
_COERCE_PATTERN = re.compile(
    r"(?<!\d)(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?!\d)"
)


def coerce(raw_output: str | None) -> str | None:
    """Extract the first version-looking substring from tool output.

    Missing minor/patch parts are filled with zero, so ``"Python 3.12"``
    becomes ``"3.12.0"``. Pre-release and build suffixes are dropped.

    Examples:
        >>> coerce("v18.17.1 (stable)")
        '18.17.1'
        >>> coerce("go version go1.22 linux/amd64")
        '1.22.0'
        >>> coerce("not a version") is None
        True
    """
    if not raw_output:
        return None

    match = _COERCE_PATTERN.search(raw_output)
    if not match:
        return None

    major, minor, patch = (int(part or 0) for part in match.groups())
    return f"{major}.{minor}.{patch}"


# operator followed by whitespace, e.g. ">= 1.2.3"
_OPERATOR_GAP = re.compile(r"(<=|>=|<|>|=|\^|~)\s+")


def normalize_range(required_range: str) -> str:
    """Close the gap after operators and collapse runs of whitespace.

    ``NpmSpec`` only accepts ``>=1.2.3`` while node-semver also takes
    ``>= 1.2.3``; hyphen ranges keep their single spaces.
    """
    collapsed = " ".join(required_range.split())
    return _OPERATOR_GAP.sub(r"\1", collapsed)


def parse_range(required_range: str) -> semantic_version.NpmSpec | None:
    """Parse an npm-style range (``^18.17.0``, ``~1.2``, ``>=1 <2 || 3.x``)."""
    try:
        return semantic_version.NpmSpec(normalize_range(required_range))
    except ValueError:
        _logging.debug(f"Invalid version range: {required_range!r}")
        return None


def satisfies(installed_version: str | None, required_range: str) -> bool:
    """Check an installed version against a semver range.

    Returns False for an unparseable version or range instead of raising,
    which is how callers want a broken declaration to behave: the tool is
    treated as out of range.
    """
    if not installed_version:
        return False

    allowed = parse_range(required_range)
    if allowed is None:
        return False

    try:
        version = semantic_version.Version(installed_version.strip().lstrip("vV="))
    except ValueError:
        _logging.debug(f"Invalid installed version: {installed_version!r}")
        return False

    return allowed.match(version)


__all__ = [
    "coerce",
    "normalize_range",
    "parse_range",
    "satisfies",
]
