"""Error types and message formatting for devsetup.

Error Style Guide:
- User-facing errors use 'Error: ' prefix
- Field errors use structured format: '<entity> field '<field>' <issue>'
- Use present tense: 'must be', 'is required'
- Include actionable hints where helpful

Taxonomy:
- PreflightError aborts the whole run before anything destructive happens
- ProbeError is raised by read-only system checks; the auditor decides
  whether it is fatal
- CommandError and NoCommandAvailable are step-local; the executor turns
  them into failed step results and moves on
"""


class DevsetupError(Exception):
    """Base class for all devsetup errors."""


class ConfigError(DevsetupError):
    """Raised when a config or data file cannot be read or validated."""


class ProbeError(DevsetupError):
    """Raised when a read-only system check cannot produce an answer."""


class PreflightError(DevsetupError):
    """Raised when the environment cannot safely be audited.

    Carries an optional hint shown to the user next to the message.
    """

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


class CommandError(DevsetupError):
    """Raised when a command does not finish with exit code 0.

    ``reason`` is one of ``"exit_code"``, ``"timeout"`` or
    ``"spawn_failure"``. ``exit_code`` is only set for ``"exit_code"``.
    """

    EXIT_CODE = "exit_code"
    TIMEOUT = "timeout"
    SPAWN_FAILURE = "spawn_failure"

    def __init__(
        self,
        command: str,
        reason: str,
        exit_code: int | None = None,
        detail: str = "",
    ):
        self.command = command
        self.reason = reason
        self.exit_code = exit_code
        self.detail = detail
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.reason == self.TIMEOUT:
            message = f"Command timed out: {self.command}"
        elif self.reason == self.SPAWN_FAILURE:
            message = f"Command could not be started: {self.command}"
        else:
            message = f"Command failed with exit code {self.exit_code}: {self.command}"
        if self.detail:
            message = f"{message} ({self.detail})"
        return message


class NoCommandAvailable(DevsetupError):
    """Raised when no install/uninstall command resolves for a dependency."""

    def __init__(self, dependency_name: str, operation: str, platform_key: str | None):
        self.dependency_name = dependency_name
        self.operation = operation
        self.platform_key = platform_key
        where = platform_key or "this platform"
        super().__init__(
            f"No {operation} command configured for '{dependency_name}' on {where}"
        )


def format_error(message: str) -> str:
    """Format an error message with consistent prefix.

    Examples:
        >>> format_error("config file not found")
        'Error: config file not found'
    """
    return f"Error: {message}"


def format_field_error(entity: str, field: str, issue: str) -> str:
    """Format a field validation error with structured format.

    Examples:
        >>> format_field_error("Dependency 'node'", "cliName", "is required")
        "Dependency 'node' field 'cliName' is required"
    """
    return f"{entity} field '{field}' {issue}"


def format_suggestion(message: str, suggestion: str) -> str:
    """Format an error message with a helpful suggestion.

    Examples:
        >>> format_suggestion("winget not found", "install 'App Installer' from the Microsoft Store")
        "Error: winget not found. Hint: install 'App Installer' from the Microsoft Store"
    """
    return f"{format_error(message)}. Hint: {suggestion}"


__all__ = [
    "DevsetupError",
    "ConfigError",
    "ProbeError",
    "PreflightError",
    "CommandError",
    "NoCommandAvailable",
    "format_error",
    "format_field_error",
    "format_suggestion",
]
