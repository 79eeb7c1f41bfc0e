"""Config file discovery for devsetup."""

import os
from pathlib import Path

CONFIG_FILENAME = ".devsetup.json"
CONFIG_ENV_VAR = "DEVSETUP_CONFIG"


def find_config_file(project_dirs: list[Path] | None = None) -> Path | None:
    """Return the dependency file to use, or None if there is none.

    Priority:
    1. DEVSETUP_CONFIG environment variable (if set), returned even if the
       file does not exist so the caller can report it
    2. The first ``.devsetup.json`` found in ``project_dirs``, in order
       (default: the current directory)
    """
    if os.environ.get(CONFIG_ENV_VAR):
        return Path(os.environ[CONFIG_ENV_VAR]).expanduser()

    for directory in project_dirs or [Path.cwd()]:
        candidate = Path(directory) / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None
