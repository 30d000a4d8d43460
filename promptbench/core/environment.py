"""Runtime environment probe.

Decides once per process whether generation calls go straight to providers
(desktop / local-first shell) or through the same-origin proxy API (web).

Probe order:
    1. `PROMPTBENCH_RUNTIME` set to `desktop` or `web` wins.
    2. Any `TAURI_ENV_*` variable marks the desktop shell.
    3. Otherwise `web`.

Side effects:
    The first result is cached for the process lifetime; the environment cannot
    change within a session. Tests call `detect_environment.cache_clear()`.
"""

import logging
import os
from enum import Enum
from functools import lru_cache


logger = logging.getLogger(__name__)

DESKTOP_MARKER_PREFIX = "TAURI_ENV_"


class RuntimeEnvironment(str, Enum):
    DESKTOP = "desktop"
    WEB = "web"


@lru_cache(maxsize=1)
def detect_environment() -> RuntimeEnvironment:
    """Classify the current process as desktop or web."""
    explicit = os.getenv("PROMPTBENCH_RUNTIME", "").strip().lower()
    if explicit in (RuntimeEnvironment.DESKTOP.value, RuntimeEnvironment.WEB.value):
        environment = RuntimeEnvironment(explicit)
    elif any(name.startswith(DESKTOP_MARKER_PREFIX) for name in os.environ):
        environment = RuntimeEnvironment.DESKTOP
    else:
        environment = RuntimeEnvironment.WEB

    logger.info("Runtime environment resolved: %s", environment.value)
    return environment


def is_desktop() -> bool:
    return detect_environment() == RuntimeEnvironment.DESKTOP
