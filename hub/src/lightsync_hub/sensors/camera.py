"""Camera-in-use probes.

Each probe is a blocking, argument-free callable returning True while any
process holds the camera open. The monitor runs them in an executor.
"""

from __future__ import annotations

import logging
import os
import pathlib
import sys
from typing import Callable

logger = logging.getLogger(__name__)

_VIDEO_PREFIX = "/dev/video"


def linux_camera_in_use(proc_root: pathlib.Path = pathlib.Path("/proc")) -> bool:
    """True when some process has a ``/dev/video*`` node open.

    Processes we are not allowed to inspect are skipped.
    """
    for fd_dir in proc_root.glob("[0-9]*/fd"):
        try:
            entries = list(fd_dir.iterdir())
        except OSError:
            continue
        for entry in entries:
            try:
                target = os.readlink(entry)
            except OSError:
                continue
            if target.startswith(_VIDEO_PREFIX):
                return True
    return False


def null_probe() -> bool:
    """Probe for platforms without camera detection; always reports off."""
    return False


def default_probe() -> Callable[[], bool]:
    if sys.platform.startswith("linux"):
        return linux_camera_in_use
    logger.warning("No camera probe for platform %s; camera triggers will not fire", sys.platform)
    return null_probe
