"""Flush identifier generation from a strftime pattern.

The literal token ``PID`` in the pattern is replaced by the current process id once,
at construction. The remaining pattern is expanded with ``strftime`` against the
local time when a name is requested, so uniqueness only goes as far as the
pattern's time granularity.
"""
from __future__ import annotations

import os
from datetime import datetime
from typing import Callable

DEFAULT_FILENAME_PATTERN = "%Y%m%d%H%M%S-PID.log"
PID_TOKEN = "PID"


class FilenameGenerator:
    def __init__(
        self,
        pattern: str = DEFAULT_FILENAME_PATTERN,
        *,
        clock: Callable[[], datetime] | None = None,
        pid: int | None = None,
    ) -> None:
        if not pattern:
            raise ValueError("filename pattern must not be empty")
        self._pattern = pattern.replace(PID_TOKEN, str(pid if pid is not None else os.getpid()))
        self._clock = clock or datetime.now

    @property
    def pattern(self) -> str:
        return self._pattern

    def next_name(self) -> str:
        return self._clock().strftime(self._pattern)
