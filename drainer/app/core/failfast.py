"""Fail-fast handling for unexpected errors raised inside background tasks.

Polling loops and flush tasks run detached from the caller; a programming error
there would otherwise die silently with the task. Transport and storage errors are
recoverable and never reach this module.
"""
from __future__ import annotations

from typing import NoReturn

from loguru import logger

from drainer.app.core import SERVICE_NAME

EXIT_CODE_FATAL = 1


def fail_fast(exc: BaseException, *, where: str, exit_on_errors: bool = True) -> NoReturn:
    """Log exc and terminate the process, or re-raise it when exit_on_errors is off (tests)."""
    logger.opt(exception=exc).bind(service_name=SERVICE_NAME, event="fatal_error", where=where).critical(
        "unexpected error in {}: {}", where, exc
    )
    if exit_on_errors:
        raise SystemExit(EXIT_CODE_FATAL) from exc
    raise exc
