"""Console output formatting utilities for driftci."""

from __future__ import annotations

import sys
import threading
from typing import Mapping, Optional, Sequence


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug
        # jobs run on worker threads; keep multi-line blocks together
        self._lock = threading.Lock()

    def _emit(self, *lines: str, err: bool = False) -> None:
        stream = sys.stderr if err else sys.stdout
        with self._lock:
            for line in lines:
                print(line, file=stream)

    def print_run_started(
        self,
        repository: str,
        pipeline: str,
        event: str,
        ref: str,
        job_count: int,
    ) -> None:
        """Print run start information."""
        self._emit(
            "\nRUN STARTED",
            f"Repository: {repository}",
            f"Pipeline: {pipeline}",
            f"Event: {event} {ref}",
            f"Jobs: {job_count}",
            "",
        )

    def print_plan_job(self, name: str, reason: str) -> None:
        self._emit(f"  ✓ {name} ({reason})")

    def print_plan_job_skipped(self, name: str, reason: str) -> None:
        self._emit(f"  ⏭ {name} (skipped: {reason})")

    def print_job_start(self, name: str) -> None:
        self._emit(f"[{name}] JOB STARTED")

    def print_step(self, job: str, name: str) -> None:
        self._emit(f"[{job}] ▶ {name}")

    def print_job_done(self, name: str, status: str, duration: float) -> None:
        self._emit(f"[{name}] {status.upper()} ({duration:.1f}s)")

    def print_failure(
        self,
        job: str,
        step: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        output: Optional[str] = None,
    ) -> None:
        """Print a step failure; captured output only in debug mode."""
        lines = [f"[{job}] STEP FAILED: {step}"]
        if exit_code is not None:
            lines.append(f"[{job}] Exit code: {exit_code}")
        if hint:
            lines.append(f"[{job}] Hint: {hint}")
        if self.debug:
            lines.append(f"[{job}] Error details: {reason}")
            if output:
                lines.append(output)
        else:
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            lines.append(f"[{job}] Error: {error_line}")
        self._emit(*lines)

    def print_warning(self, job: str, message: str) -> None:
        self._emit(f"[{job}] WARNING: {message}")

    def print_results(self, results: Mapping[str, object]) -> None:
        """Print final results summary (name -> JobResult)."""
        lines = ["", "=" * 40, "RESULTS", "=" * 40]
        for name, result in results.items():
            status = getattr(result, "status", str(result))
            status_display = "SUCCESS" if status == "ok" else status.upper()
            if getattr(result, "required", True) is False:
                status_display += " (best-effort)"
            lines.append(f"  {name}: {status_display}")
        self._emit(*lines)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[Sequence[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        for detail in details or []:
            lines.append(f"  {detail}")
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit(*lines, err=True)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            with self._lock:
                traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
