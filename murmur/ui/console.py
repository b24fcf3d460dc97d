"""Console output for the command-line front end.

This module provides a ConsoleManager that adapts output to:
- Rich-rendered color output and progress bars when in a TTY
- JSON-only output for machine-readable logs (CI/CD)
- Plain-text fallback for non-TTY environments
"""

from __future__ import annotations

import json
import logging
import re
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..models import ProgressEvent, ProgressStage

JSON_MAX_FIELD_LENGTH = 200
JSON_MAX_NESTING_DEPTH = 10

STAGE_LABELS = {
    ProgressStage.PREPARING: "Preparing",
    ProgressStage.TRANSCRIBING: "Transcribing",
    ProgressStage.FORMATTING: "Formatting",
    ProgressStage.SAVING: "Saving",
    ProgressStage.COMPLETE: "Complete",
    ProgressStage.ERROR: "Error",
}


def _timestamp() -> str:
    return datetime.now().isoformat()


def sanitize_json_value(value: Any, depth: int = 0) -> Any:
    """Make ``value`` safe to emit as one JSON log line.

    Strings lose control characters and line breaks and are truncated;
    non-finite floats are clamped; containers are size and depth limited.
    """
    if depth > JSON_MAX_NESTING_DEPTH:
        return "[TRUNCATED: Max depth exceeded]"

    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, str):
        return _sanitize_string(value)
    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return 0.0
        if value in (float("inf"), float("-inf")):
            return 1e308 if value > 0 else -1e308
        return value
    if isinstance(value, dict):
        return {
            _sanitize_string(str(k)): sanitize_json_value(v, depth + 1)
            for k, v in list(value.items())[:50]
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_json_value(item, depth + 1) for item in list(value)[:100]]
    if hasattr(value, "to_dict"):
        return sanitize_json_value(value.to_dict(), depth + 1)
    return _sanitize_string(str(value))


def _sanitize_string(value: str) -> str:
    value = re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", value)
    value = re.sub(r"[\r\n]+", " ", value)
    if len(value) > JSON_MAX_FIELD_LENGTH:
        value = value[: JSON_MAX_FIELD_LENGTH - 3] + "..."
    return value


class ConsoleManager:
    """Manages console output with Rich integration."""

    def __init__(self, verbose: bool = False, json_output: bool = False):
        self.verbose = verbose
        self.json_output = json_output
        self.is_tty = sys.stderr.isatty()
        self.console: Optional[Console] = None if json_output else Console(stderr=True)

    def logging_handler(self) -> logging.Handler:
        """Console handler for ``LoggingFactory.initialize``.

        JSON mode gets a bare stderr handler so log lines do not corrupt the
        machine-readable stream on stdout.
        """
        if self.json_output or self.console is None:
            handler: logging.Handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
            return handler
        return RichHandler(
            console=self.console,
            show_time=True,
            show_path=self.verbose,
            rich_tracebacks=True,
        )

    @contextmanager
    def progress_context(self, description: str) -> Iterator["ProgressTracker"]:
        """Progress display for the duration of the block."""
        if self.json_output:
            yield JsonProgressTracker(description)
            return

        if not (self.is_tty and self.console is not None):
            yield FallbackProgressTracker(description)
            return

        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=self.console,
        )
        progress.start()
        try:
            task_id = progress.add_task(description, total=100)
            yield RichProgressTracker(progress, task_id)
        finally:
            progress.stop()

    def print_stage(self, stage: str, status: str = "starting") -> None:
        """Print stage information with appropriate renderer."""
        if self.json_output:
            print(
                json.dumps(
                    {
                        "timestamp": _timestamp(),
                        "stage": _sanitize_string(stage),
                        "status": _sanitize_string(status),
                    }
                ),
                file=sys.stderr,
            )
        elif self.console:
            status_color = {
                "starting": "blue",
                "complete": "green",
                "error": "red",
                "warning": "yellow",
            }.get(status, "white")
            self.console.print(Panel(f"[bold]{stage}[/bold]", style=status_color, padding=(0, 1)))
        else:
            print(f"[{status.upper()}] {stage}", file=sys.stderr)

    def print_summary(self, title: str, results: Dict[str, Any]) -> None:
        """Print a key/value summary table, or a JSON line on stdout."""
        if self.json_output:
            print(
                json.dumps(
                    {
                        "timestamp": _timestamp(),
                        "type": "summary",
                        "title": title,
                        "results": sanitize_json_value(results),
                    }
                )
            )
        elif self.console:
            table = Table(title=title)
            table.add_column("Field", style="cyan")
            table.add_column("Value", style="bold")
            for key, value in results.items():
                table.add_row(str(key), "" if value is None else str(value))
            self.console.print(table)
        else:
            print(f"{title}:", file=sys.stderr)
            for key, value in results.items():
                print(f"  {key}: {value}", file=sys.stderr)

    def print_error(self, message: str) -> None:
        if self.json_output:
            print(
                json.dumps(
                    {"timestamp": _timestamp(), "type": "error", "message": _sanitize_string(message)}
                ),
                file=sys.stderr,
            )
        elif self.console:
            self.console.print(f"[red]ERROR: {message}[/red]")
        else:
            print(f"ERROR: {message}", file=sys.stderr)


class RichProgressTracker:
    """Progress tracker using a Rich progress bar."""

    def __init__(self, progress: Progress, task_id: Any):
        self.progress = progress
        self.task_id = task_id

    def __call__(self, event: ProgressEvent) -> None:
        label = STAGE_LABELS.get(event.stage, event.stage.value)
        style = "red" if event.stage is ProgressStage.ERROR else "default"
        self.progress.update(
            self.task_id,
            completed=event.progress,
            description=f"[{style}]{label}: {event.message}",
        )


class JsonProgressTracker:
    """Progress tracker writing one JSON line per event to stderr."""

    def __init__(self, description: str):
        self.description = description
        self.start_time = time.time()

    def __call__(self, event: ProgressEvent) -> None:
        data: Dict[str, Any] = {
            "timestamp": _timestamp(),
            "type": "progress",
            "description": self.description,
            "elapsed": round(time.time() - self.start_time, 3),
        }
        data.update(sanitize_json_value(event.to_dict()))
        print(json.dumps(data), file=sys.stderr)


class FallbackProgressTracker:
    """Plain-text tracker for non-TTY environments: stage changes and every 10%."""

    def __init__(self, description: str):
        self.description = description
        self.last_reported = -10
        self.last_stage: Optional[ProgressStage] = None

    def __call__(self, event: ProgressEvent) -> None:
        if event.stage != self.last_stage or event.progress - self.last_reported >= 10:
            print(f"{self.description}: {event.progress}% {event.message}", file=sys.stderr)
            self.last_reported = event.progress
            self.last_stage = event.stage


ProgressTracker = Union[RichProgressTracker, JsonProgressTracker, FallbackProgressTracker]
