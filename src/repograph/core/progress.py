"""Rich progress display for command-line graph builds."""

import sys
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from rich.console import Console
from rich.status import Status


class ProgressIndicator:
    """
    Spinner and status lines on stderr while a graph is being built.

    Builds report indeterminate progress (the architecture analyzer names
    the pass it is in), so a spinner with a changing caption is shown rather
    than a bar. A disabled indicator ignores every call.
    """

    def __init__(self, enabled: bool = True, stream=None):
        self.enabled = enabled
        self.console = Console(file=stream or sys.stderr)
        self.description: Optional[str] = None
        self._status: Optional[Status] = None

    @contextmanager
    def stage(self, description: str) -> Iterator[None]:
        """Show a spinner captioned with description until the block exits; failures are echoed."""
        if not self.enabled:
            yield
            return

        self.description = description
        self._status = self.console.status(f"[cyan]{description}[/cyan]", spinner="dots")
        self._status.start()
        try:
            yield
        except Exception as e:
            self._stop()
            self.error(str(e))
            raise
        finally:
            self._stop()

    def _stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def update(self, message: str) -> None:
        """Replace the spinner caption, or print the message when no stage is running."""
        if not self.enabled:
            return
        if self._status is None:
            self.console.print(f"  [dim]{message}[/dim]")
            return
        self._status.update(f"[cyan]{self.description}:[/cyan] {message}")

    def done(self, message: str, warnings: Sequence[str] = ()) -> None:
        """Close the current stage with a check mark and list its warnings."""
        if not self.enabled:
            return
        self._stop()
        self.console.print(f"[green]✓[/green] {self.description}: {message}")
        for warning in warnings:
            self.warning(warning)

    def error(self, message: str) -> None:
        if self.enabled:
            self.console.print(f"  [red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        if self.enabled:
            self.console.print(f"  [yellow]⚠[/yellow] {message}")
