"""Live terminal view of open tunnels."""

import logging
import os
import select
import sys
import termios
import time
import tty
from typing import Optional, Sequence, TextIO

from rich.console import Console
from rich.live import Live
from rich.table import Table

from ..core.tunnels import TunnelManager

logger = logging.getLogger(__name__)


class KeyReader:
    """Reads single keypresses from a terminal without waiting for Enter.

    Used as a context manager: the terminal is switched to cbreak mode on
    entry and restored on exit. When the stream is not a terminal no keys are
    ever reported and :meth:`read_key` only waits out its timeout.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdin
        self._saved_mode = None

    def __enter__(self) -> "KeyReader":
        if self.stream.isatty():
            fd = self.stream.fileno()
            self._saved_mode = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._saved_mode is not None:
            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._saved_mode)
            self._saved_mode = None

    def read_key(self, timeout: float) -> Optional[str]:
        """Return the next key pressed within ``timeout`` seconds, or None."""
        if self._saved_mode is None:
            time.sleep(timeout)
            return None
        ready, _, _ = select.select([self.stream], [], [], timeout)
        if not ready:
            return None
        return os.read(self.stream.fileno(), 1).decode(errors="ignore")


class Dashboard:
    """Redraws the tunnel list on a fixed tick until the quit key is pressed."""

    def __init__(
        self,
        manager: TunnelManager,
        console: Optional[Console] = None,
        keys: Optional[KeyReader] = None,
        tick: float = 0.25,
        quit_keys: Sequence[str] = ("q", "Q"),
        screen: bool = True,
    ):
        self.manager = manager
        self.console = console or Console()
        self.keys = keys or KeyReader()
        self.tick = tick
        self.quit_keys = quit_keys
        self.screen = screen

    def render(self) -> Table:
        table = Table(title="Tunnels", caption="press q to quit")
        table.add_column("Job", style="cyan")
        table.add_column("Node", style="magenta")
        table.add_column("Remote port", justify="right")
        table.add_column("Local URL", style="green")
        table.add_column("State")

        for tunnel in self.manager.tunnels:
            state = "[green]open[/green]" if tunnel.is_alive else "[red]exited[/red]"
            table.add_row(
                tunnel.job.name,
                tunnel.job.compute_node,
                str(tunnel.job.remote_port),
                tunnel.url,
                state,
            )

        if not self.manager.tunnels:
            table.add_row("No open tunnels", "", "", "", "")

        return table

    def run(self) -> None:
        """Run until the quit key; closes every tunnel on the way out."""
        last_tick = time.monotonic()
        try:
            with self.keys, Live(
                self.render(),
                console=self.console,
                screen=self.screen,
                auto_refresh=False,
                transient=True,
            ) as live:
                while True:
                    live.update(self.render(), refresh=True)
                    timeout = max(0.0, self.tick - (time.monotonic() - last_tick))
                    key = self.keys.read_key(timeout)
                    if key is not None and key in self.quit_keys:
                        break
                    if time.monotonic() - last_tick >= self.tick:
                        last_tick = time.monotonic()
        except KeyboardInterrupt:
            pass
        finally:
            self.manager.close_all()
            logger.debug("Dashboard closed, all tunnels terminated")
