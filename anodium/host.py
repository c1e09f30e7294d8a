"""Compositor host interface.

The scripting subsystem never talks to the display server directly: it calls
a CompositorHost implementation through a HostProxy, which injects the logger
of the caller the way plugin backends are wrapped.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .process import ProcessResult, run_command

if TYPE_CHECKING:
    from logging import Logger

    from .models import ModeDescriptor
    from .widgets.overlay import Overlay

__all__ = ["CompositorHost", "HeadlessHost", "HostProxy", "VirtualOutput"]


class CompositorHost(ABC):
    """What the compositor must provide.

    All methods take a `log` keyword so calls are logged under the caller's
    logger.
    """

    @abstractmethod
    def apply_mode(self, output_name: str, mode: ModeDescriptor, *, log: Logger) -> None:
        """Switch an output to `mode`.

        Args:
            output_name: Output connector name
            mode: One of the modes the host offered
            log: Logger to use for this operation
        """

    @abstractmethod
    def apply_placement(self, output_name: str, x: int, y: int, *, log: Logger) -> None:
        """Move an output origin to (x, y) in the global space."""

    @abstractmethod
    def insert_overlay(self, output_name: str, overlay: Overlay, *, log: Logger) -> None:
        """Hand the overlay of a new output to the renderer.

        The renderer calls `overlay.snapshot()` when painting, never mutating
        the nodes.
        """

    async def spawn_process(self, command: str, capture: bool = False, *, log: Logger) -> ProcessResult:
        """Run a shell command, optionally capturing its standard output.

        Args:
            command: Shell command line
            capture: Collect stdout into the result
            log: Logger to use for this operation
        """
        return await run_command(command, capture, log)


class HostProxy:
    """Wraps a CompositorHost, passing `log` to every call."""

    def __init__(self, host: CompositorHost, log: Logger) -> None:
        """Initialize the proxy.

        Args:
            host: The underlying host to delegate calls to
            log: The logger to inject into all host calls
        """
        self._host = host
        self.log = log

    def apply_mode(self, output_name: str, mode: ModeDescriptor) -> None:
        self.log.debug("apply_mode %s %s", output_name, mode)
        self._host.apply_mode(output_name, mode, log=self.log)

    def apply_placement(self, output_name: str, x: int, y: int) -> None:
        self.log.debug("apply_placement %s %s,%s", output_name, x, y)
        self._host.apply_placement(output_name, x, y, log=self.log)

    def insert_overlay(self, output_name: str, overlay: Overlay) -> None:
        self._host.insert_overlay(output_name, overlay, log=self.log)

    async def spawn_process(self, command: str, capture: bool = False) -> ProcessResult:
        self.log.debug("spawn %s", command)
        return await self._host.spawn_process(command, capture, log=self.log)


@dataclass
class VirtualOutput:
    """An output of the headless host."""

    name: str
    width: int
    height: int
    refresh: int
    scale: float = 1.0
    mode: ModeDescriptor | None = None
    location: tuple[int, int] = (0, 0)
    overlay: Overlay | None = field(default=None, repr=False)


class HeadlessHost(CompositorHost):
    """A host without a display, used to check and run scripts from the CLI.

    It just records what the scripting subsystem asks for.
    """

    def __init__(self) -> None:
        self.outputs: dict[str, VirtualOutput] = {}

    def add_output(self, output: VirtualOutput) -> None:
        self.outputs[output.name] = output

    def apply_mode(self, output_name: str, mode: ModeDescriptor, *, log: Logger) -> None:
        output = self.outputs.get(output_name)
        if output is None:
            log.warning("No virtual output named %s", output_name)
            return
        output.mode = mode
        log.info("%s uses %s", output_name, mode)

    def apply_placement(self, output_name: str, x: int, y: int, *, log: Logger) -> None:
        output = self.outputs.get(output_name)
        if output is None:
            log.warning("No virtual output named %s", output_name)
            return
        output.location = (x, y)
        log.info("%s placed at %s,%s", output_name, x, y)

    def insert_overlay(self, output_name: str, overlay: Overlay, *, log: Logger) -> None:
        output = self.outputs.get(output_name)
        if output is not None:
            output.overlay = overlay
        log.debug("overlay of %s inserted", output_name)
