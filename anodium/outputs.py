"""Output lifecycle: attach, mode negotiation, rearrangement and removal.

Mode selection and rearrangement are *policy hooks*: only the most recently
registered closure is consulted, and an unusable answer falls back to the
deterministic default (first candidate mode, previous origins).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import TYPE_CHECKING, Any

from .models import InvalidHookResult, ModeDescriptor, OutputState, Rect, Size, TriggerKind
from .registry import Trigger
from .widgets.overlay import Overlay

if TYPE_CHECKING:
    import logging

    from .host import HostProxy
    from .registry import CallbackRegistry
    from .widgets.proxies import WidgetRef
    from .widgets.tree import WidgetTree

__all__ = ["ModeQuery", "OutputHandle", "OutputLifecycleController"]


class OutputHandle:  # pylint: disable=too-many-instance-attributes
    """A display output as seen by scripts."""

    def __init__(self, name: str, width: int, height: int, overlay: Overlay, scale: float = 1.0) -> None:
        self.name = name
        self.width = width
        self.height = height
        self.scale = scale
        self.location: tuple[int, int] = (0, 0)
        self.modes: list[ModeDescriptor] = []
        self.mode: ModeDescriptor | None = None
        self.state = OutputState.ATTACHED
        self.overlay = overlay

    def __repr__(self) -> str:
        return f"<output {self.name} {self.width}x{self.height}+{self.location[0]}+{self.location[1]} {self.state.value}>"

    @property
    def x(self) -> int:
        return self.location[0]

    @property
    def y(self) -> int:
        return self.location[1]

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    @property
    def geometry(self) -> Rect:
        """The output rectangle in the global space."""
        return Rect(self.location[0], self.location[1], self.width, self.height)

    @property
    def refresh(self) -> int | None:
        """Refresh rate of the current mode, in millihertz."""
        return self.mode.refresh if self.mode else None

    def add_widget(self, widget: WidgetRef) -> WidgetRef:
        """Add a root container to the overlay of this output."""
        return self.overlay.add_widget(widget)


class ModeQuery:
    """The modes an output offers, handed to mode selection hooks."""

    def __init__(self, candidates: Sequence[ModeDescriptor]) -> None:
        self._candidates = tuple(candidates)

    def __len__(self) -> int:
        return len(self._candidates)

    def __iter__(self) -> Iterator[ModeDescriptor]:
        return iter(self._candidates)

    def __getitem__(self, index: int) -> ModeDescriptor:
        return self._candidates[index]

    def __contains__(self, mode: object) -> bool:
        return mode in self._candidates

    def find(self, width: int, height: int, refresh: int | None = None) -> ModeDescriptor | None:
        """Return the candidate with exactly this size (and refresh, in mHz, if given)."""
        for mode in self._candidates:
            if mode.width == width and mode.height == height and (refresh is None or mode.refresh == refresh):
                return mode
        return None

    def best(self) -> ModeDescriptor | None:
        """Return the largest mode, with the highest refresh rate on ties."""
        if not self._candidates:
            return None
        return max(self._candidates, key=lambda m: (m.width * m.height, m.refresh))


def _check_placements(result: Any, count: int) -> list[tuple[int, int]]:  # noqa: ANN401
    """Validate a rearrangement hook result.

    Raises:
        InvalidHookResult: unless `result` holds exactly `count` (x, y) integer pairs
    """
    if isinstance(result, (str, bytes)) or not isinstance(result, Iterable):
        msg = f"rearrangement must return a list of (x, y), got {result!r}"
        raise InvalidHookResult(msg)
    placements = list(result)
    if len(placements) != count:
        msg = f"rearrangement returned {len(placements)} placements for {count} outputs"
        raise InvalidHookResult(msg)
    checked = []
    for item in placements:
        if isinstance(item, (str, bytes)) or not isinstance(item, Sequence) or len(item) != 2:  # noqa: PLR2004
            msg = f"invalid placement {item!r}"
            raise InvalidHookResult(msg)
        x, y = item
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in (x, y)):
            msg = f"invalid placement {item!r}"
            raise InvalidHookResult(msg)
        checked.append((x, y))
    return checked


class OutputLifecycleController:
    """Tracks attached outputs and runs the script hooks for them."""

    def __init__(self, registry: CallbackRegistry, tree: WidgetTree, host: HostProxy, log: logging.Logger) -> None:
        self.registry = registry
        self.tree = tree
        self.host = host
        self.log = log
        self._outputs: dict[str, OutputHandle] = {}

    # Lookups

    def __len__(self) -> int:
        return len(self._outputs)

    def __iter__(self) -> Iterator[OutputHandle]:
        return iter(list(self._outputs.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._outputs

    def find_by_name(self, name: str) -> OutputHandle | None:
        return self._outputs.get(name)

    def find_by_index(self, index: int) -> OutputHandle | None:
        outputs = list(self._outputs.values())
        if -len(outputs) <= index < len(outputs):
            return outputs[index]
        return None

    def find_by_position(self, x: int, y: int) -> OutputHandle | None:
        """Return the output containing the global point (x, y)."""
        for output in self._outputs.values():
            if output.geometry.contains(x, y):
                return output
        return None

    @property
    def width(self) -> int:
        """Sum of the output widths."""
        return sum(o.width for o in self._outputs.values())

    def height_at(self, x: int) -> int | None:
        """Height of the output spanning the global column `x`."""
        for output in self._outputs.values():
            if output.x <= x < output.x + output.width:
                return output.height
        return None

    # Lifecycle

    def attach(
        self, name: str, width: int, height: int, modes: Iterable[ModeDescriptor] = (), scale: float = 1.0
    ) -> OutputHandle:
        """Register a new output and run the attach, mode and rearrange hooks.

        An output attached again under a known name replaces the previous one.
        """
        if name in self._outputs:
            self.log.warning("Output %s attached twice, replacing it", name)
            self._forget(name)
        output = OutputHandle(name, width, height, Overlay(self.tree, name), scale)
        self._outputs[name] = output
        self.log.info("Output %s attached (%sx%s)", name, width, height)
        self.host.insert_overlay(name, output.overlay)
        self.announce(output)
        candidates = list(modes)
        if candidates:
            self.negotiate_mode(name, candidates)
        self.rearrange()
        return output

    def announce(self, output: OutputHandle) -> int:
        """Fire the attach callbacks for `output`, with its overlay open."""
        with output.overlay.opened():
            return self.registry.fire_all(Trigger(TriggerKind.OUTPUT_ATTACHED), output)

    def negotiate_mode(self, name: str, candidates: Iterable[ModeDescriptor]) -> ModeDescriptor | None:
        """Pick and apply a mode among `candidates`.

        Returns:
            The applied mode, None if the output is unknown or nothing was offered
        """
        output = self._outputs.get(name)
        if output is None:
            self.log.warning("Mode candidates for unknown output %s", name)
            return None
        output.modes = list(candidates)
        if not output.modes:
            self.log.warning("No mode offered for %s", name)
            return None
        chosen = output.modes[0]
        hook = self.registry.latest(TriggerKind.OUTPUT_MODE_SELECT)
        if hook is not None:
            ok, result = self.registry.invoke(hook, output, ModeQuery(output.modes))
            if ok and result in output.modes:
                chosen = result
            elif ok:
                error = InvalidHookResult(f"{result!r} isn't a mode offered by {name}")
                self.log.warning("%s, using %s", error, chosen)
            else:
                self.log.warning("Mode selection failed for %s, using %s", name, chosen)
        output.mode = chosen
        output.width = chosen.width
        output.height = chosen.height
        output.state = OutputState.MODE_NEGOTIATED
        self.host.apply_mode(name, chosen)
        return chosen

    def rearrange(self) -> bool:
        """Place every output, through the rearrangement hook if there's one.

        Returns:
            False if the hook answer was rejected (origins are left untouched)
        """
        outputs = list(self._outputs.values())
        if not outputs:
            return True
        hook = self.registry.latest(TriggerKind.OUTPUT_REARRANGE)
        if hook is None:
            placements = []
            x = 0
            for output in outputs:
                placements.append((x, 0))
                x += output.width
        else:
            ok, result = self.registry.invoke(hook, outputs)
            if not ok:
                self.log.warning("Rearrangement failed, keeping the output origins")
                return False
            try:
                placements = _check_placements(result, len(outputs))
            except InvalidHookResult as e:
                self.log.warning("%s, keeping the output origins", e)
                return False
        for output, (x, y) in zip(outputs, placements, strict=True):
            output.location = (x, y)
            output.state = OutputState.PLACED
            self.host.apply_placement(output.name, x, y)
        return True

    def remove(self, name: str) -> bool:
        """Forget an output, destroying its overlay, then rearrange the others."""
        if name not in self._outputs:
            self.log.warning("Unknown output %s removed", name)
            return False
        self._forget(name)
        self.log.info("Output %s removed", name)
        self.rearrange()
        return True

    def _forget(self, name: str) -> None:
        output = self._outputs.pop(name)
        output.overlay.destroy()
        output.state = OutputState.UNKNOWN

    def reannounce(self) -> None:
        """Run every hook again for the current outputs (after a script reload)."""
        for output in list(self._outputs.values()):
            output.overlay.destroy()
            self.announce(output)
            if output.modes:
                self.negotiate_mode(output.name, output.modes)
        self.rearrange()
