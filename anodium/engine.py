"""The script engine: one script environment and the host event entry points."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles

from .bridge import Bridge
from .config import Configuration
from .constants import SCRIPT_FILE, STRICT_ERRORS
from .host import CompositorHost, HostProxy
from .keys import KeyCombo, KeyMatcher
from .logging_setup import LogRelayHandler, add_handler, get_logger, is_debug, remove_handler
from .models import ModeDescriptor, ScriptLoadError, TriggerKind
from .outputs import OutputHandle, OutputLifecycleController
from .process import ProcessLauncher
from .registry import CallbackRegistry, Trigger
from .schema import ANODIUM_CONFIG_SCHEMA
from .timers import TimerScheduler, monotonic_ms
from .widgets.tree import Metrics, WidgetTree

if TYPE_CHECKING:
    from .widgets.tree import PaintItem

__all__ = ["ScriptEngine"]


class ScriptEngine:  # pylint: disable=too-many-instance-attributes,too-many-public-methods
    """Loads the script and routes host events to its callbacks.

    Every entry point runs script code synchronously on the calling (event
    loop) thread. Script errors are logged and never reach the host, unless
    strict errors are enabled.
    """

    def __init__(
        self,
        host: CompositorHost,
        config: Configuration | None = None,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        """Initialize the engine.

        Args:
            host: The compositor collaborator
            config: The `[anodium]` configuration section
            clock: Monotonic milliseconds source used by timers
        """
        self.log = get_logger()
        self.config = config if config is not None else Configuration(logger=self.log, schema=ANODIUM_CONFIG_SCHEMA)
        self.script_log = get_logger("anodium.script", logging.DEBUG if is_debug() else logging.INFO)
        self.strict = STRICT_ERRORS or self.config.get_bool("strict_errors")
        self.registry = CallbackRegistry(get_logger("anodium.callbacks"), strict=self.strict)
        self.scheduler = TimerScheduler(self.registry, get_logger("anodium.timers"), clock)
        self.tree = WidgetTree(
            self.registry,
            get_logger("anodium.widgets"),
            Metrics(
                char_width=self.config.get_int("char_width"),
                line_height=self.config.get_int("line_height"),
                logger_lines=self.config.get_int("logger_lines"),
                fps_samples=self.config.get_int("fps_samples"),
            ),
        )
        self.host = HostProxy(host, get_logger("anodium.host"))
        self.outputs = OutputLifecycleController(self.registry, self.tree, self.host, get_logger("anodium.outputs"))
        self.launcher = ProcessLauncher(self.host.spawn_process, get_logger("anodium.process"))
        self.keys = KeyMatcher()
        self.bridge = Bridge(self)
        self.namespace: dict = {}
        self.script_path: Path | None = None
        self.loaded = False
        self._reload_requested = False
        self._relay = LogRelayHandler(self.tree.push_log)
        add_handler(self._relay)

    # Script environment

    async def load(self, path: str | Path | None = None) -> bool:
        """Read and run a script file, replacing the current environment.

        Args:
            path: Script file, defaults to the configured one

        Returns:
            False if the script couldn't be loaded, the environment is then empty
        """
        if path is None:
            if self.script_path is None and not self.config.has_explicit("script"):
                self.log.info("No script configured, using %s", SCRIPT_FILE)
            path = self.script_path or self.config.get_path("script", SCRIPT_FILE)
        self.script_path = Path(path)
        try:
            async with aiofiles.open(self.script_path, encoding="utf-8") as f:
                source = await f.read()
        except OSError as e:
            self._load_failed(ScriptLoadError(f"Can't read {self.script_path}: {e}"))
            return False
        return self.load_source(source, str(self.script_path))

    def load_source(self, source: str, filename: str = "<script>") -> bool:
        """Run `source` as the script, replacing the current environment."""
        self.teardown()
        try:
            code = compile(source, filename, "exec")
        except SyntaxError as e:
            self._load_failed(ScriptLoadError(f"{filename}:{e.lineno}: {e.msg}"))
            return False
        try:
            self.namespace = self.bridge.namespace()
            exec(code, self.namespace)  # noqa: S102  # pylint: disable=exec-used
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.log.exception("Error running %s", filename)
            self._load_failed(ScriptLoadError(f"{filename}: {type(e).__name__}: {e}"))
            return False
        self.loaded = True
        self.log.info("Script %s loaded", filename)
        self.outputs.reannounce()
        return True

    def _load_failed(self, error: ScriptLoadError) -> None:
        self.log.critical("%s", error)
        self.teardown()

    def teardown(self) -> None:
        """Drop every callback, timer and widget of the current script."""
        self.registry.clear()
        self.scheduler.clear()
        self.keys.reset()
        for output in self.outputs:
            output.overlay.destroy()
        self.tree.clear()
        self.namespace = {}
        self.loaded = False

    def request_reload(self) -> None:
        """Reload the script on the next tick."""
        self._reload_requested = True

    async def reload(self) -> bool:
        """Load the script file again, running the output hooks anew."""
        self._reload_requested = False
        self.log.info("Reloading %s", self.script_path)
        return await self.load(self.script_path)

    # Host events

    def output_attached(
        self, name: str, width: int, height: int, modes: Iterable[ModeDescriptor] = (), scale: float = 1.0
    ) -> OutputHandle:
        return self.outputs.attach(name, width, height, modes, scale)

    def output_removed(self, name: str) -> bool:
        return self.outputs.remove(name)

    def output_mode_candidates(self, name: str, modes: Iterable[ModeDescriptor]) -> ModeDescriptor | None:
        mode = self.outputs.negotiate_mode(name, modes)
        if mode is not None:
            self.outputs.rearrange()
        return mode

    def key_event(self, keysym: str, modifiers: str | Iterable[str] | None = None, pressed: bool = True) -> bool:
        """Feed a key press or release.

        Returns:
            True if the compositor must not forward the key to clients
        """
        combos = [h.trigger.key for h in self.registry.handles(TriggerKind.KEY_COMBO)]
        try:
            combo, intercepted = self.keys.feed(keysym, modifiers, pressed, [c for c in combos if isinstance(c, KeyCombo)])
        except ValueError as e:
            self.log.warning("Ignoring key event %r: %s", keysym, e)
            return False
        if combo is not None:
            self.log.debug("key combo %s", combo)
            self.registry.fire_all(Trigger(TriggerKind.KEY_COMBO, combo))
        return intercepted

    def frame(self, output_name: str, timestamp_ms: float) -> tuple[PaintItem, ...]:
        """Lay out the overlay of an output for a new frame.

        Returns:
            The paint items the renderer should draw on top of the output
        """
        output = self.outputs.find_by_name(output_name)
        if output is None:
            self.log.warning("Frame for unknown output %s", output_name)
            return ()
        output.overlay.feed_frame(timestamp_ms)
        output.overlay.layout(output.size)
        return output.overlay.snapshot()

    def pointer_click(self, x: int, y: int) -> bool:
        """Dispatch a click in global coordinates, returns True if a widget used it."""
        output = self.outputs.find_by_position(x, y)
        if output is None:
            return False
        return output.overlay.click(x - output.x, y - output.y)

    async def tick(self, now_ms: int | None = None) -> int:
        """Deliver process completions, fire due timers, free unreachable widgets, then reload if asked.

        Returns:
            The number of timers fired
        """
        for handle, result in self.launcher.drain():
            if handle in self.registry:
                self.registry.invoke(handle, result.to_dict())
                self.registry.unregister(handle)
        fired = self.scheduler.poll(now_ms)
        self.tree.collect()
        if self._reload_requested:
            await self.reload()
        return fired

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Tick until `stop` is set, waking up early for due timers."""
        stop = stop or asyncio.Event()
        interval = self.config.get_int("tick_interval_ms")
        while not stop.is_set():
            await self.tick()
            delay = interval
            deadline = self.scheduler.next_deadline()
            if deadline is not None:
                delay = max(0, min(interval, deadline - self.scheduler.clock()))
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay / 1000)
            except TimeoutError:
                continue

    async def close(self) -> None:
        """Stop the running commands and release the environment."""
        await self.launcher.shutdown()
        self.teardown()
        remove_handler(self._relay)
