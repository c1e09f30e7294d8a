"""anodium-script: check or run a compositor script against a headless host."""

import asyncio
import contextlib
import logging
import signal
import sys

from .config import Configuration
from .config_loader import ConfigError, ConfigLoader
from .engine import ScriptEngine
from .host import HeadlessHost, VirtualOutput
from .logging_setup import get_logger, init_logger
from .models import ExitCode, ModeDescriptor
from .schema import ANODIUM_CONFIG_SCHEMA, OUTPUT_SCHEMA, SECTION
from .validation import ConfigValidator

__all__ = ["main", "run_command_line"]

USAGE = """Usage: anodium-script [--config PATH] [--debug LOGFILE] <command> [SCRIPT]

Commands:
  check     Load the script against the configured outputs and report errors
  run       Run the script headless until interrupted
"""

DEFAULT_OUTPUT = VirtualOutput("HEADLESS-1", 1920, 1080, 60000)


def use_param(args: list[str], txt: str) -> str:
    """Check if parameter `txt` is in `args`.

    if found, removes it from `args` & returns the argument value
    """
    v = ""
    if txt in args:
        i = args.index(txt)
        if i + 1 >= len(args):
            del args[i]
            return v
        v = args[i + 1]
        del args[i : i + 2]
    return v


def load_configuration(filename: str, log: logging.Logger) -> Configuration:
    """Load and validate the `[anodium]` section.

    Raises:
        ConfigError: on unreadable files or schema errors
    """
    section = ConfigLoader(log).load(filename).get(SECTION, {})
    validator = ConfigValidator(section, SECTION, log)
    errors = validator.validate(ANODIUM_CONFIG_SCHEMA)
    validator.warn_unknown_keys(ANODIUM_CONFIG_SCHEMA)
    if errors:
        for error in errors:
            log.error(error)
        msg = f"{len(errors)} configuration error(s)"
        raise ConfigError(msg)
    return Configuration(section, logger=log, schema=ANODIUM_CONFIG_SCHEMA)


def virtual_outputs(config: Configuration) -> list[VirtualOutput]:
    """Return the outputs the headless host pretends to have."""
    outputs = []
    for entry in config.get_list("outputs"):
        output = Configuration(entry, logger=config.log, schema=OUTPUT_SCHEMA)
        outputs.append(
            VirtualOutput(
                output.get_str("name"),
                output.get_int("width"),
                output.get_int("height"),
                output.get_int("refresh"),
                output.get_float("scale"),
            )
        )
    return outputs or [VirtualOutput(DEFAULT_OUTPUT.name, DEFAULT_OUTPUT.width, DEFAULT_OUTPUT.height, DEFAULT_OUTPUT.refresh)]


async def start_engine(config: Configuration, script: str) -> tuple[ScriptEngine, bool]:
    """Load the script and attach the virtual outputs.

    Returns:
        The engine and whether the script loaded
    """
    host = HeadlessHost()
    engine = ScriptEngine(host, config)
    loaded = await engine.load(script or None)
    for output in virtual_outputs(config):
        host.add_output(output)
        engine.output_attached(
            output.name, output.width, output.height, [ModeDescriptor(output.width, output.height, output.refresh)], output.scale
        )
    return engine, loaded


async def check_script(config: Configuration, script: str) -> ExitCode:
    engine, loaded = await start_engine(config, script)
    try:
        if not loaded:
            return ExitCode.SCRIPT_ERROR
        for output in engine.outputs:
            engine.frame(output.name, 0)
        print(f"{engine.script_path}: {len(engine.registry)} callback(s), {len(engine.tree)} widget(s)")
        return ExitCode.SUCCESS
    finally:
        await engine.close()


async def run_script(config: Configuration, script: str) -> ExitCode:
    engine, loaded = await start_engine(config, script)
    if not loaded:
        get_logger("startup").warning("Running with an empty environment, use system.reload() or fix the script")
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
    try:
        await engine.run(stop)
    finally:
        await engine.close()
    return ExitCode.SUCCESS


def run_command_line(args: list[str]) -> ExitCode:
    """Run the CLI with `args` (without the program name)."""
    args = list(args)
    debug_flag = use_param(args, "--debug")
    if debug_flag:
        init_logger(filename=debug_flag, force_debug=True)
    else:
        init_logger()
    log = get_logger("startup")
    config_file = use_param(args, "--config")

    if not args or args[0] not in {"check", "run"} or len(args) > 2:  # noqa: PLR2004
        print(USAGE)
        return ExitCode.USAGE_ERROR
    command, script = args[0], (args[1] if len(args) > 1 else "")

    try:
        config = load_configuration(config_file, log)
    except ConfigError as e:
        log.critical("%s", e)
        return ExitCode.CONFIG_ERROR

    if command == "check":
        return asyncio.run(check_script(config, script))
    return asyncio.run(run_script(config, script))


def main() -> None:
    """Run the command."""
    sys.exit(run_command_line(sys.argv[1:]))


if __name__ == "__main__":
    main()
