import pytest

from anodium.command import main, run_command_line, use_param, virtual_outputs
from anodium.config import Configuration
from anodium.models import ExitCode
from anodium.schema import ANODIUM_CONFIG_SCHEMA

SCRIPT = """
def on_new(output):
    panel = container.panel(layout.vertical(), position.top())
    panel.add_widget(widget.text(output.name))
    output.add_widget(panel)

outputs.on_new(on_new)
"""

TWO_OUTPUTS = """
[[anodium.outputs]]
name = "DP-1"
width = 1920
height = 1080

[[anodium.outputs]]
name = "HDMI-A-1"
width = 1280
height = 1024
refresh = 75000
"""


@pytest.fixture
def script(tmp_path):
    path = tmp_path / "config.py"
    path.write_text(SCRIPT)
    return path


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(TWO_OUTPUTS)
    return path


def test_use_param():
    args = ["--config", "a.toml", "check", "--debug"]
    assert use_param(args, "--config") == "a.toml"
    assert use_param(args, "--missing") == ""
    assert use_param(args, "--debug") == ""
    assert args == ["check"]


@pytest.mark.parametrize("args", [[], ["frobnicate"], ["check", "a.py", "b.py"]])
def test_usage_errors(args, capsys):
    assert run_command_line(args) == ExitCode.USAGE_ERROR
    assert "Usage:" in capsys.readouterr().out


def test_check_script(config, script, capsys):
    assert run_command_line(["--config", str(config), "check", str(script)]) == ExitCode.SUCCESS
    assert capsys.readouterr().out.strip() == f"{script}: 1 callback(s), 4 widget(s)"


def test_check_default_output(tmp_path, script, capsys):
    empty = tmp_path / "empty.toml"
    empty.write_text("[anodium]\n")
    assert run_command_line(["--config", str(empty), "check", str(script)]) == ExitCode.SUCCESS
    assert "1 callback(s), 2 widget(s)" in capsys.readouterr().out


def test_check_script_from_config(tmp_path, script):
    conf = tmp_path / "with_script.toml"
    conf.write_text(f'[anodium]\nscript = "{script}"\n')
    assert run_command_line(["--config", str(conf), "check"]) == ExitCode.SUCCESS


def test_check_broken_script(tmp_path, config):
    broken = tmp_path / "broken.py"
    broken.write_text("raise ValueError('nope')\n")
    assert run_command_line(["--config", str(config), "check", str(broken)]) == ExitCode.SCRIPT_ERROR
    assert run_command_line(["--config", str(config), "check", str(tmp_path / "missing.py")]) == ExitCode.SCRIPT_ERROR


def test_config_errors(tmp_path, script):
    bad = tmp_path / "bad.toml"
    bad.write_text("[anodium]\nlogger_lines = 0\n")
    assert run_command_line(["--config", str(bad), "check", str(script)]) == ExitCode.CONFIG_ERROR
    assert run_command_line(["--config", str(tmp_path / "nowhere.toml"), "check", str(script)]) == ExitCode.CONFIG_ERROR


def test_virtual_outputs(test_logger):
    conf = Configuration(
        {"outputs": [{"name": "DP-1", "width": 800, "height": 600, "scale": 2.0}]}, logger=test_logger, schema=ANODIUM_CONFIG_SCHEMA
    )
    (output,) = virtual_outputs(conf)
    assert (output.name, output.width, output.height, output.refresh, output.scale) == ("DP-1", 800, 600, 60000, 2.0)

    (default,) = virtual_outputs(Configuration({}, logger=test_logger, schema=ANODIUM_CONFIG_SCHEMA))
    assert default.name == "HEADLESS-1"


def test_main_exits(monkeypatch):
    monkeypatch.setattr("sys.argv", ["anodium-script"])
    with pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == ExitCode.USAGE_ERROR
