" generic fixtures "
from unittest.mock import Mock

import pytest
from pytest_asyncio import fixture

from anodium.config import Configuration
from anodium.engine import ScriptEngine
from anodium.registry import CallbackRegistry
from anodium.schema import ANODIUM_CONFIG_SCHEMA
from anodium.widgets import Metrics, Overlay, WidgetTree

from .testtools import FakeClock, RecordingHost


def pytest_configure():
    "Runs once before all"
    from anodium.logging_setup import init_logger

    init_logger("/dev/null", force_debug=True)


@pytest.fixture
def test_logger():
    "A logger swallowing everything"
    return Mock()


@pytest.fixture
def registry(test_logger):
    return CallbackRegistry(test_logger)


@pytest.fixture
def tree(registry, test_logger):
    return WidgetTree(registry, test_logger, Metrics())


@pytest.fixture
def overlay(tree):
    return Overlay(tree, "DP-1")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def host():
    return RecordingHost()


@fixture
async def engine(host, clock, test_logger):
    "An engine without script, driven by a fake clock"
    config = Configuration({}, logger=test_logger, schema=ANODIUM_CONFIG_SCHEMA)
    eng = ScriptEngine(host, config, clock=clock)
    yield eng
    await eng.close()
