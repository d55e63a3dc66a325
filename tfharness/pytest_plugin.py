"""pytest integration for tfharness.

Registered through the ``pytest11`` entry point. Provides the
``terraform_harness`` fixture, which binds a ``Harness`` to the requesting
test: working directories come from ``tmp_path_factory``, teardown is
registered with ``request.addfinalizer`` and harness errors fail the test
through ``pytest.fail``.
"""

from __future__ import annotations

import logging
from typing import Iterator

import pytest

from tfharness.cache import PluginCache
from tfharness.core.config import ConfigLoader, HarnessConfig
from tfharness.core.harness import Harness
from tfharness.exceptions import HarnessError

logger = logging.getLogger(__name__)

_config_key = pytest.StashKey[HarnessConfig]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("tfharness")
    group.addoption(
        "--tf-config",
        default=None,
        help="Path to tfharness YAML configuration (default: $TFHARNESS_CONFIG or tfharness.yaml)",
    )
    group.addoption(
        "--tf-clean-cache",
        action="store_true",
        default=False,
        help="Remove the terraform plugin cache when the test session ends.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: test drives a real terraform binary")

    package_logger = logging.getLogger("tfharness")
    if package_logger.level == logging.NOTSET:
        package_logger.setLevel(logging.INFO)

    try:
        harness_config = ConfigLoader().load(config.getoption("--tf-config"))
    except (ValueError, RuntimeError) as e:
        raise pytest.UsageError(f"tfharness configuration error: {e}") from e

    config.stash[_config_key] = harness_config
    PluginCache(harness_config.plugin_cache_dir).init()


def pytest_unconfigure(config: pytest.Config) -> None:
    harness_config = config.stash.get(_config_key, None)

    if harness_config is not None and config.getoption("--tf-clean-cache"):
        PluginCache(harness_config.plugin_cache_dir).clean()


def fail_test(error: HarnessError) -> None:
    """Turn a harness error into a test failure."""
    pytest.fail(str(error), pytrace=False)


@pytest.fixture
def tfharness_config(pytestconfig: pytest.Config) -> HarnessConfig:
    """Harness settings for the current test; override to customize."""
    return ConfigLoader().load(pytestconfig.getoption("--tf-config"))


@pytest.fixture
def terraform_harness(
    request: pytest.FixtureRequest,
    tfharness_config: HarnessConfig,
    tmp_path_factory: pytest.TempPathFactory,
) -> Iterator[Harness]:
    """A Harness whose teardown and failures are bound to the requesting test."""
    harness = Harness(
        config=tfharness_config,
        register_cleanup=request.addfinalizer,
        make_workdir=lambda: tmp_path_factory.mktemp("tfharness"),
        on_fatal=fail_test,
    )

    if tfharness_config.handle_signals:
        harness.handle_signals()

    yield harness

    harness.close()
