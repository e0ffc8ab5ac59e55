"""Shared test fixtures for the conflogic test suite."""

from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from conflogic.config import get_settings
from conflogic.config.settings import set_toml_config
from conflogic.logic import reset_default_evaluator
from conflogic.logic.comparator import SafeComparator
from conflogic.logic.evaluator import RuleEvaluator
from conflogic.logic.interpolation import Interpolator


@pytest.fixture(autouse=True)
def reset_config_state() -> Generator[None, None, None]:
    """Isolate tests from cached settings and loaded TOML."""
    set_toml_config({})
    get_settings.cache_clear()
    reset_default_evaluator()
    yield
    set_toml_config({})
    get_settings.cache_clear()
    reset_default_evaluator()


@pytest.fixture
def evaluator() -> RuleEvaluator:
    """Create RuleEvaluator with default configuration."""
    return RuleEvaluator()


@pytest.fixture
def comparator() -> SafeComparator:
    """Create SafeComparator with default pattern limit."""
    return SafeComparator()


@pytest.fixture
def interpolator() -> Interpolator:
    """Create strict Interpolator."""
    return Interpolator()


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _create_toml_files
