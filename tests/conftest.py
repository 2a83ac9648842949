"""Shared pytest fixtures."""

from pathlib import Path

import pytest
import yaml

import markform.config as config_mod
from markform.config import Settings, clear_settings_cache
from markform.core import Form

FILES_DIR = Path(__file__).parent / "files"
FORMS_DIR = FILES_DIR / "form"


@pytest.fixture(autouse=True)
def clean_settings():
    """Ensure cached settings and config overrides do not leak between tests."""
    config_mod._config_path_override = None
    clear_settings_cache()
    yield
    config_mod._config_path_override = None
    clear_settings_cache()


@pytest.fixture
def forms_dir():
    return FORMS_DIR


@pytest.fixture
def templates_dir():
    return FILES_DIR / "templates"


@pytest.fixture
def settings():
    return Settings(secret_key="test-secret")


@pytest.fixture
def load_form(settings):
    """Factory fixture that parses a file from tests/files/form/."""

    def _load(name: str, **kwargs) -> Form:
        kwargs.setdefault("settings", settings)
        return Form(FORMS_DIR / name, **kwargs)

    return _load


@pytest.fixture
def make_form(settings):
    """Factory fixture that parses literal markup."""

    def _make(markup: str, **kwargs) -> Form:
        kwargs.setdefault("settings", settings)
        return Form(markup, **kwargs)

    return _make


@pytest.fixture
def temp_config_yaml(tmp_path):
    """Create a temporary markform.yaml file for testing."""
    config_path = tmp_path / "markform.yaml"

    def _create_config(config: dict):
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        return config_path

    return _create_config

