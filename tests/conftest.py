"""Shared fixtures for enkai tests."""

import logging
import os
from unittest.mock import MagicMock

import pytest
import yaml

import enkai.config as config_module
import enkai.logger as logger_module
import enkai.theme as theme_module


@pytest.fixture(autouse=True)
def isolated_home(tmp_path_factory, monkeypatch):
    """Keep the global config, log file and env overrides out of every test."""
    home = tmp_path_factory.mktemp("enkai-home")
    monkeypatch.setattr(config_module, "CONFIG_DIR", home)
    monkeypatch.setattr(config_module, "CONFIG_FILE", home / "config.yml")
    monkeypatch.setattr(logger_module, "DEFAULT_LOG_FILE", home / "logs" / "enkai.log")
    monkeypatch.setattr(theme_module, "_current_theme", None)
    for var in ("ENKAI_MODEL", "ENKAI_VERBOSE", "ENKAI_CONCURRENCY"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop handlers the CLI attaches, they hold streams CliRunner closes."""
    yield
    logger = logging.getLogger("enkai")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary directory and cd into it."""
    orig = os.getcwd()
    os.chdir(tmp_path)
    yield tmp_path
    os.chdir(orig)


@pytest.fixture
def sample_config_data():
    """Minimal .enkai.conf.yml data dict."""
    return {
        "active-model": "local",
        "concurrency": 3,
        "price-tier": "premium",
        "average-output-tokens": 800,
        "use-preamble": False,
        "report-dir": "",
        "theme": "github_dark",
        "verbose": False,
        "routing": {"complex": "big"},
        "models": {
            "local": {
                "provider": "openai",
                "model": "openai/model",
                "description": "Local test model",
                "temperature": 0.0,
                "max-tokens": 4096,
                "api-base": "http://localhost:8080/v1",
                "api-key": "not-needed",
            },
            "big": {
                "provider": "openai",
                "model": "openai/big-model",
                "description": "Slow model for complex tasks",
                "concurrency": 1,
                "api-key": "not-needed",
            },
        },
    }


@pytest.fixture
def config_yaml_file(tmp_dir, sample_config_data):
    """Write a config YAML to tmp_dir and return its Path."""
    path = tmp_dir / ".enkai.conf.yml"
    with open(path, "w") as f:
        yaml.dump(sample_config_data, f, default_flow_style=False)
    return path


@pytest.fixture
def mock_console():
    """A mock Rich Console that silently accepts all print calls."""
    c = MagicMock()
    c.print = MagicMock()
    return c
