import logging

import pytest
from rich.logging import RichHandler

from p2pchat.config import ClientSettings, configure_logging
from p2pchat.main import parse_args
from p2pchat.network.transport import DEFAULT_BACKEND_URI


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_defaults():
    settings = ClientSettings.from_env({})

    assert settings.backend_uri == DEFAULT_BACKEND_URI
    assert settings.splash_duration == 1.8
    assert settings.log_level == "WARNING"
    assert settings.log_file is None


def test_environment_overrides():
    settings = ClientSettings.from_env({
        "P2PCHAT_BACKEND_URI": "ws://node.local:9000",
        "P2PCHAT_SPLASH_SECONDS": "0.5",
        "P2PCHAT_LOG_LEVEL": "debug",
        "P2PCHAT_HISTORY": "10",
    })

    assert settings.backend_uri == "ws://node.local:9000"
    assert settings.splash_duration == 0.5
    assert settings.log_level == "DEBUG"
    assert settings.history_window == 10


def test_flags_override_environment():
    env = ClientSettings.from_env({"P2PCHAT_BACKEND_URI": "ws://env:1"})

    settings = parse_args(["--backend", "ws://flag:2", "--splash", "0", "--log-level", "info"], settings=env)

    assert settings.backend_uri == "ws://flag:2"
    assert settings.splash_duration == 0.0
    assert settings.log_level == "INFO"


def test_file_logging(tmp_path):
    log_file = tmp_path / "client.log"
    configure_logging(ClientSettings(log_level="INFO", log_file=str(log_file)))

    logging.getLogger("p2pchat.test").info("session mounted")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "session mounted" in log_file.read_text()


def test_console_logging_uses_rich():
    configure_logging(ClientSettings())

    assert any(isinstance(h, RichHandler) for h in logging.getLogger().handlers)
