import logging
import os
from dataclasses import dataclass
from typing import Optional

from rich.logging import RichHandler

from p2pchat.core.bootstrap import SPLASH_DURATION
from p2pchat.network.transport import DEFAULT_BACKEND_URI

LOG_FORMAT = "%(asctime)s - %(message)s"
ENV_PREFIX = "P2PCHAT_"


@dataclass
class ClientSettings:
    backend_uri: str = DEFAULT_BACKEND_URI
    splash_duration: float = SPLASH_DURATION
    log_level: str = "WARNING"
    log_file: Optional[str] = None
    history_window: int = 50

    @classmethod
    def from_env(cls, environ=None) -> "ClientSettings":
        """Defaults overridden by P2PCHAT_* variables."""
        environ = os.environ if environ is None else environ
        settings = cls()
        if environ.get(ENV_PREFIX + "BACKEND_URI"):
            settings.backend_uri = environ[ENV_PREFIX + "BACKEND_URI"]
        if environ.get(ENV_PREFIX + "SPLASH_SECONDS"):
            settings.splash_duration = float(environ[ENV_PREFIX + "SPLASH_SECONDS"])
        if environ.get(ENV_PREFIX + "LOG_LEVEL"):
            settings.log_level = environ[ENV_PREFIX + "LOG_LEVEL"].upper()
        if environ.get(ENV_PREFIX + "LOG_FILE"):
            settings.log_file = environ[ENV_PREFIX + "LOG_FILE"]
        if environ.get(ENV_PREFIX + "HISTORY"):
            settings.history_window = int(environ[ENV_PREFIX + "HISTORY"])
        return settings


def configure_logging(settings: ClientSettings, console=None):
    # No plaintext message content is ever logged, only ids and states
    if settings.log_file:
        handler = logging.FileHandler(settings.log_file)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))

    logging.basicConfig(level=settings.log_level, handlers=[handler], force=True)
