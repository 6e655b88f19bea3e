"""BookBrowser: a web-based eBook server for ePub and PDF collections."""

from .bootstrap import main, run
from .config import RuntimeConfig, load_config
from .logging import configure_logging
from .server import BookServer
from .version import __version__

__all__ = [
    "BookServer",
    "RuntimeConfig",
    "__version__",
    "configure_logging",
    "load_config",
    "main",
    "run",
]
