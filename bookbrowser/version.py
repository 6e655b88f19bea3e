"""Version string reported in logs, the CLI and the HTTP index."""

__version__ = "dev"
