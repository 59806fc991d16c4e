"""classmap: persistent, incrementally refreshed index of PHP symbols."""

from __future__ import annotations

from classmap.config import LoaderConfig, load_config
from classmap.finder import Finder
from classmap.loader import Loader

__version__ = "0.1.0"

__all__ = [
    "Finder",
    "Loader",
    "LoaderConfig",
    "__version__",
    "load_config",
]
