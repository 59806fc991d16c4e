"""File search: glob mask compilation, search plans, and lazy directory walking."""

from __future__ import annotations

from classmap.finder.finder import Finder
from classmap.finder.patterns import Mask, PathMatcher, compile_mask, is_absolute
from classmap.finder.plan import SearchPlanBuilder, build_exclude_filter
from classmap.finder.walker import DirectoryWalker, FileRecord

__all__ = [
    "DirectoryWalker",
    "FileRecord",
    "Finder",
    "Mask",
    "PathMatcher",
    "SearchPlanBuilder",
    "build_exclude_filter",
    "compile_mask",
    "is_absolute",
]
