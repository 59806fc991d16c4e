"""Symbol indexer: tokenizer, declaration scanner, index and cache."""

from __future__ import annotations

from classmap.indexer.cache import CacheStore, cache_key
from classmap.indexer.index import RETRY_LIMIT, IndexSession, SymbolIndex
from classmap.indexer.lexer import PhpLexer, Token, TokenKind
from classmap.indexer.models import CacheSnapshot, SymbolEntry
from classmap.indexer.scanner import SymbolScanner

__all__ = [
    "RETRY_LIMIT",
    "CacheSnapshot",
    "CacheStore",
    "IndexSession",
    "PhpLexer",
    "SymbolEntry",
    "SymbolIndex",
    "SymbolScanner",
    "Token",
    "TokenKind",
    "cache_key",
]
