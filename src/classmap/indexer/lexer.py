"""PHP token stream built on tree-sitter.

The syntax tree is flattened into the few token kinds symbol scanning
cares about. Qualified names are kept whole, and whitespace never appears
because tree-sitter drops it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tree_sitter as ts
import tree_sitter_php

from classmap.exceptions import ScanError


class TokenKind(enum.Enum):
    NAMESPACE = "namespace"
    DECLARATION = "declaration"
    IDENTIFIER = "identifier"
    BRACE_OPEN = "brace_open"
    BRACE_CLOSE = "brace_close"
    COMMENT = "comment"
    WHITESPACE = "whitespace"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexical token.

    Attributes:
        kind: Token category.
        text: Source text of the token.
    """

    kind: TokenKind
    text: str


_DECLARATION_KEYWORDS = frozenset({"class", "interface", "trait", "enum"})
_IDENTIFIER_NODES = frozenset({"name", "namespace_name", "qualified_name"})
# Leaves for scanning purposes even though tree-sitter gives them children.
_OPAQUE_NODES = frozenset({"variable_name"})
# "${" opens an interpolation block inside double-quoted strings.
_OPEN_BRACES = frozenset({"{", "${"})


class PhpLexer:
    """Tokenizes PHP source with the tree-sitter PHP grammar."""

    def __init__(self) -> None:
        self._language = ts.Language(tree_sitter_php.language_php())
        self._parser = ts.Parser()
        self._parser.language = self._language

    def tokenize(self, source: bytes, path: Path | str | None = None) -> list[Token]:
        """Return the ordered token stream of ``source``.

        Args:
            source: Raw file contents.
            path: File the source came from, attached to errors.

        Raises:
            ScanError: If the source contains syntax errors.
        """
        tree = self._parser.parse(source)
        root = tree.root_node
        if root.has_error:
            line = _first_error(root).start_point[0] + 1
            raise ScanError(f"Syntax error in {path or '<source>'} on line {line}", path=path)

        tokens: list[Token] = []
        stack: list[Any] = [root]
        while stack:
            node = stack.pop()
            token = self._token_for(node, source)
            if token is not None:
                tokens.append(token)
            else:
                stack.extend(reversed(node.children))
        return tokens

    @staticmethod
    def _token_for(node: Any, source: bytes) -> Token | None:
        """Map a node to a token, or None when its children should be visited."""
        node_type = node.type
        if node_type in _IDENTIFIER_NODES:
            return Token(TokenKind.IDENTIFIER, _node_text(node, source))
        if node_type == "comment":
            return Token(TokenKind.COMMENT, _node_text(node, source))
        if node_type in _OPAQUE_NODES:
            return Token(TokenKind.OTHER, _node_text(node, source))
        if node.child_count:
            return None

        text = _node_text(node, source)
        if node.is_named:
            return Token(TokenKind.OTHER, text)
        if node_type == "namespace":
            return Token(TokenKind.NAMESPACE, text)
        if node_type in _DECLARATION_KEYWORDS:
            return Token(TokenKind.DECLARATION, text)
        if node_type in _OPEN_BRACES:
            return Token(TokenKind.BRACE_OPEN, text)
        if node_type == "}":
            return Token(TokenKind.BRACE_CLOSE, text)
        return Token(TokenKind.OTHER, text)


def _first_error(node: Any) -> Any:
    """Return the first ERROR or MISSING node below ``node``."""
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            return _first_error(child)
    return node


def _node_text(node: Any, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")
