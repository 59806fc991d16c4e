"""Extraction of top-level type declarations from PHP source files."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from classmap.exceptions import ScanError
from classmap.indexer.lexer import PhpLexer, TokenKind

console = Console(stderr=True)

_SKIPPED = frozenset({TokenKind.COMMENT, TokenKind.WHITESPACE})


class SymbolScanner:
    """Finds classes, interfaces, traits and enums declared in a file.

    Only declarations at the file's top nesting level are reported, prefixed
    with the enclosing namespace (``App\\Models\\User``).

    Usage::

        scanner = SymbolScanner(strict=True)
        names = scanner.scan(Path("src/User.php"))
    """

    def __init__(self, strict: bool = True, lexer: PhpLexer | None = None) -> None:
        """Initialize the scanner.

        Args:
            strict: Raise ScanError for unreadable or malformed files instead
                of treating them as declaring nothing.
            lexer: Tokenizer to use; a new PhpLexer by default.
        """
        self._strict = strict
        self._lexer = lexer or PhpLexer()

    def scan(self, path: Path, single_file: bool = False) -> list[str]:
        """Return the symbols declared in ``path``.

        Args:
            path: Source file to scan.
            single_file: Also report the file's base name (without extension)
                so it resolves by filename.

        Raises:
            ScanError: If strict and the file cannot be read or parsed.
        """
        try:
            symbols = self.scan_source(path.read_bytes(), path)
        except OSError as exc:
            symbols = self._failed(ScanError(f"Cannot read {path}: {exc}", path=path))
        except ScanError as exc:
            symbols = self._failed(exc)

        if single_file and path.stem not in symbols:
            symbols.append(path.stem)
        return symbols

    def scan_source(self, source: bytes, path: Path | str | None = None) -> list[str]:
        """Return the symbols declared in raw source text.

        Raises:
            ScanError: If the source cannot be tokenized.
        """
        expected: TokenKind | None = None
        namespace = name = ""
        level = min_level = 0
        symbols: list[str] = []

        for token in self._lexer.tokenize(source, path):
            kind = token.kind
            if kind in _SKIPPED:
                continue
            if kind is TokenKind.IDENTIFIER:
                if expected is not None:
                    name += token.text
                continue
            if kind is TokenKind.NAMESPACE or kind is TokenKind.DECLARATION:
                expected = kind
                name = ""
                continue

            if expected is TokenKind.NAMESPACE:
                namespace = f"{name}\\" if name else ""
                min_level = 1 if kind is TokenKind.BRACE_OPEN else 0
            elif expected is TokenKind.DECLARATION and name and level == min_level:
                if namespace + name not in symbols:
                    symbols.append(namespace + name)
            expected = None

            if kind is TokenKind.BRACE_OPEN:
                level += 1
            elif kind is TokenKind.BRACE_CLOSE:
                level -= 1

        return symbols

    def _failed(self, exc: ScanError) -> list[str]:
        if self._strict:
            raise exc
        console.print(f"[yellow]Warning[/yellow]: Skipping {exc.path}: {exc}")
        return []
