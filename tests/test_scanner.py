"""Tests for the PHP lexer and symbol scanner."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from classmap.exceptions import ScanError
from classmap.indexer import PhpLexer, SymbolScanner, TokenKind


@pytest.fixture(scope="module")
def lexer() -> PhpLexer:
    return PhpLexer()


@pytest.fixture
def scanner(lexer: PhpLexer) -> SymbolScanner:
    return SymbolScanner(strict=True, lexer=lexer)


def _scan(scanner: SymbolScanner, code: str) -> list[str]:
    return scanner.scan_source(code.encode("utf-8"), "test.php")


class TestPhpLexer:
    def test_token_kinds(self, lexer: PhpLexer) -> None:
        tokens = lexer.tokenize(b"<?php\nnamespace A\\B;\n// class Fake\nclass C {}\n")
        kinds = [t.kind for t in tokens if t.kind is not TokenKind.OTHER]
        assert kinds == [
            TokenKind.NAMESPACE,
            TokenKind.IDENTIFIER,
            TokenKind.COMMENT,
            TokenKind.DECLARATION,
            TokenKind.IDENTIFIER,
            TokenKind.BRACE_OPEN,
            TokenKind.BRACE_CLOSE,
        ]

    def test_qualified_name_is_one_token(self, lexer: PhpLexer) -> None:
        tokens = lexer.tokenize(b"<?php\nnamespace Vendor\\Package\\Sub;\n")
        identifiers = [t.text for t in tokens if t.kind is TokenKind.IDENTIFIER]
        assert identifiers == ["Vendor\\Package\\Sub"]

    def test_syntax_error(self, lexer: PhpLexer) -> None:
        with pytest.raises(ScanError, match="Syntax error in broken.php on line") as exc_info:
            lexer.tokenize(b"<?php\n\nclass {\n", "broken.php")
        assert exc_info.value.path == "broken.php"


class TestSymbolScanner:
    def test_namespaced_class(self, scanner: SymbolScanner) -> None:
        code = "<?php\nnamespace App\\Models;\n\nclass User extends Model {}\n"
        assert _scan(scanner, code) == ["App\\Models\\User"]

    def test_global_namespace(self, scanner: SymbolScanner) -> None:
        assert _scan(scanner, "<?php\nclass Foo {}\ninterface Bar {}\n") == ["Foo", "Bar"]

    def test_all_declaration_kinds(self, scanner: SymbolScanner) -> None:
        code = """<?php
namespace Kinds;

abstract class Base {}
interface Contract {}
trait Helpers {}
enum Suit: string
{
    case Hearts = 'H';
}
"""
        assert _scan(scanner, code) == [
            "Kinds\\Base",
            "Kinds\\Contract",
            "Kinds\\Helpers",
            "Kinds\\Suit",
        ]

    def test_multiple_namespaces(self, scanner: SymbolScanner) -> None:
        code = "<?php\nnamespace A;\nclass X {}\nnamespace B;\nclass Y {}\n"
        assert _scan(scanner, code) == ["A\\X", "B\\Y"]

    def test_braced_namespaces(self, scanner: SymbolScanner) -> None:
        code = """<?php
namespace First {
    class One {}
}
namespace {
    class Root {}
}
"""
        assert _scan(scanner, code) == ["First\\One", "Root"]

    def test_nested_declarations_are_ignored(self, scanner: SymbolScanner) -> None:
        code = """<?php
class Outer
{
    public function make(): object
    {
        return new class {
            public function run(): void {}
        };
    }
}

function factory(): void
{
    if (!class_exists('Late')) {
        class Late {}
    }
}
"""
        assert _scan(scanner, code) == ["Outer"]

    def test_anonymous_class_at_top_level(self, scanner: SymbolScanner) -> None:
        code = "<?php\n$handler = new class {};\nclass Named {}\n"
        assert _scan(scanner, code) == ["Named"]

    def test_keywords_in_strings_and_comments(self, scanner: SymbolScanner) -> None:
        code = """<?php
/* class Hidden {} */
$text = "class Quoted {}";
$name = Foo::class;
# interface AlsoHidden {}
class Visible {}
"""
        assert _scan(scanner, code) == ["Visible"]

    def test_string_interpolation_braces(self, scanner: SymbolScanner) -> None:
        code = '<?php\n$a = "{$b->c} ${d}";\nclass AfterInterpolation {}\n'
        assert _scan(scanner, code) == ["AfterInterpolation"]

    def test_duplicates_are_reported_once(self, scanner: SymbolScanner) -> None:
        code = "<?php\nnamespace A;\nclass X {}\nnamespace A;\nclass X {}\n"
        assert _scan(scanner, code) == ["A\\X"]

    def test_no_declarations(self, scanner: SymbolScanner) -> None:
        assert _scan(scanner, "<?php\nfunction helper() {}\n") == []

    def test_inline_html(self, scanner: SymbolScanner) -> None:
        code = "<html><?php class InTemplate {} ?></html>\n"
        assert _scan(scanner, code) == ["InTemplate"]


class TestScanFile:
    def test_scan_file(
        self, tmp_path: Path, scanner: SymbolScanner, write_file: Callable[[Path, str], Path]
    ) -> None:
        path = write_file(tmp_path / "User.php", "<?php\nclass User {}\n")
        assert scanner.scan(path) == ["User"]

    def test_single_file_adds_base_name(
        self, tmp_path: Path, scanner: SymbolScanner, write_file: Callable[[Path, str], Path]
    ) -> None:
        path = write_file(tmp_path / "helpers.php", "<?php\nfunction helper() {}\n")
        assert scanner.scan(path) == []
        assert scanner.scan(path, single_file=True) == ["helpers"]

    def test_single_file_base_name_not_duplicated(
        self, tmp_path: Path, scanner: SymbolScanner, write_file: Callable[[Path, str], Path]
    ) -> None:
        path = write_file(tmp_path / "Config.php", "<?php\nclass Config {}\n")
        assert scanner.scan(path, single_file=True) == ["Config"]

    def test_strict_parse_error(
        self, tmp_path: Path, scanner: SymbolScanner, write_file: Callable[[Path, str], Path]
    ) -> None:
        path = write_file(tmp_path / "Broken.php", "<?php\nclass Broken {\n")
        with pytest.raises(ScanError):
            scanner.scan(path)

    def test_lenient_parse_error(
        self, tmp_path: Path, lexer: PhpLexer, write_file: Callable[[Path, str], Path]
    ) -> None:
        path = write_file(tmp_path / "Broken.php", "<?php\nclass Broken {\n")
        lenient = SymbolScanner(strict=False, lexer=lexer)
        assert lenient.scan(path) == []
        assert lenient.scan(path, single_file=True) == ["Broken"]

    def test_unreadable_file(self, tmp_path: Path, scanner: SymbolScanner) -> None:
        with pytest.raises(ScanError, match="Cannot read"):
            scanner.scan(tmp_path / "missing.php")
