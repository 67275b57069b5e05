import os
import re
import logging
from enum import Enum
from typing import Iterator, NamedTuple, Optional
from xml.dom import minidom

import xml_writer
from compile_errors import LexError

logger = logging.getLogger(__name__)

KEYWORDS = frozenset(
    [
        "class",
        "constructor",
        "function",
        "method",
        "field",
        "static",
        "var",
        "int",
        "char",
        "boolean",
        "void",
        "true",
        "false",
        "null",
        "this",
        "let",
        "do",
        "if",
        "else",
        "while",
        "return",
    ]
)
SYMBOLS = frozenset("{}()[].,;+-*/&|<>=~")

# largest integer constant representable in a 16-bit two's complement word
MAX_INT = 32767

_INTEGER_RE = re.compile(r"[0-9]+")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class TokenType(Enum):
    KEYWORD = "keyword"
    SYMBOL = "symbol"
    INT_CONST = "integerConstant"
    STRING_CONST = "stringConstant"
    IDENTIFIER = "identifier"


class Token(NamedTuple):
    value: str
    type: TokenType
    line: int
    column: int

    @property
    def int_value(self) -> Optional[int]:
        if self.type is TokenType.INT_CONST:
            return int(self.value)
        return None


class Tokenizer:
    """
    Lazily splits the source text of one Jack compilation unit into tokens. Comments
    and whitespace are skipped. Keeps a single token of lookahead for the parser
    """

    def __init__(self, source: str, unit_name: str = ""):
        self.source = source
        self.unit_name = unit_name
        self._tokens = self._scan()
        self._lookahead = None

    @classmethod
    def from_file(cls, jack_fn: str) -> "Tokenizer":
        if not jack_fn.endswith(".jack"):
            raise ValueError(f"Target file {jack_fn} is not a jack file")
        with open(jack_fn) as f:
            source = f.read()
        unit_name = os.path.splitext(os.path.basename(jack_fn))[0]
        return cls(source, unit_name)

    def __iter__(self) -> Iterator[Token]:
        while self.has_more_tokens():
            yield self.advance()

    def has_more_tokens(self) -> bool:
        return self.peek() is not None

    def peek(self) -> Optional[Token]:
        if self._lookahead is None:
            self._lookahead = next(self._tokens, None)
        return self._lookahead

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise ValueError(f"No more tokens in {self.unit_name or '<input>'}")
        self._lookahead = None
        return token

    def _error(self, message: str, line: int, column: int) -> LexError:
        return LexError(message, self.unit_name, line, column)

    def _scan(self) -> Iterator[Token]:
        text = self.source
        length = len(text)
        pos = 0
        line = 1
        line_start = 0

        while pos < length:
            char = text[pos]
            column = pos - line_start + 1

            if char == "\n":
                pos += 1
                line += 1
                line_start = pos
                continue

            if char.isspace():
                pos += 1
                continue

            if text.startswith("//", pos):
                end = text.find("\n", pos)
                pos = length if end == -1 else end
                continue

            if text.startswith("/*", pos):
                end = text.find("*/", pos + 2)
                if end == -1:
                    raise self._error("Unterminated comment", line, column)
                comment = text[pos:end]
                if "\n" in comment:
                    line += comment.count("\n")
                    line_start = pos + comment.rfind("\n") + 1
                pos = end + 2
                continue

            if char in SYMBOLS:
                yield Token(char, TokenType.SYMBOL, line, column)
                pos += 1
                continue

            if char == '"':
                end = pos + 1
                while end < length and text[end] not in '"\n':
                    end += 1
                if end == length or text[end] == "\n":
                    raise self._error("Unterminated string constant", line, column)
                string = text[pos + 1 : end]
                # each character is pushed as an integer constant
                for offset, string_char in enumerate(string, start=1):
                    if ord(string_char) > MAX_INT:
                        raise self._error(
                            f"Character {string_char!r} in string constant is out "
                            f"of range (0..{MAX_INT})",
                            line,
                            column + offset,
                        )
                yield Token(string, TokenType.STRING_CONST, line, column)
                pos = end + 1
                continue

            match = _INTEGER_RE.match(text, pos)
            if match:
                digits = match.group()
                if int(digits) > MAX_INT:
                    raise self._error(
                        f"Integer constant {digits} is out of range (0..{MAX_INT})",
                        line,
                        column,
                    )
                yield Token(digits, TokenType.INT_CONST, line, column)
                pos = match.end()
                continue

            match = _IDENTIFIER_RE.match(text, pos)
            if match:
                word = match.group()
                if word in KEYWORDS:
                    yield Token(word, TokenType.KEYWORD, line, column)
                else:
                    yield Token(word, TokenType.IDENTIFIER, line, column)
                pos = match.end()
                continue

            raise self._error(f"Illegal character {char!r}", line, column)

        logger.debug("Tokenized %s: %d lines", self.unit_name or "<input>", line)


def tokens_to_xml(tokens) -> str:
    """Render tokens as the <tokens> XML listing"""
    document = minidom.Document()
    tokens_tag = document.createElement("tokens")
    document.appendChild(tokens_tag)
    for token in tokens:
        xml_writer.create_tag(document, tokens_tag, token.type.value, token.value)
    xml_writer.close_tag(document, tokens_tag)
    return xml_writer.to_xml_string(document)
