"""
Tokenizer for RATCALC input lines.

Turns one line of text into a list of tokens:

    tokenize("2 x + 1/3")
    -> [Token(NUMBER, Fraction(2), 0), Token(NAME, "x", 2),
        Token(PLUS, "+", 4), Token(NUMBER, Fraction(1), 6),
        Token(SLASH, "/", 7), Token(NUMBER, Fraction(3), 8)]

Number literals are exact: "0.1" is Fraction(1, 10), never a float.
"""

from enum import Enum
from fractions import Fraction
from typing import List, NamedTuple, Union

from .errors import LexError
from .rational import parse_literal

DIGITS = "0123456789"


class TokenType(Enum):
    NUMBER = "NUMBER"
    NAME = "NAME"
    PLUS = "+"
    MINUS = "−"
    STAR = "∙"
    SLASH = "÷"
    PERCENT = "%"
    CARET = "^"
    EQUALS = "="
    ASSIGN = ":="
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","


class Token(NamedTuple):
    type: TokenType
    value: Union[Fraction, str]
    position: int

    def __str__(self) -> str:
        if self.type is TokenType.NUMBER:
            return str(self.value)
        return self.value


# Single-character tokens, including Unicode and ASCII spellings
SINGLE_CHAR_TOKENS = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "−": TokenType.MINUS,
    "*": TokenType.STAR,
    "∙": TokenType.STAR,
    "·": TokenType.STAR,
    "×": TokenType.STAR,
    "/": TokenType.SLASH,
    "÷": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "^": TokenType.CARET,
    "=": TokenType.EQUALS,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ",": TokenType.COMMA,
}


def _scan_number(text: str, start: int) -> int:
    """Return the index just past the number literal starting at `start`."""
    i = start
    seen_point = False
    while i < len(text):
        c = text[i]
        if c in DIGITS or (c == "_" and i > start):
            i += 1
        elif c == ".":
            if seen_point:
                raise LexError(c, i)
            seen_point = True
            i += 1
        else:
            break
    return i


def tokenize(text: str) -> List[Token]:
    """
    Split a line of text into tokens.

    Raises:
        LexError: on any character that cannot start a token
    """
    tokens: List[Token] = []
    i = 0

    while i < len(text):
        c = text[i]

        if c.isspace():
            i += 1
            continue

        if c in DIGITS or (c == "." and i + 1 < len(text) and text[i + 1] in DIGITS):
            end = _scan_number(text, i)
            tokens.append(Token(TokenType.NUMBER, parse_literal(text[i:end]), i))
            i = end
            continue

        if c.isalpha():
            end = i
            while end < len(text) and text[end].isalpha():
                end += 1
            tokens.append(Token(TokenType.NAME, text[i:end], i))
            i = end
            continue

        if c == ":":
            if text[i + 1:i + 2] == "=":
                tokens.append(Token(TokenType.ASSIGN, ":=", i))
                i += 2
                continue
            raise LexError(c, i)

        if c in SINGLE_CHAR_TOKENS:
            tokens.append(Token(SINGLE_CHAR_TOKENS[c], c, i))
            i += 1
            continue

        raise LexError(c, i)

    return tokens
