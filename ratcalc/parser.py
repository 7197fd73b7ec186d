"""
Precedence-climbing parser for RATCALC.

Turns a token list into an expression tree. Each binary operator has a
(left, right) binding power:

    =           (3, 3)
    + −         (6, 6)
    ∙ ÷ %       (7, 7)
    ^           (10, 9)   right-associative
    unary −     8         -x parses as 0 − x

Two primaries written side by side multiply implicitly: "2 x" and "3(4)"
parse as ADJACENT products, binding like ∙.

Statements:
    expr                 -> expr
    name := expr         -> Assign(name, expr)
    (empty)              -> Tuple(())
"""

import logging
from typing import List, Optional

from .errors import AssignTargetError, ParseError
from .expr import (
    Assign, BinaryExpr, Boolean, Expr, Name, Number, Op, Tuple,
    UNARY_MINUS_POWER, variable,
)
from .tokenizer import Token, TokenType, tokenize

logger = logging.getLogger(__name__)

BINARY_OPERATORS = {
    TokenType.PLUS: Op.ADD,
    TokenType.MINUS: Op.SUBTRACT,
    TokenType.STAR: Op.MULTIPLY,
    TokenType.SLASH: Op.DIVIDE,
    TokenType.PERCENT: Op.MODULUS,
    TokenType.CARET: Op.EXPONENT,
    TokenType.EQUALS: Op.EQUALS,
}

# Tokens that can begin a primary; seeing one after an operand means
# implicit multiplication
PRIMARY_STARTS = {TokenType.NUMBER, TokenType.NAME, TokenType.LPAREN}

BOOLEAN_NAMES = {"true": True, "false": False}


class TokenStream:
    """Cursor over a token list with one token of lookahead."""

    def __init__(self, tokens: List[Token]):
        self._tokens = tokens
        self._index = 0

    def peek(self) -> Optional[Token]:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def next(self) -> Optional[Token]:
        token = self.peek()
        if token is not None:
            self._index += 1
        return token

    def at_end(self) -> bool:
        return self._index >= len(self._tokens)


def _unexpected(token: Token) -> ParseError:
    return ParseError(f"unexpected token '{token}' at position {token.position}", token)


def _unterminated() -> ParseError:
    return ParseError("unterminated expression")


def parse(tokens: List[Token]) -> Expr:
    """
    Parse a complete statement.

    Raises:
        ParseError: unexpected or missing token
        AssignTargetError: left side of := is not a name
    """
    stream = TokenStream(tokens)
    if stream.at_end():
        return Tuple()

    expr = parse_expression(stream, 0)

    token = stream.peek()
    if token is not None and token.type is TokenType.ASSIGN:
        if not variable(expr):
            raise AssignTargetError(expr)
        stream.next()
        expr = Assign(expr, parse_expression(stream, 0))
        token = stream.peek()

    if token is not None:
        raise _unexpected(token)

    logger.debug("parsed %s", expr)
    return expr


def parse_text(text: str) -> Expr:
    """Tokenize and parse a line of text."""
    return parse(tokenize(text))


def parse_expression(stream: TokenStream, min_power: int = 0) -> Expr:
    """Parse operators binding tighter than min_power."""
    left = parse_prefix(stream)

    while True:
        token = stream.peek()
        if token is None:
            break

        if token.type in BINARY_OPERATORS:
            op = BINARY_OPERATORS[token.type]
        elif token.type in PRIMARY_STARTS:
            op = Op.ADJACENT
        else:
            # ")", "," or ":=" end this expression
            break

        if op.left_power <= min_power:
            break

        if op is not Op.ADJACENT:
            stream.next()
        right = parse_expression(stream, op.right_power)
        left = BinaryExpr(left, op, right)

    return left


def parse_prefix(stream: TokenStream) -> Expr:
    """Parse a primary or a unary minus."""
    token = stream.next()
    if token is None:
        raise _unterminated()

    if token.type is TokenType.NUMBER:
        return Number(token.value)

    if token.type is TokenType.NAME:
        if token.value in BOOLEAN_NAMES:
            return Boolean(BOOLEAN_NAMES[token.value])
        return Name(token.value)

    if token.type is TokenType.MINUS:
        operand = parse_expression(stream, UNARY_MINUS_POWER)
        return BinaryExpr(Number(0), Op.SUBTRACT, operand)

    if token.type is TokenType.LPAREN:
        return parse_group(stream)

    raise _unexpected(token)


def parse_group(stream: TokenStream) -> Expr:
    """
    Parse the inside of a parenthesized group (the "(" is consumed).

    ()        -> Tuple(())
    (a)       -> a
    (a, b)    -> Tuple((a, b))
    """
    token = stream.peek()
    if token is not None and token.type is TokenType.RPAREN:
        stream.next()
        return Tuple()

    items = [parse_expression(stream, 0)]
    while True:
        token = stream.peek()
        if token is None or token.type is not TokenType.COMMA:
            break
        stream.next()
        items.append(parse_expression(stream, 0))

    token = stream.next()
    if token is None:
        raise _unterminated()
    if token.type is not TokenType.RPAREN:
        raise _unexpected(token)

    if len(items) == 1:
        return items[0]
    return Tuple(tuple(items))
