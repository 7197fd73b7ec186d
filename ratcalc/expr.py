"""
Expression model for RATCALC.

Expressions are immutable, structurally compared values. A tree is made of
a closed set of node types:

    Number(Fraction(3, 4))                    3÷4
    Name("x")                                 x
    Boolean(True)                             true
    Tuple((Name("a"), Name("b")))             (a, b)
    Assign(Name("x"), Number(5))              x := 5
    BinaryExpr(Name("x"), Op.ADD, Number(1))  x + 1

Rewrites never mutate a tree; they build a new one.
"""

from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Any, Callable, List, Optional, Union

from .errors import NumberTooLarge
from .rational import format_decimal, is_integer


class Op(Enum):
    """Binary operators with their display symbol and (left, right) binding power."""

    ADD = ("+", 6, 6)
    SUBTRACT = ("−", 6, 6)
    MULTIPLY = ("∙", 7, 7)
    ADJACENT = ("", 7, 7)
    DIVIDE = ("÷", 7, 7)
    MODULUS = ("%", 7, 7)
    EXPONENT = ("^", 10, 9)
    EQUALS = ("=", 3, 3)

    def __init__(self, symbol: str, left_power: int, right_power: int):
        self.symbol = symbol
        self.left_power = left_power
        self.right_power = right_power

    @property
    def precedence(self) -> int:
        return self.left_power

    @property
    def right_associative(self) -> bool:
        return self.right_power < self.left_power

    def __repr__(self) -> str:
        return f"Op.{self.name}"


# Unary minus binds tighter than * but looser than ^
UNARY_MINUS_POWER = 8

# Precedence of anything that never needs parentheses
ATOM_PRECEDENCE = 100

# Operators that may be regrouped on their right side without changing meaning
_REGROUPABLE = {
    Op.ADD: {Op.ADD, Op.SUBTRACT},
    Op.MULTIPLY: {Op.MULTIPLY, Op.ADJACENT, Op.DIVIDE},
    Op.ADJACENT: {Op.MULTIPLY, Op.ADJACENT, Op.DIVIDE},
}


class _Node:
    __slots__ = ()

    def __str__(self) -> str:
        return format_expr(self)


@dataclass(frozen=True)
class Number(_Node):
    """Exact rational constant."""
    value: Fraction

    def __post_init__(self):
        if not isinstance(self.value, Fraction):
            object.__setattr__(self, "value", Fraction(self.value))


@dataclass(frozen=True)
class Name(_Node):
    """Identifier, free or bound in a scope."""
    name: str


@dataclass(frozen=True)
class Boolean(_Node):
    value: bool


@dataclass(frozen=True)
class Tuple(_Node):
    """Ordered sequence of expressions. The empty tuple is the empty statement."""
    items: tuple = ()

    def __post_init__(self):
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class Assign(_Node):
    target: "Expr"
    value: "Expr"


@dataclass(frozen=True, eq=False)
class BinaryExpr(_Node):
    left: "Expr"
    op: Op
    right: "Expr"

    # Chains may be far deeper than the recursion limit, so comparison and
    # hashing walk the tree with an explicit stack
    def __eq__(self, other):
        if not isinstance(other, BinaryExpr):
            return NotImplemented
        pending = [(self, other)]
        while pending:
            a, b = pending.pop()
            if a is b:
                continue
            if compound(a) and compound(b):
                if a.op is not b.op:
                    return False
                pending.append((a.right, b.right))
                pending.append((a.left, b.left))
            elif compound(a) or compound(b) or a != b:
                return False
        return True

    def __hash__(self):
        # Prefix order with operators is unambiguous for binary nodes
        parts = []
        stack = [self]
        while stack:
            node = stack.pop()
            if compound(node):
                parts.append(node.op)
                stack.append(node.right)
                stack.append(node.left)
            else:
                parts.append(node)
        return hash(tuple(parts))


Expr = Union[Number, Name, Boolean, Tuple, Assign, BinaryExpr]


# ============================================================
# Predicates
# ============================================================

def constant(exp: Expr) -> bool:
    """Check if an expression is a numeric constant."""
    return isinstance(exp, Number)


def variable(exp: Expr) -> bool:
    """Check if an expression is a name."""
    return isinstance(exp, Name)


def compound(exp: Expr) -> bool:
    """Check if an expression is a binary operation."""
    return isinstance(exp, BinaryExpr)


def is_op(exp: Expr, op: Op) -> bool:
    """Check if an expression is a binary operation with the given operator."""
    return compound(exp) and exp.op is op


# ============================================================
# Traversal
# ============================================================

def children(exp: Expr, targets: bool = True) -> tuple:
    """Direct subexpressions in display order. Assignment targets are
    left out when `targets` is False."""
    if compound(exp):
        return (exp.left, exp.right)
    if isinstance(exp, Tuple):
        return exp.items
    if isinstance(exp, Assign):
        return (exp.target, exp.value) if targets else (exp.value,)
    return ()


def with_children(exp: Expr, kids: List[Expr]) -> Expr:
    """Copy of a node with its subexpressions replaced, in the order
    children() lists them."""
    if compound(exp):
        return BinaryExpr(kids[0], exp.op, kids[1])
    if isinstance(exp, Tuple):
        return Tuple(tuple(kids))
    if isinstance(exp, Assign):
        if len(kids) == 1:
            return Assign(exp.target, kids[0])
        return Assign(kids[0], kids[1])
    return exp


def postorder(
    exp: Expr,
    combine: Callable[[Expr, List[Any]], Any],
    targets: bool = True,
) -> Any:
    """
    Fold a tree bottom-up without recursion.

    combine(node, results) runs once per node, after all of its children,
    and receives the list of their results.

    Example:
        postorder(E("a + b ∙ c"), lambda node, kids: 1 + sum(kids))  # => 5
    """
    results: List[Any] = []
    stack = [(exp, False)]
    while stack:
        node, ready = stack.pop()
        kids = children(node, targets)
        if ready:
            start = len(results) - len(kids)
            args = results[start:]
            del results[start:]
            results.append(combine(node, args))
        else:
            stack.append((node, True))
            stack.extend((kid, False) for kid in reversed(kids))
    return results[0]


# ============================================================
# Rendering
# ============================================================

def _precedence(exp: Expr) -> int:
    if compound(exp):
        return exp.op.precedence
    if constant(exp):
        precedence = ATOM_PRECEDENCE
        if exp.value < 0:
            precedence = UNARY_MINUS_POWER
        if not is_integer(exp.value):
            # p÷q reads back as a division
            precedence = min(precedence, Op.DIVIDE.precedence)
        return precedence
    if isinstance(exp, Assign):
        return 0
    return ATOM_PRECEDENCE


def _operator_of(exp: Expr) -> Optional[Op]:
    if compound(exp):
        return exp.op
    if constant(exp) and not is_integer(exp.value):
        return Op.DIVIDE
    return None


def _needs_parens(child: Expr, parent: Op, right_side: bool) -> bool:
    """Decide whether a child must be parenthesized under a parent operator."""
    if parent is Op.ADJACENT and constant(child) and child.value < 0:
        # "a (-1)", never "a -1"
        return True

    child_precedence = _precedence(child)
    if child_precedence < parent.precedence:
        return True
    if child_precedence > parent.precedence:
        return False

    # Equal precedence: only the associative side may drop parentheses
    if not right_side:
        return parent.right_associative
    if parent.right_associative:
        return False
    return _operator_of(child) not in _REGROUPABLE.get(parent, set())


def format_number(value: Fraction) -> str:
    """
    Render an exact number as "n" or "p÷q".

    Raises:
        NumberTooLarge: more digits than the interpreter converts to text
    """
    try:
        if is_integer(value):
            return str(value.numerator)
        return f"{value.numerator}{Op.DIVIDE.symbol}{value.denominator}"
    except ValueError:
        bits = max(value.numerator.bit_length(), value.denominator.bit_length())
        raise NumberTooLarge(bits) from None


def _render(exp: Expr, parts: List[str]) -> str:
    if constant(exp):
        return format_number(exp.value)
    if variable(exp):
        return exp.name
    if isinstance(exp, Boolean):
        return "true" if exp.value else "false"
    if isinstance(exp, Tuple):
        return "(" + ", ".join(parts) + ")"
    if isinstance(exp, Assign):
        return f"{parts[0]} := {parts[1]}"
    if compound(exp):
        left, right = parts
        if _needs_parens(exp.left, exp.op, right_side=False):
            left = f"({left})"
        if _needs_parens(exp.right, exp.op, right_side=True):
            right = f"({right})"

        if exp.op is Op.ADJACENT:
            return f"{left} {right}"
        if exp.op is Op.EXPONENT:
            return f"{left}^{right}"
        return f"{left} {exp.op.symbol} {right}"
    raise TypeError(f"not an expression: {exp!r}")


def format_expr(exp: Expr) -> str:
    """
    Render an expression in canonical symbolic form.

    Parentheses are inserted only where a child would otherwise bind
    differently when read back.

    Examples:
        BinaryExpr(Name("a"), Op.ADD, Name("b"))             -> "a + b"
        BinaryExpr(Number(2), Op.ADJACENT, Name("x"))        -> "2 x"
        BinaryExpr(Name("x"), Op.EXPONENT, Number(Fraction(1, 2)))
                                                             -> "x^(1÷2)"
    """
    return postorder(exp, _render)


def format_approximation(exp: Expr, precision: int = 5) -> Optional[str]:
    """
    Decimal rendering of a non-integer number, or None for anything else.

    Example:
        format_approximation(Number(Fraction(2, 3))) -> "0.66666…"
    """
    if constant(exp) and not is_integer(exp.value):
        return format_decimal(exp.value, precision)
    return None
