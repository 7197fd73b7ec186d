"""
Core rewriting passes for RATCALC.

Two deterministic passes turn a parsed tree into canonical form:

    normalize   rewrite −, ÷ and implicit products into +, ∙ and ^,
                and reshape every + / ∙ run into a right-nested chain
    simplify    collect like terms and fold numeric arithmetic inside
                each chain

    simplify(normalize(E("2 x + 3 x")))  # => 5 ∙ x

Constant folding is driven by a table of fold handlers keyed by operator,
so the exact arithmetic can be swapped or extended:

    folds = {**ARITHMETIC_FOLDS, Op.MODULUS: binary_only(my_mod)}
    simplify = simplifier(fold_funcs=folds)
"""

import logging
import operator
from collections import deque
from fractions import Fraction
from typing import Callable, Deque, Dict, List, Optional, Union

from . import config
from .errors import ChainLengthExceeded, DivisionByZero
from .expr import (
    Assign, BinaryExpr, Boolean, Expr, Number, Op, Tuple, constant, is_op, postorder,
)
from .rational import exact_power, is_integer, safe_mod

logger = logging.getLogger(__name__)

# Fold handler: receives a list of exact numbers, returns the result or
# None when it can't fold
FoldHandler = Callable[[List[Fraction]], Optional[Fraction]]
FoldFuncsType = Dict[Op, FoldHandler]


# ============================================================
# Fold Operation Builders
# ============================================================

def nary_fold(
    identity: Fraction,
    binary_op: Callable[[Fraction, Fraction], Fraction],
) -> FoldHandler:
    """Create an n-ary folder with identity element.

    Examples:
        nary_fold(Fraction(0), operator.add)  # [] = 0, [x] = x, [x, y, z] = x+y+z
        nary_fold(Fraction(1), operator.mul)  # [] = 1, [x] = x, [x, y, z] = x*y*z
    """
    def handler(args: List[Fraction]) -> Fraction:
        result = identity
        for a in args:
            result = binary_op(result, a)
        return result
    return handler


def binary_only(f: Callable[[Fraction, Fraction], Optional[Fraction]]) -> FoldHandler:
    """Create a binary-only folder (e.g., ^, %)."""
    def handler(args: List[Fraction]) -> Optional[Fraction]:
        if len(args) != 2:
            return None
        return f(args[0], args[1])
    return handler


def arithmetic_folds(
    max_exponent: Optional[int] = None,
    max_bits: Optional[int] = None,
) -> FoldFuncsType:
    """Build the exact arithmetic fold table.

    Args:
        max_exponent: Largest integer exponent magnitude that is folded.
            Larger powers stay symbolic. None means no limit.
        max_bits: Largest numerator or denominator, in bits, that a power
            may fold into. None means no limit.
    """
    return {
        Op.ADD: nary_fold(Fraction(0), operator.add),
        Op.MULTIPLY: nary_fold(Fraction(1), operator.mul),
        Op.EXPONENT: binary_only(lambda a, b: exact_power(a, b, max_exponent, max_bits)),
        Op.MODULUS: binary_only(safe_mod),
    }


ARITHMETIC_FOLDS: FoldFuncsType = arithmetic_folds(config.MAX_EXPONENT, config.MAX_RESULT_BITS)


# ============================================================
# Chains
# ============================================================

def flatten(exp: Expr, op: Op) -> List[Expr]:
    """
    List the operands of a run of `op`, left to right, whatever its nesting.

    flatten((a + b) + (c + d), Op.ADD) -> [a, b, c, d]
    """
    items: List[Expr] = []
    stack = [exp]
    while stack:
        node = stack.pop()
        if is_op(node, op):
            stack.append(node.right)
            stack.append(node.left)
        else:
            items.append(node)
    return items


def build_chain(op: Op, items: List[Expr]) -> Expr:
    """Fold a non-empty operand list into a right-nested chain."""
    result = items[-1]
    for item in reversed(items[:-1]):
        result = BinaryExpr(item, op, result)
    return result


# ============================================================
# Normalizer
# ============================================================

class _Run:
    """Operands of a + or ∙ run, collected before the chain is built."""

    __slots__ = ('op', 'items')

    def __init__(self, op: Op, items: Deque[Expr]):
        self.op = op
        self.items = items


def _close(value: Union[Expr, _Run]) -> Expr:
    if isinstance(value, _Run):
        return build_chain(value.op, list(value.items))
    return value


def _join(op: Op, left: Union[Expr, _Run], right: Union[Expr, _Run]) -> _Run:
    """Concatenate two operands into one run of `op`."""
    first, second = [
        value.items if isinstance(value, _Run) and value.op is op else deque([_close(value)])
        for value in (left, right)
    ]
    # Copy the shorter run into the longer one
    if len(first) >= len(second):
        first.extend(second)
        return _Run(op, first)
    second.extendleft(reversed(first))
    return _Run(op, second)


def _normalize_node(exp: Expr, kids: list) -> Union[Expr, _Run]:
    if isinstance(exp, Tuple):
        return Tuple(tuple(_close(kid) for kid in kids))
    if isinstance(exp, Assign):
        return Assign(exp.target, _close(kids[0]))
    if not isinstance(exp, BinaryExpr):
        return exp

    left, right = kids
    if exp.op is Op.SUBTRACT:
        return _join(Op.ADD, left, _join(Op.MULTIPLY, Number(-1), right))
    if exp.op is Op.DIVIDE:
        return _join(Op.MULTIPLY, left, BinaryExpr(_close(right), Op.EXPONENT, Number(-1)))
    if exp.op in (Op.ADJACENT, Op.MULTIPLY):
        return _join(Op.MULTIPLY, left, right)
    if exp.op is Op.ADD:
        return _join(Op.ADD, left, right)
    return BinaryExpr(_close(left), exp.op, _close(right))


def normalize(exp: Expr) -> Expr:
    """
    Rewrite an expression into canonical operators and chain shape.

    Rules (applied children first):
        a b    => a ∙ b
        a − b  => a + (−1 ∙ b)
        a ÷ b  => a ∙ (b ^ −1)

    Runs of + and ∙ become right-nested chains, so "(a + b) + c" and
    "a + (b + c)" normalize to the same tree. Every other node keeps its
    shape with normalized children. The walk uses an explicit stack and
    each run is built once, so long chains cost linear time.
    """
    return _close(postorder(exp, _normalize_node, targets=False))


# ============================================================
# Simplifier Factory
# ============================================================

def _split_coefficient(exp: Expr):
    """c ∙ f -> (c, f); anything else -> (1, exp)."""
    if is_op(exp, Op.MULTIPLY) and constant(exp.left):
        return exp.left.value, exp.right
    return Fraction(1), exp


def _split_power(exp: Expr):
    """b ^ n with numeric n -> (b, n); anything else -> (exp, 1)."""
    if is_op(exp, Op.EXPONENT) and constant(exp.right):
        return exp.left, exp.right.value
    return exp, Fraction(1)


def simplifier(
    fold_funcs: Optional[FoldFuncsType] = None,
    max_chain_length: int = config.MAX_CHAIN_LENGTH,
    max_exponent: Optional[int] = config.MAX_EXPONENT,
    max_result_bits: Optional[int] = config.MAX_RESULT_BITS,
    max_iterations: int = 100,
) -> Callable[[Expr], Expr]:
    """
    Create a simplify function.

    The returned function assumes normalized input. It is applied until the
    tree stops changing, so its output is a fixed point.

    Args:
        fold_funcs: Fold handlers overriding the exact arithmetic defaults.
        max_chain_length: Longest + or ∙ chain accepted before raising
            ChainLengthExceeded.
        max_exponent: Largest integer exponent folded into a number.
        max_result_bits: Largest numerator or denominator, in bits, that a
            power is folded into. Bigger powers stay symbolic.
        max_iterations: Bound on simplification passes.

    Returns:
        A function that simplifies expressions to canonical form

    Examples:
        simplify = simplifier()
        simplify(normalize(E("2 ^ 3")))        # => Number(8)
        simplify(normalize(E("x ∙ x ∙ 3")))    # => 3 ∙ x^2
    """
    folds: FoldFuncsType = {**arithmetic_folds(max_exponent, max_result_bits), **(fold_funcs or {})}

    def simplify(exp: Expr) -> Expr:
        """Simplify an expression until it reaches a fixed point."""
        for iteration in range(max_iterations):
            result = simplify_once(exp)
            if result == exp:
                logger.debug("simplify converged after %d passes", iteration + 1)
                break
            exp = result
        return exp

    def simplify_once(exp: Expr) -> Expr:
        """Single bottom-up simplification pass."""
        if isinstance(exp, Tuple):
            return Tuple(tuple(simplify_once(item) for item in exp.items))
        if isinstance(exp, Assign):
            return Assign(exp.target, simplify_once(exp.value))
        if not isinstance(exp, BinaryExpr):
            return exp

        if exp.op is Op.ADD:
            return simplify_sum(exp)
        if exp.op is Op.MULTIPLY:
            return simplify_product(exp)

        left = simplify_once(exp.left)
        right = simplify_once(exp.right)
        if exp.op is Op.EXPONENT:
            return simplify_power(left, right)
        if exp.op is Op.MODULUS:
            return simplify_modulus(left, right)
        if exp.op is Op.EQUALS:
            return simplify_equation(left, right)
        return BinaryExpr(left, exp.op, right)

    def chain_items(exp: Expr, op: Op) -> List[Expr]:
        items = flatten(exp, op)
        if len(items) > max_chain_length:
            logger.debug("refusing %s chain of %d terms", op.name, len(items))
            raise ChainLengthExceeded(len(items), max_chain_length)
        return items

    def simplify_sum(exp: Expr) -> Expr:
        """Collect like terms and numeric addends of a + chain."""
        numbers: List[Fraction] = []
        terms: Dict[Expr, Fraction] = {}  # factor -> coefficient, first-seen order

        for addend in chain_items(exp, Op.ADD):
            for item in flatten(simplify_once(addend), Op.ADD):
                if constant(item):
                    numbers.append(item.value)
                    continue
                coefficient, factor = _split_coefficient(item)
                terms[factor] = terms.get(factor, Fraction(0)) + coefficient

        parts: List[Expr] = []
        total = folds[Op.ADD](numbers)
        if total != 0:
            parts.append(Number(total))
        for factor, coefficient in terms.items():
            if coefficient == 0:
                continue
            if coefficient == 1:
                parts.append(factor)
            else:
                parts.append(BinaryExpr(Number(coefficient), Op.MULTIPLY, factor))

        if not parts:
            return Number(0)
        return build_chain(Op.ADD, parts)

    def simplify_product(exp: Expr) -> Expr:
        """Fold numeric factors and merge powers of equal bases in a ∙ chain."""
        numbers: List[Fraction] = []
        terms: Dict[Expr, Fraction] = {}  # base -> exponent, first-seen order

        # Every factor is simplified before a zero can short-circuit the
        # product, so a division by zero anywhere still raises
        for factor in chain_items(exp, Op.MULTIPLY):
            for item in flatten(simplify_once(factor), Op.MULTIPLY):
                if constant(item):
                    numbers.append(item.value)
                    continue
                base, exponent = _split_power(item)
                terms[base] = terms.get(base, Fraction(0)) + exponent

        coefficient = folds[Op.MULTIPLY](numbers)
        if coefficient == 0:
            return Number(0)

        parts: List[Expr] = []
        for base, exponent in terms.items():
            if exponent == 0:
                continue
            if constant(base):
                power = folds[Op.EXPONENT]([base.value, exponent])
                if power is not None:
                    coefficient = folds[Op.MULTIPLY]([coefficient, power])
                    continue
            if exponent == 1:
                parts.append(base)
            else:
                parts.append(BinaryExpr(base, Op.EXPONENT, Number(exponent)))

        if coefficient == 0:
            return Number(0)
        if coefficient != 1:
            parts.insert(0, Number(coefficient))
        if not parts:
            return Number(1)
        return build_chain(Op.MULTIPLY, parts)

    def simplify_power(base: Expr, exponent: Expr) -> Expr:
        if constant(base) and constant(exponent):
            power = folds[Op.EXPONENT]([base.value, exponent.value])
            if power is not None:
                return Number(power)
        elif base == Number(1):
            return base
        elif constant(exponent):
            if exponent.value == 1:
                return base
            if exponent.value == 0:
                return Number(1)
            # (b^a)^n = b^(a n) for integer n
            if (is_op(base, Op.EXPONENT) and constant(base.right)
                    and is_integer(exponent.value)):
                return simplify_power(base.left, Number(base.right.value * exponent.value))
        return BinaryExpr(base, Op.EXPONENT, exponent)

    def simplify_modulus(dividend: Expr, divisor: Expr) -> Expr:
        if divisor == Number(0):
            raise DivisionByZero("modulus by zero")
        if constant(dividend) and constant(divisor):
            result = folds[Op.MODULUS]([dividend.value, divisor.value])
            if result is not None:
                return Number(result)
        return BinaryExpr(dividend, Op.MODULUS, divisor)

    def simplify_equation(left: Expr, right: Expr) -> Expr:
        if left == right:
            return Boolean(True)
        literals = (Number, Boolean)
        if isinstance(left, literals) and isinstance(right, literals):
            return Boolean(False)
        return BinaryExpr(left, Op.EQUALS, right)

    return simplify


# Default simplifier using configured limits
simplify = simplifier()
