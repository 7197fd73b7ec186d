"""Tests for normalize and simplify."""

from fractions import Fraction

import pytest
from ratcalc.errors import ChainLengthExceeded, DivisionByZero
from ratcalc.expr import Assign, BinaryExpr, Boolean, Name, Number, Op, Tuple
from ratcalc.parser import parse_text
from ratcalc.rewriter import (
    ARITHMETIC_FOLDS, binary_only, build_chain, flatten,
    nary_fold, normalize, simplifier, simplify,
)


def B(left, op, right):
    return BinaryExpr(left, op, right)


def norm(text):
    return normalize(parse_text(text))


def simp(text):
    return simplify(normalize(parse_text(text)))


def walk(exp):
    """Yield every node of a tree."""
    yield exp
    if isinstance(exp, BinaryExpr):
        yield from walk(exp.left)
        yield from walk(exp.right)
    elif isinstance(exp, Tuple):
        for item in exp.items:
            yield from walk(item)


a, b, c, d, x, y = (Name(n) for n in "abcdxy")


class TestFoldBuilders:
    """Tests for fold handler builders."""

    def test_nary_fold(self):
        add = nary_fold(Fraction(0), lambda p, q: p + q)
        assert add([]) == 0
        assert add([Fraction(1), Fraction(2), Fraction(3)]) == 6

    def test_binary_only(self):
        sub = binary_only(lambda p, q: p - q)
        assert sub([Fraction(5), Fraction(2)]) == 3
        assert sub([Fraction(5)]) is None

    def test_arithmetic_folds(self):
        assert ARITHMETIC_FOLDS[Op.MULTIPLY]([Fraction(2), Fraction(3, 4)]) == Fraction(3, 2)
        assert ARITHMETIC_FOLDS[Op.EXPONENT]([Fraction(2), Fraction(10)]) == 1024


class TestChains:
    """Tests for chain flattening and rebuilding."""

    def test_flatten_any_nesting(self):
        exp = B(B(a, Op.ADD, b), Op.ADD, B(c, Op.ADD, d))
        assert flatten(exp, Op.ADD) == [a, b, c, d]

    def test_flatten_stops_at_other_ops(self):
        exp = B(a, Op.ADD, B(b, Op.MULTIPLY, c))
        assert flatten(exp, Op.ADD) == [a, B(b, Op.MULTIPLY, c)]

    def test_build_chain_right_nested(self):
        assert build_chain(Op.ADD, [a, b, c]) == B(a, Op.ADD, B(b, Op.ADD, c))
        assert build_chain(Op.ADD, [a]) == a

    def test_flatten_long_chain(self):
        """Deep left-nested chains flatten without recursion."""
        exp = a
        for _ in range(5000):
            exp = B(exp, Op.ADD, a)
        assert len(flatten(exp, Op.ADD)) == 5001


class TestNormalize:
    """Tests for the normalization pass."""

    def test_subtract(self):
        """a − b becomes a + (−1 ∙ b)."""
        assert norm("a - b") == B(a, Op.ADD, B(Number(-1), Op.MULTIPLY, b))

    def test_divide(self):
        """a ÷ b becomes a ∙ b^−1."""
        assert norm("a / b") == B(a, Op.MULTIPLY, B(b, Op.EXPONENT, Number(-1)))

    def test_adjacent(self):
        assert norm("2 x") == B(Number(2), Op.MULTIPLY, x)

    def test_implicit_and_explicit_product_match(self):
        assert norm("2 x") == norm("2 * x")

    def test_associative_canonicalization(self):
        """Grouping of + does not affect the normalized shape."""
        assert norm("(a + b) + c") == norm("a + (b + c)")
        assert norm("(a + b) + c") == B(a, Op.ADD, B(b, Op.ADD, c))

    def test_product_chain(self):
        assert norm("(a b)(c d)") == build_chain(Op.MULTIPLY, [a, b, c, d])

    def test_mixed_chain(self):
        """Subtraction and division splice into the surrounding chain."""
        assert norm("a + b - c") == build_chain(
            Op.ADD, [a, b, B(Number(-1), Op.MULTIPLY, c)],
        )
        assert norm("a b / c") == build_chain(
            Op.MULTIPLY, [a, b, B(c, Op.EXPONENT, Number(-1))],
        )

    def test_no_non_canonical_operators(self):
        """Subtract, divide and adjacent never survive normalization."""
        exp = norm("2 x - y / (3 - z) + (a b - c) % d = x ^ (1 - y)")
        ops = {node.op for node in walk(exp) if isinstance(node, BinaryExpr)}
        assert not ops & {Op.SUBTRACT, Op.DIVIDE, Op.ADJACENT}

    def test_other_operators_kept(self):
        assert norm("x ^ 2") == B(x, Op.EXPONENT, Number(2))
        assert norm("x % 2") == B(x, Op.MODULUS, Number(2))
        assert norm("a = b - c") == B(a, Op.EQUALS, B(b, Op.ADD, B(Number(-1), Op.MULTIPLY, c)))

    def test_tuple_items(self):
        assert norm("(a - b, 2 c)") == Tuple((
            B(a, Op.ADD, B(Number(-1), Op.MULTIPLY, b)),
            B(Number(2), Op.MULTIPLY, c),
        ))

    def test_leaves_unchanged(self):
        assert normalize(Number(5)) == Number(5)
        assert normalize(x) == x
        assert normalize(Boolean(True)) == Boolean(True)

    def test_assign_value_only(self):
        """The value of an assignment is normalized, its target is not."""
        assert normalize(Assign(x, parse_text("a - b"))) == Assign(x, norm("a - b"))

    def test_long_left_nested_sum(self):
        exp = a
        for _ in range(5000):
            exp = B(exp, Op.ADD, a)
        assert normalize(exp) == build_chain(Op.ADD, [a] * 5001)

    def test_long_right_nested_sum(self):
        chain = build_chain(Op.ADD, [a, b] * 2500)
        assert normalize(chain) == chain

    def test_long_difference(self):
        exp = a
        for _ in range(3000):
            exp = B(exp, Op.SUBTRACT, b)
        items = flatten(normalize(exp), Op.ADD)
        assert len(items) == 3001
        assert items[0] == a
        assert set(items[1:]) == {B(Number(-1), Op.MULTIPLY, b)}


class TestSimplifyArithmetic:
    """Tests for exact numeric folding."""

    def test_power(self):
        assert simp("2 ^ 3") == Number(8)

    def test_negative_power(self):
        assert simp("2 ^ -1") == Number(Fraction(1, 2))

    def test_fraction_sum(self):
        assert simp("1/2 + 1/3") == Number(Fraction(5, 6))

    def test_mixed_arithmetic(self):
        assert simp("1 + 2 * 3 - 4 / 2") == Number(5)

    def test_rational_power(self):
        assert simp("(2/3)^-2") == Number(Fraction(9, 4))

    def test_minus_one_parity(self):
        assert simp("(-1)^3") == Number(-1)
        assert simp("(-1)^4") == Number(1)

    def test_non_integer_exponent_symbolic(self):
        """Non-integer exponents are left unevaluated."""
        assert simp("4^(1/2)") == B(Number(4), Op.EXPONENT, Number(Fraction(1, 2)))

    def test_modulus(self):
        assert simp("7 % 3") == Number(1)
        assert simp("-7 % 3") == Number(2)

    def test_unary_minus(self):
        assert simp("-(2 + 3)") == Number(-5)
        assert simp("--4") == Number(4)


class TestDivisionByZero:
    """Tests for division and modulus by exact zero."""

    def test_one_over_zero(self):
        with pytest.raises(DivisionByZero):
            simp("1 / 0")

    def test_symbolic_over_zero(self):
        with pytest.raises(DivisionByZero):
            simp("x / 0")

    def test_zero_times_division_by_zero(self):
        """A zero factor does not hide a division by zero."""
        with pytest.raises(DivisionByZero):
            simp("0 ∙ (1 / 0)")

    def test_division_by_cancelled_zero(self):
        with pytest.raises(DivisionByZero):
            simp("1 / (x - x)")

    def test_modulus_by_zero(self):
        with pytest.raises(DivisionByZero):
            simp("5 % 0")
        with pytest.raises(DivisionByZero):
            simp("x % (2 - 2)")


class TestSimplifySum:
    """Tests for like-term collection in + chains."""

    def test_like_terms(self):
        """2 x + 3 x is the same tree as 5 x."""
        assert simp("2 x + 3 x") == simp("5 x")
        assert simp("2 x + 3 x") == B(Number(5), Op.MULTIPLY, x)

    def test_unit_coefficient_dropped(self):
        assert simp("2 x - x") == x

    def test_cancellation(self):
        assert simp("x - x") == Number(0)
        assert simp("a + b - a - b") == Number(0)

    def test_numeric_sum_leads(self):
        assert simp("1 + x + 2") == B(Number(3), Op.ADD, x)

    def test_first_occurrence_order(self):
        """Merged terms stay where they first appeared."""
        assert simp("y + x + y") == B(B(Number(2), Op.MULTIPLY, y), Op.ADD, x)
        assert simp("b + a + c") == build_chain(Op.ADD, [b, a, c])

    def test_negation(self):
        assert simp("-x") == B(Number(-1), Op.MULTIPLY, x)

    def test_zero_sum_of_numbers_dropped(self):
        assert simp("x + 1 - 1") == x

    def test_compound_factors_merge(self):
        assert simp("x^2 + 3 x^2") == B(Number(4), Op.MULTIPLY, B(x, Op.EXPONENT, Number(2)))


class TestSimplifyProduct:
    """Tests for power collection in ∙ chains."""

    def test_repeated_factor(self):
        assert simp("x x") == B(x, Op.EXPONENT, Number(2))

    def test_coefficient_leads(self):
        assert simp("x ∙ x ∙ 3") == B(Number(3), Op.MULTIPLY, B(x, Op.EXPONENT, Number(2)))

    def test_exponents_add(self):
        assert simp("x^2 x^3") == B(x, Op.EXPONENT, Number(5))
        assert simp("x^2 / x") == x

    def test_cancel_to_one(self):
        assert simp("x / x") == Number(1)

    def test_zero_collapses(self):
        assert simp("0 x y") == Number(0)
        assert simp("0 x + 1") == Number(1)

    def test_numeric_power_factor(self):
        """2^3 x folds the numeric power into the coefficient."""
        assert simp("2^3 x") == B(Number(8), Op.MULTIPLY, x)

    def test_symbolic_power_of_number(self):
        """A number raised to a name stays a factor."""
        assert simp("2^x 3") == B(Number(3), Op.MULTIPLY, B(Number(2), Op.EXPONENT, x))

    def test_order_preserved(self):
        assert simp("y x 2") == build_chain(Op.MULTIPLY, [Number(2), y, x])


class TestSimplifyPower:
    """Tests for exponent identities."""

    def test_power_one(self):
        assert simp("x^1") == x

    def test_power_zero(self):
        assert simp("x^0") == Number(1)

    def test_one_base(self):
        assert simp("1^x") == Number(1)

    def test_nested_power(self):
        assert simp("(x^2)^3") == B(x, Op.EXPONENT, Number(6))

    def test_symbolic_minus_one(self):
        assert simp("(-1)^n") == B(Number(-1), Op.EXPONENT, Name("n"))

    def test_fractional_exponent_kept(self):
        assert simp("x^(1/2)") == B(x, Op.EXPONENT, Number(Fraction(1, 2)))


class TestSimplifyOther:
    """Tests for equations, tuples and leaves."""

    def test_equal_sides(self):
        assert simp("1 = 1") == Boolean(True)
        assert simp("2 x = x + x") == Boolean(True)

    def test_unequal_numbers(self):
        assert simp("1 = 2") == Boolean(False)
        assert simp("true = false") == Boolean(False)

    def test_symbolic_equation(self):
        assert simp("x = y") == B(x, Op.EQUALS, y)

    def test_tuple(self):
        assert simp("(1 + 1, x - x)") == Tuple((Number(2), Number(0)))

    def test_leaves(self):
        assert simplify(x) == x
        assert simplify(Boolean(False)) == Boolean(False)
        assert simplify(Tuple()) == Tuple()


class TestSimplifyProperties:
    """Tests for invariants of the simplified form."""

    EXPRESSIONS = [
        "2 x + 3 y - x y + x^2 / x",
        "(a + b)(a + b) - a b",
        "1/2 x + 1/3 x + 1/6",
        "x^2 x^-2 + y^0",
        "(x + 1)^2 / (x + 1)",
        "2 (x - y) + 3 (x - y)",
        "a = 2 a - a",
        "(a - b, a / b)",
        "3 x % 2 + 4 % 3",
    ]

    @pytest.mark.parametrize("text", EXPRESSIONS)
    def test_idempotent(self, text):
        """Simplifying an already simplified tree changes nothing."""
        once = simp(text)
        assert simplify(normalize(once)) == once

    @pytest.mark.parametrize("text", EXPRESSIONS)
    def test_chain_invariants(self, text):
        """A chain holds at most one number and no repeated terms."""
        result = simp(text)
        for node in walk(result):
            for op in (Op.ADD, Op.MULTIPLY):
                if isinstance(node, BinaryExpr) and node.op is op:
                    items = flatten(node, op)
                    assert sum(isinstance(i, Number) for i in items) <= 1
                    others = [i for i in items if not isinstance(i, Number)]
                    assert len(others) == len(set(others))

    @pytest.mark.parametrize("text", EXPRESSIONS)
    def test_canonical_operators_only(self, text):
        ops = {node.op for node in walk(simp(text)) if isinstance(node, BinaryExpr)}
        assert not ops & {Op.SUBTRACT, Op.DIVIDE, Op.ADJACENT}


class TestSimplifierFactory:
    """Tests for simplifier() options."""

    def test_chain_length_limit(self):
        simplify_short = simplifier(max_chain_length=3)
        with pytest.raises(ChainLengthExceeded) as exc:
            simplify_short(norm("a + b + c + d"))
        assert exc.value.length == 4
        assert exc.value.limit == 3

    def test_chain_within_limit(self):
        simplify_short = simplifier(max_chain_length=3)
        assert simplify_short(norm("a + a + a")) == B(Number(3), Op.MULTIPLY, a)

    def test_max_exponent(self):
        """Huge powers stay symbolic."""
        simplify_small = simplifier(max_exponent=10)
        assert simplify_small(norm("2^20")) == B(Number(2), Op.EXPONENT, Number(20))
        assert simplify_small(norm("2^10")) == Number(1024)

    def test_max_result_bits(self):
        """Powers that would outgrow the bit limit stay symbolic."""
        simplify_small = simplifier(max_result_bits=16)
        assert simplify_small(norm("2^9")) == B(Number(2), Op.EXPONENT, Number(9))
        assert simplify_small(norm("2^8")) == Number(256)

    def test_custom_fold(self):
        """Fold handlers can be overridden per operator."""
        no_mod = simplifier(fold_funcs={Op.MODULUS: binary_only(lambda p, q: None)})
        assert no_mod(norm("7 % 3")) == B(Number(7), Op.MODULUS, Number(3))
        assert no_mod(norm("2 + 2")) == Number(4)
