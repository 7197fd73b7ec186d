"""
Calculator engine for RATCALC.

Runs one statement at a time through the full pipeline:

    text -> tokenize -> parse -> resolve -> normalize -> simplify

and owns the variable scope that assignments write to.

    calc = Calculator()
    calc.evaluate("x := 5")         # binds x, returns the Assign
    calc.evaluate("x + 1")          # => Number(6)
    calc.execute("1/3")             # => "1÷3 ≈ 0.33333…"

Tracing:
    Use Calculator.evaluate(source, trace=True) to see every stage.
"""

import logging
from fractions import Fraction
from typing import Dict, List, Optional, Union

from . import config
from .context import Context, Scope, resolve
from .errors import AssignTargetError, NestingTooDeep
from .expr import (
    Assign, Expr, Name, Number, Op, Tuple,
    format_approximation, format_expr, variable,
)
from .parser import BINARY_OPERATORS, parse, parse_text
from .rewriter import FoldFuncsType, build_chain, normalize, simplifier
from .tokenizer import SINGLE_CHAR_TOKENS, tokenize

logger = logging.getLogger(__name__)

Source = Union[str, Expr]


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder for RATCALC.

    Examples:
        from ratcalc import E

        # Parse infix text
        expr = E("x + 2 y")

        # Build programmatically with E.op()
        expr = E.op("+", "x", E.op("*", 2, "y"))

        # Create variables
        x, y = E.vars("x", "y")
        expr = E.op("^", x, E.const("1/2"))

    Plain ints, Fractions and strings passed to E.op() become Number and
    Name nodes.
    """

    def __call__(self, s: str) -> Expr:
        """
        Parse a line of text.

        Examples:
            E("x + 1") -> BinaryExpr(Name("x"), Op.ADD, Number(1))
            E("2 x")   -> BinaryExpr(Number(2), Op.ADJACENT, Name("x"))
        """
        return parse_text(s)

    def op(self, op: Union[Op, str], *args) -> Expr:
        """
        Build a binary expression.

        Operators may be given as an Op or as a symbol ("+", "-", "*", "/",
        "%", "^", "="). + and ∙ accept more than two operands and build a
        right-nested chain.

        Examples:
            E.op("+", "x", 1)        -> x + 1
            E.op("*", 2, "x", "y")   -> 2 ∙ (x ∙ y)
        """
        if isinstance(op, str):
            if op not in SINGLE_CHAR_TOKENS or SINGLE_CHAR_TOKENS[op] not in BINARY_OPERATORS:
                raise ValueError(f"unknown operator: {op!r}")
            op = BINARY_OPERATORS[SINGLE_CHAR_TOKENS[op]]

        operands = [self._coerce(a) for a in args]
        if len(operands) < 2:
            raise ValueError(f"{op.name} needs at least two operands")
        if len(operands) > 2 and op not in (Op.ADD, Op.MULTIPLY):
            raise ValueError(f"{op.name} takes exactly two operands")
        return build_chain(op, operands)

    def var(self, name: str) -> Name:
        """
        Create a variable.

        Example:
            E.var("x") -> Name("x")
        """
        return Name(name)

    def vars(self, *names: str):
        """
        Create multiple variables for unpacking.

        Example:
            x, y, z = E.vars("x", "y", "z")
        """
        return tuple(Name(name) for name in names)

    def const(self, value: Union[int, str, Fraction]) -> Number:
        """
        Create an exact constant.

        Example:
            E.const(5)      -> Number(5)
            E.const("1/3")  -> Number(Fraction(1, 3))
        """
        return Number(Fraction(value))

    def tuple(self, *items) -> Tuple:
        """Create a tuple expression."""
        return Tuple(tuple(self._coerce(item) for item in items))

    def _coerce(self, value) -> Expr:
        if isinstance(value, (int, Fraction)):
            return Number(Fraction(value))
        if isinstance(value, str):
            return Name(value)
        return value

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()


# ============================================================
# Tracing
# ============================================================

def _show(value: Source) -> str:
    return value if isinstance(value, str) else format_expr(value)


class RewriteStep:
    """A single pipeline stage that changed the statement."""

    def __init__(self, stage: str, before: Source, after: Source):
        self.stage = stage
        self.before = before
        self.after = after

    def __repr__(self) -> str:
        return f"{self.stage}: {_show(self.before)} → {_show(self.after)}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "stage": self.stage,
            "before": _show(self.before),
            "after": _show(self.after),
        }


class RewriteTrace:
    """
    A trace of the pipeline stages applied to one statement.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line showing the stage chain
        - format("passes"): just the stage names
        - format("chain"): the statement after every stage
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self):
        self.steps: List[RewriteStep] = []
        self.initial: Optional[Source] = None
        self.final: Optional[Expr] = None

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def record(self, stage: str, before: Source, after: Source):
        """Add a step if the stage changed anything."""
        if before != after:
            self.add_step(RewriteStep(stage, before, after))

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "passes", "chain"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            stages = ", ".join(self.stages())
            return f"{_show(self.initial)} --[{stages}]--> {_show(self.final)}"

        elif style == "passes":
            stages = self.stages()
            return " -> ".join(stages) if stages else "(no changes)"

        elif style == "chain":
            parts = [_show(self.initial)]
            for step in self.steps:
                parts.append(f"  --({step.stage})-->")
                parts.append(_show(step.after))
            return "\n".join(parts)

        else:  # verbose (default)
            return repr(self)

    def stages(self) -> List[str]:
        """Stage names in order of application."""
        return [step.stage for step in self.steps]

    def __repr__(self) -> str:
        lines = [f"Initial: {_show(self.initial)}"]
        for i, step in enumerate(self.steps, 1):
            lines.append(f"  {i}. {step}")
        lines.append(f"Final: {_show(self.final)}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        """Iterate over steps."""
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any stage changed the statement."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": _show(self.initial),
            "final": _show(self.final),
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }


# ============================================================
# Calculator
# ============================================================

class Calculator:
    """
    Evaluates statements against a variable scope.

    Assignments store the simplified right-hand side without substituting
    its names, so a binding sees later changes to the names it mentions.
    Ordinary expressions have every bound name substituted before they are
    normalized and simplified; unbound names stay symbolic.

    Example:
        calc = Calculator()
        calc("y := 2")
        calc("x := y + y")
        calc("x")            # => Number(4)
        calc("y := 3")
        calc("x")            # => Number(6)
    """

    def __init__(
        self,
        scope: Optional[Scope] = None,
        precision: int = config.PRECISION,
        strict: bool = False,
        fold_funcs: Optional[FoldFuncsType] = None,
        max_chain_length: int = config.MAX_CHAIN_LENGTH,
        max_exponent: Optional[int] = config.MAX_EXPONENT,
        max_result_bits: Optional[int] = config.MAX_RESULT_BITS,
    ):
        """
        Initialize a Calculator.

        Args:
            scope: Variable bindings to use. Default: a fresh empty Scope.
            precision: Digits in the decimal expansion of non-integer results.
            strict: If True, unbound names raise UnresolvedReference.
            fold_funcs: Fold handlers overriding exact arithmetic defaults.
            max_chain_length: Longest + or ∙ chain the simplifier accepts.
            max_exponent: Largest integer exponent folded into a number.
            max_result_bits: Largest numerator or denominator, in bits, that
                a power is folded into.
        """
        self.scope = scope if scope is not None else Scope()
        self.precision = precision
        self.strict = strict
        self._simplify = simplifier(
            fold_funcs=fold_funcs,
            max_chain_length=max_chain_length,
            max_exponent=max_exponent,
            max_result_bits=max_result_bits,
        )

    def parse(self, text: str) -> Expr:
        """Tokenize and parse a statement."""
        return parse(tokenize(text))

    def simplify(self, exp: Expr) -> Expr:
        """Normalize and simplify an expression without touching the scope."""
        return self._simplify(normalize(exp))

    def evaluate(self, source: Source, trace: bool = False):
        """
        Evaluate one statement.

        Args:
            source: Statement text, or an already parsed expression
            trace: If True, return (result, trace) tuple

        Returns:
            The simplified expression (an Assign for assignments), or
            (expression, trace) if trace=True

        Raises:
            CalcError: any lexing, parsing or evaluation failure
        """
        trace_obj = RewriteTrace()
        trace_obj.initial = source

        try:
            result = self._run(source, trace_obj)
        except RecursionError:
            raise NestingTooDeep() from None

        trace_obj.final = result
        if trace:
            return result, trace_obj
        return result

    def _run(self, source: Source, trace_obj: RewriteTrace) -> Expr:
        if isinstance(source, str):
            exp = self.parse(source)
            trace_obj.record("parse", source, exp)
        else:
            exp = source

        if isinstance(exp, Assign):
            if not variable(exp.target):
                raise AssignTargetError(exp.target)
            normalized = normalize(exp.value)
            trace_obj.record("normalize", exp.value, normalized)
            value = self._simplify(normalized)
            trace_obj.record("simplify", normalized, value)
            self.scope.insert(exp.target.name, value)
            logger.debug("bound %s := %s", exp.target.name, value)
            return Assign(exp.target, value)

        resolved = resolve(exp, Context(self.scope), strict=self.strict)
        trace_obj.record("resolve", exp, resolved)
        normalized = normalize(resolved)
        trace_obj.record("normalize", resolved, normalized)
        simplified = self._simplify(normalized)
        trace_obj.record("simplify", normalized, simplified)
        logger.debug("evaluated %s => %s", exp, simplified)
        return simplified

    def format_result(self, exp: Expr) -> Optional[str]:
        """
        Render a result for display.

        Assignments display nothing. A non-integer number is followed by
        its decimal expansion.

        Raises:
            NumberTooLarge: a number has too many digits to display
        """
        if isinstance(exp, Assign):
            return None
        text = format_expr(exp)
        approximation = format_approximation(exp, self.precision)
        if approximation is not None:
            text += f" ≈ {approximation}"
        return text

    def execute(self, source: Source) -> Optional[str]:
        """Evaluate a statement and render its result."""
        return self.format_result(self.evaluate(source))

    def variables(self) -> List[str]:
        """List all bindings as assignment statements."""
        return [f"{name} := {format_expr(value)}" for name, value in self.scope.items()]

    def __call__(self, source: Source, **kwargs):
        """Make calculator callable: calc(text) is shorthand for calc.evaluate(text)."""
        return self.evaluate(source, **kwargs)

    def __repr__(self) -> str:
        return f"Calculator({len(self.scope)} bindings)"
