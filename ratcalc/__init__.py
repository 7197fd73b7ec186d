"""
RATCALC - exact RATional CALCulator

Parses arithmetic and algebra over exact rationals and simplifies the
result by term rewriting.

Quick Start:
    from ratcalc import Calculator

    calc = Calculator()
    calc.execute("2 x + 3 x")    # => "5 ∙ x"
    calc.execute("1/3 + 1/6")    # => "1÷2 ≈ 0.5"

    calc("r := 3/2")
    calc.execute("r^2")          # => "9÷4 ≈ 2.25"

Syntax:
    + − ∙ ÷ % ^ =         Operators (ASCII - * / also accepted)
    2 x, 3(4)             Implicit multiplication
    -x                    Unary minus
    (a, b)                Tuple
    name := expr          Assignment

Pipeline:
    text -> tokenize -> parse -> resolve -> normalize -> simplify
"""

__version__ = "0.1.0"

# Expression model
from .expr import (
    Op,
    Expr,
    Number,
    Name,
    Boolean,
    Tuple,
    Assign,
    BinaryExpr,
    format_expr,
    format_approximation,
)

# Lexing and parsing
from .tokenizer import Token, TokenType, tokenize
from .parser import parse, parse_text

# Rewriting
from .rewriter import (
    normalize,
    simplifier,
    simplify,
    FoldHandler,
    FoldFuncsType,
    # Fold operation builders
    nary_fold,
    binary_only,
    arithmetic_folds,
    ARITHMETIC_FOLDS,
)

# Exact arithmetic helpers
from .rational import exact_power, safe_mod, format_decimal

# Variable store
from .context import Scope, Context, resolve

# Engine
from .engine import (
    Calculator,
    RewriteStep,
    RewriteTrace,
    E,
)

# Errors
from .errors import (
    CalcError,
    LexError,
    ParseError,
    AssignTargetError,
    DivisionByZero,
    UnresolvedReference,
    ChainLengthExceeded,
    NestingTooDeep,
    NumberTooLarge,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Expression model
    "Op",
    "Expr",
    "Number",
    "Name",
    "Boolean",
    "Tuple",
    "Assign",
    "BinaryExpr",
    "format_expr",
    "format_approximation",
    # Lexing and parsing
    "Token",
    "TokenType",
    "tokenize",
    "parse",
    "parse_text",
    # Rewriting
    "normalize",
    "simplifier",
    "simplify",
    "FoldHandler",
    "FoldFuncsType",
    "nary_fold",
    "binary_only",
    "arithmetic_folds",
    "ARITHMETIC_FOLDS",
    # Exact arithmetic
    "exact_power",
    "safe_mod",
    "format_decimal",
    # Variable store
    "Scope",
    "Context",
    "resolve",
    # Engine
    "Calculator",
    "RewriteStep",
    "RewriteTrace",
    "E",
    # Errors
    "CalcError",
    "LexError",
    "ParseError",
    "AssignTargetError",
    "DivisionByZero",
    "UnresolvedReference",
    "ChainLengthExceeded",
    "NestingTooDeep",
    "NumberTooLarge",
]
