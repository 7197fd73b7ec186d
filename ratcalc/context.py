"""
Variable store for RATCALC.

A Scope holds name -> expression bindings for the lifetime of a session.
A Context is a view of a Scope that also carries the set of names whose
values are currently being resolved. Resolving a name hands out a child
context with that name added, so the in-progress set only lives as long as
that one resolution:

    scope = Scope()
    scope.insert("x", E("y + 1"))
    scope.insert("y", E("x"))

    resolve(E("x"), Context(scope))   # raises UnresolvedReference (cyclic)
"""

import logging
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple as Pair

from .errors import UnresolvedReference
from .expr import Expr, postorder, variable, with_children

logger = logging.getLogger(__name__)


class Scope:
    """
    Name -> expression bindings.

    Insertion overwrites. Lookups rebuild the stored tree, so callers never
    share it. Leaves are immutable and may be shared.
    """

    __slots__ = ('_vars',)

    def __init__(self, bindings: Optional[Dict[str, Expr]] = None):
        self._vars: Dict[str, Expr] = dict(bindings or {})

    def insert(self, name: str, value: Expr) -> None:
        """Bind a name, replacing any previous binding."""
        self._vars[name] = value

    def get(self, name: str) -> Optional[Expr]:
        """Return a copy of the bound value, or None if unbound."""
        if name in self._vars:
            return postorder(self._vars[name], with_children)
        return None

    def remove(self, name: str) -> bool:
        """Unbind a name. Returns True if it was bound."""
        return self._vars.pop(name, None) is not None

    def clear(self) -> None:
        self._vars.clear()

    def names(self) -> List[str]:
        return list(self._vars)

    def items(self) -> List[Pair[str, Expr]]:
        return list(self._vars.items())

    def __contains__(self, name: str) -> bool:
        return name in self._vars

    def __len__(self) -> int:
        return len(self._vars)

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __repr__(self) -> str:
        return f"Scope({len(self._vars)} bindings)"


class Context:
    """A Scope together with the names being resolved right now."""

    __slots__ = ('scope', 'evaluating')

    def __init__(self, scope: Scope, evaluating: FrozenSet[str] = frozenset()):
        self.scope = scope
        self.evaluating = evaluating

    def insert(self, name: str, value: Expr) -> None:
        self.scope.insert(name, value)

    def get(self, name: str) -> Optional[Expr]:
        """
        Look up a name.

        Returns None if the name is unbound, or if it is already being
        resolved further up (which would otherwise recurse forever).
        """
        if name in self.evaluating:
            return None
        return self.scope.get(name)

    def is_resolving(self, name: str) -> bool:
        return name in self.evaluating

    def evaluate(self, name: str) -> 'Context':
        """Child context for resolving `name`."""
        return Context(self.scope, self.evaluating | {name})

    def __repr__(self) -> str:
        return f"Context({self.scope!r}, evaluating={sorted(self.evaluating)})"


def resolve(exp: Expr, context: Context, strict: bool = False) -> Expr:
    """
    Substitute bound names with their (recursively resolved) values.

    Unbound names stay symbolic, unless `strict` is set. Assignment targets
    are never substituted.

    Raises:
        UnresolvedReference: a name refers back to itself, or (strict)
            a name is unbound
    """
    def substitute(node: Expr, kids: list) -> Expr:
        if not variable(node):
            return with_children(node, kids)
        value = context.get(node.name)
        if value is None:
            if context.is_resolving(node.name):
                logger.debug("cyclic reference to %r via %s", node.name, sorted(context.evaluating))
                raise UnresolvedReference(node.name, cyclic=True)
            if strict:
                raise UnresolvedReference(node.name)
            return node
        return resolve(value, context.evaluate(node.name), strict)

    return postorder(exp, substitute, targets=False)
