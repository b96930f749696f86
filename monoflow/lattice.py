"""
monoflow.lattice
================

The lattice contract every client analysis supplies to the engine, plus
the two lattices the bundled clients use.

Theory
------
A dataflow lattice here is a *meet semilattice* ``(L, ⊓, ⊤)``:

- ``meet`` is associative, commutative and idempotent;
- ``top`` is the identity of ``meet`` (``meet(top, x) = x``);
- the order is the one induced by meet: ``a ⊑ b`` iff ``meet(a, b) = a``.

The engine only ever calls ``top``, ``meet`` and ``eq``.  ``eq`` must be
consistent with the value's structure, because the fixed-point driver
stops when no boundary value changes under ``eq``.

The lattice is an object separate from the value type.  Values stay
plain immutable containers (``frozenset``, ``dict`` used copy-on-write),
so a container's native ``|`` or ``==`` is never mistaken for the lattice
operation when the two differ.

Public API
----------
    Lattice             - abstract base for lattice definitions
    UnionSetLattice     - sets, meet = union, top = ∅
    PointsToLattice     - entity → set of sites, pointwise union
    check_meet_laws     - report violations of the meet laws on samples
    check_monotonicity  - detect non-monotone transfer functions on samples
"""

from __future__ import annotations

import abc
import itertools
from typing import (
    Callable,
    Dict,
    FrozenSet,
    Generic,
    Hashable,
    Iterable,
    List,
    Mapping,
    Sequence,
    Tuple,
    TypeVar,
)

L = TypeVar("L")          # Lattice value type


# ===========================================================================
# LATTICE ABSTRACT BASE
# ===========================================================================

class Lattice(abc.ABC, Generic[L]):
    """Abstract base class for a meet semilattice.

    Subclasses must provide:

    - ``top()``       → the meet identity ``⊤``.
    - ``meet(a, b)``  → ``a ⊓ b``.

    Optionally override ``eq`` when two structurally different values
    denote the same lattice element.
    """

    @abc.abstractmethod
    def top(self) -> L:
        """Return the identity element of ``meet``."""
        ...

    @abc.abstractmethod
    def meet(self, a: L, b: L) -> L:
        """Return ``a ⊓ b``."""
        ...

    def eq(self, a: L, b: L) -> bool:
        """Lattice equality, used for termination detection."""
        return a == b

    def leq(self, a: L, b: L) -> bool:
        """Meet-induced order: ``a ⊑ b`` iff ``a ⊓ b = a``."""
        return self.eq(self.meet(a, b), a)

    def meet_all(self, values: Iterable[L]) -> L:
        """Meet a sequence of values.  The empty meet is ``top()``."""
        result = self.top()
        for v in values:
            result = self.meet(result, v)
        return result

    def is_top(self, a: L) -> bool:
        return self.eq(a, self.top())


# ===========================================================================
# BUILT-IN LATTICES
# ===========================================================================

# ---------- UnionSetLattice --------------------------------------------------

class UnionSetLattice(Lattice[FrozenSet]):
    """Sets of hashable items combined by union.

    Used by may-analyses such as liveness and reaching definitions: the
    identity is the empty set, so a node with no incoming flow starts
    from nothing.
    """

    def top(self) -> FrozenSet:
        return frozenset()

    def meet(self, a: FrozenSet, b: FrozenSet) -> FrozenSet:
        if not a:
            return b
        if not b:
            return a
        return a | b

    def eq(self, a: FrozenSet, b: FrozenSet) -> bool:
        return frozenset(a) == frozenset(b)


# ---------- PointsToLattice --------------------------------------------------

PointsToMap = Dict[Hashable, FrozenSet]


class PointsToLattice(Lattice[PointsToMap]):
    """Maps from an entity to the set of sites it may point to.

    The meet is pointwise union and ``top`` is the empty map, meaning
    every entity points to nothing.  Values are kept in a canonical form
    where no entity maps to an empty set, so ``{}`` and ``{p: ∅}`` are
    the same element and plain dict equality is the lattice equality.

    Values must be treated as immutable: every operation here returns a
    fresh dict.
    """

    def top(self) -> PointsToMap:
        return {}

    def meet(self, a: Mapping, b: Mapping) -> PointsToMap:
        result = dict(a)
        for key, targets in b.items():
            if not targets:
                continue
            current = result.get(key)
            result[key] = frozenset(targets) if current is None else current | targets
        return self.normalize(result)

    def eq(self, a: Mapping, b: Mapping) -> bool:
        return self.normalize(a) == self.normalize(b)

    @staticmethod
    def normalize(value: Mapping) -> PointsToMap:
        """Return *value* without empty target sets."""
        return {k: frozenset(v) for k, v in value.items() if v}

    @staticmethod
    def targets(value: Mapping, entity) -> FrozenSet:
        """Return the sites *entity* may point to (``∅`` if unknown)."""
        return value.get(entity, frozenset())

    @staticmethod
    def add_targets(value: Mapping, entity, sites: Iterable) -> PointsToMap:
        """Return a copy of *value* where *entity* additionally points to *sites*."""
        sites = frozenset(sites)
        result = dict(value)
        if sites:
            result[entity] = result.get(entity, frozenset()) | sites
        return result


# ===========================================================================
# CONTRACT CHECKERS (development / testing utilities)
# ===========================================================================

def check_meet_laws(
    lattice: Lattice[L],
    samples: Sequence[L],
) -> List[Tuple[str, Tuple]]:
    """Check the meet laws on every combination of *samples*.

    Verifies commutativity, associativity, idempotence and that ``top``
    is the identity.  Like :func:`check_monotonicity` this can only find
    violations, never prove the laws.

    Returns
    -------
    list of (law, operands)
        One entry per violation; empty when none was found.
    """
    violations: List[Tuple[str, Tuple]] = []
    eq, meet = lattice.eq, lattice.meet
    top = lattice.top()
    for a in samples:
        if not eq(meet(a, a), a):
            violations.append(("idempotence", (a,)))
        if not eq(meet(top, a), a) or not eq(meet(a, top), a):
            violations.append(("identity", (a,)))
    for a, b in itertools.product(samples, repeat=2):
        if not eq(meet(a, b), meet(b, a)):
            violations.append(("commutativity", (a, b)))
    for a, b, c in itertools.product(samples, repeat=3):
        if not eq(meet(a, meet(b, c)), meet(meet(a, b), c)):
            violations.append(("associativity", (a, b, c)))
    return violations


def check_monotonicity(
    lattice: Lattice[L],
    transfer: Callable[[L], L],
    samples: Sequence[L],
) -> bool:
    """Check that *transfer* is monotone on the given samples.

    For every pair ``(a, b)`` in *samples* where ``a ⊑ b``, verifies
    that ``transfer(a) ⊑ transfer(b)``.

    Returns
    -------
    bool
        ``True`` if no violation found.
    """
    for a, b in itertools.product(samples, repeat=2):
        if lattice.leq(a, b):
            if not lattice.leq(transfer(a), transfer(b)):
                return False
    return True
