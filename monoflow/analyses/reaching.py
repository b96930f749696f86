"""
monoflow.analyses.reaching
==========================

Reaching definitions (forward, may), kill-free.

The lattice is the set of defining operations, meet is union and
``top`` is the empty set.  Every operation that defines an entity adds
itself::

    reaching = reaching ∪ {op}     if op defines an entity

Known coarsening: nothing is ever killed, so an earlier definition of
the same entity keeps reaching past a later one.  Queries that need the
strong-update answer can filter with :meth:`definitions_of`.
"""

from __future__ import annotations

from typing import FrozenSet

from monoflow.analyses.base import FunctionAnalysis
from monoflow.graph import Direction
from monoflow.ir import Operation
from monoflow.lattice import UnionSetLattice

DefinitionSet = FrozenSet[Operation]


class ReachingDefinitionsAnalysis(FunctionAnalysis[DefinitionSet]):
    """
    Reaching definitions analysis.

    After ``run()``, use:
      - ``reaching_before(op)`` (alias ``reaching_at``) → definitions reaching *op*
      - ``reaching_after(op)``
      - ``definitions_of(entity, op)`` → the subset defining *entity*
    """

    lattice = UnionSetLattice()

    @property
    def direction(self) -> Direction:
        return Direction.FORWARD

    def step(self, op: Operation, reaching: DefinitionSet) -> DefinitionSet:
        if op.result is None:
            return reaching
        return reaching | {op}

    def reaching_before(self, op: Operation) -> DefinitionSet:
        return self.value_before(op)

    reaching_at = reaching_before

    def reaching_after(self, op: Operation) -> DefinitionSet:
        return self.value_after(op)

    def definitions_of(self, entity: str, op: Operation) -> DefinitionSet:
        """Definitions of *entity* reaching the point just before *op*."""
        return frozenset(d for d in self.reaching_before(op) if d.result == entity)
