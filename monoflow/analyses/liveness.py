"""
monoflow.analyses.liveness
==========================

Live entities (backward, may).

An entity is *live* at a point if its current value may be read later.
Meet is set union and ``top`` is the empty set.

Per operation (walking backward)::

    live = (live - {defined}) ∪ {used entities}

Only arguments and operation results count as entities; constant
operands are ignored.

Merge blocks
------------
A merge selects its operand by incoming edge, so the node function stops
at the leading merges and each predecessor edge gets its own function.
The merges of a block read their inputs together, so the edge function
first drops every merge result and then adds every value that flows in
from that predecessor, including a result of a sibling merge.  The
backward pass applies the function for edge ``p → block`` while
computing ``p``'s exit, so a value used by a merge is live out of its
own branch only.
"""

from __future__ import annotations

from typing import Callable, Dict, FrozenSet, List, Optional

from monoflow.analyses.base import FunctionAnalysis
from monoflow.graph import Direction
from monoflow.ir import Block, Operation
from monoflow.lattice import UnionSetLattice

LiveSet = FrozenSet[str]


class LivenessAnalysis(FunctionAnalysis[LiveSet]):
    """
    Live entity analysis.

    After ``run()``, use:
      - ``live_in(op)`` / ``live_out(op)`` → entities live before / after *op*
      - ``is_live_after(entity, op)`` → bool
      - ``live_in_block(block)`` / ``live_out_block(block)``

    Merge operations have no per-operation value; their effect lives on
    the incoming edges.
    """

    lattice = UnionSetLattice()

    @property
    def direction(self) -> Direction:
        return Direction.BACKWARD

    def step(self, op: Operation, live: LiveSet) -> LiveSet:
        used = {u for u in op.uses if self.function.is_entity(u)}
        if op.result is not None:
            live = live - {op.result}
        return live | frozenset(used)

    def node_operations(self, block: Block) -> List[Operation]:
        return block.body_operations

    def edge_functions(self, block: Block) -> Optional[Dict[Block, Callable]]:
        if not block.has_merge_operations:
            return None
        merges = block.merge_operations
        return {pred: self._merge_edge(merges, pred) for pred in block.predecessors}

    def _merge_edge(self, merges: List[Operation], pred: Block) -> Callable:
        defined = frozenset(op.result for op in merges)
        incoming = frozenset(
            value
            for value in (op.incoming_from(pred) for op in merges)
            if value is not None and self.function.is_entity(value)
        )

        def apply(live: LiveSet) -> LiveSet:
            # Merges read their inputs simultaneously on entry to the block.
            return (live - defined) | incoming

        return apply

    # ── Query API ────────────────────────────────────────────────────

    def live_in(self, op: Operation) -> LiveSet:
        return self.value_before(op)

    def live_out(self, op: Operation) -> LiveSet:
        return self.value_after(op)

    def is_live_after(self, entity: str, op: Operation) -> bool:
        return entity in self.live_out(op)

    def live_in_block(self, block: Block) -> LiveSet:
        return self.in_state(block)

    def live_out_block(self, block: Block) -> LiveSet:
        return self.out_state(block)
