"""
monoflow.analyses.points_to
===========================

May-point-to analysis (forward, flow-sensitive, intraprocedural).

The lattice value maps each entity to the set of allocation sites (or
base entities) it may point to.  Meet is pointwise union and ``top`` is
the empty map.  This is not field-sensitive and not interprocedural; it
is a cheap approximation, not a sound alias analysis.

Per operation, dispatched on :class:`~monoflow.ir.OpKind`:

==============  ==============================================================
``ALLOC``       the result points to its own site
``CAST``        pointer → pointer casts copy the source's set
``MEMBER_ADDR`` the result points to the base entity
``LOAD``        pointer loads read one level of indirection
``STORE``       pointer stores write through one level of indirection
``SELECT``      pointer selects union both arms
``MERGE``       bound on the incoming edges (see below)
``OTHER``       no effect
==============  ==============================================================

Every update adds to the existing set for the target entity; nothing is
ever removed.

Merge blocks get one edge function per predecessor.  It binds each
pointer-typed merge result to the set of the value flowing in from that
predecessor, read from the predecessor's own exit state.  The node
function then treats merges as no-ops.
"""

from __future__ import annotations

from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from monoflow.analyses.base import FunctionAnalysis
from monoflow.graph import Direction
from monoflow.ir import Block, OpKind, Operation
from monoflow.lattice import PointsToLattice, PointsToMap

Handler = Callable[["PointsToAnalysis", Operation, PointsToMap], PointsToMap]

_TRANSFER: Dict[OpKind, Handler] = {}


def _register(kind: OpKind):
    """Decorator: register the transfer handler for *kind*."""
    def deco(fn: Handler) -> Handler:
        _TRANSFER[kind] = fn
        return fn
    return deco


# ═══════════════════════════════════════════════════════════════════════
#  Per-kind transfer handlers
# ═══════════════════════════════════════════════════════════════════════

_targets = PointsToLattice.targets
_add = PointsToLattice.add_targets


@_register(OpKind.ALLOC)
def _alloc(analysis, op, state):
    return _add(state, op.result, {op.result})


@_register(OpKind.CAST)
def _cast(analysis, op, state):
    source = op.operands[0]
    if not (op.pointer and analysis.function.is_pointer(source)):
        return state
    return _add(state, op.result, _targets(state, source))


@_register(OpKind.MEMBER_ADDR)
def _member_addr(analysis, op, state):
    return _add(state, op.result, {op.operands[0]})


@_register(OpKind.LOAD)
def _load(analysis, op, state):
    if not op.pointer:
        return state
    loaded = set()
    for cell in _targets(state, op.operands[0]):
        loaded |= _targets(state, cell)
    return _add(state, op.result, loaded)


@_register(OpKind.STORE)
def _store(analysis, op, state):
    value, address = op.operands[:2]
    if not analysis.function.is_pointer(value):
        return state
    stored = _targets(state, value)
    result = state
    for cell in _targets(state, address):
        result = _add(result, cell, stored)
    return result


@_register(OpKind.SELECT)
def _select(analysis, op, state):
    if not op.pointer:
        return state
    _, if_true, if_false = op.operands[:3]
    return _add(state, op.result, _targets(state, if_true) | _targets(state, if_false))


@_register(OpKind.MERGE)
def _merge(analysis, op, state):
    # Bound per predecessor by the block's edge functions.
    return state


@_register(OpKind.OTHER)
def _other(analysis, op, state):
    return state


if set(_TRANSFER) != set(OpKind):
    raise RuntimeError(
        "points-to transfer has no handler for: "
        + ", ".join(sorted(k.value for k in set(OpKind) - set(_TRANSFER)))
    )


# ═══════════════════════════════════════════════════════════════════════
#  Analysis
# ═══════════════════════════════════════════════════════════════════════

class PointsToAnalysis(FunctionAnalysis[PointsToMap]):
    """
    May-point-to analysis.

    After ``run()``, use:
      - ``points_to(entity, op)`` → sites *entity* may point to after *op*
      - ``state_before(op)`` / ``state_after(op)`` → whole maps
      - ``nonempty_entries(op)`` → sorted report rows, empty sets omitted
    """

    lattice = PointsToLattice()

    @property
    def direction(self) -> Direction:
        return Direction.FORWARD

    def step(self, op: Operation, state: PointsToMap) -> PointsToMap:
        return _TRANSFER[op.kind](self, op, state)

    def edge_functions(self, block: Block) -> Optional[Dict[Block, Callable]]:
        if not block.has_merge_operations:
            return None
        merges = [op for op in block.merge_operations if op.pointer]
        return {pred: self._merge_edge(merges, pred) for pred in block.predecessors}

    @staticmethod
    def _merge_edge(merges: List[Operation], pred: Block) -> Callable:
        def apply(state: PointsToMap) -> PointsToMap:
            result = state
            for op in merges:
                value = op.incoming_from(pred)
                if value is not None:
                    # Merges are simultaneous: read the incoming state.
                    result = _add(result, op.result, _targets(state, value))
            return result

        return apply

    # ── Query API ────────────────────────────────────────────────────

    def state_before(self, op: Operation) -> PointsToMap:
        return self.value_before(op)

    def state_after(self, op: Operation) -> PointsToMap:
        return self.value_after(op)

    def points_to(self, entity: str, op: Operation) -> FrozenSet[str]:
        return _targets(self.state_after(op), entity)

    def nonempty_entries(self, op: Operation) -> List[Tuple[str, List[str]]]:
        state = self.state_after(op)
        return [
            (entity, sorted(state[entity]))
            for entity in sorted(state)
            if state[entity]
        ]
