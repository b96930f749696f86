"""
monoflow.propagation
====================

Instruction-level propagation: turning a node's converged boundary value
into one value per operation.

After the solver converges, a client walks each node's operations once,
starting from the boundary appropriate to the direction (entry for
forward analyses, exit for backward ones, walked in reverse).  It applies
the same per-operation ``step`` its node transfer function is built from.
The walk must end exactly at the node's other converged boundary;
:func:`check_far_boundary` enforces that.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Hashable, Sequence, TypeVar

from monoflow.errors import PropagationMismatchError
from monoflow.graph import Direction
from monoflow.lattice import Lattice

L = TypeVar("L")

Step = Callable[[Any, L], L]


class Point(enum.Enum):
    """Program point recorded for an operation, in program order."""
    BEFORE = "before"
    AFTER = "after"


@dataclass
class OperationWalk(Generic[L]):
    """Result of walking one node's operations.

    Attributes
    ----------
    values : dict
        ``operation → value`` at the requested point.
    boundary : L
        Value reached at the far side of the node.
    """
    values: Dict[Hashable, L] = field(default_factory=dict)
    boundary: Any = None


def walk_operations(
    operations: Sequence,
    start: L,
    step: Step,
    *,
    direction: Direction,
    record: Point,
) -> OperationWalk[L]:
    """Apply *step* to each operation starting from *start*.

    Forward walks go first-to-last, backward walks last-to-first.  For
    every operation the value at *record* (in program order) is stored:
    ``BEFORE`` is the value flowing into the operation for forward walks
    and the value produced by it for backward walks, and vice versa.
    """
    walk: OperationWalk[L] = OperationWalk()
    current = start
    forward = direction.is_forward
    sequence = operations if forward else list(reversed(operations))
    # Before-in-program-order is the pre-step value when walking forward
    # and the post-step value when walking backward.
    record_pre_step = (record is Point.BEFORE) == forward
    for op in sequence:
        if record_pre_step:
            walk.values[op] = current
        current = step(op, current)
        if not record_pre_step:
            walk.values[op] = current
    walk.boundary = current
    return walk


def check_far_boundary(
    lattice: Lattice[L],
    walk: OperationWalk[L],
    expected: L,
    node: Any,
) -> None:
    """Raise :class:`PropagationMismatchError` unless the walk ends at *expected*."""
    if not lattice.eq(walk.boundary, expected):
        raise PropagationMismatchError(node, expected, walk.boundary)
