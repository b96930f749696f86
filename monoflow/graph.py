"""
monoflow.graph
==============

The abstract control-flow view the engine consumes, and the boundary map
it iterates over.

The engine never builds or inspects a program representation.  All it
needs from the host is node enumeration and the predecessor / successor
relation, captured by :class:`ControlFlowView`.  The graph must stay
fixed for the duration of one analysis run.

Public API
----------
    Direction           - forward / backward enum
    Side                - entry / exit side of a node
    ControlFlowView     - protocol for the host CFG
    BoundaryMap         - ``(node, side) → value`` mapping type
    seed_boundaries     - build an initial boundary map
    require_boundaries  - reject a map missing any ``(node, side)`` pair
"""

from __future__ import annotations

import enum
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
    runtime_checkable,
)

from monoflow.errors import MissingBoundaryError

L = TypeVar("L")
Node = Hashable


# ===========================================================================
# DIRECTION / SIDE
# ===========================================================================

class Direction(enum.Enum):
    """Direction of dataflow propagation."""
    FORWARD = "forward"
    BACKWARD = "backward"

    @property
    def is_forward(self) -> bool:
        return self is Direction.FORWARD


class Side(enum.Enum):
    """Which boundary of a node a value describes."""
    ENTRY = "entry"
    EXIT = "exit"

    def opposite(self) -> "Side":
        return Side.EXIT if self is Side.ENTRY else Side.ENTRY


# ===========================================================================
# CONTROL FLOW VIEW
# ===========================================================================

@runtime_checkable
class ControlFlowView(Protocol):
    """What the engine needs to know about a control-flow graph.

    ``nodes()`` fixes the natural sweep order.  Nodes must be hashable
    and stable for the duration of a run.
    """

    def nodes(self) -> Sequence[Node]:
        ...

    def predecessors(self, node: Node) -> Sequence[Node]:
        ...

    def successors(self, node: Node) -> Sequence[Node]:
        ...


# ===========================================================================
# BOUNDARY MAP
# ===========================================================================

BoundaryMap = Dict[Tuple[Node, Side], Any]


def seed_boundaries(
    nodes: Iterable[Node],
    make_value: Callable[[], L],
) -> BoundaryMap:
    """Return a boundary map with both sides of every node set.

    *make_value* is called once per ``(node, side)`` pair, so clients
    that use mutable containers get independent values.
    """
    seeded: BoundaryMap = {}
    for node in nodes:
        seeded[(node, Side.ENTRY)] = make_value()
        seeded[(node, Side.EXIT)] = make_value()
    return seeded


def require_boundaries(graph: ControlFlowView, boundaries: BoundaryMap) -> None:
    """Raise :class:`MissingBoundaryError` for the first unseeded pair."""
    for node in graph.nodes():
        for side in Side:
            if (node, side) not in boundaries:
                raise MissingBoundaryError(node, side)


def read_boundary(boundaries: BoundaryMap, node: Node, side: Side) -> Any:
    """Read one boundary value; unseeded pairs are a precondition failure."""
    try:
        return boundaries[(node, side)]
    except KeyError:
        raise MissingBoundaryError(node, side) from None
