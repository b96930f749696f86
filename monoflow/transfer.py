"""
monoflow.transfer
=================

Per-node transfer functions and the per-node pass evaluator.

Each control-flow node gets one :class:`TransferRecord` holding

1.  a node-wide function ``apply_node`` over the combined boundary value,
    and
2.  when the node begins with merge operations, one function per
    predecessor edge (``edge_functions``).  An edge function replaces the
    plain combine step for values arriving along that edge only.

All records of one run are collected in a :class:`TransferTable`, built
and validated once before iteration and then only read.  The backward
pass needs a *successor's* edge functions, so it looks them up in the
table rather than through any node-owned reference.

Combining one node
------------------
Forward::

    entry = ⊓ over preds p of  edge_p(out[p])   if merges   else  out[p]
    exit  = apply_node(entry)

Backward::

    exit  = ⊓ over succs s of  s.edge_{this}(in[s])   if s has merges
                                in[s]                  otherwise
    entry = apply_node(exit)

An empty meet (no predecessors / no successors) is ``top``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import (
    Callable,
    Dict,
    Generic,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
)

from monoflow.errors import (
    DirectionMismatchError,
    MergeTableError,
    TransferTableError,
)
from monoflow.graph import (
    BoundaryMap,
    ControlFlowView,
    Direction,
    Node,
    Side,
    read_boundary,
)
from monoflow.lattice import Lattice

logger = logging.getLogger(__name__)

L = TypeVar("L")

NodeFunction = Callable[[L], L]


# ===========================================================================
# TRANSFER RECORD
# ===========================================================================

@dataclass(frozen=True)
class TransferRecord(Generic[L]):
    """The transfer functions registered for one control-flow node.

    Attributes
    ----------
    node : hashable
        The node this record belongs to.
    direction : Direction
        Must be the same for every record in one run.
    node_function : callable(L) → L
        Whole-node effect, applied after combining neighbour values.
    edge_functions : mapping predecessor → callable(L) → L, optional
        Present only for nodes that begin with merge operations.  Must
        cover every predecessor of *node*.
    """

    node: Node
    direction: Direction
    node_function: NodeFunction
    edge_functions: Optional[Mapping[Node, NodeFunction]] = field(default=None)

    @property
    def has_merge_operations(self) -> bool:
        return self.edge_functions is not None

    def apply_node(self, value: L) -> L:
        return self.node_function(value)

    def apply_edge(self, predecessor: Node, value: L) -> L:
        """Apply the merge effect specific to arriving from *predecessor*."""
        if self.edge_functions is None:
            raise MergeTableError(
                f"node {self.node!r} has no merge operations",
                node=self.node,
                predecessor=predecessor,
            )
        try:
            fn = self.edge_functions[predecessor]
        except KeyError:
            raise MergeTableError(
                f"node {self.node!r} has no edge function for "
                f"predecessor {predecessor!r}",
                node=self.node,
                predecessor=predecessor,
            ) from None
        return fn(value)


# ===========================================================================
# TRANSFER TABLE
# ===========================================================================

class TransferTable(Mapping[Node, TransferRecord]):
    """Read-only ``node → TransferRecord`` table for one analysis run.

    Construction validates the records against *graph*: every node has
    exactly one record, all records share a direction, and every merge
    node covers all of its predecessors.  Problems surface here, before
    the first sweep, never mid-iteration.

    Parameters
    ----------
    graph : ControlFlowView
        The graph the records describe.
    records : iterable of TransferRecord
        One per node.
    """

    def __init__(
        self,
        graph: ControlFlowView,
        records: Iterable[TransferRecord],
    ) -> None:
        self._records: Dict[Node, TransferRecord] = {}
        for record in records:
            if record.node in self._records:
                raise TransferTableError(
                    f"duplicate transfer record for node {record.node!r}",
                    node=record.node,
                )
            self._records[record.node] = record
        self.direction = self._validate(graph)

    def _validate(self, graph: ControlFlowView) -> Direction:
        nodes = list(graph.nodes())
        known = set(nodes)
        for node in nodes:
            if node not in self._records:
                raise TransferTableError(
                    f"no transfer record for node {node!r}", node=node,
                )
        for node in self._records:
            if node not in known:
                raise TransferTableError(
                    f"transfer record for node {node!r} which is not in the graph",
                    node=node,
                )

        directions = {r.direction for r in self._records.values()}
        if len(directions) > 1:
            raise DirectionMismatchError(
                "transfer records mix directions: "
                + ", ".join(sorted(d.value for d in directions))
            )
        direction = directions.pop() if directions else Direction.FORWARD

        for node in nodes:
            record = self._records[node]
            if not record.has_merge_operations:
                continue
            for pred in graph.predecessors(node):
                if pred not in record.edge_functions:
                    raise MergeTableError(
                        f"merge node {node!r} has no edge function for "
                        f"predecessor {pred!r}",
                        node=node,
                        predecessor=pred,
                    )

        logger.debug(
            "transfer table: %d nodes, %s, %d merge nodes",
            len(nodes), direction.value,
            sum(1 for r in self._records.values() if r.has_merge_operations),
        )
        return direction

    def __getitem__(self, node: Node) -> TransferRecord:
        return self._records[node]

    def __iter__(self) -> Iterator[Node]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"TransferTable({len(self)} nodes, {self.direction.value})"


# ===========================================================================
# PER-NODE PASS
# ===========================================================================

def evaluate_node(
    node: Node,
    graph: ControlFlowView,
    table: TransferTable,
    lattice: Lattice[L],
    current: BoundaryMap,
) -> Tuple[L, L]:
    """Compute *node*'s new ``(entry, exit)`` pair from *current*.

    *current* is only read.  Missing neighbour values raise
    :class:`~monoflow.errors.MissingBoundaryError`.
    """
    record = table[node]
    if table.direction is Direction.FORWARD:
        return _forward_pass(node, record, graph, lattice, current)
    return _backward_pass(node, record, graph, table, lattice, current)


def _forward_pass(node, record, graph, lattice, current):
    entry = lattice.top()
    for pred in graph.predecessors(node):
        incoming = read_boundary(current, pred, Side.EXIT)
        if record.has_merge_operations:
            incoming = record.apply_edge(pred, incoming)
        entry = lattice.meet(entry, incoming)
    return entry, record.apply_node(entry)


def _backward_pass(node, record, graph, table, lattice, current):
    exit_ = lattice.top()
    for succ in graph.successors(node):
        incoming = read_boundary(current, succ, Side.ENTRY)
        succ_record = table[succ]
        if succ_record.has_merge_operations:
            incoming = succ_record.apply_edge(node, incoming)
        exit_ = lattice.meet(exit_, incoming)
    return record.apply_node(exit_), exit_
