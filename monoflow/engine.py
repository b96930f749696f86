"""
monoflow.engine
===============

The fixed-point driver.

Given a graph, a lattice, a validated :class:`~monoflow.transfer.TransferTable`
and a client-seeded boundary map, the solver repeats full sweeps over every
node until one sweep leaves every node's entry and exit value unchanged.

Termination
-----------
Guaranteed when the lattice has finite height and both ``meet`` and every
transfer function are monotone.  The engine does not check monotonicity;
a non-monotone client may iterate forever.  Callers debugging a client can
pass ``max_sweeps`` to turn that into a :class:`NonConvergenceError`.

Iteration schemes
-----------------
``GAUSS_SEIDEL``
    The default.  One working map is updated in place in sweep order, so
    nodes later in a sweep already see the updates made earlier in it.
    Usually converges in fewer sweeps.
``JACOBI``
    Every node of a sweep reads the snapshot left by the previous sweep
    (double buffering).  Needed if node updates within a sweep are ever
    evaluated independently.

Both reach the same fixed point for monotone systems; the sweep order
affects speed only.

Public API
----------
    IterationScheme     - Gauss-Seidel / Jacobi enum
    DataflowResult      - converged boundary map plus run statistics
    FixedPointSolver    - the driver
    solve               - convenience wrapper
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Generic,
    Iterable,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from monoflow.errors import NonConvergenceError, TransferTableError
from monoflow.graph import (
    BoundaryMap,
    ControlFlowView,
    Direction,
    Node,
    Side,
    require_boundaries,
)
from monoflow.lattice import Lattice
from monoflow.transfer import TransferRecord, TransferTable, evaluate_node

logger = logging.getLogger(__name__)

L = TypeVar("L")


# ===========================================================================
# ITERATION SCHEME
# ===========================================================================

class IterationScheme(enum.Enum):
    """How node updates within one sweep see each other."""
    GAUSS_SEIDEL = "gauss-seidel"
    JACOBI = "jacobi"


# ===========================================================================
# DATAFLOW RESULT
# ===========================================================================

@dataclass
class DataflowResult(Generic[L]):
    """Container for a converged boundary map.

    Attributes
    ----------
    boundaries : dict
        ``(node, side) → value`` at the fixed point.
    direction : Direction
        Analysis direction.
    sweeps : int
        Number of full sweeps, including the final one that changed nothing.
    elapsed_seconds : float
        Wall-clock time.
    """
    boundaries: BoundaryMap = field(default_factory=dict)
    direction: Direction = Direction.FORWARD
    sweeps: int = 0
    elapsed_seconds: float = 0.0

    def fact_at(self, node, side: Side) -> L:
        return self.boundaries[(node, side)]

    def entry(self, node) -> L:
        """Value at the entry of *node*."""
        return self.boundaries[(node, Side.ENTRY)]

    def exit(self, node) -> L:
        """Value at the exit of *node*."""
        return self.boundaries[(node, Side.EXIT)]

    def start_value(self, node) -> L:
        """The boundary a per-operation walk starts from.

        Entry for forward analyses, exit for backward ones.
        """
        return self.boundaries[(node, self._start_side())]

    def far_value(self, node) -> L:
        """The boundary a per-operation walk must end at."""
        return self.boundaries[(node, self._start_side().opposite())]

    def _start_side(self) -> Side:
        return Side.ENTRY if self.direction.is_forward else Side.EXIT


# ===========================================================================
# FIXED-POINT SOLVER
# ===========================================================================

class FixedPointSolver(Generic[L]):
    """Round-robin fixed-point engine over a whole control-flow graph.

    Parameters
    ----------
    graph : ControlFlowView
        The control-flow graph.  Must not change during :meth:`run`.
    lattice : Lattice[L]
        Supplies ``top``, ``meet`` and ``eq``.
    table : TransferTable
        Validated per-node transfer records.
    scheme : IterationScheme
        In-place (Gauss-Seidel) or double-buffered (Jacobi) sweeps.
    order : sequence of nodes, optional
        Sweep order.  Must be a permutation of ``graph.nodes()``.
        Defaults to the graph's natural enumeration order.
    max_sweeps : int, optional
        Abort with :class:`NonConvergenceError` after this many sweeps.
        ``None`` (the default) iterates until convergence.
    """

    def __init__(
        self,
        graph: ControlFlowView,
        lattice: Lattice[L],
        table: TransferTable,
        *,
        scheme: IterationScheme = IterationScheme.GAUSS_SEIDEL,
        order: Optional[Sequence[Node]] = None,
        max_sweeps: Optional[int] = None,
    ) -> None:
        self.graph = graph
        self.lattice = lattice
        self.table = table
        self.scheme = scheme
        self.max_sweeps = max_sweeps
        self._order: List[Node] = self._check_order(order)

    def _check_order(self, order: Optional[Sequence[Node]]) -> List[Node]:
        natural = list(self.graph.nodes())
        if order is None:
            return natural
        order = list(order)
        if len(order) != len(natural) or set(order) != set(natural):
            raise TransferTableError(
                "sweep order must be a permutation of the graph's nodes"
            )
        return order

    @property
    def direction(self) -> Direction:
        return self.table.direction

    def run(self, initial: BoundaryMap) -> DataflowResult[L]:
        """Iterate from *initial* to a fixed point.

        *initial* must hold both sides of every node; it is copied, not
        mutated.

        Returns
        -------
        DataflowResult[L]
        """
        require_boundaries(self.graph, initial)
        t0 = time.monotonic()

        working: BoundaryMap = dict(initial)
        previous: BoundaryMap = dict(initial)
        sweeps = 0

        while True:
            if self.max_sweeps is not None and sweeps >= self.max_sweeps:
                raise NonConvergenceError(sweeps, self._changed_nodes(previous, working))
            sweeps += 1

            source = working if self.scheme is IterationScheme.GAUSS_SEIDEL else previous
            changed = 0
            for node in self._order:
                entry, exit_ = evaluate_node(
                    node, self.graph, self.table, self.lattice, source,
                )
                working[(node, Side.ENTRY)] = entry
                working[(node, Side.EXIT)] = exit_
                if self._differs(previous, node, entry, exit_):
                    changed += 1

            logger.debug("sweep %d: %d nodes changed", sweeps, changed)
            previous = dict(working)
            if not changed:
                break

        elapsed = time.monotonic() - t0
        logger.debug(
            "fixed point after %d sweeps over %d nodes (%.4fs)",
            sweeps, len(self._order), elapsed,
        )
        return DataflowResult(
            boundaries=working,
            direction=self.direction,
            sweeps=sweeps,
            elapsed_seconds=elapsed,
        )

    # ----- Internal helpers -------------------------------------------------

    def _differs(self, previous: BoundaryMap, node, entry, exit_) -> bool:
        eq = self.lattice.eq
        return not (
            eq(previous[(node, Side.ENTRY)], entry)
            and eq(previous[(node, Side.EXIT)], exit_)
        )

    def _changed_nodes(self, previous: BoundaryMap, working: BoundaryMap) -> List[Node]:
        # previous == working after a completed sweep; report the nodes that
        # the next sweep would still change.
        changed = []
        for node in self._order:
            entry, exit_ = evaluate_node(
                node, self.graph, self.table, self.lattice, working,
            )
            if self._differs(previous, node, entry, exit_):
                changed.append(node)
        return changed


# ===========================================================================
# CONVENIENCE API
# ===========================================================================

def solve(
    graph: ControlFlowView,
    lattice: Lattice[L],
    records: Iterable[TransferRecord],
    initial: BoundaryMap,
    **options: Any,
) -> DataflowResult[L]:
    """Build a transfer table from *records* and run the solver once.

    Keyword options are passed to :class:`FixedPointSolver`.
    """
    table = records if isinstance(records, TransferTable) else TransferTable(graph, records)
    return FixedPointSolver(graph, lattice, table, **options).run(initial)
