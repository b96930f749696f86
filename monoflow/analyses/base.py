"""
monoflow.analyses.base
======================

Common driver for client analyses over a reference-IR :class:`Function`.

Subclasses implement:
  - ``direction``              — FORWARD or BACKWARD
  - ``lattice``                — the value domain
  - ``step(op, value)``        — per-operation effect
  - ``node_operations(block)`` — operations the node function folds over
  - ``edge_functions(block)``  — per-predecessor functions for merge blocks
                                 (default: none)

The base class provides:
  - ``build_transfer_table()`` — one record per block, validated
  - ``initial_boundaries()``   — every ``(block, side)`` seeded with ``top``
  - ``run()``                  — fixed point, then per-operation propagation
  - ``in_state`` / ``out_state`` / ``value_before`` / ``value_after``
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from monoflow.engine import DataflowResult, FixedPointSolver, IterationScheme
from monoflow.errors import DataflowError
from monoflow.graph import BoundaryMap, Direction, seed_boundaries
from monoflow.ir import Block, Function, Operation
from monoflow.lattice import Lattice
from monoflow.propagation import Point, check_far_boundary, walk_operations
from monoflow.transfer import TransferRecord, TransferTable

logger = logging.getLogger(__name__)

L = TypeVar("L")


class FunctionAnalysis(ABC, Generic[L]):
    """
    Abstract base for the bundled client analyses.

    Parameters
    ----------
    function : Function
        The function to analyse.  Must not change while the analysis runs.
    scheme : IterationScheme
        Passed to :class:`FixedPointSolver`.
    max_sweeps : int, optional
        Passed to :class:`FixedPointSolver`.
    check_consistency : bool
        Verify that every per-operation walk ends at the converged far
        boundary of its block.
    """

    lattice: Lattice[L]

    def __init__(
        self,
        function: Function,
        *,
        scheme: IterationScheme = IterationScheme.GAUSS_SEIDEL,
        max_sweeps: Optional[int] = None,
        check_consistency: bool = True,
    ) -> None:
        self.function = function
        self.scheme = scheme
        self.max_sweeps = max_sweeps
        self.check_consistency = check_consistency
        self.result: Optional[DataflowResult[L]] = None
        self._before: Dict[Operation, L] = {}
        self._after: Dict[Operation, L] = {}

    # ── Subclass contract ────────────────────────────────────────────

    @property
    @abstractmethod
    def direction(self) -> Direction:
        ...

    @abstractmethod
    def step(self, op: Operation, value: L) -> L:
        """Effect of one operation, in the analysis direction."""
        ...

    def node_operations(self, block: Block) -> List[Operation]:
        """Operations folded by the node function.  Default: all of them."""
        return list(block.operations)

    def edge_functions(self, block: Block) -> Optional[Dict[Block, Callable[[L], L]]]:
        """Per-predecessor functions for a block with merge operations."""
        return None

    # ── Engine wiring ────────────────────────────────────────────────

    def build_transfer_table(self) -> TransferTable:
        self.function.validate_merges()
        records = [
            TransferRecord(
                node=block,
                direction=self.direction,
                node_function=self._node_function(block),
                edge_functions=self.edge_functions(block),
            )
            for block in self.function.blocks
        ]
        return TransferTable(self.function, records)

    def initial_boundaries(self) -> BoundaryMap:
        return seed_boundaries(self.function.blocks, self.lattice.top)

    def _node_function(self, block: Block) -> Callable[[L], L]:
        ops = self.node_operations(block)
        if self.direction is Direction.BACKWARD:
            ops = list(reversed(ops))

        def apply(value: L) -> L:
            for op in ops:
                value = self.step(op, value)
            return value

        return apply

    def run(self) -> DataflowResult[L]:
        """Execute the analysis."""
        solver = FixedPointSolver(
            self.function,
            self.lattice,
            self.build_transfer_table(),
            scheme=self.scheme,
            max_sweeps=self.max_sweeps,
        )
        self.result = solver.run(self.initial_boundaries())
        self._propagate()
        logger.debug(
            "%s on %s: %d sweeps, %d operations",
            type(self).__name__, self.function.name,
            self.result.sweeps, len(self._before),
        )
        return self.result

    def _propagate(self) -> None:
        self._before.clear()
        self._after.clear()
        for block in self.function.blocks:
            ops = self.node_operations(block)
            start = self.result.start_value(block)
            for point, store in ((Point.BEFORE, self._before), (Point.AFTER, self._after)):
                walk = walk_operations(
                    ops, start, self.step,
                    direction=self.direction, record=point,
                )
                store.update(walk.values)
            if self.check_consistency:
                check_far_boundary(
                    self.lattice, walk, self.result.far_value(block), block,
                )

    # ── Query API ────────────────────────────────────────────────────

    def _require_result(self) -> DataflowResult[L]:
        if self.result is None:
            raise DataflowError(f"{type(self).__name__}.run() has not been called")
        return self.result

    def in_state(self, block: Block) -> L:
        """Value at the entry of *block*."""
        return self._require_result().entry(block)

    def out_state(self, block: Block) -> L:
        """Value at the exit of *block*."""
        return self._require_result().exit(block)

    def value_before(self, op: Operation) -> L:
        """Value immediately before *op* in program order."""
        return self._lookup(self._before, op)

    def value_after(self, op: Operation) -> L:
        """Value immediately after *op* in program order."""
        return self._lookup(self._after, op)

    def _lookup(self, store: Dict[Operation, L], op: Operation) -> L:
        self._require_result()
        try:
            return store[op]
        except KeyError:
            raise DataflowError(
                f"{type(self).__name__} keeps no per-operation value for {op!r}",
                node=op.block,
            ) from None
