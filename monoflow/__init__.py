"""
monoflow — a generic monotone dataflow fixed-point engine.

Core
----
    Lattice, UnionSetLattice, PointsToLattice     monoflow.lattice
    Direction, Side, ControlFlowView              monoflow.graph
    TransferRecord, TransferTable                 monoflow.transfer
    FixedPointSolver, IterationScheme, solve      monoflow.engine
    walk_operations, check_far_boundary           monoflow.propagation

Clients (over the reference IR in monoflow.ir)
----------------------------------------------
    LivenessAnalysis, ReachingDefinitionsAnalysis, PointsToAnalysis

Logging goes to the ``monoflow`` logger hierarchy; nothing is printed
unless the application configures a handler.
"""

import logging

from monoflow.analyses import (
    FunctionAnalysis,
    LivenessAnalysis,
    PointsToAnalysis,
    ReachingDefinitionsAnalysis,
)
from monoflow.engine import DataflowResult, FixedPointSolver, IterationScheme, solve
from monoflow.errors import (
    DataflowError,
    DirectionMismatchError,
    IRError,
    MergeTableError,
    MissingBoundaryError,
    NonConvergenceError,
    PropagationMismatchError,
    TransferTableError,
)
from monoflow.graph import ControlFlowView, Direction, Side, seed_boundaries
from monoflow.ir import Block, Function, OpKind, Operation
from monoflow.lattice import Lattice, PointsToLattice, UnionSetLattice
from monoflow.propagation import Point, check_far_boundary, walk_operations
from monoflow.transfer import TransferRecord, TransferTable, evaluate_node

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Block",
    "ControlFlowView",
    "DataflowError",
    "DataflowResult",
    "Direction",
    "DirectionMismatchError",
    "FixedPointSolver",
    "Function",
    "FunctionAnalysis",
    "IRError",
    "IterationScheme",
    "Lattice",
    "LivenessAnalysis",
    "MergeTableError",
    "MissingBoundaryError",
    "NonConvergenceError",
    "OpKind",
    "Operation",
    "Point",
    "PointsToAnalysis",
    "PointsToLattice",
    "PropagationMismatchError",
    "ReachingDefinitionsAnalysis",
    "Side",
    "TransferRecord",
    "TransferTable",
    "TransferTableError",
    "UnionSetLattice",
    "check_far_boundary",
    "evaluate_node",
    "seed_boundaries",
    "solve",
    "walk_operations",
]
