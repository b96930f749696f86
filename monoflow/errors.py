# monoflow/errors.py
"""
monoflow error types
====================

Every failure the engine or its clients can report is a precondition
failure of one analysis run.  They are raised before the first sweep
whenever the problem is visible at setup time, and they never leave
state behind that could affect another run.

Hierarchy
---------
::

    DataflowError
    ├── MissingBoundaryError      (also a KeyError)
    ├── TransferTableError
    │   ├── MergeTableError
    │   └── DirectionMismatchError
    ├── NonConvergenceError
    ├── PropagationMismatchError
    └── IRError
"""

from __future__ import annotations

from typing import Any, Optional


class DataflowError(Exception):
    """Base exception for all monoflow errors."""

    def __init__(self, message: str, *, node: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.node = node

    def __str__(self) -> str:
        return self.message


# ───────────────────────────────────────────────────────────────────────────
# BOUNDARY MAP ERRORS
# ───────────────────────────────────────────────────────────────────────────

class MissingBoundaryError(DataflowError, KeyError):
    """A ``(node, side)`` pair was read but never seeded by the client."""

    def __init__(self, node: Any, side: Any) -> None:
        super().__init__(
            f"boundary map has no {side.value} value for node {node!r}; "
            f"seed every (node, side) pair before running the solver",
            node=node,
        )
        self.side = side


# ───────────────────────────────────────────────────────────────────────────
# TRANSFER TABLE ERRORS
# ───────────────────────────────────────────────────────────────────────────

class TransferTableError(DataflowError):
    """The per-node transfer records do not match the graph."""


class MergeTableError(TransferTableError):
    """A merge node's edge table does not cover one of its predecessors."""

    def __init__(
        self,
        message: str,
        *,
        node: Any = None,
        predecessor: Any = None,
    ) -> None:
        super().__init__(message, node=node)
        self.predecessor = predecessor


class DirectionMismatchError(TransferTableError):
    """Records registered for one run disagree on the analysis direction."""


# ───────────────────────────────────────────────────────────────────────────
# RUN-TIME ERRORS
# ───────────────────────────────────────────────────────────────────────────

class NonConvergenceError(DataflowError):
    """The solver exceeded the caller's ``max_sweeps`` bound.

    Only raised when a bound was requested.  It almost always means a
    transfer function or meet is not monotone.
    """

    def __init__(self, sweeps: int, changed: Optional[list] = None) -> None:
        super().__init__(
            f"no fixed point after {sweeps} sweeps "
            f"({len(changed or [])} nodes still changing)"
        )
        self.sweeps = sweeps
        self.changed = list(changed or [])


class PropagationMismatchError(DataflowError):
    """Walking a node's operations did not reproduce its converged boundary."""

    def __init__(self, node: Any, expected: Any, actual: Any) -> None:
        super().__init__(
            f"operation walk over {node!r} ends at {actual!r}, "
            f"but the fixed point holds {expected!r}",
            node=node,
        )
        self.expected = expected
        self.actual = actual


class IRError(DataflowError):
    """Malformed reference IR."""
