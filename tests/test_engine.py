# tests/test_engine.py
"""
Tests for the fixed-point solver.
"""

import logging

import pytest

from monoflow.engine import DataflowResult, FixedPointSolver, IterationScheme, solve
from monoflow.errors import MissingBoundaryError, NonConvergenceError, TransferTableError
from monoflow.graph import Direction, Side, seed_boundaries
from monoflow.lattice import UnionSetLattice
from monoflow.transfer import TransferRecord, TransferTable
from tests.conftest import SimpleGraph, gen_records

LOOP_EDGES = [("a", "b"), ("b", "c"), ("c", "b"), ("b", "d")]
GEN = {"a": {"1"}, "b": {"2"}, "c": {"3"}, "d": {"4"}}


def loop_graph():
    return SimpleGraph(["a", "b", "c", "d"], LOOP_EDGES)


def run_loop(direction=Direction.FORWARD, **options):
    g = loop_graph()
    return solve(
        g, UnionSetLattice(), gen_records(g, GEN, direction),
        seed_boundaries(g.nodes(), frozenset), **options,
    )


class TestForwardFixedPoint:

    def test_loop_converges(self):
        result = run_loop()
        assert result.exit("a") == {"1"}
        assert result.entry("b") == {"1", "2", "3"}
        assert result.exit("c") == {"1", "2", "3"}
        assert result.exit("d") == {"1", "2", "3", "4"}

    def test_final_sweep_changes_nothing(self):
        result = run_loop()
        assert result.sweeps >= 2
        assert isinstance(result, DataflowResult)
        assert result.direction is Direction.FORWARD

    def test_sweep_order_does_not_change_result(self):
        forward = run_loop()
        reverse = run_loop(order=["d", "c", "b", "a"])
        assert forward.boundaries == reverse.boundaries

    def test_jacobi_matches_gauss_seidel(self):
        gs = run_loop(scheme=IterationScheme.GAUSS_SEIDEL)
        jacobi = run_loop(scheme=IterationScheme.JACOBI)
        assert gs.boundaries == jacobi.boundaries
        assert jacobi.sweeps >= gs.sweeps

    def test_start_and_far_values(self):
        result = run_loop()
        assert result.start_value("d") == result.entry("d")
        assert result.far_value("d") == result.exit("d")


class TestBackwardFixedPoint:

    def test_loop_converges(self):
        result = run_loop(Direction.BACKWARD)
        assert result.entry("d") == {"4"}
        assert result.exit("b") == {"2", "3", "4"}
        assert result.entry("a") == {"1", "2", "3", "4"}
        assert result.exit("a") == {"2", "3", "4"}

    def test_start_value_is_exit(self):
        result = run_loop(Direction.BACKWARD)
        assert result.start_value("a") == result.exit("a")
        assert result.far_value("a") == result.entry("a")


class TestSolverPreconditions:

    def test_missing_boundary(self):
        g = loop_graph()
        initial = seed_boundaries(g.nodes(), frozenset)
        del initial[("c", Side.EXIT)]
        solver = FixedPointSolver(g, UnionSetLattice(), TransferTable(g, gen_records(g, GEN)))
        with pytest.raises(MissingBoundaryError) as exc:
            solver.run(initial)
        assert exc.value.node == "c"
        assert exc.value.side is Side.EXIT

    def test_missing_boundary_is_a_key_error(self):
        g = SimpleGraph(["a"])
        solver = FixedPointSolver(g, UnionSetLattice(), TransferTable(g, gen_records(g, {})))
        with pytest.raises(KeyError):
            solver.run({})

    def test_order_must_be_permutation(self):
        g = loop_graph()
        table = TransferTable(g, gen_records(g, GEN))
        with pytest.raises(TransferTableError):
            FixedPointSolver(g, UnionSetLattice(), table, order=["a", "b"])

    def test_initial_map_not_mutated(self):
        g = loop_graph()
        initial = seed_boundaries(g.nodes(), frozenset)
        snapshot = dict(initial)
        solve(g, UnionSetLattice(), gen_records(g, GEN), initial)
        assert initial == snapshot

    def test_solve_accepts_table(self):
        g = loop_graph()
        table = TransferTable(g, gen_records(g, GEN))
        result = solve(g, UnionSetLattice(), table, seed_boundaries(g.nodes(), frozenset))
        assert result.exit("d") == {"1", "2", "3", "4"}


class TestNonConvergence:

    @staticmethod
    def flip_solver(max_sweeps):
        g = SimpleGraph(["n"], [("n", "n")])
        flip = lambda v: frozenset() if v else frozenset({"x"})
        table = TransferTable(g, [TransferRecord("n", Direction.FORWARD, flip)])
        return FixedPointSolver(g, UnionSetLattice(), table, max_sweeps=max_sweeps)

    def test_bounded_run_raises(self):
        solver = self.flip_solver(5)
        with pytest.raises(NonConvergenceError) as exc:
            solver.run(seed_boundaries(["n"], frozenset))
        assert exc.value.sweeps == 5
        assert exc.value.changed == ["n"]

    def test_bound_not_hit_by_converging_run(self):
        result = run_loop(max_sweeps=50)
        assert result.sweeps <= 50


class TestLogging:

    def test_sweeps_logged_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="monoflow.engine"):
            result = run_loop()
        messages = [r.getMessage() for r in caplog.records if r.name == "monoflow.engine"]
        assert any(m.startswith("sweep 1:") for m in messages)
        assert any(f"fixed point after {result.sweeps} sweeps" in m for m in messages)
