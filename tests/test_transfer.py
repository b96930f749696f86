# tests/test_transfer.py
"""
Tests for transfer records, table validation and the per-node pass.
"""

import pytest

from monoflow.errors import (
    DirectionMismatchError,
    MergeTableError,
    MissingBoundaryError,
    TransferTableError,
)
from monoflow.graph import Direction, Side, seed_boundaries
from monoflow.lattice import UnionSetLattice
from monoflow.transfer import TransferRecord, TransferTable, evaluate_node
from tests.conftest import SimpleGraph, gen_records


def identity(v):
    return v


class TestTransferRecord:

    def test_plain_record_has_no_merges(self):
        rec = TransferRecord("n", Direction.FORWARD, identity)
        assert not rec.has_merge_operations

    def test_apply_edge_without_merges_fails(self):
        rec = TransferRecord("n", Direction.FORWARD, identity)
        with pytest.raises(MergeTableError):
            rec.apply_edge("p", frozenset())

    def test_apply_edge_unknown_predecessor(self):
        rec = TransferRecord("n", Direction.FORWARD, identity,
                             edge_functions={"p": identity})
        with pytest.raises(MergeTableError) as exc:
            rec.apply_edge("q", frozenset())
        assert exc.value.predecessor == "q"

    def test_apply_edge_dispatches_on_predecessor(self):
        rec = TransferRecord(
            "n", Direction.FORWARD, identity,
            edge_functions={"p": lambda v: v | {"p"}, "q": lambda v: v | {"q"}},
        )
        assert rec.apply_edge("q", frozenset()) == {"q"}


class TestTransferTable:

    def test_valid_table(self):
        g = SimpleGraph(["a", "b"], [("a", "b")])
        table = TransferTable(g, gen_records(g, {}))
        assert len(table) == 2
        assert table.direction is Direction.FORWARD

    def test_missing_record(self):
        g = SimpleGraph(["a", "b"], [("a", "b")])
        with pytest.raises(TransferTableError):
            TransferTable(g, gen_records(g, {})[:1])

    def test_duplicate_record(self):
        g = SimpleGraph(["a"])
        rec = TransferRecord("a", Direction.FORWARD, identity)
        with pytest.raises(TransferTableError):
            TransferTable(g, [rec, rec])

    def test_record_for_unknown_node(self):
        g = SimpleGraph(["a"])
        records = gen_records(g, {}) + [TransferRecord("ghost", Direction.FORWARD, identity)]
        with pytest.raises(TransferTableError):
            TransferTable(g, records)

    def test_mixed_directions(self):
        g = SimpleGraph(["a", "b"], [("a", "b")])
        records = [
            TransferRecord("a", Direction.FORWARD, identity),
            TransferRecord("b", Direction.BACKWARD, identity),
        ]
        with pytest.raises(DirectionMismatchError):
            TransferTable(g, records)

    def test_merge_record_missing_predecessor(self):
        g = SimpleGraph(["a", "b", "c"], [("a", "c"), ("b", "c")])
        records = [
            TransferRecord("a", Direction.FORWARD, identity),
            TransferRecord("b", Direction.FORWARD, identity),
            TransferRecord("c", Direction.FORWARD, identity, edge_functions={"a": identity}),
        ]
        with pytest.raises(MergeTableError) as exc:
            TransferTable(g, records)
        assert exc.value.node == "c"
        assert exc.value.predecessor == "b"


class TestEvaluateNode:

    def test_no_predecessors_starts_from_top(self):
        g = SimpleGraph(["a"])
        lat = UnionSetLattice()
        table = TransferTable(g, gen_records(g, {"a": {"x"}}))
        current = seed_boundaries(g.nodes(), lambda: frozenset({"junk"}))
        assert evaluate_node("a", g, table, lat, current) == (frozenset(), {"x"})

    def test_forward_meets_predecessor_exits(self):
        g = SimpleGraph(["a", "b", "c"], [("a", "c"), ("b", "c")])
        lat = UnionSetLattice()
        table = TransferTable(g, gen_records(g, {}))
        current = seed_boundaries(g.nodes(), frozenset)
        current[("a", Side.EXIT)] = frozenset({"1"})
        current[("b", Side.EXIT)] = frozenset({"2"})
        entry, exit_ = evaluate_node("c", g, table, lat, current)
        assert entry == {"1", "2"}
        assert exit_ == {"1", "2"}

    def test_forward_applies_edge_functions(self):
        g = SimpleGraph(["a", "b", "c"], [("a", "c"), ("b", "c")])
        lat = UnionSetLattice()
        records = [
            TransferRecord("a", Direction.FORWARD, identity),
            TransferRecord("b", Direction.FORWARD, identity),
            TransferRecord("c", Direction.FORWARD, identity, edge_functions={
                "a": lambda v: v | {"from-a"},
                "b": lambda v: v - {"drop"},
            }),
        ]
        table = TransferTable(g, records)
        current = seed_boundaries(g.nodes(), frozenset)
        current[("b", Side.EXIT)] = frozenset({"drop", "keep"})
        entry, _ = evaluate_node("c", g, table, lat, current)
        assert entry == {"from-a", "keep"}

    def test_backward_uses_successor_edge_function(self):
        g = SimpleGraph(["p", "q", "m"], [("p", "m"), ("q", "m")])
        lat = UnionSetLattice()
        records = [
            TransferRecord("p", Direction.BACKWARD, identity),
            TransferRecord("q", Direction.BACKWARD, identity),
            TransferRecord("m", Direction.BACKWARD, identity, edge_functions={
                "p": lambda v: v | {"via-p"},
                "q": lambda v: v | {"via-q"},
            }),
        ]
        table = TransferTable(g, records)
        current = seed_boundaries(g.nodes(), frozenset)
        current[("m", Side.ENTRY)] = frozenset({"live"})
        entry, exit_ = evaluate_node("p", g, table, lat, current)
        assert exit_ == {"live", "via-p"}
        assert entry == exit_

    def test_backward_without_successors_is_top(self):
        g = SimpleGraph(["a"])
        lat = UnionSetLattice()
        table = TransferTable(g, gen_records(g, {"a": {"u"}}, Direction.BACKWARD))
        current = seed_boundaries(g.nodes(), frozenset)
        assert evaluate_node("a", g, table, lat, current) == ({"u"}, frozenset())

    def test_missing_neighbour_value(self):
        g = SimpleGraph(["a", "b"], [("a", "b")])
        lat = UnionSetLattice()
        table = TransferTable(g, gen_records(g, {}))
        current = {("b", Side.ENTRY): frozenset(), ("b", Side.EXIT): frozenset()}
        with pytest.raises(MissingBoundaryError):
            evaluate_node("b", g, table, lat, current)
