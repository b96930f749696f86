# tests/conftest.py
"""
Shared fixtures and builders for monoflow tests.

``SimpleGraph`` is a bare ``ControlFlowView`` over string nodes for
engine-level tests; the ``build_*`` helpers return small reference-IR
functions for the client analyses.
"""

from __future__ import annotations

import random
from typing import Dict, Iterable, List, Tuple

import pytest

from monoflow.graph import Direction
from monoflow.ir import Function
from monoflow.transfer import TransferRecord


class SimpleGraph:
    """A directed graph over hashable nodes, in insertion order."""

    def __init__(self, nodes: Iterable[str], edges: Iterable[Tuple[str, str]] = ()):
        self._nodes: List[str] = list(nodes)
        self._preds: Dict[str, List[str]] = {n: [] for n in self._nodes}
        self._succs: Dict[str, List[str]] = {n: [] for n in self._nodes}
        for src, dst in edges:
            self._succs[src].append(dst)
            self._preds[dst].append(src)

    def nodes(self) -> List[str]:
        return list(self._nodes)

    def predecessors(self, node: str) -> List[str]:
        return list(self._preds[node])

    def successors(self, node: str) -> List[str]:
        return list(self._succs[node])


def gen_records(graph: SimpleGraph, gen: Dict[str, set],
                direction: Direction = Direction.FORWARD) -> List[TransferRecord]:
    """One ``value ∪ gen[node]`` record per node."""
    return [
        TransferRecord(
            node=n,
            direction=direction,
            node_function=lambda v, g=frozenset(gen.get(n, ())): v | g,
        )
        for n in graph.nodes()
    ]


def random_sets(rng: random.Random, universe: str, count: int) -> List[frozenset]:
    return [
        frozenset(x for x in universe if rng.random() < 0.5)
        for _ in range(count)
    ]


# ---------------------------------------------------------------------------
#  Reference-IR builders
# ---------------------------------------------------------------------------

def build_two_blocks() -> Function:
    """A: x = add 1, 2 → B: ret x"""
    fn = Function("two")
    a = fn.add_block("A")
    b = fn.add_block("B")
    fn.add_edge(a, b)
    a.op("add", "x", "1", "2")
    b.ret("x")
    return fn


def build_diamond() -> Function:
    """entry branches on argument ``a``; join merges ``l`` and ``r``."""
    fn = Function("diamond", arguments={"a": False})
    entry = fn.add_block("entry")
    left = fn.add_block("left")
    right = fn.add_block("right")
    join = fn.add_block("join")
    fn.add_edge(entry, left)
    fn.add_edge(entry, right)
    fn.add_edge(left, join)
    fn.add_edge(right, join)
    entry.op("icmp", "c", "a", "0")
    left.op("add", "l", "a", "1")
    right.op("mul", "r", "a", "2")
    join.merge("m", {left: "l", right: "r"})
    join.ret("m")
    return fn


def build_loop() -> Function:
    """A counting loop: header merges ``i0`` and ``i1`` and compares with ``n``."""
    fn = Function("loop", arguments={"n": False})
    entry = fn.add_block("entry")
    header = fn.add_block("header")
    body = fn.add_block("body")
    done = fn.add_block("exit")
    fn.add_edge(entry, header)
    fn.add_edge(header, body)
    fn.add_edge(header, done)
    fn.add_edge(body, header)
    entry.op("add", "i0", "0", "0")
    header.merge("i", {entry: "i0", body: "i1"})
    header.op("icmp", "c", "i", "n")
    body.op("add", "i1", "i", "1")
    done.ret("i")
    return fn


@pytest.fixture
def two_blocks() -> Function:
    return build_two_blocks()


@pytest.fixture
def diamond() -> Function:
    return build_diamond()


@pytest.fixture
def loop() -> Function:
    return build_loop()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(20240611)


def build_swap_loop(pointer: bool = False) -> Function:
    """A self-loop whose two merges swap ``a`` and ``b`` on the back edge."""
    fn = Function("swap")
    entry = fn.add_block("entry")
    head = fn.add_block("head")
    done = fn.add_block("exit")
    fn.add_edge(entry, head)
    fn.add_edge(head, head)
    fn.add_edge(head, done)
    if pointer:
        entry.alloc("x")
        entry.alloc("y")
        entry.cast("a0", "x")
        entry.cast("b0", "y")
    else:
        entry.op("add", "a0", "1", "2")
        entry.op("add", "b0", "3", "4")
    head.merge("a", {entry: "a0", head: "b"}, pointer=pointer)
    head.merge("b", {entry: "b0", head: "a"}, pointer=pointer)
    head.op("print", None, "a")
    done.ret()
    return fn
