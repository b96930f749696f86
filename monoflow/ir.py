"""
monoflow.ir
===========

A minimal reference IR that satisfies the host input contract of the
bundled client analyses.

It is a carrier for that contract, not a program representation library:
a :class:`Function` is an ordered list of :class:`Block` objects
connected by directed edges, and each block is an ordered list of
:class:`Operation` objects.  Entities are named by strings; an entity is
either a function argument or the result of an operation.  The IR need
not be in SSA form: several operations may define the same entity.
Operands that name neither (``"0"``, ``"true"``, global symbols, ...)
are treated as constants.

Merge operations (``OpKind.MERGE``) may only appear at the start of a
block and carry one incoming value per predecessor block.

Typical usage::

    fn = Function("f", arguments={"p": True})
    entry = fn.add_block("entry")
    body = fn.add_block("body")
    fn.add_edge(entry, body)
    a = entry.alloc("a")
    body.cast("b", "a")
    body.ret("b")

Public API
----------
    OpKind      - closed set of operation kinds
    Operation   - one operation
    Block       - a straight-line sequence of operations (a CFG node)
    Function    - blocks + edges; implements ``ControlFlowView``
"""

from __future__ import annotations

import enum
import itertools
from typing import (
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from monoflow.errors import IRError, MergeTableError

# ---------------------------------------------------------------------------
# Operation kinds
# ---------------------------------------------------------------------------


class OpKind(enum.Enum):
    """Closed classification of operations.

    Operand layout per kind:

    ``ALLOC``        ``()``; the result is a fresh allocation site
    ``CAST``         ``(source,)``
    ``MEMBER_ADDR``  ``(base, *indices)``
    ``LOAD``         ``(address,)``
    ``STORE``        ``(value, address)``; no result
    ``SELECT``       ``(condition, if_true, if_false)``
    ``MERGE``        no operands; one incoming value per predecessor
    ``OTHER``        anything else (arithmetic, calls, returns, ...)
    """

    ALLOC = "alloc"
    CAST = "cast"
    MEMBER_ADDR = "member-addr"
    LOAD = "load"
    STORE = "store"
    SELECT = "select"
    MERGE = "merge"
    OTHER = "other"


_op_ids = itertools.count()


# ---------------------------------------------------------------------------
# Operation
# ---------------------------------------------------------------------------

class Operation:
    """One operation of a block.

    Attributes
    ----------
    id : int
        Unique (per-process) numeric identifier.
    kind : OpKind
    result : str or None
        The entity this operation defines, if any.
    operands : tuple of str
        Used names, in operand order (see :class:`OpKind`).
    incoming : tuple of (Block, str)
        Merge operations only: the value feeding the merge from each
        predecessor.
    pointer : bool
        Whether the result is pointer-typed.
    opcode : str
        Free-form mnemonic for reports (``"alloca"``, ``"add"``, ...).
    block : Block or None
        The block that contains this operation.
    """

    __slots__ = (
        "id",
        "kind",
        "result",
        "operands",
        "incoming",
        "pointer",
        "opcode",
        "block",
    )

    def __init__(
        self,
        kind: OpKind,
        result: Optional[str] = None,
        operands: Sequence[str] = (),
        *,
        incoming: Optional[Mapping["Block", str]] = None,
        pointer: bool = False,
        opcode: Optional[str] = None,
    ) -> None:
        if kind is OpKind.MERGE and operands:
            raise IRError("merge operations take incoming values, not operands")
        if kind is not OpKind.MERGE and incoming:
            raise IRError(f"{kind.value} operations cannot have incoming values")
        self.id: int = next(_op_ids)
        self.kind = kind
        self.result = result
        self.operands: Tuple[str, ...] = tuple(operands)
        self.incoming: Tuple[Tuple[Block, str], ...] = tuple((incoming or {}).items())
        self.pointer = pointer
        self.opcode = opcode or kind.value
        self.block: Optional[Block] = None

    @property
    def uses(self) -> Tuple[str, ...]:
        """Names read by this operation."""
        if self.kind is OpKind.MERGE:
            return tuple(value for _, value in self.incoming)
        return self.operands

    def incoming_from(self, predecessor: "Block") -> Optional[str]:
        """Return the value a merge selects when arriving from *predecessor*."""
        for block, value in self.incoming:
            if block is predecessor:
                return value
        return None

    def text(self) -> str:
        """A one-line rendering for reports."""
        if self.kind is OpKind.MERGE:
            args = ", ".join(f"[{v}, {b.name}]" for b, v in self.incoming)
        else:
            args = ", ".join(self.operands)
        body = f"{self.opcode} {args}".rstrip()
        return f"{self.result} = {body}" if self.result else body

    def __repr__(self) -> str:
        return f"Operation({self.text()!r})"

    def __hash__(self) -> int:
        return self.id

    def __eq__(self, other) -> bool:
        if isinstance(other, Operation):
            return self.id == other.id
        return NotImplemented


# ---------------------------------------------------------------------------
# Block
# ---------------------------------------------------------------------------

class Block:
    """A basic block: a CFG node holding a straight-line operation list.

    Blocks are created through :meth:`Function.add_block`.  The helper
    methods (``alloc``, ``cast``, ...) append one operation and return it.
    """

    __slots__ = ("name", "function", "operations", "successors", "predecessors")

    def __init__(self, name: str, function: "Function") -> None:
        self.name = name
        self.function = function
        self.operations: List[Operation] = []
        self.successors: List[Block] = []
        self.predecessors: List[Block] = []

    # ----- structure --------------------------------------------------------

    @property
    def merge_operations(self) -> List[Operation]:
        """The leading run of merge operations."""
        return list(itertools.takewhile(
            lambda op: op.kind is OpKind.MERGE, self.operations,
        ))

    @property
    def body_operations(self) -> List[Operation]:
        """Every operation after the leading merges."""
        return self.operations[len(self.merge_operations):]

    @property
    def has_merge_operations(self) -> bool:
        return bool(self.operations) and self.operations[0].kind is OpKind.MERGE

    def append(self, op: Operation) -> Operation:
        """Append *op*; merges are only accepted before any other operation."""
        if op.block is not None:
            raise IRError(f"{op!r} already belongs to block {op.block.name!r}")
        if op.kind is OpKind.MERGE and self.body_operations:
            raise IRError(
                f"merge operation {op.text()!r} must precede every other "
                f"operation of block {self.name!r}"
            )
        self.function._register_result(op)
        op.block = self
        self.operations.append(op)
        return op

    # ----- builders ---------------------------------------------------------

    def alloc(self, result: str, opcode: str = "alloca") -> Operation:
        return self.append(Operation(OpKind.ALLOC, result, pointer=True, opcode=opcode))

    def cast(self, result: str, source: str, *, pointer: bool = True,
             opcode: str = "bitcast") -> Operation:
        return self.append(Operation(OpKind.CAST, result, (source,),
                                     pointer=pointer, opcode=opcode))

    def member_addr(self, result: str, base: str, *indices: str) -> Operation:
        return self.append(Operation(OpKind.MEMBER_ADDR, result, (base,) + indices,
                                     pointer=True, opcode="getelementptr"))

    def load(self, result: str, address: str, *, pointer: bool = False) -> Operation:
        return self.append(Operation(OpKind.LOAD, result, (address,),
                                     pointer=pointer, opcode="load"))

    def store(self, value: str, address: str) -> Operation:
        return self.append(Operation(OpKind.STORE, None, (value, address), opcode="store"))

    def select(self, result: str, condition: str, if_true: str, if_false: str,
               *, pointer: bool = False) -> Operation:
        return self.append(Operation(OpKind.SELECT, result,
                                     (condition, if_true, if_false),
                                     pointer=pointer, opcode="select"))

    def merge(self, result: str, incoming: Mapping["Block", str],
              *, pointer: bool = False) -> Operation:
        return self.append(Operation(OpKind.MERGE, result, incoming=incoming,
                                     pointer=pointer, opcode="phi"))

    def op(self, opcode: str, result: Optional[str] = None, *operands: str,
           pointer: bool = False) -> Operation:
        """Append an ``OTHER`` operation (arithmetic, calls, compares, ...)."""
        return self.append(Operation(OpKind.OTHER, result, operands,
                                     pointer=pointer, opcode=opcode))

    def ret(self, *values: str) -> Operation:
        return self.op("ret", None, *values)

    def __repr__(self) -> str:
        return f"Block({self.name!r}, nops={len(self.operations)})"


# ---------------------------------------------------------------------------
# Function
# ---------------------------------------------------------------------------

class Function:
    """A function: ordered blocks plus the edges between them.

    Implements :class:`monoflow.graph.ControlFlowView` with blocks as nodes,
    in creation order.

    Parameters
    ----------
    name : str
    arguments : mapping of argument name → is-pointer flag, optional
    """

    def __init__(self, name: str, arguments: Optional[Mapping[str, bool]] = None) -> None:
        self.name = name
        self.arguments: Dict[str, bool] = dict(arguments or {})
        self.blocks: List[Block] = []
        self._blocks_by_name: Dict[str, Block] = {}
        self._definitions: Dict[str, List[Operation]] = {}

    # ----- graph mutation ---------------------------------------------------

    def add_block(self, name: str) -> Block:
        if name in self._blocks_by_name:
            raise IRError(f"duplicate block name {name!r} in function {self.name!r}")
        block = Block(name, self)
        self.blocks.append(block)
        self._blocks_by_name[name] = block
        return block

    def add_edge(self, src: Block, dst: Block) -> None:
        """Add the control-flow edge ``src → dst``."""
        for block in (src, dst):
            if self._blocks_by_name.get(block.name) is not block:
                raise IRError(f"block {block.name!r} is not part of function {self.name!r}")
        if dst in src.successors:
            return
        src.successors.append(dst)
        dst.predecessors.append(src)

    def _register_result(self, op: Operation) -> None:
        if op.result is None:
            return
        self._definitions.setdefault(op.result, []).append(op)

    # ----- ControlFlowView --------------------------------------------------

    def nodes(self) -> List[Block]:
        return list(self.blocks)

    def predecessors(self, block: Block) -> List[Block]:
        return list(block.predecessors)

    def successors(self, block: Block) -> List[Block]:
        return list(block.successors)

    # ----- queries ----------------------------------------------------------

    def block(self, name: str) -> Block:
        try:
            return self._blocks_by_name[name]
        except KeyError:
            raise IRError(f"no block named {name!r} in function {self.name!r}") from None

    def operations(self) -> Iterator[Operation]:
        """All operations in block order."""
        for block in self.blocks:
            yield from block.operations

    def entities(self) -> Set[str]:
        """Arguments plus every defined operation result."""
        return set(self.arguments) | set(self._definitions)

    def is_entity(self, name: str) -> bool:
        return name in self.arguments or name in self._definitions

    def definitions(self, name: str) -> List[Operation]:
        """Operations defining *name*, in block order of insertion."""
        return list(self._definitions.get(name, ()))

    def is_pointer(self, name: str) -> bool:
        """Whether entity *name* is pointer-typed (constants never are)."""
        if name in self.arguments:
            return self.arguments[name]
        return any(op.pointer for op in self._definitions.get(name, ()))

    def validate_merges(self) -> None:
        """Check every merge operation names exactly its block's predecessors.

        Raises
        ------
        MergeTableError
            On the first merge that misses a predecessor or names a block
            that is not one.
        """
        for block in self.blocks:
            preds = block.predecessors
            for op in block.merge_operations:
                named = [b for b, _ in op.incoming]
                for pred in preds:
                    if pred not in named:
                        raise MergeTableError(
                            f"merge {op.text()!r} in block {block.name!r} has no "
                            f"incoming value for predecessor {pred.name!r}",
                            node=block,
                            predecessor=pred,
                        )
                for src in named:
                    if src not in preds:
                        raise MergeTableError(
                            f"merge {op.text()!r} in block {block.name!r} names "
                            f"{src.name!r}, which is not a predecessor",
                            node=block,
                            predecessor=src,
                        )

    def __repr__(self) -> str:
        nedges = sum(len(b.successors) for b in self.blocks)
        return f"Function({self.name!r}, blocks={len(self.blocks)}, edges={nedges})"
