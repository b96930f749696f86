"""
monoflow/report.py
══════════════════

Block-by-block text listings of analysis results.

Layouts
───────
  • liveness  : the live set *before* each operation, then the operation
  • reaching  : the reaching set *before* each operation, then the operation;
                each definition reads ``result@block:index`` so that several
                definitions of one entity stay distinct
  • points-to : the operation, then every non-empty entry of the map
                *after* it, one ``entity : sites`` line each

Colour
──────
Block labels and sets are coloured with termcolor.  ``color=None`` reads
``$MONOFLOW_COLOR`` (``0``/``no``/``off`` disables it); termcolor itself
also honours ``NO_COLOR`` and ``FORCE_COLOR``.

Usage
─────
    analysis = LivenessAnalysis(fn)
    analysis.run()
    print(render_liveness(analysis, color=False))
"""

from __future__ import annotations

import os
from typing import Iterable, List, Optional

from termcolor import colored

from monoflow.analyses.base import FunctionAnalysis
from monoflow.analyses.liveness import LivenessAnalysis
from monoflow.analyses.points_to import PointsToAnalysis
from monoflow.analyses.reaching import ReachingDefinitionsAnalysis
from monoflow.ir import Block, Operation

_FALSE_WORDS = {"0", "no", "off", "false"}


def color_enabled(color: Optional[bool] = None) -> bool:
    """Resolve the colour flag, falling back to ``$MONOFLOW_COLOR``."""
    if color is not None:
        return color
    return os.environ.get("MONOFLOW_COLOR", "1").strip().lower() not in _FALSE_WORDS


# ═════════════════════════════════════════════════════════════════════════
#  RENDERER
# ═════════════════════════════════════════════════════════════════════════

class TextRenderer:
    """Accumulates report lines, colouring them when enabled."""

    def __init__(self, *, color: Optional[bool] = None) -> None:
        self.color = color_enabled(color)
        self.lines: List[str] = []

    def _paint(self, text: str, fg: Optional[str] = None, attrs: Optional[list] = None) -> str:
        if not self.color:
            return text
        return colored(text, fg, attrs=attrs)

    def title(self, text: str) -> None:
        self.lines.append(self._paint(text, attrs=["bold"]))

    def block(self, block: Block) -> None:
        self.lines.append(self._paint(f"{block.name}:", "blue", attrs=["bold"]))

    def operation(self, op: Operation) -> None:
        self.lines.append(f"  {op.text()}")

    def value_set(self, items: Iterable[str]) -> None:
        body = ", ".join(sorted(items))
        self.lines.append(self._paint(f"  {{{body}}}", "green"))

    def entry(self, entity: str, sites: Iterable[str]) -> None:
        label = self._paint(entity, "cyan")
        self.lines.append(f"    {label} : {', '.join(sites)}")

    def blank(self) -> None:
        self.lines.append("")

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


# ═════════════════════════════════════════════════════════════════════════
#  PER-ANALYSIS LISTINGS
# ═════════════════════════════════════════════════════════════════════════

def definition_label(op: Operation) -> str:
    """Name a defining operation by its result and position, e.g. ``y@b:1``."""
    return f"{op.result}@{op.block.name}:{op.block.operations.index(op)}"


def _require_run(analysis: FunctionAnalysis) -> None:
    if analysis.result is None:
        analysis.run()


def render_liveness(analysis: LivenessAnalysis, *, color: Optional[bool] = None) -> str:
    """Live set before every operation; merge operations are listed bare."""
    _require_run(analysis)
    out = TextRenderer(color=color)
    out.title(f"Live entity analysis: {analysis.function.name}")
    for block in analysis.function.blocks:
        out.block(block)
        for op in block.merge_operations:
            out.operation(op)
        for op in block.body_operations:
            out.value_set(analysis.live_in(op))
            out.operation(op)
        out.blank()
    return out.text()


def render_reaching(
    analysis: ReachingDefinitionsAnalysis, *, color: Optional[bool] = None,
) -> str:
    """Reaching definitions before every operation, one label per definition."""
    _require_run(analysis)
    out = TextRenderer(color=color)
    out.title(f"Reaching definitions analysis: {analysis.function.name}")
    for block in analysis.function.blocks:
        out.block(block)
        for op in block.operations:
            out.value_set(definition_label(d) for d in analysis.reaching_before(op))
            out.operation(op)
        out.blank()
    return out.text()


def render_points_to(analysis: PointsToAnalysis, *, color: Optional[bool] = None) -> str:
    """Points-to map after every operation; empty entries are omitted."""
    _require_run(analysis)
    out = TextRenderer(color=color)
    out.title(f"May-point-to analysis: {analysis.function.name}")
    for block in analysis.function.blocks:
        out.block(block)
        for op in block.operations:
            out.operation(op)
            out.lines.append("  {")
            for entity, sites in analysis.nonempty_entries(op):
                out.entry(entity, sites)
            out.lines.append("  }")
        out.blank()
    return out.text()
