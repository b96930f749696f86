"""
monoflow.analyses — client analyses built on the fixed-point engine.

    LivenessAnalysis              backward, union, merge edges
    ReachingDefinitionsAnalysis   forward, union, kill-free
    PointsToAnalysis              forward, pointwise union, merge edges
"""

from monoflow.analyses.base import FunctionAnalysis
from monoflow.analyses.liveness import LivenessAnalysis
from monoflow.analyses.points_to import PointsToAnalysis
from monoflow.analyses.reaching import ReachingDefinitionsAnalysis

__all__ = [
    "FunctionAnalysis",
    "LivenessAnalysis",
    "PointsToAnalysis",
    "ReachingDefinitionsAnalysis",
]
