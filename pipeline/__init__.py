"""
Pipeline package -- spending vs. elections analysis.

Re-exports key entry points so callers can do::

    from pipeline import load_inputs, run_analysis
"""

from pipeline.analysis import AnalysisInputs, AnalysisResult, load_inputs, run_analysis
from pipeline.regression import RegressionResult, fit, is_relevant

__all__ = [
    "AnalysisInputs",
    "AnalysisResult",
    "load_inputs",
    "run_analysis",
    "RegressionResult",
    "fit",
    "is_relevant",
]
