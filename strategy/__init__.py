# PATH: strategy/__init__.py
"""Strategy package for CROSSARB: spread, advisory, risk, performance, pipeline."""

from strategy.spread import SpreadAnalyzer, analyze_spread, confidence_for_spread
from strategy.risk import RiskValidator
from strategy.performance import PerformanceTracker, SessionStats

__all__ = [
    "SpreadAnalyzer",
    "analyze_spread",
    "confidence_for_spread",
    "RiskValidator",
    "PerformanceTracker",
    "SessionStats",
]
