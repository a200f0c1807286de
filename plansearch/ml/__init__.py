"""Scoring package for the plan search engine.

This package contains the heuristic scorers the amplifier uses to re-weight
candidate plans.
"""

__all__ = ["scoring"]
