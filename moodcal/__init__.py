"""
Mood scoring calibration engine.

Consumes human-vs-algorithm validation studies and proposes, applies, and
evaluates bounded, reversible parameter adjustments to the mood scorer.
"""

__version__ = "1.0.0"
