"""Autonomous trading control loop with simulated fallback."""

__version__ = "0.1.0"
