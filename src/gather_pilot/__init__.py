"""Tick-driven gathering orchestrator for an external automation engine."""

__version__ = "0.1.0"
