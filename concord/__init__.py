"""Concord — asynchronous group decision-making with a consensus engine."""

__version__ = "0.1.0"
