"""Attractor: headless executor for DOT-defined workflow graphs.

Parses a strict DOT subset into a typed pipeline model, validates its
structure, and executes it as a resumable, checkpointed state machine.
"""

__version__ = "0.1.0"
