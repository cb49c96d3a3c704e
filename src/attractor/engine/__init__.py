# src/attractor/engine/__init__.py
"""Execution engine: retries, routing, handlers and the run loop.

Submodules are imported directly.
"""
