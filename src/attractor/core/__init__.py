# src/attractor/core/__init__.py
"""Core subsystems: graph model, context, checkpoints, configuration, logging."""
