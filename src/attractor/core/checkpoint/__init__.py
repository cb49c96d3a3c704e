"""Checkpoint persistence and resume."""

from attractor.core.checkpoint.manager import CheckpointManager, write_json_atomic
from attractor.core.checkpoint.recovery import RecoveryManager

__all__ = ["CheckpointManager", "RecoveryManager", "write_json_atomic"]
