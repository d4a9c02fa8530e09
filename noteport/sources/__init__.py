"""Hierarchy providers shipped with noteport."""

from .snapshot import SnapshotError, SnapshotProvider, SnapshotRenderer

__all__ = ["SnapshotError", "SnapshotProvider", "SnapshotRenderer"]
