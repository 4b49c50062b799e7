"""Conflict resolution: marker handling, per-file resolution, apply."""
