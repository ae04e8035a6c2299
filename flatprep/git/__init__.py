"""Git helpers for resolving release source coordinates."""

from .coordinates import CoordinateResolver, SourceCoordinates

__all__ = ["CoordinateResolver", "SourceCoordinates"]
