"""Source collectors for the remote record store."""

from .sources import SourceCollector, SourceSnapshot, decode_rows

__all__ = ["SourceCollector", "SourceSnapshot", "decode_rows"]
