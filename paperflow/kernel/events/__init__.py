"""
Append-only audit logging.
"""

from paperflow.kernel.events.event_store import EventStore

__all__ = ["EventStore"]
