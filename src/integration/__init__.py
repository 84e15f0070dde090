# Integration Module
"""
Audit trail for the rollup: hash-chained events with subscribers.
"""

from .event_logger import EventLogger, EventType, RollupEvent

__all__ = [
    'EventLogger',
    'EventType',
    'RollupEvent',
]
