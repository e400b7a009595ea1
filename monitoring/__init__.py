"""
Monitoring package for CROSSARB.

- events.py: Best-effort observer event stream
- journal.py: JSONL cycle journal for reconciliation
"""

from monitoring.events import AgentEvent, EventPublisher
from monitoring.journal import TradeJournal

__all__ = [
    "AgentEvent",
    "EventPublisher",
    "TradeJournal",
]
