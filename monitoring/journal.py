"""
monitoring/journal.py - Cycle journal (JSONL).

One line per cycle report, one file per session. Confirmed trades whose
settlement failed are flagged so they can be reconciled by hand (and their
exposure released with PerformanceTracker.release_exposure).
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from core.constants import CycleOutcome
from core.logging import get_logger
from core.models import CycleReport, RiskState
from core.time import now_utc

logger = get_logger(__name__)


class TradeJournal:
    """Append-only JSONL journal of cycle reports."""

    def __init__(self, journal_dir: Path, session_id: str | None = None):
        self.journal_dir = journal_dir
        self.journal_dir.mkdir(parents=True, exist_ok=True)

        self.session_id = session_id or now_utc().strftime("%Y%m%d_%H%M%S")
        self.journal_file = journal_dir / f"cycles_{self.session_id}.jsonl"

        logger.info(
            f"Journal started: {self.session_id}",
            extra={"context": {"journal_file": str(self.journal_file)}},
        )

    def record(self, report: CycleReport, state: RiskState) -> None:
        """Append one cycle with the risk state it produced."""
        entry = report.to_dict()
        entry["risk_state"] = state.to_dict()
        entry["needs_reconciliation"] = bool(
            report.execution is not None and report.execution.is_partial_failure
        )
        with open(self.journal_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def load(self) -> List[Dict[str, Any]]:
        """Load all entries of this session."""
        entries: List[Dict[str, Any]] = []
        if not self.journal_file.exists():
            return entries

        with open(self.journal_file, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    entries.append(json.loads(line))
        return entries

    def pending_reconciliation(self) -> List[Dict[str, Any]]:
        """Confirmed trades whose proceeds never reached the recipient."""
        return [
            e for e in self.load()
            if e.get("needs_reconciliation") and e.get("outcome") == CycleOutcome.CONFIRMED.value
        ]

    def get_summary(self) -> Dict[str, Any]:
        entries = self.load()
        outcomes: Dict[str, int] = {}
        for e in entries:
            outcomes[e["outcome"]] = outcomes.get(e["outcome"], 0) + 1
        return {
            "session_id": self.session_id,
            "journal_file": str(self.journal_file),
            "cycles": len(entries),
            "outcomes": outcomes,
            "pending_reconciliation": sum(1 for e in entries if e.get("needs_reconciliation")),
        }
