"""
Audit Logger — JSON-lines trail of analyses.

One line per analysis: timestamp plus the AuditEntry fields (analysis_id,
class name, rule and violation counts, risk level, LLM calls and tokens,
duration). Write failures are logged, never raised into the pipeline.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Iterator

from codeguard.config import settings
from codeguard.models.analysis_models import AuditEntry

logger = logging.getLogger("codeguard.audit")


class AuditLogger:
    """Appends AuditEntry records to a JSON-lines file and reads them back."""

    def __init__(self, log_path: str | None = None) -> None:
        self.log_path = Path(log_path or settings.audit_log_path)

    def log(self, entry: AuditEntry) -> None:
        record = {"timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}
        record.update(entry.model_dump(mode="json"))

        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit entry {entry.analysis_id}: {e}")

    def read_recent(self, count: int = 50, risk_level: str | None = None) -> list[dict]:
        """Most recent entries, oldest first, optionally limited to one risk level."""
        entries = list(self._records())
        if risk_level:
            entries = [e for e in entries if e.get("risk_level") == risk_level.lower()]
        return entries[-count:] if count > 0 else []

    def find(self, analysis_id: str) -> dict | None:
        for record in self._records():
            if record.get("analysis_id") == analysis_id:
                return record
        return None

    def _records(self) -> Iterator[dict]:
        if not self.log_path.exists():
            return
        try:
            with open(self.log_path, encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            logger.error(f"Failed to read audit log {self.log_path}: {e}")
            return

        for number, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Skipping corrupt audit line {number} in {self.log_path}")
