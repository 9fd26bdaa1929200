"""
Install history — append-only ledger of install runs.

One NDJSON line per ``install()`` call, success or failure.  Entries
are never modified or deleted; a corrupt line is skipped on read.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from arkstack.core.models.install import InstallRecord

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DIR = ".state"
DEFAULT_HISTORY_FILE = "install-history.ndjson"


class InstallHistory:
    """Append-only install ledger writer/reader."""

    def __init__(self, path: Path | None = None, install_root: Path | None = None):
        if path is not None:
            self._path = path
        elif install_root is not None:
            self._path = install_root / DEFAULT_HISTORY_DIR / DEFAULT_HISTORY_FILE
        else:
            self._path = Path(DEFAULT_HISTORY_DIR) / DEFAULT_HISTORY_FILE

    @property
    def path(self) -> Path:
        return self._path

    def write(self, record: InstallRecord) -> None:
        """Append one record.  Never raises."""
        line = json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("History entry written: %s/%s", record.target, record.status)
        except OSError as e:
            logger.error("Failed to write install history: %s", e)

    def read_all(self) -> list[InstallRecord]:
        """All records, oldest first."""
        if not self._path.is_file():
            return []

        records = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(InstallRecord.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt history entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read install history: %s", e)

        return records

    def read_recent(self, n: int = 20) -> list[InstallRecord]:
        return self.read_all()[-n:] if n > 0 else []
