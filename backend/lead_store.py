"""
SolarQuote — Lead Store
Append-only JSON file of every quote request: {createdAt, contact, inputs, quote}.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from errors import PersistenceFailure

logger = logging.getLogger(__name__)


def build_lead(contact: dict, inputs: dict, quote: dict) -> dict:
    return {
        "createdAt": datetime.now(timezone.utc).isoformat(),
        "contact": contact,
        "inputs": inputs,
        "quote": quote,
    }


class LeadStore:
    """Flat-file lead persistence. Single writer, no locking."""

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> tuple[list[dict], bool]:
        """(leads, corrupt). corrupt is True when the file has content that is not a JSON list."""
        if not self.path.exists():
            logger.info(f"[LEADS] {self.path.name} does not exist yet, starting with empty list.")
            return [], False
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"[LEADS] Error reading leads file: {e}")
            return [], False
        if not text.strip():
            logger.info(f"[LEADS] {self.path.name} is empty, starting with empty list.")
            return [], False
        try:
            leads = json.loads(text)
        except ValueError as e:
            logger.error(f"[LEADS] Error reading leads file: {e}")
            return [], True
        if not isinstance(leads, list):
            logger.error(f"[LEADS] {self.path.name} does not hold a list, ignoring its contents.")
            return [], True
        return leads, False

    def read_leads(self) -> list[dict]:
        """Every stored lead, or [] if the file is missing, empty or unreadable."""
        return self._load()[0]

    def _quarantine(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            self.path.rename(target)
        except OSError as e:
            raise PersistenceFailure(f"Could not set aside unreadable leads file: {e}") from e
        logger.warning(f"[LEADS] Unreadable leads file moved to {target.name}")
        return target

    def _write(self, leads: list[dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(leads, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Error writing leads file: {e}") from e

    def append_lead(self, lead: dict) -> dict | None:
        """
        Persist one lead. Returns None (and logs) if the file cannot be written.
        An unreadable existing file is renamed to <name>.corrupt-<timestamp> first.
        """
        leads, corrupt = self._load()
        leads.append(lead)
        try:
            if corrupt:
                self._quarantine()
            self._write(leads)
        except PersistenceFailure as e:
            logger.error(f"[LEADS] {e}")
            return None
        logger.info(f"[LEADS] Saved leads to {self.path}. Total leads: {len(leads)}")
        return lead
