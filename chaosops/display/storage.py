"""Durable kiosk-side state, so a reboot resumes polling without re-pairing."""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class LocalState:
    device_id: Optional[str] = None
    pairing_code: Optional[str] = None
    is_paired: bool = False
    organisation_id: Optional[str] = None
    device_name: Optional[str] = None
    day_plan: Optional[dict] = None
    pending_disconnect: Optional[str] = None  # device id whose release the server has not confirmed


class LocalStore:
    """JSON file holding the last known ``LocalState``."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> LocalState:
        if not self.path.exists():
            return LocalState()
        try:
            raw = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable display state %s: %s", self.path, e)
            return LocalState()
        if not isinstance(raw, dict):
            return LocalState()
        known = {f.name for f in fields(LocalState)}
        return LocalState(**{k: v for k, v in raw.items() if k in known})

    def save(self, state: LocalState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(asdict(state)))
        tmp.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
