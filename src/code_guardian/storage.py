"""
Backing stores for the session list. The whole list is the unit of persistence.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class SessionStorage(Protocol):
    def load(self) -> dict[str, Any]:
        """Return {"sessions": [...], "active_session_id": ...} or an empty dict."""
        ...

    def save(self, state: dict[str, Any]) -> None:
        ...


class MemoryStorage:
    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self.state: dict[str, Any] = json.loads(json.dumps(initial)) if initial else {}
        self.saves = 0

    def load(self) -> dict[str, Any]:
        return json.loads(json.dumps(self.state))

    def save(self, state: dict[str, Any]) -> None:
        self.state = json.loads(json.dumps(state))
        self.saves += 1


class JsonFileStorage:
    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return {}
        # Early versions stored a bare list of sessions
        if isinstance(raw, list):
            return {"sessions": raw}
        return raw if isinstance(raw, dict) else {}

    def save(self, state: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".sessions-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
