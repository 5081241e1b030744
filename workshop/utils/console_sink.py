from __future__ import annotations

import logging
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterator, List, Literal, Optional

from workshop.utils.logger import get_logger

ConsoleLevel = Literal["log", "error", "info", "warn"]

MAX_CONSOLE_MESSAGES = 100
PREVIEW_PREFIX = "[Preview]"

_LEVELS: Dict[str, int] = {
    "log": logging.INFO,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class ConsoleMessage:
    id: int
    type: ConsoleLevel
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsoleMessage":
        return cls(id=int(data["id"]), type=data.get("type", "info"), message=str(data.get("message", "")))


class ConsoleSink:
    """
    Append-only diagnostic stream shown next to the build view.

    - most recent entry first
    - capped at MAX_CONSOLE_MESSAGES, the oldest entries fall off
    - every entry is mirrored to the python logger
    """

    def __init__(self, messages: Optional[List[ConsoleMessage]] = None, limit: int = MAX_CONSOLE_MESSAGES) -> None:
        self.limit = limit
        # Shares the list it is given so the owning state sees every append.
        self._messages: List[ConsoleMessage] = messages if messages is not None else []
        del self._messages[limit:]
        self._last_id = max((m.id for m in self._messages), default=0)
        self.logger = get_logger("workshop.console")

    def _next_id(self) -> int:
        # Millisecond timestamps, bumped when two entries land in the same tick.
        now = int(time.time() * 1000)
        self._last_id = max(now, self._last_id + 1)
        return self._last_id

    def append(self, message: str, type: ConsoleLevel = "info") -> ConsoleMessage:
        if type not in _LEVELS:
            type = "log"
        entry = ConsoleMessage(id=self._next_id(), type=type, message=message)
        self._messages.insert(0, entry)
        del self._messages[self.limit:]
        self.logger.log(_LEVELS[type], message)
        return entry

    def log(self, message: str) -> ConsoleMessage:
        return self.append(message, "log")

    def info(self, message: str) -> ConsoleMessage:
        return self.append(message, "info")

    def warn(self, message: str) -> ConsoleMessage:
        return self.append(message, "warn")

    def error(self, message: str) -> ConsoleMessage:
        return self.append(message, "error")

    def forward_preview_message(self, payload: Dict[str, Any]) -> Optional[ConsoleMessage]:
        """
        Accepts the object posted by the preview's forwarding script:
        {"source": "workshop-preview", "type": "log|info|warn|error", "message": "..."}
        Anything else is ignored.
        """
        if not isinstance(payload, dict) or payload.get("source") != "workshop-preview":
            return None
        level = payload.get("type", "log")
        return self.append(f"{PREVIEW_PREFIX} {payload.get('message', '')}", level)

    def clear(self) -> None:
        self._messages.clear()

    @property
    def messages(self) -> List[ConsoleMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConsoleMessage]:
        return iter(list(self._messages))
