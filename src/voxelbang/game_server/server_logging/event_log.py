"""Structured event logging for world server events."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

EVENT_LOG_FILENAME = "event-log.jsonl"


def _json_default(value: Any) -> Any:
    """Fallback serializer for objects that json cannot handle."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, set):
        return sorted(value)
    if hasattr(value, "__dict__"):
        return value.__dict__
    return str(value)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class EventRecord:
    """Serializable representation of an emitted or received event."""

    timestamp: str
    direction: str
    event: str
    payload: dict[str, Any]
    sender: str | None
    receiver: str | None
    meta: dict[str, Any] | None = None

    def to_json(self) -> str:
        try:
            return json.dumps(asdict(self), separators=(",", ":"), default=_json_default)
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to serialize event log record: {}", exc)
            serialized = {
                "timestamp": self.timestamp,
                "direction": self.direction,
                "event": self.event,
                "sender": self.sender,
                "receiver": self.receiver,
                "meta": self.meta,
                "payload": str(self.payload),
            }
            return json.dumps(serialized, separators=(",", ":"))


class EventLogger:
    """Append-only JSON Lines logger for world events."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: EventRecord) -> None:
        line = record.to_json()
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
            handle.flush()

    def records(self, *, event: str | None = None, receiver: str | None = None) -> Iterator[dict[str, Any]]:
        """Yield logged entries in write order, optionally filtered."""
        if not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8") as handle:
            for raw in handle:
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    entry = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Skipping corrupt event log line in {}", self._path)
                    continue
                if event is not None and entry.get("event") != event:
                    continue
                if receiver is not None and entry.get("receiver") != receiver:
                    continue
                yield entry
