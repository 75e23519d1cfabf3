"""
Metric-data telemetry.

Records code-generation start/end events with a result classification,
persists them as JSONL and aggregates them for the `featuredev stats`
command.
"""

import json
import time
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Any, List, Dict

from filelock import FileLock, Timeout

from featuredev_agent.logging import get_logger

logger = get_logger(__name__)


def utc_now_iso() -> str:
    """Get current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class MetricDataOperationName(str, Enum):
    """Operations reported to telemetry."""

    START_CODE_GENERATION = "StartCodeGeneration"
    END_CODE_GENERATION = "EndCodeGeneration"


class MetricDataResult(str, Enum):
    """Result classification of an operation."""

    SUCCESS = "Success"
    ERROR = "Error"
    LLM_FAILURE = "LlmFailure"
    FAULT = "Fault"


@dataclass
class TelemetryEvent:
    """Single telemetry record."""

    ts: str
    conversation_id: Optional[str]
    operation_name: MetricDataOperationName
    result: MetricDataResult
    log: Optional[str] = None
    duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON."""
        d = asdict(self)
        d["operation_name"] = self.operation_name.value
        d["result"] = self.result.value
        return d

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TelemetryEvent":
        data = dict(data)
        data["operation_name"] = MetricDataOperationName(data["operation_name"])
        data["result"] = MetricDataResult(data["result"])
        return cls(**data)


class TelemetryRecorder:
    """
    Collects telemetry events and appends them to a shared JSONL file.

    Several conversations may write to the same file, so appends are
    guarded by a file lock. Persistence failures are logged and never
    propagate to the caller.
    """

    def __init__(
        self,
        output_path: Optional[Path] = None,
        lock_timeout: float = 5.0,
    ):
        """
        Initialize telemetry recorder.

        Args:
            output_path: JSONL file to append to (None keeps events in memory only)
            lock_timeout: Seconds to wait for the file lock
        """
        self.output_path = output_path
        self.lock_timeout = lock_timeout
        self._events: List[TelemetryEvent] = []
        self._start_times: Dict[str, float] = {}
        self._counts: Dict[str, int] = defaultdict(int)

    @property
    def events(self) -> List[TelemetryEvent]:
        return list(self._events)

    @property
    def pending_conversations(self) -> List[str]:
        """Conversations with a START event still waiting for its END."""
        return list(self._start_times)

    def discard_pending(self, conversation_id: Optional[str]) -> None:
        """Forget the running timer of a conversation that will not end."""
        self._start_times.pop(conversation_id or "", None)

    def record(
        self,
        operation_name: MetricDataOperationName,
        result: MetricDataResult,
        log: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> TelemetryEvent:
        """
        Record an operation event.

        A START event starts a timer for the conversation; the matching
        END event carries the elapsed time.
        """
        key = conversation_id or ""
        duration_ms = None
        if operation_name == MetricDataOperationName.START_CODE_GENERATION:
            self._start_times[key] = time.monotonic()
        elif operation_name == MetricDataOperationName.END_CODE_GENERATION:
            start = self._start_times.pop(key, None)
            if start is not None:
                duration_ms = int((time.monotonic() - start) * 1000)

        event = TelemetryEvent(
            ts=utc_now_iso(),
            conversation_id=conversation_id,
            operation_name=operation_name,
            result=result,
            log=log,
            duration_ms=duration_ms,
        )

        self._events.append(event)
        self._counts[f"{operation_name.value}:{result.value}"] += 1
        self._persist(event)

        logger.debug(
            "Telemetry recorded",
            operation=operation_name.value,
            result=result.value,
            duration_ms=duration_ms,
        )
        return event

    def get_summary(self) -> Dict[str, Any]:
        """Get in-memory summary."""
        return {
            "total_events": len(self._events),
            "counts": dict(self._counts),
        }

    def _persist(self, event: TelemetryEvent) -> None:
        """Append event to the JSONL file."""
        if not self.output_path:
            return

        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            lock = FileLock(str(self.output_path) + ".lock", timeout=self.lock_timeout)
            with lock:
                with open(self.output_path, "a") as f:
                    f.write(event.to_json() + "\n")
        except Timeout:
            logger.warning("Telemetry file locked, event dropped", path=str(self.output_path))
        except OSError as e:
            logger.warning("Failed to persist telemetry", error=str(e))


def load_telemetry(path: Path) -> List[TelemetryEvent]:
    """
    Load telemetry events from a JSONL file.

    Malformed lines are skipped.
    """
    if not path.exists():
        return []

    events = []
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                events.append(TelemetryEvent.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError):
                logger.debug("Skipping malformed telemetry line")
                continue

    return events


def aggregate_telemetry(path: Path) -> Dict[str, Any]:
    """
    Aggregate code-generation outcomes from a telemetry file.

    Returns:
        Aggregated statistics (empty dict when there are no events)
    """
    events = load_telemetry(path)

    if not events:
        return {}

    results: Dict[str, int] = defaultdict(int)
    durations: List[int] = []
    conversations = set()
    started = 0

    for event in events:
        if event.conversation_id:
            conversations.add(event.conversation_id)
        if event.operation_name == MetricDataOperationName.START_CODE_GENERATION:
            started += 1
            continue
        results[event.result.value] += 1
        if event.duration_ms is not None:
            durations.append(event.duration_ms)

    ended = sum(results.values())
    return {
        "total_events": len(events),
        "conversations": len(conversations),
        "started": started,
        "ended": ended,
        "results": dict(results),
        "success_rate": results[MetricDataResult.SUCCESS.value] / ended if ended else 0.0,
        "durations": {
            "count": len(durations),
            "avg_ms": sum(durations) / len(durations) if durations else 0,
            "max_ms": max(durations) if durations else 0,
        },
    }
