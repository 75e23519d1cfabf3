"""
Tests for telemetry module.
"""

import json
import pytest

from featuredev_agent.telemetry import (
    MetricDataOperationName,
    MetricDataResult,
    TelemetryEvent,
    TelemetryRecorder,
    aggregate_telemetry,
    load_telemetry,
)


class TestTelemetryEvent:
    """Tests for TelemetryEvent dataclass."""

    def test_to_dict_uses_wire_names(self):
        event = TelemetryEvent(
            ts="2024-01-01T00:00:00Z",
            conversation_id="conv",
            operation_name=MetricDataOperationName.END_CODE_GENERATION,
            result=MetricDataResult.LLM_FAILURE,
            log="stack trace: x",
        )

        d = event.to_dict()

        assert d["operation_name"] == "EndCodeGeneration"
        assert d["result"] == "LlmFailure"
        assert d["log"] == "stack trace: x"

    def test_json_round_trip(self):
        event = TelemetryEvent(
            ts="2024-01-01T00:00:00Z",
            conversation_id=None,
            operation_name=MetricDataOperationName.START_CODE_GENERATION,
            result=MetricDataResult.SUCCESS,
        )

        restored = TelemetryEvent.from_dict(json.loads(event.to_json()))

        assert restored == event


class TestTelemetryRecorder:
    """Tests for TelemetryRecorder."""

    def test_in_memory_only(self):
        recorder = TelemetryRecorder()

        recorder.record(MetricDataOperationName.START_CODE_GENERATION, MetricDataResult.SUCCESS)

        assert len(recorder.events) == 1
        assert recorder.get_summary()["counts"] == {"StartCodeGeneration:Success": 1}

    def test_duration_measured_between_start_and_end(self):
        recorder = TelemetryRecorder()

        start = recorder.record(
            MetricDataOperationName.START_CODE_GENERATION, MetricDataResult.SUCCESS, conversation_id="c1",
        )
        end = recorder.record(
            MetricDataOperationName.END_CODE_GENERATION, MetricDataResult.FAULT, conversation_id="c1",
        )

        assert start.duration_ms is None
        assert end.duration_ms is not None
        assert end.duration_ms >= 0

    def test_end_without_start_has_no_duration(self):
        recorder = TelemetryRecorder()

        end = recorder.record(
            MetricDataOperationName.END_CODE_GENERATION, MetricDataResult.SUCCESS, conversation_id="c2",
        )

        assert end.duration_ms is None

    def test_persists_jsonl(self, tmp_path):
        path = tmp_path / "nested" / "telemetry.jsonl"
        recorder = TelemetryRecorder(output_path=path)

        recorder.record(MetricDataOperationName.START_CODE_GENERATION, MetricDataResult.SUCCESS, conversation_id="c")
        recorder.record(MetricDataOperationName.END_CODE_GENERATION, MetricDataResult.ERROR, log="trace", conversation_id="c")

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[1])["result"] == "Error"

    def test_persist_failure_does_not_raise(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        recorder = TelemetryRecorder(output_path=blocker / "telemetry.jsonl")

        event = recorder.record(MetricDataOperationName.START_CODE_GENERATION, MetricDataResult.SUCCESS)

        assert event in recorder.events


class TestAggregation:
    """Tests for load_telemetry and aggregate_telemetry."""

    def test_missing_file(self, tmp_path):
        assert load_telemetry(tmp_path / "none.jsonl") == []
        assert aggregate_telemetry(tmp_path / "none.jsonl") == {}

    def test_skips_malformed_lines(self, temp_file):
        path = temp_file(
            "telemetry.jsonl",
            '{"ts": "t", "conversation_id": "a", "operation_name": "StartCodeGeneration", "result": "Success"}\n'
            "not json\n"
            '{"ts": "t", "operation_name": "Unknown", "result": "Success"}\n',
        )

        assert len(load_telemetry(path)) == 1

    def test_aggregate(self, tmp_path):
        path = tmp_path / "telemetry.jsonl"
        recorder = TelemetryRecorder(output_path=path)
        for conversation, result in [("a", MetricDataResult.SUCCESS), ("b", MetricDataResult.FAULT)]:
            recorder.record(MetricDataOperationName.START_CODE_GENERATION, MetricDataResult.SUCCESS, conversation_id=conversation)
            recorder.record(MetricDataOperationName.END_CODE_GENERATION, result, conversation_id=conversation)

        stats = aggregate_telemetry(path)

        assert stats["conversations"] == 2
        assert stats["started"] == 2
        assert stats["ended"] == 2
        assert stats["results"] == {"Success": 1, "Fault": 1}
        assert stats["success_rate"] == pytest.approx(0.5)
        assert stats["durations"]["count"] == 2
