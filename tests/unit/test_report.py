"""Tests for core/report.py."""

from __future__ import annotations

import json
from pathlib import Path

from dimstar.core.report import export_run_json, generate_run_report
from dimstar.models.run import RoundRecord, RunResult


def make_result() -> RunResult:
    return RunResult(
        result="Use PostgreSQL with read replicas.",
        rounds=2,
        call_count=52,
        quality=0.91,
        history=[
            RoundRecord(round=1, quality=0.62, call_count=20, result_preview="Use a | pipe\nacross lines"),
            RoundRecord(round=2, quality=0.91, call_count=52, result_preview="Use PostgreSQL"),
        ],
    )


class TestGenerateRunReport:
    def test_sections(self):
        report = generate_run_report(make_result(), task="Pick a database", provider="scripted")

        assert report.startswith("# DimStar Run Report")
        assert "**Task:** Pick a database" in report
        assert "**Rounds:** 2" in report
        assert "**Inference calls:** 52" in report
        assert "**Consensus quality:** 0.91" in report
        assert "**Provider:** scripted" in report
        assert "## Final Answer\n\nUse PostgreSQL with read replicas." in report

    def test_rounds_table(self):
        report = generate_run_report(make_result())

        assert "| 1 | 0.62 | 20 | Use a \\| pipe across lines |" in report
        assert "| 2 | 0.91 | 52 | Use PostgreSQL |" in report

    def test_dry_run_marker(self):
        assert "DRY RUN" in generate_run_report(make_result(), dry_run=True)
        assert "DRY RUN" not in generate_run_report(make_result())

    def test_empty_answer(self):
        result = make_result()
        result.result = "   "
        assert "_(empty)_" in generate_run_report(result)


class TestExportRunJson:
    def test_writes_payload(self, tmp_path: Path):
        path = export_run_json(make_result(), tmp_path / "out" / "run.json", task="Pick a database")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["task"] == "Pick a database"
        assert data["rounds"] == 2
        assert data["call_count"] == 52
        assert [r["quality"] for r in data["history"]] == [0.62, 0.91]

    def test_without_task(self, tmp_path: Path):
        path = export_run_json(make_result(), tmp_path / "run.json")
        assert "task" not in json.loads(path.read_text(encoding="utf-8"))
