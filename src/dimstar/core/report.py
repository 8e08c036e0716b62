"""Run report generation (Markdown and JSON)."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from .. import __version__
from ..models.run import RoundRecord, RunResult


def _history_table(history: list[RoundRecord]) -> list[str]:
    lines = [
        "| Round | Quality | Calls | Preview |",
        "|-------|---------|-------|---------|",
    ]
    for record in history:
        preview = " ".join(record.result_preview.split())[:80].replace("|", "\\|")
        lines.append(f"| {record.round} | {record.quality:.2f} | {record.call_count} | {preview} |")
    return lines


def generate_run_report(
    result: RunResult,
    task: str = "",
    provider: str = "",
    duration_seconds: float = 0,
    dry_run: bool = False,
) -> str:
    """Render a finished run as Markdown."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    lines: list[str] = []
    lines.append("# DimStar Run Report")
    lines.append("")
    if task:
        lines.append(f"**Task:** {task}")
    lines.append(f"**Date:** {timestamp}")
    lines.append(f"**Rounds:** {result.rounds}")
    lines.append(f"**Inference calls:** {result.call_count}")
    lines.append(f"**Consensus quality:** {result.quality:.2f}")
    if provider:
        lines.append(f"**Provider:** {provider}")
    if dry_run:
        lines.append("**Mode:** DRY RUN (scripted responses)")
    if duration_seconds:
        lines.append(f"**Duration:** {round(duration_seconds, 1)}s")
    lines.append("")

    lines.append("## Final Answer")
    lines.append("")
    lines.append(result.result.strip() or "_(empty)_")
    lines.append("")

    lines.append("## Rounds")
    lines.append("")
    lines.extend(_history_table(result.history))
    lines.append("")

    lines.append("---")
    lines.append(f"*Generated by DimStar v{__version__} at {timestamp}*")
    return "\n".join(lines)


def export_run_json(result: RunResult, output_path: Path, task: Optional[str] = None) -> Path:
    """Write the run result (and optionally the task) as JSON."""
    payload = result.model_dump(mode="json")
    if task is not None:
        payload = {"task": task, **payload}

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return output_path
