"""批次報告輸出工具。"""

from __future__ import annotations

import csv
from datetime import datetime
import json
from pathlib import Path
from typing import Iterable, Optional

from ..models import BatchResult, ProcessError, UploadTask

TASK_FIELDNAMES = [
    "index",
    "item_id",
    "file_name",
    "state",
    "reason",
    "attempts",
    "http_status",
    "size_bytes",
    "exact_hash",
    "perceptual_hash",
]


def ensure_report_dir(output_root: Path) -> Path:
    report_dir = output_root / "REPORT"
    report_dir.mkdir(parents=True, exist_ok=True)
    return report_dir


def write_summary_json(
    report_dir: Path,
    result: BatchResult,
    *,
    event_id: str,
    errors: Optional[Iterable[ProcessError]] = None,
) -> Path:
    summary_path = report_dir / "summary.json"
    payload = {
        "run_time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "event_id": event_id,
        **result.to_dict(),
        "errors": [error.to_dict() for error in errors or []],
    }
    with summary_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2)
    return summary_path


def write_tasks_csv(report_dir: Path, tasks: Iterable[UploadTask]) -> Path:
    report_path = report_dir / "tasks.csv"
    with report_path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=TASK_FIELDNAMES)
        writer.writeheader()
        for task in tasks:
            payload = task.to_dict()
            writer.writerow({field: payload.get(field) for field in TASK_FIELDNAMES})
    return report_path


def write_batch_report(
    report_dir: Path,
    result: BatchResult,
    tasks: Iterable[UploadTask],
    *,
    event_id: str,
    errors: Optional[Iterable[ProcessError]] = None,
) -> tuple[Path, Path]:
    report_dir.mkdir(parents=True, exist_ok=True)
    summary_path = write_summary_json(report_dir, result, event_id=event_id, errors=errors)
    tasks_path = write_tasks_csv(report_dir, tasks)
    return summary_path, tasks_path


def build_summary_text(result: BatchResult, *, event_id: str) -> str:
    lines = [
        "=== photo-share-upload 批次摘要 ===",
        f"活動: {event_id}",
        f"成功: {result.succeeded} 個",
        f"失敗: {result.failed} 個",
        f"略過（重複）: {result.skipped} 個",
        f"取消: {result.cancelled} 個",
    ]
    if result.failed_items:
        lines.append("")
        lines.append("--- 失敗項目 ---")
        for item in result.failed_items:
            lines.append(f"{item.item_id}: {item.reason}")
    if result.was_cancelled:
        lines.append("")
        lines.append("批次已取消，已完成的結果仍保留。")
    return "\n".join(lines) + "\n"


def format_bytes_mb(num_bytes: int) -> str:
    return f"{num_bytes / (1024 ** 2):.1f} MB"
