"""Versioned contracts for the JSON payloads the CLI emits."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

CONTRACT_VERSIONS = {
    "talent_desk.import": "1.0.0",
    "talent_desk.summary": "1.0.0",
    "talent_desk.export": "1.0.0",
    "talent_desk.talents": "1.0.0",
    "talent_desk.lessons": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    input_path: Path | None = None,
    status: str = "ok",
    output_paths: list[Path] | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "talent-desk",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path) if input_path else None,
        "output_files": [str(path) for path in output_paths or []],
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }
