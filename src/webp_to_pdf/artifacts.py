from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from .contracts import ConvertRunResult


def build_run_manifest(result: ConvertRunResult) -> dict[str, Any]:
    """
    Run summary for auditing. Converted images are counted, not listed;
    only skipped images are itemized.
    """
    skipped = [
        {"source_path": img.source_path, "error_code": img.error_code}
        for img in result.images
        if not img.ok
    ]
    return {
        "ok": result.ok,
        "input_dir": result.input_dir,
        "output_path": result.output_path,
        "written": result.written,
        "page_count": result.page_count,
        "image_count": len(result.images),
        "converted_count": len(result.images) - len(skipped),
        "skipped": skipped,
        "errors": [asdict(e) for e in result.errors],
        "elapsed_s": result.elapsed_s,
        "meta": result.meta,
    }


def write_run_manifest_json(*, result: ConvertRunResult, out_manifest: Path) -> None:
    out_manifest.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(build_run_manifest(result), ensure_ascii=False, sort_keys=True, indent=2)
    out_manifest.write_text(text + "\n", encoding="utf-8")
