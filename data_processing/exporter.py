# -*- coding: utf-8 -*-
"""
exporter.py
- Writes a session progress workbook into OUTPUT_DIR (env OUTPUT_DIR, default ./output)
- Returns {path, filename, url} so the caller can offer a download link under /static.
- Sheets: Questions, Ad-hoc, Coverage, Notes
"""
from __future__ import annotations
import os, re, time
from pathlib import Path
from typing import Dict, Optional, Any

import pandas as pd

from common.models import Script, SessionScriptState
from data_processing.coverage import section_coverage

MIME_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _output_dir(output_dir: Optional[str] = None) -> str:
    d = output_dir or os.getenv("OUTPUT_DIR", os.path.join(os.getcwd(), "output"))
    Path(d).mkdir(parents=True, exist_ok=True)
    return d


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def build_progress_frames(script: Script, progress: SessionScriptState) -> Dict[str, pd.DataFrame]:
    question_rows = []
    for section in sorted(script.sections, key=lambda s: s.order):
        for q in sorted(section.questions, key=lambda q: q.order):
            st = progress.question_states.get(q.id)
            question_rows.append({
                "section": section.title,
                "question": q.text,
                "status": progress.status_of(q.id).value,
                "skip_reason": st.skip_reason if st else None,
                "notes": st.notes if st else None,
                "asked_at": _iso(st.asked_at) if st else None,
                "completed_at": _iso(st.completed_at) if st else None,
            })

    ad_hoc_rows = [
        {
            "question": a.text,
            "status": a.status.value,
            "skip_reason": a.skip_reason,
            "asked_at": _iso(a.asked_at),
            "completed_at": _iso(a.completed_at),
        }
        for a in progress.ad_hoc_questions
    ]

    coverage_rows = [
        {
            "section": s.title,
            "coverage": section_coverage(s, progress).value,
            "manual_override": bool(progress.section_overrides.get(s.id)),
            "questions": len(s.questions),
        }
        for s in sorted(script.sections, key=lambda s: s.order)
    ]

    return {
        "Questions": pd.DataFrame(question_rows, columns=["section", "question", "status", "skip_reason", "notes", "asked_at", "completed_at"]),
        "Ad-hoc": pd.DataFrame(ad_hoc_rows, columns=["question", "status", "skip_reason", "asked_at", "completed_at"]),
        "Coverage": pd.DataFrame(coverage_rows, columns=["section", "coverage", "manual_override", "questions"]),
        "Notes": pd.DataFrame({"quick_notes": (progress.quick_notes or "").splitlines() or [""]}),
    }


def save_progress_report(
    script: Script,
    progress: SessionScriptState,
    session_id: str,
    output_dir: Optional[str] = None,
) -> Dict[str, Any]:
    """
    return:
      { "path": <path on disk>,
        "filename": <basename>,
        "url": "/static/<filename>",
        "mime": MIME_XLSX }
    """
    out_dir = _output_dir(output_dir)
    ts = time.strftime("%Y%m%d_%H%M%S")
    safe_sid = re.sub(r"[^a-zA-Z0-9_\-]", "_", session_id or "session")
    filename = f"audit_{safe_sid}_{ts}.xlsx"
    path = os.path.join(out_dir, filename)

    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet, df in build_progress_frames(script, progress).items():
            df.to_excel(writer, sheet_name=sheet[:31], index=False)

    return {
        "path": path,
        "filename": filename,
        "url": f"/static/{filename}",
        "mime": MIME_XLSX,
    }
