from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from ..utils.json_utils import read_jsonl


def load_snapshot(path: str | Path) -> Dict[str, Any] | List[Dict[str, Any]]:
    """
    Load a candidate snapshot from disk.
    Returns either:
      - a dict containing 'records' and optionally 'jobs'
      - or a list of candidate records (bare JSON array or JSON Lines)
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Snapshot not found at: {p}")
    # .jsonl, or anything that does not open with '{' or '[', is JSON Lines
    with p.open("r", encoding="utf-8") as f:
        head = f.read(1)
    if p.suffix.lower() == ".jsonl" or head not in ("{", "["):
        return list(read_jsonl(p))
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def extract_records(dataset: Dict[str, Any] | List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Rules:
      - top-level object with a 'records' list → that list
      - top-level list → the list itself
      - otherwise ValueError
    """
    if isinstance(dataset, dict):
        records = dataset.get("records")
        if isinstance(records, list):
            return [r for r in records if isinstance(r, dict)]
        raise ValueError("Snapshot is an object but missing 'records' list at top level.")
    if isinstance(dataset, list):
        return [r for r in dataset if isinstance(r, dict)]
    raise ValueError("Snapshot should be either an object or an array at the top level.")


def extract_jobs(dataset: Dict[str, Any] | List[Dict[str, Any]]) -> Dict[str, Dict[str, str]]:
    if isinstance(dataset, dict) and isinstance(dataset.get("jobs"), dict):
        return {str(k): dict(v) for k, v in dataset["jobs"].items() if isinstance(v, dict)}
    return {}
