"""Local snapshot mirror of in-progress graphs, one per campaign.

Mirrors the editing session so unsaved work survives a reload: in-memory for
the fast path, persisted as JSON under the data dir.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Any

from ..config import data_dir

logger = logging.getLogger(__name__)

_snapshot_store: dict[str, dict[str, Any]] = {}

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


def _snapshot_name(campaign_id: str) -> str:
    """File stem for a campaign. Ids needing escaping get a digest suffix so two ids never share a file."""
    if campaign_id and not _UNSAFE.search(campaign_id) and campaign_id not in (".", ".."):
        return campaign_id
    digest = hashlib.sha256(campaign_id.encode("utf-8")).hexdigest()[:16]
    return f"{_UNSAFE.sub('_', campaign_id)}~{digest}"


def _snapshot_path(campaign_id: str) -> Path:
    return data_dir() / "snapshots" / f"{_snapshot_name(campaign_id)}.json"


def save_snapshot(campaign_id: str, snapshot: dict[str, Any]) -> None:
    record = json.loads(json.dumps(snapshot))
    _snapshot_store[campaign_id] = record
    path = _snapshot_path(campaign_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(record, ensure_ascii=False), encoding="utf-8")


def _is_snapshot(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("nodes"), list)
        and isinstance(value.get("edges"), list)
    )


def load_snapshot(campaign_id: str) -> dict[str, Any] | None:
    """Stored snapshot, or None when missing or unreadable. Never raises."""
    rec = _snapshot_store.get(campaign_id)
    if rec is not None:
        return json.loads(json.dumps(rec))
    path = _snapshot_path(campaign_id)
    if not path.exists():
        return None
    try:
        rec = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable snapshot for campaign %s: %s", campaign_id, e)
        return None
    if not _is_snapshot(rec):
        logger.warning("Ignoring malformed snapshot for campaign %s", campaign_id)
        return None
    _snapshot_store[campaign_id] = rec
    return json.loads(json.dumps(rec))


def delete_snapshot(campaign_id: str) -> None:
    _snapshot_store.pop(campaign_id, None)
    path = _snapshot_path(campaign_id)
    if path.exists():
        path.unlink()
