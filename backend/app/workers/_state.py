"""Persistent worker state: last run timestamp and summary per worker.

Uses a lightweight `worker_state` collection in MongoDB so the health
endpoint can report when each scheduled job last completed.
"""

from datetime import datetime, timedelta
from typing import Any

import app.database as _db
from app.utils import ensure_utc, utcnow


async def get_synced_at(worker_id: str) -> datetime | None:
    """Get the last synced_at timestamp for a worker."""
    doc = await _db.db.worker_state.find_one({"_id": worker_id})
    return doc["synced_at"] if doc else None


async def set_synced(worker_id: str, summary: dict[str, Any] | None = None) -> None:
    """Mark a worker as just synced, optionally storing its last run summary."""
    fields: dict[str, Any] = {"synced_at": utcnow()}
    if summary is not None:
        fields["last_summary"] = summary
    await _db.db.worker_state.update_one(
        {"_id": worker_id},
        {"$set": fields},
        upsert=True,
    )


async def recently_synced(worker_id: str, max_age: timedelta) -> bool:
    """Check if a worker synced within the given time window."""
    last = await get_synced_at(worker_id)
    if not last:
        return False
    last = ensure_utc(last)
    return (utcnow() - last) < max_age


async def get_worker_states() -> list[dict[str, Any]]:
    docs = await _db.db.worker_state.find({}).to_list(length=100)
    return [
        {
            "worker": doc["_id"],
            "synced_at": doc.get("synced_at"),
            "last_summary": doc.get("last_summary"),
        }
        for doc in docs
    ]
