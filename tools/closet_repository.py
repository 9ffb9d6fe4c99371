"""Closet and outfit persistence: interface plus JSON and SQLite backends."""
from __future__ import annotations

import json
import os
import sqlite3
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from models.closet_item import ClosetItem
from models.outfit import Outfit

CLOSET_KEY = "closet_items"
OUTFITS_KEY = "outfits"
REFERENCE_PHOTO_KEY = "user_reference_photo"


class ClosetRepository:
    """Key-value persistence for closet items, outfits and the reference photo.

    Every operation is synchronous and durable when it returns.
    """

    def list_closet_items(self) -> List[ClosetItem]:
        raise NotImplementedError

    def save_closet_item(self, item: ClosetItem) -> ClosetItem:
        raise NotImplementedError

    def delete_closet_item(self, item_id: str) -> bool:
        raise NotImplementedError

    def clear_closet(self) -> int:
        raise NotImplementedError

    def list_outfits(self) -> List[Outfit]:
        raise NotImplementedError

    def get_outfit(self, outfit_id: str) -> Optional[Outfit]:
        raise NotImplementedError

    def save_outfit(self, outfit: Outfit) -> Outfit:
        raise NotImplementedError

    def delete_outfit(self, outfit_id: str) -> bool:
        raise NotImplementedError

    def get_user_reference_photo(self) -> Optional[str]:
        raise NotImplementedError

    def set_user_reference_photo(self, image_ref: str) -> str:
        raise NotImplementedError

    def clear_user_reference_photo(self) -> None:
        raise NotImplementedError


class JSONClosetRepository(ClosetRepository):
    """One JSON document per key in a directory, replaced atomically on write."""

    def __init__(self, base_dir: str | Path = "data/closet") -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{key}.json"

    def _load(self, key: str, default: Any) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        return json.loads(path.read_text())

    def _save(self, key: str, payload: Any) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _newest_first(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return sorted(records, key=lambda record: record["created_at"], reverse=True)

    def _upsert(self, key: str, record: Dict[str, Any]) -> None:
        with self._lock:
            records = [existing for existing in self._load(key, []) if existing["id"] != record["id"]]
            records.append(record)
            self._save(key, self._newest_first(records))

    def _remove(self, key: str, record_id: str) -> bool:
        with self._lock:
            records = self._load(key, [])
            remaining = [record for record in records if record["id"] != record_id]
            if len(remaining) == len(records):
                return False
            self._save(key, remaining)
            return True

    def list_closet_items(self) -> List[ClosetItem]:
        return [ClosetItem.from_dict(record) for record in self._load(CLOSET_KEY, [])]

    def save_closet_item(self, item: ClosetItem) -> ClosetItem:
        self._upsert(CLOSET_KEY, item.to_dict())
        return item

    def delete_closet_item(self, item_id: str) -> bool:
        return self._remove(CLOSET_KEY, item_id)

    def clear_closet(self) -> int:
        with self._lock:
            removed = len(self._load(CLOSET_KEY, []))
            self._save(CLOSET_KEY, [])
            return removed

    def list_outfits(self) -> List[Outfit]:
        return [Outfit.from_dict(record) for record in self._load(OUTFITS_KEY, [])]

    def get_outfit(self, outfit_id: str) -> Optional[Outfit]:
        for record in self._load(OUTFITS_KEY, []):
            if record["id"] == outfit_id:
                return Outfit.from_dict(record)
        return None

    def save_outfit(self, outfit: Outfit) -> Outfit:
        self._upsert(OUTFITS_KEY, outfit.to_dict())
        return outfit

    def delete_outfit(self, outfit_id: str) -> bool:
        return self._remove(OUTFITS_KEY, outfit_id)

    def get_user_reference_photo(self) -> Optional[str]:
        return self._load(REFERENCE_PHOTO_KEY, {}).get("image_ref")

    def set_user_reference_photo(self, image_ref: str) -> str:
        if not image_ref:
            raise ValueError("image_ref is required")
        with self._lock:
            self._save(REFERENCE_PHOTO_KEY, {"image_ref": image_ref})
        return image_ref

    def clear_user_reference_photo(self) -> None:
        with self._lock:
            self._path(REFERENCE_PHOTO_KEY).unlink(missing_ok=True)


class SQLiteClosetRepository(ClosetRepository):
    """SQLite-backed repository; each record is a JSON document in its own row."""

    def __init__(self, db_path: str | Path = "data/closet.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS closet_items (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    payload TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS outfits (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    payload TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS user_profile (
                    key TEXT PRIMARY KEY,
                    value TEXT
                );
                """
            )

    def _upsert(self, table: str, record: Dict[str, Any]) -> None:
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {table}(id, created_at, payload) VALUES (?, ?, ?)",
                (record["id"], record["created_at"], json.dumps(record)),
            )

    def _delete(self, table: str, record_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            return cursor.rowcount > 0

    def _payloads(self, table: str) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(f"SELECT payload FROM {table} ORDER BY created_at DESC").fetchall()
        return [json.loads(row["payload"]) for row in rows]

    def list_closet_items(self) -> List[ClosetItem]:
        return [ClosetItem.from_dict(payload) for payload in self._payloads("closet_items")]

    def save_closet_item(self, item: ClosetItem) -> ClosetItem:
        self._upsert("closet_items", item.to_dict())
        return item

    def delete_closet_item(self, item_id: str) -> bool:
        return self._delete("closet_items", item_id)

    def clear_closet(self) -> int:
        with self._connect() as conn:
            return conn.execute("DELETE FROM closet_items").rowcount

    def list_outfits(self) -> List[Outfit]:
        return [Outfit.from_dict(payload) for payload in self._payloads("outfits")]

    def get_outfit(self, outfit_id: str) -> Optional[Outfit]:
        with self._connect() as conn:
            row = conn.execute("SELECT payload FROM outfits WHERE id = ?", (outfit_id,)).fetchone()
        return Outfit.from_dict(json.loads(row["payload"])) if row else None

    def save_outfit(self, outfit: Outfit) -> Outfit:
        self._upsert("outfits", outfit.to_dict())
        return outfit

    def delete_outfit(self, outfit_id: str) -> bool:
        return self._delete("outfits", outfit_id)

    def get_user_reference_photo(self) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM user_profile WHERE key = ?", (REFERENCE_PHOTO_KEY,)).fetchone()
        return row["value"] if row else None

    def set_user_reference_photo(self, image_ref: str) -> str:
        if not image_ref:
            raise ValueError("image_ref is required")
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO user_profile(key, value) VALUES (?, ?)\n"
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (REFERENCE_PHOTO_KEY, image_ref),
            )
        return image_ref

    def clear_user_reference_photo(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM user_profile WHERE key = ?", (REFERENCE_PHOTO_KEY,))


def build_repository(backend: str, path: str | None = None) -> ClosetRepository:
    if backend == "sqlite":
        return SQLiteClosetRepository(path or "data/closet.db")
    return JSONClosetRepository(path or "data/closet")


__all__ = [
    "ClosetRepository",
    "JSONClosetRepository",
    "SQLiteClosetRepository",
    "build_repository",
]
