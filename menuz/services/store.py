"""
Persistence for users, sessions, restaurants, items, orders and model jobs.

Two interchangeable backends:
- PostgresStore when DATABASE_URL is set (production)
- LocalStore, a single JSON document on disk (development and tests)

Entities other than jobs travel as camelCase dicts; jobs as ModelJob.
Every job write goes through update_job(job, expected_updated_at=...), a
compare-and-swap on updatedAt.

Usage:
    from menuz.services.store import get_store

    store = get_store()
    job = store.get_job(job_id)
"""

from __future__ import annotations

import copy
import json
import os
import threading
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from flask import current_app

from menuz import db
from menuz.config import config
from menuz.db import Tables, fetch_all, fetch_one, transaction
from menuz.services.model_job import ModelJob

EXTENSION_KEY = "menuz.store"


class ConcurrentUpdateError(Exception):
    """The job changed (or vanished) between read and write."""

    def __init__(self, job_id: str):
        super().__init__(f"model job {job_id} was modified concurrently")
        self.job_id = job_id


class BaseStore:
    """Interface shared by both backends."""

    name = "base"

    # users
    def get_user(self, user_id: str) -> Optional[dict]:
        raise NotImplementedError

    def get_user_by_email(self, email: str) -> Optional[dict]:
        raise NotImplementedError

    def create_user(self, user: dict) -> dict:
        raise NotImplementedError

    # sessions
    def create_session(self, token_hash: str, user_id: str, expires_at: int, created_at: int) -> None:
        raise NotImplementedError

    def get_session(self, token_hash: str) -> Optional[dict]:
        raise NotImplementedError

    def delete_session(self, token_hash: str) -> None:
        raise NotImplementedError

    def sweep_sessions(self, now_ts: int) -> int:
        raise NotImplementedError

    # restaurants
    def list_restaurants(self) -> List[dict]:
        raise NotImplementedError

    def get_restaurant(self, restaurant_id: str) -> Optional[dict]:
        raise NotImplementedError

    def get_restaurant_by_slug(self, slug: str) -> Optional[dict]:
        raise NotImplementedError

    def create_restaurant(self, restaurant: dict) -> dict:
        raise NotImplementedError

    def update_restaurant(self, restaurant: dict) -> dict:
        raise NotImplementedError

    # orders
    def list_orders(self, restaurant_id: str) -> List[dict]:
        """Orders of one restaurant, newest first."""
        raise NotImplementedError

    def get_order(self, order_id: str) -> Optional[dict]:
        raise NotImplementedError

    def create_order(self, order: dict) -> dict:
        raise NotImplementedError

    def update_order(self, order: dict) -> dict:
        raise NotImplementedError

    # items
    def list_items(self, restaurant_id: str) -> List[dict]:
        raise NotImplementedError

    def get_item(self, item_id: str) -> Optional[dict]:
        raise NotImplementedError

    def create_item(self, item: dict) -> dict:
        raise NotImplementedError

    def update_item(self, item: dict) -> dict:
        raise NotImplementedError

    def delete_item(self, item_id: str) -> bool:
        raise NotImplementedError

    # model jobs
    def list_jobs(self, restaurant_id: str) -> List[ModelJob]:
        raise NotImplementedError

    def get_job(self, job_id: str) -> Optional[ModelJob]:
        raise NotImplementedError

    def insert_job(self, job: ModelJob) -> ModelJob:
        raise NotImplementedError

    def update_job(self, job: ModelJob, expected_updated_at: Optional[str] = None) -> ModelJob:
        raise NotImplementedError

    def delete_job(self, job_id: str) -> bool:
        raise NotImplementedError

    def delete_jobs_for_item(self, item_id: str) -> List[str]:
        raise NotImplementedError


# ─────────────────────────────────────────────────────────────
# Local JSON store
# ─────────────────────────────────────────────────────────────
_EMPTY_DOC = {
    "users": {},
    "sessions": {},
    "restaurants": {},
    "items": {},
    "modelJobs": {},
    "orders": {},
}


class LocalStore(BaseStore):
    """
    Whole-document JSON store guarded by a process-wide lock.

    The file is loaded once and rewritten after every mutation
    (tmp file + os.replace so a crash never leaves half a document).
    """

    name = "local"

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._doc = self._load()

    def _load(self) -> dict:
        doc = copy.deepcopy(_EMPTY_DOC)
        if self.path.exists():
            raw = self.path.read_text(encoding="utf-8") or "{}"
            loaded = json.loads(raw)
            for key in doc:
                if isinstance(loaded.get(key), dict):
                    doc[key] = loaded[key]
        return doc

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._doc, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def _get(self, table: str, key: str) -> Optional[dict]:
        with self._lock:
            row = self._doc[table].get(key)
            return copy.deepcopy(row) if row is not None else None

    def _put(self, table: str, key: str, row: dict) -> dict:
        with self._lock:
            self._doc[table][key] = copy.deepcopy(row)
            self._save()
        return copy.deepcopy(row)

    def _filter(self, table: str, **match) -> List[dict]:
        with self._lock:
            return [
                copy.deepcopy(row)
                for row in self._doc[table].values()
                if all(row.get(k) == v for k, v in match.items())
            ]

    # users
    def get_user(self, user_id):
        return self._get("users", user_id)

    def get_user_by_email(self, email):
        rows = self._filter("users", email=(email or "").strip().lower())
        return rows[0] if rows else None

    def create_user(self, user):
        return self._put("users", user["id"], user)

    # sessions
    def create_session(self, token_hash, user_id, expires_at, created_at):
        self._put("sessions", token_hash, {
            "tokenHash": token_hash,
            "userId": user_id,
            "expiresAt": int(expires_at),
            "createdAt": int(created_at),
        })

    def get_session(self, token_hash):
        return self._get("sessions", token_hash)

    def delete_session(self, token_hash):
        with self._lock:
            if self._doc["sessions"].pop(token_hash, None) is not None:
                self._save()

    def sweep_sessions(self, now_ts):
        with self._lock:
            expired = [k for k, s in self._doc["sessions"].items() if int(s.get("expiresAt") or 0) <= now_ts]
            for key in expired:
                del self._doc["sessions"][key]
            if expired:
                self._save()
        return len(expired)

    # restaurants
    def list_restaurants(self):
        return sorted(self._filter("restaurants"), key=lambda r: (r.get("name") or "").lower())

    def get_restaurant(self, restaurant_id):
        return self._get("restaurants", restaurant_id)

    def get_restaurant_by_slug(self, slug):
        rows = self._filter("restaurants", slug=slug)
        return rows[0] if rows else None

    def create_restaurant(self, restaurant):
        return self._put("restaurants", restaurant["id"], restaurant)

    def update_restaurant(self, restaurant):
        return self._put("restaurants", restaurant["id"], restaurant)

    # orders
    def list_orders(self, restaurant_id):
        orders = self._filter("orders", restaurantId=restaurant_id)
        return sorted(orders, key=lambda o: o.get("createdAt") or "", reverse=True)

    def get_order(self, order_id):
        return self._get("orders", order_id)

    def create_order(self, order):
        return self._put("orders", order["id"], order)

    def update_order(self, order):
        return self._put("orders", order["id"], order)

    # items
    def list_items(self, restaurant_id):
        return sorted(self._filter("items", restaurantId=restaurant_id), key=lambda i: (i.get("name") or "").lower())

    def get_item(self, item_id):
        return self._get("items", item_id)

    def create_item(self, item):
        return self._put("items", item["id"], item)

    def update_item(self, item):
        return self._put("items", item["id"], item)

    def delete_item(self, item_id):
        with self._lock:
            removed = self._doc["items"].pop(item_id, None)
            if removed is not None:
                self._save()
        return removed is not None

    # model jobs
    def list_jobs(self, restaurant_id):
        return [ModelJob.from_dict(r) for r in self._filter("modelJobs", restaurantId=restaurant_id)]

    def get_job(self, job_id):
        row = self._get("modelJobs", job_id)
        return ModelJob.from_dict(row) if row else None

    def insert_job(self, job):
        self._put("modelJobs", job.id, job.to_dict())
        return job

    def update_job(self, job, expected_updated_at=None):
        with self._lock:
            current = self._doc["modelJobs"].get(job.id)
            if current is None:
                raise ConcurrentUpdateError(job.id)
            if expected_updated_at is not None and current.get("updatedAt") != expected_updated_at:
                raise ConcurrentUpdateError(job.id)
            self._doc["modelJobs"][job.id] = job.to_dict()
            self._save()
        return job

    def delete_job(self, job_id):
        with self._lock:
            removed = self._doc["modelJobs"].pop(job_id, None)
            if removed is not None:
                self._save()
        return removed is not None

    def delete_jobs_for_item(self, item_id):
        with self._lock:
            ids = [k for k, j in self._doc["modelJobs"].items() if j.get("itemId") == item_id]
            for key in ids:
                del self._doc["modelJobs"][key]
            if ids:
                self._save()
        return ids


# ─────────────────────────────────────────────────────────────
# PostgreSQL store
# ─────────────────────────────────────────────────────────────
def _user_from_row(row: Optional[Dict[str, Any]]) -> Optional[dict]:
    if not row:
        return None
    return {
        "id": row["id"],
        "email": row["email"],
        "role": row["role"],
        "restaurantId": row.get("restaurant_id"),
        "passwordHash": row["password_hash"],
    }


def _restaurant_from_row(row: Optional[Dict[str, Any]]) -> Optional[dict]:
    if not row:
        return None
    return {
        "id": row["id"],
        "name": row["name"],
        "slug": row["slug"],
        "description": row.get("description") or "",
    }


def _item_from_row(row: Optional[Dict[str, Any]]) -> Optional[dict]:
    if not row:
        return None
    price = row.get("price")
    if isinstance(price, Decimal):
        price = float(price)
    scans = row.get("scans") or []
    if isinstance(scans, str):
        scans = json.loads(scans or "[]")
    return {
        "id": row["id"],
        "restaurantId": row["restaurant_id"],
        "name": row["name"],
        "description": row.get("description") or "",
        "price": price or 0,
        "image": row.get("image") or "",
        "modelGlb": row.get("model_glb") or "",
        "modelUsdz": row.get("model_usdz") or "",
        "scans": list(scans),
    }


def _order_from_row(row: Optional[Dict[str, Any]]) -> Optional[dict]:
    if not row:
        return None
    total = row.get("total")
    if isinstance(total, Decimal):
        total = float(total)
    lines = row.get("items") or []
    if isinstance(lines, str):
        lines = json.loads(lines or "[]")
    return {
        "id": row["id"],
        "restaurantId": row["restaurant_id"],
        "table": row.get("table_label") or "",
        "items": list(lines),
        "total": total or 0,
        "status": row["status"],
        "createdAt": row["created_at"],
    }


_JOB_COLUMNS = (
    "id", "restaurant_id", "item_id", "source_type", "provider", "ai_model", "auto_mode",
    "status", "notes", "model_glb", "model_usdz", "reference_images", "provider_task_id",
    "provider_task_endpoint", "provider_status", "created_at", "updated_at", "created_by",
)


class PostgresStore(BaseStore):
    """Store backed by the menuz schema in PostgreSQL."""

    name = "postgres"

    # users
    def get_user(self, user_id):
        return _user_from_row(db.query_one(f"SELECT * FROM {Tables.USERS} WHERE id = %s", (user_id,)))

    def get_user_by_email(self, email):
        return _user_from_row(db.query_one(
            f"SELECT * FROM {Tables.USERS} WHERE email = %s", ((email or "").strip().lower(),)
        ))

    def create_user(self, user):
        db.execute(
            f"""
            INSERT INTO {Tables.USERS} (id, email, role, restaurant_id, password_hash)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (user["id"], user["email"], user["role"], user.get("restaurantId"), user["passwordHash"]),
        )
        return user

    # sessions
    def create_session(self, token_hash, user_id, expires_at, created_at):
        db.execute(
            f"""
            INSERT INTO {Tables.SESSIONS} (token_hash, user_id, expires_at, created_at)
            VALUES (%s, %s, %s, %s)
            """,
            (token_hash, user_id, int(expires_at), int(created_at)),
        )

    def get_session(self, token_hash):
        row = db.query_one(f"SELECT * FROM {Tables.SESSIONS} WHERE token_hash = %s", (token_hash,))
        if not row:
            return None
        return {
            "tokenHash": row["token_hash"],
            "userId": row["user_id"],
            "expiresAt": int(row["expires_at"]),
            "createdAt": int(row["created_at"]),
        }

    def delete_session(self, token_hash):
        db.execute(f"DELETE FROM {Tables.SESSIONS} WHERE token_hash = %s", (token_hash,))

    def sweep_sessions(self, now_ts):
        return db.execute(f"DELETE FROM {Tables.SESSIONS} WHERE expires_at <= %s", (now_ts,))

    # restaurants
    def list_restaurants(self):
        rows = db.query_all(f"SELECT * FROM {Tables.RESTAURANTS} ORDER BY lower(name)")
        return [_restaurant_from_row(r) for r in rows]

    def get_restaurant(self, restaurant_id):
        return _restaurant_from_row(db.query_one(
            f"SELECT * FROM {Tables.RESTAURANTS} WHERE id = %s", (restaurant_id,)
        ))

    def get_restaurant_by_slug(self, slug):
        return _restaurant_from_row(db.query_one(
            f"SELECT * FROM {Tables.RESTAURANTS} WHERE slug = %s", (slug,)
        ))

    def create_restaurant(self, restaurant):
        db.execute(
            f"INSERT INTO {Tables.RESTAURANTS} (id, name, slug, description) VALUES (%s, %s, %s, %s)",
            (restaurant["id"], restaurant["name"], restaurant["slug"], restaurant.get("description") or ""),
        )
        return restaurant

    def update_restaurant(self, restaurant):
        db.execute(
            f"UPDATE {Tables.RESTAURANTS} SET name = %s, slug = %s, description = %s WHERE id = %s",
            (restaurant["name"], restaurant["slug"], restaurant.get("description") or "", restaurant["id"]),
        )
        return restaurant

    # orders
    def list_orders(self, restaurant_id):
        rows = db.query_all(
            f"SELECT * FROM {Tables.ORDERS} WHERE restaurant_id = %s ORDER BY created_at DESC", (restaurant_id,)
        )
        return [_order_from_row(r) for r in rows]

    def get_order(self, order_id):
        return _order_from_row(db.query_one(f"SELECT * FROM {Tables.ORDERS} WHERE id = %s", (order_id,)))

    def create_order(self, order):
        db.execute(
            f"""
            INSERT INTO {Tables.ORDERS} (id, restaurant_id, table_label, items, total, status, created_at)
            VALUES (%s, %s, %s, %s::jsonb, %s, %s, %s)
            """,
            (
                order["id"], order["restaurantId"], order.get("table") or "",
                json.dumps(order.get("items") or []), order.get("total") or 0,
                order["status"], order["createdAt"],
            ),
        )
        return order

    def update_order(self, order):
        db.execute(f"UPDATE {Tables.ORDERS} SET status = %s WHERE id = %s", (order["status"], order["id"]))
        return order

    # items
    def list_items(self, restaurant_id):
        rows = db.query_all(
            f"SELECT * FROM {Tables.ITEMS} WHERE restaurant_id = %s ORDER BY lower(name)", (restaurant_id,)
        )
        return [_item_from_row(r) for r in rows]

    def get_item(self, item_id):
        return _item_from_row(db.query_one(f"SELECT * FROM {Tables.ITEMS} WHERE id = %s", (item_id,)))

    def create_item(self, item):
        db.execute(
            f"""
            INSERT INTO {Tables.ITEMS}
                (id, restaurant_id, name, description, price, image, model_glb, model_usdz, scans)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb)
            """,
            (
                item["id"], item["restaurantId"], item["name"], item.get("description") or "",
                item.get("price") or 0, item.get("image") or "", item.get("modelGlb") or "",
                item.get("modelUsdz") or "", json.dumps(item.get("scans") or []),
            ),
        )
        return item

    def update_item(self, item):
        db.execute(
            f"""
            UPDATE {Tables.ITEMS}
               SET name = %s, description = %s, price = %s, image = %s,
                   model_glb = %s, model_usdz = %s, scans = %s::jsonb
             WHERE id = %s
            """,
            (
                item["name"], item.get("description") or "", item.get("price") or 0,
                item.get("image") or "", item.get("modelGlb") or "", item.get("modelUsdz") or "",
                json.dumps(item.get("scans") or []), item["id"],
            ),
        )
        return item

    def delete_item(self, item_id):
        return db.execute(f"DELETE FROM {Tables.ITEMS} WHERE id = %s", (item_id,)) > 0

    # model jobs
    def list_jobs(self, restaurant_id):
        rows = db.query_all(f"SELECT * FROM {Tables.MODEL_JOBS} WHERE restaurant_id = %s", (restaurant_id,))
        return [ModelJob.from_row(r) for r in rows]

    def get_job(self, job_id):
        return ModelJob.from_row(db.query_one(f"SELECT * FROM {Tables.MODEL_JOBS} WHERE id = %s", (job_id,)))

    def insert_job(self, job):
        row = job.to_row()
        placeholders = ", ".join("%s::jsonb" if c == "reference_images" else "%s" for c in _JOB_COLUMNS)
        db.execute(
            f"INSERT INTO {Tables.MODEL_JOBS} ({', '.join(_JOB_COLUMNS)}) VALUES ({placeholders})",
            tuple(row[c] for c in _JOB_COLUMNS),
        )
        return job

    def update_job(self, job, expected_updated_at=None):
        row = job.to_row()
        columns = [c for c in _JOB_COLUMNS if c != "id"]
        assignments = ", ".join(
            f"{c} = %s::jsonb" if c == "reference_images" else f"{c} = %s" for c in columns
        )
        params = [row[c] for c in columns] + [job.id]
        sql = f"UPDATE {Tables.MODEL_JOBS} SET {assignments} WHERE id = %s"
        if expected_updated_at is not None:
            sql += " AND updated_at = %s"
            params.append(expected_updated_at)
        sql += " RETURNING id"

        with transaction() as cur:
            cur.execute(sql, tuple(params))
            if fetch_one(cur) is None:
                raise ConcurrentUpdateError(job.id)
        return job

    def delete_job(self, job_id):
        return db.execute(f"DELETE FROM {Tables.MODEL_JOBS} WHERE id = %s", (job_id,)) > 0

    def delete_jobs_for_item(self, item_id):
        with transaction() as cur:
            cur.execute(f"DELETE FROM {Tables.MODEL_JOBS} WHERE item_id = %s RETURNING id", (item_id,))
            return [r["id"] for r in fetch_all(cur)]


# ─────────────────────────────────────────────────────────────
# Wiring
# ─────────────────────────────────────────────────────────────
def build_store() -> BaseStore:
    """PostgresStore when a database is configured, else LocalStore at DATA_PATH."""
    if db.USE_DB:
        print("[STORE] Using PostgreSQL store")
        return PostgresStore()
    print(f"[STORE] Using local JSON store at {config.DATA_PATH}")
    return LocalStore(config.DATA_PATH)


def get_store() -> BaseStore:
    return current_app.extensions[EXTENSION_KEY]
