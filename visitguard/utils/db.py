import json
import os
import sqlite3

import aiosqlite


async def init_archive(db_path: str) -> None:
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS visit_records (
                session_id TEXT PRIMARY KEY,
                role TEXT,
                record_json TEXT NOT NULL,
                created_at REAL NOT NULL
            )
        """)
        await db.commit()


async def archive_record(db_path: str, session_id: str, role: str, record: dict, created_at: float) -> bool:
    """Insert a finalized record. Returns False if the session id is already archived."""
    async with aiosqlite.connect(db_path) as db:
        try:
            await db.execute(
                "INSERT INTO visit_records (session_id, role, record_json, created_at) VALUES (?, ?, ?, ?)",
                (session_id, role, json.dumps(record, ensure_ascii=False), created_at),
            )
        except sqlite3.IntegrityError:
            return False
        await db.commit()
    return True


async def load_archived_record(db_path: str, session_id: str) -> dict | None:
    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute("SELECT record_json FROM visit_records WHERE session_id = ?", (session_id,))
        row = await cursor.fetchone()
    if row is None:
        return None
    return json.loads(row["record_json"])
