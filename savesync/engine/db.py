import json
import sqlite3
from datetime import datetime
from pathlib import Path


def get_conn(db_path: str):
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str):
    conn = get_conn(db_path)
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS sync_runs (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          run_type TEXT,
          status TEXT,
          started_at TEXT,
          finished_at TEXT,
          summary_json TEXT
        )
        """
    )

    conn.commit()
    conn.close()


def record_run(db_path: str, run_type: str, summary: dict) -> int:
    conn = get_conn(db_path)
    cur = conn.cursor()
    cur.execute(
        "INSERT INTO sync_runs(run_type,status,started_at,finished_at,summary_json) VALUES (?,?,?,?,?)",
        (
            run_type,
            summary.get("result", "unknown"),
            summary.get("started_at") or datetime.now().isoformat(timespec="seconds"),
            summary.get("finished_at") or datetime.now().isoformat(timespec="seconds"),
            json.dumps(summary, ensure_ascii=False),
        ),
    )
    rid = cur.lastrowid
    conn.commit()
    conn.close()
    return rid


def recent_runs(db_path: str, limit: int = 20):
    conn = get_conn(db_path)
    rows = conn.execute(
        "SELECT * FROM sync_runs ORDER BY id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    conn.close()
    out = []
    for r in rows:
        item = dict(r)
        try:
            item["summary"] = json.loads(item.pop("summary_json") or "{}")
        except json.JSONDecodeError:
            item["summary"] = {}
        out.append(item)
    return out
