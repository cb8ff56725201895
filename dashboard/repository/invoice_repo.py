from __future__ import annotations

import uuid
from sqlite3 import Connection
from typing import Optional


def ensure_schema(conn: Connection):
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS invoices (
            id TEXT PRIMARY KEY,
            customer_id TEXT NOT NULL,
            amount INTEGER NOT NULL,
            status TEXT NOT NULL CHECK (status IN ('pending', 'paid')),
            date TEXT NOT NULL
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_invoices_date ON invoices(date)")


def insert(conn: Connection, customer_id: str, amount: int, status: str, date: str) -> str:
    invoice_id = str(uuid.uuid4())
    conn.execute(
        "INSERT INTO invoices(id, customer_id, amount, status, date) VALUES(?,?,?,?,?)",
        (invoice_id, customer_id, amount, status, date),
    )
    return invoice_id


def update(conn: Connection, invoice_id: str, customer_id: str, amount: int, status: str) -> int:
    cur = conn.execute(
        "UPDATE invoices SET customer_id=?, amount=?, status=? WHERE id=?",
        (customer_id, amount, status, invoice_id),
    )
    return cur.rowcount


def delete(conn: Connection, invoice_id: str) -> int:
    cur = conn.execute("DELETE FROM invoices WHERE id=?", (invoice_id,))
    return cur.rowcount


def get_one(conn: Connection, invoice_id: str):
    return conn.execute(
        "SELECT id, customer_id, amount, status, date FROM invoices WHERE id=?",
        (invoice_id,),
    ).fetchone()


def _filter_clause(q: Optional[str]) -> tuple[str, list]:
    if not q or not q.strip():
        return "", []
    like = f"%{q.strip().lower()}%"
    return (
        " WHERE lower(customer_id) LIKE ? OR lower(status) LIKE ? OR date LIKE ?",
        [like, like, like],
    )


def count_filtered(conn: Connection, q: Optional[str] = None) -> int:
    where, params = _filter_clause(q)
    return int(conn.execute(f"SELECT COUNT(1) AS c FROM invoices{where}", params).fetchone()["c"])


def list_page(conn: Connection, q: Optional[str], page: int, size: int):
    where, params = _filter_clause(q)
    return conn.execute(
        f"SELECT id, customer_id, amount, status, date FROM invoices{where} "
        "ORDER BY date DESC, id ASC LIMIT ? OFFSET ?",
        [*params, size, (page - 1) * size],
    ).fetchall()
