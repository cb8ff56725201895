"""Repository layer: DB access helpers (SQLite).

Thin functions taking an open connection, so services never hold SQL strings.
"""
from __future__ import annotations
