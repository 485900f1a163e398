"""Database engine helpers."""

from agent_store.db.session import make_engine

__all__ = ["make_engine"]
