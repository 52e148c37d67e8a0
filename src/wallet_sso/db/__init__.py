# src/wallet_sso/db/__init__.py
"""Database configuration and utilities."""

from .pool import ConnectionPool, PoolConfig, PoolStats
from .session import Base, build_engine, create_tables, drop_tables
from .time import Clock, SystemClock

__all__ = [
    "Base",
    "Clock",
    "ConnectionPool",
    "PoolConfig",
    "PoolStats",
    "SystemClock",
    "build_engine",
    "create_tables",
    "drop_tables",
]
