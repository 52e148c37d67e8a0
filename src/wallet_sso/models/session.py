# src/wallet_sso/models/session.py
"""Persisted sign-in sessions."""

from sqlalchemy import BigInteger, Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wallet_sso.db.session import Base


class UserSession(Base):
    """An address's active grant to one client application.

    The token pair stored on the row shares `fingerprint`; rotation replaces
    all token fields at once. `is_active = false` is a permanent soft delete.
    """

    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_address_client", "address", "client_id"),
        Index("idx_sessions_refresh_token_id", "refresh_token_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    client_id: Mapped[str] = mapped_column(String(255), nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    access_token_id: Mapped[str] = mapped_column(String(128), nullable=False)
    refresh_token_id: Mapped[str] = mapped_column(String(128), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(128), nullable=False)
    access_token_expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    refresh_token_expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_used_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
