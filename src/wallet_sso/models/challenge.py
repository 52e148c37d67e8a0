# src/wallet_sso/models/challenge.py
"""Persisted sign-in challenges."""

from sqlalchemy import BigInteger, Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wallet_sso.db.session import Base


class Challenge(Base):
    """One-time prompt a wallet signs to prove control of an address.

    `used` flips from false to true exactly once, through a guarded update.
    """

    __tablename__ = "challenges"
    __table_args__ = (Index("idx_challenges_expires_at", "expires_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    client_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    code_verifier: Mapped[str] = mapped_column(String(128), nullable=False)
    code_challenge: Mapped[str] = mapped_column(String(128), nullable=False)
    state: Mapped[str] = mapped_column(String(128), nullable=False)
    nonce: Mapped[str] = mapped_column(String(128), nullable=False)
    issued_at: Mapped[str] = mapped_column(String(64), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
