# src/wallet_sso/models/auth_code.py
"""Single-use authorization codes."""

from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from wallet_sso.db.session import Base


class AuthCode(Base):
    """Bridge between a verified signature and a new session."""

    __tablename__ = "auth_codes"

    code: Mapped[str] = mapped_column(String(128), primary_key=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    client_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
