"""
SQLAlchemy tables used by the SQL document store.

Each table is named after a store collection and its columns are named after the
document keys, so the store can translate documents and filters without any
per-collection mapping code.
"""
from sqlalchemy import Index, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class ApiTokenDocument(Base):
    """
    Row layout of the ``apitokens`` collection.

    Timestamps are fixed-width RFC3339 strings; the plaintext secret has no column.
    """

    __tablename__ = "apitokens"

    id: Mapped[str] = mapped_column("_id", String(36), primary_key=True)
    value_sha: Mapped[bytes | None] = mapped_column(
        LargeBinary(32),
        nullable=True,
        comment="SHA-256 digest of the token secret",
    )
    status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    description: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    last_used_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    updated_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    created_by_nid: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Owner nano-id, the first segment of the bearer",
    )
    ttl_expires_at: Mapped[str | None] = mapped_column(
        String(40),
        nullable=True,
        comment="Empty for permanent tokens",
    )

    __table_args__ = (
        Index("ix_apitokens_created_at", "created_at"),
    )
