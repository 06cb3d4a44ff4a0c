from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.onboarding.models import Base, Company, User


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    document_type: Mapped[str] = mapped_column(String(64), nullable=False)

    rich_text_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    signed_document_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    is_signed_elsewhere: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    attachment_storage_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    attachment_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    company: Mapped[Company] = relationship(lazy="selectin")
    signatures: Mapped[list["DocumentSignature"]] = relationship(
        "DocumentSignature",
        back_populates="document",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="DocumentSignature.id",
    )

    @property
    def presentation(self) -> str:
        """How signers see this document: signed_elsewhere, awaiting_signed_url or rich_text."""
        if self.is_signed_elsewhere:
            return "signed_elsewhere" if self.signed_document_url else "awaiting_signed_url"
        return "rich_text"


class DocumentSignature(Base):
    __tablename__ = "document_signatures"
    __table_args__ = (
        UniqueConstraint("document_id", "title", name="uq_document_signature_title"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    document_id: Mapped[int] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "Company Representative", "Signer"
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    document: Mapped[Document] = relationship("Document", back_populates="signatures", lazy="selectin")
    user: Mapped[User] = relationship(lazy="selectin")
