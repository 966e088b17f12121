"""SQLAlchemy models for all database tables."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ivas.core.database import Base
from ivas.utils.clock import utc_now


class Company(Base):
    """Insurance company registered with the regulator."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    license_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    registration_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    registration_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )  # pending | approved | suspended | expired
    suspension_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    suspension_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # days
    suspended_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    registration_expiry: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    admin_approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class User(Base):
    """Platform user. Authentication itself lives outside this service."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # admin | officer | company | cbl | insurer | insured
    company_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id"), nullable=True)
    cbl_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    insurer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    insured_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    policy_numbers: Mapped[list | None] = mapped_column(JSON, nullable=True)
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False, default="approved")
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class Policy(Base):
    """Issued (or submitted) insurance policy."""

    __tablename__ = "policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    policy_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    holder_name: Mapped[str] = mapped_column(String(255), nullable=False)
    holder_id_number: Mapped[str] = mapped_column(String(100), nullable=False)
    holder_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    holder_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    policy_type: Mapped[str] = mapped_column(String(100), nullable=False)
    coverage_type: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )  # treaty | facultative | co_insured
    reinsurance_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    coverage_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    premium_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )  # pending | approved | declined
    approval_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    approver_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    policy_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    policy_counter: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    company: Mapped["Company"] = relationship("Company", lazy="joined")


class PolicyCounter(Base):
    """Per company, per year monotonic counter behind policy numbers."""

    __tablename__ = "policy_counters"
    __table_args__ = (UniqueConstraint("company_id", "year", name="uq_policy_counters_company_year"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    counter: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Verification(Base):
    """One recorded lookup attempt. Rows are never modified."""

    __tablename__ = "verifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    policy_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    holder_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Issuing company of the matched policy, else the queried company as supplied
    company_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    policy_id: Mapped[int | None] = mapped_column(ForeignKey("policies.id"), nullable=True)
    officer_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # valid | expired | fake | not_found | pending
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    verification_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default="manual"
    )  # manual | qr_scan | api
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    verified_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)


class Claim(Base):
    """Claim reported against a policy."""

    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    policy_id: Mapped[int] = mapped_column(ForeignKey("policies.id"), nullable=False, index=True)
    insured_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    insurer_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="reported"
    )  # reported | settled | denied
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    settlement_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    insurance_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    attachment_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    uploads: Mapped[list | None] = mapped_column(JSON, nullable=True)
    previous_claim_id: Mapped[int | None] = mapped_column(ForeignKey("claims.id"), nullable=True)
    decided_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class Approval(Base):
    """Pending-decision envelope shared by every reviewable entity kind."""

    __tablename__ = "approvals"
    __table_args__ = (
        Index("ix_approvals_entity", "entity_type", "entity_id"),
        # At most one open request per entity
        Index(
            "uq_approvals_pending_entity",
            "entity_type",
            "entity_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # insurer | policy | user | bond | type
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )  # pending | approved | declined
    requested_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approver_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)


class Bond(Base):
    __tablename__ = "bonds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    policy_id: Mapped[int | None] = mapped_column(ForeignKey("policies.id"), nullable=True)
    company_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id"), nullable=True)
    bond_type: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)


class InsuranceType(Base):
    """Catalogue of insurance products a company may offer."""

    __tablename__ = "insurance_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    company_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id"), nullable=True)
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)


class AuditLog(Base):
    """Compliance trail. Rows are never modified."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    severity: Mapped[str] = mapped_column(
        String(20), nullable=False, default="medium"
    )  # low | medium | high | critical
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="success")  # success | failure
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)


class AppendOnlyViolation(RuntimeError):
    """Raised when a flush tries to rewrite an append-only record."""


def _reject_mutation(mapper, connection, target) -> None:
    raise AppendOnlyViolation(f"{type(target).__name__} {target.id} is append-only")


for _model in (AuditLog, Verification):
    event.listen(_model, "before_update", _reject_mutation)
    event.listen(_model, "before_delete", _reject_mutation)
