# backend/strenx/models.py
from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def utcnow() -> datetime:
    # Store-wide convention: naive datetimes that are UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    # Aware inputs (e.g. +05:30 from the client) are shifted to UTC first.
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Gym(Base):
    __tablename__ = "gyms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Owner login (trial gyms may not have one until the owner sets it)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, index=True, nullable=True)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Every gym record is an owner account
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="owner")

    # Trial
    is_trial: Mapped[bool] = mapped_column(Boolean, default=False)
    trial_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Paid subscription (set when a plan is applied)
    plan_id: Mapped[int | None] = mapped_column(ForeignKey("subscription_plans.id"), nullable=True)
    subscription_ends_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    branches = relationship("Branch", back_populates="gym", cascade="all, delete-orphan")
    members = relationship("Member", back_populates="gym")
    trainers = relationship("Trainer", back_populates="gym")
    plan = relationship("SubscriptionPlan")


class Branch(Base):
    __tablename__ = "branches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    gym_id: Mapped[int] = mapped_column(ForeignKey("gyms.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    gym = relationship("Gym", back_populates="branches")


class Trainer(Base):
    __tablename__ = "trainers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    gym_id: Mapped[int] = mapped_column(ForeignKey("gyms.id"), nullable=False, index=True)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), nullable=False, index=True)

    login_id: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    password_changed: Mapped[bool] = mapped_column(Boolean, default=False)

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    gym = relationship("Gym", back_populates="trainers")
    members = relationship("Member", back_populates="assigned_trainer")


class Member(Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    gym_id: Mapped[int] = mapped_column(ForeignKey("gyms.id"), nullable=False, index=True)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), nullable=False, index=True)

    # Members log in with a member number / phone, not an email
    login_id: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    password_changed: Mapped[bool] = mapped_column(Boolean, default=False)

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Stored status: Active / Pending / Frozen / Stopped.
    # "Expired" is never stored, it is derived from end_date.
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    assigned_trainer_id: Mapped[int | None] = mapped_column(ForeignKey("trainers.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    gym = relationship("Gym", back_populates="members")
    assigned_trainer = relationship("Trainer", back_populates="members")
    payments = relationship("Payment", back_populates="member", cascade="all, delete-orphan")


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    paid_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    next_due_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    member = relationship("Member", back_populates="payments")


class TrialKey(Base):
    __tablename__ = "trial_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    key: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Null until the single activation; never cleared afterwards
    activated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    gym_id: Mapped[int | None] = mapped_column(ForeignKey("gyms.id"), nullable=True)


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    duration_label: Mapped[str] = mapped_column(String(60), nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    benefits: Mapped[list] = mapped_column(JSON, default=list)


class PlatformAdmin(Base):
    __tablename__ = "platform_admins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class LoginSession(Base):
    """
    Identity cache for one logged-in principal. The token only carries `sid`;
    everything else is read from here, and logout deletes the row.
    """

    __tablename__ = "login_sessions"

    sid: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    gym_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    member_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trainer_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    admin_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    community_handle: Mapped[str | None] = mapped_column(String(60), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CommunityProfile(Base):
    __tablename__ = "community_profiles"

    handle: Mapped[str] = mapped_column(String(60), primary_key=True)
    gym_id: Mapped[int | None] = mapped_column(ForeignKey("gyms.id"), nullable=True)
    member_id: Mapped[int | None] = mapped_column(ForeignKey("members.id"), nullable=True, unique=True)
    trainer_id: Mapped[int | None] = mapped_column(ForeignKey("trainers.id"), nullable=True, unique=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class FollowRequest(Base):
    __tablename__ = "follow_requests"
    __table_args__ = (UniqueConstraint("from_handle", "to_handle", name="uq_follow_request_pair"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    from_handle: Mapped[str] = mapped_column(ForeignKey("community_profiles.handle"), nullable=False)
    to_handle: Mapped[str] = mapped_column(ForeignKey("community_profiles.handle"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Follow(Base):
    __tablename__ = "follows"
    __table_args__ = (UniqueConstraint("follower", "followee", name="uq_follow_pair"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    follower: Mapped[str] = mapped_column(ForeignKey("community_profiles.handle"), nullable=False)
    followee: Mapped[str] = mapped_column(ForeignKey("community_profiles.handle"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Attendance(Base):
    """
    One QR check-in. Members and trainers both check in; `user_id` is the
    member or trainer id depending on `user_role`.
    """

    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    gym_id: Mapped[int] = mapped_column(ForeignKey("gyms.id"), nullable=False, index=True)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), nullable=False, index=True)

    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_role: Mapped[str] = mapped_column(String(20), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default="N/A")

    method: Mapped[str] = mapped_column(String(20), nullable=False, default="QR")
    scan_time: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
