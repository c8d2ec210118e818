# backend/strenx/schemas.py
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .models import as_naive_utc

StoredMemberStatus = Literal["Active", "Pending", "Frozen", "Stopped"]


# -----------------------------
# SESSION
# -----------------------------
class PrincipalOut(BaseModel):
    role: str
    gym_id: Optional[int] = None
    branch_id: Optional[int] = None
    member_id: Optional[int] = None
    trainer_id: Optional[int] = None
    display_name: str = ""
    community_handle: Optional[str] = None
    dashboard: str


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    principal: PrincipalOut

    # where the client should go next (dashboard or /change-password)
    redirect_to: str
    must_change_password: bool = False


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


# -----------------------------
# TRIAL
# -----------------------------
class TrialActivateIn(BaseModel):
    trial_key: str = Field(min_length=8, max_length=64)
    gym_name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=8)

    @field_validator("trial_key")
    @classmethod
    def _key_trim(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 8:
            raise ValueError("Trial key must be at least 8 characters long.")
        return v


class TrialKeyOut(BaseModel):
    id: int
    key: str
    created_at: datetime
    activated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    gym_id: Optional[int] = None
    state: Optional[str] = None

    class Config:
        from_attributes = True


class TrialKeyIssueIn(BaseModel):
    count: int = Field(default=1, ge=1, le=100)


# -----------------------------
# GYM STRUCTURE
# -----------------------------
class GymOut(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    contact_number: Optional[str] = None
    is_trial: bool
    created_at: datetime
    expires_at: Optional[datetime] = None
    subscription_ends_at: Optional[datetime] = None
    plan_id: Optional[int] = None

    class Config:
        from_attributes = True


class GymUpdateIn(BaseModel):
    name: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=8)


class BranchCreateIn(BaseModel):
    name: str = Field(min_length=1)


class BranchOut(BaseModel):
    id: int
    gym_id: int
    name: str

    class Config:
        from_attributes = True


class TrainerCreateIn(BaseModel):
    branch_id: int
    login_id: str = Field(min_length=3)
    full_name: str
    phone: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=8)


class TrainerOut(BaseModel):
    id: int
    gym_id: int
    branch_id: int
    login_id: str
    full_name: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


# -----------------------------
# MEMBERS
# -----------------------------
class MemberCreateIn(BaseModel):
    branch_id: int
    login_id: str = Field(min_length=3)
    full_name: str
    phone: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=8)
    start_date: Optional[date] = None
    end_date: Optional[datetime] = None
    assigned_trainer_id: Optional[int] = None

    @field_validator("end_date")
    @classmethod
    def _end_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class MemberStatusIn(BaseModel):
    status: StoredMemberStatus


class MemberOut(BaseModel):
    id: int
    gym_id: int
    branch_id: int
    login_id: str
    full_name: str
    phone: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[datetime] = None
    assigned_trainer_id: Optional[int] = None

    # derived at read time (may be "Expired")
    status: str

    # ✅ temp password is only ever returned once, at creation
    temp_password: Optional[str] = None


# -----------------------------
# PAYMENTS
# -----------------------------
class PaymentCreateIn(BaseModel):
    member_id: int
    amount: float = Field(gt=0)
    next_due_date: Optional[datetime] = None
    note: Optional[str] = None

    @field_validator("next_due_date")
    @classmethod
    def _due_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class PaymentOut(BaseModel):
    id: int
    member_id: int
    amount: float
    paid_at: datetime
    next_due_date: Optional[datetime] = None
    note: Optional[str] = None

    class Config:
        from_attributes = True


# -----------------------------
# PLANS
# -----------------------------
class SubscriptionPlanIn(BaseModel):
    name: str = Field(min_length=1)
    duration_label: str
    duration_days: int = Field(gt=0)
    price: float = Field(ge=0)
    benefits: list[str] = Field(default_factory=list)


class SubscriptionPlanOut(BaseModel):
    id: int
    name: str
    duration_label: str
    duration_days: int
    price: float
    benefits: list[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ApplyPlanIn(BaseModel):
    plan_id: int


# -----------------------------
# COMMUNITY
# -----------------------------
class CommunityProfileIn(BaseModel):
    handle: str = Field(min_length=3, max_length=60)
    display_name: Optional[str] = None

    @field_validator("handle")
    @classmethod
    def _handle_clean(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if not v or not all(ch.isalnum() or ch in ("_", ".") for ch in v):
            raise ValueError("handle may only contain letters, digits, '_' and '.'")
        return v


class FollowRequestIn(BaseModel):
    to_handle: str


class FollowRequestOut(BaseModel):
    id: int
    from_handle: str
    to_handle: str
    created_at: datetime

    class Config:
        from_attributes = True


class FollowResponseIn(BaseModel):
    accept: bool


# -----------------------------
# ATTENDANCE
# -----------------------------
class AttendanceCheckInIn(BaseModel):
    # decoded from the branch QR code
    gym_id: int
    branch_id: int


class AttendanceOut(BaseModel):
    id: int
    gym_id: int
    branch_id: int
    user_id: int
    user_role: str
    user_name: str
    method: str
    scan_time: datetime

    class Config:
        from_attributes = True
