import os

# must be set before strenx.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from strenx import auth, models
from strenx.database import Base, SessionLocal, engine
from strenx.main import app
from strenx.models import utcnow
from strenx.roles import Role

PASSWORD = "password123"


@pytest.fixture(autouse=True)
def fresh_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


# -------------------------------------------------
# Factories
# -------------------------------------------------
def make_gym(db, *, name="Iron Temple", email="owner@example.com", is_trial=False, expires_at=None, **kw):
    gym = models.Gym(
        name=name,
        email=email,
        hashed_password=auth.hash_password(PASSWORD),
        is_trial=is_trial,
        expires_at=expires_at,
        **kw,
    )
    db.add(gym)
    db.commit()
    db.refresh(gym)
    return gym


def make_trial_gym(db, *, hours_left=12, **kw):
    return make_gym(db, is_trial=True, expires_at=utcnow() + timedelta(hours=hours_left), **kw)


def make_branch(db, gym, name="Main"):
    branch = models.Branch(gym_id=gym.id, name=name)
    db.add(branch)
    db.commit()
    db.refresh(branch)
    return branch


def make_member(db, gym, branch, *, login_id="m-1001", status="Active", end_date=None, password_changed=True):
    member = models.Member(
        gym_id=gym.id,
        branch_id=branch.id,
        login_id=login_id,
        hashed_password=auth.hash_password(PASSWORD),
        password_changed=password_changed,
        full_name=f"Member {login_id}",
        status=status,
        end_date=end_date,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def make_trainer(db, gym, branch, *, login_id="t-2001"):
    trainer = models.Trainer(
        gym_id=gym.id,
        branch_id=branch.id,
        login_id=login_id,
        hashed_password=auth.hash_password(PASSWORD),
        password_changed=True,
        full_name=f"Trainer {login_id}",
    )
    db.add(trainer)
    db.commit()
    db.refresh(trainer)
    return trainer


def make_admin(db, email="root@strenx.com"):
    admin = models.PlatformAdmin(email=email, hashed_password=auth.hash_password(PASSWORD), full_name="Root")
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def make_trial_key(db, key="ABCD1234"):
    record = models.TrialKey(key=key)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


# -------------------------------------------------
# Sessions without going through /login
# -------------------------------------------------
def owner_session(db, gym):
    return auth.open_session(db, role=Role.OWNER, gym_id=gym.id, display_name=gym.name)


def member_session(db, member):
    return auth.open_session(
        db,
        role=Role.MEMBER,
        gym_id=member.gym_id,
        branch_id=member.branch_id,
        member_id=member.id,
        display_name=member.full_name,
    )


def trainer_session(db, trainer):
    return auth.open_session(
        db,
        role=Role.TRAINER,
        gym_id=trainer.gym_id,
        branch_id=trainer.branch_id,
        trainer_id=trainer.id,
        display_name=trainer.full_name,
    )


def admin_session(db, admin):
    return auth.open_session(db, role=Role.SUPERADMIN, admin_id=admin.id, display_name=admin.full_name)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


HTML = {"Accept": "text/html,application/xhtml+xml"}
