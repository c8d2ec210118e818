import pytest
from sqlalchemy.exc import OperationalError

from conftest import (
    HTML,
    admin_session,
    bearer,
    make_admin,
    make_branch,
    make_gym,
    make_member,
    make_trainer,
    member_session,
    owner_session,
    trainer_session,
)
from strenx import auth, models
from strenx.access_gate import evaluate_access
from strenx.roles import Role

PATHS = [
    "/dashboard",
    "/dashboard/owner",
    "/dashboard/owner/members",
    "/dashboard/member",
    "/dashboard/member/payments",
    "/dashboard/trainer",
    "/dashboard/superadmin/trial-keys",
    "/dashboard/ownerx",
    "/dashboard/members",
]


def _principal(role):
    return auth.Principal(sid="sid-1", role=role, gym_id=1)


@pytest.mark.parametrize("role", list(Role))
@pytest.mark.parametrize("path", PATHS)
def test_gate_allows_or_redirects_to_own_dashboard(role, path):
    decision = evaluate_access(path, _principal(role))
    if decision.allowed:
        assert path == role.dashboard_path or path.startswith(role.dashboard_path + "/")
    else:
        assert decision.location == role.dashboard_path


@pytest.mark.parametrize("path", PATHS)
def test_gate_without_principal_goes_to_login(path):
    decision = evaluate_access(path, None)
    assert not decision.allowed
    assert decision.location == "/login"


@pytest.mark.parametrize("role", list(Role))
@pytest.mark.parametrize("path", PATHS)
def test_gate_is_idempotent(role, path):
    p = _principal(role)
    first = evaluate_access(path, p)
    assert evaluate_access(path, p) == first
    if not first.allowed:
        assert evaluate_access(first.location, p).allowed


def test_prefix_match_respects_path_segments():
    assert not evaluate_access("/dashboard/ownerx", _principal(Role.OWNER)).allowed
    assert not evaluate_access("/dashboard/members", _principal(Role.MEMBER)).allowed


def test_member_visiting_owner_dashboard_is_sent_to_member_dashboard(client, db):
    gym = make_gym(db)
    member = make_member(db, gym, make_branch(db, gym))
    _, token = member_session(db, member)

    resp = client.get("/dashboard/owner", headers={**bearer(token), **HTML}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard/member"

    resp = client.get("/dashboard/owner", headers=bearer(token))
    assert resp.status_code == 403
    detail = resp.json()["detail"]
    assert detail["code"] == "ROLE_MISMATCH"
    assert detail["redirect"] == "/dashboard/member"


def test_trainer_cannot_reach_superadmin_pages(client, db):
    gym = make_gym(db)
    trainer = make_trainer(db, gym, make_branch(db, gym))
    _, token = trainer_session(db, trainer)

    resp = client.get("/dashboard/superadmin/trial-keys", headers={**bearer(token), **HTML}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard/trainer"


def test_no_session_redirects_to_login(client):
    resp = client.get("/dashboard/member", headers=HTML, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"

    resp = client.get("/dashboard/member")
    assert resp.status_code == 401
    assert resp.json()["detail"]["redirect"] == "/login"


def test_garbage_token_is_treated_as_no_session(client):
    resp = client.get("/dashboard/owner", headers=bearer("not-a-jwt"))
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "SESSION_MISSING"


def test_unknown_stored_role_is_treated_as_no_session(client, db):
    gym = make_gym(db)
    _, token = owner_session(db, gym)
    row = db.query(models.LoginSession).one()
    row.role = "janitor"
    db.commit()

    resp = client.get("/dashboard/owner", headers=bearer(token))
    assert resp.status_code == 401


def test_dashboard_root_sends_each_role_home(client, db):
    admin = make_admin(db)
    _, token = admin_session(db, admin)

    resp = client.get("/dashboard", headers={**bearer(token), **HTML}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard/superadmin"


def test_allowed_request_reaches_handler(client, db):
    gym = make_gym(db)
    _, token = owner_session(db, gym)

    resp = client.get("/dashboard/owner", headers=bearer(token))
    assert resp.status_code == 200
    assert resp.json()["gym"]["id"] == gym.id


def test_store_failure_is_reported_not_redirected(client, db, monkeypatch):
    gym = make_gym(db)
    _, token = owner_session(db, gym)

    def boom(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    monkeypatch.setattr(auth, "load_principal", boom)

    resp = client.get("/dashboard/owner", headers={**bearer(token), **HTML}, follow_redirects=False)
    assert resp.status_code == 503
    assert resp.json()["detail"]["code"] == "STORE_UNAVAILABLE"


def test_public_routes_are_not_gated(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/plans").status_code == 200
