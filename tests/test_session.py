from datetime import timedelta

from conftest import PASSWORD, make_admin, make_branch, make_gym, make_member, make_trainer, owner_session
from strenx import auth, models
from strenx.config import SESSION_COOKIE_NAME
from strenx.models import utcnow


def _login(client, username, password=PASSWORD):
    return client.post("/login", data={"username": username, "password": password})


def test_owner_login_sets_cookie_and_points_at_dashboard(client, db):
    make_gym(db, email="owner@irontemple.com")

    resp = _login(client, "Owner@IronTemple.com")
    assert resp.status_code == 200
    body = resp.json()
    assert body["principal"]["role"] == "owner"
    assert body["redirect_to"] == "/dashboard/owner"
    assert SESSION_COOKIE_NAME in resp.cookies

    # cookie alone is enough for the next request
    assert client.get("/session").json()["role"] == "owner"


def test_member_with_temp_password_must_change_it(client, db):
    gym = make_gym(db)
    make_member(db, gym, make_branch(db, gym), login_id="m-1001", password_changed=False)

    body = _login(client, "m-1001").json()
    assert body["principal"]["role"] == "member"
    assert body["must_change_password"] is True
    assert body["redirect_to"] == "/change-password"

    resp = client.post(
        "/change-password",
        json={"current_password": PASSWORD, "new_password": "brand-new-pass"},
    )
    assert resp.json() == {"ok": True, "redirect_to": "/dashboard/member"}

    db.expire_all()
    assert db.query(models.Member).one().password_changed is True


def test_trainer_and_superadmin_login(client, db):
    gym = make_gym(db)
    make_trainer(db, gym, make_branch(db, gym), login_id="t-2001")
    make_admin(db, email="root@strenx.com")

    assert _login(client, "t-2001").json()["redirect_to"] == "/dashboard/trainer"
    assert _login(client, "root@strenx.com").json()["redirect_to"] == "/dashboard/superadmin"


def test_wrong_password(client, db):
    make_gym(db, email="owner@irontemple.com")
    resp = _login(client, "owner@irontemple.com", "not-the-password")
    assert resp.status_code == 401
    assert db.query(models.LoginSession).count() == 0


def test_logout_clears_session(client, db):
    make_gym(db, email="owner@irontemple.com")
    token = _login(client, "owner@irontemple.com").json()["access_token"]

    resp = client.post("/logout")
    assert resp.json() == {"ok": True, "closed": True}
    assert db.query(models.LoginSession).count() == 0

    client.cookies.clear()
    resp = client.get("/session", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401

    # a second logout is harmless
    assert client.post("/logout").json() == {"ok": True, "closed": False}


def test_root_redirects_logged_in_users(client, db):
    assert client.get("/").json()["login"] == "/login"

    gym = make_gym(db)
    make_member(db, gym, make_branch(db, gym), login_id="m-1001")
    _login(client, "m-1001")

    resp = client.get("/", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard/member"


def test_superadmin_seed_runs_once(db):
    from strenx.main import seed_superadmin

    assert seed_superadmin(db) is True
    assert seed_superadmin(db) is False
    assert db.query(models.PlatformAdmin).count() == 1


def test_login_purges_expired_sessions(db):
    gym = make_gym(db)
    db.add(
        models.LoginSession(
            sid="stale-sid",
            role="owner",
            gym_id=gym.id,
            expires_at=utcnow() - timedelta(minutes=1),
        )
    )
    db.commit()

    principal, _ = owner_session(db, gym)

    db.expire_all()
    assert db.get(models.LoginSession, "stale-sid") is None
    assert db.get(models.LoginSession, principal.sid) is not None


def test_purge_keeps_live_sessions(db):
    gym = make_gym(db)
    owner_session(db, gym)
    assert auth.purge_expired_sessions(db) == 0
    assert db.query(models.LoginSession).count() == 1
