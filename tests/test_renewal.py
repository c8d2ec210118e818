from datetime import datetime, timedelta, timezone

from conftest import bearer, make_branch, make_gym, make_member, member_session, owner_session
from strenx import models, renewal_gate
from strenx.models import utcnow


def test_member_status_is_derived_from_end_date(db):
    gym = make_gym(db)
    branch = make_branch(db, gym)
    now = utcnow()

    current = make_member(db, gym, branch, login_id="m-1", end_date=now + timedelta(days=10))
    ended = make_member(db, gym, branch, login_id="m-2", end_date=now - timedelta(days=1))
    frozen = make_member(db, gym, branch, login_id="m-3", status="Frozen", end_date=now - timedelta(days=1))

    assert renewal_gate.member_status(current, now) == "Active"
    assert renewal_gate.member_status(ended, now) == "Expired"
    assert renewal_gate.member_status(ended, ended.end_date) == "Expired"
    assert renewal_gate.member_status(frozen, now) == "Frozen"

    # never written back
    db.expire_all()
    assert db.get(models.Member, ended.id).status == "Active"


def test_reminders_and_alerts(db):
    gym = make_gym(db)
    branch = make_branch(db, gym)
    now = utcnow()

    soon = make_member(db, gym, branch, login_id="m-1", end_date=now + timedelta(days=3))
    later = make_member(db, gym, branch, login_id="m-2", end_date=now + timedelta(days=30))
    ended = make_member(db, gym, branch, login_id="m-3", end_date=now - timedelta(hours=1))
    members = [soon, later, ended]

    assert renewal_gate.due_soon(members, now) == [soon]
    assert renewal_gate.lapsed(members, now) == [ended]
    assert renewal_gate.count_by_status(members, now) == {"Active": 2, "Expired": 1}


def test_lapsed_paid_gym_gets_renew_link(db):
    gym = make_gym(db, subscription_ends_at=utcnow() - timedelta(days=1))
    status = renewal_gate.gym_subscription_status(gym)
    assert status.expired
    assert status.renew_url == f"/renew/{gym.id}"


def test_expired_member_keeps_dashboard_and_history(client, db):
    gym = make_gym(db)
    member = make_member(db, gym, make_branch(db, gym), end_date=utcnow() - timedelta(days=2))
    db.add(models.Payment(member_id=member.id, amount=1500.0))
    db.commit()
    _, token = member_session(db, member)

    resp = client.get("/dashboard/member", headers=bearer(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["member"]["status"] == "Expired"
    assert body["renewal"]["renew_url"] == "/dashboard/member/renew"

    history = client.get("/dashboard/member/payments", headers=bearer(token))
    assert history.status_code == 200
    assert [p["amount"] for p in history.json()] == [1500.0]

    renew = client.get("/dashboard/member/renew", headers=bearer(token))
    assert renew.json()["contact"]["email"] == gym.email


def test_payment_renews_a_lapsed_member(client, db):
    gym = make_gym(db)
    member = make_member(db, gym, make_branch(db, gym), end_date=utcnow() - timedelta(days=2))
    _, token = owner_session(db, gym)

    alerts = client.get("/dashboard/owner/renewal-alerts", headers=bearer(token)).json()
    assert [m["id"] for m in alerts["renewal_alerts"]] == [member.id]

    next_due = (utcnow() + timedelta(days=30)).isoformat()
    resp = client.post(
        "/dashboard/owner/payments",
        json={"member_id": member.id, "amount": 1500, "next_due_date": next_due},
        headers=bearer(token),
    )
    assert resp.status_code == 201

    got = client.get(f"/dashboard/owner/members/{member.id}", headers=bearer(token)).json()
    assert got["status"] == "Active"

    alerts = client.get("/dashboard/owner/renewal-alerts", headers=bearer(token)).json()
    assert alerts["renewal_alerts"] == []


def test_owner_cannot_see_other_gyms_members(client, db):
    gym = make_gym(db)
    other = make_gym(db, name="Other", email="other@example.com")
    stranger = make_member(db, other, make_branch(db, other))
    _, token = owner_session(db, gym)

    resp = client.get(f"/dashboard/owner/members/{stranger.id}", headers=bearer(token))
    assert resp.status_code == 404


def test_offset_dates_are_stored_as_utc(client, db):
    gym = make_gym(db)
    branch = make_branch(db, gym)
    _, token = owner_session(db, gym)

    resp = client.post(
        "/dashboard/owner/members",
        json={"branch_id": branch.id, "login_id": "m-ist", "full_name": "Asha", "end_date": "2030-01-01T10:00:00+05:30"},
        headers=bearer(token),
    )
    assert resp.status_code == 201
    member_id = resp.json()["id"]

    db.expire_all()
    assert db.get(models.Member, member_id).end_date == datetime(2030, 1, 1, 4, 30)

    resp = client.post(
        "/dashboard/owner/payments",
        json={"member_id": member_id, "amount": 500, "next_due_date": "2030-02-01T00:00:00+05:30"},
        headers=bearer(token),
    )
    assert resp.status_code == 201

    db.expire_all()
    assert db.get(models.Member, member_id).end_date == datetime(2030, 1, 31, 18, 30)


def test_offset_end_date_in_the_past_is_expired(client, db):
    gym = make_gym(db)
    branch = make_branch(db, gym)
    _, token = owner_session(db, gym)

    # an hour ago, written as India wall-clock time
    ist = timezone(timedelta(hours=5, minutes=30))
    ended = (datetime.now(timezone.utc) - timedelta(hours=1)).astimezone(ist).isoformat()

    resp = client.post(
        "/dashboard/owner/members",
        json={"branch_id": branch.id, "login_id": "m-ist", "full_name": "Asha", "end_date": ended},
        headers=bearer(token),
    )
    assert resp.json()["status"] == "Expired"
