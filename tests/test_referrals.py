import datetime

from clinic_app_pkg import db
from clinic_app_pkg.models import AuditLog, Referral
from clinic_app_pkg.sockets import socketio


def _make_referral(referral_id, organization_id, from_user_id, patient_id=7, to_role="physiotherapist",
                   status="pending", days=0):
    referral = Referral(
        id=referral_id,
        patient_id=patient_id,
        from_user_id=from_user_id,
        to_role=to_role,
        reason="Post-operative rehabilitation",
        status=status,
        organization_id=organization_id,
        referral_date=datetime.datetime(2024, 3, 1) + datetime.timedelta(days=days),
    )
    db.session.add(referral)
    db.session.commit()
    return referral


def test_create_referral_uses_caller_identity(client, auth_headers):
    """organizationId and fromUserId in the body are overwritten by the caller's."""
    resp = client.post('/api/referrals', json={
        "patientId": 7,
        "toRole": "physiotherapist",
        "reason": "Knee rehabilitation",
        "organizationId": 999,
        "fromUserId": 999,
    }, headers=auth_headers("doctor5"))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["organizationId"] == 5
    assert body["fromUserId"] == 4
    assert body["status"] == "pending"
    assert body["toRole"] == "physiotherapist"

    stored = db.session.get(Referral, body["id"])
    assert stored.organization_id == 5
    assert stored.from_user_id == 4


def test_create_referral_invalid_body(client, auth_headers):
    resp = client.post('/api/referrals', json={"patientId": "seven", "toRole": ""}, headers=auth_headers("nurse5"))
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["message"] == "Invalid referral data"
    fields = {e["field"] for e in body["errors"]}
    assert {"patientId", "toRole", "reason"} <= fields
    assert Referral.query.count() == 0


def test_create_referral_requires_organization(client, auth_headers):
    resp = client.post('/api/referrals', json={"patientId": 7, "toRole": "nurse", "reason": "x"},
                       headers=auth_headers("root"))
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Organization context required"


def test_create_referral_forbidden_for_other_roles(client, auth_headers, app):
    resp = client.post('/api/referrals', json={}, headers=auth_headers("newbie5"))
    assert resp.status_code == 403


def test_create_referral_notifies_target_role(app, client, auth_headers, token_for):
    sio = socketio.test_client(app, query_string=f"token={token_for('nurse5')}")
    client.post('/api/referrals', json={"patientId": 7, "toRole": "nurse", "reason": "Wound care"},
                headers=auth_headers("doctor5"))
    events = [e for e in sio.get_received() if e["name"] == "referral_created"]
    assert len(events) == 1
    assert events[0]["args"][0]["reason"] == "Wound care"
    sio.disconnect()


def test_list_referrals_scoped_and_filtered(client, auth_headers):
    _make_referral(1, 5, 4, to_role="physiotherapist", days=0)
    _make_referral(2, 5, 5, to_role="nurse", status="accepted", days=1)
    _make_referral(3, 6, 6, patient_id=8, days=2)

    resp = client.get('/api/referrals', headers=auth_headers("doctor5"))
    assert [r["id"] for r in resp.get_json()] == [2, 1]

    resp = client.get('/api/referrals?toRole=nurse', headers=auth_headers("doctor5"))
    assert [r["id"] for r in resp.get_json()] == [2]

    resp = client.get('/api/referrals?status=pending&fromUserId=4', headers=auth_headers("doctor5"))
    assert [r["id"] for r in resp.get_json()] == [1]

    resp = client.get('/api/referrals?patientId=abc', headers=auth_headers("doctor5"))
    assert resp.status_code == 400


def test_get_referral_cross_organization_denied(client, auth_headers):
    _make_referral(3, 6, 6, patient_id=8)
    resp = client.get('/api/referrals/3', headers=auth_headers("doctor5"))
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Access denied"


def test_get_referral_by_organizationless_admin_denied(client, auth_headers):
    _make_referral(1, 5, 4)
    resp = client.get('/api/referrals/1', headers=auth_headers("orphanadmin"))
    assert resp.status_code == 403


def test_get_referral_super_admin_is_cross_tenant(client, auth_headers):
    _make_referral(3, 6, 6, patient_id=8)
    resp = client.get('/api/referrals/3', headers=auth_headers("root"))
    assert resp.status_code == 200
    assert resp.get_json()["organizationId"] == 6


def test_get_referral_not_found(client, auth_headers):
    resp = client.get('/api/referrals/404', headers=auth_headers("doctor5"))
    assert resp.status_code == 404


def test_update_referral_invalid_status(client, auth_headers):
    _make_referral(1, 5, 4)
    resp = client.patch('/api/referrals/1', json={"status": "archived"}, headers=auth_headers("doctor5"))
    assert resp.status_code == 400
    assert "Invalid status" in resp.get_json()["message"]
    assert db.session.get(Referral, 1).status == "pending"


def test_update_referral_requires_data(client, auth_headers):
    _make_referral(1, 5, 4)
    resp = client.patch('/api/referrals/1', json={}, headers=auth_headers("doctor5"))
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "No update data provided"


def test_update_referral_status_and_notes(client, auth_headers):
    _make_referral(1, 5, 4)
    resp = client.patch('/api/referrals/1', json={"status": "accepted", "notes": "Booked for Monday"},
                        headers=auth_headers("nurse5"))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "accepted"
    assert body["notes"] == "Booked for Monday"
    assert body["responseDate"] is not None


def test_completing_referral_is_audited(client, auth_headers):
    _make_referral(1, 5, 4, status="accepted")
    resp = client.patch('/api/referrals/1', json={"status": "completed"}, headers=auth_headers("doctor5"))
    assert resp.status_code == 200
    log = AuditLog.query.filter_by(action="REFERRAL_COMPLETED").one()
    assert log.entity_id == "1"
    assert log.organization_id == 5


def test_update_referral_other_organization_not_found(client, auth_headers):
    _make_referral(3, 6, 6, patient_id=8)
    resp = client.patch('/api/referrals/3', json={"status": "accepted"}, headers=auth_headers("doctor5"))
    assert resp.status_code == 404
    assert db.session.get(Referral, 3).status == "pending"


def test_delete_referral_admin_only(client, auth_headers):
    _make_referral(1, 5, 4)
    assert client.delete('/api/referrals/1', headers=auth_headers("doctor5")).status_code == 403

    resp = client.delete('/api/referrals/1', headers=auth_headers("admin5"))
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Referral deleted successfully"
    assert db.session.get(Referral, 1) is None

    assert client.delete('/api/referrals/1', headers=auth_headers("admin5")).status_code == 404


def test_delete_referral_other_organization_not_found(client, auth_headers):
    _make_referral(3, 6, 6, patient_id=8)
    resp = client.delete('/api/referrals/3', headers=auth_headers("admin5"))
    assert resp.status_code == 404
    assert db.session.get(Referral, 3) is not None


def test_update_referral_rejects_non_string_notes(client, auth_headers):
    _make_referral(1, 5, 4)
    resp = client.patch('/api/referrals/1', json={"notes": {"a": 1}}, headers=auth_headers("doctor5"))
    assert resp.status_code == 400
    assert db.session.get(Referral, 1).notes is None


def test_update_referral_clears_notes_with_null(client, auth_headers):
    _make_referral(1, 5, 4)
    client.patch('/api/referrals/1', json={"notes": "call back"}, headers=auth_headers("doctor5"))
    resp = client.patch('/api/referrals/1', json={"notes": None}, headers=auth_headers("doctor5"))
    assert resp.status_code == 200
    assert resp.get_json()["notes"] is None
