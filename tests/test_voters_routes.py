from bson import ObjectId

from conftest import wallet
from votechain.models import utcnow


def registration(n=50, **overrides):
    data = {
        "walletAddress": wallet(n),
        "name": "Dana",
        "email": "Dana@Example.com",
        "aadharNumber": "111122223333",
        "mobileNumber": "9876543210",
    }
    data.update(overrides)
    return data


def test_register_then_status(client, db):
    resp = client.post("/api/voters/register", json=registration())
    assert resp.status_code == 201
    assert resp.get_json()["status"] == "pending"

    doc = db.voters.find_one({"wallet_address": wallet(50)})
    assert doc["email"] == "dana@example.com"
    assert doc["voted_polls"] == [] and doc["is_active"]

    body = client.get(f"/api/voters/status/{wallet(50)}").get_json()
    assert body["pending"] is True and body["registered"] is False
    assert body["name"] == "Dana"


def test_register_validation(client):
    resp = client.post("/api/voters/register", json=registration(walletAddress="0x12", aadharNumber="12"))
    assert resp.status_code == 400
    assert {e["param"] for e in resp.get_json()["errors"]} == {"walletAddress", "aadharNumber"}


def test_register_non_object_body(client):
    resp = client.post("/api/voters/register", json=["Dana"])
    assert resp.status_code == 400
    assert len(resp.get_json()["errors"]) == 5


def test_register_accepts_numeric_fields(client, db):
    resp = client.post("/api/voters/register", json=registration(aadharNumber=111122223333, mobileNumber=9876543210))
    assert resp.status_code == 201
    doc = db.voters.find_one({"wallet_address": wallet(50)})
    assert doc["aadhaar_number"] == "111122223333"
    assert doc["mobile_number"] == "9876543210"


def test_reregistration_resets_to_pending(client, db, make_voter):
    voter = make_voter()
    data = registration(walletAddress=voter["wallet_address"], aadharNumber=voter["aadhaar_number"],
                        mobileNumber=voter["mobile_number"], name="Renamed")
    assert client.post("/api/voters/register", json=data).status_code == 201
    doc = db.voters.find_one({"_id": voter["_id"]})
    assert doc["status"] == "pending" and doc["name"] == "Renamed"
    assert db.voters.count_documents({}) == 1


def test_register_identity_clash(client, make_voter):
    voter = make_voter()
    resp = client.post("/api/voters/register", json=registration(aadharNumber=voter["aadhaar_number"]))
    assert resp.status_code == 409
    resp = client.post("/api/voters/register", json=registration(mobileNumber=voter["mobile_number"]))
    assert resp.status_code == 409


def test_status_unknown_and_invalid(client):
    assert client.get(f"/api/voters/status/{wallet(404)}").get_json()["status"] == "not_registered"
    assert client.get("/api/voters/status/not-a-wallet").status_code == 400


def test_wallet_login(client, make_voter):
    assert client.post("/api/voters/login", json={"walletAddress": wallet(77)}).status_code == 404
    pending = make_voter(status="pending")
    assert client.post("/api/voters/login", json={"walletAddress": pending["wallet_address"]}).status_code == 403
    rejected = make_voter(status="rejected")
    resp = client.post("/api/voters/login", json={"walletAddress": rejected["wallet_address"]})
    assert resp.status_code == 403 and "rejected" in resp.get_json()["message"]

    voter = make_voter(voted_polls=[ObjectId()])
    body = client.post("/api/voters/login", json={"walletAddress": voter["wallet_address"]}).get_json()
    assert body["token"]
    assert body["voter"]["hasVoted"] is True


def test_admin_approves_and_registers_on_chain(client, make_voter, admin_headers, chain, db):
    voter = make_voter(status="pending")
    resp = client.put(f"/api/voters/{voter['_id']}/status", json={"status": "approved"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["voter"]["status"] == "approved"
    assert voter["wallet_address"] in chain.registered
    assert db.voters.find_one({"_id": voter["_id"]})["status_reason"] == "Registration approved by admin."


def test_approval_rolls_back_on_chain_failure(client, make_voter, admin_headers, chain, db):
    voter = make_voter(status="pending")
    chain.fail = True
    resp = client.put(f"/api/voters/{voter['_id']}/status", json={"status": "approved"}, headers=admin_headers)
    assert resp.status_code == 500
    assert db.voters.find_one({"_id": voter["_id"]})["status"] == "pending"


def test_status_update_errors(client, make_voter, admin_headers, db):
    incomplete = make_voter(status="pending")
    db.voters.update_one({"_id": incomplete["_id"]}, {"$unset": {"mobile_number": ""}})
    resp = client.put(f"/api/voters/{incomplete['_id']}/status", json={"status": "approved"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.put(f"/api/voters/{incomplete['_id']}/status", json={"status": "maybe"}, headers=admin_headers)
    assert resp.status_code == 400
    resp = client.put(f"/api/voters/{ObjectId()}/status", json={"status": "rejected"}, headers=admin_headers)
    assert resp.status_code == 404
    resp = client.put(f"/api/voters/{incomplete['_id']}/status", json={"status": "rejected"}, headers=admin_headers)
    assert resp.status_code == 200


def test_list_and_debug(client, make_voter, admin_headers):
    first = make_voter()
    make_voter()
    listed = client.get("/api/voters/", headers=admin_headers).get_json()
    assert len(listed) == 2
    body = client.get(f"/api/voters/debug/{first['wallet_address']}", headers=admin_headers).get_json()
    assert body["voter"]["id"] == str(first["_id"])
    assert client.get(f"/api/voters/debug/{wallet(999)}", headers=admin_headers).status_code == 404


def test_history(client, make_voter, voter_headers, db):
    voter = make_voter()
    poll_id = db.polls.insert_one({"title": "P", "description": "D", "options": [], "created_at": utcnow()}).inserted_id
    db.votes.insert_one({"poll": poll_id, "voter": voter["_id"], "option_text": "A", "created_at": utcnow()})
    db.votes.insert_one({"poll": ObjectId(), "voter": make_voter()["_id"], "option_text": "B", "created_at": utcnow()})

    history = client.get("/api/voters/history", headers=voter_headers(voter)).get_json()
    assert len(history) == 1
    assert history[0]["poll"]["title"] == "P"
    assert history[0]["optionText"] == "A"
