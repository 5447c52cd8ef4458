from database import SUBSCRIBERS


def test_subscribe_lifecycle(client):
    created = client.post("/api/newsletter/subscribe", json={"email": "Fan@Example.com", "name": "Fan"})
    assert created.status_code == 201
    assert created.json()["data"]["email"] == "fan@example.com"
    assert created.json()["data"]["source"] == "website"

    duplicate = client.post("/api/newsletter/subscribe", json={"email": "fan@example.com"})
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "Email already subscribed"

    left = client.post("/api/newsletter/unsubscribe", json={"email": "fan@example.com"})
    assert left.status_code == 200

    twice = client.post("/api/newsletter/unsubscribe", json={"email": "fan@example.com"})
    assert twice.status_code == 400
    assert twice.json()["error"] == "Email already unsubscribed"

    back = client.post("/api/newsletter/subscribe", json={"email": "fan@example.com"})
    assert back.status_code == 200
    assert back.json()["message"] == "Subscription reactivated successfully"
    assert back.json()["data"]["status"] == "active"
    assert "unsubscribedAt" not in back.json()["data"]


def test_invalid_email(client, mongo):
    for bad in ("not-an-email", "fan@@example.com", "fan@example..com"):
        resp = client.post("/api/newsletter/subscribe", json={"email": bad})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Please provide a valid email address"
    assert mongo[SUBSCRIBERS].count_documents({}) == 0


def test_unsubscribe_unknown(client):
    resp = client.post("/api/newsletter/unsubscribe", json={"email": "ghost@example.com"})
    assert resp.status_code == 404
    assert resp.json()["error"] == "Email not found in subscription list"
