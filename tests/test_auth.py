from datetime import timedelta

from database import USERS
from security import create_token
from conftest import PASSWORD, auth

SIGNUP = {"email": "New@Example.com", "password": "hunter22", "firstName": "Omar", "lastName": "Saleh"}


def test_signup_sets_cookie_and_sends_welcome(client, mongo, sent_emails):
    resp = client.post("/api/auth/signup", json=SIGNUP)

    assert resp.status_code == 201
    body = resp.json()
    assert body["data"]["user"]["email"] == "new@example.com"
    assert body["data"]["user"]["fragmentPoints"] == 0
    assert "password" not in body["data"]["user"]
    assert body["data"]["token"]
    assert "token" in resp.cookies
    assert sent_emails == [("new@example.com", "Welcome to Oiko")]
    assert mongo[USERS].find_one({"email": "new@example.com"})["password"] != "hunter22"

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["data"]["firstName"] == "Omar"


def test_signup_duplicate_email(client):
    client.post("/api/auth/signup", json=SIGNUP)
    resp = client.post("/api/auth/signup", json=dict(SIGNUP, email="new@example.com"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Email already registered"


def test_signup_validation(client):
    resp = client.post("/api/auth/signup", json=dict(SIGNUP, password="123"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"
    assert resp.json()["errors"]


def test_login(client, customer):
    ok = client.post("/api/auth/login", json={"email": customer["email"], "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.json()["message"] == "Login successful"

    bad = client.post("/api/auth/login", json={"email": customer["email"], "password": "wrong-one"})
    assert bad.status_code == 401
    assert bad.json() == {"success": False, "error": "Invalid credentials",
                          "message": "Email or password is incorrect"}


def test_logout_clears_cookie(client):
    client.post("/api/auth/signup", json=SIGNUP)
    client.post("/api/auth/logout")
    assert client.get("/api/auth/me").status_code == 401


def test_profile_points_are_capped(client, customer):
    resp = client.patch("/api/auth/me", json={"fragmentPoints": 150, "phone": "0500"}, headers=auth(customer))
    assert resp.status_code == 200
    assert resp.json()["data"]["fragmentPoints"] == 100
    assert resp.json()["data"]["phone"] == "0500"


def test_profile_rejects_bad_points(client, customer):
    for value in (-1, "abc", "NaN"):
        resp = client.patch("/api/auth/me", json={"fragmentPoints": value}, headers=auth(customer))
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid fragment points value"


def test_profile_rejects_bad_birthday(client, customer):
    resp = client.patch("/api/auth/me", json={"birthday": "19/10/1995"}, headers=auth(customer))
    assert resp.status_code == 400


def test_forgot_password_same_answer(client, customer, sent_emails):
    unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
    known = client.post("/api/auth/forgot-password", json={"email": customer["email"]})

    assert unknown.json() == known.json()
    assert sent_emails == [(customer["email"], "Reset your OIKO password")]

    missing = client.post("/api/auth/forgot-password", json={})
    assert missing.status_code == 400
    assert missing.json()["error"] == "Email is required"


def test_reset_password_flow(client, customer):
    token = create_token(customer, expires=timedelta(hours=1), purpose="reset", fp=customer["password"][-12:])

    # reset tokens do not authenticate
    assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    resp = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new"})
    assert resp.status_code == 200

    login = client.post("/api/auth/login", json={"email": customer["email"], "password": "brand-new"})
    assert login.status_code == 200

    reused = client.post("/api/auth/reset-password", json={"token": token, "password": "another1"})
    assert reused.status_code == 400


def test_reset_password_rejects_session_token(client, customer):
    resp = client.post("/api/auth/reset-password", json={"token": create_token(customer), "password": "brand-new"})
    assert resp.status_code == 400
