from clinicnotes.services.security import RateLimiter

from conftest import signup


def test_signup_login_me(client):
    headers, me = signup(client, email="New.User@Example.com")
    assert me["email"] == "new.user@example.com"
    assert me["role"] == "therapist"
    assert "password_hash" not in me

    resp = client.post("/auth/login", data={"username": "new.user@example.com", "password": "password123"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    me2 = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me2["last_login"] is not None


def test_duplicate_email_rejected(client):
    signup(client)
    resp = client.post(
        "/auth/signup",
        json={"name": "Other", "email": "THERAPIST@example.com", "password": "password123"},
    )
    assert resp.status_code == 400


def test_short_password_rejected(client):
    resp = client.post("/auth/signup", json={"name": "A", "email": "a@example.com", "password": "short"})
    assert resp.status_code == 422


def test_bad_credentials(client):
    signup(client)
    resp = client.post("/auth/login", data={"username": "therapist@example.com", "password": "wrong-password"})
    assert resp.status_code == 401


def test_login_rate_limited(client):
    signup(client)
    client.app.state.login_limiter = RateLimiter(limit=2, window_s=60)
    for _ in range(2):
        resp = client.post("/auth/login", data={"username": "therapist@example.com", "password": "wrong-password"})
        assert resp.status_code == 401
    resp = client.post("/auth/login", data={"username": "therapist@example.com", "password": "password123"})
    assert resp.status_code == 429


def test_login_rate_limit_ignores_forwarded_header(client):
    signup(client)
    client.app.state.login_limiter = RateLimiter(limit=2, window_s=60)
    # 헤더를 바꿔도 같은 소켓 주소로 집계된다
    codes = [
        client.post(
            "/auth/login",
            data={"username": "therapist@example.com", "password": "wrong-password"},
            headers={"X-Forwarded-For": f"10.0.0.{i}"},
        ).status_code
        for i in range(4)
    ]
    assert codes == [401, 401, 429, 429]


def test_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/sessions").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_users_listing(client, auth):
    resp = client.get("/users", headers=auth.headers)
    assert resp.status_code == 200
    assert [u["id"] for u in resp.json()["data"]] == [auth.user["id"]]
    assert client.get(f"/users/{auth.user['id']}", headers=auth.headers).json()["data"]["name"] == "Test Therapist"
    assert client.get("/users/missing", headers=auth.headers).status_code == 404
