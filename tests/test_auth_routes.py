import pytest

pytestmark = pytest.mark.asyncio


async def register(client, username="alice", email="alice@x.com", password="pw123456"):
    return await client.post(
        "/auth/register",
        json={"username": username, "email": email, "password": password},
    )


async def login(client, identifier="alice", password="pw123456"):
    return await client.post("/auth/login", json={"emailOrUsername": identifier, "password": password})


async def test_full_session_lifecycle(client, notifier):
    resp = await register(client)
    assert resp.status_code == 201
    assert resp.json() == {"message": "Registered. OTP sent.", "email": "alice@x.com"}

    resp = await client.post("/auth/verify-email", json={"email": "alice@x.com", "otp": notifier.last_code()})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Email verified"

    resp = await login(client)
    assert resp.status_code == 200
    body = resp.json()
    assert set(body) == {"accessToken", "refreshToken", "user"}
    assert body["user"]["username"] == "alice"
    assert "passwordHash" not in body["user"]
    first_refresh = body["refreshToken"]

    resp = await client.post("/auth/refresh", json={"refreshToken": first_refresh})
    assert resp.status_code == 200
    new_refresh = resp.json()["refreshToken"]
    assert new_refresh != first_refresh

    replay = await client.post("/auth/refresh", json={"refreshToken": first_refresh})
    assert replay.status_code == 401
    assert replay.json() == {"message": "Refresh token revoked or invalid"}

    resp = await client.post("/auth/logout", json={"refreshToken": new_refresh})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Logged out"}

    resp = await client.post("/auth/refresh", json={"refreshToken": new_refresh})
    assert resp.status_code == 401


async def test_register_errors_map_to_status_codes(client):
    resp = await client.post("/auth/register", json={"username": "alice", "password": "pw123456"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid request body"

    assert (await register(client)).status_code == 201
    dup = await register(client, email="second@x.com")
    assert dup.status_code == 409
    assert dup.json() == {"message": "User already exists"}


async def test_login_failures_are_uniform(client, notifier):
    await register(client)
    await client.post("/auth/verify-email", json={"email": "alice@x.com", "otp": notifier.last_code()})

    unknown = await login(client, identifier="ghost")
    wrong = await login(client, password="wrong-password")
    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json() == {"message": "Invalid credentials"}


async def test_lockout_over_http(client, notifier, clock):
    await register(client)
    await client.post("/auth/verify-email", json={"email": "alice@x.com", "otp": notifier.last_code()})
    for _ in range(5):
        assert (await login(client, password="wrong-password")).status_code == 401

    locked = await login(client)
    assert locked.status_code == 423
    assert locked.json() == {"message": "Account temporarily locked. Try later."}

    clock.advance(minutes=11)
    assert (await login(client)).status_code == 200


async def test_unverified_login_forbidden(client):
    await register(client)
    resp = await login(client)
    assert resp.status_code == 403
    assert resp.json() == {"message": "Email not verified"}


async def test_resend_cooldown_is_429(client):
    await register(client)
    resp = await client.post("/auth/resend-otp", json={"email": "alice@x.com"})
    assert resp.status_code == 429

    masked = await client.post("/auth/resend-otp", json={"email": "ghost@x.com"})
    assert masked.status_code == 200
    assert masked.json() == {"message": "If account exists, OTP resent"}


async def test_forgot_and_reset_password(client, notifier):
    await register(client)
    await client.post("/auth/verify-email", json={"email": "alice@x.com", "otp": notifier.last_code()})

    known = await client.post("/auth/forgot-password", json={"email": "alice@x.com"})
    token = notifier.last_reset_token()
    unknown = await client.post("/auth/forgot-password", json={"email": "ghost@x.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.content == unknown.content

    resp = await client.post(
        "/auth/reset-password",
        json={"email": "alice@x.com", "token": token, "newPassword": "brand-new-pass"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"message": "Password updated"}

    again = await client.post(
        "/auth/reset-password",
        json={"email": "alice@x.com", "token": token, "newPassword": "another-pass-1"},
    )
    assert again.status_code == 400
    assert again.json() == {"message": "Invalid or expired token"}

    assert (await login(client, password="brand-new-pass")).status_code == 200


async def test_me_requires_access_token(client, notifier):
    assert (await client.get("/auth/me")).status_code == 401

    await register(client)
    await client.post("/auth/verify-email", json={"email": "alice@x.com", "otp": notifier.last_code()})
    tokens = (await login(client)).json()

    resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
    assert resp.status_code == 200
    assert resp.json()["emailVerified"] is True

    bad = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['refreshToken']}"})
    assert bad.status_code == 401
    assert bad.json() == {"message": "Invalid or expired token"}


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
