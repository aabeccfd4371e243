import asyncio
from datetime import timedelta

import pytest
from jose import jwt
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from freshcart.auth import AuthService
from freshcart.config import ALGORITHM, SECRET_KEY
from freshcart.database import get_session
from freshcart.errors import AuthError, ConflictError
from freshcart.main import app
from freshcart.models import User
from freshcart.security import get_password_hash, pwd_context, verify_password

SIGNUP = {
    "name": "Asha Verma",
    "email": "asha@example.com",
    "password": "s3cret!pass",
    "phone": "9876543210",
}


def count_users(session_maker):
    async def _count():
        async with session_maker() as session:
            return (await session.execute(select(func.count()).select_from(User))).scalar_one()

    return asyncio.run(_count())


def test_signup_returns_token(client, session_maker):
    r = client.post("/api/v1/auth/signup", json=SIGNUP)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"] == "success"
    assert body["token"]
    assert count_users(session_maker) == 1


def test_token_carries_user_id_and_seven_day_expiry(client):
    token = client.post("/api/v1/auth/signup", json=SIGNUP).json()["token"]
    claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert claims["sub"] == str(me["id"])
    assert claims["exp"] - claims["iat"] == int(timedelta(days=7).total_seconds())


def test_signup_duplicate_email(client, session_maker):
    assert client.post("/api/v1/auth/signup", json=SIGNUP).status_code == 201
    r = client.post("/api/v1/auth/signup", json={**SIGNUP, "name": "Someone Else"})
    assert r.status_code == 400
    assert r.json() == {"message": "Email already exists"}
    assert "token" not in r.json()
    assert count_users(session_maker) == 1


def test_signup_validation_errors(client, session_maker):
    r = client.post("/api/v1/auth/signup", json={**SIGNUP, "phone": "12345", "password": "short"})
    assert r.status_code == 400
    errors = r.json()["errors"]
    assert errors["phone"] == "Invalid phone number"
    assert errors["password"] == "Minimum 8 characters"
    assert count_users(session_maker) == 0


def test_password_needs_special_character(client):
    r = client.post("/api/v1/auth/signup", json={**SIGNUP, "password": "letters123"})
    assert r.status_code == 400
    assert r.json()["errors"]["password"] == "Include a special character"


def test_login_success(client):
    client.post("/api/v1/auth/signup", json=SIGNUP)
    r = client.post("/api/v1/auth/login", json={"email": SIGNUP["email"], "password": SIGNUP["password"]})
    assert r.status_code == 200
    assert r.json()["message"] == "success"
    assert r.json()["token"]


def test_login_wrong_password_looks_like_unknown_email(client):
    client.post("/api/v1/auth/signup", json=SIGNUP)
    wrong = client.post("/api/v1/auth/login", json={"email": SIGNUP["email"], "password": "nope!1234"})
    unknown = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "nope!1234"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"message": "Invalid email or password"}


@pytest.mark.parametrize("email, password", [("not-an-email", "x"), (SIGNUP["email"], "")])
def test_login_with_malformed_credentials_is_401(client, email, password):
    client.post("/api/v1/auth/signup", json=SIGNUP)
    r = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 401
    assert r.json() == {"message": "Invalid email or password"}


class BrokenSession:
    async def execute(self, *args, **kwargs):
        raise SQLAlchemyError("connection refused to db-internal:5432")

    async def rollback(self):
        pass


@pytest.mark.parametrize(
    "path, payload, message",
    [
        ("/api/v1/auth/signup", SIGNUP, "Signup failed"),
        ("/api/v1/auth/login", {"email": SIGNUP["email"], "password": SIGNUP["password"]}, "Login failed"),
    ],
)
def test_storage_failure_is_generic_500(client, path, payload, message):
    async def broken_session():
        yield BrokenSession()

    app.dependency_overrides[get_session] = broken_session
    r = client.post(path, json=payload)
    assert r.status_code == 500
    assert r.json() == {"message": message, "error": "Internal server error"}
    assert "db-internal" not in r.text


def test_me_requires_valid_token(client):
    r = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json() == {"message": "Invalid token"}


def test_me_returns_profile(client):
    token = client.post("/api/v1/auth/signup", json=SIGNUP).json()["token"]
    r = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    body = r.json()
    assert body["email"] == SIGNUP["email"]
    assert body["phone"] == SIGNUP["phone"]
    assert "password_hash" not in body


def test_unique_index_catches_racing_signup(session_maker):
    async def scenario():
        async with session_maker() as session:
            service = AuthService(session)
            await service.signup("Asha Verma", "asha@example.com", "s3cret!pass", "9876543210")

            async def not_found(email):
                return None

            # the second request did its lookup before the first one committed
            service._get_by_email = not_found
            with pytest.raises(ConflictError):
                await service.signup("Asha Verma", "asha@example.com", "s3cret!pass", "9876543210")

    asyncio.run(scenario())
    assert count_users(session_maker) == 1


def test_service_login_errors(session_maker):
    async def scenario():
        async with session_maker() as session:
            service = AuthService(session)
            await service.signup("Asha Verma", "asha@example.com", "s3cret!pass", "9876543210")
            with pytest.raises(AuthError) as exc_info:
                await service.login("asha@example.com", "wrong!pass1")
            return exc_info.value.message

    assert asyncio.run(scenario()) == "Invalid email or password"


def test_password_hashing():
    hashed = get_password_hash("s3cret!pass")
    assert hashed != "s3cret!pass"
    assert verify_password("s3cret!pass", hashed)
    assert not verify_password("other!pass1", hashed)
    assert not verify_password("s3cret!pass", "not-a-hash")


def test_legacy_bcrypt_hash_still_verifies():
    legacy = pwd_context.handler("bcrypt").hash("s3cret!pass")
    assert verify_password("s3cret!pass", legacy)
