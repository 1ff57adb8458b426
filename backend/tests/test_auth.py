from datetime import timedelta

from app.auth.jwt import create_access_token
from app.auth.password import hash_password, verify_password
from app.auth.permissions import API_KEY_ADMIN, Action, Actor, Role, can
from app.models import Mapper
from conftest import PASSWORD, auth_headers

MAPPER_SIGNUP = {
    "name": "Musa Ibrahim",
    "email": "Musa@Example.com",
    "password": "okada-rider",
    "phone": "+2348030000003",
    "vehicleType": "OKADA_MOTORCYCLE",
    "agreedToTerms": True,
}


def test_password_hashing():
    hashed = hash_password("hunter22")
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)
    assert not verify_password("hunter22", "not-a-bcrypt-hash")


def test_user_signup_and_login(client):
    r = client.post("/api/auth/user/signup", json={"name": "Ngozi", "email": "ngozi@example.com", "password": "pass1234"})
    assert r.status_code == 201
    body = r.json()
    assert body["user"]["role"] == "user"
    assert body["accessToken"] and body["refreshToken"]

    r = client.post("/api/auth/user/login", json={"email": "ngozi@example.com", "password": "pass1234"})
    assert r.status_code == 200
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {r.json()['accessToken']}"})
    assert me.json()["role"] == "user"
    assert me.json()["profile"]["email"] == "ngozi@example.com"


def test_wrong_password(client, user):
    r = client.post("/api/auth/user/login", json={"email": user.email, "password": "nope"})
    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "Invalid email or password"}


def test_mapper_signup_requires_terms(client):
    r = client.post("/api/auth/mapper/signup", json={**MAPPER_SIGNUP, "agreedToTerms": False})
    assert r.status_code == 400


def test_mapper_signup(client):
    r = client.post("/api/auth/mapper/signup", json=MAPPER_SIGNUP)
    assert r.status_code == 201
    mapper = r.json()["mapper"]
    assert mapper["email"] == "musa@example.com"
    assert mapper["status"] == "ACTIVE"
    assert mapper["totalEarnings"] == 0

    r = client.post("/api/auth/mapper/login", json={"email": "musa@example.com", "password": "okada-rider"})
    assert r.status_code == 200


def test_email_shared_across_users_and_mappers(client, user):
    r = client.post("/api/auth/mapper/signup", json={**MAPPER_SIGNUP, "email": user.email.upper()})
    assert r.status_code == 409

    r = client.post("/api/auth/user/signup", json={"name": "Dup", "email": user.email, "password": "pass1234"})
    assert r.status_code == 409


def test_signup_validation(client):
    r = client.post("/api/auth/user/signup", json={"name": "x", "email": "not-an-email", "password": "pass1234"})
    assert r.status_code == 400
    r = client.post("/api/auth/user/signup", json={"name": "x", "email": "x@example.com", "password": "123"})
    assert r.status_code == 400
    r = client.post("/api/auth/mapper/signup", json={**MAPPER_SIGNUP, "vehicleType": "SPACESHIP"})
    assert r.status_code == 400


def test_suspended_mapper_cannot_login(client, make_mapper):
    mapper = make_mapper(status="SUSPENDED")
    r = client.post("/api/auth/mapper/login", json={"email": mapper.email, "password": PASSWORD})
    assert r.status_code == 403


def test_refresh_token(client, mapper):
    tokens = client.post("/api/auth/mapper/login", json={"email": mapper.email, "password": PASSWORD}).json()

    r = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert r.status_code == 200
    assert r.json()["accessToken"]

    # Access tokens are not refresh tokens and vice versa
    assert client.post("/api/auth/refresh", json={"refreshToken": tokens["accessToken"]}).status_code == 401
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['refreshToken']}"})
    assert me.status_code == 401


def test_expired_token(client, user):
    token = create_access_token(user.id, user.email, "user", expires_delta=timedelta(minutes=-1))
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_change_password(client, user):
    r = client.put(
        "/api/auth/password",
        json={"currentPassword": "wrong", "newPassword": "brand-new"},
        headers=auth_headers(user),
    )
    assert r.status_code == 401

    r = client.put(
        "/api/auth/password",
        json={"currentPassword": PASSWORD, "newPassword": "brand-new"},
        headers=auth_headers(user),
    )
    assert r.status_code == 200
    r = client.post("/api/auth/user/login", json={"email": user.email, "password": "brand-new"})
    assert r.status_code == 200


def test_delete_account_is_soft(client, mapper, db):
    r = client.request(
        "DELETE",
        "/api/auth/account",
        json={"password": PASSWORD},
        headers=auth_headers(mapper),
    )
    assert r.status_code == 200

    row = db(lambda s: s.get(Mapper, mapper.id))
    assert row is not None
    assert row.is_active is False
    assert row.status == "INACTIVE"

    assert client.get("/api/auth/me", headers=auth_headers(mapper)).status_code == 401
    r = client.post("/api/auth/mapper/login", json={"email": mapper.email, "password": PASSWORD})
    assert r.status_code == 401


def test_capabilities(user, mapper):
    as_user = Actor(id=user.id, email=user.email, role=Role.USER)
    as_mapper = Actor(id=mapper.id, email=mapper.email, role=Role.MAPPER)

    assert can(as_user, Action.EVENT_CREATE)
    assert not can(as_user, Action.EVENT_UPDATE_STATUS)
    assert can(as_mapper, Action.EVENT_UPDATE_STATUS)
    assert not can(as_mapper, Action.EVENT_OVERRIDE_STATUS)
    assert can(API_KEY_ADMIN, Action.EVENT_OVERRIDE_STATUS)
    assert not can(API_KEY_ADMIN, Action.EVENT_CREATE)
    assert not can(None, Action.EVENT_CREATE)
