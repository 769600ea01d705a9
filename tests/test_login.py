"""
Tests for login, token-protected account endpoints and profile updates.
"""
from billing_api.core.security import create_access_token, verify_password
from billing_api.db.models.account import Account


def _login(client, identifier, password="secret1"):
    return client.post("/api/auth/login", json={"emailOrUsername": identifier, "password": password})


def test_login_with_email(client, account):
    """Login by stored (lowercase) email succeeds."""
    response = _login(client, "a@x.com")

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Login successful"
    assert data["token"]
    assert data["user"]["id"] == account.id


def test_login_email_is_exact_match(client, account):
    """The login identifier is not case-folded, so an uppercase email fails."""
    response = _login(client, "A@X.com")

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email/username or password"


def test_login_with_username(client, account):
    response = _login(client, "  alice_1 ")

    assert response.status_code == 200


def test_login_wrong_password(client, account):
    response = _login(client, "alice_1", password="wrong-password")

    assert response.status_code == 401


def test_login_account_without_password(client, db_session):
    """Accounts created through the customer endpoint cannot log in."""
    db_session.add(Account(email="bare@x.com", stripe_customer_id="cus_bare"))
    db_session.commit()

    response = _login(client, "bare@x.com")

    assert response.status_code == 401


def test_me_requires_token(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["detail"] == "No token provided"


def test_me_rejects_bad_token(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_me_unknown_account(client):
    token = create_access_token({"sub": "999"})
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 404


def test_me_returns_account(client, account, auth_headers):
    response = client.get("/api/auth/me", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "a@x.com"


def test_lookup_by_customer_id(client, account):
    response = client.get("/api/auth/cus_test_1")

    assert response.status_code == 200
    assert response.json()["user"]["username"] == "alice_1"


def test_lookup_unknown_customer(client):
    response = client.get("/api/auth/cus_missing")

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


def test_profile_update(client, account, auth_headers, db_session):
    """Any subset of fields can change; email is normalized and password rehashed."""
    response = client.put(
        "/api/auth/profile",
        json={"username": "alice_new", "email": "New@X.com", "password": "newsecret"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Profile updated successfully"
    assert data["user"]["username"] == "alice_new"
    assert data["user"]["email"] == "new@x.com"

    db_session.expire_all()
    stored = db_session.query(Account).filter(Account.id == account.id).first()
    assert verify_password("newsecret", stored.password_hash)


def test_profile_update_conflicting_email(client, account, auth_headers, db_session):
    db_session.add(Account(email="taken@x.com", stripe_customer_id="cus_other"))
    db_session.commit()

    response = client.put("/api/auth/profile", json={"email": "taken@x.com"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Email already in use"}


def test_profile_update_same_username_is_allowed(client, account, auth_headers):
    response = client.put("/api/auth/profile", json={"username": "alice_1"}, headers=auth_headers)

    assert response.status_code == 200
