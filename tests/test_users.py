from chance.errors import AuthenticationError
from chance.models.project import Project
from chance.services import users as user_service


def _google_claims(**overrides):
    claims = {
        "email": "grace@example.com",
        "email_verified": True,
        "given_name": "Grace",
        "family_name": "Hopper",
        "picture": "https://example.com/grace.png",
    }
    claims.update(overrides)
    return claims


def test_signup_returns_session(client):
    response = client.post("/api/user/signup", json={
        "email": "Ada@Example.com",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "whatsapp_number": "0812345678",
        "password": "password123",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["user"]["email"] == "ada@example.com"
    assert body["user"]["username"] == "adalovelace5678"
    assert body["user"]["role"] == "user"
    assert body["user"]["is_verified"] is False


def test_signup_duplicate_email_conflicts(client, signup):
    signup(email="dup@example.com")
    response = client.post("/api/user/signup", json={
        "email": "DUP@example.com",
        "first_name": "Other",
        "last_name": "Person",
        "whatsapp_number": "0899999999",
        "password": "password123",
    })
    assert response.status_code == 409
    assert response.json()["detail"] == "User with this email already exists"


def test_signup_rejects_short_password(client):
    response = client.post("/api/user/signup", json={
        "email": "short@example.com",
        "first_name": "Short",
        "last_name": "Password",
        "whatsapp_number": "0812345678",
        "password": "abc",
    })
    assert response.status_code == 422


def test_username_gets_numeric_suffix_when_taken(signup):
    first = signup("Ada", "Lovelace", phone="0812345678")
    second = signup("Ada", "Lovelace", phone="0812345678")
    third = signup("Ada", "Lovelace", phone="0812345678")
    assert first.username == "adalovelace5678"
    assert second.username == "adalovelace56781"
    assert third.username == "adalovelace56782"


def test_signin(client, alice):
    response = client.post("/api/user/signin", json={"email": "alice@example.com", "password": "password123"})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == alice.id


def test_signin_failures_share_one_message(client, alice):
    wrong_password = client.post("/api/user/signin", json={"email": "alice@example.com", "password": "nope-nope"})
    unknown_email = client.post("/api/user/signin", json={"email": "nobody@example.com", "password": "password123"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json()["detail"] == unknown_email.json()["detail"] == "Invalid email or password"


def test_protected_route_rejects_bad_token(client):
    response = client.get("/api/user/profile", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert client.get("/api/user/profile").status_code == 401


def test_profile_update_marks_completion(client, alice):
    response = client.put("/api/user/profile", json={"bio": "Builder"}, headers=alice.headers)
    assert response.status_code == 200
    assert response.json()["profile_completed"] is False

    response = client.put("/api/user/profile", json={"school": "MIT"}, headers=alice.headers)
    body = response.json()
    assert body["bio"] == "Builder"
    assert body["school"] == "MIT"
    assert body["profile_completed"] is True


def test_other_profiles_hide_contact_details(client, alice, bob):
    own = client.get("/api/user/profile", headers=alice.headers).json()
    assert own["email"] == "alice@example.com"
    assert own["whatsapp_number"] == "0811110001"

    other = client.get("/api/user/profile", params={"user_id": alice.id}, headers=bob.headers).json()
    assert other["username"] == alice.username
    assert "email" not in other
    assert "whatsapp_number" not in other

    assert client.get("/api/user/profile", params={"user_id": 999}, headers=bob.headers).status_code == 404


def test_google_signin_provisions_once(client, monkeypatch):
    monkeypatch.setattr(user_service, "verify_google_token", lambda token: _google_claims())

    first = client.post("/api/user/oauth/google", json={"id_token": "google-token"})
    assert first.status_code == 200
    user = first.json()["user"]
    assert user["email"] == "grace@example.com"
    assert user["first_name"] == "Grace"
    assert user["is_verified"] is True
    assert user["profile_image_url"] == "https://example.com/grace.png"

    second = client.post("/api/user/oauth/google", json={"id_token": "google-token"})
    assert second.json()["user"]["id"] == user["id"]


def test_google_signin_links_existing_account(client, monkeypatch, alice):
    monkeypatch.setattr(user_service, "verify_google_token", lambda token: _google_claims(email="alice@example.com"))
    response = client.post("/api/user/oauth/google", json={"id_token": "google-token"})
    assert response.json()["user"]["id"] == alice.id


def test_google_signin_rejects_invalid_token(client, monkeypatch):
    def reject(token):
        raise AuthenticationError("Invalid Google token")

    monkeypatch.setattr(user_service, "verify_google_token", reject)
    response = client.post("/api/user/oauth/google", json={"id_token": "forged"})
    assert response.status_code == 401


def test_google_signin_unconfigured(client, monkeypatch):
    monkeypatch.delenv("GOOGLE_CLIENT_ID", raising=False)
    response = client.post("/api/user/oauth/google", json={"id_token": "anything"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Google sign-in is not configured"


def test_google_account_cannot_use_password_signin(client, monkeypatch):
    monkeypatch.setattr(user_service, "verify_google_token", lambda token: _google_claims())
    client.post("/api/user/oauth/google", json={"id_token": "google-token"})

    response = client.post("/api/user/signin", json={"email": "grace@example.com", "password": "password123"})
    assert response.status_code == 401


def test_admin_endpoints_require_admin(client, alice):
    assert client.get("/api/admin/users", headers=alice.headers).status_code == 403


def test_admin_manages_roles_and_influence(client, admin, alice):
    users = client.get("/api/admin/users", headers=admin.headers).json()
    assert {u["id"] for u in users} == {admin.id, alice.id}

    response = client.put(f"/api/admin/users/{alice.id}/role", json={"role": "admin"}, headers=admin.headers)
    assert response.json() == {"success": True, "role": "admin"}
    # Alice's existing token now carries admin rights
    assert client.get("/api/admin/users", headers=alice.headers).status_code == 200

    response = client.post(f"/api/admin/users/{alice.id}/influence", json={"points": 15}, headers=admin.headers)
    assert response.json() == {"success": True, "influence": 15}
    response = client.post(f"/api/admin/users/{alice.id}/influence", json={"points": -5}, headers=admin.headers)
    assert response.json()["influence"] == 10

    assert client.post("/api/admin/users/999/influence", json={"points": 1}, headers=admin.headers).status_code == 404


def test_signup_duplicate_email_wins_over_invalid_fields(client, signup):
    signup(email="dup@example.com")
    response = client.post("/api/user/signup", json={
        "email": "dup@example.com",
        "first_name": "",
        "last_name": "Person",
        "whatsapp_number": "123",
        "password": "abc",
    })
    assert response.status_code == 409
    assert response.json()["detail"] == "User with this email already exists"


def test_signup_rejects_short_phone(client):
    response = client.post("/api/user/signup", json={
        "email": "phone@example.com",
        "first_name": "Short",
        "last_name": "Phone",
        "whatsapp_number": "123",
        "password": "password123",
    })
    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "whatsapp_number"]


def test_signup_retries_when_username_is_taken_concurrently(client, monkeypatch, alice):
    real_unique_username = user_service.unique_username
    calls = []

    def racing_unique_username(db, first_name, last_name, phone):
        calls.append(first_name)
        # First pick collides with a row committed by someone else meanwhile
        if len(calls) == 1:
            return alice.username
        return real_unique_username(db, first_name, last_name, phone)

    monkeypatch.setattr(user_service, "unique_username", racing_unique_username)
    response = client.post("/api/user/signup", json={
        "email": "racer@example.com",
        "first_name": "Alice",
        "last_name": "Smith",
        "whatsapp_number": "0811110001",
        "password": "password123",
    })
    assert response.status_code == 201
    assert len(calls) == 2
    assert response.json()["user"]["username"] == f"{alice.username}1"


def test_my_projects_lists_everything(client, db, alice):
    for i in range(105):
        db.add(Project(
            title=f"Project {i}",
            description="Bulk",
            category="environment",
            impact="Some",
            team_size=3,
            effort="low",
            people_influenced=10,
            creator_id=alice.id,
        ))
    db.commit()

    projects = client.get("/api/user/me/projects", headers=alice.headers).json()
    assert len(projects) == 105
    assert projects[0]["title"] == "Project 104"
