"""Tests for the user listing and profile endpoints."""
from event_manager.security import create_access_token
from tests.conftest import auth_headers, register_user


class TestUserList:
    def test_list_excludes_caller(self, client):
        alice = register_user(client, "Alice")
        register_user(client, "Bob")
        register_user(client, "Carol")
        resp = client.get("/api/users", headers=alice["headers"])
        assert resp.status_code == 200
        names = [u["name"] for u in resp.json()]
        assert names == ["Bob", "Carol"]
        assert set(resp.json()[0]) == {"id", "name", "email"}

    def test_list_requires_token(self, client):
        assert client.get("/api/users").status_code == 401


class TestProfile:
    def test_get_profile(self, client):
        alice = register_user(client, "Alice", "alice@example.com")
        resp = client.get("/api/users/profile", headers=alice["headers"])
        assert resp.status_code == 200
        assert resp.json()["email"] == "alice@example.com"

    def test_profile_of_unknown_user(self, client):
        token = create_access_token("00000000-0000-0000-0000-000000000000")
        resp = client.get("/api/users/profile", headers=auth_headers(token))
        assert resp.status_code == 404

    def test_update_profile(self, client):
        alice = register_user(client, "Alice", "alice@example.com")
        resp = client.put("/api/users/profile", headers=alice["headers"], json={
            "name": "Alice Smith",
            "profile_picture": "https://example.com/alice.png",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Alice Smith"
        assert data["email"] == "alice@example.com"
        assert data["profile_picture"] == "https://example.com/alice.png"

    def test_update_email_and_login_with_it(self, client):
        alice = register_user(client, "Alice", "alice@example.com", password="secret123")
        resp = client.put("/api/users/profile", headers=alice["headers"], json={
            "email": "alice.smith@example.com",
        })
        assert resp.status_code == 200
        login = client.post("/api/auth/login", json={
            "email": "alice.smith@example.com", "password": "secret123",
        })
        assert login.status_code == 200

    def test_keeping_own_email_is_allowed(self, client):
        alice = register_user(client, "Alice", "alice@example.com")
        resp = client.put("/api/users/profile", headers=alice["headers"], json={
            "email": "alice@example.com",
        })
        assert resp.status_code == 200

    def test_email_taken_by_other_user(self, client):
        alice = register_user(client, "Alice", "alice@example.com")
        register_user(client, "Bob", "bob@example.com")
        resp = client.put("/api/users/profile", headers=alice["headers"], json={
            "email": "bob@example.com",
        })
        assert resp.status_code == 400
        profile = client.get("/api/users/profile", headers=alice["headers"]).json()
        assert profile["email"] == "alice@example.com"

    def test_invalid_email(self, client):
        alice = register_user(client, "Alice")
        resp = client.put("/api/users/profile", headers=alice["headers"], json={"email": "nope"})
        assert resp.status_code == 400

    def test_blank_name(self, client):
        alice = register_user(client, "Alice")
        resp = client.put("/api/users/profile", headers=alice["headers"], json={"name": "   "})
        assert resp.status_code == 400
