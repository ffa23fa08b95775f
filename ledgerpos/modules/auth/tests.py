"""
Tests for authentication, permission checks and the permission cache.
"""
from datetime import timedelta
import json

import pytest

from ledgerpos.modules.auth.cache import MemoryPermissionCache, RedisPermissionCache
from ledgerpos.modules.auth.dependencies import load_permission_slugs
from ledgerpos.modules.auth.utils import create_access_token


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakeRedisClient:
    """In-memory double for the three redis commands the cache uses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value.encode()
        self.ttls[key] = ttl

    def delete(self, key):
        self.store.pop(key, None)


# ===== CACHE =====

class TestMemoryPermissionCache:

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = MemoryPermissionCache(ttl=10, clock=clock)
        cache.set("u1", ["invoices.view"])

        clock.now += 9
        assert cache.get("u1") == ["invoices.view"]
        clock.now += 1
        assert cache.get("u1") is None

    def test_invalidate_drops_entry(self):
        cache = MemoryPermissionCache(ttl=10)
        cache.set("u1", ["invoices.view"])
        cache.invalidate("u1")

        assert cache.get("u1") is None

    def test_remember_loads_once(self):
        cache = MemoryPermissionCache(ttl=10)
        calls = []

        def loader():
            calls.append(1)
            return ["salaries.view"]

        assert cache.remember("u1", loader) == ["salaries.view"]
        assert cache.remember("u1", loader) == ["salaries.view"]
        assert len(calls) == 1


class TestRedisPermissionCache:

    def test_set_get_invalidate(self):
        client = FakeRedisClient()
        cache = RedisPermissionCache(ttl=10, client=client)

        cache.set("u1", ["invoices.create"])
        assert json.loads(client.store["user.u1.permissions"]) == ["invoices.create"]
        assert client.ttls["user.u1.permissions"] == 10
        assert cache.get("u1") == ["invoices.create"]

        cache.invalidate("u1")
        assert cache.get("u1") is None


# ===== AUTHENTICATION =====

class TestAuthentication:

    def test_missing_token_is_401(self, client):
        response = client.get("/invoices")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["detail"]["message"] == "Not authenticated"

    def test_garbage_token_is_401(self, client):
        response = client.get("/invoices", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token_is_401(self, client, make_user):
        user = make_user("invoices.view")
        token = create_access_token({"sub": user.id}, expires_delta=timedelta(minutes=-1))

        response = client.get("/invoices", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"]["message"] == "Expired token"

    def test_inactive_user_is_401(self, client, make_user, auth_headers):
        user = make_user("invoices.view", is_active=False)
        response = client.get("/invoices", headers=auth_headers(user))
        assert response.status_code == 401

    def test_missing_permission_is_403(self, client, make_user, auth_headers):
        user = make_user("invoices.view")
        response = client.post("/invoices", json={}, headers=auth_headers(user))

        assert response.status_code == 403
        assert response.json()["detail"]["message"] == "Forbidden: You do not have the required permission."

    def test_me_lists_permissions(self, client, make_user, auth_headers):
        user = make_user("salaries.view", "invoices.view", name="Nadeesha")
        response = client.get("/users/me", headers=auth_headers(user))

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Nadeesha"
        assert data["permissions"] == ["invoices.view", "salaries.view"]


# ===== PERMISSION SYNC =====

class TestPermissionSync:

    def test_sync_replaces_permission_set(self, client, db_session, admin_headers, make_user):
        make_user("salaries.view", "salaries.pay")
        target = make_user("invoices.view")

        response = client.post(
            f"/users/{target.id}/permissions",
            json={"permissions": ["salaries.view", "salaries.pay"]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        slugs = [p["slug"] for p in response.json()["permissions"]]
        assert slugs == ["salaries.pay", "salaries.view"]
        assert load_permission_slugs(db_session, target.id) == ["salaries.pay", "salaries.view"]

    def test_sync_invalidates_cached_permissions(self, client, admin_headers, make_user, auth_headers):
        target = make_user("invoices.view")
        headers = auth_headers(target)
        assert client.get("/invoices", headers=headers).status_code == 200

        response = client.post(f"/users/{target.id}/permissions", json={"permissions": []}, headers=admin_headers)
        assert response.status_code == 200

        # Revocation applies immediately, not after the cache TTL
        assert client.get("/invoices", headers=headers).status_code == 403

    def test_unknown_slug_is_rejected(self, client, admin_headers, make_user):
        target = make_user("invoices.view")

        response = client.post(
            f"/users/{target.id}/permissions",
            json={"permissions": ["invoices.view", "invoices.delete-everything"]},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert "invoices.delete-everything" in response.json()["detail"]["errors"]["permissions"]

    def test_get_permissions_of_unknown_user_is_404(self, client, admin_headers):
        response = client.get("/users/00000000-0000-0000-0000-000000000000/permissions", headers=admin_headers)
        assert response.status_code == 404

    @pytest.mark.parametrize("slug", ["users.view", "users.manage-permissions"])
    def test_requires_user_permissions(self, client, make_user, auth_headers, slug):
        actor = make_user("invoices.view")
        target = make_user()
        if slug == "users.view":
            response = client.get(f"/users/{target.id}/permissions", headers=auth_headers(actor))
        else:
            response = client.post(
                f"/users/{target.id}/permissions", json={"permissions": []}, headers=auth_headers(actor)
            )
        assert response.status_code == 403
