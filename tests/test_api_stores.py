"""
Tests for store endpoints (/api/stores/*), including on-demand cookie generation.
"""

import pytest

from backend.models import Activity, Cookie, Store, User
from backend.services import vault

from conftest import failure_result, success_result

STORES = "/api/stores"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_missing_user_header_is_unauthorized(async_client):
    resp = await async_client.get(STORES)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_unknown_user_is_unauthorized(async_client):
    resp = await async_client.get(STORES, headers={"X-User-Id": "999"})
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_and_list_store(async_client, auth_headers, db):
    resp = await async_client.post(
        STORES, json={"name": "Toko Baru", "domain": "kasirpintar.co.id"}, headers=auth_headers
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "inactive"
    assert data["has_credentials"] is False
    assert "encrypted_email" not in data

    resp = await async_client.get(STORES, headers=auth_headers)
    assert [s["name"] for s in resp.json()] == ["Toko Baru"]
    assert db.query(Activity).filter(Activity.action == "New store added").count() == 1


@pytest.mark.asyncio
async def test_create_store_validation(async_client, auth_headers):
    resp = await async_client.post(STORES, json={"name": "", "domain": "x"}, headers=auth_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_other_users_store_is_not_found(async_client, auth_headers, db):
    stranger = User(username="stranger", email="s@example.com")
    db.add(stranger)
    db.commit()
    theirs = Store(user_id=stranger.id, name="Theirs", domain="kasirpintar.co.id")
    db.add(theirs)
    db.commit()

    resp = await async_client.get(f"{STORES}/{theirs.id}", headers=auth_headers)
    assert resp.status_code == 404
    resp = await async_client.get(STORES, headers=auth_headers)
    assert resp.json() == []


@pytest.mark.asyncio
async def test_update_store(async_client, auth_headers, store):
    resp = await async_client.put(
        f"{STORES}/{store.id}", json={"name": "Renamed"}, headers=auth_headers
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"
    assert resp.json()["domain"] == "kasirpintar.co.id"


@pytest.mark.asyncio
async def test_delete_store_removes_its_cookies(async_client, auth_headers, store, user, db):
    db.add(Cookie(store_id=store.id, user_id=user.id, name="a", value="1", domain="d"))
    db.commit()
    store_id = store.id

    resp = await async_client.delete(f"{STORES}/{store_id}", headers=auth_headers)
    assert resp.status_code == 200

    db.expire_all()
    assert db.query(Store).filter(Store.id == store_id).first() is None
    assert db.query(Cookie).count() == 0


@pytest.mark.asyncio
async def test_has_credentials(async_client, auth_headers, store, store_with_credentials):
    resp = await async_client.get(f"{STORES}/{store.id}/has-credentials", headers=auth_headers)
    assert resp.json() == {"has_credentials": True, "email": "owner@example.com"}


@pytest.mark.asyncio
async def test_has_no_credentials(async_client, auth_headers, store):
    resp = await async_client.get(f"{STORES}/{store.id}/has-credentials", headers=auth_headers)
    assert resp.json() == {"has_credentials": False, "email": None}


# ---------------------------------------------------------------------------
# Generate / sync
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_generate_saves_credentials_and_cookies(async_client, auth_headers, store, db, fake_driver):
    fake_driver.results = [success_result("laravel_session", "XSRF-TOKEN", "remember_web")]

    resp = await async_client.post(
        f"{STORES}/{store.id}/generate",
        json={"email": "owner@example.com", "password": "s3cret"},
        headers=auth_headers,
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["cookie_count"] == 3
    assert data["store"]["status"] == "active"
    assert data["store"]["has_credentials"] is True
    assert fake_driver.calls == [("owner@example.com", "s3cret", "kasirpintar.co.id")]

    db.expire_all()
    saved = db.get(Store, store.id)
    assert vault.decrypt_credentials(saved) == ("owner@example.com", "s3cret")
    cookies = db.query(Cookie).filter(Cookie.store_id == store.id).all()
    assert len(cookies) == 3
    assert all(c.health_status == "valid" for c in cookies)


@pytest.mark.asyncio
async def test_generate_failure_writes_nothing(async_client, auth_headers, store, db, fake_driver):
    fake_driver.results = [failure_result("Turnstile timeout after 30 seconds")]

    resp = await async_client.post(
        f"{STORES}/{store.id}/generate",
        json={"email": "owner@example.com", "password": "s3cret"},
        headers=auth_headers,
    )

    assert resp.status_code == 400
    assert resp.json() == {"detail": "Turnstile timeout after 30 seconds"}

    db.expire_all()
    assert db.query(Cookie).count() == 0
    saved = db.get(Store, store.id)
    assert saved.status == "inactive"
    assert saved.has_credentials is False
    failed = db.query(Activity).filter(Activity.action == "Cookies generation failed").one()
    assert failed.type == "error"


@pytest.mark.asyncio
async def test_generate_without_any_credentials(async_client, auth_headers, store, fake_driver):
    resp = await async_client.post(f"{STORES}/{store.id}/generate", json={}, headers=auth_headers)
    assert resp.status_code == 400
    assert fake_driver.calls == []


@pytest.mark.asyncio
async def test_generate_falls_back_to_saved_credentials(
    async_client, auth_headers, store_with_credentials, fake_driver
):
    resp = await async_client.post(
        f"{STORES}/{store_with_credentials.id}/generate",
        json={"password": "new-password"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert fake_driver.calls == [("owner@example.com", "new-password", "kasirpintar.co.id")]


@pytest.mark.asyncio
async def test_generate_with_corrupt_saved_credentials(async_client, auth_headers, store, db):
    store.encrypted_email = "garbage"
    store.encrypted_password = "garbage"
    db.commit()

    resp = await async_client.post(f"{STORES}/{store.id}/generate", json={}, headers=auth_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_sync_uses_saved_credentials(async_client, auth_headers, store_with_credentials, fake_driver):
    resp = await async_client.post(f"{STORES}/{store_with_credentials.id}/sync", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["cookie_count"] == 2
    assert fake_driver.calls[0][:2] == ("owner@example.com", "s3cret")


@pytest.mark.asyncio
async def test_sync_requires_saved_credentials(async_client, auth_headers, store):
    resp = await async_client.post(f"{STORES}/{store.id}/sync", headers=auth_headers)
    assert resp.status_code == 400
