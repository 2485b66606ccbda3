"""
Tests for cookie endpoints (/api/cookies/*).
"""

import time

import pytest

from backend.expiry import expiry_to_datetime
from backend.models import Activity, Cookie

COOKIES = "/api/cookies"


@pytest.fixture()
def saved_cookies(db, store, user):
    rows = [
        Cookie(store_id=store.id, user_id=user.id, name="laravel_session", value="a",
               domain="kasirpintar.co.id"),
        Cookie(store_id=store.id, user_id=user.id, name="XSRF-TOKEN", value="b",
               domain="kasirpintar.co.id"),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.mark.asyncio
async def test_import_json_array(async_client, auth_headers, store, db):
    payload = [
        {"name": "laravel_session", "value": "abc", "domain": ".kasirpintar.co.id",
         "expirationDate": time.time() + 86400, "httpOnly": True, "secure": True, "sameSite": "lax"},
        {"name": "XSRF-TOKEN", "value": "def"},
    ]
    resp = await async_client.post(
        f"{COOKIES}/import", json={"store_id": store.id, "cookies": payload}, headers=auth_headers
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["count"] == 2
    assert data["message"] == "Successfully imported 2 cookies"
    assert {c["name"] for c in data["cookies"]} == {"laravel_session", "XSRF-TOKEN"}
    assert db.query(Activity).filter(Activity.action == "Cookies imported").count() == 1


@pytest.mark.asyncio
async def test_import_replaces_previous_set(async_client, auth_headers, store, saved_cookies, db):
    resp = await async_client.post(
        f"{COOKIES}/import",
        json={"store_id": store.id, "cookies": "laravel_session=new; remember_web=1"},
        headers=auth_headers,
    )
    assert resp.status_code == 200

    db.expire_all()
    cookies = db.query(Cookie).filter(Cookie.store_id == store.id).all()
    assert sorted(c.name for c in cookies) == ["laravel_session", "remember_web"]
    assert all(c.secure for c in cookies)


@pytest.mark.asyncio
async def test_import_rejects_garbage(async_client, auth_headers, store, saved_cookies, db):
    resp = await async_client.post(
        f"{COOKIES}/import", json={"store_id": store.id, "cookies": "nothing useful"}, headers=auth_headers
    )
    assert resp.status_code == 400

    db.expire_all()
    assert db.query(Cookie).count() == 2


@pytest.mark.asyncio
async def test_import_into_unknown_store(async_client, auth_headers):
    resp = await async_client.post(
        f"{COOKIES}/import", json={"store_id": 404, "cookies": "a=1"}, headers=auth_headers
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_cookies(async_client, auth_headers, store, saved_cookies):
    resp = await async_client.get(COOKIES, headers=auth_headers)
    assert len(resp.json()) == 2

    resp = await async_client.get(f"{COOKIES}/store/{store.id}", headers=auth_headers)
    assert [c["name"] for c in resp.json()] == ["laravel_session", "XSRF-TOKEN"]
    assert resp.json()[0]["health_status"] == "unknown"


@pytest.mark.asyncio
async def test_create_cookie_defaults_domain_and_parses_expiry(async_client, auth_headers, store):
    resp = await async_client.post(
        COOKIES,
        json={"store_id": store.id, "name": "remember_web", "value": "x", "expiration_date": 1893456000},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["domain"] == "kasirpintar.co.id"
    assert data["expiration_date"].startswith("2030-01-01T00:00:00")
    assert data["same_site"] == "Lax"


@pytest.mark.asyncio
async def test_create_cookie_rejects_bad_same_site(async_client, auth_headers, store):
    resp = await async_client.post(
        COOKIES,
        json={"store_id": store.id, "name": "a", "value": "x", "same_site": "Sometimes"},
        headers=auth_headers,
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_update_expiry_resets_health(async_client, auth_headers, saved_cookies, db):
    cookie = saved_cookies[0]
    cookie.health_status = "valid"
    cookie.is_valid = True
    db.commit()

    resp = await async_client.put(
        f"{COOKIES}/{cookie.id}",
        json={"value": "rotated", "expiration_date": "2031-01-01T00:00:00Z"},
        headers=auth_headers,
    )

    data = resp.json()
    assert data["value"] == "rotated"
    assert data["expiration_date"].startswith("2031-01-01")
    assert data["health_status"] == "unknown"
    assert data["is_valid"] is None


@pytest.mark.asyncio
async def test_delete_cookie(async_client, auth_headers, saved_cookies, db):
    resp = await async_client.delete(f"{COOKIES}/{saved_cookies[0].id}", headers=auth_headers)
    assert resp.status_code == 200

    resp = await async_client.delete(f"{COOKIES}/{saved_cookies[0].id}", headers=auth_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_store_cookies(async_client, auth_headers, store, saved_cookies, db):
    resp = await async_client.delete(f"{COOKIES}/store/{store.id}", headers=auth_headers)
    assert resp.json() == {"success": True, "deleted": 2}

    db.expire_all()
    assert db.query(Cookie).count() == 0


@pytest.mark.asyncio
async def test_health_check_endpoint(async_client, auth_headers, store, user, db):
    db.add_all([
        Cookie(store_id=store.id, user_id=user.id, name="fresh", value="1", domain="d"),
        Cookie(store_id=store.id, user_id=user.id, name="stale", value="2", domain="d",
               expiration_date=expiry_to_datetime(time.time() - 1000)),
    ])
    db.commit()

    resp = await async_client.post(f"{COOKIES}/health-check/{store.id}", headers=auth_headers)

    data = resp.json()
    assert data["success"] is True
    assert data["data"]["total_cookies"] == 2
    assert data["data"]["valid_cookies"] == 1
    assert data["data"]["expired_cookies"] == 1
    by_name = {c["name"]: c for c in data["data"]["cookies"]}
    assert by_name["stale"]["health_status"] == "expired"
    assert by_name["stale"]["is_valid"] is False
    assert by_name["fresh"]["reason"] == "no_expiry"


@pytest.mark.asyncio
async def test_health_check_on_empty_store(async_client, auth_headers, store):
    resp = await async_client.post(f"{COOKIES}/health-check/{store.id}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is False
    assert resp.json()["message"] == "No cookies found for this store"
