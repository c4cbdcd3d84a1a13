import json

from condo.core.config import settings
from condo.core.security import get_password_hash
from condo.models.admin import Admin

API = "/api/v1"


async def _login(client, username, password):
    return await client.post(f"{API}/login/admin", data={"username": username, "password": password})


async def test_main_admin_login_and_bearer_identity(client, main_admin):
    response = await _login(client, settings.MAIN_ADMIN_USERNAME, settings.MAIN_ADMIN_PASSWORD)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["admin_id"] == main_admin.id
    assert body["is_main"] is True
    assert body["permissions"] == {"scope": "full", "allowed_condominiums": []}

    headers = {"Authorization": f"Bearer {body['access_token']}"}
    response = await client.get(f"{API}/notifications/unread-count", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"count": 0}


async def test_wrong_password_is_rejected(client, main_admin):
    response = await _login(client, settings.MAIN_ADMIN_USERNAME, "nope")
    assert response.status_code == 400


async def test_limited_admin_gets_its_descriptor(client, session):
    admin = Admin(
        username="porto",
        hashed_password=get_password_hash("secret"),
        scope="limited",
        allowed_condominiums=json.dumps(["4", 3]),
    )
    session.add(admin)
    await session.commit()

    response = await _login(client, "porto", "secret")

    assert response.json()["permissions"] == {"scope": "limited", "allowed_condominiums": [3, 4]}


async def test_invalid_token_is_unauthorized(client):
    response = await client.get(
        f"{API}/notifications/unread-count", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401
