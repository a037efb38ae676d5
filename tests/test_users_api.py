"""Users, login and info endpoints."""

import jwt

import helpers
from services.auth_service import JWT_ALGO, JWT_SECRET


class TestCreateUser:
    async def test_succeeds_with_a_fresh_username(self, client, database):
        res = await client.post(
            "/api/users", json={"username": "mluukkai", "name": "Matti Luukkainen", "password": "salainen"},
        )

        assert res.status_code == 201
        body = res.json()
        assert body["username"] == "mluukkai"
        assert body["persons"] == []
        assert "password" not in body and "password_hash" not in body
        assert await database.get_user_by_username("mluukkai") is not None

    async def test_password_is_stored_hashed(self, client, database):
        await client.post("/api/users", json={"username": "mluukkai", "password": "salainen"})

        stored = await database.get_user_by_username("mluukkai")
        assert stored["password_hash"] != "salainen"
        assert stored["password_hash"].startswith("$2b$")

    async def test_fails_with_409_if_username_is_taken(self, client, database):
        res = await client.post(
            "/api/users", json={"username": "root", "name": "Another", "password": "salainen"},
        )

        assert res.status_code == 409
        assert res.json()["code"] == "CONFLICT"
        assert len(await database.list_users()) == len(helpers.INITIAL_USERS)

    async def test_fails_without_password(self, client):
        res = await client.post("/api/users", json={"username": "mluukkai"})

        assert res.status_code == 400
        assert res.json()["code"] == "MISSING_FIELD"

    async def test_fails_with_a_short_password(self, client):
        res = await client.post("/api/users", json={"username": "mluukkai", "password": "ab"})

        assert res.status_code == 400
        assert res.json()["code"] == "INVALID_PAYLOAD"


async def test_users_are_listed_with_their_persons(client):
    res = await client.get("/api/users")

    assert res.status_code == 200
    root = next(u for u in res.json() if u["username"] == "root")
    assert len(root["persons"]) == len(helpers.INITIAL_PHONEBOOK)
    assert {p["name"] for p in root["persons"]} == {p["name"] for p in helpers.INITIAL_PHONEBOOK}
    assert "password_hash" not in root


class TestLogin:
    async def test_succeeds_with_correct_credentials(self, client, user):
        res = await client.post("/api/login", json={"username": "root", "password": "sekret"})

        assert res.status_code == 200
        body = res.json()
        assert body["username"] == "root"
        assert body["name"] == "Superuser"
        payload = jwt.decode(body["token"], JWT_SECRET, algorithms=[JWT_ALGO])
        assert payload["id"] == str(user["_id"])
        assert payload["username"] == "root"

    async def test_issued_token_can_create_a_person(self, client, database):
        login = await client.post("/api/login", json={"username": "root", "password": "sekret"})
        token = login.json()["token"]

        res = await client.post(
            "/api/persons", json={"name": "Jane", "number": "1"}, headers={"Authorization": f"bearer {token}"},
        )

        assert res.status_code == 201
        assert await database.count_persons() == len(helpers.INITIAL_PHONEBOOK) + 1

    async def test_fails_with_wrong_password(self, client):
        res = await client.post("/api/login", json={"username": "root", "password": "wrong"})

        assert res.status_code == 401

    async def test_fails_with_unknown_user(self, client):
        res = await client.post("/api/login", json={"username": "nobody", "password": "sekret"})

        assert res.status_code == 401

    async def test_fails_without_credentials(self, client):
        res = await client.post("/api/login", json={})

        assert res.status_code == 400


async def test_info_reports_number_of_people(client):
    res = await client.get("/info")

    assert res.status_code == 200
    assert "text/html" in res.headers["content-type"]
    assert f"Phonebook has info for {len(helpers.INITIAL_PHONEBOOK)} people" in res.text
