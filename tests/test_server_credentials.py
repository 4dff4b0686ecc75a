from conftest import auth_headers, login, register, verified_account

PREFIX = "/api/v1/credentials"


def create(api, headers, **fields):
    body = {"title": "GitHub", "password": "s3cret!"}
    body.update(fields)
    return api.post(PREFIX, json=body, headers=headers)


def revision(api, headers) -> int:
    return api.get(f"{PREFIX}/revision", headers=headers).json()["revision"]


class TestCredentials:
    def test_requires_auth(self, api):
        assert api.get(PREFIX).status_code == 401

    def test_create_defaults(self, api, signed_in):
        resp = create(api, signed_in)
        assert resp.status_code == 201
        body = resp.json()
        assert body["favorite"] is False
        assert body["category"] == "Personal"
        assert body["created_at"] == body["updated_at"]

    def test_blank_title_rejected(self, api, signed_in):
        resp = create(api, signed_in, title="   ")
        assert resp.status_code == 422
        assert resp.json()["detail"] == "MISSING_REQUIRED_FIELD"
        assert api.get(PREFIX, headers=signed_in).json() == []

    def test_list_newest_first(self, api, signed_in):
        first = create(api, signed_in, title="first").json()
        second = create(api, signed_in, title="second").json()
        ids = [c["id"] for c in api.get(PREFIX, headers=signed_in).json()]
        assert ids == [second["id"], first["id"]]

        api.patch(f"{PREFIX}/{first['id']}", json={"notes": "touched"}, headers=signed_in)
        ids = [c["id"] for c in api.get(PREFIX, headers=signed_in).json()]
        assert ids == [first["id"], second["id"]]

    def test_update_merges(self, api, signed_in):
        created = create(api, signed_in, username="octo").json()
        resp = api.patch(f"{PREFIX}/{created['id']}", json={"favorite": True}, headers=signed_in)
        body = resp.json()
        assert body["favorite"] is True
        assert body["username"] == "octo"
        assert body["created_at"] == created["created_at"]
        assert body["updated_at"] > created["updated_at"]

    def test_update_blank_password_rejected(self, api, signed_in):
        created = create(api, signed_in).json()
        resp = api.patch(f"{PREFIX}/{created['id']}", json={"password": ""}, headers=signed_in)
        assert resp.status_code == 422

    def test_missing(self, api, signed_in):
        assert api.get(f"{PREFIX}/nope", headers=signed_in).status_code == 404
        resp = api.patch(f"{PREFIX}/nope", json={"notes": "x"}, headers=signed_in)
        assert resp.json()["detail"] == "NOT_FOUND"

    def test_delete_is_idempotent(self, api, signed_in):
        created = create(api, signed_in).json()
        assert api.delete(f"{PREFIX}/{created['id']}", headers=signed_in).status_code == 204
        assert api.delete(f"{PREFIX}/{created['id']}", headers=signed_in).status_code == 204
        assert api.get(PREFIX, headers=signed_in).json() == []

    def test_revision_bumps_on_every_change(self, api, signed_in):
        assert revision(api, signed_in) == 0
        created = create(api, signed_in).json()
        api.patch(f"{PREFIX}/{created['id']}", json={"notes": "n"}, headers=signed_in)
        api.delete(f"{PREFIX}/{created['id']}", headers=signed_in)
        assert revision(api, signed_in) == 3
        api.delete(f"{PREFIX}/{created['id']}", headers=signed_in)
        assert revision(api, signed_in) == 3


class TestIsolation:
    def test_other_users_cannot_see_or_delete(self, api, mailer, signed_in):
        created = create(api, signed_in).json()
        other = verified_account(api, mailer, email="mallory@example.com")

        assert api.get(PREFIX, headers=other).json() == []
        assert api.get(f"{PREFIX}/{created['id']}", headers=other).status_code == 404
        assert api.delete(f"{PREFIX}/{created['id']}", headers=other).status_code == 204
        assert len(api.get(PREFIX, headers=signed_in).json()) == 1

    def test_unverified_account_is_refused(self, api):
        register(api, email="trent@example.com")
        headers = auth_headers(login(api, email="trent@example.com").json()["access_token"])

        resp = api.get(PREFIX, headers=headers)
        assert resp.status_code == 403
        assert resp.json()["detail"] == "EMAIL_NOT_VERIFIED"
        assert create(api, headers).status_code == 403
        assert api.get(f"{PREFIX}/revision", headers=headers).status_code == 403
