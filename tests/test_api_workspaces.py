class TestWorkspaceEndpoints:
    def test_create_and_list(self, client, auth_headers, person) -> None:
        resp = client.post(
            "/workspaces", json={"name": "Side Project"}, headers=auth_headers
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["slug"] == "side-project"
        assert data["owner_id"] == str(person.id)

        resp = client.get("/workspaces", headers=auth_headers)
        assert resp.status_code == 200
        assert [item["name"] for item in resp.json()["items"]] == ["Side Project"]

    def test_outsider_cannot_view(
        self, client, other_auth_headers, workspace
    ) -> None:
        resp = client.get(f"/workspaces/{workspace.id}", headers=other_auth_headers)
        assert resp.status_code == 403
        assert resp.json()["message"] == "Forbidden"

    def test_member_can_view(
        self, client, auth_headers, other_auth_headers, other_person, workspace
    ) -> None:
        resp = client.post(
            f"/workspaces/{workspace.id}/members",
            json={"user_id": str(other_person.id), "role": "viewer"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["role"] == "viewer"

        resp = client.get(f"/workspaces/{workspace.id}", headers=other_auth_headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Acme Corp"

    def test_member_leaves(
        self, client, auth_headers, other_auth_headers, other_person, workspace
    ) -> None:
        client.post(
            f"/workspaces/{workspace.id}/members",
            json={"user_id": str(other_person.id), "role": "member"},
            headers=auth_headers,
        )
        resp = client.post(
            f"/workspaces/{workspace.id}/leave", headers=other_auth_headers
        )
        assert resp.status_code == 204
        resp = client.get(f"/workspaces/{workspace.id}", headers=other_auth_headers)
        assert resp.status_code == 403

    def test_owner_cannot_leave(self, client, auth_headers, workspace) -> None:
        resp = client.post(f"/workspaces/{workspace.id}/leave", headers=auth_headers)
        assert resp.status_code == 400
