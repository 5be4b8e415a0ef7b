class TestAdmin:
    def test_approve_seller(self, client, db, make_user):
        seller, _ = make_user(role="seller", is_approved=False)
        _, admin_headers = make_user(role="admin")

        response = client.put(f"/api/admin/users/{seller['_id']}/approve", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["user"]["isApproved"] is True
        assert db["user"].find_one({"_id": seller["_id"]})["is_approved"] is True

    def test_ban_and_unban(self, client, make_user):
        user, user_headers = make_user()
        _, admin_headers = make_user(role="admin")

        banned = client.put(f"/api/admin/users/{user['_id']}/ban", json={"isBanned": True}, headers=admin_headers)
        assert banned.json()["user"]["isBanned"] is True
        assert client.get("/api/auth/profile", headers=user_headers).status_code == 403

        client.put(f"/api/admin/users/{user['_id']}/ban", json={"isBanned": False}, headers=admin_headers)
        assert client.get("/api/auth/profile", headers=user_headers).status_code == 200

    def test_admin_cannot_ban_self(self, client, make_user):
        admin, headers = make_user(role="admin")

        response = client.put(f"/api/admin/users/{admin['_id']}/ban", json={"isBanned": True}, headers=headers)

        assert response.status_code == 400

    def test_list_users_hides_password_hashes(self, client, make_user):
        make_user()
        _, headers = make_user(role="admin")

        users = client.get("/api/admin/users", headers=headers).json()

        assert len(users) == 2
        assert all("passwordHash" not in u for u in users)

    def test_non_admins_are_refused(self, client, make_user):
        _, headers = make_user(role="seller")

        assert client.get("/api/admin/users", headers=headers).status_code == 403
