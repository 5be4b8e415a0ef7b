"""OTP password reset flow.

Covers:
- Anti-enumeration: identical response for unknown emails and failed sends, no email sent
- OTP issuance, single use, expiry and supersession
- Resetting the password and invalidating every OTP
"""

from datetime import timedelta

import emailer
import password_reset
from database import utcnow
from errors import ServiceError
from security import verify_password


def _request(client, email):
    return client.post("/api/auth/forgot-password", json={"email": email})


class TestRequestReset:
    def test_unknown_email_gets_same_message(self, client, make_user, sent_emails):
        make_user(email="known@example.com")

        known = _request(client, "known@example.com")
        unknown = _request(client, "nobody@example.com")

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json() == {"message": password_reset.RESET_REQUESTED_MESSAGE}
        assert [m["email"] for m in sent_emails] == ["known@example.com"]

    def test_issues_six_digit_code_expiring_in_ten_minutes(self, client, db, make_user, sent_emails):
        make_user(email="known@example.com", name="Kim")
        before = utcnow()

        _request(client, " Known@Example.com ")

        record = db["otp"].find_one({"email": "known@example.com"})
        assert record["otp"] == sent_emails[0]["otp"]
        assert len(record["otp"]) == 6 and record["otp"].isdigit()
        assert record["is_used"] is False
        expected = before + timedelta(minutes=10)
        assert abs((record["expires_at"] - expected).total_seconds()) < 5
        assert sent_emails[0]["name"] == "Kim"

    def test_new_request_invalidates_previous_code(self, client, make_user, sent_emails):
        make_user(email="known@example.com")
        _request(client, "known@example.com")
        _request(client, "known@example.com")
        first, second = sent_emails[0]["otp"], sent_emails[1]["otp"]

        if first != second:
            stale = client.post("/api/auth/verify-otp", json={"email": "known@example.com", "otp": first})
            assert stale.status_code == 400
        fresh = client.post("/api/auth/verify-otp", json={"email": "known@example.com", "otp": second})
        assert fresh.status_code == 200

    def test_email_failure_looks_like_unknown_email(self, client, make_user, monkeypatch):
        make_user(email="known@example.com")

        def failing_send(email, otp, user_name="User"):
            raise ServiceError("Failed to send email")

        monkeypatch.setattr(emailer, "send_otp_email", failing_send)

        known = _request(client, "known@example.com")
        unknown = _request(client, "nobody@example.com")

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    def test_email_is_required(self, client):
        response = client.post("/api/auth/forgot-password", json={})

        assert response.status_code == 400
        assert response.json() == {"message": "Email is required"}


class TestVerifyOtp:
    def test_code_can_be_verified_once(self, client, make_user, sent_emails):
        make_user(email="known@example.com")
        _request(client, "known@example.com")
        body = {"email": "known@example.com", "otp": sent_emails[0]["otp"]}

        first = client.post("/api/auth/verify-otp", json=body)
        second = client.post("/api/auth/verify-otp", json=body)

        assert first.status_code == 200
        assert first.json()["verified"] is True
        assert second.status_code == 400
        assert second.json() == {"message": "Invalid or expired OTP"}

    def test_wrong_code_is_rejected(self, client, make_user, sent_emails):
        make_user(email="known@example.com")
        _request(client, "known@example.com")
        wrong = "000000" if sent_emails[0]["otp"] != "000000" else "111111"

        response = client.post("/api/auth/verify-otp", json={"email": "known@example.com", "otp": wrong})

        assert response.status_code == 400

    def test_expired_code_is_rejected(self, client, db, make_user, sent_emails):
        make_user(email="known@example.com")
        _request(client, "known@example.com")
        db["otp"].update_many({}, {"$set": {"expires_at": utcnow() - timedelta(seconds=1)}})

        response = client.post("/api/auth/verify-otp", json={"email": "known@example.com", "otp": sent_emails[0]["otp"]})

        assert response.status_code == 400

    def test_email_and_otp_are_required(self, client):
        response = client.post("/api/auth/verify-otp", json={"email": "known@example.com"})

        assert response.status_code == 400
        assert response.json() == {"message": "Email and OTP are required"}


class TestResetPassword:
    def test_reset_after_verification(self, client, db, make_user, sent_emails):
        make_user(email="known@example.com")
        _request(client, "known@example.com")
        code = sent_emails[0]["otp"]
        client.post("/api/auth/verify-otp", json={"email": "known@example.com", "otp": code})

        response = client.post("/api/auth/reset-password", json={"email": "known@example.com", "otp": code, "newPassword": "brand-new-pw"})

        assert response.status_code == 200
        user = db["user"].find_one({"email": "known@example.com"})
        assert verify_password("brand-new-pw", user["password_hash"])
        assert db["otp"].count_documents({"email": "known@example.com"}) == 0

    def test_reset_without_separate_verification(self, client, make_user, sent_emails):
        make_user(email="known@example.com")
        _request(client, "known@example.com")

        response = client.post(
            "/api/auth/reset-password",
            json={"email": "known@example.com", "otp": sent_emails[0]["otp"], "newPassword": "brand-new-pw"},
        )

        assert response.status_code == 200
        login = client.post("/api/auth/login", json={"email": "known@example.com", "password": "brand-new-pw"})
        assert login.status_code == 200

    def test_code_cannot_be_reused_after_reset(self, client, make_user, sent_emails):
        make_user(email="known@example.com")
        _request(client, "known@example.com")
        body = {"email": "known@example.com", "otp": sent_emails[0]["otp"], "newPassword": "brand-new-pw"}

        assert client.post("/api/auth/reset-password", json=body).status_code == 200
        again = client.post("/api/auth/reset-password", json=body)

        assert again.status_code == 400

    def test_short_password_is_rejected(self, client, make_user, sent_emails):
        make_user(email="known@example.com")
        _request(client, "known@example.com")

        response = client.post(
            "/api/auth/reset-password",
            json={"email": "known@example.com", "otp": sent_emails[0]["otp"], "newPassword": "123"},
        )

        assert response.status_code == 400
        assert "at least 6" in response.json()["message"]

    def test_guest_account_can_set_a_password(self, client, db, sent_emails):
        client.post("/api/auth/guest", json={"guestInfo": {"fullName": "Gus", "email": "gus@example.com", "phone": "1"}})
        _request(client, "gus@example.com")

        response = client.post(
            "/api/auth/reset-password",
            json={"email": "gus@example.com", "otp": sent_emails[0]["otp"], "newPassword": "finally-a-pw"},
        )

        assert response.status_code == 200
        assert "password_hash" in db["user"].find_one({"email": "gus@example.com"})
