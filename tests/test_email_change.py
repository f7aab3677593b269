from unittest.mock import patch

from tests.admin.base import *  # noqa: F401,F403

from tenant_admin.core.security import hash_token
from tenant_admin.models.common import utcnow
from tenant_admin.services.email_change import VerificationResult, build_verification_mail, verify_email_change
from tenant_admin.services.notifications.channels import session_channel

SESSION_ID = "a1b2c3d4e5f6a7b8c9d0"


class EmailChangeRequestTests(TenantAdminTestBase):
    def test_request_stores_hashed_token_and_mails_new_address(self):
        user = self._create_user(name="Ada", email="ada@example.com")
        with patch("tenant_admin.services.email_change.send_mail") as send_mail:
            response = self.client.post(
                "/api/account/email",
                headers=self._auth_headers(user),
                json={"email": "Ada.New@Example.com"},
            )
        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json()["pending_email"], "ada.new@example.com")

        message = send_mail.call_args.args[0]
        self.assertEqual(message.to, "ada.new@example.com")
        self.assertIn("/email/verify/", message.html)
        self.assertIn("Hello Ada,", message.text)

        token = message.text.split("/email/verify/", 1)[1].split()[0]
        with self.SessionLocal() as db:
            saved = db.get(User, user.id)
            self.assertEqual(saved.email, "ada@example.com")
            self.assertEqual(saved.pending_email_token, hash_token(token))
            self.assertNotEqual(saved.pending_email_token, token)

    def test_request_rejects_taken_same_or_malformed_address(self):
        self._create_user(email="taken@example.com")
        user = self._create_user(email="me@example.com")
        headers = self._auth_headers(user)
        with patch("tenant_admin.services.email_change.send_mail") as send_mail:
            for email in ("taken@example.com", "ME@example.com", "not-an-email"):
                response = self.client.post("/api/account/email", headers=headers, json={"email": email})
                self.assertEqual(response.status_code, 400, email)
        send_mail.assert_not_called()

    def test_mail_is_localized(self):
        user = User(name="Zoé", pending_email="zoe@example.com")
        message = build_verification_mail(user, "tok", locale="fr_FR")
        self.assertTrue(message.subject.startswith("Vérifiez votre nouvelle adresse email"))
        self.assertIn("Bonjour Zoé,", message.html)
        self.assertIn(f"{settings.APP_URL}/email/verify/tok", message.html)


class EmailVerificationTests(TenantAdminTestBase):
    def setUp(self):
        super().setUp()
        self.client.cookies.set(settings.SESSION_COOKIE_NAME, SESSION_ID)

    def _pending_user(self, token: str, expires_in: timedelta) -> User:
        user = self._create_user(name="Ada", email="old@example.com")
        with self.SessionLocal() as db:
            row = db.get(User, user.id)
            row.pending_email = "new@example.com"
            row.pending_email_token = hash_token(token)
            row.pending_email_expires_at = utcnow() + expires_in
            db.commit()
        return user

    def _session_toasts(self):
        return self.broadcaster.of(EVENT_TOAST_RECEIVED, session_channel(SESSION_ID))

    def test_valid_token_updates_email_and_toasts_success(self):
        user = self._pending_user("good-token", timedelta(hours=1))
        response = self.client.get("/email/verify/good-token", follow_redirects=False)
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/login")

        with self.SessionLocal() as db:
            saved = db.get(User, user.id)
            self.assertEqual(saved.email, "new@example.com")
            self.assertIsNone(saved.pending_email)
            self.assertIsNone(saved.pending_email_token)
            self.assertIsNotNone(saved.email_verified_at)

        toasts = self._session_toasts()
        self.assertEqual(len(toasts), 1)
        self.assertEqual(toasts[0].data["type"], "success")
        self.assertEqual(toasts[0].data["title"], "Success")
        self.assertEqual(toasts[0].data["content"], "Your email has been successfully updated.")

    def test_expired_token_keeps_old_email(self):
        user = self._pending_user("late-token", timedelta(hours=-1))
        response = self.client.get("/email/verify/late-token", follow_redirects=False)
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/login")
        with self.SessionLocal() as db:
            self.assertEqual(db.get(User, user.id).email, "old@example.com")

        toast = self._session_toasts()[0]
        self.assertEqual(toast.data["type"], "error")
        self.assertEqual(toast.data["content"], "This email verification link has expired.")

    def test_unknown_token_toasts_invalid(self):
        response = self.client.get("/email/verify/nope", follow_redirects=False)
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/login")
        toast = self._session_toasts()[0]
        self.assertEqual(toast.data["title"], "Error")
        self.assertEqual(toast.data["content"], "Invalid email verification link.")

    def test_token_is_single_use(self):
        self._pending_user("once", timedelta(hours=1))
        with self.SessionLocal() as db:
            self.assertIs(verify_email_change(db, "once"), VerificationResult.SUCCESS)
            self.assertIs(verify_email_change(db, "once"), VerificationResult.INVALID)
