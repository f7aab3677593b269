from tests.admin.base import *  # noqa: F401,F403

from tenant_admin.core.flash import decode_cookie_value, encode_cookie_value, sign_flash, unsign_flash
from tenant_admin.services.preferences import detect_locale, is_valid_timezone


class PreferenceHelpersTests(unittest.TestCase):
    def test_detect_locale_respects_quality_and_language_prefix(self):
        self.assertEqual(detect_locale("fr-FR,fr;q=0.9,en;q=0.8"), "fr_FR")
        self.assertEqual(detect_locale("de;q=1.0, en-GB;q=0.5"), "en_US")
        self.assertEqual(detect_locale("en;q=0.2, fr-CA;q=0.7"), "fr_FR")
        self.assertIsNone(detect_locale("de, ja"))
        self.assertIsNone(detect_locale(None))

    def test_timezone_validation(self):
        self.assertTrue(is_valid_timezone("Europe/Paris"))
        self.assertTrue(is_valid_timezone("utc"))
        self.assertFalse(is_valid_timezone("Mars/Olympus"))
        self.assertFalse(is_valid_timezone(""))

    def test_cookie_value_survives_encoding(self):
        value = encode_cookie_value({"theme": "dark", "locale": "fr_FR"})
        self.assertNotIn("=", value)
        self.assertEqual(decode_cookie_value(value), {"theme": "dark", "locale": "fr_FR"})
        self.assertEqual(decode_cookie_value(f'"{value}"'), {"theme": "dark", "locale": "fr_FR"})
        self.assertEqual(decode_cookie_value("not base64 !"), {})


class PreferencesEndpointTests(TenantAdminTestBase):
    def test_guest_theme_goes_to_cookie_and_redirects_back(self):
        response = self.client.post(
            "/preferences/theme",
            data={"theme": "dark"},
            headers={"Referer": "http://testserver/users?page=2"},
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/users?page=2")
        self.assertEqual(decode_cookie_value(response.cookies.get(settings.PREFERENCES_COOKIE_NAME))["theme"], "dark")

        flashed = self.client.get("/flash")
        self.assertEqual(flashed.json(), {"status": "Theme updated successfully."})

    def test_invalid_theme_flashes_error_without_saving(self):
        response = self.client.post("/preferences/theme", data={"theme": "neon"}, follow_redirects=False)
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/")
        self.assertIsNone(response.cookies.get(settings.PREFERENCES_COOKIE_NAME))
        self.assertEqual(self.client.get("/flash").json(), {"errors": {"theme": "Invalid theme selected."}})

    def test_foreign_referer_is_not_followed(self):
        response = self.client.post(
            "/preferences/theme",
            data={"theme": "dark"},
            headers={"Referer": "https://evil.example/phish"},
            follow_redirects=False,
        )
        self.assertEqual(response.headers["location"], "/")

    def test_locale_change_confirms_in_new_language(self):
        response = self.client.post("/preferences/locale", data={"locale": "fr_FR"}, follow_redirects=False)
        self.assertEqual(response.status_code, 303)
        self.assertEqual(self.client.get("/flash").json(), {"status": "Langue mise à jour avec succès."})

        invalid = self.client.post("/preferences/locale", data={"locale": "xx_XX"}, follow_redirects=False)
        self.assertEqual(invalid.status_code, 303)
        self.assertEqual(self.client.get("/flash").json(), {"errors": {"locale": "Paramètre régional sélectionné invalide."}})

    def test_authenticated_theme_is_saved_on_user(self):
        user = self._create_user()
        response = self.client.post(
            "/preferences/theme",
            data={"theme": "dark"},
            headers=self._auth_headers(user),
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 303)
        self.assertIsNone(response.cookies.get(settings.PREFERENCES_COOKIE_NAME))
        with self.SessionLocal() as db:
            self.assertEqual(db.get(User, user.id).frontend_preferences, {"theme": "dark"})

    def test_login_merges_guest_preferences_under_saved_ones(self):
        user = self._create_user(email="merge@example.com")
        with self.SessionLocal() as db:
            db.get(User, user.id).frontend_preferences = {"locale": "fr_FR"}
            db.commit()

        self.client.cookies.set(
            settings.PREFERENCES_COOKIE_NAME,
            encode_cookie_value({"locale": "en_US", "theme": "dark"}),
        )
        response = self.client.post("/api/auth/login", json={"login": "merge@example.com", "password": "secret-pass"})
        self.assertEqual(response.status_code, 200)

        with self.SessionLocal() as db:
            saved = db.get(User, user.id)
            self.assertEqual(saved.frontend_preferences["locale"], "fr_FR")
            self.assertEqual(saved.frontend_preferences["theme"], "dark")
            self.assertEqual(saved.frontend_preferences["timezone"], settings.DEFAULT_TIMEZONE)
            self.assertIsNotNone(saved.last_login_at)
        cookie = decode_cookie_value(response.cookies.get(settings.PREFERENCES_COOKIE_NAME))
        self.assertEqual(cookie["locale"], "fr_FR")


class FlashCookieTests(TenantAdminTestBase):
    def test_signed_flash_round_trips(self):
        self.client.cookies.set(settings.FLASH_COOKIE_NAME, sign_flash({"status": "Saved."}))
        self.assertEqual(self.client.get("/flash").json(), {"status": "Saved."})

    def test_unsigned_or_foreign_values_are_dropped(self):
        self.client.cookies.set(settings.FLASH_COOKIE_NAME, encode_cookie_value({"status": "Forged."}))
        self.assertEqual(self.client.get("/flash").json(), {})

        header, _, signature = sign_flash({"status": "Saved."}).split(".")
        forged_payload = sign_flash({"status": "Forged."}).split(".")[1]
        tampered = ".".join([header, forged_payload, signature])
        self.assertEqual(unsign_flash(tampered), {})
        access_token = create_jwt({"sub": "1"}, settings.JWT_SECRET, timedelta(minutes=5))
        self.assertEqual(unsign_flash(access_token), {})
        other_secret = create_jwt({"purpose": "flash", "data": {"status": "x"}}, "another-secret", timedelta(minutes=5))
        self.assertEqual(unsign_flash(other_secret), {})
