from tests.admin.base import *  # noqa: F401,F403

from tenant_admin.auth import permissions as perms

TEMPLATE_PERMISSIONS = [
    perms.VIEW_EMAIL_TEMPLATES,
    perms.CREATE_EMAIL_TEMPLATES,
    perms.EDIT_EMAIL_TEMPLATES,
    perms.DELETE_EMAIL_TEMPLATES,
]


class AdminEmailTemplatesTests(TenantAdminTestBase):
    def _payload(self, key="welcome", teams=(), html="<p>Hello {{ user.name }}</p>"):
        return {
            "key": key,
            "name": "Welcome mail",
            "teams": list(teams),
            "translations": [
                {"locale": "en_US", "subject": "Welcome to {{ app.name }}", "html_content": html},
            ],
        }

    def test_create_generates_text_part_and_preview_resolves_tags(self):
        admin = self._create_user(name="Ada Lovelace", permissions=TEMPLATE_PERMISSIONS)
        headers = self._auth_headers(admin)

        created = self.client.post("/api/admin/email-templates", headers=headers, json=self._payload())
        self.assertEqual(created.status_code, 201)
        body = created.json()
        self.assertEqual(body["translations"][0]["text_content"], "Hello {{ user.name }}")

        preview = self.client.post(
            f"/api/admin/email-templates/{body['id']}/preview",
            headers=headers,
            json={"locale": "fr_FR"},
        )
        self.assertEqual(preview.status_code, 200)
        data = preview.json()
        # falls back to en_US when the locale has no translation
        self.assertEqual(data["locale"], "en_US")
        self.assertEqual(data["subject"], f"Welcome to {settings.APP_NAME}")
        self.assertEqual(data["html"], "<p>Hello Ada Lovelace</p>")

    def test_unknown_merge_tags_and_locales_are_rejected(self):
        admin = self._create_user(permissions=TEMPLATE_PERMISSIONS)
        headers = self._auth_headers(admin)

        bad_tag = self.client.post(
            "/api/admin/email-templates",
            headers=headers,
            json=self._payload(html="<p>{{ user.password_hash }} {{ order.total }}</p>"),
        )
        self.assertEqual(bad_tag.status_code, 400)
        self.assertIn("user.password_hash", bad_tag.json()["detail"])
        self.assertIn("order.total", bad_tag.json()["detail"])

        payload = self._payload()
        payload["translations"][0]["locale"] = "xx_XX"
        self.assertEqual(self.client.post("/api/admin/email-templates", headers=headers, json=payload).status_code, 400)

    def test_team_bound_templates_are_hidden_from_other_tenants(self):
        root = self._create_user(super_admin=True)
        team_a = self._create_team("Tenant A")
        team_b = self._create_team("Tenant B")
        member_a = self._create_user(name="A member", permissions=TEMPLATE_PERMISSIONS, teams=[team_a])

        for key, teams in (("shared", []), ("only-a", [team_a.uuid]), ("only-b", [team_b.uuid])):
            response = self.client.post(
                "/api/admin/email-templates",
                headers=self._auth_headers(root),
                json=self._payload(key=key, teams=teams),
            )
            self.assertEqual(response.status_code, 201)

        listing = self.client.get("/api/admin/email-templates", headers=self._auth_headers(member_a))
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(sorted(row["key"] for row in listing.json()["rows"]), ["only-a", "shared"])

        root_listing = self.client.get("/api/admin/email-templates", headers=self._auth_headers(root))
        self.assertEqual(root_listing.json()["meta"]["total"], 3)

        with self.SessionLocal() as db:
            hidden = db.query(EmailTemplate).filter(EmailTemplate.key == "only-b").one()
            hidden_id = hidden.uuid
        self.assertEqual(
            self.client.get(f"/api/admin/email-templates/{hidden_id}", headers=self._auth_headers(member_a)).status_code,
            403,
        )

    def test_system_templates_cannot_be_deleted(self):
        admin = self._create_user(permissions=TEMPLATE_PERMISSIONS)
        with self.SessionLocal() as db:
            template = EmailTemplate(key="email_change", name="Email change", is_system=True)
            template.translations = [EmailTranslation(locale="en_US", subject="S", html_content="<p>x</p>")]
            db.add(template)
            db.commit()
            template_id = template.uuid

        response = self.client.delete(f"/api/admin/email-templates/{template_id}", headers=self._auth_headers(admin))
        self.assertEqual(response.status_code, 403)


class AdminEmailLayoutsTests(TenantAdminTestBase):
    def setUp(self):
        super().setUp()
        self.admin = self._create_user(name="Ada", permissions=TEMPLATE_PERMISSIONS)
        self.headers = self._auth_headers(self.admin)

    def _post(self, key, html, **extra):
        payload = {
            "key": key,
            "name": key.title(),
            "translations": [{"locale": "en_US", "subject": f"{key} subject", "html_content": html}],
        }
        payload.update(extra)
        return self.client.post("/api/admin/email-templates", headers=self.headers, json=payload)

    def _preview(self, template_id):
        response = self.client.post(f"/api/admin/email-templates/{template_id}/preview", headers=self.headers, json={})
        self.assertEqual(response.status_code, 200)
        return response.json()

    def test_layout_requires_a_slot(self):
        response = self._post("plain", "<div>No slot</div>", kind="layout")
        self.assertEqual(response.status_code, 400)
        self.assertIn("{{ slot }}", response.json()["detail"])

    def test_content_uses_default_layout_unless_it_picks_one(self):
        default = self._post("brand", "<main>{{ slot }}</main>", kind="layout", is_default=True)
        self.assertEqual(default.status_code, 201)
        self.assertTrue(default.json()["is_default"])
        other = self._post("minimal", "<section>{{ slot }}</section>", kind="layout")
        self.assertEqual(other.status_code, 201)

        plain = self._post("welcome", "<p>Hi {{ user.name }}</p>")
        self.assertEqual(plain.status_code, 201)
        self.assertEqual(plain.json()["kind"], "content")
        self.assertIsNone(plain.json()["layout"])
        self.assertEqual(self._preview(plain.json()["id"])["html"], "<main><p>Hi Ada</p></main>")

        picked = self._post("digest", "<p>Digest</p>", layout=other.json()["id"])
        self.assertEqual(picked.status_code, 201)
        self.assertEqual(picked.json()["layout"], other.json()["id"])
        preview = self._preview(picked.json()["id"])
        self.assertEqual(preview["html"], "<section><p>Digest</p></section>")
        self.assertEqual(preview["text"], "Digest")

    def test_only_one_default_layout(self):
        first = self._post("first", "{{ slot }}", kind="layout", is_default=True).json()
        self._post("second", "{{ slot }}", kind="layout", is_default=True)
        with self.SessionLocal() as db:
            defaults = db.query(EmailTemplate).filter(EmailTemplate.is_default.is_(True)).all()
            self.assertEqual([t.key for t in defaults], ["second"])
        self.assertFalse(
            self.client.get(f"/api/admin/email-templates/{first['id']}", headers=self.headers).json()["is_default"]
        )

    def test_invalid_layout_combinations(self):
        layout = self._post("brand", "{{ slot }}", kind="layout").json()
        content = self._post("welcome", "<p>Hi</p>").json()

        self.assertEqual(self._post("x1", "<p>x</p>", is_default=True).status_code, 400)
        self.assertEqual(self._post("x2", "<p>x</p>", layout=content["id"]).status_code, 400)
        self.assertEqual(self._post("x3", "{{ slot }}", kind="layout", layout=layout["id"]).status_code, 400)
        self.assertEqual(self._post("x4", "<p>x</p>", kind="banner").status_code, 422)

        self._post("uses-brand", "<p>x</p>", layout=layout["id"])
        demote = self.client.put(
            f"/api/admin/email-templates/{layout['id']}",
            headers=self.headers,
            json={
                "key": "brand",
                "name": "Brand",
                "translations": [{"locale": "en_US", "subject": "s", "html_content": "<p>x</p>"}],
            },
        )
        self.assertEqual(demote.status_code, 400)

    def test_deleting_a_layout_detaches_its_contents(self):
        layout = self._post("brand", "<main>{{ slot }}</main>", kind="layout").json()
        content = self._post("welcome", "<p>Hi</p>", layout=layout["id"]).json()

        self.assertEqual(self.client.delete(f"/api/admin/email-templates/{layout['id']}", headers=self.headers).status_code, 200)
        detail = self.client.get(f"/api/admin/email-templates/{content['id']}", headers=self.headers).json()
        self.assertIsNone(detail["layout"])
        self.assertEqual(self._preview(content["id"])["html"], "<p>Hi</p>")

    def test_preheader_is_stored_and_resolved(self):
        created = self._post(
            "welcome",
            "<p>Hi</p>",
            translations=[
                {"locale": "en_US", "subject": "s", "preheader": "Hello {{ user.name }}", "html_content": "<p>Hi</p>"}
            ],
        ).json()
        self.assertEqual(created["translations"][0]["preheader"], "Hello {{ user.name }}")
        self.assertEqual(self._preview(created["id"])["preheader"], "Hello Ada")

    def test_all_teams_flag_controls_visibility(self):
        team = self._create_team("Tenant A")
        member = self._create_user(permissions=TEMPLATE_PERMISSIONS, teams=[team])
        root = self._create_user(super_admin=True)
        root_headers = self._auth_headers(root)
        for key, extra in (
            ("open", {}),
            ("closed", {"all_teams": False}),
            ("everyone", {"all_teams": True, "teams": [team.uuid]}),
        ):
            payload = {
                "key": key,
                "name": key,
                "translations": [{"locale": "en_US", "subject": "s", "html_content": "<p>x</p>"}],
            }
            payload.update(extra)
            self.assertEqual(self.client.post("/api/admin/email-templates", headers=root_headers, json=payload).status_code, 201)

        listing = self.client.get("/api/admin/email-templates", headers=self._auth_headers(member))
        self.assertEqual(sorted(row["key"] for row in listing.json()["rows"]), ["everyone", "open"])
