from tests.admin.base import *  # noqa: F401,F403

from tenant_admin.auth import permissions as perms
from tenant_admin.services.notifications.channels import GLOBAL_CHANNEL, team_channel


class AdminDashboardTests(TenantAdminTestBase):
    def test_dashboard_requires_permission(self):
        user = self._create_user()
        self.assertEqual(self.client.get("/api/admin/dashboard", headers=self._auth_headers(user)).status_code, 403)

    def test_dashboard_returns_charts_and_metrics(self):
        viewer = self._create_user(permissions=[perms.VIEW_DASHBOARD])
        self._create_user(name="Dormant", is_active=False)
        self._create_team("Ops")
        self._create_notification(viewer)

        response = self.client.get("/api/admin/dashboard", headers=self._auth_headers(viewer))
        self.assertEqual(response.status_code, 200)
        body = response.json()

        registrations = body["charts"]["registrations"]
        self.assertEqual(registrations["type"], "line")
        self.assertEqual(len(registrations["data"]["labels"]), 6)
        self.assertEqual(registrations["data"]["datasets"][0]["data"][-1], 2)
        self.assertTrue(registrations["options"]["plugins"]["title"]["display"])

        status = body["charts"]["status"]
        self.assertEqual(status["type"], "doughnut")
        self.assertEqual(status["data"]["datasets"][0]["data"], [1, 1])

        metrics = {m["label"]: m for m in body["metrics"]}
        self.assertEqual(metrics["Total users"]["value"], 2)
        self.assertEqual(metrics["Total users"]["trend"], "up")
        self.assertEqual(metrics["Teams"]["value"], 1)
        self.assertEqual(metrics["Unread notifications"]["value"], 1)
        self.assertEqual(metrics["Active users"]["variant"], "outline")


class AdminSendNotificationTests(TenantAdminTestBase):
    def test_send_requires_permission(self):
        user = self._create_user()
        response = self.client.post(
            "/api/admin/notifications/send",
            headers=self._auth_headers(user),
            json={"title": "Hi"},
        )
        self.assertEqual(response.status_code, 403)

    def test_send_to_team_persists_for_members_and_broadcasts(self):
        sender = self._create_user(name="Sender", permissions=[perms.SEND_NOTIFICATIONS])
        first = self._create_user(name="First")
        second = self._create_user(name="Second")
        team = self._create_team("Ops", members=[first, second])

        response = self.client.post(
            "/api/admin/notifications/send",
            headers=self._auth_headers(sender),
            json={"title": "Deploy", "content": "Tonight", "type": "warning", "target": "team", "target_id": team.uuid},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["toast"]["type"], "warning")

        toasts = self.broadcaster.of(EVENT_TOAST_RECEIVED, team_channel(team.uuid))
        self.assertEqual(len(toasts), 1)
        self.assertEqual(toasts[0].data["title"], "Deploy")

        with self.SessionLocal() as db:
            owners = sorted(n.notifiable_id for n in db.query(Notification).all())
        self.assertEqual(owners, sorted([first.id, second.id]))
        self.assertEqual(self._changes(first), ["created"])
        self.assertEqual(self._changes(sender), [])

    def test_send_global_reaches_active_users_only(self):
        sender = self._create_user(permissions=[perms.SEND_NOTIFICATIONS])
        self._create_user(name="Active")
        self._create_user(name="Inactive", is_active=False)

        response = self.client.post(
            "/api/admin/notifications/send",
            headers=self._auth_headers(sender),
            json={"title": "Maintenance", "target": "global"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self.broadcaster.of(EVENT_TOAST_RECEIVED, GLOBAL_CHANNEL)), 1)
        with self.SessionLocal() as db:
            self.assertEqual(db.query(Notification).count(), 2)

    def test_unknown_type_and_missing_team_are_rejected(self):
        sender = self._create_user(permissions=[perms.SEND_NOTIFICATIONS])
        headers = self._auth_headers(sender)
        bad_type = self.client.post(
            "/api/admin/notifications/send",
            headers=headers,
            json={"title": "Hi", "type": "loud"},
        )
        self.assertEqual(bad_type.status_code, 400)

        missing_team = self.client.post(
            "/api/admin/notifications/send",
            headers=headers,
            json={"title": "Hi", "target": "team", "target_id": str(uuid4())},
        )
        self.assertEqual(missing_team.status_code, 404)
        self.assertEqual(self.broadcaster.events, [])
