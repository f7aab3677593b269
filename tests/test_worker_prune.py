from unittest.mock import patch

from tests.admin.base import *  # noqa: F401,F403

from tenant_admin.workers.celery_app import celery_app
from tenant_admin.workers.tasks.notifications import prune_read, prune_read_notifications

NOW = datetime.now(timezone.utc).replace(microsecond=0)


class PruneReadNotificationsTests(TenantAdminTestBase):
    def setUp(self):
        super().setUp()
        self.user = self._create_user()
        self.old_read = self._create_notification(self.user, title="Old read", read_at=NOW - timedelta(days=45))
        self.recent_read = self._create_notification(self.user, title="Recent read", read_at=NOW - timedelta(days=3))
        self.old_unread = self._create_notification(
            self.user, title="Old unread", created_at=NOW - timedelta(days=90)
        )
        self.broadcaster.clear()

    def _remaining_titles(self):
        with self.SessionLocal() as db:
            return sorted(row.data["title"] for row in db.query(Notification).all())

    def test_only_old_read_rows_are_removed(self):
        with self.SessionLocal() as db:
            result = prune_read(db, older_than_days=30, now=NOW)
        self.assertEqual(result["deleted"], 1)
        self.assertEqual(result["cutoff"], (NOW - timedelta(days=30)).isoformat())
        self.assertEqual(self._remaining_titles(), ["Old unread", "Recent read"])

        events = self.broadcaster.of(EVENT_NOTIFICATION_CHANGED, user_channel(self.user.uuid))
        self.assertEqual([e.data["action"] for e in events], ["deleted", "forceDeleted"])
        self.assertTrue(all(e.data["notificationId"] == self.old_read.uuid for e in events))

    def test_cutoff_follows_settings(self):
        original = settings.NOTIFICATIONS_PRUNE_READ_DAYS
        settings.NOTIFICATIONS_PRUNE_READ_DAYS = 2
        try:
            with self.SessionLocal() as db:
                result = prune_read(db, now=NOW)
        finally:
            settings.NOTIFICATIONS_PRUNE_READ_DAYS = original
        self.assertEqual(result["deleted"], 2)
        self.assertEqual(self._remaining_titles(), ["Old unread"])

    def test_nothing_to_prune(self):
        with self.SessionLocal() as db:
            result = prune_read(db, older_than_days=365, now=NOW)
        self.assertEqual(result["deleted"], 0)
        self.assertEqual(self.broadcaster.events, [])

    def test_task_runs_on_its_own_session(self):
        with patch("tenant_admin.workers.tasks.notifications.SessionLocal", self.SessionLocal):
            result = prune_read_notifications()
        # recent read row is younger than the default window
        self.assertEqual(result["deleted"], 1)
        self.assertEqual(self._remaining_titles(), ["Old unread", "Recent read"])


class CelerySettingsTests(unittest.TestCase):
    def test_prune_is_scheduled_daily(self):
        entry = celery_app.conf.beat_schedule["prune_read_notifications"]
        self.assertEqual(entry["task"], prune_read_notifications.name)
        self.assertEqual(entry["schedule"], 86400.0)
        self.assertIn("tenant_admin.workers.tasks.notifications.prune_read_notifications", celery_app.tasks)
