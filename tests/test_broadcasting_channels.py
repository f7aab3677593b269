from tests.admin.base import *  # noqa: F401,F403

from tenant_admin.core.security import sign_channel_subscription
from tenant_admin.services.notifications.broadcasting import LogBroadcaster, NullBroadcaster, get_broadcaster
from tenant_admin.services.notifications.channels import (
    GLOBAL_CHANNEL,
    TARGET_SESSION,
    TARGET_TEAM,
    authorize_channel,
    is_public_channel,
    parse_channel,
    session_channel,
    team_channel,
)


class ChannelParsingTests(unittest.TestCase):
    def test_parse_known_channels(self):
        self.assertEqual(parse_channel(team_channel("abc")).kind, TARGET_TEAM)
        self.assertEqual(parse_channel(session_channel("s1")).identifier, "s1")
        self.assertEqual(parse_channel(GLOBAL_CHANNEL).channel, GLOBAL_CHANNEL)

    def test_parse_rejects_unknown_or_empty(self):
        self.assertIsNone(parse_channel("private-orders.1"))
        self.assertIsNone(parse_channel("private-notifications.user."))
        self.assertIsNone(parse_channel(""))

    def test_public_prefix(self):
        self.assertTrue(is_public_channel(session_channel("x")))
        self.assertFalse(is_public_channel(GLOBAL_CHANNEL))
        self.assertEqual(parse_channel(session_channel("x")).kind, TARGET_SESSION)


class ChannelAuthorizationTests(TenantAdminTestBase):
    def test_private_channels_need_matching_user(self):
        alice = self._create_user(name="Alice")
        bob = self._create_user(name="Bob")
        team = self._create_team("Ops", members=[alice])

        with self.SessionLocal() as db:
            alice_row = db.get(User, alice.id)
            bob_row = db.get(User, bob.id)
            self.assertTrue(authorize_channel(db, alice_row, user_channel(alice.uuid)))
            self.assertFalse(authorize_channel(db, bob_row, user_channel(alice.uuid)))
            self.assertTrue(authorize_channel(db, alice_row, team_channel(team.uuid)))
            self.assertFalse(authorize_channel(db, bob_row, team_channel(team.uuid)))
            self.assertTrue(authorize_channel(db, bob_row, GLOBAL_CHANNEL))
            self.assertFalse(authorize_channel(db, None, GLOBAL_CHANNEL))
            self.assertTrue(authorize_channel(db, None, session_channel("guest-session")))
            self.assertFalse(authorize_channel(db, alice_row, "presence-chat"))

    def test_deleted_team_channel_is_closed(self):
        alice = self._create_user(name="Alice")
        team = self._create_team("Ops", members=[alice])
        with self.SessionLocal() as db:
            db.get(Team, team.id).soft_delete()
            db.commit()
            self.assertFalse(authorize_channel(db, db.get(User, alice.id), team_channel(team.uuid)))

    def test_auth_endpoint_signs_allowed_subscriptions(self):
        alice = self._create_user(name="Alice")
        channel = user_channel(alice.uuid)
        response = self.client.post(
            "/broadcasting/auth",
            headers=self._auth_headers(alice),
            json={"socket_id": "123.456", "channel_name": channel},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["auth"],
            sign_channel_subscription(settings.BROADCAST_AUTH_SECRET, "123.456", channel),
        )

    def test_auth_endpoint_rejects_foreign_and_anonymous_private_channels(self):
        alice = self._create_user(name="Alice")
        bob = self._create_user(name="Bob")
        body = {"socket_id": "1.2", "channel_name": user_channel(alice.uuid)}

        self.assertEqual(self.client.post("/broadcasting/auth", headers=self._auth_headers(bob), json=body).status_code, 403)
        self.assertEqual(self.client.post("/broadcasting/auth", json=body).status_code, 403)

        guest = self.client.post("/broadcasting/auth", json={"socket_id": "1.2", "channel_name": session_channel("abc")})
        self.assertEqual(guest.status_code, 200)

        missing = self.client.post("/broadcasting/auth", json={"socket_id": " ", "channel_name": GLOBAL_CHANNEL})
        self.assertEqual(missing.status_code, 400)


class BroadcasterDriverTests(unittest.TestCase):
    def tearDown(self):
        set_broadcaster(None)

    def test_driver_selection(self):
        original = settings.BROADCAST_DRIVER
        try:
            set_broadcaster(None)
            settings.BROADCAST_DRIVER = "log"
            self.assertIsInstance(get_broadcaster(), LogBroadcaster)

            set_broadcaster(None)
            settings.BROADCAST_DRIVER = "null"
            self.assertIsInstance(get_broadcaster(), NullBroadcaster)

            set_broadcaster(None)
            settings.BROADCAST_DRIVER = "carrier-pigeon"
            with self.assertRaises(ValueError):
                get_broadcaster()
        finally:
            settings.BROADCAST_DRIVER = original

    def test_in_memory_broadcaster_filters_by_event_and_channel(self):
        memory = InMemoryBroadcaster()
        memory.publish("a", EVENT_TOAST_RECEIVED, {"title": "x"})
        memory.publish("b", EVENT_NOTIFICATION_CHANGED, {"action": "created"})
        self.assertEqual(len(memory.of(EVENT_TOAST_RECEIVED)), 1)
        self.assertEqual(memory.of(EVENT_NOTIFICATION_CHANGED, "a"), [])
        memory.clear()
        self.assertEqual(memory.events, [])
