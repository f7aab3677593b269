import unittest

from fastapi import HTTPException

from tenant_admin.auth import permissions as perms
from tenant_admin.auth.policies import authorize, can, is_super_admin, policy_for
from tenant_admin.core.config import settings
from tenant_admin.models.email_template import EmailTemplate
from tenant_admin.models.notification import Notification
from tenant_admin.models.role import Permission, Role
from tenant_admin.models.team import Team
from tenant_admin.models.user import User


def _user(user_id: int, permissions=(), roles=(), teams=()) -> User:
    user = User(id=user_id, name=f"User {user_id}")
    user.direct_permissions = [Permission(name=name) for name in permissions]
    user.roles = list(roles)
    user.teams = list(teams)
    return user


class PolicyTests(unittest.TestCase):
    def setUp(self):
        self._super_admin_user_id = settings.SUPER_ADMIN_USER_ID
        settings.SUPER_ADMIN_USER_ID = 1

    def tearDown(self):
        settings.SUPER_ADMIN_USER_ID = self._super_admin_user_id

    def test_configured_user_id_bypasses_every_check(self):
        root = _user(1)
        self.assertTrue(is_super_admin(root))
        self.assertTrue(can(root, "force_delete", _user(7)))
        self.assertTrue(can(root, "send", Notification))

        settings.SUPER_ADMIN_USER_ID = 0
        self.assertFalse(can(root, "view_any", User))

    def test_super_admin_role_bypasses_checks(self):
        admin = _user(5, roles=[Role(name=settings.SUPER_ADMIN_ROLE)])
        self.assertTrue(can(admin, "delete", EmailTemplate(key="k", name="K", is_system=True)))

        retired = Role(name=settings.SUPER_ADMIN_ROLE)
        retired.soft_delete()
        self.assertFalse(is_super_admin(_user(6, roles=[retired])))
        self.assertFalse(is_super_admin(None))

    def test_permissions_come_from_direct_grants_and_roles(self):
        editor = Role(name="editor")
        editor.permissions = [Permission(name=perms.EDIT_USERS)]
        user = _user(5, permissions=[perms.VIEW_USERS], roles=[editor])

        self.assertTrue(can(user, "view_any", User))
        self.assertTrue(can(user, "update", _user(8)))
        self.assertFalse(can(user, "create", User))
        self.assertFalse(can(user, "unknown_ability", User))
        self.assertFalse(can(None, "view_any", User))

    def test_users_cannot_manage_themselves(self):
        user = _user(5, permissions=[perms.EDIT_USERS, perms.DELETE_USERS, perms.ACTIVATE_USERS])
        self.assertFalse(can(user, "update", user))
        self.assertFalse(can(user, "delete", user))
        self.assertFalse(can(user, "activate", user))
        # viewing a user record, even your own, needs the permission
        self.assertFalse(can(user, "view", user))
        self.assertTrue(can(_user(6, permissions=[perms.VIEW_USERS]), "view", _user(6)))

    def test_super_admins_cannot_be_deleted_by_others(self):
        user = _user(5, permissions=[perms.DELETE_USERS, perms.FORCE_DELETE_USERS])
        target = _user(9, roles=[Role(name=settings.SUPER_ADMIN_ROLE)])
        self.assertFalse(can(user, "delete", target))
        self.assertFalse(can(user, "force_delete", target))

    def test_super_admin_role_is_locked(self):
        user = _user(5, permissions=[perms.EDIT_ROLES, perms.DELETE_ROLES])
        locked = Role(name=settings.SUPER_ADMIN_ROLE)
        self.assertFalse(can(user, "update", locked))
        self.assertFalse(can(user, "delete", locked))
        self.assertTrue(can(user, "update", Role(name="editor")))

    def test_team_members_can_view_their_team(self):
        team = Team(uuid="team-1", name="Ops")
        member = _user(5, teams=[team])
        self.assertTrue(can(member, "view", team))
        self.assertFalse(can(_user(6), "view", team))
        self.assertFalse(can(member, "update", team))

    def test_email_templates_follow_team_visibility(self):
        team_a = Team(uuid="a", name="A")
        team_b = Team(uuid="b", name="B")
        user = _user(5, permissions=[perms.VIEW_EMAIL_TEMPLATES, perms.DELETE_EMAIL_TEMPLATES], teams=[team_a])
        shared = EmailTemplate(key="shared", name="Shared", all_teams=True)
        only_a = EmailTemplate(key="a", name="A", all_teams=False, teams=[team_a])
        only_b = EmailTemplate(key="b", name="B", all_teams=False, teams=[team_b])
        unassigned = EmailTemplate(key="none", name="None", all_teams=False)
        system = EmailTemplate(key="sys", name="Sys", all_teams=True, is_system=True)

        self.assertTrue(can(user, "view", shared))
        self.assertTrue(can(user, "view", only_a))
        self.assertFalse(can(user, "view", only_b))
        self.assertFalse(can(user, "view", unassigned))
        # all_teams wins over the team list
        self.assertTrue(can(user, "view", EmailTemplate(key="open", name="Open", all_teams=True, teams=[team_b])))
        self.assertTrue(can(user, "delete", only_a))
        self.assertFalse(can(user, "delete", system))

    def test_notifications_belong_to_their_owner(self):
        owner = _user(5)
        item = Notification(notifiable_id=5, data={})
        self.assertTrue(can(owner, "view", item))
        self.assertTrue(can(owner, "delete", item))
        self.assertFalse(can(_user(6), "update", item))
        self.assertFalse(can(owner, "send", Notification))

    def test_authorize_raises_forbidden(self):
        with self.assertRaises(HTTPException) as ctx:
            authorize(_user(5), "view_any", User)
        self.assertEqual(ctx.exception.status_code, 403)
        authorize(_user(5, permissions=[perms.VIEW_USERS]), "view_any", User)

    def test_unknown_subject(self):
        with self.assertRaises(LookupError):
            policy_for(Permission)
        self.assertIs(policy_for(User), policy_for(_user(3)))
