from fastapi import APIRouter
from tenant_admin.api.admin import dashboard, email_templates, notifications, roles, teams, users

router = APIRouter()
router.include_router(users.router, prefix="/users", tags=["AdminUsers"])
router.include_router(teams.router, prefix="/teams", tags=["AdminTeams"])
router.include_router(roles.router, prefix="/roles", tags=["AdminRoles"])
router.include_router(email_templates.router, prefix="/email-templates", tags=["AdminEmailTemplates"])
router.include_router(notifications.router, prefix="/notifications", tags=["AdminNotifications"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["AdminDashboard"])
