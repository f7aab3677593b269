# Import every model so Base.metadata and relationship() strings resolve.
from tenant_admin.models.team import Team, team_user  # noqa: F401
from tenant_admin.models.role import Permission, Role, permission_role, permission_user, role_user  # noqa: F401
from tenant_admin.models.user import User  # noqa: F401
from tenant_admin.models.notification import Notification  # noqa: F401
from tenant_admin.models.email_template import EmailTemplate, EmailTranslation, email_template_team  # noqa: F401
