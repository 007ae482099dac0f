from webaudit.models.audit import AuditRecord  # noqa: F401
from webaudit.models.user import UserProfile  # noqa: F401
