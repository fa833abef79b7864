from zvote_toolkit.audit.engine import TallyEngine
from zvote_toolkit.audit.models import AuditReport, CountResult
from zvote_toolkit.audit.service import AuditService

__all__ = ["AuditReport", "AuditService", "CountResult", "TallyEngine"]
