from copilot_gateway.audit.interface import AuditStore, InMemoryAuditStore
from copilot_gateway.audit.jsonl_store import JSONLAuditStore
from copilot_gateway.audit.logger import REDACTED, AuditLogger, sanitize_payload
from copilot_gateway.audit.models import AuditCategory, AuditLogEntry, AuditLogPage

__all__ = [
    "REDACTED",
    "AuditCategory",
    "AuditLogEntry",
    "AuditLogPage",
    "AuditLogger",
    "AuditStore",
    "InMemoryAuditStore",
    "JSONLAuditStore",
    "sanitize_payload",
]
