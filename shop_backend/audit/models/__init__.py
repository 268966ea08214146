# audit/models/__init__.py

from .audit_entry import AuditEntry

__all__ = ["AuditEntry"]
