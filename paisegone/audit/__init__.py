"""Audit logging package."""

from paisegone.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
