"""
Audit trail for record changes.

Every mutation in the query layer calls one of the AuditLogger helpers
after its own transaction commits. Audit rows are written in a separate
session, and a failure to write one is logged rather than raised so it
can never undo or interrupt the change being audited.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from database import get_db, AuditLog

logger = logging.getLogger(__name__)


class AuditLogger:
    """Writes audit_logs rows attributed to the current user."""

    _current_user: Optional[Dict] = None

    @classmethod
    def set_user(cls, user: Optional[Dict]):
        """
        Set the acting user for subsequent entries.

        Args:
            user: Dict with at least 'id' and 'email' (as returned by
                UserQueries), or None to act as 'System'.
        """
        cls._current_user = user

    @classmethod
    def current_user(cls) -> Optional[Dict]:
        return cls._current_user

    @classmethod
    def record(cls, action: str, entity: str, entity_id, details: str = ''):
        user = cls._current_user
        if not user and action != 'login':
            logger.warning("No user set for audit log entry: %s %s", action, entity)

        db = get_db()
        try:
            db.add(AuditLog(
                username=(user or {}).get('email') or 'System',
                user_id=(user or {}).get('id'),
                action=action,
                entity=entity,
                entity_id=str(entity_id),
                details=details,
            ))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error recording audit log: {str(e)}")
        finally:
            db.close()

    @classmethod
    def log_create(cls, entity, entity_id, details):
        cls.record('create', entity, entity_id, details)

    @classmethod
    def log_update(cls, entity, entity_id, details):
        cls.record('update', entity, entity_id, details)

    @classmethod
    def log_delete(cls, entity, entity_id, details):
        cls.record('delete', entity, entity_id, details)

    @classmethod
    def log_system(cls, entity, entity_id, details):
        cls.record('system', entity, entity_id, details)

    @classmethod
    def log_login(cls, user_id, details="User logged in"):
        cls.record('login', 'auth', user_id, details)

    @classmethod
    def log_logout(cls, user_id, details="User logged out"):
        cls.record('logout', 'auth', user_id, details)

    @classmethod
    def log_view(cls, entity, entity_id, details):
        cls.record('view', entity, entity_id, details)

    @classmethod
    def log_restore(cls, entity, entity_id, details):
        cls.record('restore', entity, entity_id, details)


class AuditLogQueries:
    """Read side of the audit trail."""

    @staticmethod
    def list_logs(action: str = None, entity: str = None, username: str = None,
                  start: datetime = None, end: datetime = None,
                  limit: int = 100) -> List[Dict]:
        """
        Most recent audit entries, newest first.

        Args:
            action: Only this action (e.g. 'create', 'data_copy')
            entity: Only this entity type (e.g. 'student')
            username: Substring match on the acting user's email
            start: Entries at or after this time
            end: Entries at or before this time
            limit: Maximum rows to return (default 100)

        Example:
            >>> for entry in AuditLogQueries.list_logs(entity='sponsor', limit=10):
            ...     print(entry['created_at'], entry['action'], entry['details'])
        """
        db = get_db()
        try:
            query = db.query(AuditLog)
            if action:
                query = query.filter(AuditLog.action == action)
            if entity:
                query = query.filter(AuditLog.entity == entity)
            if username:
                query = query.filter(AuditLog.username.ilike(f"%{username}%"))
            if start:
                query = query.filter(AuditLog.created_at >= start)
            if end:
                query = query.filter(AuditLog.created_at <= end)

            logs = query.order_by(AuditLog.created_at.desc()).limit(limit).all()
            return [AuditLogQueries._format_log(log) for log in logs]
        finally:
            db.close()

    @staticmethod
    def _format_log(log: AuditLog) -> Dict:
        return {
            'id': log.id,
            'username': log.username,
            'user_id': log.user_id,
            'action': log.action,
            'entity': log.entity,
            'entity_id': log.entity_id,
            'details': log.details,
            'ip_address': log.ip_address,
            'created_at': log.created_at,
        }
