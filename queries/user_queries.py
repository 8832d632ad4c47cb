"""User profiles and roles."""

import logging
import re
from datetime import datetime
from typing import List, Dict, Optional
from sqlalchemy import func
from database import get_db, Profile
from database.models import USER_ROLES
from .audit_log import AuditLogger
from .errors import ValidationError, NotFoundError
from .utils import apply_fields

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class UserQueries:
    """Queries and mutations for user profiles."""

    @staticmethod
    def list_users(role: str = None, active_only: bool = False) -> List[Dict]:
        db = get_db()
        try:
            query = db.query(Profile)
            if role:
                query = query.filter(Profile.role == role)
            if active_only:
                query = query.filter(Profile.is_active.is_(True))
            users = query.order_by(Profile.email).all()
            return [UserQueries._format_user(u) for u in users]
        finally:
            db.close()

    @staticmethod
    def get_user(user_id: str) -> Optional[Dict]:
        db = get_db()
        try:
            user = db.query(Profile).filter_by(id=user_id).first()
            return UserQueries._format_user(user) if user else None
        finally:
            db.close()

    @staticmethod
    def get_user_by_email(email: str) -> Optional[Dict]:
        """Case-insensitive lookup by email."""
        db = get_db()
        try:
            user = db.query(Profile)\
                .filter(func.lower(Profile.email) == (email or '').strip().lower())\
                .first()
            return UserQueries._format_user(user) if user else None
        finally:
            db.close()

    @staticmethod
    def create_user(email: str, name: str = None, role: str = 'user') -> Dict:
        """
        Create a user profile.

        Raises:
            ValidationError: Invalid or already registered email, unknown role
        """
        email = (email or '').strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError(f"Invalid email address: {email or '(blank)'}")
        UserQueries._check_role(role)

        db = get_db()
        try:
            if db.query(Profile.id).filter(func.lower(Profile.email) == email).first():
                raise ValidationError(f"A user with email {email} already exists")
            user = Profile(email=email, name=name, role=role, is_active=True)
            db.add(user)
            db.commit()
            result = UserQueries._format_user(user)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Created user {email} ({role})")
        AuditLogger.log_create('user', result['id'], f"Created user {email} with role {role}")
        return result

    @staticmethod
    def update_user(user_id: str, data: Dict) -> Dict:
        """Update name, avatar, role or active flag."""
        if 'role' in data:
            UserQueries._check_role(data['role'])
        db = get_db()
        try:
            user = db.query(Profile).filter_by(id=user_id).first()
            if not user:
                raise NotFoundError(f"No user with id {user_id}")
            changed = apply_fields(user, data, ('name', 'avatar_url', 'role', 'is_active'))
            user.updated_at = datetime.now()
            db.commit()
            result = UserQueries._format_user(user)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('user', user_id, f"Updated user {result['email']}: {', '.join(changed) or 'no fields'}")
        return result

    @staticmethod
    def change_role(user_id: str, role: str) -> Dict:
        return UserQueries.update_user(user_id, {'role': role})

    @staticmethod
    def set_active(user_id: str, is_active: bool) -> Dict:
        return UserQueries.update_user(user_id, {'is_active': bool(is_active)})

    @staticmethod
    def delete_user(user_id: str) -> bool:
        """Delete a profile. The acting user cannot delete themselves."""
        current = AuditLogger.current_user()
        if current and current.get('id') == user_id:
            raise ValidationError("You cannot delete your own account")

        db = get_db()
        try:
            user = db.query(Profile).filter_by(id=user_id).first()
            if not user:
                return False
            email = user.email
            db.delete(user)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_delete('user', user_id, f"Deleted user {email}")
        return True

    @staticmethod
    def record_login(email: str) -> Dict:
        """
        Mark a user as logged in: stamps last_login, makes them the acting
        user for audit entries and logs the login.

        Raises:
            NotFoundError: No such user
            ValidationError: The account is deactivated
        """
        db = get_db()
        try:
            user = db.query(Profile)\
                .filter(func.lower(Profile.email) == (email or '').strip().lower())\
                .first()
            if not user:
                raise NotFoundError(f"No user with email {email}")
            if not user.is_active:
                raise ValidationError(f"User {user.email} is deactivated")
            user.last_login = datetime.now()
            db.commit()
            result = UserQueries._format_user(user)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.set_user(result)
        AuditLogger.log_login(result['id'])
        return result

    @staticmethod
    def record_logout():
        user = AuditLogger.current_user()
        if user:
            AuditLogger.log_logout(user['id'])
        AuditLogger.set_user(None)

    @staticmethod
    def _check_role(role: str):
        if role not in USER_ROLES:
            raise ValidationError(f"Invalid role '{role}'. Expected one of {', '.join(USER_ROLES)}")

    @staticmethod
    def _format_user(user: Profile) -> Dict:
        return {
            'id': user.id,
            'email': user.email,
            'name': user.name,
            'role': user.role,
            'is_active': bool(user.is_active),
            'avatar_url': user.avatar_url,
            'last_login': user.last_login,
            'created_at': user.created_at,
        }
