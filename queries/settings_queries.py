"""Application and email settings (one row each)."""

import logging
import os
import re
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.exc import IntegrityError
from database import get_db, AppSettings, EmailSettings
from .audit_log import AuditLogger
from .errors import ValidationError
from .utils import apply_fields

logger = logging.getLogger(__name__)

APP_SETTINGS_ID = 'general'
EMAIL_SETTINGS_ID = 'default'
THEME_MODES = ('light', 'dark', 'system')
EMAIL_PROVIDERS = ('smtp', 'resend')
HEX_COLOR = re.compile(r'^#(?:[0-9a-fA-F]{3}){1,2}$')

APP_FIELDS = (
    'organization_name', 'primary_color', 'secondary_color', 'theme_mode',
    'footer_text', 'app_version', 'logo_url', 'favicon_url',
)
EMAIL_FIELDS = (
    'provider', 'from_name', 'from_email', 'smtp_host', 'smtp_port', 'smtp_username',
    'smtp_password', 'notifications_enabled', 'notify_new_student',
    'notify_new_sponsor', 'notify_sponsorship_change',
)


def default_app_settings() -> Dict:
    return {
        'organization_name': os.getenv('ORGANIZATION_NAME', "David's Hope International"),
        'primary_color': '#9b87f5',
        'secondary_color': '#7E69AB',
        'theme_mode': 'light',
    }


class SettingsQueries:

    @staticmethod
    def get_app_settings() -> Dict:
        """App settings, created with defaults the first time they are read."""
        db = get_db()
        try:
            settings = db.query(AppSettings).filter_by(id=APP_SETTINGS_ID).first()
            if not settings:
                settings = AppSettings(id=APP_SETTINGS_ID, **default_app_settings())
                db.add(settings)
                try:
                    db.commit()
                    logger.info("Created default app settings")
                except IntegrityError:
                    # Another session created the row first
                    db.rollback()
                    settings = db.query(AppSettings).filter_by(id=APP_SETTINGS_ID).one()
            return SettingsQueries._format(settings)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def update_app_settings(data: Dict) -> Dict:
        """
        Update app settings.

        Raises:
            ValidationError: Blank organization name, colors that are not
                hex codes, or an unknown theme mode
        """
        SettingsQueries.get_app_settings()
        db = get_db()
        try:
            settings = db.query(AppSettings).filter_by(id=APP_SETTINGS_ID).first()
            changed = apply_fields(settings, data, APP_FIELDS)
            if not (settings.organization_name or '').strip():
                raise ValidationError("Organization name is required")
            for field in ('primary_color', 'secondary_color'):
                if not HEX_COLOR.match(getattr(settings, field) or ''):
                    raise ValidationError(f"{field} must be a hex color like #9b87f5")
            if settings.theme_mode not in THEME_MODES:
                raise ValidationError(f"Invalid theme mode '{settings.theme_mode}'")

            user = AuditLogger.current_user()
            settings.updated_by = user.get('id') if user else None
            settings.updated_at = datetime.now()
            db.commit()
            result = SettingsQueries._format(settings)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('settings', APP_SETTINGS_ID, f"Updated app settings: {', '.join(changed)}")
        return result

    @staticmethod
    def get_email_settings() -> Optional[Dict]:
        """Email settings, or None until they have been configured."""
        db = get_db()
        try:
            settings = db.query(EmailSettings).filter_by(id=EMAIL_SETTINGS_ID).first()
            return SettingsQueries._format(settings) if settings else None
        finally:
            db.close()

    @staticmethod
    def update_email_settings(data: Dict) -> Dict:
        """Create or update the email settings. from_name and from_email are required."""
        db = get_db()
        try:
            settings = db.query(EmailSettings).filter_by(id=EMAIL_SETTINGS_ID).first()
            if not settings:
                settings = EmailSettings(id=EMAIL_SETTINGS_ID, provider='smtp')
                db.add(settings)
            if 'smtp_port' in data and data['smtp_port'] not in (None, ''):
                try:
                    data = dict(data, smtp_port=int(data['smtp_port']))
                except (TypeError, ValueError):
                    raise ValidationError("SMTP port must be a number")
            apply_fields(settings, data, EMAIL_FIELDS)
            if not settings.from_name or not settings.from_email:
                raise ValidationError("Sender name and email are required")
            if settings.provider not in EMAIL_PROVIDERS:
                raise ValidationError(f"Invalid email provider '{settings.provider}'")

            user = AuditLogger.current_user()
            settings.updated_by = user.get('id') if user else None
            settings.updated_at = datetime.now()
            db.commit()
            result = SettingsQueries._format(settings)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('settings', EMAIL_SETTINGS_ID, "Updated email settings")
        return result

    @staticmethod
    def _format(settings) -> Dict:
        return {
            column.name: getattr(settings, column.name)
            for column in settings.__table__.columns
        }
