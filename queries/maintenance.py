"""
Backup, restore and factory reset.

Backups are plain JSON: {"timestamp", "version", "data": {table: [rows]}}
with dates written as ISO strings. Tables are read and written in foreign
key order (Base.metadata.sorted_tables) so a restore never inserts a child
before its parent.
"""

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Optional
from sqlalchemy import Date, DateTime
from database import get_db, Base, AcademicYear, AppSettings, Profile
from .audit_log import AuditLogger
from .errors import ValidationError
from .settings_queries import APP_SETTINGS_ID, default_app_settings

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
RESET_CONFIRMATION = "DELETE ALL DATA"
# Audit history is not part of a backup; it describes this installation
EXCLUDED_TABLES = {'audit_logs'}


def _encode(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _decode(column, value):
    if value is None or value == '':
        return None
    if isinstance(column.type, DateTime) and isinstance(value, str):
        return datetime.fromisoformat(value)
    if isinstance(column.type, Date) and isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value


class DataMaintenance:
    """Whole-database operations for the settings screen."""

    @staticmethod
    def backup_all_data() -> Dict:
        """
        Snapshot every table (except the audit log) as JSON-ready rows.

        Example:
            >>> backup = DataMaintenance.backup_all_data()
            >>> print(backup['version'], len(backup['data']['students']))
        """
        db = get_db()
        try:
            data = {}
            for table in Base.metadata.sorted_tables:
                if table.name in EXCLUDED_TABLES:
                    continue
                rows = db.execute(table.select()).mappings().all()
                data[table.name] = [
                    {key: _encode(value) for key, value in row.items()}
                    for row in rows
                ]
            return {
                'timestamp': datetime.now().isoformat(),
                'version': BACKUP_VERSION,
                'data': data,
            }
        finally:
            db.close()

    @staticmethod
    def write_backup(path=None) -> Path:
        """
        Write a backup file and return its path.

        Args:
            path: Target file or directory; defaults to
                backup-YYYY-MM-DD.json in the working directory
        """
        backup = DataMaintenance.backup_all_data()
        filename = f"backup-{date.today().isoformat()}.json"
        target = Path(path) if path else Path(filename)
        if target.is_dir():
            target = target / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            json.dump(backup, f, indent=2)

        total = sum(len(rows) for rows in backup['data'].values())
        logger.info(f"Wrote backup of {total} rows to {target}")
        AuditLogger.log_system('backup', 'all', f"Created backup {target.name} ({total} rows)")
        return target

    @staticmethod
    def load_backup(path) -> Dict:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    @staticmethod
    def restore_all_data(backup: Dict, preserve_user_id: str = None) -> Dict[str, int]:
        """
        Replace all data with the contents of a backup.

        Everything except the preserved profile and the audit log is wiped
        first, then each table in the backup is inserted. Unknown tables and
        columns are ignored. Runs as one transaction.

        Returns:
            Rows restored per table

        Raises:
            ValidationError: The payload has no 'data' section
        """
        if not isinstance(backup, dict) or not isinstance(backup.get('data'), dict):
            raise ValidationError("Invalid backup file format")

        preserve_user_id = preserve_user_id or DataMaintenance._acting_user_id()
        tables = {table.name: table for table in Base.metadata.sorted_tables}
        restored = {}

        db = get_db()
        try:
            DataMaintenance._wipe(db, preserve_user_id, keep=EXCLUDED_TABLES)
            for table in Base.metadata.sorted_tables:
                rows = backup['data'].get(table.name)
                if not rows or table.name in EXCLUDED_TABLES:
                    continue
                columns = table.columns
                values = []
                for row in rows:
                    if table.name == 'profiles' and row.get('id') == preserve_user_id:
                        continue
                    values.append({
                        key: _decode(columns[key], value)
                        for key, value in row.items()
                        if key in columns
                    })
                if values:
                    db.execute(table.insert(), values)
                restored[table.name] = len(values)

            skipped = set(backup['data']) - set(tables)
            if skipped:
                logger.warning(f"Ignored unknown tables in backup: {sorted(skipped)}")
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        total = sum(restored.values())
        logger.info(f"Restored {total} rows from backup taken {backup.get('timestamp')}")
        AuditLogger.log_restore('system', 'all', f"Restored {total} rows from backup taken {backup.get('timestamp')}")
        return restored

    @staticmethod
    def factory_reset(confirm_text: str, preserve_user_id: str = None) -> Dict:
        """
        Delete all data and start over.

        Keeps only the preserved profile (the acting user by default), then
        recreates default app settings and a current academic year for this
        calendar year (1 January to 31 December).

        Raises:
            ValidationError: confirm_text is not exactly 'DELETE ALL DATA'
        """
        if confirm_text != RESET_CONFIRMATION:
            raise ValidationError(f"Please type '{RESET_CONFIRMATION}' to confirm")

        preserve_user_id = preserve_user_id or DataMaintenance._acting_user_id()
        year = date.today().year

        db = get_db()
        try:
            DataMaintenance._wipe(db, preserve_user_id)
            db.add(AppSettings(id=APP_SETTINGS_ID, **default_app_settings()))
            academic_year = AcademicYear(
                year_name=str(year),
                start_date=date(year, 1, 1),
                end_date=date(year, 12, 31),
                is_current=True,
                created_by=preserve_user_id,
            )
            db.add(academic_year)
            db.commit()
            result = {'academic_year': academic_year.year_name, 'academic_year_id': academic_year.id}
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.warning("Factory reset performed")
        AuditLogger.record('factory_reset', 'system', 'all', "Complete factory reset performed")
        return result

    @staticmethod
    def _wipe(db, preserve_user_id: Optional[str], keep=()):
        for table in reversed(Base.metadata.sorted_tables):
            if table.name in keep:
                continue
            if table.name == Profile.__tablename__ and preserve_user_id:
                db.execute(table.delete().where(table.c.id != preserve_user_id))
            else:
                db.execute(table.delete())

    @staticmethod
    def _acting_user_id() -> Optional[str]:
        user = AuditLogger.current_user()
        return user.get('id') if user else None
