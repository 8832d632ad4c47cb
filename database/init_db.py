#!/usr/bin/env python3
"""
Database initialization script.
Run this to create all tables.
"""

from .connection import engine, Base, DATABASE_URL
from . import models  # noqa: F401  (registers every table on Base.metadata)
import logging

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {
    'academic_years', 'students', 'sponsors', 'student_relatives',
    'sponsor_relatives', 'timeline_events', 'sponsor_timeline_events',
    'student_letters', 'student_photos', 'exams', 'student_exam_scores',
    'profiles', 'audit_logs', 'app_settings', 'email_settings',
}


def init_database(drop_existing=False):
    """
    Initialize the database by creating all tables.

    Args:
        drop_existing (bool): If True, drop all existing tables first (DANGER!)
    """
    logger.info(f"Initializing database at: {DATABASE_URL}")

    if drop_existing:
        logger.warning("Dropping all existing tables...")
        Base.metadata.drop_all(bind=engine)
        logger.info("Tables dropped.")

    logger.info("Creating tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully!")

    for table in Base.metadata.sorted_tables:
        logger.info(f"  - {table.name}")


def verify_database():
    """Verify database connection and tables exist"""
    from sqlalchemy import inspect

    inspector = inspect(engine)
    tables = inspector.get_table_names()

    logger.info(f"Database contains {len(tables)} tables:")
    for table in tables:
        logger.info(f"  - {table}")

    missing_tables = EXPECTED_TABLES - set(tables)

    if missing_tables:
        logger.error(f"Missing tables: {sorted(missing_tables)}")
        return False

    logger.info("All expected tables exist!")
    return True


if __name__ == '__main__':
    import sys

    logging.basicConfig(level=logging.INFO)

    # Check for --drop flag
    drop = '--drop' in sys.argv

    if drop:
        confirm = input("⚠️  This will DELETE ALL DATA. Are you sure? (yes/no): ")
        if confirm.lower() != 'yes':
            print("Aborted.")
            sys.exit(0)

    init_database(drop_existing=drop)
    verify_database()
