"""
Query modules for the school sponsorship records.

This package provides a clean interface for querying and updating the
records database without coupling to any specific UI.
"""

from .errors import ValidationError, NotFoundError
from .audit_log import AuditLogger, AuditLogQueries
from .academic_year_queries import AcademicYearQueries, default_promotion_map, GRADE_PROGRESSION
from .student_queries import StudentQueries
from .sponsor_queries import SponsorQueries
from .exam_queries import ExamQueries
from .rollover import AcademicYearRollover
from .user_queries import UserQueries
from .settings_queries import SettingsQueries
from .maintenance import DataMaintenance
from .dashboard_queries import DashboardQueries
from .formatting import RecordFormatter

__all__ = [
    'ValidationError',
    'NotFoundError',
    'AuditLogger',
    'AuditLogQueries',
    'AcademicYearQueries',
    'default_promotion_map',
    'GRADE_PROGRESSION',
    'StudentQueries',
    'SponsorQueries',
    'ExamQueries',
    'AcademicYearRollover',
    'UserQueries',
    'SettingsQueries',
    'DataMaintenance',
    'DashboardQueries',
    'RecordFormatter',
]
