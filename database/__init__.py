from .connection import Base, engine, get_db_session, get_db
from .models import (
    AcademicYear, Student, Sponsor, StudentRelative, SponsorRelative,
    TimelineEvent, SponsorTimelineEvent, StudentLetter, StudentPhoto,
    Exam, StudentExamScore, Profile, AuditLog, AppSettings, EmailSettings,
    get_current_academic_year_name,
)

__all__ = [
    'Base',
    'engine',
    'get_db_session',
    'get_db',
    'AcademicYear',
    'Student',
    'Sponsor',
    'StudentRelative',
    'SponsorRelative',
    'TimelineEvent',
    'SponsorTimelineEvent',
    'StudentLetter',
    'StudentPhoto',
    'Exam',
    'StudentExamScore',
    'Profile',
    'AuditLog',
    'AppSettings',
    'EmailSettings',
    'get_current_academic_year_name',
]
