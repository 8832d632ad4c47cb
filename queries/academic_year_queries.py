"""
Academic years.

Students and exams carry the year_name of the academic year they belong
to, so everything year-scoped in the other query modules keys off the
names managed here.
"""

import logging
import re
from datetime import datetime
from typing import List, Dict, Optional
from database import get_db, AcademicYear, Student, Sponsor, Exam, get_current_academic_year_name
from .audit_log import AuditLogger
from .errors import ValidationError, NotFoundError
from .utils import apply_fields, format_date

logger = logging.getLogger(__name__)

# CBC grade progression used when rolling students into a new year
GRADE_PROGRESSION = {f"Grade {n}": f"Grade {n + 1}" for n in range(1, 12)}
GRADE_PROGRESSION['Grade 12'] = 'Alumni'
GRADE_PROGRESSION['Alumni'] = 'Alumni'

GRADE_LABEL_PATTERN = re.compile(r'^Grade\s+(\d+)$')
YEAR_NAME_PATTERN = re.compile(r'^\d{4}$')


def resolve_current_year_name(db) -> str:
    """Name of the year flagged current, else the calendar year."""
    current = db.query(AcademicYear).filter_by(is_current=True).first()
    return current.year_name if current else get_current_academic_year_name()


def next_grade(grade: str) -> str:
    """Grade a student moves to after one year ('Grade 3' -> 'Grade 4')."""
    if grade in GRADE_PROGRESSION:
        return GRADE_PROGRESSION[grade]
    match = GRADE_LABEL_PATTERN.match(grade or '')
    if match:
        return f"Grade {int(match.group(1)) + 1}"
    return grade


def default_promotion_map(grades: List[str]) -> Dict[str, str]:
    """
    Suggested promotion for every grade in use.

    Example:
        >>> default_promotion_map(['Grade 11', 'Grade 12', 'PP2'])
        {'Grade 11': 'Grade 12', 'Grade 12': 'Alumni', 'PP2': 'PP2'}
    """
    return {grade: next_grade(grade) for grade in grades}


def grade_sort_key(grade: str):
    match = GRADE_LABEL_PATTERN.match(grade)
    if match:
        return (0, int(match.group(1)), grade)
    return (1, 0, grade)


def percent_change(current: int, previous: int) -> float:
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 1)


class AcademicYearQueries:
    """Queries and mutations for academic years."""

    @staticmethod
    def list_years() -> List[Dict]:
        """All academic years, newest start date first."""
        db = get_db()
        try:
            years = db.query(AcademicYear).order_by(AcademicYear.start_date.desc()).all()
            return [AcademicYearQueries._format_year(y) for y in years]
        finally:
            db.close()

    @staticmethod
    def get_year(year_id: str) -> Optional[Dict]:
        db = get_db()
        try:
            year = db.query(AcademicYear).filter_by(id=year_id).first()
            return AcademicYearQueries._format_year(year) if year else None
        finally:
            db.close()

    @staticmethod
    def get_year_by_name(year_name: str) -> Optional[Dict]:
        db = get_db()
        try:
            year = db.query(AcademicYear).filter_by(year_name=year_name).first()
            return AcademicYearQueries._format_year(year) if year else None
        finally:
            db.close()

    @staticmethod
    def get_current_year() -> Optional[Dict]:
        """The year flagged current, or None when no year is flagged."""
        db = get_db()
        try:
            year = db.query(AcademicYear).filter_by(is_current=True).first()
            return AcademicYearQueries._format_year(year) if year else None
        finally:
            db.close()

    @staticmethod
    def get_current_year_name() -> str:
        db = get_db()
        try:
            return resolve_current_year_name(db)
        finally:
            db.close()

    @staticmethod
    def create_year(year_name: str, start_date, end_date, is_current: bool = False) -> Dict:
        """
        Create an academic year.

        Args:
            year_name: Unique name, e.g. '2025'
            start_date: First day (date or 'YYYY-MM-DD')
            end_date: Last day, must be after start_date
            is_current: Make this the current year (clears the flag elsewhere)

        Raises:
            ValidationError: Blank or duplicate name, or end_date <= start_date
        """
        db = get_db()
        try:
            year = AcademicYear(is_current=False)
            apply_fields(year, {
                'year_name': (year_name or '').strip(),
                'start_date': start_date,
                'end_date': end_date,
            }, ('year_name', 'start_date', 'end_date'), ('start_date', 'end_date'))
            AcademicYearQueries._validate(db, year)

            user = AuditLogger.current_user()
            year.created_by = user.get('id') if user else None
            db.add(year)
            db.flush()
            if is_current:
                AcademicYearQueries._make_current(db, year)
            db.commit()
            result = AcademicYearQueries._format_year(year)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Created academic year {result['year_name']}")
        AuditLogger.log_create('academic_year', result['id'], f"Created academic year {result['year_name']}")
        return result

    @staticmethod
    def update_year(year_id: str, data: Dict) -> Dict:
        """Update name/dates/current flag of an academic year."""
        db = get_db()
        try:
            year = db.query(AcademicYear).filter_by(id=year_id).first()
            if not year:
                raise NotFoundError(f"No academic year with id {year_id}")
            apply_fields(year, data, ('year_name', 'start_date', 'end_date'), ('start_date', 'end_date'))
            AcademicYearQueries._validate(db, year)
            if data.get('is_current'):
                AcademicYearQueries._make_current(db, year)
            elif 'is_current' in data:
                year.is_current = False
            year.updated_at = datetime.now()
            db.commit()
            result = AcademicYearQueries._format_year(year)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('academic_year', year_id, f"Updated academic year {result['year_name']}")
        return result

    @staticmethod
    def delete_year(year_id: str) -> bool:
        """
        Delete an academic year. Student and exam rows recorded against the
        year are left alone. The current year cannot be deleted.
        """
        db = get_db()
        try:
            year = db.query(AcademicYear).filter_by(id=year_id).first()
            if not year:
                return False
            if year.is_current:
                raise ValidationError("Cannot delete the current academic year")
            year_name = year.year_name
            db.delete(year)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_delete('academic_year', year_id, f"Deleted academic year {year_name}")
        return True

    @staticmethod
    def set_current(year_id: str) -> Dict:
        """Flag one year as current and clear the flag on every other year."""
        db = get_db()
        try:
            year = db.query(AcademicYear).filter_by(id=year_id).first()
            if not year:
                raise NotFoundError(f"No academic year with id {year_id}")
            AcademicYearQueries._make_current(db, year)
            db.commit()
            result = AcademicYearQueries._format_year(year)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"{result['year_name']} is now the current academic year")
        AuditLogger.log_system('academic_year_change', year_id,
                               f"Set {result['year_name']} as current academic year")
        return result

    @staticmethod
    def get_student_grades(academic_year: str = None) -> List[str]:
        """
        Distinct grades currently held by students.

        'Grade N' labels sort numerically (Grade 2 before Grade 10), anything
        else sorts after them alphabetically.
        """
        db = get_db()
        try:
            query = db.query(Student.current_grade)\
                .filter(Student.current_grade.isnot(None))\
                .distinct()
            if academic_year:
                query = query.filter(Student.academic_year == academic_year)
            grades = [row[0] for row in query.all() if row[0]]
            return sorted(grades, key=grade_sort_key)
        finally:
            db.close()

    @staticmethod
    def get_year_statistics(year_id: str) -> Dict:
        """
        Headline counts for an academic year compared with the year before.

        Returns:
            Dictionary with:
            - student_count: Students recorded in the year
            - new_students: Students created between the year's start and end
            - sponsor_count: Active sponsors who started on or before year end
            - new_sponsors: Sponsors created during the year
            - exam_count: Exams scheduled in the year
            - student_change_percent / sponsor_change_percent /
              exam_change_percent: Change against the previous year (0 when
              there is no previous year or its count was 0)

        Example:
            >>> stats = AcademicYearQueries.get_year_statistics(year['id'])
            >>> print(f"{stats['student_count']} students ({stats['student_change_percent']:+.1f}%)")
        """
        db = get_db()
        try:
            year = db.query(AcademicYear).filter_by(id=year_id).first()
            if not year:
                raise NotFoundError(f"No academic year with id {year_id}")

            counts = AcademicYearQueries._year_counts(db, year)
            start = datetime.combine(year.start_date, datetime.min.time())
            end = datetime.combine(year.end_date, datetime.max.time())
            new_students = db.query(Student)\
                .filter(Student.created_at >= start, Student.created_at <= end)\
                .count()
            new_sponsors = db.query(Sponsor)\
                .filter(Sponsor.created_at >= start, Sponsor.created_at <= end)\
                .count()

            previous = db.query(AcademicYear)\
                .filter(AcademicYear.start_date < year.start_date)\
                .order_by(AcademicYear.start_date.desc())\
                .first()
            previous_counts = AcademicYearQueries._year_counts(db, previous) if previous else {
                'student_count': 0, 'sponsor_count': 0, 'exam_count': 0,
            }

            return {
                'year_name': year.year_name,
                'previous_year_name': previous.year_name if previous else None,
                'student_count': counts['student_count'],
                'new_students': new_students,
                'sponsor_count': counts['sponsor_count'],
                'new_sponsors': new_sponsors,
                'exam_count': counts['exam_count'],
                'student_change_percent': percent_change(counts['student_count'], previous_counts['student_count']),
                'sponsor_change_percent': percent_change(counts['sponsor_count'], previous_counts['sponsor_count']),
                'exam_change_percent': percent_change(counts['exam_count'], previous_counts['exam_count']),
            }
        finally:
            db.close()

    @staticmethod
    def _year_counts(db, year: AcademicYear) -> Dict:
        return {
            'student_count': db.query(Student).filter(Student.academic_year == year.year_name).count(),
            'sponsor_count': db.query(Sponsor).filter(
                Sponsor.start_date <= year.end_date,
                Sponsor.status == 'active'
            ).count(),
            'exam_count': db.query(Exam).filter(Exam.academic_year == year.year_name).count(),
        }

    @staticmethod
    def _make_current(db, year: AcademicYear):
        db.query(AcademicYear)\
            .filter(AcademicYear.id != year.id)\
            .update({AcademicYear.is_current: False}, synchronize_session=False)
        year.is_current = True
        year.updated_at = datetime.now()

    @staticmethod
    def _validate(db, year: AcademicYear):
        if not year.year_name:
            raise ValidationError("Academic year name is required")
        if not year.start_date or not year.end_date:
            raise ValidationError("Start date and end date are required")
        if year.end_date <= year.start_date:
            raise ValidationError("End date must be after start date")
        duplicate = db.query(AcademicYear.id).filter(AcademicYear.year_name == year.year_name)
        if year.id:
            duplicate = duplicate.filter(AcademicYear.id != year.id)
        if duplicate.first():
            raise ValidationError(f"Academic year {year.year_name} already exists")

    @staticmethod
    def _format_year(year: AcademicYear) -> Dict:
        return {
            'id': year.id,
            'year_name': year.year_name,
            'is_current': bool(year.is_current),
            'start_date': format_date(year.start_date),
            'end_date': format_date(year.end_date),
            'created_by': year.created_by,
            'created_at': year.created_at,
            'updated_at': year.updated_at,
        }
