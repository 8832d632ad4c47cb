"""
Academic year rollover.

Copies one academic year's students and exam templates into another year
(optionally creating it), re-labelling grades through a promotion map on
the way. Everything happens in one session and commits once, so a failed
copy leaves the destination untouched and a repeated copy only adds the
rows that are still missing.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional
from database import get_db, AcademicYear, Student, Exam
from .academic_year_queries import YEAR_NAME_PATTERN
from .audit_log import AuditLogger
from .errors import ValidationError, NotFoundError
from .utils import parse_date

logger = logging.getLogger(__name__)

# Columns regenerated or re-pointed for every copied row
STUDENT_SKIP_COLUMNS = {'id', 'academic_year', 'record_date', 'created_at', 'updated_at'}
EXAM_SKIP_COLUMNS = {'id', 'academic_year', 'created_at', 'updated_at'}


def _copy_columns(source, skip) -> Dict:
    return {
        column.name: getattr(source, column.name)
        for column in source.__table__.columns
        if column.name not in skip
    }


class AcademicYearRollover:
    """Bulk copy of a year's records into another year."""

    @staticmethod
    def copy_year(source_year_id: str, destination_year_id: str = None,
                  new_year: Dict = None, copy_students: bool = True,
                  copy_exams: bool = True, copy_sponsorship: bool = True,
                  promotion_map: Dict[str, str] = None,
                  progress: Optional[Callable[[int], None]] = None) -> Dict:
        """
        Copy students and exams from one academic year into another.

        Args:
            source_year_id: Year to copy from
            destination_year_id: Existing year to copy into
            new_year: Instead of destination_year_id, create the destination:
                {'year_name': '2026', 'start_date': ..., 'end_date': ...}.
                The new year is not made current.
            copy_students: Re-insert the source year's students
            copy_exams: Re-insert the source year's exams (without scores)
            copy_sponsorship: Keep each copied student's sponsor link; when
                False the copies start unsponsored
            promotion_map: {old_grade: new_grade} applied to copied students
            progress: Called with 10, 20, 40, 60, 80, 95 and 100 as the copy
                advances

        Returns:
            Dictionary with source_year, destination_year,
            destination_year_id, created_year, students_copied,
            students_skipped, exams_copied, exams_skipped,
            sponsorships_carried, grades_promoted and items_copied

        Raises:
            NotFoundError: Unknown source or destination year
            ValidationError: Neither/both destination options given, bad new
                year details, or source and destination are the same year

        Example:
            >>> result = AcademicYearRollover.copy_year(
            ...     year_2025['id'],
            ...     new_year={'year_name': '2026', 'start_date': '2026-01-01', 'end_date': '2026-12-31'},
            ...     promotion_map=default_promotion_map(grades),
            ... )
            >>> print(f"{result['students_copied']} students copied to {result['destination_year']}")
        """
        report = progress or (lambda percent: None)

        if destination_year_id and new_year:
            raise ValidationError("Give either a destination year or new year details, not both")
        if not destination_year_id and not new_year:
            raise ValidationError("Please select a destination academic year")

        db = get_db()
        try:
            source = db.query(AcademicYear).filter_by(id=source_year_id).first()
            if not source:
                raise NotFoundError("Source academic year not found")
            report(10)

            created_year = False
            if new_year:
                destination = AcademicYearRollover._build_new_year(db, new_year)
                db.add(destination)
                db.flush()
                created_year = True
                logger.info(f"Created academic year {destination.year_name} for copy from {source.year_name}")
            else:
                destination = db.query(AcademicYear).filter_by(id=destination_year_id).first()
                if not destination:
                    raise NotFoundError("Destination academic year not found")
            if destination.id == source.id:
                raise ValidationError("Source and destination academic years must differ")
            report(20)

            result = {
                'source_year': source.year_name,
                'destination_year': destination.year_name,
                'destination_year_id': destination.id,
                'created_year': created_year,
                'students_copied': 0,
                'students_skipped': 0,
                'exams_copied': 0,
                'exams_skipped': 0,
                'sponsorships_carried': 0,
                'grades_promoted': 0,
            }

            if copy_students:
                AcademicYearRollover._copy_students(
                    db, source, destination, copy_sponsorship, promotion_map or {}, result
                )
            report(40)

            if copy_exams:
                AcademicYearRollover._copy_exams(db, source, destination, result)
            report(60)

            # Sponsors are not year-scoped; their links travel with the copied students
            report(80)

            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        report(95)
        result['items_copied'] = (
            result['students_copied'] + result['exams_copied'] + result['sponsorships_carried']
        )
        if created_year:
            AuditLogger.log_create(
                'academic_year', result['destination_year_id'],
                f"Created new academic year {result['destination_year']} during copy operation"
            )
        AuditLogger.log_system(
            'data_copy', result['destination_year_id'],
            f"Copied data from {result['source_year']} to {result['destination_year']}. "
            f"Items copied: {result['items_copied']}. Student data: {copy_students}, "
            f"Exams: {copy_exams}, Sponsorship: {copy_sponsorship}"
        )
        logger.info(
            f"Copied {result['source_year']} -> {result['destination_year']}: "
            f"{result['students_copied']} students ({result['students_skipped']} skipped), "
            f"{result['exams_copied']} exams ({result['exams_skipped']} skipped)"
        )
        report(100)
        return result

    @staticmethod
    def promote_grades(promotion_map: Dict[str, str], academic_year: str = None) -> int:
        """
        Move students to their next grade.

        Each student's grade is looked up once in `promotion_map`, so
        'Grade 1 -> Grade 2' and 'Grade 2 -> Grade 3' in the same map never
        promote anyone twice.

        Args:
            promotion_map: {old_grade: new_grade}; grades not in the map stay
            academic_year: Only students of this year (default: all)

        Returns:
            Number of students whose grade changed
        """
        changes = {old: new for old, new in (promotion_map or {}).items() if new and old != new}
        if not changes:
            return 0

        db = get_db()
        try:
            query = db.query(Student).filter(Student.current_grade.in_(list(changes)))
            if academic_year:
                query = query.filter(Student.academic_year == academic_year)
            students = query.all()
            now = datetime.now()
            for student in students:
                student.current_grade = changes[student.current_grade]
                student.updated_at = now
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Promoted {len(students)} students")
        AuditLogger.log_system('grade_promotion', academic_year or 'students',
                               'Promoted student grades for new academic year')
        return len(students)

    # ------------------------------------------------------------------

    @staticmethod
    def _build_new_year(db, details: Dict) -> AcademicYear:
        year_name = str(details.get('year_name') or '').strip()
        if not YEAR_NAME_PATTERN.match(year_name):
            raise ValidationError("New year name must be a 4-digit year (e.g. 2026)")
        start_date = parse_date(details.get('start_date'))
        end_date = parse_date(details.get('end_date'))
        if not start_date or not end_date:
            raise ValidationError("New year details are missing")
        if end_date <= start_date:
            raise ValidationError("End date must be after start date")
        if db.query(AcademicYear.id).filter_by(year_name=year_name).first():
            raise ValidationError(f"Academic year {year_name} already exists")

        user = AuditLogger.current_user()
        return AcademicYear(
            year_name=year_name,
            start_date=start_date,
            end_date=end_date,
            is_current=False,
            created_by=user.get('id') if user else None,
        )

    @staticmethod
    def _copy_students(db, source, destination, copy_sponsorship, promotion_map, result):
        existing = {
            row[0] for row in db.query(Student.admission_number)
            .filter(Student.academic_year == destination.year_name)
            .all()
        }
        now = datetime.now()
        students = db.query(Student).filter(Student.academic_year == source.year_name).all()
        for student in students:
            if student.admission_number in existing:
                result['students_skipped'] += 1
                continue

            values = _copy_columns(student, STUDENT_SKIP_COLUMNS)
            copy = Student(**values)
            copy.academic_year = destination.year_name
            copy.record_date = now
            copy.created_at = now
            copy.updated_at = now

            new_grade = promotion_map.get(student.current_grade)
            if new_grade and new_grade != student.current_grade:
                copy.current_grade = new_grade
                result['grades_promoted'] += 1

            if not copy_sponsorship:
                copy.sponsor_id = None
                copy.sponsored_since = None
            elif copy.sponsor_id:
                result['sponsorships_carried'] += 1

            db.add(copy)
            existing.add(student.admission_number)
            result['students_copied'] += 1

    @staticmethod
    def _copy_exams(db, source, destination, result):
        existing = {
            (row[0], row[1]) for row in db.query(Exam.name, Exam.term)
            .filter(Exam.academic_year == destination.year_name)
            .all()
        }
        now = datetime.now()
        exams = db.query(Exam).filter(Exam.academic_year == source.year_name).all()
        for exam in exams:
            if (exam.name, exam.term) in existing:
                result['exams_skipped'] += 1
                continue
            copy = Exam(**_copy_columns(exam, EXAM_SKIP_COLUMNS))
            copy.academic_year = destination.year_name
            copy.created_at = now
            copy.updated_at = now
            db.add(copy)
            existing.add((exam.name, exam.term))
            result['exams_copied'] += 1
