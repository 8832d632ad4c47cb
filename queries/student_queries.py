"""
Student records.

This module provides functionality to look up students by:
- id or slug (whichever the caller has)
- Admission number (exact match, optionally within one academic year)
- Fuzzy name search

plus creating, updating and deleting students and the records hanging off
them: relatives, timeline events, letters and photos.
"""

import logging
from datetime import datetime
from typing import List, Dict, Optional
from sqlalchemy import func, or_
from database import (
    get_db, Student, StudentRelative, TimelineEvent, StudentLetter, StudentPhoto
)
from database.models import STUDENT_STATUSES
from .academic_year_queries import resolve_current_year_name
from .audit_log import AuditLogger
from .errors import ValidationError, NotFoundError
from .slugs import is_uuid, unique_slug
from .utils import apply_fields, format_date

logger = logging.getLogger(__name__)

STUDENT_FIELDS = (
    'admission_number', 'name', 'dob', 'gender', 'current_grade', 'cbc_category',
    'school_level', 'accommodation_status', 'status', 'location', 'health_status',
    'height_cm', 'weight_kg', 'description', 'profile_image_url', 'admission_date',
    'academic_year',
)
STUDENT_DATE_FIELDS = ('dob', 'admission_date')

# Child record types: model, editable fields, date fields, datetime fields
CHILD_RECORDS = {
    'relative': (StudentRelative, ('name', 'relationship', 'phone_number', 'photo_url'), (), ()),
    'timeline_event': (TimelineEvent, ('title', 'description', 'type', 'date'), (), ('date',)),
    'letter': (StudentLetter, ('content', 'file_url', 'date'), ('date',), ()),
    'photo': (StudentPhoto, ('url', 'caption', 'date_taken'), ('date_taken',), ()),
}
CHILD_ORDERING = {
    'relative': StudentRelative.created_at.asc(),
    'timeline_event': TimelineEvent.date.desc(),
    'letter': StudentLetter.date.desc(),
    'photo': StudentPhoto.created_at.desc(),
}


def _current_user_id():
    user = AuditLogger.current_user()
    return user.get('id') if user else None


class StudentQueries:
    """Queries and mutations for individual students."""

    @staticmethod
    def get_student(id_or_slug: str) -> Optional[Dict]:
        """
        Get a student by id or by slug.

        Args:
            id_or_slug: Either the student's UUID or their URL slug
                (e.g., 'jane-wanjiru')

        Returns:
            Dictionary with student info and sponsor name, or None if not found

        Example:
            >>> student = StudentQueries.get_student('jane-wanjiru')
            >>> if student:
            ...     print(f"{student['name']} ({student['admission_number']})")
        """
        db = get_db()
        try:
            student = StudentQueries._find(db, id_or_slug)
            return StudentQueries._format_student(student) if student else None
        finally:
            db.close()

    @staticmethod
    def get_student_by_admission_number(admission_number: str,
                                        academic_year: str = None) -> Optional[Dict]:
        """
        Get a student by admission number.

        Admission numbers repeat across academic years once records are
        rolled over, so without `academic_year` the most recent record wins.
        """
        db = get_db()
        try:
            query = db.query(Student).filter(Student.admission_number == str(admission_number).strip())
            if academic_year:
                query = query.filter(Student.academic_year == academic_year)
            student = query.order_by(Student.academic_year.desc()).first()
            return StudentQueries._format_student(student) if student else None
        finally:
            db.close()

    @staticmethod
    def search_students_by_name(name_query: str, academic_year: str = None,
                                limit: int = 20) -> List[Dict]:
        """
        Search for students by partial name or admission number match.

        Every word of the query must appear in the name (case-insensitive),
        so 'jane wan' matches 'Jane Wanjiru'.

        Args:
            name_query: Partial name to search for
            academic_year: Restrict to one academic year (default: all years)
            limit: Maximum number of results to return (default 20)

        Returns:
            List of student dictionaries ordered by name
        """
        db = get_db()
        try:
            query_parts = name_query.lower().strip().split()
            if not query_parts:
                return []

            query = db.query(Student)
            if len(query_parts) == 1:
                term = f"%{query_parts[0]}%"
                query = query.filter(or_(
                    func.lower(Student.name).like(term),
                    func.lower(Student.admission_number).like(term),
                ))
            else:
                for part in query_parts:
                    query = query.filter(func.lower(Student.name).like(f"%{part}%"))

            if academic_year:
                query = query.filter(Student.academic_year == academic_year)

            students = query.order_by(Student.name).limit(limit).all()
            return [StudentQueries._format_student(s) for s in students]
        finally:
            db.close()

    @staticmethod
    def list_students(academic_year: str = None, status: str = None,
                      grade: str = None) -> List[Dict]:
        """
        List students, filtered by academic year, status and grade.

        Pass academic_year='current' for the current academic year.
        """
        db = get_db()
        try:
            query = db.query(Student)
            if academic_year == 'current':
                academic_year = resolve_current_year_name(db)
            if academic_year:
                query = query.filter(Student.academic_year == academic_year)
            if status:
                query = query.filter(Student.status == status)
            if grade:
                query = query.filter(Student.current_grade == grade)
            students = query.order_by(Student.name).all()
            return [StudentQueries._format_student(s) for s in students]
        finally:
            db.close()

    @staticmethod
    def list_available_students(academic_year: str = None) -> List[Dict]:
        """Active students without a sponsor, ready to be assigned."""
        db = get_db()
        try:
            query = db.query(Student).filter(
                Student.sponsor_id.is_(None),
                Student.status == 'Active'
            )
            if academic_year:
                query = query.filter(Student.academic_year == academic_year)
            students = query.order_by(Student.name).all()
            return [StudentQueries._format_student(s) for s in students]
        finally:
            db.close()

    @staticmethod
    def create_student(data: Dict) -> Dict:
        """
        Create a student record.

        Args:
            data: Student fields. 'admission_number' and 'name' are required;
                'academic_year' defaults to the current academic year and
                'status' to 'Active'.

        Returns:
            The created student as a dictionary

        Raises:
            ValidationError: Missing required fields, unknown status, or the
                admission number already exists in that academic year
        """
        admission_number = str(data.get('admission_number') or '').strip()
        name = str(data.get('name') or '').strip()
        if not admission_number or not name:
            raise ValidationError("Admission number and name are required")

        db = get_db()
        try:
            student = Student(status='Active')
            apply_fields(student, data, STUDENT_FIELDS, STUDENT_DATE_FIELDS)
            student.admission_number = admission_number
            student.name = name
            if not student.academic_year:
                student.academic_year = resolve_current_year_name(db)
            if not student.status:
                student.status = 'Active'
            StudentQueries._validate(db, student)

            student.slug = unique_slug(db, Student, name)
            student.created_by = _current_user_id()
            student.record_date = datetime.now()
            db.add(student)
            db.commit()
            result = StudentQueries._format_student(student)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Created student {name} ({admission_number})")
        AuditLogger.log_create('student', result['id'], f"Created student {name} ({admission_number})")
        return result

    @staticmethod
    def update_student(student_id: str, data: Dict) -> Dict:
        """
        Update a student's fields. A name change regenerates the slug.

        Raises:
            NotFoundError: No student with that id
            ValidationError: As for create_student
        """
        db = get_db()
        try:
            student = StudentQueries._get_or_raise(db, student_id)
            old_name = student.name
            changed = apply_fields(student, data, STUDENT_FIELDS, STUDENT_DATE_FIELDS)
            if not student.name or not student.admission_number:
                raise ValidationError("Admission number and name are required")
            StudentQueries._validate(db, student)

            if student.name != old_name:
                student.slug = unique_slug(db, Student, student.name, exclude_id=student.id)
            student.updated_by = _current_user_id()
            student.updated_at = datetime.now()
            db.commit()
            result = StudentQueries._format_student(student)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('student', student_id,
                               f"Updated student {result['name']}: {', '.join(changed) or 'no fields'}")
        return result

    @staticmethod
    def set_status(student_id: str, status: str) -> Dict:
        """Change a student's status (Active, Inactive, Graduated, Transferred)."""
        if status not in STUDENT_STATUSES:
            raise ValidationError(f"Invalid status '{status}'. Expected one of {', '.join(STUDENT_STATUSES)}")
        return StudentQueries.update_student(student_id, {'status': status})

    @staticmethod
    def delete_student(student_id: str) -> bool:
        """
        Delete a student with their relatives, timeline, letters, photos
        and exam scores. Returns False when the student does not exist.
        """
        db = get_db()
        try:
            student = db.query(Student).filter_by(id=student_id).first()
            if not student:
                return False
            label = f"{student.name} ({student.admission_number})"
            db.delete(student)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Deleted student {label}")
        AuditLogger.log_delete('student', student_id, f"Deleted student {label}")
        return True

    # ------------------------------------------------------------------
    # Relatives, timeline events, letters, photos
    # ------------------------------------------------------------------

    @staticmethod
    def add_relative(student_id: str, data: Dict) -> Dict:
        if not data.get('name') or not data.get('relationship'):
            raise ValidationError("Relative name and relationship are required")
        return StudentQueries._add_child('relative', student_id, data)

    @staticmethod
    def list_relatives(student_id: str) -> List[Dict]:
        return StudentQueries._list_children('relative', student_id)

    @staticmethod
    def update_relative(relative_id: str, data: Dict) -> Dict:
        return StudentQueries._update_child('relative', relative_id, data)

    @staticmethod
    def delete_relative(relative_id: str) -> bool:
        return StudentQueries._delete_child('relative', relative_id)

    @staticmethod
    def add_timeline_event(student_id: str, data: Dict) -> Dict:
        if not data.get('title') or not data.get('type'):
            raise ValidationError("Timeline event title and type are required")
        return StudentQueries._add_child('timeline_event', student_id, data)

    @staticmethod
    def list_timeline_events(student_id: str) -> List[Dict]:
        """Timeline events, newest first."""
        return StudentQueries._list_children('timeline_event', student_id)

    @staticmethod
    def update_timeline_event(event_id: str, data: Dict) -> Dict:
        return StudentQueries._update_child('timeline_event', event_id, data)

    @staticmethod
    def delete_timeline_event(event_id: str) -> bool:
        return StudentQueries._delete_child('timeline_event', event_id)

    @staticmethod
    def add_letter(student_id: str, data: Dict) -> Dict:
        if not data.get('content') and not data.get('file_url'):
            raise ValidationError("A letter needs content or a file")
        return StudentQueries._add_child('letter', student_id, data)

    @staticmethod
    def list_letters(student_id: str) -> List[Dict]:
        return StudentQueries._list_children('letter', student_id)

    @staticmethod
    def update_letter(letter_id: str, data: Dict) -> Dict:
        return StudentQueries._update_child('letter', letter_id, data)

    @staticmethod
    def delete_letter(letter_id: str) -> bool:
        return StudentQueries._delete_child('letter', letter_id)

    @staticmethod
    def add_photo(student_id: str, data: Dict) -> Dict:
        if not data.get('url'):
            raise ValidationError("Photo url is required")
        return StudentQueries._add_child('photo', student_id, data)

    @staticmethod
    def list_photos(student_id: str) -> List[Dict]:
        return StudentQueries._list_children('photo', student_id)

    @staticmethod
    def update_photo(photo_id: str, data: Dict) -> Dict:
        return StudentQueries._update_child('photo', photo_id, data)

    @staticmethod
    def delete_photo(photo_id: str) -> bool:
        return StudentQueries._delete_child('photo', photo_id)

    # ------------------------------------------------------------------

    @staticmethod
    def _add_child(kind: str, student_id: str, data: Dict) -> Dict:
        model, fields, date_fields, datetime_fields = CHILD_RECORDS[kind]
        db = get_db()
        try:
            StudentQueries._get_or_raise(db, student_id)
            record = model(student_id=student_id)
            apply_fields(record, data, fields, date_fields, datetime_fields)
            if hasattr(record, 'created_by'):
                record.created_by = _current_user_id()
            db.add(record)
            db.commit()
            result = StudentQueries._format_child(record)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_create(f"student_{kind}", result['id'], f"Added {kind.replace('_', ' ')} for student {student_id}")
        return result

    @staticmethod
    def _list_children(kind: str, student_id: str) -> List[Dict]:
        model = CHILD_RECORDS[kind][0]
        db = get_db()
        try:
            records = db.query(model).filter_by(student_id=student_id)\
                .order_by(CHILD_ORDERING[kind])\
                .all()
            return [StudentQueries._format_child(r) for r in records]
        finally:
            db.close()

    @staticmethod
    def _update_child(kind: str, record_id: str, data: Dict) -> Dict:
        model, fields, date_fields, datetime_fields = CHILD_RECORDS[kind]
        db = get_db()
        try:
            record = db.query(model).filter_by(id=record_id).first()
            if not record:
                raise NotFoundError(f"No {kind.replace('_', ' ')} with id {record_id}")
            apply_fields(record, data, fields, date_fields, datetime_fields)
            if hasattr(record, 'updated_by'):
                record.updated_by = _current_user_id()
            db.commit()
            result = StudentQueries._format_child(record)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update(f"student_{kind}", record_id, f"Updated {kind.replace('_', ' ')} for student {result['student_id']}")
        return result

    @staticmethod
    def _delete_child(kind: str, record_id: str) -> bool:
        model = CHILD_RECORDS[kind][0]
        db = get_db()
        try:
            record = db.query(model).filter_by(id=record_id).first()
            if not record:
                return False
            student_id = record.student_id
            db.delete(record)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_delete(f"student_{kind}", record_id, f"Deleted {kind.replace('_', ' ')} for student {student_id}")
        return True

    @staticmethod
    def _find(db, id_or_slug: str) -> Optional[Student]:
        if is_uuid(id_or_slug):
            return db.query(Student).filter_by(id=id_or_slug).first()
        return db.query(Student).filter_by(slug=id_or_slug)\
            .order_by(Student.academic_year.desc())\
            .first()

    @staticmethod
    def _get_or_raise(db, student_id: str) -> Student:
        student = db.query(Student).filter_by(id=student_id).first()
        if not student:
            raise NotFoundError(f"No student with id {student_id}")
        return student

    @staticmethod
    def _validate(db, student: Student):
        if student.status not in STUDENT_STATUSES:
            raise ValidationError(f"Invalid status '{student.status}'")
        for field in ('height_cm', 'weight_kg'):
            value = getattr(student, field)
            if value is None or value == '':
                setattr(student, field, None)
                continue
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{field} must be a number")
            if value <= 0:
                raise ValidationError(f"{field} must be positive")
            setattr(student, field, value)

        duplicate = db.query(Student.id).filter(
            Student.admission_number == student.admission_number,
            Student.academic_year == student.academic_year,
        )
        if student.id:
            duplicate = duplicate.filter(Student.id != student.id)
        if duplicate.first():
            raise ValidationError(
                f"Admission number {student.admission_number} already exists in {student.academic_year}"
            )

    @staticmethod
    def _format_student(student: Student) -> Dict:
        return {
            'id': student.id,
            'admission_number': student.admission_number,
            'name': student.name,
            'slug': student.slug,
            'dob': format_date(student.dob),
            'gender': student.gender,
            'current_grade': student.current_grade,
            'cbc_category': student.cbc_category,
            'school_level': student.school_level,
            'accommodation_status': student.accommodation_status,
            'status': student.status,
            'location': student.location,
            'health_status': student.health_status,
            'height_cm': student.height_cm,
            'weight_kg': student.weight_kg,
            'description': student.description,
            'profile_image_url': student.profile_image_url,
            'admission_date': format_date(student.admission_date),
            'academic_year': student.academic_year,
            'sponsor_id': student.sponsor_id,
            'sponsor_name': student.sponsor.full_name if student.sponsor else None,
            'sponsored_since': student.sponsored_since,
            'created_at': student.created_at,
            'updated_at': student.updated_at,
        }

    @staticmethod
    def _format_child(record) -> Dict:
        return {
            column.name: getattr(record, column.name)
            for column in record.__table__.columns
        }
