"""
Sponsor records and sponsorship links.

A sponsorship is simply a student's sponsor_id. Linking and unlinking
students also writes an entry on the sponsor's timeline so the history
survives after the link itself is cleared.
"""

import logging
from datetime import datetime
from typing import List, Dict, Optional
from sqlalchemy import func, or_
from database import get_db, Sponsor, SponsorRelative, SponsorTimelineEvent, Student
from .audit_log import AuditLogger
from .errors import ValidationError, NotFoundError
from .slugs import is_uuid, unique_slug
from .utils import apply_fields, format_date

logger = logging.getLogger(__name__)

SPONSOR_FIELDS = (
    'first_name', 'last_name', 'email', 'email2', 'phone', 'address', 'country',
    'profile_image_url', 'occupation', 'additional_info', 'start_date', 'status',
    'notes', 'primary_email_for_updates',
)
SPONSOR_STATUSES = ('active', 'inactive')
TIMELINE_EVENT_TYPES = ('general', 'communication', 'payment', 'student_assignment', 'student_removal')


class SponsorQueries:
    """Queries and mutations for sponsors."""

    @staticmethod
    def get_sponsor(id_or_slug: str) -> Optional[Dict]:
        """
        Get a sponsor with their sponsored students.

        Args:
            id_or_slug: The sponsor's UUID or URL slug

        Returns:
            Sponsor dictionary with a 'students' list, or None if not found

        Example:
            >>> sponsor = SponsorQueries.get_sponsor('mary-smith')
            >>> for student in sponsor['students']:
            ...     print(student['name'], student['current_grade'])
        """
        db = get_db()
        try:
            if is_uuid(id_or_slug):
                sponsor = db.query(Sponsor).filter_by(id=id_or_slug).first()
            else:
                sponsor = db.query(Sponsor).filter_by(slug=id_or_slug).first()
            if not sponsor:
                return None
            result = SponsorQueries._format_sponsor(sponsor)
            result['students'] = [
                SponsorQueries._format_student_summary(s)
                for s in sorted(sponsor.students, key=lambda s: s.name)
            ]
            return result
        finally:
            db.close()

    @staticmethod
    def list_sponsors(status: str = None) -> List[Dict]:
        """All sponsors ordered by name, each with a 'student_count'."""
        db = get_db()
        try:
            query = db.query(Sponsor, func.count(Student.id))\
                .outerjoin(Student, Student.sponsor_id == Sponsor.id)\
                .group_by(Sponsor.id)
            if status:
                query = query.filter(Sponsor.status == status)
            rows = query.order_by(Sponsor.first_name, Sponsor.last_name).all()

            sponsors = []
            for sponsor, student_count in rows:
                result = SponsorQueries._format_sponsor(sponsor)
                result['student_count'] = student_count
                sponsors.append(result)
            return sponsors
        finally:
            db.close()

    @staticmethod
    def search_sponsors(query_text: str, limit: int = 20) -> List[Dict]:
        """Case-insensitive partial match on first name, last name or email."""
        db = get_db()
        try:
            term = f"%{query_text.lower().strip()}%"
            sponsors = db.query(Sponsor)\
                .filter(
                    or_(
                        func.lower(Sponsor.first_name).like(term),
                        func.lower(Sponsor.last_name).like(term),
                        func.lower(Sponsor.email).like(term),
                    )
                )\
                .order_by(Sponsor.first_name, Sponsor.last_name)\
                .limit(limit)\
                .all()
            return [SponsorQueries._format_sponsor(s) for s in sponsors]
        finally:
            db.close()

    @staticmethod
    def create_sponsor(data: Dict) -> Dict:
        """
        Create a sponsor. first_name, last_name and email are required.

        Raises:
            ValidationError: Missing required fields or unknown status
        """
        for field in ('first_name', 'last_name', 'email'):
            if not str(data.get(field) or '').strip():
                raise ValidationError("First name, last name and email are required")

        db = get_db()
        try:
            sponsor = Sponsor(status='active')
            apply_fields(sponsor, data, SPONSOR_FIELDS, ('start_date',))
            if not sponsor.status:
                sponsor.status = 'active'
            SponsorQueries._validate(sponsor)
            sponsor.slug = unique_slug(db, Sponsor, sponsor.full_name)
            db.add(sponsor)
            db.commit()
            result = SponsorQueries._format_sponsor(sponsor)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Created sponsor {result['full_name']}")
        AuditLogger.log_create('sponsor', result['id'], f"Created sponsor {result['full_name']}")
        return result

    @staticmethod
    def update_sponsor(sponsor_id: str, data: Dict) -> Dict:
        db = get_db()
        try:
            sponsor = SponsorQueries._get_or_raise(db, sponsor_id)
            old_name = sponsor.full_name
            apply_fields(sponsor, data, SPONSOR_FIELDS, ('start_date',))
            SponsorQueries._validate(sponsor)
            if sponsor.full_name != old_name:
                sponsor.slug = unique_slug(db, Sponsor, sponsor.full_name, exclude_id=sponsor.id)
            sponsor.updated_at = datetime.now()
            db.commit()
            result = SponsorQueries._format_sponsor(sponsor)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('sponsor', sponsor_id, f"Updated sponsor {result['full_name']}")
        return result

    @staticmethod
    def delete_sponsor(sponsor_id: str) -> bool:
        """Delete a sponsor. Their students stay, unlinked."""
        db = get_db()
        try:
            sponsor = db.query(Sponsor).filter_by(id=sponsor_id).first()
            if not sponsor:
                return False
            name = sponsor.full_name
            db.query(Student)\
                .filter(Student.sponsor_id == sponsor_id)\
                .update({Student.sponsor_id: None, Student.sponsored_since: None}, synchronize_session=False)
            db.delete(sponsor)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_delete('sponsor', sponsor_id, f"Deleted sponsor {name}")
        return True

    @staticmethod
    def assign_students(sponsor_id: str, student_ids: List[str]) -> int:
        """
        Link students to a sponsor.

        Each student gets sponsor_id and sponsored_since (now), and the
        sponsor's timeline gets a 'Student Assigned' event per student.

        Returns:
            Number of students assigned

        Raises:
            NotFoundError: Unknown sponsor or student id
        """
        if not student_ids:
            return 0

        db = get_db()
        try:
            sponsor = SponsorQueries._get_or_raise(db, sponsor_id)
            students = db.query(Student).filter(Student.id.in_(student_ids)).all()
            missing = set(student_ids) - {s.id for s in students}
            if missing:
                raise NotFoundError(f"No student with id {', '.join(sorted(missing))}")

            now = datetime.now()
            for student in students:
                student.sponsor_id = sponsor.id
                student.sponsored_since = now
                db.add(SponsorTimelineEvent(
                    sponsor_id=sponsor.id,
                    student_id=student.id,
                    title="Student Assigned",
                    description="A new student was assigned to this sponsor.",
                    type='student_assignment',
                    date=now,
                ))
            db.commit()
            sponsor_name = sponsor.full_name
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Assigned {len(students)} students to {sponsor_name}")
        AuditLogger.log_update('sponsor', sponsor_id, f"Assigned {len(students)} students to {sponsor_name}")
        return len(students)

    @staticmethod
    def remove_student(sponsor_id: str, student_id: str, reason: str, notes: str = None) -> bool:
        """
        Unlink a student from a sponsor, recording why on the sponsor timeline.

        Returns:
            False when the student was not sponsored by this sponsor
        """
        if not reason:
            raise ValidationError("A reason is required to remove a student")

        db = get_db()
        try:
            student = db.query(Student).filter_by(id=student_id, sponsor_id=sponsor_id).first()
            if not student:
                return False
            student.sponsor_id = None
            student.sponsored_since = None

            description = f"Student was removed. Reason: {reason}"
            if notes:
                description += f". Notes: {notes}"
            db.add(SponsorTimelineEvent(
                sponsor_id=sponsor_id,
                student_id=student_id,
                title="Student Removed",
                description=description,
                type='student_removal',
                date=datetime.now(),
            ))
            db.commit()
            student_name = student.name
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('sponsor', sponsor_id, f"Removed student {student_name}: {reason}")
        return True

    # ------------------------------------------------------------------
    # Relatives
    # ------------------------------------------------------------------

    @staticmethod
    def add_relative(sponsor_id: str, data: Dict) -> Dict:
        if not data.get('name') or not data.get('relationship'):
            raise ValidationError("Relative name and relationship are required")
        db = get_db()
        try:
            SponsorQueries._get_or_raise(db, sponsor_id)
            relative = SponsorRelative(sponsor_id=sponsor_id)
            apply_fields(relative, data, ('name', 'relationship', 'phone_number', 'photo_url'))
            db.add(relative)
            db.commit()
            result = SponsorQueries._format_row(relative)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_create('sponsor_relative', result['id'], f"Added relative {result['name']} for sponsor {sponsor_id}")
        return result

    @staticmethod
    def list_relatives(sponsor_id: str) -> List[Dict]:
        db = get_db()
        try:
            relatives = db.query(SponsorRelative).filter_by(sponsor_id=sponsor_id)\
                .order_by(SponsorRelative.created_at)\
                .all()
            return [SponsorQueries._format_row(r) for r in relatives]
        finally:
            db.close()

    @staticmethod
    def update_relative(relative_id: str, data: Dict) -> Dict:
        db = get_db()
        try:
            relative = db.query(SponsorRelative).filter_by(id=relative_id).first()
            if not relative:
                raise NotFoundError(f"No sponsor relative with id {relative_id}")
            apply_fields(relative, data, ('name', 'relationship', 'phone_number', 'photo_url'))
            relative.updated_at = datetime.now()
            db.commit()
            result = SponsorQueries._format_row(relative)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('sponsor_relative', relative_id, f"Updated relative {result['name']}")
        return result

    @staticmethod
    def delete_relative(relative_id: str) -> bool:
        db = get_db()
        try:
            relative = db.query(SponsorRelative).filter_by(id=relative_id).first()
            if not relative:
                return False
            db.delete(relative)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_delete('sponsor_relative', relative_id, "Deleted sponsor relative")
        return True

    # ------------------------------------------------------------------
    # Timeline
    # ------------------------------------------------------------------

    @staticmethod
    def add_timeline_event(sponsor_id: str, data: Dict) -> Dict:
        """Add a timeline event (types: general, communication, payment, ...)."""
        if not data.get('title'):
            raise ValidationError("Timeline event title is required")
        event_type = data.get('type') or 'general'
        if event_type not in TIMELINE_EVENT_TYPES:
            raise ValidationError(f"Invalid event type '{event_type}'")

        db = get_db()
        try:
            SponsorQueries._get_or_raise(db, sponsor_id)
            event = SponsorTimelineEvent(sponsor_id=sponsor_id, type=event_type, date=datetime.now())
            apply_fields(event, data, ('title', 'description', 'student_id', 'date'), datetime_fields=('date',))
            db.add(event)
            db.commit()
            result = SponsorQueries._format_row(event)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_create('sponsor_timeline_event', result['id'], f"Added timeline event '{result['title']}'")
        return result

    @staticmethod
    def list_timeline_events(sponsor_id: str) -> List[Dict]:
        """Timeline events, newest first."""
        db = get_db()
        try:
            events = db.query(SponsorTimelineEvent).filter_by(sponsor_id=sponsor_id)\
                .order_by(SponsorTimelineEvent.date.desc(), SponsorTimelineEvent.created_at.desc())\
                .all()
            return [SponsorQueries._format_row(e) for e in events]
        finally:
            db.close()

    @staticmethod
    def update_timeline_event(event_id: str, data: Dict) -> Dict:
        if 'type' in data and data['type'] not in TIMELINE_EVENT_TYPES:
            raise ValidationError(f"Invalid event type '{data['type']}'")
        db = get_db()
        try:
            event = db.query(SponsorTimelineEvent).filter_by(id=event_id).first()
            if not event:
                raise NotFoundError(f"No timeline event with id {event_id}")
            apply_fields(event, data, ('title', 'description', 'type', 'date'), datetime_fields=('date',))
            event.updated_at = datetime.now()
            db.commit()
            result = SponsorQueries._format_row(event)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('sponsor_timeline_event', event_id, f"Updated timeline event '{result['title']}'")
        return result

    @staticmethod
    def delete_timeline_event(event_id: str) -> bool:
        db = get_db()
        try:
            event = db.query(SponsorTimelineEvent).filter_by(id=event_id).first()
            if not event:
                return False
            db.delete(event)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_delete('sponsor_timeline_event', event_id, "Deleted sponsor timeline event")
        return True

    # ------------------------------------------------------------------

    @staticmethod
    def _get_or_raise(db, sponsor_id: str) -> Sponsor:
        sponsor = db.query(Sponsor).filter_by(id=sponsor_id).first()
        if not sponsor:
            raise NotFoundError(f"No sponsor with id {sponsor_id}")
        return sponsor

    @staticmethod
    def _validate(sponsor: Sponsor):
        if not sponsor.first_name or not sponsor.last_name or not sponsor.email:
            raise ValidationError("First name, last name and email are required")
        if sponsor.status not in SPONSOR_STATUSES:
            raise ValidationError(f"Invalid status '{sponsor.status}'")

    @staticmethod
    def _format_sponsor(sponsor: Sponsor) -> Dict:
        return {
            'id': sponsor.id,
            'first_name': sponsor.first_name,
            'last_name': sponsor.last_name,
            'full_name': sponsor.full_name,
            'email': sponsor.email,
            'email2': sponsor.email2,
            'phone': sponsor.phone,
            'address': sponsor.address,
            'country': sponsor.country,
            'profile_image_url': sponsor.profile_image_url,
            'occupation': sponsor.occupation,
            'additional_info': sponsor.additional_info,
            'start_date': format_date(sponsor.start_date),
            'status': sponsor.status,
            'notes': sponsor.notes,
            'primary_email_for_updates': sponsor.primary_email_for_updates,
            'slug': sponsor.slug,
            'created_at': sponsor.created_at,
            'updated_at': sponsor.updated_at,
        }

    @staticmethod
    def _format_student_summary(student: Student) -> Dict:
        return {
            'id': student.id,
            'name': student.name,
            'admission_number': student.admission_number,
            'current_grade': student.current_grade,
            'academic_year': student.academic_year,
            'status': student.status,
            'sponsored_since': student.sponsored_since,
        }

    @staticmethod
    def _format_row(record) -> Dict:
        return {
            column.name: getattr(record, column.name)
            for column in record.__table__.columns
        }
