from sqlalchemy import (
    Column, String, Float, Integer, Boolean, Date, DateTime, Text, ForeignKey,
    CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
from .connection import Base
import uuid


def _uuid():
    return str(uuid.uuid4())


def get_current_academic_year_name():
    """Calendar year used as the academic year name when none is flagged current."""
    return str(datetime.now().year)


STUDENT_STATUSES = ('Active', 'Inactive', 'Graduated', 'Transferred')
EXAM_TERMS = ('Term 1', 'Term 2', 'Term 3', 'Final')
USER_ROLES = ('superuser', 'admin', 'manager', 'teacher', 'user')


class AcademicYear(Base):
    __tablename__ = 'academic_years'

    id = Column(String(36), primary_key=True, default=_uuid)
    year_name = Column(String(20), nullable=False, unique=True)
    is_current = Column(Boolean, nullable=False, default=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        CheckConstraint('end_date > start_date', name='check_year_date_range'),
    )

    def __repr__(self):
        flag = " (current)" if self.is_current else ""
        return f"<AcademicYear {self.year_name}{flag}>"


class Sponsor(Base):
    __tablename__ = 'sponsors'

    id = Column(String(36), primary_key=True, default=_uuid)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    email2 = Column(String(255))
    phone = Column(String(50))
    address = Column(Text)
    country = Column(String(100))
    profile_image_url = Column(Text)
    occupation = Column(String(150))
    additional_info = Column(Text)
    start_date = Column(Date)
    status = Column(String(20), nullable=False, default='active')
    notes = Column(Text)
    primary_email_for_updates = Column(String(255))
    slug = Column(String(200), index=True)
    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    students = relationship('Student', back_populates='sponsor')
    relatives = relationship('SponsorRelative', back_populates='sponsor', cascade='all, delete-orphan')
    timeline_events = relationship('SponsorTimelineEvent', back_populates='sponsor', cascade='all, delete-orphan')

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Sponsor {self.first_name} {self.last_name} ({self.email})>"


class Student(Base):
    __tablename__ = 'students'

    id = Column(String(36), primary_key=True, default=_uuid)
    admission_number = Column(String(50), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), index=True)
    dob = Column(Date)
    gender = Column(String(20))
    current_grade = Column(String(50), index=True)
    cbc_category = Column(String(100))
    school_level = Column(String(100))
    accommodation_status = Column(String(100))
    status = Column(String(20), nullable=False, default='Active')
    location = Column(String(200))
    health_status = Column(String(200))
    height_cm = Column(Float)
    weight_kg = Column(Float)
    description = Column(Text)
    profile_image_url = Column(Text)
    admission_date = Column(Date)
    academic_year = Column(String(20), index=True)
    record_date = Column(DateTime, default=datetime.now)
    sponsor_id = Column(String(36), ForeignKey('sponsors.id'), index=True)
    sponsored_since = Column(DateTime)
    created_by = Column(String(36))
    updated_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    sponsor = relationship('Sponsor', back_populates='students')
    relatives = relationship('StudentRelative', back_populates='student', cascade='all, delete-orphan')
    timeline_events = relationship('TimelineEvent', back_populates='student', cascade='all, delete-orphan')
    letters = relationship('StudentLetter', back_populates='student', cascade='all, delete-orphan')
    photos = relationship('StudentPhoto', back_populates='student', cascade='all, delete-orphan')
    exam_scores = relationship('StudentExamScore', back_populates='student', cascade='all, delete-orphan')

    __table_args__ = (
        UniqueConstraint('admission_number', 'academic_year', name='uq_student_admission_year'),
        CheckConstraint('height_cm IS NULL OR height_cm > 0', name='check_height_positive'),
        CheckConstraint('weight_kg IS NULL OR weight_kg > 0', name='check_weight_positive'),
    )

    @property
    def is_sponsored(self):
        return self.sponsor_id is not None

    def __repr__(self):
        return f"<Student {self.name} ({self.admission_number}, {self.academic_year})>"


class StudentRelative(Base):
    __tablename__ = 'student_relatives'

    id = Column(String(36), primary_key=True, default=_uuid)
    student_id = Column(String(36), ForeignKey('students.id'), nullable=False, index=True)
    # Declared before the 'relationship' column, which shadows the function in this body
    student = relationship('Student', back_populates='relatives')
    name = Column(String(200), nullable=False)
    relationship = Column(String(100), nullable=False)
    phone_number = Column(String(50))
    photo_url = Column(Text)
    created_at = Column(DateTime, default=datetime.now)


class SponsorRelative(Base):
    __tablename__ = 'sponsor_relatives'

    id = Column(String(36), primary_key=True, default=_uuid)
    sponsor_id = Column(String(36), ForeignKey('sponsors.id'), nullable=False, index=True)
    sponsor = relationship('Sponsor', back_populates='relatives')
    name = Column(String(200), nullable=False)
    relationship = Column(String(100), nullable=False)
    phone_number = Column(String(50))
    photo_url = Column(Text)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class TimelineEvent(Base):
    __tablename__ = 'timeline_events'

    id = Column(String(36), primary_key=True, default=_uuid)
    student_id = Column(String(36), ForeignKey('students.id'), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    type = Column(String(50), nullable=False)
    date = Column(DateTime, nullable=False, default=datetime.now)
    created_by = Column(String(36))
    updated_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    student = relationship('Student', back_populates='timeline_events')


class SponsorTimelineEvent(Base):
    __tablename__ = 'sponsor_timeline_events'

    id = Column(String(36), primary_key=True, default=_uuid)
    sponsor_id = Column(String(36), ForeignKey('sponsors.id'), nullable=False, index=True)
    student_id = Column(String(36))
    title = Column(String(200), nullable=False)
    description = Column(Text)
    type = Column(String(50), nullable=False)
    date = Column(DateTime, nullable=False, default=datetime.now)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    sponsor = relationship('Sponsor', back_populates='timeline_events')


class StudentLetter(Base):
    __tablename__ = 'student_letters'

    id = Column(String(36), primary_key=True, default=_uuid)
    student_id = Column(String(36), ForeignKey('students.id'), nullable=False, index=True)
    content = Column(Text)
    file_url = Column(Text)
    date = Column(Date)
    created_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.now)

    student = relationship('Student', back_populates='letters')


class StudentPhoto(Base):
    __tablename__ = 'student_photos'

    id = Column(String(36), primary_key=True, default=_uuid)
    student_id = Column(String(36), ForeignKey('students.id'), nullable=False, index=True)
    url = Column(Text, nullable=False)
    caption = Column(String(255))
    date_taken = Column(Date)
    created_at = Column(DateTime, default=datetime.now)

    student = relationship('Student', back_populates='photos')


class Exam(Base):
    __tablename__ = 'exams'

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    academic_year = Column(String(20), nullable=False, index=True)
    term = Column(String(20), nullable=False)
    exam_date = Column(Date, nullable=False, index=True)
    max_score = Column(Float, nullable=False, default=100)
    passing_score = Column(Float, nullable=False, default=50)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    scores = relationship('StudentExamScore', back_populates='exam', cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint('max_score >= 1', name='check_max_score_min'),
        CheckConstraint('passing_score >= 0 AND passing_score <= max_score', name='check_passing_score_range'),
        Index('idx_exam_year_term', 'academic_year', 'term'),
    )

    def __repr__(self):
        return f"<Exam {self.name} - {self.term} ({self.academic_year})>"


class StudentExamScore(Base):
    __tablename__ = 'student_exam_scores'

    id = Column(String(36), primary_key=True, default=_uuid)
    exam_id = Column(String(36), ForeignKey('exams.id'), nullable=False, index=True)
    student_id = Column(String(36), ForeignKey('students.id'), nullable=False, index=True)
    score = Column(Float)
    did_not_sit = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    exam = relationship('Exam', back_populates='scores')
    student = relationship('Student', back_populates='exam_scores')

    __table_args__ = (
        UniqueConstraint('student_id', 'exam_id', name='uq_student_exam'),
        CheckConstraint('score IS NULL OR score >= 0', name='check_score_non_negative'),
    )

    def __repr__(self):
        score_str = "DNS" if self.did_not_sit else self.score
        return f"<StudentExamScore {self.student_id} - {self.exam_id}: {score_str}>"


class Profile(Base):
    __tablename__ = 'profiles'

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(200))
    role = Column(String(20), nullable=False, default='user')
    is_active = Column(Boolean, nullable=False, default=True)
    avatar_url = Column(Text)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        CheckConstraint(
            "role IN ('superuser', 'admin', 'manager', 'teacher', 'user')",
            name='check_profile_role'
        ),
    )

    def __repr__(self):
        return f"<Profile {self.email} ({self.role})>"


class AuditLog(Base):
    __tablename__ = 'audit_logs'

    id = Column(String(36), primary_key=True, default=_uuid)
    username = Column(String(255))
    user_id = Column(String(36))
    action = Column(String(50), nullable=False, index=True)
    entity = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(100), nullable=False)
    details = Column(Text)
    ip_address = Column(String(50))
    created_at = Column(DateTime, default=datetime.now, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity}:{self.entity_id} by {self.username}>"


class AppSettings(Base):
    __tablename__ = 'app_settings'

    id = Column(String(20), primary_key=True, default='general')
    organization_name = Column(String(200), nullable=False)
    primary_color = Column(String(20), nullable=False, default='#9b87f5')
    secondary_color = Column(String(20), nullable=False, default='#7E69AB')
    theme_mode = Column(String(20), nullable=False, default='light')
    footer_text = Column(Text)
    app_version = Column(String(50))
    logo_url = Column(Text)
    favicon_url = Column(Text)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    updated_by = Column(String(36))


class EmailSettings(Base):
    __tablename__ = 'email_settings'

    id = Column(String(20), primary_key=True, default='default')
    provider = Column(String(20), nullable=False, default='smtp')
    from_name = Column(String(200), nullable=False)
    from_email = Column(String(255), nullable=False)
    smtp_host = Column(String(255))
    smtp_port = Column(Integer)
    smtp_username = Column(String(255))
    smtp_password = Column(String(255))
    notifications_enabled = Column(Boolean, default=True)
    notify_new_student = Column(Boolean, default=True)
    notify_new_sponsor = Column(Boolean, default=True)
    notify_sponsorship_change = Column(Boolean, default=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    updated_by = Column(String(36))
