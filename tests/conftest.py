import os

# In-memory database for every test; must be set before `database` is imported
os.environ['DATABASE_URL'] = 'sqlite://'

import pytest
from database import Base, engine
from queries import (
    AuditLogger, AcademicYearQueries, StudentQueries, SponsorQueries, ExamQueries, UserQueries,
)


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.create_all(bind=engine)
    AuditLogger.set_user(None)
    yield
    AuditLogger.set_user(None)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def current_year():
    return AcademicYearQueries.create_year('2025', '2025-01-01', '2025-12-31', is_current=True)


@pytest.fixture
def admin():
    user = UserQueries.create_user('admin@example.org', 'Admin', 'admin')
    AuditLogger.set_user(user)
    return user


@pytest.fixture
def make_student(current_year):
    counter = {'n': 0}

    def _make(name=None, **fields):
        counter['n'] += 1
        data = {
            'admission_number': f"ADM{counter['n']:03d}",
            'name': name or f"Student {counter['n']}",
            'current_grade': 'Grade 3',
            'gender': 'Female',
        }
        data.update(fields)
        return StudentQueries.create_student(data)

    return _make


@pytest.fixture
def sponsor():
    return SponsorQueries.create_sponsor({
        'first_name': 'Mary',
        'last_name': 'Smith',
        'email': 'mary@example.org',
        'country': 'USA',
        'start_date': '2024-03-01',
    })


@pytest.fixture
def exam(current_year):
    return ExamQueries.create_exam({
        'name': 'Mid Term Exam',
        'academic_year': current_year['year_name'],
        'term': 'Term 1',
        'exam_date': '2025-03-15',
    })
