from datetime import date, datetime

import pytest
from database import get_db, Student
from queries import ValidationError
from queries.slugs import generate_slug, is_uuid, unique_slug
from queries.utils import parse_date, parse_datetime, apply_fields


def test_generate_slug():
    assert generate_slug("  Mary-Jane O'Neil ") == 'mary-jane-oneil'
    assert generate_slug("John   Doe") == 'john-doe'
    assert generate_slug("!!!") == ''


def test_is_uuid():
    assert is_uuid('3f2b8c1e-9d4a-4e7b-8a6c-1b2c3d4e5f60')
    assert not is_uuid('john-doe')
    assert not is_uuid(None)


def test_unique_slug_adds_numeric_suffix(make_student):
    make_student('John Doe')
    make_student('John Doe')
    db = get_db()
    try:
        assert unique_slug(db, Student, 'John Doe') == 'john-doe-2'
        assert unique_slug(db, Student, '???') == 'record'
    finally:
        db.close()


def test_parse_date_formats():
    assert parse_date('2025-03-15') == date(2025, 3, 15)
    assert parse_date('15/03/2025') == date(2025, 3, 15)
    assert parse_date(datetime(2025, 3, 15, 10, 30)) == date(2025, 3, 15)
    assert parse_date('') is None
    with pytest.raises(ValidationError):
        parse_date('not a date')


def test_parse_datetime_adds_midnight():
    assert parse_datetime('2025-03-15') == datetime(2025, 3, 15)
    assert parse_datetime('2025-03-15T08:30:00') == datetime(2025, 3, 15, 8, 30)


def test_apply_fields_only_touches_allowed_keys():
    class Record:
        name = None
        dob = None

    record = Record()
    changed = apply_fields(record, {'name': 'Amina', 'dob': '2015-06-01', 'secret': 'x'},
                           ('name', 'dob'), date_fields=('dob',))
    assert changed == ['name', 'dob']
    assert record.dob == date(2015, 6, 1)
    assert not hasattr(record, 'secret')
