import pytest
from queries import AcademicYearQueries, ExamQueries, AuditLogQueries, ValidationError, NotFoundError
from queries.academic_year_queries import next_grade, default_promotion_map, percent_change


def test_next_grade():
    assert next_grade('Grade 3') == 'Grade 4'
    assert next_grade('Grade 12') == 'Alumni'
    assert next_grade('Grade 13') == 'Grade 14'
    assert next_grade('PP2') == 'PP2'


def test_default_promotion_map():
    assert default_promotion_map(['Grade 11', 'Grade 12', 'PP2']) == {
        'Grade 11': 'Grade 12', 'Grade 12': 'Alumni', 'PP2': 'PP2',
    }


def test_percent_change():
    assert percent_change(12, 10) == 20.0
    assert percent_change(5, 0) == 0.0
    assert percent_change(2, 3) == -33.3


def test_only_one_current_year(current_year):
    new = AcademicYearQueries.create_year('2026', '2026-01-01', '2026-12-31', is_current=True)
    assert AcademicYearQueries.get_current_year()['id'] == new['id']
    assert AcademicYearQueries.get_year(current_year['id'])['is_current'] is False

    AcademicYearQueries.set_current(current_year['id'])
    assert AcademicYearQueries.get_current_year_name() == '2025'
    assert AuditLogQueries.list_logs(entity='academic_year_change')[0]['action'] == 'system'


def test_current_year_name_falls_back_to_calendar_year():
    from datetime import datetime
    assert AcademicYearQueries.get_current_year() is None
    assert AcademicYearQueries.get_current_year_name() == str(datetime.now().year)


def test_create_year_validation(current_year):
    with pytest.raises(ValidationError, match='already exists'):
        AcademicYearQueries.create_year('2025', '2025-01-01', '2025-12-31')
    with pytest.raises(ValidationError):
        AcademicYearQueries.create_year('2030', '2030-12-31', '2030-01-01')
    with pytest.raises(ValidationError):
        AcademicYearQueries.create_year('', '2031-01-01', '2031-12-31')


def test_list_and_lookup(current_year):
    AcademicYearQueries.create_year('2024', '2024-01-01', '2024-12-31')
    assert [y['year_name'] for y in AcademicYearQueries.list_years()] == ['2025', '2024']
    assert AcademicYearQueries.get_year_by_name('2024')['is_current'] is False


def test_update_year(current_year):
    updated = AcademicYearQueries.update_year(current_year['id'], {'end_date': '2025-11-30'})
    assert updated['end_date'] == '2025-11-30'
    with pytest.raises(NotFoundError):
        AcademicYearQueries.update_year('3f2b8c1e-9d4a-4e7b-8a6c-1b2c3d4e5f60', {})


def test_cannot_delete_current_year(current_year):
    with pytest.raises(ValidationError):
        AcademicYearQueries.delete_year(current_year['id'])
    old = AcademicYearQueries.create_year('2024', '2024-01-01', '2024-12-31')
    assert AcademicYearQueries.delete_year(old['id']) is True
    assert AcademicYearQueries.delete_year(old['id']) is False


def test_student_grades_sort_numerically(make_student):
    make_student(current_grade='Grade 10')
    make_student(current_grade='Grade 2')
    make_student(current_grade='PP1')
    make_student(current_grade='Grade 2')
    assert AcademicYearQueries.get_student_grades('2025') == ['Grade 2', 'Grade 10', 'PP1']


def test_year_statistics_compares_with_previous_year(current_year, make_student):
    previous = AcademicYearQueries.create_year('2024', '2024-01-01', '2024-12-31')
    make_student(academic_year='2024')
    make_student(academic_year='2024')
    for _ in range(3):
        make_student()
    ExamQueries.create_exam({'name': 'Opener', 'academic_year': '2025', 'term': 'Term 1', 'exam_date': '2025-01-20'})

    stats = AcademicYearQueries.get_year_statistics(current_year['id'])
    assert stats['year_name'] == '2025'
    assert stats['previous_year_name'] == '2024'
    assert stats['student_count'] == 3
    assert stats['student_change_percent'] == 50.0
    assert stats['exam_count'] == 1
    assert stats['exam_change_percent'] == 0.0

    first = AcademicYearQueries.get_year_statistics(previous['id'])
    assert first['previous_year_name'] is None
    assert first['student_change_percent'] == 0.0
