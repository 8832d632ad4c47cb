import pytest
from queries import StudentQueries, SponsorQueries, ValidationError, NotFoundError, AuditLogQueries


def test_create_student_defaults(current_year, admin):
    student = StudentQueries.create_student({'admission_number': ' ADM100 ', 'name': 'Jane Wanjiru'})
    assert student['admission_number'] == 'ADM100'
    assert student['academic_year'] == '2025'
    assert student['status'] == 'Active'
    assert student['slug'] == 'jane-wanjiru'
    assert student['sponsor_name'] is None

    log = AuditLogQueries.list_logs(entity='student')[0]
    assert log['action'] == 'create'
    assert log['username'] == 'admin@example.org'


def test_create_student_requires_name_and_admission_number(current_year):
    with pytest.raises(ValidationError):
        StudentQueries.create_student({'admission_number': 'ADM1'})
    with pytest.raises(ValidationError):
        StudentQueries.create_student({'name': 'No Number'})


def test_create_student_rejects_duplicate_admission_number_in_same_year(make_student):
    make_student(admission_number='ADM777')
    with pytest.raises(ValidationError, match='already exists'):
        make_student(admission_number='ADM777')
    # Another year is fine
    other = make_student(admission_number='ADM777', academic_year='2024')
    assert other['academic_year'] == '2024'


def test_create_student_validates_status_and_measurements(current_year):
    with pytest.raises(ValidationError):
        StudentQueries.create_student({'admission_number': 'A1', 'name': 'A', 'status': 'Expelled'})
    with pytest.raises(ValidationError):
        StudentQueries.create_student({'admission_number': 'A2', 'name': 'B', 'height_cm': -3})


def test_measurements_from_text(current_year):
    student = StudentQueries.create_student({
        'admission_number': 'H1', 'name': 'Tall', 'height_cm': '150', 'weight_kg': ' 42.5 ', 'location': 'Nairobi',
    })
    assert student['height_cm'] == 150.0
    assert student['weight_kg'] == 42.5

    with pytest.raises(ValidationError, match='height_cm must be a number'):
        StudentQueries.create_student({'admission_number': 'H2', 'name': 'Short', 'height_cm': 'tall'})
    with pytest.raises(ValidationError, match='weight_kg must be a number'):
        StudentQueries.update_student(student['id'], {'weight_kg': 'heavy'})

    updated = StudentQueries.update_student(student['id'], {'height_cm': ''})
    assert updated['height_cm'] is None


def test_lookup_by_id_slug_and_admission_number(make_student):
    student = make_student('Jane Wanjiru', admission_number='ADM042')
    assert StudentQueries.get_student(student['id'])['name'] == 'Jane Wanjiru'
    assert StudentQueries.get_student('jane-wanjiru')['id'] == student['id']
    assert StudentQueries.get_student_by_admission_number('ADM042')['id'] == student['id']
    assert StudentQueries.get_student_by_admission_number('ADM042', '2019') is None
    assert StudentQueries.get_student('nobody') is None


def test_search_students_by_name_matches_every_word(make_student):
    make_student('Jane Wanjiru')
    make_student('Janet Achieng')
    make_student('Peter Otieno')
    assert [s['name'] for s in StudentQueries.search_students_by_name('jan')] == ['Jane Wanjiru', 'Janet Achieng']
    assert [s['name'] for s in StudentQueries.search_students_by_name('jane wan')] == ['Jane Wanjiru']
    assert StudentQueries.search_students_by_name('   ') == []


def test_list_students_filters(make_student):
    make_student('A', current_grade='Grade 1')
    make_student('B', current_grade='Grade 2')
    make_student('C', current_grade='Grade 2', status='Inactive')

    assert len(StudentQueries.list_students('current')) == 3
    assert [s['name'] for s in StudentQueries.list_students(grade='Grade 2')] == ['B', 'C']
    assert [s['name'] for s in StudentQueries.list_students(status='Inactive')] == ['C']


def test_list_available_students_excludes_sponsored_and_inactive(make_student, sponsor):
    free = make_student('Free')
    taken = make_student('Taken')
    make_student('Gone', status='Graduated')
    SponsorQueries.assign_students(sponsor['id'], [taken['id']])

    assert [s['id'] for s in StudentQueries.list_available_students('2025')] == [free['id']]


def test_update_student_regenerates_slug_on_rename(make_student):
    student = make_student('Old Name')
    updated = StudentQueries.update_student(student['id'], {'name': 'New Name', 'current_grade': 'Grade 4'})
    assert updated['slug'] == 'new-name'
    assert updated['current_grade'] == 'Grade 4'

    with pytest.raises(NotFoundError):
        StudentQueries.update_student('3f2b8c1e-9d4a-4e7b-8a6c-1b2c3d4e5f60', {'name': 'X'})


def test_set_status(make_student):
    student = make_student()
    assert StudentQueries.set_status(student['id'], 'Graduated')['status'] == 'Graduated'
    with pytest.raises(ValidationError):
        StudentQueries.set_status(student['id'], 'Missing')


def test_delete_student_removes_child_records(make_student):
    student = make_student()
    StudentQueries.add_relative(student['id'], {'name': 'Grace', 'relationship': 'Mother'})
    StudentQueries.add_letter(student['id'], {'content': 'Dear sponsor', 'date': '2025-02-01'})

    assert StudentQueries.delete_student(student['id']) is True
    assert StudentQueries.get_student(student['id']) is None
    assert StudentQueries.list_relatives(student['id']) == []
    assert StudentQueries.delete_student(student['id']) is False


def test_child_records_crud(make_student):
    student = make_student()

    relative = StudentQueries.add_relative(student['id'], {'name': 'Grace', 'relationship': 'Mother'})
    updated = StudentQueries.update_relative(relative['id'], {'phone_number': '0700 000000'})
    assert updated['phone_number'] == '0700 000000'

    StudentQueries.add_timeline_event(student['id'], {'title': 'Joined', 'type': 'general', 'date': '2025-01-10'})
    StudentQueries.add_timeline_event(student['id'], {'title': 'Promoted', 'type': 'academic', 'date': '2025-06-10'})
    assert [e['title'] for e in StudentQueries.list_timeline_events(student['id'])] == ['Promoted', 'Joined']

    photo = StudentQueries.add_photo(student['id'], {'url': 'https://example.org/p.jpg', 'caption': 'Sports day'})
    assert StudentQueries.list_photos(student['id'])[0]['caption'] == 'Sports day'
    assert StudentQueries.delete_photo(photo['id']) is True
    assert StudentQueries.list_photos(student['id']) == []

    with pytest.raises(ValidationError):
        StudentQueries.add_relative(student['id'], {'name': 'No relationship'})
    with pytest.raises(ValidationError):
        StudentQueries.add_letter(student['id'], {})
    with pytest.raises(NotFoundError):
        StudentQueries.add_photo('3f2b8c1e-9d4a-4e7b-8a6c-1b2c3d4e5f60', {'url': 'x'})
