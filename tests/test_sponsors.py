import pytest
from queries import SponsorQueries, StudentQueries, ValidationError, NotFoundError


def test_create_sponsor(sponsor):
    assert sponsor['full_name'] == 'Mary Smith'
    assert sponsor['slug'] == 'mary-smith'
    assert sponsor['status'] == 'active'
    assert sponsor['start_date'] == '2024-03-01'


def test_create_sponsor_validation():
    with pytest.raises(ValidationError):
        SponsorQueries.create_sponsor({'first_name': 'No', 'last_name': 'Email'})
    with pytest.raises(ValidationError):
        SponsorQueries.create_sponsor({'first_name': 'A', 'last_name': 'B', 'email': 'a@b.org', 'status': 'paused'})


def test_get_sponsor_by_slug_lists_students(sponsor, make_student):
    zed = make_student('Zed Kamau')
    amy = make_student('Amy Njeri')
    assert SponsorQueries.assign_students(sponsor['id'], [zed['id'], amy['id']]) == 2

    result = SponsorQueries.get_sponsor('mary-smith')
    assert [s['name'] for s in result['students']] == ['Amy Njeri', 'Zed Kamau']
    assert StudentQueries.get_student(zed['id'])['sponsor_name'] == 'Mary Smith'
    assert StudentQueries.get_student(zed['id'])['sponsored_since'] is not None


def test_assign_students_writes_timeline_and_rejects_unknown_ids(sponsor, make_student):
    student = make_student()
    SponsorQueries.assign_students(sponsor['id'], [student['id']])
    events = SponsorQueries.list_timeline_events(sponsor['id'])
    assert events[0]['title'] == 'Student Assigned'
    assert events[0]['student_id'] == student['id']

    with pytest.raises(NotFoundError):
        SponsorQueries.assign_students(sponsor['id'], ['3f2b8c1e-9d4a-4e7b-8a6c-1b2c3d4e5f60'])
    assert SponsorQueries.assign_students(sponsor['id'], []) == 0


def test_remove_student_requires_reason_and_records_it(sponsor, make_student):
    student = make_student()
    SponsorQueries.assign_students(sponsor['id'], [student['id']])

    with pytest.raises(ValidationError):
        SponsorQueries.remove_student(sponsor['id'], student['id'], '')

    assert SponsorQueries.remove_student(sponsor['id'], student['id'], 'Graduated', 'Moved to secondary') is True
    assert StudentQueries.get_student(student['id'])['sponsor_id'] is None
    removal = [e for e in SponsorQueries.list_timeline_events(sponsor['id']) if e['type'] == 'student_removal'][0]
    assert removal['description'] == 'Student was removed. Reason: Graduated. Notes: Moved to secondary'

    # Not linked any more
    assert SponsorQueries.remove_student(sponsor['id'], student['id'], 'Again') is False


def test_list_sponsors_counts_students(sponsor, make_student):
    other = SponsorQueries.create_sponsor({'first_name': 'Alan', 'last_name': 'Brown', 'email': 'alan@example.org',
                                           'status': 'inactive'})
    SponsorQueries.assign_students(sponsor['id'], [make_student()['id'], make_student()['id']])

    sponsors = {s['id']: s for s in SponsorQueries.list_sponsors()}
    assert sponsors[sponsor['id']]['student_count'] == 2
    assert sponsors[other['id']]['student_count'] == 0
    assert [s['id'] for s in SponsorQueries.list_sponsors(status='inactive')] == [other['id']]


def test_search_sponsors(sponsor):
    assert [s['id'] for s in SponsorQueries.search_sponsors('SMI')] == [sponsor['id']]
    assert [s['id'] for s in SponsorQueries.search_sponsors('mary@')] == [sponsor['id']]
    assert SponsorQueries.search_sponsors('nobody') == []


def test_update_sponsor_renames_slug(sponsor):
    updated = SponsorQueries.update_sponsor(sponsor['id'], {'last_name': 'Jones'})
    assert updated['slug'] == 'mary-jones'


def test_delete_sponsor_unlinks_students(sponsor, make_student):
    student = make_student()
    SponsorQueries.assign_students(sponsor['id'], [student['id']])
    SponsorQueries.add_relative(sponsor['id'], {'name': 'Tom', 'relationship': 'Spouse'})

    assert SponsorQueries.delete_sponsor(sponsor['id']) is True
    assert SponsorQueries.get_sponsor(sponsor['id']) is None
    unlinked = StudentQueries.get_student(student['id'])
    assert unlinked['sponsor_id'] is None
    assert unlinked['sponsored_since'] is None
    assert SponsorQueries.delete_sponsor(sponsor['id']) is False


def test_relatives_and_timeline_crud(sponsor):
    relative = SponsorQueries.add_relative(sponsor['id'], {'name': 'Tom', 'relationship': 'Spouse'})
    assert SponsorQueries.update_relative(relative['id'], {'phone_number': '555'})['phone_number'] == '555'
    assert [r['name'] for r in SponsorQueries.list_relatives(sponsor['id'])] == ['Tom']
    assert SponsorQueries.delete_relative(relative['id']) is True

    event = SponsorQueries.add_timeline_event(sponsor['id'], {'title': 'Gift sent', 'type': 'payment'})
    assert SponsorQueries.update_timeline_event(event['id'], {'title': 'Gift received'})['title'] == 'Gift received'
    with pytest.raises(ValidationError):
        SponsorQueries.add_timeline_event(sponsor['id'], {'title': 'X', 'type': 'party'})
    with pytest.raises(ValidationError):
        SponsorQueries.update_timeline_event(event['id'], {'type': 'party'})
    assert SponsorQueries.delete_timeline_event(event['id']) is True
    assert SponsorQueries.list_timeline_events(sponsor['id']) == []
