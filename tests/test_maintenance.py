import json
from datetime import date

import pytest
from queries import (
    DataMaintenance, StudentQueries, SponsorQueries, ExamQueries, AcademicYearQueries, UserQueries,
    SettingsQueries, AuditLogQueries, ValidationError,
)
from queries.maintenance import RESET_CONFIRMATION


@pytest.fixture
def records(make_student, sponsor, exam):
    student = make_student('Amina', dob='2015-04-02')
    SponsorQueries.assign_students(sponsor['id'], [student['id']])
    ExamQueries.save_scores(exam['id'], [{'student_id': student['id'], 'score': 72}])
    return student


def test_backup_contains_every_table_except_audit_log(records):
    backup = DataMaintenance.backup_all_data()
    assert backup['version'] == '1.0'
    assert 'audit_logs' not in backup['data']
    assert len(backup['data']['students']) == 1
    row = backup['data']['students'][0]
    assert row['dob'] == '2015-04-02'
    # JSON-ready
    json.dumps(backup)


def test_write_backup_and_restore_round_trip(records, tmp_path):
    path = DataMaintenance.write_backup(tmp_path)
    assert path.name == f"backup-{date.today().isoformat()}.json"

    StudentQueries.delete_student(records['id'])
    assert StudentQueries.get_student(records['id']) is None

    restored = DataMaintenance.restore_all_data(DataMaintenance.load_backup(path))
    assert restored['students'] == 1
    student = StudentQueries.get_student(records['id'])
    assert student['dob'] == '2015-04-02'
    assert student['sponsor_name'] == 'Mary Smith'
    assert ExamQueries.get_student_exam_history(records['id'])['exams'][0]['score'] == 72

    # Audit trail survives the restore
    assert AuditLogQueries.list_logs(action='restore')
    assert AuditLogQueries.list_logs(entity='student', action='delete')


def test_restore_keeps_acting_user(records, admin):
    backup = DataMaintenance.backup_all_data()
    backup['data']['profiles'] = []
    DataMaintenance.restore_all_data(backup)
    assert UserQueries.get_user(admin['id']) is not None


def test_restore_rejects_bad_payload():
    with pytest.raises(ValidationError, match='Invalid backup file format'):
        DataMaintenance.restore_all_data({'students': []})


def test_factory_reset(records, admin):
    with pytest.raises(ValidationError):
        DataMaintenance.factory_reset('delete all data')

    result = DataMaintenance.factory_reset(RESET_CONFIRMATION)
    year = str(date.today().year)
    assert result['academic_year'] == year
    assert StudentQueries.list_students() == []
    assert SponsorQueries.list_sponsors() == []
    assert AcademicYearQueries.get_current_year()['year_name'] == year
    assert AcademicYearQueries.get_current_year()['start_date'] == f"{year}-01-01"
    assert SettingsQueries.get_app_settings()['primary_color'] == '#9b87f5'
    assert [u['id'] for u in UserQueries.list_users()] == [admin['id']]
    assert AuditLogQueries.list_logs(action='factory_reset')[0]['details'] == 'Complete factory reset performed'
