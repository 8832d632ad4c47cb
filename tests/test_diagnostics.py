from database import get_db, get_db_session, Student, StudentExamScore
from database.init_db import init_database, verify_database
from diagnose_database import table_counts, find_issues, check_database_contents, check_specific_student
from queries import AcademicYearQueries, ExamQueries
import cli


def _issues():
    with get_db_session() as db:
        return find_issues(db)


def test_no_current_year_is_reported():
    AcademicYearQueries.create_year('2024', '2024-01-01', '2024-12-31')
    assert _issues() == ["No academic year is marked current"]


def test_clean_database(exam, make_student):
    student = make_student()
    ExamQueries.save_scores(exam['id'], [{'student_id': student['id'], 'score': 70}])
    assert _issues() == []

    with get_db_session() as db:
        counts = table_counts(db)
    assert counts['students'] == 1
    assert counts['exams'] == 1
    assert counts['academic_years'] == 1


def test_broken_rows_are_reported(exam, make_student):
    student = make_student()
    db = get_db()
    try:
        db.add(Student(admission_number='X1', name='Lost', academic_year='1999', status='Active', slug='lost'))
        db.add(StudentExamScore(exam_id=exam['id'], student_id=student['id'], score=40, did_not_sit=True))
        db.commit()
    finally:
        db.close()

    issues = _issues()
    assert "1 students belong to an academic year that does not exist" in issues
    assert "1 'did not sit' results still carry a score" in issues


def test_cli_arguments(monkeypatch):
    monkeypatch.delenv('RECORDS_USER', raising=False)
    args = cli.parse_args([])
    assert args.year is None
    assert args.user is None

    args = cli.parse_args(['--year', '2024', '--user', 'admin@example.org'])
    assert args.year == '2024'
    assert args.user == 'admin@example.org'


def test_init_and_verify_database():
    init_database()
    assert verify_database() is True


def test_printed_reports(exam, make_student, capsys):
    student = make_student('Alice Achieng', admission_number='A1')
    ExamQueries.save_scores(exam['id'], [{'student_id': student['id'], 'did_not_sit': True}])

    assert check_database_contents() == []
    out = capsys.readouterr().out
    assert "Current academic year: 2025" in out
    assert "No obvious problems detected!" in out

    check_specific_student('A1')
    out = capsys.readouterr().out
    assert "Alice Achieng (2025)" in out
    assert "Mid Term Exam (2025, Term 1): DNS" in out

    check_specific_student('NOPE')
    assert "No student with admission number NOPE" in capsys.readouterr().out
