import csv

import openpyxl
import pytest
from exports import (
    export_exam_scores_csv, export_students_csv, exam_scores_filename, export_exam_workbook,
    StudentReportPDF, SponsorReportPDF, export_student_reports, export_sponsor_reports,
)
from exports.paths import safe_filename
from queries import ExamQueries, SponsorQueries, StudentQueries, NotFoundError

UNKNOWN_ID = '3f2b8c1e-9d4a-4e7b-8a6c-1b2c3d4e5f60'


@pytest.fixture
def scored_exam(exam, make_student):
    alice = make_student('Alice Achieng')
    brian = make_student('Brian Otieno')
    make_student('Cynthia Wambui')
    ExamQueries.save_scores(exam['id'], [
        {'student_id': alice['id'], 'score': 85},
        {'student_id': brian['id'], 'did_not_sit': True},
    ])
    return exam


def test_filenames():
    assert exam_scores_filename('Mid Term Exam') == 'Mid_Term_Exam_scores.csv'
    assert safe_filename('../etc/passwd') == '..etcpasswd'
    assert safe_filename('  ') == 'export'


def test_exam_scores_csv(scored_exam, tmp_path):
    path = export_exam_scores_csv(scored_exam['id'], tmp_path)
    assert path.name == 'Mid_Term_Exam_scores.csv'

    with open(path, newline='', encoding='utf-8') as f:
        rows = list(csv.reader(f))
    assert rows[0] == ['Exam Name', 'Mid Term Exam']
    assert rows[2] == ['Term', 'Term 1']
    assert rows[6] == []
    assert rows[7][:4] == ['Admission Number', 'Student Name', 'Grade Level', 'Score']

    by_name = {row[1]: row for row in rows[8:]}
    assert by_name['Alice Achieng'][3] == '85'
    assert by_name['Brian Otieno'][3] == 'DNS'
    assert by_name['Cynthia Wambui'][3] == ''


def test_exports_reject_unknown_exam(current_year, tmp_path):
    with pytest.raises(NotFoundError):
        export_exam_scores_csv(UNKNOWN_ID, tmp_path)
    with pytest.raises(NotFoundError):
        export_exam_workbook(UNKNOWN_ID, tmp_path)


def test_students_csv(make_student, tmp_path):
    make_student('Alice Achieng', admission_number='A1')
    path = export_students_csv(StudentQueries.list_students(), 'grade 3', tmp_path)
    assert path.name == 'grade_3.csv'

    with open(path, newline='', encoding='utf-8') as f:
        rows = list(csv.reader(f))
    assert rows[0][0] == 'Admission Number'
    assert rows[1][:3] == ['A1', 'Alice Achieng', 'Female']


def test_exam_workbook(scored_exam, tmp_path):
    path = export_exam_workbook(scored_exam['id'], tmp_path)
    assert path.name == 'Mid_Term_Exam_results.xlsx'

    wb = openpyxl.load_workbook(path)
    assert wb.sheetnames == ['Results', 'Summary']

    results = wb['Results']
    assert results['A3'].value == 'Admission Number'
    scores = {results.cell(row=r, column=2).value: results.cell(row=r, column=4).value
              for r in range(4, results.max_row + 1)}
    assert scores['Alice Achieng'] == 85
    assert scores['Brian Otieno'] == 'DNS'

    summary = {row[0]: row[1] for row in wb['Summary'].iter_rows(min_row=3, values_only=True) if row[0]}
    assert summary['Scored'] == 1
    assert summary['Did Not Sit'] == 1
    assert summary['Pass Rate'] == '100.0%'


def test_student_pdf(scored_exam, tmp_path):
    student = StudentQueries.search_students_by_name('Alice')[0]
    path = StudentReportPDF().export(student['id'], tmp_path)
    assert path.name == f"{student['admission_number']}_Alice_Achieng.pdf"
    assert path.read_bytes().startswith(b'%PDF')


def test_student_pdf_without_results(make_student):
    student = make_student('No Exams')
    data = StudentReportPDF().render(student, {'exams': [], 'term_averages': []})
    assert data.startswith(b'%PDF')


def test_sponsor_pdf(sponsor, make_student, tmp_path):
    student = make_student('Alice Achieng')
    SponsorQueries.assign_students(sponsor['id'], [student['id']])
    path = SponsorReportPDF().export(sponsor['id'], tmp_path)
    assert path.name == 'sponsor_Mary_Smith.pdf'
    assert path.read_bytes().startswith(b'%PDF')

    with pytest.raises(NotFoundError):
        SponsorReportPDF().export(UNKNOWN_ID, tmp_path)


def test_bulk_student_reports_keep_going_after_failures(make_student, tmp_path):
    first = make_student('Alice Achieng')
    second = make_student('Brian Otieno')
    ids = [first['id'], UNKNOWN_ID, second['id']]

    results = export_student_reports(ids, tmp_path, num_workers=1)
    assert [r.item for r in results] == ids
    assert [r.ok for r in results] == [True, False, True]
    assert isinstance(results[1].error, NotFoundError)
    assert results[0].value.exists()
    assert results[2].value.exists()


def test_bulk_sponsor_reports(sponsor, tmp_path):
    progress = []
    results = export_sponsor_reports([sponsor['id'], UNKNOWN_ID], tmp_path, num_workers=1,
                                     progress=lambda done, total: progress.append((done, total)))
    assert [r.ok for r in results] == [True, False]
    assert progress == [(1, 2), (2, 2)]


def test_bulk_reports_with_several_workers_on_fresh_database(make_student, sponsor, tmp_path):
    ids = [make_student()['id'] for _ in range(12)]

    results = export_student_reports(ids, tmp_path, num_workers=3)
    assert [r.item for r in results] == ids
    assert [r.error for r in results if not r.ok] == []
    assert len(list(tmp_path.glob('*.pdf'))) == 12

    sponsor_ids = [sponsor['id']] + [
        SponsorQueries.create_sponsor({'first_name': name, 'last_name': 'Doe', 'email': f"{name.lower()}@example.org"})['id']
        for name in ('John', 'Jane')
    ]
    results = export_sponsor_reports(sponsor_ids, tmp_path, num_workers=3)
    assert [r.ok for r in results] == [True, True, True]
