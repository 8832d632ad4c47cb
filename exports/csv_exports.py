import csv
import logging
import re
from pathlib import Path
from typing import Dict, List
from queries import ExamQueries, NotFoundError
from .paths import output_dir, safe_filename

logger = logging.getLogger(__name__)

SCORE_HEADERS = ['Admission Number', 'Student Name', 'Grade Level', 'Score', 'Status', 'Performance']
STUDENT_HEADERS = [
    ('Admission Number', 'admission_number'),
    ('Name', 'name'),
    ('Gender', 'gender'),
    ('Grade', 'current_grade'),
    ('Status', 'status'),
    ('Academic Year', 'academic_year'),
    ('Date of Birth', 'dob'),
    ('Admission Date', 'admission_date'),
    ('Sponsor', 'sponsor_name'),
]


def exam_scores_filename(exam_name: str) -> str:
    """'Mid Term Exam' -> 'Mid_Term_Exam_scores.csv'"""
    return safe_filename(re.sub(r'\s+', '_', exam_name)) + '_scores.csv'


def exam_scores_rows(results: Dict) -> List[List]:
    """
    Rows of the exam scores CSV.

    Exam details come first, then a blank row, then one row per student.
    """
    exam = results['exam']
    rows = [
        ['Exam Name', exam['name']],
        ['Academic Year', exam['academic_year']],
        ['Term', exam['term']],
        ['Exam Date', exam['exam_date']],
        ['Maximum Score', exam['max_score']],
        ['Passing Score', exam['passing_score']],
        [],
        SCORE_HEADERS,
    ]
    for row in results['results']:
        if row['did_not_sit']:
            score = 'DNS'
        elif row['score'] is None:
            score = ''
        else:
            score = f"{row['score']:g}"
        rows.append([
            row['admission_number'],
            row['name'],
            row['current_grade'] or '',
            score,
            row['status'],
            row['performance'],
        ])
    return rows


def export_exam_scores_csv(exam_id: str, directory=None) -> Path:
    """
    Write an exam's scores to <exam name>_scores.csv.

    Raises:
        NotFoundError: Unknown exam
    """
    results = ExamQueries.get_exam_results(exam_id)
    if results is None:
        raise NotFoundError(f"No exam with id {exam_id}")

    path = output_dir(directory) / exam_scores_filename(results['exam']['name'])
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerows(exam_scores_rows(results))

    logger.info(f"Exported {len(results['results'])} scores to {path}")
    return path


def export_students_csv(students: List[Dict], filename: str = 'students.csv', directory=None) -> Path:
    """Write a student list (as returned by StudentQueries) to CSV."""
    if not filename.endswith('.csv'):
        filename += '.csv'
    path = output_dir(directory) / safe_filename(filename)
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow([label for label, _ in STUDENT_HEADERS])
        for student in students:
            writer.writerow([student.get(key) or '' for _, key in STUDENT_HEADERS])

    logger.info(f"Exported {len(students)} students to {path}")
    return path
