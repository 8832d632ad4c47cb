import logging
from datetime import datetime
from typing import Callable, Dict, Optional
from database import get_db, Exam, Student, StudentExamScore
from queries.audit_log import AuditLogger
from queries.errors import ValidationError, NotFoundError
from queries.slugs import is_uuid
from .columns import read_csv, auto_map_headers, validate_mapping

logger = logging.getLogger(__name__)

BATCH_SIZE = 50

HEADER_RULES = [
    ('student_id', ('admission', 'student'), ('id',)),
    ('score', ('score', 'mark', 'grade'), ()),
    ('did_not_sit', ('absent', 'not_sit', 'dns', 'did_not_sit'), ()),
]
REQUIRED_FIELDS = ('student_id', 'score')
FIELD_LABELS = {
    'student_id': 'Student',
    'score': 'Score',
    'did_not_sit': 'Did Not Sit',
}

SAMPLE_CSV = """admission_number,student_name,score,did_not_sit
ST001,John Doe,85,false
ST002,Jane Smith,92,false
ST003,Sam Johnson,76,false
ST004,Emma Williams,0,true
ST005,Alex Brown,88,false
"""


def parse_score(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_flag(value) -> bool:
    return str(value or '').strip().lower() in ('true', '1')


class ExamScoreImporter:
    """Upsert one exam's scores from a CSV file."""

    @staticmethod
    def sample_csv() -> str:
        return SAMPLE_CSV

    @staticmethod
    def auto_map_headers(headers) -> Dict[str, Optional[str]]:
        return auto_map_headers(headers, HEADER_RULES)

    @staticmethod
    def import_scores(exam_id: str, source, column_mapping: Dict[str, Optional[str]] = None,
                      progress: Optional[Callable[[int], None]] = None) -> Dict:
        """
        Import scores for an exam.

        The student column may hold admission numbers or student ids.
        Admission numbers are matched against active students, preferring
        the exam's academic year; rows whose student cannot be found are
        skipped. Scores are clamped to 0..max_score and absent students are
        stored without a score.

        Args:
            exam_id: Exam to import into
            source: Path or file-like object
            column_mapping: {header: field} overriding the automatic mapping
            progress: Called with the percentage done after each batch of 50

        Returns:
            {'imported': n, 'skipped': n, 'total': n}; imported counts
            distinct students, so a repeated student counts once

        Raises:
            NotFoundError: Unknown exam
            ValidationError: Bad mapping, or no row matched a student
        """
        report = progress or (lambda percent: None)
        df = read_csv(source)
        mapping = dict(ExamScoreImporter.auto_map_headers(df.columns))
        if column_mapping:
            mapping.update(column_mapping)
        validate_mapping(mapping, REQUIRED_FIELDS, FIELD_LABELS)
        field_to_header = {field: header for header, field in mapping.items() if field}

        db = get_db()
        try:
            exam = db.query(Exam).filter_by(id=exam_id).first()
            if not exam:
                raise NotFoundError(f"No exam with id {exam_id}")

            admission_map = ExamScoreImporter._admission_map(db, exam.academic_year)
            known_ids = {row[0] for row in db.query(Student.id).all()}
            # Later rows for a student replace earlier ones
            by_student = {}
            skipped = 0
            for row in df.to_dict('records'):
                student_ref = row.get(field_to_header['student_id'], '')
                if is_uuid(student_ref):
                    student_id = student_ref if student_ref in known_ids else None
                else:
                    student_id = admission_map.get(student_ref)
                if not student_id:
                    skipped += 1
                    continue
                did_not_sit = parse_flag(row.get(field_to_header['did_not_sit'])) \
                    if 'did_not_sit' in field_to_header else False
                score = None if did_not_sit else min(
                    max(parse_score(row.get(field_to_header['score'])), 0.0), exam.max_score
                )
                by_student[student_id] = (student_id, score, did_not_sit)

            records = list(by_student.values())
            if not records:
                raise ValidationError(
                    "No valid student records found. Please check that admission numbers match existing students."
                )

            done = 0
            for start in range(0, len(records), BATCH_SIZE):
                batch = records[start:start + BATCH_SIZE]
                ExamScoreImporter._upsert_batch(db, exam_id, batch)
                db.commit()
                done += len(batch)
                report(round(done / len(records) * 100))
            exam_name = exam.name
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Imported {len(records)} scores for {exam_name} ({skipped} rows skipped)")
        AuditLogger.log_update('exam_scores', exam_id, f"Imported {len(records)} scores for {exam_name} from CSV")
        return {'imported': len(records), 'skipped': skipped, 'total': len(df)}

    @staticmethod
    def _admission_map(db, academic_year: str) -> Dict[str, str]:
        students = db.query(Student.id, Student.admission_number, Student.academic_year)\
            .filter(Student.status == 'Active')\
            .all()
        mapping = {}
        # Rows from the exam's own year overwrite other years
        for student_id, admission_number, year in sorted(students, key=lambda s: s[2] == academic_year):
            if admission_number:
                mapping[admission_number] = student_id
        return mapping

    @staticmethod
    def _upsert_batch(db, exam_id: str, batch):
        student_ids = [student_id for student_id, _, _ in batch]
        existing = {
            s.student_id: s for s in db.query(StudentExamScore)
            .filter(StudentExamScore.exam_id == exam_id, StudentExamScore.student_id.in_(student_ids))
            .all()
        }
        now = datetime.now()
        for student_id, score, did_not_sit in batch:
            row = existing.get(student_id)
            if row is None:
                row = StudentExamScore(exam_id=exam_id, student_id=student_id)
                db.add(row)
                existing[student_id] = row
            row.score = score
            row.did_not_sit = did_not_sit
            row.updated_at = now
