import logging
from datetime import datetime
from typing import Dict, Optional
from database import get_db, Student
from database.models import STUDENT_STATUSES
from queries.academic_year_queries import resolve_current_year_name
from queries.audit_log import AuditLogger
from queries.errors import ValidationError
from queries.slugs import unique_slug
from queries.utils import parse_date
from .columns import read_csv, auto_map_headers, validate_mapping

logger = logging.getLogger(__name__)

# Checked in order: date columns before 'adm', so 'admission_date' is not
# taken for the admission number
HEADER_RULES = [
    ('admission_date', ('admission_date', 'join'), ()),
    ('dob', ('dob', 'birth'), ()),
    ('admission_number', ('admission', 'adm'), ()),
    ('name', ('name', 'student'), ()),
    ('gender', ('gender', 'sex'), ()),
    ('current_grade', ('grade', 'class'), ()),
    ('status', ('status',), ()),
]
REQUIRED_FIELDS = ('admission_number', 'name')
FIELD_LABELS = {
    'admission_number': 'Admission Number',
    'name': 'Name',
    'gender': 'Gender',
    'current_grade': 'Current Grade',
    'admission_date': 'Admission Date',
    'dob': 'Date of Birth',
    'status': 'Status',
}

SAMPLE_CSV = """admission_number,name,gender,current_grade,admission_date,dob,status
STUD001,John Doe,Male,Grade 3,2023-01-15,2016-05-10,Active
STUD002,Jane Smith,Female,Grade 5,2022-09-01,2013-11-21,Active
STUD003,Michael Johnson,Male,Grade 1,2024-01-10,2018-03-15,Active
"""


def normalize_gender(value: str) -> Optional[str]:
    if not value:
        return None
    return 'Male' if value.strip().lower() in ('m', 'male') else 'Female'


class StudentImporter:
    """Bulk-create students from a CSV file."""

    @staticmethod
    def sample_csv() -> str:
        return SAMPLE_CSV

    @staticmethod
    def auto_map_headers(headers) -> Dict[str, Optional[str]]:
        return auto_map_headers(headers, HEADER_RULES)

    @staticmethod
    def import_students(source, academic_year: str = None,
                        column_mapping: Dict[str, Optional[str]] = None) -> Dict:
        """
        Import students from CSV.

        Args:
            source: Path or file-like object
            academic_year: Year to record the students in (default: current)
            column_mapping: {header: field} overriding the automatic mapping;
                use None to ignore a column

        Returns:
            {'imported': n, 'skipped': n, 'total': n}

        Raises:
            ValidationError: Bad mapping, bad dates, or every admission
                number already exists
        """
        df = read_csv(source)
        mapping = dict(StudentImporter.auto_map_headers(df.columns))
        if column_mapping:
            mapping.update(column_mapping)
        validate_mapping(mapping, REQUIRED_FIELDS, FIELD_LABELS)
        field_to_header = {field: header for header, field in mapping.items() if field}

        db = get_db()
        try:
            year_name = academic_year or resolve_current_year_name(db)
            existing = {
                row[0] for row in db.query(Student.admission_number)
                .filter(Student.academic_year == year_name)
                .all()
            }
            user = AuditLogger.current_user()
            created_by = user.get('id') if user else None

            imported = 0
            skipped = 0
            for row_number, row in enumerate(df.to_dict('records'), start=2):
                values = {field: row.get(header, '') for field, header in field_to_header.items()}
                admission_number = values['admission_number']
                name = values['name']
                if not admission_number or not name:
                    logger.warning(f"Row {row_number}: missing admission number or name, skipped")
                    skipped += 1
                    continue
                if admission_number in existing:
                    skipped += 1
                    continue

                try:
                    admission_date = parse_date(values.get('admission_date'))
                    dob = parse_date(values.get('dob'))
                except ValidationError as e:
                    raise ValidationError(f"Row {row_number}: {e}")
                status = (values.get('status') or 'Active').capitalize()
                if status not in STUDENT_STATUSES:
                    raise ValidationError(f"Row {row_number}: invalid status '{values.get('status')}'")

                student = Student(
                    admission_number=admission_number,
                    name=name,
                    gender=normalize_gender(values.get('gender')),
                    current_grade=values.get('current_grade') or None,
                    admission_date=admission_date,
                    dob=dob,
                    status=status,
                    academic_year=year_name,
                    record_date=datetime.now(),
                    created_by=created_by,
                    slug=unique_slug(db, Student, name),
                )
                db.add(student)
                db.flush()
                existing.add(admission_number)
                imported += 1

            if not imported:
                raise ValidationError("All students in this CSV already exist in the database")
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Imported {imported} students into {year_name} ({skipped} skipped)")
        AuditLogger.log_create('student', 'bulk', f"Imported {imported} students from CSV into {year_name}")
        return {'imported': imported, 'skipped': skipped, 'total': len(df)}
