"""
Database diagnostic script - check what's actually stored.

Prints row counts for every table and flags records that the
application would not be able to find or display properly.
"""

from sqlalchemy import func
from database import (
    Base, get_db_session, AcademicYear, Student, Sponsor, Exam, StudentExamScore,
)


def table_counts(db) -> dict:
    """Row count for every table, in dependency order."""
    return {
        table.name: db.query(func.count()).select_from(table).scalar()
        for table in Base.metadata.sorted_tables
    }


def find_issues(db) -> list:
    """Human-readable descriptions of suspicious data."""
    issues = []

    current_years = db.query(AcademicYear).filter_by(is_current=True).count()
    if current_years == 0:
        issues.append("No academic year is marked current")
    elif current_years > 1:
        issues.append(f"{current_years} academic years are marked current (expected 1)")

    known_years = {name for (name,) in db.query(AcademicYear.year_name).all()}
    orphan_students = db.query(Student).filter(Student.academic_year.notin_(known_years)).count() \
        if known_years else db.query(Student).count()
    if orphan_students:
        issues.append(f"{orphan_students} students belong to an academic year that does not exist")

    orphan_exams = db.query(Exam).filter(Exam.academic_year.notin_(known_years)).count() \
        if known_years else db.query(Exam).count()
    if orphan_exams:
        issues.append(f"{orphan_exams} exams belong to an academic year that does not exist")

    bad_scores = db.query(StudentExamScore)\
        .join(Exam, StudentExamScore.exam_id == Exam.id)\
        .filter(StudentExamScore.score > Exam.max_score)\
        .count()
    if bad_scores:
        issues.append(f"{bad_scores} scores are above their exam's maximum score")

    dns_with_score = db.query(StudentExamScore)\
        .filter(StudentExamScore.did_not_sit.is_(True), StudentExamScore.score.isnot(None))\
        .count()
    if dns_with_score:
        issues.append(f"{dns_with_score} 'did not sit' results still carry a score")

    missing_slugs = db.query(Student).filter((Student.slug == None) | (Student.slug == '')).count()  # noqa: E711
    missing_slugs += db.query(Sponsor).filter((Sponsor.slug == None) | (Sponsor.slug == '')).count()  # noqa: E711
    if missing_slugs:
        issues.append(f"{missing_slugs} students/sponsors have no slug")

    return issues


def check_database_contents():
    """Check what's actually in the database."""
    with get_db_session() as db:
        print("\n" + "="*80)
        print("DATABASE DIAGNOSTIC REPORT")
        print("="*80)

        print("\n📊 Row counts:")
        for table, count in table_counts(db).items():
            print(f"  {table:<28} {count}")

        current = db.query(AcademicYear).filter_by(is_current=True).first()
        if current:
            students = db.query(Student).filter_by(academic_year=current.year_name).count()
            sponsored = db.query(Student)\
                .filter(Student.academic_year == current.year_name, Student.sponsor_id.isnot(None))\
                .count()
            print(f"\n📅 Current academic year: {current.year_name}")
            print(f"  - Students: {students} ({sponsored} sponsored)")
            print(f"  - Exams: {db.query(Exam).filter_by(academic_year=current.year_name).count()}")

        print("\n" + "="*80)
        print("POTENTIAL ISSUES")
        print("="*80)

        issues = find_issues(db)
        for issue in issues:
            print(f"\n⚠️  {issue}")
        if not issues:
            print("\n✅ No obvious problems detected!")

        print("\n" + "="*80)
        return issues


def check_specific_student(admission_number):
    """Deep dive into one admission number across academic years."""
    with get_db_session() as db:
        print("\n" + "="*80)
        print("STUDENT DEEP DIVE")
        print("="*80)

        records = db.query(Student).filter_by(admission_number=admission_number)\
            .order_by(Student.academic_year).all()
        if not records:
            print(f"❌ No student with admission number {admission_number}")
            return

        for student in records:
            print(f"\n👤 {student.name} ({student.academic_year})")
            print(f"   Id: {student.id}")
            print(f"   Slug: {student.slug}")
            print(f"   Grade: {student.current_grade}")
            print(f"   Status: {student.status}")
            print(f"   Sponsor: {student.sponsor.full_name if student.sponsor else 'none'}")

            scores = db.query(StudentExamScore, Exam)\
                .join(Exam, StudentExamScore.exam_id == Exam.id)\
                .filter(StudentExamScore.student_id == student.id)\
                .order_by(Exam.exam_date)\
                .all()
            print(f"   Exam scores: {len(scores)}")
            for score, exam in scores:
                value = "DNS" if score.did_not_sit else f"{score.score}/{exam.max_score}"
                print(f"     - {exam.name} ({exam.academic_year}, {exam.term}): {value}")

        print("\n" + "="*80)


if __name__ == '__main__':
    import sys

    check_database_contents()

    if len(sys.argv) > 1:
        print("\n")
        check_specific_student(sys.argv[1])

    print("\n💡 To check a specific student:")
    print("   python diagnose_database.py <admission number>")
