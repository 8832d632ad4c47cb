"""Headline numbers for the dashboard."""

from typing import List, Dict
from sqlalchemy import func
from database import get_db, Student, Sponsor, Exam, StudentExamScore
from .audit_log import AuditLogQueries
from .grading import round_half_up


class DashboardQueries:

    @staticmethod
    def get_summary(academic_year: str = None) -> Dict:
        """
        Record counts, optionally limited to one academic year.

        Returns:
            Dictionary with student_count, sponsor_count, exam_count,
            unassigned_students (no sponsor) and sponsored_students
        """
        db = get_db()
        try:
            students = db.query(Student)
            exams = db.query(Exam)
            if academic_year:
                students = students.filter(Student.academic_year == academic_year)
                exams = exams.filter(Exam.academic_year == academic_year)
            student_count = students.count()
            unassigned = students.filter(Student.sponsor_id.is_(None)).count()
            return {
                'student_count': student_count,
                'sponsor_count': db.query(Sponsor).count(),
                'exam_count': exams.count(),
                'unassigned_students': unassigned,
                'sponsored_students': student_count - unassigned,
            }
        finally:
            db.close()

    @staticmethod
    def get_recent_sponsorships(limit: int = 5) -> List[Dict]:
        """Most recently sponsored students with their sponsor's name."""
        db = get_db()
        try:
            rows = db.query(Student, Sponsor)\
                .join(Sponsor, Student.sponsor_id == Sponsor.id)\
                .filter(Student.sponsored_since.isnot(None))\
                .order_by(Student.sponsored_since.desc())\
                .limit(limit)\
                .all()
            return [
                {
                    'student_id': student.id,
                    'student_name': student.name,
                    'current_grade': student.current_grade,
                    'sponsor_id': sponsor.id,
                    'sponsor_name': sponsor.full_name,
                    'sponsored_since': student.sponsored_since,
                }
                for student, sponsor in rows
            ]
        finally:
            db.close()

    @staticmethod
    def get_exam_performance(limit: int = 6) -> List[Dict]:
        """
        Average percentage per exam for the most recent exams.

        Only scored results count; absences are ignored.
        """
        db = get_db()
        try:
            rows = db.query(
                    Exam.id, Exam.name, Exam.academic_year, Exam.max_score,
                    func.avg(StudentExamScore.score), func.count(StudentExamScore.id)
                )\
                .join(StudentExamScore, StudentExamScore.exam_id == Exam.id)\
                .filter(StudentExamScore.score.isnot(None), StudentExamScore.did_not_sit.is_(False))\
                .group_by(Exam.id, Exam.name, Exam.academic_year, Exam.max_score, Exam.exam_date)\
                .order_by(Exam.exam_date.desc())\
                .limit(limit)\
                .all()
            return [
                {
                    'exam_id': exam_id,
                    'exam': f"{name} ({academic_year})",
                    'average_percentage': round_half_up(avg_score / max_score * 100) if max_score else 0,
                    'student_count': count,
                }
                for exam_id, name, academic_year, max_score, avg_score, count in rows
            ]
        finally:
            db.close()

    @staticmethod
    def get_recent_activity(limit: int = 10) -> List[Dict]:
        return AuditLogQueries.list_logs(limit=limit)
