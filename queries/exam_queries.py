"""
Exams and exam scores.

An exam belongs to an academic year and a term. Its roster is every
active student recorded in that academic year plus anyone who already
holds a score for it, so results stay visible after a student leaves.
"""

import logging
from datetime import datetime
from typing import List, Dict, Optional
from database import get_db, Exam, StudentExamScore, Student
from database.models import EXAM_TERMS
from .audit_log import AuditLogger
from .errors import ValidationError, NotFoundError
from .grading import (
    calculate_grade, get_grade_description, score_percentage, term_averages,
    performance_distribution, score_distribution, DID_NOT_SIT,
)
from .utils import apply_fields, format_date

logger = logging.getLogger(__name__)

EXAM_FIELDS = ('name', 'academic_year', 'term', 'exam_date', 'max_score', 'passing_score')
NOT_ASSESSED = 'Not Assessed'
PRESENT = 'Present'


class ExamQueries:
    """Queries and mutations for exams and their scores."""

    @staticmethod
    def list_exams(academic_year: str = None, term: str = None) -> List[Dict]:
        """
        List exams, newest exam date first.

        Args:
            academic_year: Only exams of this year (e.g., '2025')
            term: Only exams of this term ('Term 1', 'Term 2', 'Term 3', 'Final')
        """
        db = get_db()
        try:
            query = db.query(Exam)
            if academic_year:
                query = query.filter(Exam.academic_year == academic_year)
            if term:
                query = query.filter(Exam.term == term)
            exams = query.order_by(Exam.exam_date.desc(), Exam.name).all()
            return [ExamQueries._format_exam(e) for e in exams]
        finally:
            db.close()

    @staticmethod
    def get_exam(exam_id: str) -> Optional[Dict]:
        db = get_db()
        try:
            exam = db.query(Exam).filter_by(id=exam_id).first()
            return ExamQueries._format_exam(exam) if exam else None
        finally:
            db.close()

    @staticmethod
    def create_exam(data: Dict) -> Dict:
        """
        Create an exam.

        Args:
            data: 'name', 'academic_year', 'term' and 'exam_date' are required;
                'max_score' defaults to 100 and 'passing_score' to 50.

        Raises:
            ValidationError: Missing fields, unknown term, max_score < 1, or
                passing_score outside 0..max_score
        """
        db = get_db()
        try:
            exam = Exam(max_score=100, passing_score=50)
            apply_fields(exam, data, EXAM_FIELDS, ('exam_date',))
            ExamQueries._validate(exam)
            db.add(exam)
            db.commit()
            result = ExamQueries._format_exam(exam)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Created exam {result['name']} ({result['term']}, {result['academic_year']})")
        AuditLogger.log_create('exam', result['id'], f"Created exam {result['name']}")
        return result

    @staticmethod
    def update_exam(exam_id: str, data: Dict) -> Dict:
        db = get_db()
        try:
            exam = ExamQueries._get_or_raise(db, exam_id)
            apply_fields(exam, data, EXAM_FIELDS, ('exam_date',))
            ExamQueries._validate(exam)
            exam.updated_at = datetime.now()
            db.commit()
            result = ExamQueries._format_exam(exam)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_update('exam', exam_id, f"Updated exam {result['name']}")
        return result

    @staticmethod
    def delete_exam(exam_id: str) -> bool:
        """Delete an exam together with all of its scores."""
        db = get_db()
        try:
            exam = db.query(Exam).filter_by(id=exam_id).first()
            if not exam:
                return False
            name = exam.name
            db.delete(exam)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        AuditLogger.log_delete('exam', exam_id, f"Deleted exam {name}")
        return True

    @staticmethod
    def get_exam_results(exam_id: str) -> Optional[Dict]:
        """
        Get an exam with one result row per roster student.

        Returns:
            Dictionary with 'exam' (exam dict) and 'results', a list of:
            - student_id, admission_number, name, current_grade
            - score: Raw score, None when absent or not yet assessed
            - did_not_sit: True when marked absent
            - percentage: Score as % of max_score (None without a score)
            - status: 'Did Not Sit', 'Present' or 'Not Assessed'
            - grade: 'EE'/'ME'/'AE'/'BE' or None
            - performance: Grade description, or the status when ungraded

        Example:
            >>> results = ExamQueries.get_exam_results(exam_id)
            >>> for row in results['results']:
            ...     print(row['name'], row['score'], row['performance'])
        """
        db = get_db()
        try:
            exam = db.query(Exam).filter_by(id=exam_id).first()
            if not exam:
                return None
            return {
                'exam': ExamQueries._format_exam(exam),
                'results': ExamQueries._build_results(db, exam),
            }
        finally:
            db.close()

    @staticmethod
    def save_scores(exam_id: str, entries: List[Dict]) -> Dict:
        """
        Save scores for an exam, writing only rows that changed.

        Args:
            exam_id: Exam to save against
            entries: Dicts with 'student_id', 'score' and optional
                'did_not_sit'. Scores are clamped to 0..max_score; absent
                students are stored with no score.

        Returns:
            {'updated': count, 'message': 'Updated N student scores'} or
            {'updated': 0, 'message': 'No changes detected'}
        """
        db = get_db()
        try:
            exam = ExamQueries._get_or_raise(db, exam_id)
            existing = {
                s.student_id: s
                for s in db.query(StudentExamScore).filter_by(exam_id=exam_id).all()
            }

            updated = 0
            for entry in entries:
                student_id = entry.get('student_id')
                if not student_id:
                    continue
                did_not_sit = bool(entry.get('did_not_sit'))
                score = None if did_not_sit else ExamQueries._clamp(entry.get('score'), exam.max_score)

                row = existing.get(student_id)
                if row is None:
                    row = StudentExamScore(exam_id=exam_id, student_id=student_id)
                    db.add(row)
                    existing[student_id] = row
                elif row.score == score and bool(row.did_not_sit) == did_not_sit:
                    continue
                row.score = score
                row.did_not_sit = did_not_sit
                row.updated_at = datetime.now()
                updated += 1

            if not updated:
                db.rollback()
                return {'updated': 0, 'message': "No changes detected"}

            db.commit()
            exam_name = exam.name
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        message = f"Updated {updated} student scores"
        logger.info(f"{exam_name}: {message}")
        AuditLogger.log_update('exam_scores', exam_id, f"{message} for {exam_name}")
        return {'updated': updated, 'message': message}

    @staticmethod
    def get_exam_statistics(exam_id: str) -> Optional[Dict]:
        """
        Summary statistics for an exam.

        Only students with a score who sat the exam count towards the
        averages and pass rate.

        Returns:
            Dictionary with:
            - total_students, scored_students, did_not_sit, not_assessed
            - average_score, highest_score, lowest_score (raw scores)
            - average_percentage
            - pass_rate: % of scored students with score >= passing_score
            - performance_distribution: counts per grade band + 'Did Not Sit'
            - score_distribution: counts per 20% bucket + 'Did Not Sit'
        """
        results = ExamQueries.get_exam_results(exam_id)
        if results is None:
            return None

        exam = results['exam']
        rows = results['results']
        scored = [r for r in rows if r['score'] is not None and not r['did_not_sit']]
        absent = [r for r in rows if r['did_not_sit']]
        graded_percentages = [r['percentage'] for r in scored] + [None] * len(absent)

        stats = {
            'exam': exam,
            'total_students': len(rows),
            'scored_students': len(scored),
            'did_not_sit': len(absent),
            'not_assessed': sum(1 for r in rows if r['status'] == NOT_ASSESSED),
            'average_score': 0.0,
            'highest_score': 0.0,
            'lowest_score': 0.0,
            'average_percentage': 0.0,
            'pass_rate': 0.0,
            'performance_distribution': performance_distribution(graded_percentages),
            'score_distribution': score_distribution(graded_percentages),
        }
        if scored:
            scores = [r['score'] for r in scored]
            passed = sum(1 for s in scores if s >= exam['passing_score'])
            stats.update({
                'average_score': round(sum(scores) / len(scores), 1),
                'highest_score': max(scores),
                'lowest_score': min(scores),
                'average_percentage': round(sum(r['percentage'] for r in scored) / len(scored), 1),
                'pass_rate': round(passed / len(scores) * 100, 1),
            })
        return stats

    @staticmethod
    def get_student_exam_history(student_id: str, academic_year: str = None) -> Dict:
        """
        A student's exam results in date order, with per-term averages.

        Args:
            student_id: Student UUID
            academic_year: Only exams of this year (default: every year)

        Returns:
            {'exams': [...], 'term_averages': [...]} where each exam entry has
            exam_id, exam_name, term, academic_year, exam_date, score,
            max_score, did_not_sit, percentage and grade. Absent entries have
            no percentage and do not count towards term averages.
        """
        db = get_db()
        try:
            query = db.query(StudentExamScore, Exam)\
                .join(Exam, StudentExamScore.exam_id == Exam.id)\
                .filter(StudentExamScore.student_id == student_id)
            if academic_year:
                query = query.filter(Exam.academic_year == academic_year)
            rows = query.order_by(Exam.exam_date, Exam.name).all()

            history = []
            for score, exam in rows:
                if score.did_not_sit or score.score is None:
                    percentage = None
                else:
                    percentage = score_percentage(score.score, exam.max_score)
                history.append({
                    'exam_id': exam.id,
                    'exam_name': exam.name,
                    'term': exam.term,
                    'academic_year': exam.academic_year,
                    'exam_date': format_date(exam.exam_date),
                    'score': score.score,
                    'max_score': exam.max_score,
                    'did_not_sit': bool(score.did_not_sit),
                    'percentage': percentage,
                    'grade': calculate_grade(percentage) if percentage is not None else None,
                })

            return {
                'exams': history,
                'term_averages': term_averages(h for h in history if h['percentage'] is not None),
            }
        finally:
            db.close()

    # ------------------------------------------------------------------

    @staticmethod
    def _build_results(db, exam: Exam) -> List[Dict]:
        scores = {
            s.student_id: s
            for s in db.query(StudentExamScore).filter_by(exam_id=exam.id).all()
        }
        roster = db.query(Student).filter(
            Student.academic_year == exam.academic_year,
            Student.status == 'Active'
        ).all()
        roster_ids = {s.id for s in roster}
        extra_ids = set(scores) - roster_ids
        if extra_ids:
            roster.extend(db.query(Student).filter(Student.id.in_(extra_ids)).all())
        roster.sort(key=lambda s: (s.name or '').lower())

        results = []
        for student in roster:
            row = scores.get(student.id)
            did_not_sit = bool(row and row.did_not_sit)
            score = row.score if row and not did_not_sit else None
            if did_not_sit:
                status = DID_NOT_SIT
            elif score is not None:
                status = PRESENT
            else:
                status = NOT_ASSESSED

            percentage = score_percentage(score, exam.max_score) if score is not None else None
            grade = calculate_grade(percentage) if percentage is not None else None
            results.append({
                'student_id': student.id,
                'admission_number': student.admission_number,
                'name': student.name,
                'current_grade': student.current_grade,
                'score': score,
                'did_not_sit': did_not_sit,
                'percentage': percentage,
                'status': status,
                'grade': grade,
                'performance': get_grade_description(grade) if grade else status,
            })
        return results

    @staticmethod
    def _clamp(value, max_score: float) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            score = 0.0
        return min(max(score, 0.0), float(max_score))

    @staticmethod
    def _get_or_raise(db, exam_id: str) -> Exam:
        exam = db.query(Exam).filter_by(id=exam_id).first()
        if not exam:
            raise NotFoundError(f"No exam with id {exam_id}")
        return exam

    @staticmethod
    def _validate(exam: Exam):
        if not exam.name or not exam.academic_year or not exam.exam_date:
            raise ValidationError("Exam name, academic year and exam date are required")
        if exam.term not in EXAM_TERMS:
            raise ValidationError(f"Invalid term '{exam.term}'. Expected one of {', '.join(EXAM_TERMS)}")
        try:
            exam.max_score = float(exam.max_score)
            exam.passing_score = float(exam.passing_score)
        except (TypeError, ValueError):
            raise ValidationError("Maximum and passing scores must be numbers")
        if exam.max_score < 1:
            raise ValidationError("Maximum score must be at least 1")
        if not 0 <= exam.passing_score <= exam.max_score:
            raise ValidationError("Passing score must be between 0 and the maximum score")

    @staticmethod
    def _format_exam(exam: Exam) -> Dict:
        return {
            'id': exam.id,
            'name': exam.name,
            'academic_year': exam.academic_year,
            'term': exam.term,
            'exam_date': format_date(exam.exam_date),
            'max_score': exam.max_score,
            'passing_score': exam.passing_score,
            'created_at': exam.created_at,
            'updated_at': exam.updated_at,
        }
