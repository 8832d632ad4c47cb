"""
Formatting utilities for displaying query results.

This module provides functions to format query results into readable text
for console output.
"""

from typing import List, Dict


def _fmt_score(value) -> str:
    if value is None:
        return "-"
    return f"{value:g}"


class RecordFormatter:
    """Utilities for formatting records into readable text."""

    @staticmethod
    def format_student(student: Dict, history: Dict = None) -> str:
        """
        Format a single student's profile, optionally with exam history.

        Args:
            student: Student dictionary from StudentQueries
            history: Result of ExamQueries.get_student_exam_history

        Returns:
            Formatted multi-line string suitable for display
        """
        if not student:
            return "Student not found."

        lines = []
        lines.append("=" * 80)
        lines.append("STUDENT INFORMATION")
        lines.append("=" * 80)
        lines.append(f"Name:              {student['name']}")
        lines.append(f"Admission Number:  {student['admission_number']}")
        lines.append(f"Academic Year:     {student['academic_year']}")
        lines.append(f"Grade:             {student['current_grade'] or 'N/A'}")
        lines.append(f"Status:            {student['status']}")
        lines.append(f"Gender:            {student['gender'] or 'N/A'}")
        lines.append(f"Date of Birth:     {student['dob'] or 'N/A'}")
        lines.append(f"Admitted:          {student['admission_date'] or 'N/A'}")
        if student.get('location'):
            lines.append(f"Location:          {student['location']}")

        lines.append("")
        lines.append("-" * 80)
        lines.append("SPONSORSHIP")
        lines.append("-" * 80)
        if student['sponsor_name']:
            lines.append(f"Sponsor:           {student['sponsor_name']}")
            if student['sponsored_since']:
                lines.append(f"Since:             {student['sponsored_since']:%Y-%m-%d}")
        else:
            lines.append("Not sponsored")

        if history and history['exams']:
            lines.append("")
            lines.append("-" * 80)
            lines.append("EXAM RESULTS")
            lines.append("-" * 80)
            lines.append(f"{'Exam':<30} {'Term':<8} {'Date':<12} {'Score':<12} {'%':<6} {'Grade':<5}")
            for exam in history['exams']:
                if exam['did_not_sit']:
                    score, pct, grade = "DNS", "-", "-"
                else:
                    score = f"{_fmt_score(exam['score'])}/{_fmt_score(exam['max_score'])}"
                    pct = f"{exam['percentage']}" if exam['percentage'] is not None else "-"
                    grade = exam['grade'] or "-"
                lines.append(
                    f"{exam['exam_name'][:29]:<30} {exam['term']:<8} {exam['exam_date'] or '':<12} "
                    f"{score:<12} {pct:<6} {grade:<5}"
                )

            if history['term_averages']:
                lines.append("")
                lines.append("Term Averages:")
                for term in history['term_averages']:
                    lines.append(f"  {term['term']:<16} {term['average']}% ({term['grade']})")

        lines.append("=" * 80)
        return "\n".join(lines)

    @staticmethod
    def format_student_list(students: List[Dict]) -> str:
        """Format a list of students in a table format."""
        if not students:
            return "No students found."

        lines = []
        lines.append(f"Found {len(students)} student(s)")
        lines.append("")
        lines.append("=" * 110)
        lines.append(
            f"{'Name':<30} {'Adm No':<12} {'Grade':<10} {'Year':<6} {'Status':<12} {'Sponsor':<30}"
        )
        lines.append("=" * 110)
        for student in students:
            lines.append(
                f"{student['name'][:29]:<30} {student['admission_number'][:11]:<12} "
                f"{(student['current_grade'] or 'N/A')[:9]:<10} {student['academic_year'] or '':<6} "
                f"{student['status']:<12} {(student['sponsor_name'] or '-')[:29]:<30}"
            )
        lines.append("=" * 110)
        return "\n".join(lines)

    @staticmethod
    def format_sponsor(sponsor: Dict) -> str:
        if not sponsor:
            return "Sponsor not found."

        lines = []
        lines.append("=" * 80)
        lines.append("SPONSOR INFORMATION")
        lines.append("=" * 80)
        lines.append(f"Name:              {sponsor['full_name']}")
        lines.append(f"Email:             {sponsor['email']}")
        lines.append(f"Phone:             {sponsor['phone'] or 'N/A'}")
        lines.append(f"Country:           {sponsor['country'] or 'N/A'}")
        lines.append(f"Status:            {sponsor['status']}")
        lines.append(f"Sponsor Since:     {sponsor['start_date'] or 'N/A'}")

        students = sponsor.get('students') or []
        lines.append("")
        lines.append("-" * 80)
        lines.append(f"SPONSORED STUDENTS ({len(students)})")
        lines.append("-" * 80)
        for student in students:
            lines.append(
                f"  {student['name']:<30} {student['admission_number']:<12} "
                f"{student['current_grade'] or 'N/A':<10} {student['academic_year'] or ''}"
            )
        lines.append("=" * 80)
        return "\n".join(lines)

    @staticmethod
    def format_exam_results(results: Dict) -> str:
        """Format an exam with one line per roster student."""
        if not results:
            return "Exam not found."

        exam = results['exam']
        lines = []
        lines.append("=" * 100)
        lines.append(f"{exam['name']} - {exam['term']} {exam['academic_year']} ({exam['exam_date']})")
        lines.append(f"Max score: {_fmt_score(exam['max_score'])}   Passing score: {_fmt_score(exam['passing_score'])}")
        lines.append("=" * 100)
        lines.append(f"{'Adm No':<12} {'Name':<30} {'Grade':<10} {'Score':<8} {'%':<6} {'Performance':<25}")
        lines.append("-" * 100)
        for row in results['results']:
            score = "DNS" if row['did_not_sit'] else _fmt_score(row['score'])
            pct = f"{row['percentage']}" if row['percentage'] is not None else "-"
            lines.append(
                f"{row['admission_number'][:11]:<12} {row['name'][:29]:<30} "
                f"{(row['current_grade'] or 'N/A')[:9]:<10} {score:<8} {pct:<6} {row['performance']:<25}"
            )
        lines.append("=" * 100)
        return "\n".join(lines)

    @staticmethod
    def format_exam_statistics(stats: Dict) -> str:
        if not stats:
            return "Exam not found."

        lines = []
        lines.append("=" * 80)
        lines.append(f"EXAM STATISTICS: {stats['exam']['name']}")
        lines.append("=" * 80)
        lines.append(f"Students on roster:          {stats['total_students']}")
        lines.append(f"Scored:                      {stats['scored_students']}")
        lines.append(f"Did not sit:                 {stats['did_not_sit']}")
        lines.append(f"Not assessed:                {stats['not_assessed']}")
        lines.append("")
        lines.append(f"Average score:               {stats['average_score']:.1f} ({stats['average_percentage']:.1f}%)")
        lines.append(f"Highest score:               {_fmt_score(stats['highest_score'])}")
        lines.append(f"Lowest score:                {_fmt_score(stats['lowest_score'])}")
        lines.append(f"Pass rate:                   {stats['pass_rate']:.1f}%")
        lines.append("")
        lines.append("-" * 80)
        lines.append("PERFORMANCE DISTRIBUTION")
        lines.append("-" * 80)
        for label, count in stats['performance_distribution'].items():
            lines.append(f"  {label:<14} {count}")
        lines.append("")
        lines.append("-" * 80)
        lines.append("SCORE DISTRIBUTION (%)")
        lines.append("-" * 80)
        for label, count in stats['score_distribution'].items():
            lines.append(f"  {label:<14} {count}")
        lines.append("=" * 80)
        return "\n".join(lines)

    @staticmethod
    def format_year_statistics(stats: Dict) -> str:
        lines = []
        lines.append("=" * 80)
        lines.append(f"ACADEMIC YEAR {stats['year_name']}")
        if stats['previous_year_name']:
            lines.append(f"(compared with {stats['previous_year_name']})")
        lines.append("=" * 80)
        lines.append(f"Students:        {stats['student_count']:<6} ({stats['student_change_percent']:+.1f}%)   new: {stats['new_students']}")
        lines.append(f"Sponsors:        {stats['sponsor_count']:<6} ({stats['sponsor_change_percent']:+.1f}%)   new: {stats['new_sponsors']}")
        lines.append(f"Exams:           {stats['exam_count']:<6} ({stats['exam_change_percent']:+.1f}%)")
        lines.append("=" * 80)
        return "\n".join(lines)

    @staticmethod
    def format_copy_result(result: Dict) -> str:
        lines = []
        lines.append("=" * 80)
        lines.append(f"COPIED {result['source_year']} -> {result['destination_year']}")
        lines.append("=" * 80)
        if result['created_year']:
            lines.append(f"Created academic year {result['destination_year']}")
        lines.append(f"Students copied:       {result['students_copied']} (skipped {result['students_skipped']} already present)")
        lines.append(f"Grades promoted:       {result['grades_promoted']}")
        lines.append(f"Sponsorships carried:  {result['sponsorships_carried']}")
        lines.append(f"Exams copied:          {result['exams_copied']} (skipped {result['exams_skipped']} already present)")
        lines.append("=" * 80)
        return "\n".join(lines)

    @staticmethod
    def format_audit_logs(logs: List[Dict]) -> str:
        if not logs:
            return "No audit entries found."

        lines = []
        lines.append("=" * 120)
        lines.append(f"{'When':<20} {'User':<28} {'Action':<14} {'Entity':<20} {'Details'}")
        lines.append("=" * 120)
        for log in logs:
            when = f"{log['created_at']:%Y-%m-%d %H:%M}" if log['created_at'] else ''
            lines.append(
                f"{when:<20} {(log['username'] or '')[:27]:<28} {log['action'][:13]:<14} "
                f"{log['entity'][:19]:<20} {log['details'] or ''}"
            )
        return "\n".join(lines)
