"""
PDF profiles for students and sponsors (reportlab).

Each report class has render(), which returns the PDF bytes, and
export(), which writes them to the output directory.
"""

import logging
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Dict, List
from xml.sax.saxutils import escape
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from queries import StudentQueries, SponsorQueries, ExamQueries, SettingsQueries, NotFoundError
from queries.grading import GRADE_COLORS, get_grade_description
from .paths import output_dir, safe_filename

logger = logging.getLogger(__name__)


def _table_style(header_color) -> TableStyle:
    return TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), header_color),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 10),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ])


def _info_paragraph(pairs, style) -> Paragraph:
    html = "".join(
        f"<b>{escape(label)}:</b> {escape(str(value)) if value not in (None, '') else 'N/A'}<br/>"
        for label, value in pairs
    )
    return Paragraph(html, style)


class _Report:
    """Shared page setup: organisation header and brand color."""

    def __init__(self, settings: Dict = None):
        self.settings = settings or SettingsQueries.get_app_settings()
        self.styles = getSampleStyleSheet()
        self.header_color = colors.HexColor(self.settings['primary_color'])

    def _header(self, title: str) -> List:
        return [
            Paragraph(f"<b>{escape(self.settings['organization_name'])}</b>", self.styles['Heading2']),
            Paragraph(f"<b>{escape(title)}</b>", self.styles['Title']),
            Spacer(1, 12),
        ]

    def _footer(self) -> List:
        text = self.settings.get('footer_text') or f"Generated {datetime.now():%Y-%m-%d %H:%M}"
        return [Spacer(1, 20), Paragraph(escape(text), self.styles['Italic'])]

    def _build(self, elements) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4)
        doc.build(elements)
        return buffer.getvalue()

    @staticmethod
    def _write(data: bytes, filename: str, directory=None) -> Path:
        path = output_dir(directory) / filename
        with open(path, 'wb') as f:
            f.write(data)
        return path


class StudentReportPDF(_Report):
    """Student profile with exam results and term averages."""

    def render(self, student: Dict, history: Dict) -> bytes:
        elements = self._header("STUDENT PROFILE")
        elements.append(_info_paragraph([
            ('Name', student['name']),
            ('Admission No', student['admission_number']),
            ('Grade', student['current_grade']),
            ('Academic Year', student['academic_year']),
            ('Status', student['status']),
            ('Gender', student['gender']),
            ('Date of Birth', student['dob']),
            ('Sponsor', student['sponsor_name'] or 'Not sponsored'),
        ], self.styles['Normal']))
        elements.append(Spacer(1, 16))

        elements.append(Paragraph("<b>Exam Results</b>", self.styles['Heading3']))
        if history['exams']:
            data = [['Exam', 'Term', 'Date', 'Score', '%', 'Grade']]
            grade_cells = []
            for idx, exam in enumerate(history['exams'], 1):
                if exam['percentage'] is None:
                    mark = 'DNS' if exam['did_not_sit'] else '-'
                    data.append([exam['exam_name'], exam['term'], exam['exam_date'], mark, '-', '-'])
                    continue
                data.append([
                    exam['exam_name'],
                    exam['term'],
                    exam['exam_date'],
                    f"{exam['score']:g}/{exam['max_score']:g}",
                    str(exam['percentage']),
                    exam['grade'],
                ])
                grade_cells.append((idx, exam['grade']))

            table = Table(data, repeatRows=1)
            style = _table_style(self.header_color)
            for row_idx, grade in grade_cells:
                style.add('TEXTCOLOR', (5, row_idx), (5, row_idx), colors.HexColor(GRADE_COLORS[grade]))
            table.setStyle(style)
            elements.append(table)
        else:
            elements.append(Paragraph("No exam results recorded.", self.styles['Normal']))

        if history['term_averages']:
            elements.append(Spacer(1, 16))
            elements.append(Paragraph("<b>Term Averages</b>", self.styles['Heading3']))
            data = [['Term', 'Average', 'Performance']]
            for term in history['term_averages']:
                data.append([term['term'], f"{term['average']}%", get_grade_description(term['grade'])])
            table = Table(data)
            table.setStyle(_table_style(self.header_color))
            elements.append(table)

        elements.extend(self._footer())
        return self._build(elements)

    def export(self, student_id: str, directory=None, academic_year: str = None) -> Path:
        """
        Write <admission number>_<name>.pdf for one student.

        Raises:
            NotFoundError: Unknown student
        """
        student = StudentQueries.get_student(student_id)
        if not student:
            raise NotFoundError(f"No student with id {student_id}")
        history = ExamQueries.get_student_exam_history(student['id'], academic_year)

        filename = safe_filename(f"{student['admission_number']}_{student['name']}") + '.pdf'
        path = self._write(self.render(student, history), filename, directory)
        logger.info(f"Wrote student report {path}")
        return path


class SponsorReportPDF(_Report):
    """Sponsor profile listing the students they sponsor."""

    def render(self, sponsor: Dict) -> bytes:
        elements = self._header("SPONSOR PROFILE")
        elements.append(_info_paragraph([
            ('Name', sponsor['full_name']),
            ('Email', sponsor['email']),
            ('Phone', sponsor['phone']),
            ('Country', sponsor['country']),
            ('Occupation', sponsor['occupation']),
            ('Sponsor Since', sponsor['start_date']),
            ('Status', sponsor['status']),
        ], self.styles['Normal']))
        elements.append(Spacer(1, 16))

        students = sponsor.get('students') or []
        elements.append(Paragraph(f"<b>Sponsored Students ({len(students)})</b>", self.styles['Heading3']))
        if students:
            data = [['Name', 'Admission No', 'Grade', 'Academic Year', 'Sponsored Since']]
            for student in students:
                since = student['sponsored_since']
                data.append([
                    student['name'],
                    student['admission_number'],
                    student['current_grade'] or '',
                    student['academic_year'] or '',
                    f"{since:%Y-%m-%d}" if since else '',
                ])
            table = Table(data, repeatRows=1)
            table.setStyle(_table_style(self.header_color))
            elements.append(table)
        else:
            elements.append(Paragraph("No students currently sponsored.", self.styles['Normal']))

        elements.extend(self._footer())
        return self._build(elements)

    def export(self, sponsor_id: str, directory=None) -> Path:
        sponsor = SponsorQueries.get_sponsor(sponsor_id)
        if not sponsor:
            raise NotFoundError(f"No sponsor with id {sponsor_id}")

        filename = safe_filename(f"sponsor_{sponsor['full_name']}") + '.pdf'
        path = self._write(self.render(sponsor), filename, directory)
        logger.info(f"Wrote sponsor report {path}")
        return path
