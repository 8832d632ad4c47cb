"""
File exports: CSV, Excel workbooks and PDF reports.

Every exporter writes into an output directory (EXPORT_DIR, default
<project>/reports) and returns the path of the file it wrote.
"""

from .csv_exports import export_exam_scores_csv, export_students_csv, exam_scores_filename
from .workbook import export_exam_workbook
from .pdf_reports import StudentReportPDF, SponsorReportPDF
from .bulk import export_student_reports, export_sponsor_reports

__all__ = [
    'export_exam_scores_csv',
    'export_students_csv',
    'exam_scores_filename',
    'export_exam_workbook',
    'StudentReportPDF',
    'SponsorReportPDF',
    'export_student_reports',
    'export_sponsor_reports',
]
