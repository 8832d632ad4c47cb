"""
CSV importers for students and exam scores.

Files are read with pandas, headers are matched to record fields by
keyword, and rows are written through one database session per import.
"""

from .student_import import StudentImporter
from .score_import import ExamScoreImporter

__all__ = [
    'StudentImporter',
    'ExamScoreImporter',
]
