"""Excel workbook of an exam's results with summary statistics."""

import logging
import warnings
from pathlib import Path
import openpyxl
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter
from queries import ExamQueries, NotFoundError
from queries.grading import GRADE_COLORS, get_grade_description
from .paths import output_dir, safe_filename

# Suppress openpyxl warnings about missing thumbnails
warnings.filterwarnings('ignore', category=UserWarning, module='openpyxl')

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)


def _style_header(row):
    for cell in row:
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = BORDER
        cell.alignment = Alignment(horizontal='center')


def _auto_size(ws):
    for col_idx, column in enumerate(ws.columns, 1):
        max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 2, 50)


def _title(ws, text, last_column):
    ws.merge_cells(f'A1:{last_column}1')
    title_cell = ws['A1']
    title_cell.value = text
    title_cell.font = Font(bold=True, size=14)
    title_cell.alignment = Alignment(horizontal='center')
    ws.append([])


def _create_results_sheet(wb, results):
    exam = results['exam']
    ws = wb.active
    ws.title = "Results"
    _title(ws, f"{exam['name']} - {exam['term']} {exam['academic_year']}", 'G')

    ws.append(['Admission Number', 'Student Name', 'Grade Level', 'Score', 'Percentage', 'Status', 'Performance'])
    _style_header(ws[3])

    for row in results['results']:
        ws.append([
            row['admission_number'],
            row['name'],
            row['current_grade'] or '',
            'DNS' if row['did_not_sit'] else row['score'],
            row['percentage'],
            row['status'],
            row['performance'],
        ])
        if row['grade']:
            color = GRADE_COLORS[row['grade']].lstrip('#')
            ws.cell(row=ws.max_row, column=7).font = Font(bold=True, color=color)

    _auto_size(ws)
    # Freeze header row
    ws.freeze_panes = 'A4'


def _create_summary_sheet(wb, stats):
    ws = wb.create_sheet("Summary")
    _title(ws, "Summary", 'B')

    exam = stats['exam']
    stats_data = [
        ['Metric', 'Value'],
        ['Exam Date', exam['exam_date']],
        ['Maximum Score', exam['max_score']],
        ['Passing Score', exam['passing_score']],
        [],
        ['Students on Roster', stats['total_students']],
        ['Scored', stats['scored_students']],
        ['Did Not Sit', stats['did_not_sit']],
        ['Not Assessed', stats['not_assessed']],
        [],
        ['Average Score', stats['average_score']],
        ['Average Percentage', f"{stats['average_percentage']:.1f}%"],
        ['Highest Score', stats['highest_score']],
        ['Lowest Score', stats['lowest_score']],
        ['Pass Rate', f"{stats['pass_rate']:.1f}%"],
    ]
    for row in stats_data:
        ws.append(row)
    _style_header(ws[3])

    ws.append([])
    ws.append(['Performance', 'Count'])
    _style_header(ws[ws.max_row])
    for label, count in stats['performance_distribution'].items():
        description = get_grade_description(label)
        ws.append([f"{label} ({description})" if description != 'Unknown' else label, count])

    ws.append([])
    ws.append(['Score Range (%)', 'Count'])
    _style_header(ws[ws.max_row])
    for label, count in stats['score_distribution'].items():
        ws.append([label, count])

    ws.column_dimensions['A'].width = 35
    ws.column_dimensions['B'].width = 20


def export_exam_workbook(exam_id: str, directory=None) -> Path:
    """
    Write <exam name>_results.xlsx with a Results and a Summary sheet.

    Raises:
        NotFoundError: Unknown exam
    """
    results = ExamQueries.get_exam_results(exam_id)
    if results is None:
        raise NotFoundError(f"No exam with id {exam_id}")
    stats = ExamQueries.get_exam_statistics(exam_id)

    wb = openpyxl.Workbook()
    _create_results_sheet(wb, results)
    _create_summary_sheet(wb, stats)

    path = output_dir(directory) / f"{safe_filename(results['exam']['name'])}_results.xlsx"
    wb.save(path)
    logger.info(f"Created {path} ({len(wb.sheetnames)} sheets)")
    return path
