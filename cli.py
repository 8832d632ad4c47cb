#!/usr/bin/env python3
"""
School Sponsorship Records - Command Line Interface

A menu-driven CLI for looking up students and sponsors, recording exams,
importing CSV files, exporting reports and running academic year
maintenance (rollover, backup, restore).
"""

import argparse
import logging
import os
import sys
from datetime import datetime as dt
from pathlib import Path
from typing import Callable, List, Optional
from dotenv import load_dotenv
from queries import (
    StudentQueries, SponsorQueries, ExamQueries, AcademicYearQueries, AcademicYearRollover,
    UserQueries, SettingsQueries, DataMaintenance, DashboardQueries, AuditLogQueries,
    RecordFormatter, default_promotion_map,
)
from database.models import USER_ROLES
from database.init_db import init_database
from queries.maintenance import RESET_CONFIRMATION
from ingest import StudentImporter, ExamScoreImporter
from exports import (
    export_exam_scores_csv, export_students_csv, export_exam_workbook,
    StudentReportPDF, SponsorReportPDF, export_student_reports, export_sponsor_reports,
)

CURRENT_DIR = Path(os.path.dirname(os.path.abspath(__file__)))
load_dotenv((CURRENT_DIR / '.env').as_posix())

logger = logging.getLogger('cli')


def setup_logging(logging_dir: Path = CURRENT_DIR / 'logs') -> logging.Logger:
    """Log to logs/cli_<timestamp>.log and to the console (warnings only)."""
    logging_dir.mkdir(parents=True, exist_ok=True)
    timestamp = dt.now().strftime("%m-%d-%Y_%H-%M")

    root = logging.getLogger()
    root.setLevel(logging.INFO)
    if root.handlers:
        root.handlers.clear()

    file_handler = logging.FileHandler(logging_dir / f'cli_{timestamp}.log')
    file_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    )

    root.addHandler(file_handler)
    root.addHandler(console_handler)
    return root


class MenuItem:
    """Represents a single menu item."""

    def __init__(self, key: str, label: str, action: Callable, description: str = ""):
        self.key = key
        self.label = label
        self.action = action
        self.description = description

    def display(self) -> str:
        """Return formatted menu item for display."""
        return f"  {self.key:>2}. {self.label}"


class MenuSystem:
    """Handles menu display and navigation."""

    def __init__(self, title: str, actions: "CLIActions", user: Optional[dict] = None):
        self.title = title
        self.actions = actions
        self.user = user
        self.items: List[MenuItem] = []
        self.running = True

    def add_item(self, key: str, label: str, action: Callable, description: str = ""):
        """Add a menu item."""
        self.items.append(MenuItem(key, label, action, description))

    def add_separator(self):
        """Add a visual separator."""
        self.items.append(MenuItem("", "", lambda: None))

    def display(self):
        """Display the menu."""
        print("\n" + "="*80)
        print(self.title)
        print(f"Academic Year: {self.actions.academic_year}")
        if self.user:
            print(f"Signed in as:  {self.user['email']} ({self.user['role']})")
        print("="*80)
        print()

        for item in self.items:
            if item.key:
                print(item.display())
            else:
                print()

        print("\n   0. Exit")
        print("="*80)

    def get_choice(self) -> str:
        """Get user's menu choice."""
        while True:
            choice = input("\nEnter your choice: ").strip()
            if choice == "0":
                return "0"

            if any(item.key == choice for item in self.items if item.key):
                return choice

            print("✗ Invalid choice. Please try again.")

    def run(self):
        """Run the menu loop."""
        while self.running:
            self.display()
            choice = self.get_choice()

            if choice == "0":
                self.running = False
                print("\nGoodbye!")
                break

            for item in self.items:
                if item.key == choice:
                    print("\n" + "="*80)
                    try:
                        item.action()
                    except KeyboardInterrupt:
                        print("\n\n⚠️  Action cancelled by user.")
                    except (ValueError, LookupError) as e:
                        # ValidationError / NotFoundError
                        print(f"\n✗ {str(e)}")
                    except Exception as e:
                        logger.exception(f"Action '{item.label}' failed")
                        print(f"\n✗ Error: {str(e)}")
                        import traceback
                        traceback.print_exc()
                    print("="*80)
                    input("\n[Press Enter to continue]")
                    break


class CLIActions:
    """All CLI actions organized by category."""

    def __init__(self, academic_year: str):
        self.academic_year = academic_year

    # =========================================================================
    # STUDENTS & SPONSORS
    # =========================================================================

    def lookup_student(self):
        """Look up a single student by admission number or name."""
        print("STUDENT LOOKUP")
        print("-" * 80)
        print("\nSearch by:")
        print("  1. Admission number")
        print("  2. Name (partial match)")

        choice = input("\nEnter choice (1-2): ").strip()

        if choice == "1":
            admission_number = input("Enter admission number: ").strip()
            student = StudentQueries.get_student_by_admission_number(admission_number, self.academic_year)
        elif choice == "2":
            name = input("Enter name: ").strip()
            student = self._pick(
                StudentQueries.search_students_by_name(name, self.academic_year),
                lambda s: f"{s['name']} ({s['admission_number']}, {s['current_grade'] or 'no grade'})",
            )
        else:
            print("✗ Invalid choice")
            return

        if not student:
            print("\n✗ Student not found")
            return

        history = ExamQueries.get_student_exam_history(student['id'], self.academic_year)
        print(RecordFormatter.format_student(student, history))

        if self._confirm("\n📥 Export PDF report?"):
            path = StudentReportPDF().export(student['id'], academic_year=self.academic_year)
            print(f"\n✓ Wrote {path}")

    def list_students(self):
        """List students with optional status/grade filters."""
        print("LIST STUDENTS")
        print("-" * 80)
        status = input("Status (blank for all, e.g. Active): ").strip() or None
        grade = input("Grade (blank for all, e.g. Grade 4): ").strip() or None

        students = StudentQueries.list_students(self.academic_year, status=status, grade=grade)
        print(RecordFormatter.format_student_list(students))

        if students and self._confirm("\n📥 Export to CSV?"):
            filename = input("Filename [students.csv]: ").strip() or 'students.csv'
            path = export_students_csv(students, filename)
            print(f"\n✓ Exported {len(students)} student(s) to {path}")

    def view_sponsor(self):
        """Show a sponsor and the students they sponsor."""
        print("SPONSOR LOOKUP")
        print("-" * 80)
        query_text = input("Enter sponsor name or email: ").strip()
        sponsor = self._pick(
            SponsorQueries.search_sponsors(query_text),
            lambda s: f"{s['full_name']} <{s['email']}> [{s['status']}]",
        )
        if not sponsor:
            print("\n✗ Sponsor not found")
            return

        sponsor = SponsorQueries.get_sponsor(sponsor['id'])
        print(RecordFormatter.format_sponsor(sponsor))

        if self._confirm("\n📥 Export PDF report?"):
            path = SponsorReportPDF().export(sponsor['id'])
            print(f"\n✓ Wrote {path}")

    def assign_students(self):
        """Link unsponsored students to a sponsor."""
        print("ASSIGN STUDENTS TO SPONSOR")
        print("-" * 80)
        sponsor = self._pick(
            SponsorQueries.search_sponsors(input("Sponsor name or email: ").strip()),
            lambda s: f"{s['full_name']} <{s['email']}>",
        )
        if not sponsor:
            print("\n✗ Sponsor not found")
            return

        available = StudentQueries.list_available_students(self.academic_year)
        if not available:
            print("\n✓ Every active student already has a sponsor.")
            return

        for idx, student in enumerate(available, 1):
            print(f"  {idx:>3}. {student['name']} ({student['admission_number']}, {student['current_grade'] or '-'})")
        picks = input("\nStudent numbers, comma separated: ").strip()
        try:
            chosen = [available[int(p) - 1]['id'] for p in picks.split(',') if p.strip()]
        except (ValueError, IndexError):
            print("✗ Invalid selection")
            return

        count = SponsorQueries.assign_students(sponsor['id'], chosen)
        print(f"\n✓ Assigned {count} student(s) to {sponsor['full_name']}")

    # =========================================================================
    # EXAMS
    # =========================================================================

    def view_exam(self):
        """Show an exam's results and statistics, with export options."""
        print("EXAM RESULTS")
        print("-" * 80)
        exam = self._pick_exam()
        if not exam:
            return

        print(RecordFormatter.format_exam_results(ExamQueries.get_exam_results(exam['id'])))
        print(RecordFormatter.format_exam_statistics(ExamQueries.get_exam_statistics(exam['id'])))

        print("\nExport:")
        print("  1. CSV")
        print("  2. Excel workbook")
        print("  3. Skip")
        choice = input("\nEnter choice (1-3): ").strip()
        if choice == "1":
            print(f"\n✓ Wrote {export_exam_scores_csv(exam['id'])}")
        elif choice == "2":
            print(f"\n✓ Wrote {export_exam_workbook(exam['id'])}")

    def import_scores(self):
        """Import an exam's scores from CSV."""
        print("IMPORT EXAM SCORES")
        print("-" * 80)
        exam = self._pick_exam()
        if not exam:
            return

        path = self._ask_path()
        if not path:
            return

        result = ExamScoreImporter.import_scores(
            exam['id'], path,
            progress=lambda pct: print(f"  ... {pct}%"),
        )
        print(f"\n✓ Imported {result['imported']} score(s), skipped {result['skipped']} of {result['total']} row(s)")

    # =========================================================================
    # IMPORTS & EXPORTS
    # =========================================================================

    def import_students(self):
        """Import students into the selected academic year from CSV."""
        print("IMPORT STUDENTS")
        print("-" * 80)
        print("\nExpected columns:")
        print(StudentImporter.sample_csv())

        path = self._ask_path()
        if not path:
            return

        result = StudentImporter.import_students(path, self.academic_year)
        print(f"\n✓ Imported {result['imported']} student(s), skipped {result['skipped']} of {result['total']} row(s)")

    def bulk_student_reports(self):
        """One PDF per active student in the selected year."""
        print("BULK STUDENT REPORTS")
        print("-" * 80)
        students = StudentQueries.list_students(self.academic_year, status='Active')
        if not students:
            print("\n✗ No active students in this academic year")
            return

        workers = self._ask_int("Number of workers [3]: ", 3)
        results = export_student_reports([s['id'] for s in students], num_workers=workers,
                                         academic_year=self.academic_year)
        self._report_results(results)

    def bulk_sponsor_reports(self):
        """One PDF per active sponsor."""
        print("BULK SPONSOR REPORTS")
        print("-" * 80)
        sponsors = SponsorQueries.list_sponsors(status='active')
        if not sponsors:
            print("\n✗ No active sponsors")
            return

        workers = self._ask_int("Number of workers [3]: ", 3)
        results = export_sponsor_reports(
            [s['id'] for s in sponsors], num_workers=workers,
            progress=lambda done, total: print(f"  ... {done}/{total}"),
        )
        self._report_results(results)

    # =========================================================================
    # ACADEMIC YEARS
    # =========================================================================

    def dashboard(self):
        """Headline counts and recent activity."""
        summary = DashboardQueries.get_summary(self.academic_year)
        print(f"DASHBOARD ({self.academic_year})")
        print("-" * 80)
        print(f"Students:            {summary['student_count']}")
        print(f"  Sponsored:         {summary['sponsored_students']}")
        print(f"  Unassigned:        {summary['unassigned_students']}")
        print(f"Sponsors:            {summary['sponsor_count']}")
        print(f"Exams:               {summary['exam_count']}")

        performance = DashboardQueries.get_exam_performance()
        if performance:
            print("\nRecent exam averages:")
            for row in performance:
                print(f"  {row['exam']:<45} {row['average_percentage']:>3}%  ({row['student_count']} students)")

        sponsorships = DashboardQueries.get_recent_sponsorships()
        if sponsorships:
            print("\nRecent sponsorships:")
            for row in sponsorships:
                print(f"  {row['sponsored_since']:%Y-%m-%d}  {row['student_name']} <- {row['sponsor_name']}")

    def year_statistics(self):
        """Compare an academic year with the one before it."""
        year = self._pick_year()
        if year:
            print(RecordFormatter.format_year_statistics(AcademicYearQueries.get_year_statistics(year['id'])))

    def switch_year(self):
        """Change the academic year the CLI works in (and optionally the current year)."""
        year = self._pick_year()
        if not year:
            return
        self.academic_year = year['year_name']
        print(f"\n✓ Now working in {self.academic_year}")
        if not year['is_current'] and self._confirm("Make it the current academic year for everyone?"):
            AcademicYearQueries.set_current(year['id'])
            print(f"✓ {self.academic_year} is now the current academic year")

    def copy_year(self):
        """Copy students and exams into a new or existing academic year."""
        print("COPY ACADEMIC YEAR")
        print("-" * 80)
        print("\nSource year:")
        source = self._pick_year()
        if not source:
            return

        new_year = None
        destination_id = None
        if self._confirm("Create a new destination year?"):
            year_name = input("Year name (e.g. 2026): ").strip()
            new_year = {
                'year_name': year_name,
                'start_date': input(f"Start date [{year_name}-01-01]: ").strip() or f"{year_name}-01-01",
                'end_date': input(f"End date [{year_name}-12-31]: ").strip() or f"{year_name}-12-31",
            }
        else:
            print("\nDestination year:")
            destination = self._pick_year()
            if not destination:
                return
            destination_id = destination['id']

        copy_students = self._confirm("Copy students?", default=True)
        copy_exams = self._confirm("Copy exams?", default=True)
        copy_sponsorship = copy_students and self._confirm("Keep sponsor links?", default=True)

        promotion_map = None
        if copy_students and self._confirm("Promote grades on the copies?", default=True):
            grades = AcademicYearQueries.get_student_grades(source['year_name'])
            promotion_map = self._edit_promotion_map(default_promotion_map(grades))

        result = AcademicYearRollover.copy_year(
            source['id'], destination_year_id=destination_id, new_year=new_year,
            copy_students=copy_students, copy_exams=copy_exams,
            copy_sponsorship=copy_sponsorship, promotion_map=promotion_map,
            progress=lambda pct: print(f"  ... {pct}%"),
        )
        print(RecordFormatter.format_copy_result(result))

    def promote_grades(self):
        """Promote every student in the selected year to the next grade."""
        print(f"PROMOTE GRADES ({self.academic_year})")
        print("-" * 80)
        grades = AcademicYearQueries.get_student_grades(self.academic_year)
        if not grades:
            print("\n✗ No graded students in this academic year")
            return

        promotion_map = self._edit_promotion_map(default_promotion_map(grades))
        if not promotion_map or not self._confirm("Apply these promotions?"):
            return
        count = AcademicYearRollover.promote_grades(promotion_map, self.academic_year)
        print(f"\n✓ Promoted {count} student(s)")

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def audit_logs(self):
        """Recent audit log entries, optionally filtered."""
        print("AUDIT LOG")
        print("-" * 80)
        action = input("Action (blank for all, e.g. create, system): ").strip() or None
        entity = input("Entity (blank for all, e.g. student): ").strip() or None
        limit = self._ask_int("How many entries [50]: ", 50)
        print(RecordFormatter.format_audit_logs(AuditLogQueries.list_logs(action=action, entity=entity, limit=limit)))

    def manage_users(self):
        """List users and change roles or activation."""
        print("USERS")
        print("-" * 80)
        users = UserQueries.list_users()
        for idx, user in enumerate(users, 1):
            state = "active" if user['is_active'] else "inactive"
            print(f"  {idx:>3}. {user['email']:<35} {user['role']:<8} {state}")

        print("\n  1. Add user")
        print("  2. Change role")
        print("  3. Activate / deactivate")
        print("  4. Back")
        choice = input("\nEnter choice (1-4): ").strip()

        if choice == "1":
            email = input("Email: ").strip()
            name = input("Name: ").strip() or None
            role = input("Role [user]: ").strip() or 'user'
            user = UserQueries.create_user(email, name, role)
            print(f"\n✓ Added {user['email']}")
        elif choice in ("2", "3"):
            user = self._pick(users, lambda u: u['email'], ask=False)
            if not user:
                return
            if choice == "2":
                user = UserQueries.change_role(user['id'], input(f"New role ({'/'.join(USER_ROLES)}): ").strip())
                print(f"\n✓ {user['email']} is now {user['role']}")
            else:
                user = UserQueries.set_active(user['id'], not user['is_active'])
                print(f"\n✓ {user['email']} is now {'active' if user['is_active'] else 'inactive'}")

    def settings(self):
        """View and edit organisation settings."""
        print("SETTINGS")
        print("-" * 80)
        settings = SettingsQueries.get_app_settings()
        for key in ('organization_name', 'primary_color', 'secondary_color', 'theme_mode', 'footer_text'):
            print(f"  {key:<20} {settings.get(key) or ''}")

        if not self._confirm("\nEdit settings?"):
            return
        changes = {}
        for key in ('organization_name', 'primary_color', 'secondary_color', 'theme_mode', 'footer_text'):
            value = input(f"{key} [{settings.get(key) or ''}]: ").strip()
            if value:
                changes[key] = value
        if changes:
            SettingsQueries.update_app_settings(changes)
            print("\n✓ Settings saved")

    def backup(self):
        """Write every table to a JSON backup file."""
        path = DataMaintenance.write_backup()
        print(f"\n✓ Backup written to {path}")

    def restore(self):
        """Replace all data with a backup file's contents."""
        print("RESTORE FROM BACKUP")
        print("-" * 80)
        print("\n⚠️  This replaces ALL current data.")
        path = self._ask_path("Backup file: ")
        if not path or not self._confirm("Continue?"):
            return
        restored = DataMaintenance.restore_all_data(DataMaintenance.load_backup(path))
        for table, count in restored.items():
            print(f"  {table:<28} {count}")
        print("\n✓ Restore complete")

    def factory_reset(self):
        """Delete all data, keeping only the signed-in user."""
        print("FACTORY RESET")
        print("-" * 80)
        print(f"\n⚠️  This deletes ALL data. Type '{RESET_CONFIRMATION}' to confirm.")
        result = DataMaintenance.factory_reset(input("> ").strip())
        self.academic_year = result['academic_year']
        print(f"\n✓ Reset complete. Current academic year is {self.academic_year}")

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _pick(self, records: List, label: Callable, ask: bool = True) -> Optional[dict]:
        """Return the only record, or let the user choose from several."""
        if not records:
            return None
        if len(records) == 1 and ask:
            return records[0]

        if ask:
            for idx, record in enumerate(records, 1):
                print(f"  {idx:>3}. {label(record)}")
        try:
            choice = int(input("\nEnter number (or 0 to cancel): ").strip())
        except ValueError:
            print("✗ Invalid input")
            return None
        if choice < 1 or choice > len(records):
            return None
        return records[choice - 1]

    def _pick_exam(self) -> Optional[dict]:
        exams = ExamQueries.list_exams(self.academic_year)
        if not exams:
            print(f"\n✗ No exams recorded for {self.academic_year}")
            return None
        return self._pick(exams, lambda e: f"{e['name']} ({e['term']}, {e['exam_date'] or 'no date'})")

    def _pick_year(self) -> Optional[dict]:
        years = AcademicYearQueries.list_years()
        if not years:
            print("\n✗ No academic years defined")
            return None
        return self._pick(years, lambda y: f"{y['year_name']}{' (current)' if y['is_current'] else ''}")

    def _edit_promotion_map(self, promotion_map: dict) -> dict:
        """Show each proposed promotion and let the user override it."""
        print("\nPromotions (Enter to accept, '-' to skip):")
        result = {}
        for old, new in promotion_map.items():
            answer = input(f"  {old} -> [{new}]: ").strip()
            if answer == '-':
                continue
            result[old] = answer or new
        return result

    @staticmethod
    def _report_results(results):
        failed = [r for r in results if not r.ok]
        print(f"\n✓ Wrote {len(results) - len(failed)} report(s)")
        for result in failed:
            print(f"  ✗ {result.item}: {result.error}")

    @staticmethod
    def _ask_path(prompt: str = "CSV file path: ") -> Optional[Path]:
        path = Path(input(prompt).strip()).expanduser()
        if not path.is_file():
            print(f"✗ File not found: {path}")
            return None
        return path

    @staticmethod
    def _ask_int(prompt: str, default: int) -> int:
        value = input(prompt).strip()
        try:
            return int(value) if value else default
        except ValueError:
            return default

    @staticmethod
    def _confirm(prompt: str, default: bool = False) -> bool:
        hint = "(Y/n)" if default else "(y/n)"
        answer = input(f"{prompt} {hint}: ").strip().lower()
        if not answer:
            return default
        return answer == 'y'


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="School sponsorship records")
    parser.add_argument('--year', help="Academic year to work in (default: the current year)")
    parser.add_argument('--user', default=os.getenv('RECORDS_USER'),
                        help="Email of the user to act as (recorded in the audit log)")
    return parser.parse_args(argv)


def main(argv=None):
    """Main CLI entry point."""
    args = parse_args(argv)
    setup_logging()
    init_database()

    user = None
    if args.user:
        try:
            user = UserQueries.record_login(args.user)
        except (ValueError, LookupError) as e:
            print(f"✗ {str(e)}")
            sys.exit(1)

    academic_year = args.year or AcademicYearQueries.get_current_year_name()
    title = SettingsQueries.get_app_settings()['organization_name']

    actions = CLIActions(academic_year)
    menu = MenuSystem(f"{title} - Student Records", actions, user)

    menu.add_item("1", "⌕ Lookup student", actions.lookup_student)
    menu.add_item("2", "≡ List students", actions.list_students)
    menu.add_item("3", "♥ View sponsor", actions.view_sponsor)
    menu.add_item("4", "+ Assign students to sponsor", actions.assign_students)

    menu.add_separator()

    menu.add_item("5", "§ Exam results & statistics", actions.view_exam)
    menu.add_item("6", "↧ Import exam scores (CSV)", actions.import_scores)
    menu.add_item("7", "↧ Import students (CSV)", actions.import_students)
    menu.add_item("8", "⎙ Bulk student PDF reports", actions.bulk_student_reports)
    menu.add_item("9", "⎙ Bulk sponsor PDF reports", actions.bulk_sponsor_reports)

    menu.add_separator()

    menu.add_item("10", "◷ Dashboard", actions.dashboard)
    menu.add_item("11", "◷ Academic year statistics", actions.year_statistics)
    menu.add_item("12", "⇄ Switch academic year", actions.switch_year)
    menu.add_item("13", "⎘ Copy academic year", actions.copy_year)
    menu.add_item("14", "↑ Promote grades", actions.promote_grades)

    menu.add_separator()

    menu.add_item("15", "☰ Audit log", actions.audit_logs)
    menu.add_item("16", "☺ Users", actions.manage_users)
    menu.add_item("17", "⚙ Settings", actions.settings)
    menu.add_item("18", "⇩ Backup all data", actions.backup)
    menu.add_item("19", "⇧ Restore from backup", actions.restore)
    menu.add_item("20", "⚠ Factory reset", actions.factory_reset)

    try:
        menu.run()
    finally:
        if user:
            UserQueries.record_logout()


if __name__ == '__main__':
    main()
