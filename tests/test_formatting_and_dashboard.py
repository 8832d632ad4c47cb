from queries import RecordFormatter, DashboardQueries, ExamQueries, SponsorQueries, StudentQueries


def test_empty_records():
    assert RecordFormatter.format_student(None) == "Student not found."
    assert RecordFormatter.format_student_list([]) == "No students found."
    assert RecordFormatter.format_sponsor(None) == "Sponsor not found."
    assert RecordFormatter.format_exam_results(None) == "Exam not found."
    assert RecordFormatter.format_audit_logs([]) == "No audit entries found."


def test_student_profile_with_history(exam, make_student, sponsor):
    student = make_student('Alice Achieng', admission_number='A1')
    SponsorQueries.assign_students(sponsor['id'], [student['id']])
    ExamQueries.save_scores(exam['id'], [{'student_id': student['id'], 'score': 81}])

    text = RecordFormatter.format_student(
        StudentQueries.get_student(student['id']),
        ExamQueries.get_student_exam_history(student['id']),
    )
    assert "Alice Achieng" in text
    assert "Mary Smith" in text
    assert "EXAM RESULTS" in text
    assert "81/100" in text
    assert "Term Averages:" in text


def test_exam_listing_marks_absences(exam, make_student):
    student = make_student('Brian Otieno')
    ExamQueries.save_scores(exam['id'], [{'student_id': student['id'], 'did_not_sit': True}])

    text = RecordFormatter.format_exam_results(ExamQueries.get_exam_results(exam['id']))
    assert "Mid Term Exam - Term 1 2025" in text
    assert "DNS" in text
    stats_text = RecordFormatter.format_exam_statistics(ExamQueries.get_exam_statistics(exam['id']))
    assert "Did not sit:                 1" in stats_text


def test_dashboard(exam, make_student, sponsor):
    alice = make_student('Alice Achieng')
    brian = make_student('Brian Otieno')
    make_student('Cynthia Wambui')
    SponsorQueries.assign_students(sponsor['id'], [alice['id']])
    ExamQueries.save_scores(exam['id'], [
        {'student_id': alice['id'], 'score': 80},
        {'student_id': brian['id'], 'score': 61},
    ])

    summary = DashboardQueries.get_summary('2025')
    assert summary == {
        'student_count': 3,
        'sponsor_count': 1,
        'exam_count': 1,
        'unassigned_students': 2,
        'sponsored_students': 1,
    }
    assert DashboardQueries.get_summary('2030')['student_count'] == 0

    recent = DashboardQueries.get_recent_sponsorships()
    assert [(r['student_name'], r['sponsor_name']) for r in recent] == [('Alice Achieng', 'Mary Smith')]

    performance = DashboardQueries.get_exam_performance()
    assert performance == [{
        'exam_id': exam['id'],
        'exam': 'Mid Term Exam (2025)',
        'average_percentage': 71,
        'student_count': 2,
    }]
