import pytest
from queries import ExamQueries, StudentQueries, ValidationError, NotFoundError
from queries.grading import DID_NOT_SIT


def test_create_exam_defaults(exam):
    assert exam['max_score'] == 100
    assert exam['passing_score'] == 50
    assert exam['exam_date'] == '2025-03-15'


@pytest.mark.parametrize('overrides', [
    {'term': 'Term 9'},
    {'max_score': 0},
    {'passing_score': 150},
    {'name': ''},
])
def test_create_exam_validation(current_year, overrides):
    data = {'name': 'Opener', 'academic_year': '2025', 'term': 'Term 2', 'exam_date': '2025-05-01'}
    data.update(overrides)
    with pytest.raises(ValidationError):
        ExamQueries.create_exam(data)


def test_list_exams_newest_first(current_year, exam):
    later = ExamQueries.create_exam({'name': 'End Term', 'academic_year': '2025', 'term': 'Term 1',
                                     'exam_date': '2025-04-01'})
    ExamQueries.create_exam({'name': 'Opener', 'academic_year': '2025', 'term': 'Term 2',
                             'exam_date': '2025-05-10'})
    assert [e['name'] for e in ExamQueries.list_exams('2025', 'Term 1')] == [later['name'], exam['name']]
    assert len(ExamQueries.list_exams('2025')) == 3
    assert ExamQueries.list_exams('2024') == []


def test_save_scores_clamps_and_skips_unchanged(exam, make_student):
    a = make_student('Amina')
    b = make_student('Brian')

    result = ExamQueries.save_scores(exam['id'], [
        {'student_id': a['id'], 'score': 130},
        {'student_id': b['id'], 'score': 55, 'did_not_sit': True},
    ])
    assert result == {'updated': 2, 'message': 'Updated 2 student scores'}

    rows = {r['name']: r for r in ExamQueries.get_exam_results(exam['id'])['results']}
    assert rows['Amina']['score'] == 100
    assert rows['Brian']['score'] is None
    assert rows['Brian']['status'] == DID_NOT_SIT

    again = ExamQueries.save_scores(exam['id'], [{'student_id': a['id'], 'score': 100}])
    assert again == {'updated': 0, 'message': 'No changes detected'}

    with pytest.raises(NotFoundError):
        ExamQueries.save_scores('3f2b8c1e-9d4a-4e7b-8a6c-1b2c3d4e5f60', [])


def test_exam_results_roster(exam, make_student):
    a = make_student('Amina')
    make_student('Brian')
    left = make_student('Cynthia')
    ExamQueries.save_scores(exam['id'], [{'student_id': left['id'], 'score': 45}])
    StudentQueries.set_status(left['id'], 'Transferred')
    make_student('Dan', status='Inactive')

    results = ExamQueries.get_exam_results(exam['id'])['results']
    # Inactive students without a score are not on the roster
    assert [r['name'] for r in results] == ['Amina', 'Brian', 'Cynthia']
    cynthia = results[2]
    assert cynthia['percentage'] == 45
    assert cynthia['grade'] == 'AE'
    assert cynthia['performance'] == 'Approaching Expectation'
    assert results[0]['student_id'] == a['id']
    assert results[0]['status'] == 'Not Assessed'
    assert results[0]['performance'] == 'Not Assessed'


def test_exam_statistics(exam, make_student):
    a = make_student('Amina')
    b = make_student('Brian')
    c = make_student('Cynthia')
    make_student('Dan')
    ExamQueries.save_scores(exam['id'], [
        {'student_id': a['id'], 'score': 85},
        {'student_id': b['id'], 'score': 45},
        {'student_id': c['id'], 'did_not_sit': True},
    ])

    stats = ExamQueries.get_exam_statistics(exam['id'])
    assert stats['total_students'] == 4
    assert stats['scored_students'] == 2
    assert stats['did_not_sit'] == 1
    assert stats['not_assessed'] == 1
    assert stats['average_score'] == 65.0
    assert stats['highest_score'] == 85
    assert stats['lowest_score'] == 45
    assert stats['average_percentage'] == 65.0
    assert stats['pass_rate'] == 50.0
    assert stats['performance_distribution'] == {'EE': 1, 'ME': 0, 'AE': 1, 'BE': 0, DID_NOT_SIT: 1}
    assert stats['score_distribution']['41-60'] == 1
    assert stats['score_distribution']['81-100'] == 1
    assert stats['score_distribution'][DID_NOT_SIT] == 1


def test_exam_statistics_without_scores(exam):
    stats = ExamQueries.get_exam_statistics(exam['id'])
    assert stats['scored_students'] == 0
    assert stats['average_score'] == 0.0
    assert stats['pass_rate'] == 0.0
    assert ExamQueries.get_exam_statistics('3f2b8c1e-9d4a-4e7b-8a6c-1b2c3d4e5f60') is None


def test_student_exam_history_and_term_averages(current_year, make_student):
    student = make_student()
    first = ExamQueries.create_exam({'name': 'Opener', 'academic_year': '2025', 'term': 'Term 1',
                                     'exam_date': '2025-01-20'})
    second = ExamQueries.create_exam({'name': 'Mid Term', 'academic_year': '2025', 'term': 'Term 1',
                                      'exam_date': '2025-03-01', 'max_score': 50, 'passing_score': 25})
    third = ExamQueries.create_exam({'name': 'Opener', 'academic_year': '2025', 'term': 'Term 2',
                                     'exam_date': '2025-05-20'})
    ExamQueries.save_scores(first['id'], [{'student_id': student['id'], 'score': 80}])
    ExamQueries.save_scores(second['id'], [{'student_id': student['id'], 'score': 30.5}])
    ExamQueries.save_scores(third['id'], [{'student_id': student['id'], 'did_not_sit': True}])

    history = ExamQueries.get_student_exam_history(student['id'])
    assert [e['exam_name'] for e in history['exams']] == ['Opener', 'Mid Term', 'Opener']
    assert history['exams'][1]['percentage'] == 61
    assert history['exams'][2]['did_not_sit'] is True
    assert history['exams'][2]['grade'] is None
    assert history['term_averages'] == [{'term': 'Term 1', 'average': 71, 'count': 2, 'grade': 'ME'}]


def test_delete_exam_removes_scores(exam, make_student):
    student = make_student()
    ExamQueries.save_scores(exam['id'], [{'student_id': student['id'], 'score': 70}])
    assert ExamQueries.delete_exam(exam['id']) is True
    assert ExamQueries.get_exam(exam['id']) is None
    assert ExamQueries.get_student_exam_history(student['id'])['exams'] == []
    assert ExamQueries.delete_exam(exam['id']) is False
