import pytest
from queries.grading import (
    DID_NOT_SIT, round_half_up, calculate_grade, get_grade_description, get_grade_category,
    score_percentage, term_averages, performance_distribution, score_distribution,
)


@pytest.mark.parametrize('percentage, grade', [
    (100, 'EE'), (80, 'EE'), (79.9, 'ME'), (50, 'ME'), (49, 'AE'), (40, 'AE'), (39, 'BE'), (0, 'BE'),
])
def test_calculate_grade_band_floors(percentage, grade):
    assert calculate_grade(percentage) == grade


def test_grade_descriptions():
    assert get_grade_description('EE') == 'Exceeding Expectation'
    assert get_grade_description('XX') == 'Unknown'
    assert get_grade_category(45) == 'Approaching Expectation'


def test_round_half_up_rounds_halves_away_from_even():
    assert round_half_up(2.5) == 3
    assert round_half_up(70.5) == 71
    assert round_half_up(70.49) == 70


def test_score_percentage():
    assert score_percentage(45, 60) == 75
    assert score_percentage(1, 3) == 33
    assert score_percentage(None, 100) == 0
    assert score_percentage(40, 0) == 0


def test_term_averages_groups_in_first_seen_order():
    records = [
        {'term': 'Term 2', 'percentage': 90},
        {'term': 'Term 1', 'percentage': 80},
        {'term': 'Term 1', 'percentage': 61},
        {'term': None, 'percentage': 30},
    ]
    averages = term_averages(records)
    assert [a['term'] for a in averages] == ['Term 2', 'Term 1', 'Unknown']
    term_1 = averages[1]
    assert term_1['average'] == 71
    assert term_1['count'] == 2
    assert term_1['grade'] == 'ME'


def test_performance_distribution_counts_absences():
    counts = performance_distribution([85, 55, 45, 10, None, None])
    assert counts == {'EE': 1, 'ME': 1, 'AE': 1, 'BE': 1, DID_NOT_SIT: 2}


def test_score_distribution_bucket_edges():
    counts = score_distribution([0, 20, 20.5, 40, 60, 61, 80, 100, 105, None])
    assert counts['0-20'] == 2
    assert counts['21-40'] == 2
    assert counts['41-60'] == 1
    assert counts['61-80'] == 2
    assert counts['81-100'] == 2
    assert counts[DID_NOT_SIT] == 1
