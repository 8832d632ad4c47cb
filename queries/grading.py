"""
Grade banding and score arithmetic.

Everything here is pure: no database access, just reductions over small
lists of scores. The banding table follows the CBC performance levels:

    EE  Exceeding Expectation   >= 80%
    ME  Meeting Expectation     >= 50%
    AE  Approaching Expectation >= 40%
    BE  Below Expectation        < 40%
"""

import math
from typing import Dict, Iterable, List, Optional

# Descending thresholds; the first band whose floor is met wins
GRADE_THRESHOLDS = [
    (80, 'EE'),
    (50, 'ME'),
    (40, 'AE'),
    (0, 'BE'),
]

GRADE_DESCRIPTIONS = {
    'EE': 'Exceeding Expectation',
    'ME': 'Meeting Expectation',
    'AE': 'Approaching Expectation',
    'BE': 'Below Expectation',
}

GRADE_COLORS = {
    'EE': '#4ade80',
    'ME': '#3b82f6',
    'AE': '#f97316',
    'BE': '#b91c1c',
}

DID_NOT_SIT = 'Did Not Sit'

# (label, low, high) on the percentage scale
SCORE_BUCKETS = [
    ('0-20', 0, 20),
    ('21-40', 21, 40),
    ('41-60', 41, 60),
    ('61-80', 61, 80),
    ('81-100', 81, 100),
]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (round(2.5) == 3)."""
    return int(math.floor(value + 0.5))


def calculate_grade(percentage: float) -> str:
    """Map a percentage onto its grade code."""
    for floor, code in GRADE_THRESHOLDS:
        if percentage >= floor:
            return code
    return GRADE_THRESHOLDS[-1][1]


def get_grade_description(code: str) -> str:
    return GRADE_DESCRIPTIONS.get(code, 'Unknown')


def get_grade_category(score: float) -> str:
    """Description of the band a score (already out of 100) falls in."""
    return get_grade_description(calculate_grade(score))


def score_percentage(score: Optional[float], max_score: Optional[float]) -> int:
    """
    Score as a whole-number percentage of the exam's maximum.

    Returns 0 when there is no score or the maximum is missing/zero.

    Example:
        >>> score_percentage(45, 60)
        75
    """
    if score is None or not max_score:
        return 0
    return round_half_up(score / max_score * 100)


def term_averages(records: Iterable[Dict]) -> List[Dict]:
    """
    Average percentage per term.

    Args:
        records: Dicts with 'term' and 'percentage' keys. A missing term
            is grouped under 'Unknown'.

    Returns:
        List of {'term', 'average', 'count', 'grade'} in the order each term
        was first seen.
    """
    totals = {}
    for record in records:
        term = record.get('term') or 'Unknown'
        bucket = totals.setdefault(term, [0, 0])
        bucket[0] += record.get('percentage') or 0
        bucket[1] += 1

    averages = []
    for term, (total, count) in totals.items():
        average = round_half_up(total / count)
        averages.append({
            'term': term,
            'average': average,
            'count': count,
            'grade': calculate_grade(average),
        })
    return averages


def performance_distribution(percentages: Iterable[Optional[float]]) -> Dict[str, int]:
    """
    Count results per grade band.

    A None entry stands for a student who did not sit the exam.
    """
    counts = {code: 0 for _, code in GRADE_THRESHOLDS}
    counts[DID_NOT_SIT] = 0
    for percentage in percentages:
        if percentage is None:
            counts[DID_NOT_SIT] += 1
        else:
            counts[calculate_grade(percentage)] += 1
    return counts


def score_distribution(percentages: Iterable[Optional[float]]) -> Dict[str, int]:
    """Count results per 20-point percentage bucket (None = did not sit)."""
    counts = {label: 0 for label, _, _ in SCORE_BUCKETS}
    counts[DID_NOT_SIT] = 0
    for percentage in percentages:
        if percentage is None:
            counts[DID_NOT_SIT] += 1
            continue
        for label, _, high in SCORE_BUCKETS:
            if percentage <= high:
                counts[label] += 1
                break
        else:
            # Above 100 counts as the top band
            counts[SCORE_BUCKETS[-1][0]] += 1
    return counts
