"""Header-to-field matching shared by the CSV importers."""

from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from queries.errors import ValidationError


def read_csv(source) -> pd.DataFrame:
    """
    Read a CSV file (path or file-like) with every cell as a string.

    Keeping strings preserves admission numbers like '007'; blank cells
    become ''.
    """
    df = pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)
    df.columns = [str(c).strip() for c in df.columns]
    if df.empty:
        raise ValidationError("The CSV file has no data rows")
    return df.apply(lambda column: column.str.strip())


def auto_map_headers(headers: Sequence[str],
                     rules: List[Tuple[str, Tuple[str, ...], Tuple[str, ...]]]) -> Dict[str, Optional[str]]:
    """
    Guess which field each header holds.

    Args:
        headers: CSV header names
        rules: (field, substrings, exact names) checked in order; the first
            rule a header satisfies wins

    Returns:
        {header: field or None}. A field is only ever given to the first
        header that matches it.
    """
    mapping = {}
    taken = set()
    for header in headers:
        lowered = header.lower().strip()
        mapping[header] = None
        for field, keywords, exact in rules:
            if lowered in exact or any(keyword in lowered for keyword in keywords):
                if field not in taken:
                    mapping[header] = field
                    taken.add(field)
                break
    return mapping


def validate_mapping(mapping: Dict[str, Optional[str]], required: Sequence[str],
                     labels: Dict[str, str]):
    """Every required field mapped, and no field mapped twice."""
    fields = [field for field in mapping.values() if field]
    duplicates = sorted({field for field in fields if fields.count(field) > 1})
    if duplicates:
        raise ValidationError(
            f"Each field can only be mapped once: {', '.join(labels.get(f, f) for f in duplicates)}"
        )
    for field in required:
        if field not in fields:
            raise ValidationError(f"{labels.get(field, field)} field must be mapped")
