"""URL slugs for students and sponsors, and id-or-slug detection."""

import re

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def is_uuid(value) -> bool:
    return bool(value) and bool(UUID_PATTERN.match(str(value)))


def generate_slug(name: str) -> str:
    """
    Lowercase, strip punctuation, hyphenate whitespace.

    Example:
        >>> generate_slug("  Mary-Jane O'Neil ")
        'mary-jane-oneil'
    """
    slug = (name or '').lower().strip()
    slug = re.sub(r'[^\w\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug.strip('-')


def unique_slug(db, model, name: str, exclude_id: str = None) -> str:
    """
    Slug for `name` that no other row of `model` already uses.

    Collisions get a numeric suffix: 'john-doe', 'john-doe-1', 'john-doe-2'...
    """
    base = generate_slug(name) or 'record'
    candidate = base
    counter = 1
    while True:
        query = db.query(model.id).filter(model.slug == candidate)
        if exclude_id:
            query = query.filter(model.id != exclude_id)
        if query.first() is None:
            return candidate
        candidate = f"{base}-{counter}"
        counter += 1
