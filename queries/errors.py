"""Exceptions raised by the query layer."""


class ValidationError(ValueError):
    """Input failed validation (bad dates, duplicate names, unknown roles...)."""


class NotFoundError(LookupError):
    """A referenced record does not exist."""
