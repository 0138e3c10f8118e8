# bookmarket/errors.py


class Forbidden(Exception):
    """The caller may not act on this resource (not the owner, blocked, not a participant)."""
