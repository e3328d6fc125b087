"""Small string helpers."""


def first_non_empty(*args: str) -> str:
    """Return the first non-empty argument, or an empty string if there is none."""
    return next((value for value in args if value), "")


def with_default(val: str, default_value: str) -> str:
    """Return ``default_value`` when ``val`` is empty, otherwise ``val``."""
    return val if val else default_value