"""Option handling shared by the component factories."""

from numbers import Real

from blox.errors import ConfigurationError

REQUIRED = object()


def merge_options(kind, defaults, options, numeric=True):
    """Overlay user options on a kind's defaults.

    Parameters
    ----------
    kind : str
        Kind tag, for error messages.
    defaults : dict
        Recognized option names and their defaults; REQUIRED marks an
        option without a library default.
    options : dict
        User-supplied options.
    numeric : bool or set of str
        True to require every value to be a real number; a set to
        require it only for those names.

    Returns
    -------
    dict
        Complete option mapping.

    Raises
    ------
    ConfigurationError
        On unknown options, missing required options or non-numeric values.
    """
    unknown = set(options) - set(defaults)
    if unknown:
        raise ConfigurationError(
            f"Unknown options for '{kind}': {sorted(unknown)}. "
            f"Recognized: {sorted(defaults)}"
        )
    merged = {**defaults, **options}
    missing = [k for k, v in merged.items() if v is REQUIRED]
    if missing:
        raise ConfigurationError(f"'{kind}' requires options {sorted(missing)}")

    check = set(merged) if numeric is True else set(numeric or ())
    for key in check:
        value = merged[key]
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ConfigurationError(
                f"Option '{key}' of '{kind}' must be a number, got {value!r}"
            )
    return merged


def require(condition, message):
    """Raise ConfigurationError with `message` unless `condition` holds."""
    if not condition:
        raise ConfigurationError(message)
