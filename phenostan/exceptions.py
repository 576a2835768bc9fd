"""Custom exception and warning classes for the PhenoStan package.

All custom exceptions inherit from the base PhenoStanError class to allow
for unified exception handling when needed.
"""


class PhenoStanError(Exception):
    """Base class for all exceptions in the PhenoStan package.

    Example:
        >>> try:
        ...     # PhenoStan operations
        ...     pass
        ... except PhenoStanError as e:
        ...     print(f"PhenoStan error occurred: {e}")
    """


class DataFormatError(PhenoStanError, ValueError):
    """Raised when phenological observations are not valid for modeling.

    This covers missing columns, missing values in required columns, empty
    datasets, and species identifiers that cannot be passed to Stan.
    """


class ModelFileError(PhenoStanError, FileNotFoundError):
    """Raised when the Stan file describing the model cannot be found."""


class ConvergenceWarning(UserWarning):
    """Warning emitted when MCMC diagnostics identify sampling problems."""
