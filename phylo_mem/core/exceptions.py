"""
Exception hierarchy for the phylo_mem package.

Validation errors are raised before any computation starts. Numerical errors
come from the statistic and regression providers and are never caught by the
selection loop.
"""


class PhyloMemError(Exception):
    """Base class for all phylo_mem errors."""


class InputValidationError(PhyloMemError, ValueError):
    """Raised when inputs violate a precondition of an analysis."""


class MissingValuesError(InputValidationError):
    """Raised when a trait vector contains missing (NaN) entries."""


class LengthMismatchError(InputValidationError):
    """Raised when a trait vector and a basis or proximity disagree in size."""


class UnlabeledInputError(InputValidationError):
    """Raised when a trait vector carries no tip labels."""


class IdentifierMismatchError(InputValidationError):
    """Raised when tip labels do not match between two inputs."""


class NumericalError(PhyloMemError, ArithmeticError):
    """Raised by the statistic or regression providers on degenerate numbers."""


class ConfigurationError(PhyloMemError):
    """Raised when a configuration file cannot be used."""
