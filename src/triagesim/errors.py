"""
Exception and warning types raised by the triage simulation.
"""


class InvalidInput(ValueError):
    """Malformed population, configuration or capacity."""
    pass


class NumericDegeneracy(ArithmeticError):
    """Paired comparison whose test statistic is undefined."""
    pass


class NumericDegeneracyWarning(RuntimeWarning):
    """Emitted when a paired comparison is reported as NaN."""
    pass
