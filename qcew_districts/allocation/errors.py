from __future__ import annotations


class ConfigurationError(ValueError):
    """Declared constants or inputs cannot support the run."""


class UnmappedGeographyError(ConfigurationError):
    """A county or district has no crosswalk row and no declared override."""

    def __init__(self, message: str, keys=()):
        super().__init__(message)
        self.keys = list(keys)


class OutOfRangePeriodError(ValueError):
    def __init__(self, periods):
        self.periods = sorted(set(periods))
        super().__init__(f"Periods outside the covered 2003-2018 range: {self.periods}")


class ConservationViolation(ValueError):
    """Employment totals changed across an allocation step."""

    def __init__(self, message: str, keys=()):
        super().__init__(message)
        self.keys = list(keys)
