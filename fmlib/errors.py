from __future__ import annotations


class FinancialModelError(ValueError):
    """Base class for per-call modeling errors. Never fatal to the process."""


class InvalidInputError(FinancialModelError):
    """Raw input is not a collection of row-like records."""


class InsufficientDataError(FinancialModelError):
    """No locatable revenue/EBITDA signal in the dataset."""


class DegenerateParameterError(FinancialModelError):
    """A model parameter makes a divisor zero or negative (e.g. WACC <= terminal growth)."""


__all__ = [
    'FinancialModelError',
    'InvalidInputError',
    'InsufficientDataError',
    'DegenerateParameterError',
]
