#!/usr/bin/env python3
"""
Exceptions raised by the time-stepping machinery.

All of them signal programming or configuration errors. They are raised
eagerly, at Python level, before any array is traced.
"""


class TimeSteppingError(Exception):
    """Base class for all time-stepping errors."""


class ShapeMismatchError(TimeSteppingError, ValueError):
    """Tendency and prognostic fields disagree in shape or kind, or the leapfrog axis is not 2."""


class LeapfrogIndexError(TimeSteppingError, ValueError):
    """A leapfrog index (l1, j1 or j2) is outside {1, 2}."""


class SemiImplicitStateError(TimeSteppingError, RuntimeError):
    """The semi-implicit operator is not initialized for the requested step size."""
