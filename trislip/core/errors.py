"""
Exceptions raised by the inversion pipeline.

Every error aborts the current inversion call; nothing is retried and no
partial result is returned.
"""

import numpy as np


class TrislipError(Exception):
    """Base class for all inversion errors."""


class DimensionMismatchError(TrislipError, ValueError):
    """A kernel or assembled block does not match the station/mesh configuration."""


class RankDeficiencyError(TrislipError, np.linalg.LinAlgError):
    """The weighted normal-equations matrix cannot be inverted."""


class DegenerateRegionError(TrislipError, ValueError):
    """A sub-region has no adjacent-element distance to scale its smoothing by."""

    def __init__(self, region: int, name: str = ""):
        self.region = region
        label = f"'{name}' (index {region})" if name else f"index {region}"
        super().__init__(
            f"Sub-region {label} has no side-sharing elements; "
            "cannot compute a mean smoothing distance."
        )


class InvalidLockSpecError(TrislipError, ValueError):
    """The lock vector does not have N or 2N finite entries."""


class NoiseInjectionError(TrislipError, ValueError):
    """Synthetic noise cannot be scaled from the station uncertainties."""


class SolverError(TrislipError, RuntimeError):
    """The numerical solver did not converge to a solution."""
