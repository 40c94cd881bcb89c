"""
This module provides strategies for solving the inverse problem.

It defines an abstract base class `SolverStrategy` and two implementations:
`WeightedNormalEquationsSolver` for the closed-form weighted least-squares
solve, and `BoundedLsqSolver` for box-constrained least squares using
`scipy.optimize`.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple
import numpy as np
from scipy import linalg
from scipy.optimize import lsq_linear

from trislip.core.errors import RankDeficiencyError, SolverError


def expand_bounds(
    limits: Sequence[float], n_elements: int
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Expands (strike_low, dip_low, strike_high, dip_high) to per-component bounds.

    Returns:
        (lower, upper) arrays of shape (2M,) ordered (strike, dip) per element.
    """
    limits = np.asarray(limits, dtype=float).ravel()
    if limits.size != 4:
        raise ValueError(
            "Bounds must be (strike_low, dip_low, strike_high, dip_high)."
        )
    lower = np.tile(limits[:2], n_elements)
    upper = np.tile(limits[2:], n_elements)
    if np.any(lower >= upper):
        raise ValueError(
            f"Lower bounds {limits[:2]} must be strictly below upper bounds {limits[2:]}."
        )
    return lower, upper


class SolverStrategy(ABC):
    """
    Abstract base class for numerical solvers.

    Defines the interface for any solver strategy used in the inversion process.
    Concrete implementations must provide a `solve` method.
    """

    @abstractmethod
    def solve(
        self,
        A: np.ndarray,
        b: np.ndarray,
        weights: np.ndarray,
        bounds: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> np.ndarray:
        """
        Solves the weighted linear system Ax = b.

        Args:
            A: The design matrix of shape (K, P).
            b: The data vector of shape (K,).
            weights: The diagonal of the weight matrix W, shape (K,).
            bounds: Optional tuple of (lower_bounds, upper_bounds), each of shape (P,).

        Returns:
            The solution vector x of shape (P,).
        """
        pass


class WeightedNormalEquationsSolver(SolverStrategy):
    """
    Closed-form weighted least squares, x = (A^T W A)^-1 A^T W b.

    Requires the weighted design matrix to have full column rank; a rank
    deficient system raises RankDeficiencyError rather than being
    regularized further.
    """

    def solve(
        self,
        A: np.ndarray,
        b: np.ndarray,
        weights: np.ndarray,
        bounds: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> np.ndarray:
        """
        Solves the weighted normal equations.

        Raises:
            ValueError: If bounds are given; use BoundedLsqSolver for those.
            RankDeficiencyError: If A^T W A is singular.
        """
        if bounds is not None:
            raise ValueError("WeightedNormalEquationsSolver does not support bounds.")

        n_params = A.shape[1]
        root_w = np.sqrt(weights)
        rank = np.linalg.matrix_rank(A * root_w[:, np.newaxis])
        if rank < n_params:
            raise RankDeficiencyError(
                f"Weighted design matrix has rank {rank} < {n_params} parameters."
            )

        normal_matrix = A.T @ (weights[:, np.newaxis] * A)
        rhs = A.T @ (weights * b)
        try:
            return linalg.solve(normal_matrix, rhs, assume_a="sym")
        except linalg.LinAlgError as err:
            raise RankDeficiencyError(str(err)) from err


class BoundedLsqSolver(SolverStrategy):
    """
    Solver strategy using bounded least squares.

    Minimizes ||sqrt(W) (Ax - b)|| subject to lower <= x <= upper by wrapping
    `scipy.optimize.lsq_linear`.
    """

    def __init__(self, method: str = "bvls", tol: float = 1e-10, max_iter: Optional[int] = None):
        self.method = method
        self.tol = tol
        self.max_iter = max_iter

    def solve(
        self,
        A: np.ndarray,
        b: np.ndarray,
        weights: np.ndarray,
        bounds: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> np.ndarray:
        """
        Solves the weighted system using bounded least squares.

        Raises:
            ValueError: If bounds are provided but are not a tuple of two arrays.
            SolverError: If lsq_linear reports failure.
        """
        root_w = np.sqrt(weights)
        A_w = A * root_w[:, np.newaxis]
        b_w = b * root_w

        if bounds is None:
            res = lsq_linear(A_w, b_w, method=self.method, tol=self.tol, max_iter=self.max_iter)
        else:
            if not isinstance(bounds, tuple) or len(bounds) != 2:
                raise ValueError(
                    "Bounds must be a tuple of (lower_bounds, upper_bounds)."
                )
            res = lsq_linear(
                A_w, b_w, bounds=bounds, method=self.method, tol=self.tol, max_iter=self.max_iter
            )

        if not res.success:
            raise SolverError(f"Bounded least squares failed: {res.message}")
        return res.x
