"""
Multiplier Dof Filters
======================

Lagrange multiplier variables are often declared on a space that is richer
than what the constraint can control. Before sizes are resolved, the model
asks a filter policy which of the candidate multiplier dofs to keep.

Both policies share one narrow interface:

    select(candidate_dofs, mass_matrix) -> kept dofs

where ``mass_matrix`` is the coupling matrix B between the multiplier space
(rows) and the primal space (columns), or None when no integration method
can provide it.

RegionDofFilter
    Keeps every candidate (the candidates are already restricted to the
    multiplier region).

RangeBasisFilter
    Keeps a linearly independent subset of the rows of B, found by a QR
    factorization with column pivoting of B[candidates, :]^T:

        B_c^T P = Q R,   rank r = #{ |R_ii| > tol * |R_00| }
        kept    = candidates[P[:r]]
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
import scipy.linalg
import scipy.sparse as sp

from FemCore.Config import ModelConstants

logger = logging.getLogger(__name__)


class MultiplierFilter(ABC):
    """Policy choosing the retained dofs of a multiplier variable."""

    @abstractmethod
    def select(self, candidate_dofs: np.ndarray, mass_matrix=None) -> np.ndarray:
        """Return the sorted subset of ``candidate_dofs`` to keep."""
        pass

    def needs_mass_matrix(self) -> bool:
        return False


class RegionDofFilter(MultiplierFilter):
    """Keep all the multiplier dofs lying on the region."""

    def select(self, candidate_dofs: np.ndarray, mass_matrix=None) -> np.ndarray:
        return np.unique(np.asarray(candidate_dofs, dtype=int))


class RangeBasisFilter(MultiplierFilter):
    """
    Keep the candidate dofs whose coupling rows are linearly independent.

    Parameters
    ----------
    tol : float, optional
        Relative rank tolerance. Defaults to ModelConstants.RANGE_BASIS_TOLERANCE.
    """

    def __init__(self, tol: Optional[float] = None):
        self.tol = ModelConstants.RANGE_BASIS_TOLERANCE if tol is None else float(tol)

    def needs_mass_matrix(self) -> bool:
        return True

    def select(self, candidate_dofs: np.ndarray, mass_matrix=None) -> np.ndarray:
        candidates = np.unique(np.asarray(candidate_dofs, dtype=int))
        if mass_matrix is None:
            raise ValueError("The range basis filter needs a coupling matrix")
        if candidates.size == 0:
            return candidates

        B = mass_matrix.toarray() if sp.issparse(mass_matrix) else np.asarray(mass_matrix)
        Bc = B[candidates, :]

        # Columns of Bc^T are the candidate rows
        _, R, piv = scipy.linalg.qr(Bc.T, mode='economic', pivoting=True)
        diag = np.abs(np.diag(R))
        if diag.size == 0 or diag[0] == 0.0:
            return candidates[:0]
        rank = int(np.sum(diag > self.tol * diag[0]))
        kept = np.sort(candidates[piv[:rank]])

        logger.debug("Range basis filter kept %d of %d multiplier dofs", kept.size, candidates.size)
        return kept
