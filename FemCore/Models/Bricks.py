"""
Matrix-Level Bricks
===================

Bricks whose terms are given explicitly as matrices and vectors, with no
integration involved. They are the building blocks for imposing linear
constraints and for injecting externally assembled operators.

ExplicitMatrixBrick
    One matrix term B on (var1, var2).

ExplicitRhsBrick
    One vector term L on var.

ConstraintWithMultipliersBrick
    Imposes B u = L through a multiplier variable lambda:

        [ K    B^T ] [ u      ]   [ F ]
        [ B    0   ] [ lambda ] = [ L ]

    Terms: (lambda, u) matrix B, symmetric (the model mirrors B^T), and the
    vector L on lambda.

ConstraintWithPenalizationBrick
    Imposes B u = L approximately with a penalty coefficient r:

        (K + r B^T B) u = F + r B^T L
"""

import logging
from typing import Optional

import numpy as np
import scipy.sparse as sp

from FemCore.Config import ModelConstants
from FemCore.Errors import BrickComputationError
from FemCore.Models.BaseBrick import BaseBrick

logger = logging.getLogger(__name__)


def _as_matrix(B, dtype):
    B = sp.csr_matrix(B, dtype=dtype) if not sp.issparse(B) else B.astype(dtype).tocsr()
    return B


def _check_shape(brick: str, what: str, actual, expected):
    if tuple(actual) != tuple(expected):
        raise BrickComputationError(
            f"Brick '{brick}': {what} has shape {tuple(actual)}, expected {tuple(expected)}")


class ExplicitMatrixBrick(BaseBrick):
    """
    Brick adding a constant matrix B on the block (var1, var2).

    Parameters
    ----------
    B : array_like or sparse matrix
        The block, shape (n_var1, n_var2).
    symmetric : bool
        Mirror B^T on (var2, var1) when var1 != var2.
    coercive : bool
        Declared coercivity.
    """

    def __init__(self, B, symmetric: bool = False, coercive: bool = False):
        B = B if sp.issparse(B) else np.atleast_2d(np.asarray(B))
        is_complex_data = np.iscomplexobj(B.data if sp.issparse(B) else B)
        super().__init__("Explicit matrix", is_linear=True, is_symmetric=symmetric,
                         is_coercive=coercive, is_real=not is_complex_data, is_complex=True)
        self.B = B

    def set_matrix(self, B):
        B = B if sp.issparse(B) else np.atleast_2d(np.asarray(B))
        if np.iscomplexobj(B.data if sp.issparse(B) else B) and self.is_real:
            raise BrickComputationError("Cannot set a complex matrix on a real explicit brick")
        self.B = B

    def _fill(self, matl, dtype):
        _check_shape(self.name, "matrix", self.B.shape, matl[0].shape)
        matl[0] = _as_matrix(self.B, dtype)

    def asm_real_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        self._fill(matl, float)

    def asm_complex_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        self._fill(matl, complex)


class ExplicitRhsBrick(BaseBrick):
    """Brick adding a constant vector L on one variable."""

    def __init__(self, L):
        L = np.asarray(L).ravel()
        super().__init__("Explicit rhs", is_linear=True, is_symmetric=True, is_coercive=True,
                         is_real=not np.iscomplexobj(L), is_complex=True)
        self.L = L

    def set_rhs(self, L):
        L = np.asarray(L).ravel()
        if np.iscomplexobj(L) and self.is_real:
            raise BrickComputationError("Cannot set a complex vector on a real explicit brick")
        self.L = L

    def asm_real_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        _check_shape(self.name, "vector", self.L.shape, vecl[0].shape)
        vecl[0][:] = self.L.real

    def asm_complex_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        _check_shape(self.name, "vector", self.L.shape, vecl[0].shape)
        vecl[0][:] = self.L


class ConstraintWithMultipliersBrick(BaseBrick):
    """
    Constraint B u = L imposed with a multiplier variable.

    Added with varnames (u, lambda) and terms [(lambda, u, symmetric), (lambda,)].
    """

    def __init__(self, B, L):
        super().__init__("Constraint with multipliers", is_linear=True, is_symmetric=True,
                         is_coercive=False, is_real=True, is_complex=False)
        self.B = B if sp.issparse(B) else np.atleast_2d(np.asarray(B, dtype=float))
        self.L = np.asarray(L, dtype=float).ravel()

    def set_matrix(self, B):
        self.B = B if sp.issparse(B) else np.atleast_2d(np.asarray(B, dtype=float))

    def set_rhs(self, L):
        self.L = np.asarray(L, dtype=float).ravel()

    def asm_real_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        _check_shape(self.name, "constraint matrix", self.B.shape, matl[0].shape)
        _check_shape(self.name, "constraint rhs", self.L.shape, vecl[1].shape)
        matl[0] = _as_matrix(self.B, float)
        vecl[1][:] = self.L


class ConstraintWithPenalizationBrick(BaseBrick):
    """
    Constraint B u = L imposed by penalization.

    Terms: [(u, u, symmetric) = r B^T B, (u,) = r B^T L].

    Parameters
    ----------
    coeff : float, optional
        Penalty coefficient r. Defaults to ModelConstants.DEFAULT_PENALIZATION.
    """

    def __init__(self, B, L, coeff: Optional[float] = None):
        super().__init__("Constraint with penalization", is_linear=True, is_symmetric=True,
                         is_coercive=True, is_real=True, is_complex=False)
        self.B = B if sp.issparse(B) else np.atleast_2d(np.asarray(B, dtype=float))
        self.L = np.asarray(L, dtype=float).ravel()
        self.coeff = ModelConstants.DEFAULT_PENALIZATION if coeff is None else float(coeff)

    def set_matrix(self, B):
        self.B = B if sp.issparse(B) else np.atleast_2d(np.asarray(B, dtype=float))

    def set_rhs(self, L):
        self.L = np.asarray(L, dtype=float).ravel()

    def set_coeff(self, coeff: float):
        self.coeff = float(coeff)

    def asm_real_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        n = matl[0].shape[1]
        if self.B.shape[1] != n:
            raise BrickComputationError(
                f"Brick '{self.name}': constraint matrix has {self.B.shape[1]} columns, expected {n}")
        if self.L.shape[0] != self.B.shape[0]:
            raise BrickComputationError(
                f"Brick '{self.name}': constraint rhs has size {self.L.shape[0]}, expected {self.B.shape[0]}")
        B = _as_matrix(self.B, float)
        matl[0] = (self.coeff * (B.T @ B)).tocsr()
        vecl[1][:] = self.coeff * (B.T @ self.L)
