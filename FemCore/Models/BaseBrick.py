"""
BaseBrick - Brick Service Provider Interface
============================================

A brick is a pluggable contribution to the tangent system of a Model. The
model owns the bookkeeping (declared variables, terms, cached buffers); the
brick only computes.

Key Concepts for Students:
--------------------------
1. **Declared properties**: fixed at construction and never changed.
   - is_linear: the terms do not depend on the unknowns. A linear brick is
     recomputed only when one of its variables or data changed.
   - is_symmetric / is_coercive: informational, aggregated by the model to
     tell solvers which linear solver is legal.
   - is_real / is_complex: numeric fields the brick can assemble in.

2. **Compute callback**: the model calls ``asm_real_tangent_terms`` (or the
   complex variant) with one zeroed buffer per declared term:

       matl[j] : scipy.sparse.lil_matrix (n_var1 x n_var2) for matrix terms
       vecl[j] : numpy.ndarray (n_var1,)                  for vector terms

   The brick fills the buffers in place, or replaces a list entry with an
   object of the same shape. It must not modify the model.

3. **Failure**: a brick that cannot produce its terms raises
   BrickComputationError. The error propagates out of ``Model.assembly()``.
"""

import logging
from abc import ABC
from typing import List, Optional, Sequence

from FemCore.Errors import BrickComputationError
from FemCore.Objects.Registry.StoredObjects import StoredObject

logger = logging.getLogger(__name__)


class BaseBrick(ABC, StoredObject):
    """
    Abstract base class of all bricks.

    Subclasses override ``asm_real_tangent_terms`` and/or
    ``asm_complex_tangent_terms`` according to the fields they declare.

    Parameters
    ----------
    name : str
        Label used in listings.
    is_linear, is_symmetric, is_coercive : bool
        Declared properties of the contribution.
    is_real, is_complex : bool
        Supported numeric fields. At least one must be True.
    """

    def __init__(self, name: str, is_linear: bool = True, is_symmetric: bool = False,
                 is_coercive: bool = False, is_real: bool = True, is_complex: bool = False):
        if not (is_real or is_complex):
            raise ValueError(f"Brick '{name}' must support the real or the complex field")
        self._name = name
        self._is_linear = bool(is_linear)
        self._is_symmetric = bool(is_symmetric)
        self._is_coercive = bool(is_coercive)
        self._is_real = bool(is_real)
        self._is_complex = bool(is_complex)

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_linear(self) -> bool:
        return self._is_linear

    @property
    def is_symmetric(self) -> bool:
        return self._is_symmetric

    @property
    def is_coercive(self) -> bool:
        return self._is_coercive

    @property
    def is_real(self) -> bool:
        return self._is_real

    @property
    def is_complex(self) -> bool:
        return self._is_complex

    def supports(self, complex_field: bool) -> bool:
        return self._is_complex if complex_field else self._is_real

    # ==========================================================================
    # Compute callbacks
    # ==========================================================================

    def asm_real_tangent_terms(self, md, ib: int, varnames: Sequence[str],
                               datanames: Sequence[str], matl: List, vecl: List,
                               mims: Sequence, region: Optional[int]):
        """
        Fill the real term buffers.

        Parameters
        ----------
        md : Model
            Model the brick belongs to (read only).
        ib : int
            Index of the brick in the model.
        varnames, datanames : sequence of str
            Names the brick was added with.
        matl, vecl : list
            One buffer per declared term (entries of the other kind are None).
        mims : sequence of MeshIm
            Integration methods the brick was added with.
        region : int or None
            Target region (None for the whole mesh).
        """
        raise BrickComputationError(f"Brick '{self._name}' has no real version")

    def asm_complex_tangent_terms(self, md, ib: int, varnames: Sequence[str],
                                  datanames: Sequence[str], matl: List, vecl: List,
                                  mims: Sequence, region: Optional[int]):
        """Fill the complex term buffers (same contract as the real version)."""
        raise BrickComputationError(f"Brick '{self._name}' has no complex version")

    def __repr__(self):
        return f"{type(self).__name__}({self._name!r})"
