"""
Variable and Data Descriptors
=============================

Bookkeeping attached to each name declared in a Model.

A *variable* is solved for and owns a slice of the global system; a *data*
is supplied by the user and only read by bricks. Both store ``n_iter``
versions of their value (version 0 is the current step) and a version
counter ``v_num`` which bricks compare against to decide whether they are
outdated.
"""

from typing import List, Optional

import numpy as np

from FemCore.Objects.FEM.MeshFem import PartialMeshFem


class VarFilter:
    """Dof filters of fem-bound variables."""
    NONE = "none"          # all dofs of the space
    REGION = "region"      # dofs of the space lying on a region
    MULTIPLIER = "mult"    # independent dofs against a primal variable


class VarDescription:
    """
    Descriptor of a model variable or data.

    Attributes
    ----------
    is_variable : bool
        True for unknowns, False for data.
    is_complex : bool
        Storage field of the values.
    mf : MeshFem or None
        Bound finite element space (None for fixed size).
    filter : str
        One of the VarFilter constants.
    filter_region : int or None
        Region of the REGION and MULTIPLIER filters.
    primal_name : str or None
        Primal variable of a MULTIPLIER filter.
    mim : MeshIm or None
        Integration method of a MULTIPLIER filter.
    qdim : int
        Extra components of fem data on top of the space's own qdim.
    n_iter : int
        Number of stored versions.
    v_num : int
        Model counter value of the last change.
    I : slice or None
        Position in the global system (variables only, after size resolution).
    partial_mf : PartialMeshFem or None
        Filtered view built at size resolution.
    values : list of ndarray
        Stored versions, ``values[0]`` is the current one.
    """

    def __init__(self, is_variable: bool, is_complex: bool, mf=None, size: int = 0,
                 qdim: int = 1, n_iter: int = 1, filter: str = VarFilter.NONE,
                 filter_region: Optional[int] = None, primal_name: Optional[str] = None,
                 mim=None):
        self.is_variable = is_variable
        self.is_complex = is_complex
        self.mf = mf
        self.qdim = int(qdim)
        self.n_iter = int(n_iter)
        self.filter = filter
        self.filter_region = filter_region
        self.primal_name = primal_name
        self.mim = mim
        self.fixed_size = int(size)
        self.v_num = 0
        self.I: Optional[slice] = None
        self.partial_mf: Optional[PartialMeshFem] = None
        dtype = complex if is_complex else float
        self.values: List[np.ndarray] = [np.zeros(0, dtype=dtype) for _ in range(self.n_iter)]

    @property
    def is_fem_dofs(self) -> bool:
        return self.mf is not None

    def dtype(self):
        return complex if self.is_complex else float

    def size(self) -> int:
        """Current stored length."""
        return int(self.values[0].size)

    def expected_size(self) -> int:
        """Length implied by the bound space (or the fixed size)."""
        if self.partial_mf is not None:
            return self.partial_mf.nb_dof() * self.qdim
        if self.mf is not None:
            return self.mf.nb_dof() * self.qdim
        return self.fixed_size

    def set_size(self, n: int) -> bool:
        """Resize every stored version, keeping the leading values. Return True if resized."""
        if n == self.size():
            return False
        resized = []
        for old in self.values:
            new = np.zeros(n, dtype=self.dtype())
            m = min(n, old.size)
            new[:m] = old[:m]
            resized.append(new)
        self.values = resized
        return True

    def kind(self) -> str:
        return "variable" if self.is_variable else "data"

    def description(self) -> str:
        if self.mf is None:
            return "fixed size"
        if self.filter == VarFilter.REGION:
            return f"fem, filtered on region {self.filter_region}"
        if self.filter == VarFilter.MULTIPLIER:
            return f"multiplier of '{self.primal_name}'"
        return "fem"
