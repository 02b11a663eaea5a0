"""
Model - Variables, Bricks and Global Assembly
=============================================

The Model holds named variables and data, an ordered list of bricks and the
assembled global tangent system (matrix + right-hand side), in either the
real or the complex field.

Key Concepts for Students:
--------------------------
1. **Variables vs data**: variables are unknowns and each owns a contiguous
   slice (interval) of the global system. Data are read by bricks only.

       variables: u (6 dofs), lambda (2 dofs)
       global system: [ u: 0..5 | lambda: 6..7 ]

2. **Lazy size resolution**: declaring a variable, or a change of the
   mesh/finite element space it is bound to, only marks the model as dirty.
   Sizes and intervals are resolved again before the next access to values,
   intervals or the global system.

3. **Version counters**: the model keeps a monotonic counter. Every write to
   a variable stamps it with a new value; every brick computation stamps the
   brick. A linear brick is recomputed only when one of its variables or
   data carries a newer stamp than the brick (or after a size resolution).
   Nonlinear bricks are recomputed at every assembly.

4. **Scatter**: a matrix term on (v1, v2) is added at rows I(v1), columns
   I(v2). A symmetric term with v1 != v2 also adds its transpose at
   (I(v2), I(v1)). A matrix term whose column name is a data contributes
   -M @ data to the right-hand side of v1.

Typical Usage:
    >>> md = Model()
    >>> md.add_fixed_size_variable("x", 3)
    >>> md.add_explicit_matrix("x", "x", np.eye(3))
    >>> md.add_explicit_rhs("x", [1.0, 2.0, 3.0])
    >>> md.assembly()
    >>> K, F = md.real_tangent_matrix(), md.real_rhs()
"""

import logging
import warnings
from typing import Dict, List, Optional, Sequence, Set

import numpy as np
import scipy.sparse as sp

from FemCore.Config import ModelConstants
from FemCore.Errors import (
    BrickComputationError,
    DuplicateRegistrationError,
    UnknownReferenceError,
    WrongNumericFieldError,
)
from FemCore.Models.BaseBrick import BaseBrick
from FemCore.Models.Bricks import (
    ConstraintWithMultipliersBrick,
    ConstraintWithPenalizationBrick,
    ExplicitMatrixBrick,
    ExplicitRhsBrick,
)
from FemCore.Models.MultiplierFilter import MultiplierFilter, RegionDofFilter
from FemCore.Models.Terms import TermDescription
from FemCore.Models.VarDescription import VarDescription, VarFilter
from FemCore.Objects.Context import ContextDependencies
from FemCore.Objects.FEM.MeshFem import PartialMeshFem
from FemCore.Objects.Registry.StoredObjects import (
    Permanence,
    SerialKey,
    StoredObject,
    StoredObjectRegistry,
)

logger = logging.getLogger(__name__)


class BrickDescription:
    """
    Model-side bookkeeping of a brick.

    Attributes
    ----------
    brick : BaseBrick
        The implementation.
    varnames, datanames : list of str
        Names the brick reads.
    terms : list of TermDescription
        Declared terms.
    mims : list
        Integration methods passed to the brick.
    region : int or None
        Target region.
    v_num : int
        Model counter value of the last computation.
    terms_to_be_computed : bool
        Forces the next computation (new brick, sizes resolved, private data changed).
    rmatlist, rveclist, cmatlist, cveclist : list
        Cached term buffers of the last real/complex computation.
    """

    def __init__(self, brick: BaseBrick, varnames: List[str], datanames: List[str],
                 terms: List[TermDescription], mims: list, region: Optional[int]):
        self.brick = brick
        self.varnames = varnames
        self.datanames = datanames
        self.terms = terms
        self.mims = mims
        self.region = region
        self.v_num = 0
        self.terms_to_be_computed = True
        self.rmatlist: list = []
        self.rveclist: list = []
        self.cmatlist: list = []
        self.cveclist: list = []


class Model(StoredObject, ContextDependencies):
    """
    Container of variables, data and bricks, with lazy global assembly.

    Parameters
    ----------
    complex_version : bool
        Use the complex field for values and for the global system.
    registry : StoredObjectRegistry, optional
        If given, the model stores itself in it and records a dependency on
        every stored MeshFem a variable is bound to.
    multiplier_filter : MultiplierFilter, optional
        Policy filtering the dofs of multiplier variables (RegionDofFilter by default).
    permanence : Permanence
        Permanence of the model in ``registry``.
    """

    def __init__(self, complex_version: bool = False,
                 registry: Optional[StoredObjectRegistry] = None,
                 multiplier_filter: Optional[MultiplierFilter] = None,
                 permanence: Permanence = Permanence.STANDARD):
        ContextDependencies.__init__(self)
        self._complex = bool(complex_version)
        self.variables: Dict[str, VarDescription] = {}
        self.bricks: List[Optional[BrickDescription]] = []
        self.valid_bricks: Set[int] = set()
        self.active_bricks: Set[int] = set()
        self.multiplier_filter = multiplier_filter or RegionDofFilter()

        self._act_size_to_be_done = False
        self._counter = 0
        self._nb_dof = 0
        self._reset_system(0)

        self.registry = registry
        if registry is not None:
            registry.add(SerialKey("model"), self, permanence)

    # ==========================================================================
    # Internal state helpers
    # ==========================================================================

    def _act_counter(self) -> int:
        self._counter += 1
        return self._counter

    def _dtype(self):
        return complex if self._complex else float

    def _reset_system(self, n: int):
        if self._complex:
            self._cTM = sp.csr_matrix((n, n), dtype=complex)
            self._crhs = np.zeros(n, dtype=complex)
            self._rTM = sp.csr_matrix((0, 0))
            self._rrhs = np.zeros(0)
        else:
            self._rTM = sp.csr_matrix((n, n))
            self._rrhs = np.zeros(n)
            self._cTM = sp.csr_matrix((0, 0), dtype=complex)
            self._crhs = np.zeros(0, dtype=complex)

    def update_from_context(self):
        self._act_size_to_be_done = True

    def context_check(self):
        """Resolve sizes if something changed since the last resolution."""
        if self._act_size_to_be_done:
            self.actualize_sizes()

    def _var(self, name: str) -> VarDescription:
        if name not in self.variables:
            raise UnknownReferenceError(f"Undefined variable or data '{name}'")
        return self.variables[name]

    def _check_history(self, history: int):
        if not 1 <= history <= ModelConstants.MAX_HISTORY:
            raise ValueError(
                f"History must be between 1 and {ModelConstants.MAX_HISTORY}, got {history}")

    def _bind_mesh_fem(self, mf):
        self.add_dependency(mf)
        reg = self.registry
        if reg is not None and reg.exists(self) and reg.exists(mf):
            reg.add_dependency(self, mf)

    def _unbind_mesh_fem(self, mf):
        if any(var.mf is mf for var in self.variables.values()):
            return
        self.sup_dependency(mf)
        reg = self.registry
        if reg is not None and reg.exists(self) and reg.exists(mf):
            reg.del_dependency(self, mf)

    def _add_var(self, name: str, desc: VarDescription):
        if name in self.variables:
            raise DuplicateRegistrationError(f"Variable '{name}' already exists")
        self.variables[name] = desc
        desc.set_size(desc.expected_size())
        desc.v_num = self._act_counter()
        if desc.is_fem_dofs:
            self._bind_mesh_fem(desc.mf)
        self._act_size_to_be_done = True
        logger.debug("Declared %s '%s' (%s, %d copies)", desc.kind(), name,
                     desc.description(), desc.n_iter)

    # ==========================================================================
    # Declaration of variables and data
    # ==========================================================================

    def add_fixed_size_variable(self, name: str, size: int, history: int = 1):
        """Declare an unknown of fixed size."""
        self._check_history(history)
        if size < 0:
            raise ValueError(f"Size must be non-negative, got {size}")
        self._add_var(name, VarDescription(True, self._complex, size=size, n_iter=history))

    def add_fixed_size_data(self, name: str, size: int, history: int = 1):
        self._check_history(history)
        if size < 0:
            raise ValueError(f"Size must be non-negative, got {size}")
        self._add_var(name, VarDescription(False, self._complex, size=size, n_iter=history))

    def add_initialized_fixed_size_data(self, name: str, values):
        """Declare a fixed size data and set its value."""
        values = np.asarray(values).ravel()
        if np.iscomplexobj(values) and not self._complex:
            raise WrongNumericFieldError("Complex values given to a real model")
        self.add_fixed_size_data(name, values.size)
        self.variables[name].values[0][:] = values

    def add_fem_variable(self, name: str, mf, history: int = 1):
        """Declare an unknown with one value per dof of ``mf``."""
        self._check_history(history)
        self._add_var(name, VarDescription(True, self._complex, mf=mf, n_iter=history))

    def add_filtered_fem_variable(self, name: str, mf, region: int, history: int = 1):
        """Declare an unknown restricted to the dofs of ``mf`` on ``region``."""
        self._check_history(history)
        self._add_var(name, VarDescription(True, self._complex, mf=mf, n_iter=history,
                                           filter=VarFilter.REGION, filter_region=region))

    def add_fem_data(self, name: str, mf, qdim: int = 1, history: int = 1):
        """Declare a data with ``qdim`` values per dof of ``mf``."""
        self._check_history(history)
        if qdim < 1:
            raise ValueError(f"qdim must be >= 1, got {qdim}")
        self._add_var(name, VarDescription(False, self._complex, mf=mf, qdim=qdim, n_iter=history))

    def add_initialized_fem_data(self, name: str, mf, values):
        values = np.asarray(values).ravel()
        if np.iscomplexobj(values) and not self._complex:
            raise WrongNumericFieldError("Complex values given to a real model")
        n = mf.nb_dof()
        if n == 0 or values.size % n != 0:
            raise ValueError(f"{values.size} values do not fit a space of {n} dofs")
        self.add_fem_data(name, mf, qdim=values.size // n)
        self.variables[name].values[0][:] = values

    def add_mult_on_region(self, name: str, mf, mim, primal_name: str,
                           region: Optional[int] = None, history: int = 1):
        """
        Declare a Lagrange multiplier variable.

        The multiplier dofs are the dofs of ``mf`` on ``region`` (all dofs if
        None), filtered by the model's multiplier filter against the space of
        ``primal_name`` when sizes are resolved.

        Parameters
        ----------
        name : str
            Name of the multiplier.
        mf : MeshFem
            Multiplier space.
        mim : MeshIm or None
            Integration method providing the coupling matrix (range basis filter).
        primal_name : str
            Fem variable the multiplier acts on.
        region : int, optional
            Region of the constraint.
        history : int
            Number of stored versions.
        """
        self._check_history(history)
        primal = self._var(primal_name)
        if not primal.is_fem_dofs:
            raise ValueError(f"Primal variable '{primal_name}' is not bound to a finite element space")
        self._add_var(name, VarDescription(True, self._complex, mf=mf, n_iter=history,
                                           filter=VarFilter.MULTIPLIER, filter_region=region,
                                           primal_name=primal_name, mim=mim))

    def add_multiplier(self, name: str, mf, primal_name: str, mim=None,
                       region: Optional[int] = None, history: int = 1):
        self.add_mult_on_region(name, mf, mim, primal_name, region, history)

    def delete_variable(self, name: str):
        """Remove a variable or data not used by any brick or multiplier."""
        var = self._var(name)
        for ib in sorted(self.valid_bricks):
            desc = self.bricks[ib]
            if name in desc.varnames or name in desc.datanames:
                raise ValueError(f"Cannot delete '{name}': used by brick {ib}")
        for other_name, other in self.variables.items():
            if other.primal_name == name:
                raise ValueError(f"Cannot delete '{name}': primal variable of '{other_name}'")
        del self.variables[name]
        if var.is_fem_dofs:
            self._unbind_mesh_fem(var.mf)
        self._act_size_to_be_done = True

    def resize_fixed_size_variable(self, name: str, size: int):
        var = self._var(name)
        if var.is_fem_dofs:
            raise ValueError(f"'{name}' is bound to a finite element space and cannot be resized")
        if size < 0:
            raise ValueError(f"Size must be non-negative, got {size}")
        var.fixed_size = int(size)
        var.set_size(var.fixed_size)
        var.v_num = self._act_counter()
        self._act_size_to_be_done = True

    # ==========================================================================
    # Queries
    # ==========================================================================

    def is_complex(self) -> bool:
        return self._complex

    def is_linear(self) -> bool:
        return all(self.bricks[ib].brick.is_linear for ib in self.active_bricks)

    def is_symmetric(self) -> bool:
        return all(self.bricks[ib].brick.is_symmetric for ib in self.active_bricks)

    def is_coercive(self) -> bool:
        return all(self.bricks[ib].brick.is_coercive for ib in self.active_bricks)

    def variable_exists(self, name: str) -> bool:
        return name in self.variables

    def is_true_data(self, name: str) -> bool:
        return not self._var(name).is_variable

    def nb_dof(self) -> int:
        """Size of the global system."""
        self.context_check()
        return self._nb_dof

    def interval_of_variable(self, name: str) -> slice:
        """Slice of the global system owned by a variable."""
        var = self._var(name)
        if not var.is_variable:
            raise ValueError(f"'{name}' is a data and has no interval in the global system")
        self.context_check()
        return var.I

    def mesh_fem_of_variable(self, name: str):
        var = self._var(name)
        if not var.is_fem_dofs:
            raise ValueError(f"'{name}' is not bound to a finite element space")
        return var.mf

    def pmesh_fem_of_variable(self, name: str):
        """Filtered view of the space of a variable (the space itself when unfiltered)."""
        var = self._var(name)
        if not var.is_fem_dofs:
            raise ValueError(f"'{name}' is not bound to a finite element space")
        self.context_check()
        return var.partial_mf if var.partial_mf is not None else var.mf

    def new_name(self, prefix: str) -> str:
        """Return ``prefix`` or ``prefix_<k>``, whichever is free first."""
        if prefix not in self.variables:
            return prefix
        k = 2
        while f"{prefix}_{k}" in self.variables:
            k += 1
        return f"{prefix}_{k}"

    # ==========================================================================
    # Size resolution
    # ==========================================================================

    def _filtered_mesh_fem(self, var: VarDescription) -> Optional[PartialMeshFem]:
        mf = var.mf
        if var.filter == VarFilter.REGION:
            return PartialMeshFem(mf, mf.dof_on_region(var.filter_region))
        if var.filter == VarFilter.MULTIPLIER:
            if var.filter_region is None:
                candidates = np.arange(mf.nb_dof())
            else:
                candidates = mf.dof_on_region(var.filter_region)
            mass = None
            if self.multiplier_filter.needs_mass_matrix():
                if var.mim is None:
                    raise ValueError("Multiplier filtering needs an integration method")
                primal = self._var(var.primal_name)
                mass = var.mim.coupling_matrix(mf, primal.mf, var.filter_region)
            return PartialMeshFem(mf, self.multiplier_filter.select(candidates, mass))
        return None

    def actualize_sizes(self):
        """
        Resolve the size of every variable/data and the intervals of the variables.

        Variables are laid out in declaration order. Every brick is marked for
        recomputation and the global system is reset to zero at its new size.
        """
        offset = 0
        for name, var in self.variables.items():
            if var.is_fem_dofs:
                var.partial_mf = self._filtered_mesh_fem(var)
            if var.set_size(var.expected_size()):
                var.v_num = self._act_counter()
            if var.is_variable:
                n = var.size()
                var.I = slice(offset, offset + n)
                offset += n
            else:
                var.I = None

        self._nb_dof = offset
        self._reset_system(offset)
        for ib in self.valid_bricks:
            self.bricks[ib].terms_to_be_computed = True
        self._act_size_to_be_done = False
        logger.debug("Resolved sizes: %d variables/data, %d dofs", len(self.variables), offset)

    # ==========================================================================
    # Variable values
    # ==========================================================================

    def _value(self, name: str, niter: int) -> np.ndarray:
        var = self._var(name)
        self.context_check()
        if not 0 <= niter < var.n_iter:
            raise ValueError(f"'{name}' stores {var.n_iter} version(s), version {niter} requested")
        return var.values[niter]

    @staticmethod
    def _read_only(values: np.ndarray) -> np.ndarray:
        view = values.view()
        view.flags.writeable = False
        return view

    def _check_field(self, complex_access: bool):
        if complex_access and not self._complex:
            raise WrongNumericFieldError("This model is real, use the real accessors")
        if not complex_access and self._complex:
            raise WrongNumericFieldError("This model is complex, use the complex accessors")

    def real_variable(self, name: str, niter: int = 0) -> np.ndarray:
        """Read-only view of version ``niter`` of a variable or data."""
        self._check_field(False)
        return self._read_only(self._value(name, niter))

    def complex_variable(self, name: str, niter: int = 0) -> np.ndarray:
        self._check_field(True)
        return self._read_only(self._value(name, niter))

    def set_real_variable(self, name: str, niter: int = 0) -> np.ndarray:
        """
        Writable reference to version ``niter`` of a variable or data.

        The variable is stamped as modified: bricks reading it are recomputed
        at the next assembly. Writes made after that assembly through an old
        reference are not detected, call this method again.
        """
        self._check_field(False)
        values = self._value(name, niter)
        self.variables[name].v_num = self._act_counter()
        return values

    def set_complex_variable(self, name: str, niter: int = 0) -> np.ndarray:
        self._check_field(True)
        values = self._value(name, niter)
        self.variables[name].v_num = self._act_counter()
        return values

    def to_variables(self, V):
        """Copy a global vector into the current version of every variable."""
        V = np.asarray(V).ravel()
        if np.iscomplexobj(V) and not self._complex:
            raise WrongNumericFieldError("Complex vector given to a real model")
        self.context_check()
        if V.size != self._nb_dof:
            raise ValueError(f"Vector of size {V.size}, the model has {self._nb_dof} dofs")
        for var in self.variables.values():
            if var.is_variable:
                var.values[0][:] = V[var.I]
                var.v_num = self._act_counter()

    def from_variables(self) -> np.ndarray:
        """Gather the current version of every variable into a global vector."""
        self.context_check()
        V = np.zeros(self._nb_dof, dtype=self._dtype())
        for var in self.variables.values():
            if var.is_variable:
                V[var.I] = var.values[0]
        return V

    def shift_variables_for_time_integration(self):
        """Rotate stored versions: version k + 1 receives version k."""
        for var in self.variables.values():
            if var.n_iter > 1:
                var.values = [var.values[0]] + [v.copy() for v in var.values[:-1]]
                var.v_num = self._act_counter()

    # ==========================================================================
    # Bricks
    # ==========================================================================

    def _brick_desc(self, ib: int) -> BrickDescription:
        if ib not in self.valid_bricks:
            raise UnknownReferenceError(f"Inexistent brick {ib}")
        return self.bricks[ib]

    def add_brick(self, brick: BaseBrick, varnames: Sequence[str], datanames: Sequence[str],
                  terms: Sequence[TermDescription], mims: Sequence = (),
                  region: Optional[int] = None) -> int:
        """
        Append a brick.

        Parameters
        ----------
        brick : BaseBrick
            The implementation.
        varnames : sequence of str
            Variables (or data) the terms refer to.
        datanames : sequence of str
            Additional data read by the brick.
        terms : sequence of TermDescription
            Declared terms. Their names must appear in ``varnames``.
        mims : sequence, optional
            Integration methods passed to the brick.
        region : int, optional
            Target region (None for the whole mesh).

        Returns
        -------
        int
            Stable index of the brick.
        """
        if not isinstance(brick, BaseBrick):
            raise TypeError(f"Expected a BaseBrick, got {type(brick).__name__}")
        varnames, datanames = list(varnames), list(datanames)
        for name in varnames + datanames:
            self._var(name)
        for term in terms:
            for name in term.names():
                if name not in varnames:
                    raise ValueError(f"Term {term!r} refers to '{name}' which is not in {varnames}")

        ib = len(self.bricks)
        self.bricks.append(BrickDescription(brick, varnames, datanames, list(terms),
                                            list(mims), region))
        self.valid_bricks.add(ib)
        self.active_bricks.add(ib)
        logger.debug("Added brick %d (%s) on %s", ib, brick.name, varnames)
        return ib

    def delete_brick(self, ib: int):
        """Remove a brick. Its index is never reused."""
        self._brick_desc(ib)
        self.bricks[ib] = None
        self.valid_bricks.discard(ib)
        self.active_bricks.discard(ib)

    def disable_brick(self, ib: int):
        self._brick_desc(ib)
        if ib not in self.active_bricks:
            warnings.warn(f"Brick {ib} is already disabled")
        self.active_bricks.discard(ib)

    def enable_brick(self, ib: int):
        self._brick_desc(ib)
        if ib in self.active_bricks:
            warnings.warn(f"Brick {ib} is already enabled")
        self.active_bricks.add(ib)

    def brick(self, ib: int) -> BaseBrick:
        return self._brick_desc(ib).brick

    def brick_index(self) -> List[int]:
        return sorted(self.valid_bricks)

    def nb_bricks(self) -> int:
        """Number of valid (not deleted) bricks."""
        return len(self.valid_bricks)

    def varname_of_brick(self, ib: int) -> List[str]:
        return list(self._brick_desc(ib).varnames)

    def dataname_of_brick(self, ib: int) -> List[str]:
        return list(self._brick_desc(ib).datanames)

    def add_explicit_matrix(self, varname1: str, varname2: str, B,
                            symmetric: bool = False, coercive: bool = False) -> int:
        """Add the constant block B on (varname1, varname2)."""
        varnames = [varname1] if varname1 == varname2 else [varname1, varname2]
        terms = [TermDescription.matrix(varname1, varname2, symmetric)]
        return self.add_brick(ExplicitMatrixBrick(B, symmetric, coercive), varnames, [], terms)

    def add_explicit_rhs(self, varname: str, L) -> int:
        return self.add_brick(ExplicitRhsBrick(L), [varname], [], [TermDescription.vector(varname)])

    def add_constraint_with_multipliers(self, varname: str, multname: str, B, L) -> int:
        """Impose B u = L with the multiplier ``multname``."""
        terms = [TermDescription.matrix(multname, varname, symmetric=True),
                 TermDescription.vector(multname)]
        return self.add_brick(ConstraintWithMultipliersBrick(B, L), [varname, multname], [], terms)

    def add_constraint_with_penalization(self, varname: str, coeff: Optional[float], B, L) -> int:
        """Impose B u = L by penalization with coefficient ``coeff``."""
        terms = [TermDescription.matrix(varname, varname, symmetric=True),
                 TermDescription.vector(varname)]
        return self.add_brick(ConstraintWithPenalizationBrick(B, L, coeff), [varname], [], terms)

    def set_private_matrix(self, ib: int, B):
        desc = self._brick_desc(ib)
        if not hasattr(desc.brick, "set_matrix"):
            raise ValueError(f"Brick {ib} ({desc.brick.name}) has no private matrix")
        desc.brick.set_matrix(B)
        desc.terms_to_be_computed = True

    def set_private_rhs(self, ib: int, L):
        desc = self._brick_desc(ib)
        if not hasattr(desc.brick, "set_rhs"):
            raise ValueError(f"Brick {ib} ({desc.brick.name}) has no private rhs")
        desc.brick.set_rhs(L)
        desc.terms_to_be_computed = True

    def change_penalization_coeff(self, ib: int, coeff: float):
        desc = self._brick_desc(ib)
        if not isinstance(desc.brick, ConstraintWithPenalizationBrick):
            raise ValueError(f"Brick {ib} ({desc.brick.name}) is not a penalized constraint")
        desc.brick.set_coeff(coeff)
        desc.terms_to_be_computed = True

    # ==========================================================================
    # Assembly
    # ==========================================================================

    def _is_stale(self, desc: BrickDescription) -> bool:
        if desc.terms_to_be_computed or not desc.brick.is_linear:
            return True
        return any(self.variables[name].v_num > desc.v_num
                   for name in desc.varnames + desc.datanames)

    def _update_brick(self, ib: int, desc: BrickDescription):
        """Recompute the terms of a brick if it is outdated."""
        if not desc.brick.supports(self._complex):
            field = "complex" if self._complex else "real"
            raise BrickComputationError(f"Brick {ib} ({desc.brick.name}) has no {field} version")
        if not self._is_stale(desc):
            logger.debug("Brick %d (%s) is up to date", ib, desc.brick.name)
            return

        dtype = self._dtype()
        matl, vecl, shapes = [], [], []
        for term in desc.terms:
            n1 = self.variables[term.var1].size()
            if term.is_matrix_term:
                n2 = self.variables[term.var2].size()
                matl.append(sp.lil_matrix((n1, n2), dtype=dtype))
                vecl.append(None)
                shapes.append((n1, n2))
            else:
                matl.append(None)
                vecl.append(np.zeros(n1, dtype=dtype))
                shapes.append((n1,))

        asm = desc.brick.asm_complex_tangent_terms if self._complex else desc.brick.asm_real_tangent_terms
        asm(self, ib, list(desc.varnames), list(desc.datanames), matl, vecl,
            list(desc.mims), desc.region)

        for j, term in enumerate(desc.terms):
            if term.is_matrix_term:
                M = matl[j]
                if M is None or M.shape != shapes[j]:
                    raise BrickComputationError(
                        f"Brick {ib} ({desc.brick.name}) returned a matrix of shape "
                        f"{getattr(M, 'shape', None)} for {term!r}, expected {shapes[j]}")
                matl[j] = M.tocsr() if sp.issparse(M) else sp.csr_matrix(np.asarray(M))
            else:
                V = np.asarray(vecl[j]) if vecl[j] is not None else None
                if V is None or V.shape != shapes[j]:
                    raise BrickComputationError(
                        f"Brick {ib} ({desc.brick.name}) returned a vector of shape "
                        f"{getattr(V, 'shape', None)} for {term!r}, expected {shapes[j]}")
                vecl[j] = V

        if self._complex:
            desc.cmatlist, desc.cveclist = matl, vecl
        else:
            desc.rmatlist, desc.rveclist = matl, vecl
        desc.v_num = self._act_counter()
        desc.terms_to_be_computed = False
        logger.debug("Recomputed brick %d (%s)", ib, desc.brick.name)

    def assembly(self, version: str = "all"):
        """
        Assemble the global tangent system.

        Parameters
        ----------
        version : str
            'all', 'matrix' (tangent matrix only) or 'rhs' (right-hand side only).

        Raises
        ------
        BrickComputationError
            If a brick cannot produce its terms in the model's field.
        """
        if version not in ("all", "matrix", "rhs"):
            raise ValueError(f"Unknown assembly version '{version}'")
        self.context_check()

        n = self._nb_dof
        dtype = self._dtype()
        rows, cols, data = [], [], []
        rhs = np.zeros(n, dtype=dtype)

        for ib in sorted(self.active_bricks):
            desc = self.bricks[ib]
            self._update_brick(ib, desc)
            matl = desc.cmatlist if self._complex else desc.rmatlist
            vecl = desc.cveclist if self._complex else desc.rveclist

            for j, term in enumerate(desc.terms):
                v1 = self.variables[term.var1]
                if not term.is_matrix_term:
                    if v1.is_variable:
                        rhs[v1.I] += vecl[j]
                    continue
                v2 = self.variables[term.var2]
                M = matl[j].tocoo()
                if v1.is_variable and v2.is_variable:
                    rows.append(M.row + v1.I.start)
                    cols.append(M.col + v2.I.start)
                    data.append(M.data)
                    if term.is_symmetric and term.var1 != term.var2:
                        rows.append(M.col + v2.I.start)
                        cols.append(M.row + v1.I.start)
                        data.append(M.data)
                elif v1.is_variable:
                    rhs[v1.I] -= matl[j] @ v2.values[0]

        if rows:
            TM = sp.coo_matrix((np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))),
                               shape=(n, n), dtype=dtype).tocsr()
        else:
            TM = sp.csr_matrix((n, n), dtype=dtype)

        if self._complex:
            if version in ("all", "matrix"):
                self._cTM = TM
            if version in ("all", "rhs"):
                self._crhs = rhs
        else:
            if version in ("all", "matrix"):
                self._rTM = TM
            if version in ("all", "rhs"):
                self._rrhs = rhs
        logger.debug("Assembled %d bricks into a system of %d dofs", len(self.active_bricks), n)

    def real_tangent_matrix(self) -> sp.csr_matrix:
        self._check_field(False)
        self.context_check()
        return self._rTM

    def complex_tangent_matrix(self) -> sp.csr_matrix:
        self._check_field(True)
        self.context_check()
        return self._cTM

    def real_rhs(self) -> np.ndarray:
        self._check_field(False)
        self.context_check()
        return self._rrhs

    def complex_rhs(self) -> np.ndarray:
        self._check_field(True)
        self.context_check()
        return self._crhs

    # ==========================================================================
    # Reset & listings
    # ==========================================================================

    def clear(self):
        """Drop every variable, data and brick, and empty the global system."""
        fems = []
        for var in self.variables.values():
            if var.is_fem_dofs and not any(mf is var.mf for mf in fems):
                fems.append(var.mf)
        self.variables = {}
        for mf in fems:
            self._unbind_mesh_fem(mf)
        self.bricks = []
        self.valid_bricks = set()
        self.active_bricks = set()
        self._nb_dof = 0
        self._reset_system(0)
        self._act_size_to_be_done = False

    def listvar(self) -> str:
        """Human-readable table of the variables and data."""
        self.context_check()
        lines = []
        for name, var in self.variables.items():
            copies = f"{var.n_iter} cop{'y' if var.n_iter == 1 else 'ies'}"
            lines.append(f"{name:<20} {var.kind():<9} {var.size():>8} dofs  "
                         f"{var.description()}, {copies}")
        return "\n".join(lines)

    def listbricks(self) -> str:
        """Human-readable list of the bricks."""
        lines = []
        for ib in sorted(self.valid_bricks):
            desc = self.bricks[ib]
            state = "" if ib in self.active_bricks else " (deactivated)"
            line = f"Brick {ib:>3}: {desc.brick.name}{state}\n    concerned variables: {', '.join(desc.varnames)}"
            if desc.datanames:
                line += f"\n    data: {', '.join(desc.datanames)}"
            lines.append(line)
        return "\n".join(lines)

    def __repr__(self):
        field = "complex" if self._complex else "real"
        return f"Model({field}, {len(self.variables)} variables/data, {self.nb_bricks()} bricks)"
