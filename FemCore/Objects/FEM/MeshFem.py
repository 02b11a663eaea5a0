"""
MeshFem - Degree of Freedom Provider
====================================

A MeshFem attaches degrees of freedom (dofs) to a Mesh. The model only needs
its dof count and the dofs lying on a region, so the element is a fixed
Lagrange-type one: each mesh point used by a convex carries one *basic*
dof, repeated ``qdim`` times for vector fields.

Dof numbering:
    basic dofs are numbered in the order points are met when walking the
    convexes by increasing ID, then local point order;
    dof = basic_dof * qdim + component.

The numbering is computed lazily and thrown away whenever the mesh changes
(``update_from_context``).
"""

import logging
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import scipy.sparse as sp

from FemCore.Objects.Context import ContextDependencies
from FemCore.Objects.Mesh.Mesh import Mesh, MeshRegion
from FemCore.Objects.Registry.StoredObjects import (
    Permanence,
    StoredObject,
    StoredObjectRegistry,
    ValueKey,
)

logger = logging.getLogger(__name__)


class MeshFem(StoredObject, ContextDependencies):
    """
    Lagrange-type finite element space on a mesh.

    Parameters
    ----------
    mesh : Mesh
        Supporting mesh. The MeshFem depends on it.
    qdim : int
        Number of components of the field (1 for scalar fields).
    """

    def __init__(self, mesh: Mesh, qdim: int = 1):
        ContextDependencies.__init__(self)
        if qdim < 1:
            raise ValueError(f"qdim must be >= 1, got {qdim}")
        self.mesh = mesh
        self._qdim = int(qdim)
        self._point_dof: Dict[int, int] = {}
        self._dof_enumerated = False
        self.add_dependency(mesh)

    def update_from_context(self):
        self._dof_enumerated = False

    def linked_mesh(self) -> Mesh:
        return self.mesh

    def get_qdim(self) -> int:
        return self._qdim

    def set_qdim(self, qdim: int):
        if qdim < 1:
            raise ValueError(f"qdim must be >= 1, got {qdim}")
        if qdim != self._qdim:
            self._qdim = int(qdim)
            self.touch()

    # ==========================================================================
    # Dof enumeration
    # ==========================================================================

    def _enumerate_dof(self):
        if self._dof_enumerated:
            return
        point_dof: Dict[int, int] = {}
        for ic in self.mesh.convex_index():
            for ip in self.mesh.ind_points_of_convex(ic):
                if ip not in point_dof:
                    point_dof[ip] = len(point_dof)
        self._point_dof = point_dof
        self._dof_enumerated = True
        logger.debug("Enumerated %d basic dofs on %r", len(point_dof), self.mesh)

    def nb_basic_dof(self) -> int:
        self._enumerate_dof()
        return len(self._point_dof)

    def nb_dof(self) -> int:
        return self.nb_basic_dof() * self._qdim

    def basic_dof_of_point(self, ip: int) -> int:
        self._enumerate_dof()
        if ip not in self._point_dof:
            raise IndexError(f"Point {ip} carries no dof")
        return self._point_dof[ip]

    def ind_basic_dof_of_element(self, ic: int) -> List[int]:
        self._enumerate_dof()
        return [self._point_dof[ip] for ip in self.mesh.ind_points_of_convex(ic)]

    def ind_dof_of_element(self, ic: int) -> List[int]:
        """Dofs of convex ``ic`` (all components of each basic dof)."""
        q = self._qdim
        return [b * q + k for b in self.ind_basic_dof_of_element(ic) for k in range(q)]

    def _ind_dof_of_face(self, ic: int, f: int) -> List[int]:
        self._enumerate_dof()
        q = self._qdim
        return [self._point_dof[ip] * q + k
                for ip in self.mesh.ind_points_of_face_of_convex(ic, f) for k in range(q)]

    def dof_on_region(self, region: Union[int, MeshRegion]) -> np.ndarray:
        """Sorted dofs of the convexes and faces of a region."""
        if not isinstance(region, MeshRegion):
            region = self.mesh.region(region)
        dofs = set()
        for ic, f in region:
            if f is None:
                dofs.update(self.ind_dof_of_element(ic))
            else:
                dofs.update(self._ind_dof_of_face(ic, f))
        return np.array(sorted(dofs), dtype=int)

    def __repr__(self):
        return f"MeshFem(qdim={self._qdim}, on {self.mesh!r})"


class PartialMeshFem:
    """
    View of a MeshFem restricted to a subset of its dofs.

    Dof ``k`` of the view is dof ``kept_dofs[k]`` of the underlying space.

    Parameters
    ----------
    mf : MeshFem
        Underlying space.
    kept_dofs : sequence of int
        Dofs of ``mf`` kept by the view (sorted on construction).
    """

    def __init__(self, mf: MeshFem, kept_dofs: Sequence[int]):
        self.mf = mf
        kept = np.unique(np.asarray(kept_dofs, dtype=int))
        n = mf.nb_dof()
        if kept.size and (kept[0] < 0 or kept[-1] >= n):
            raise IndexError(f"Kept dofs must lie in 0..{n - 1}")
        self._kept = kept
        self._nb_full = n

    def linked_mesh_fem(self) -> MeshFem:
        return self.mf

    def kept_dofs(self) -> np.ndarray:
        return self._kept.copy()

    def nb_dof(self) -> int:
        return int(self._kept.size)

    def reduction_matrix(self) -> sp.csr_matrix:
        """R (nb_dof x nb_dof of mf) with R @ u_full = u_kept."""
        m = self.nb_dof()
        return sp.csr_matrix((np.ones(m), (np.arange(m), self._kept)), shape=(m, self._nb_full))

    def extension_matrix(self) -> sp.csr_matrix:
        """E = R^T, extends kept values by zero on the dropped dofs."""
        return self.reduction_matrix().T.tocsr()

    def __repr__(self):
        return f"PartialMeshFem({self.nb_dof()} of {self._nb_full} dofs)"


def classical_mesh_fem(registry: StoredObjectRegistry, mesh: Mesh, qdim: int = 1,
                       permanence: Permanence = Permanence.AUTODELETE) -> MeshFem:
    """
    Return the MeshFem of ``mesh`` with ``qdim`` stored in ``registry``, building it if needed.

    The mesh must be stored in the registry. A new MeshFem is stored with a
    dependency on the mesh (deleting the mesh deletes it).
    """
    key = ValueKey("classical_mesh_fem", id(mesh), int(qdim))
    mf: Optional[MeshFem] = registry.search(key)
    if mf is None:
        mf = MeshFem(mesh, qdim)
        registry.add(key, mf, permanence, dependencies=[mesh])
    return mf
