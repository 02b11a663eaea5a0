"""
MeshIm - Integration Method Handle
==================================

Integration methods are supplied by the quadrature layer. The model only
passes them through to bricks, except for the range-basis multiplier filter
which asks the method for the coupling ("mass") matrix between a multiplier
space and a primal space.
"""

from typing import Callable, Optional

import scipy.sparse as sp

from FemCore.Objects.Context import ContextDependencies
from FemCore.Objects.Mesh.Mesh import Mesh
from FemCore.Objects.Registry.StoredObjects import StoredObject


class MeshIm(StoredObject, ContextDependencies):
    """
    Opaque integration method attached to a mesh.

    Parameters
    ----------
    mesh : Mesh
        Supporting mesh.
    order : int
        Nominal integration order (informational).
    coupling_assembler : callable, optional
        ``coupling_assembler(mf_mult, mf_primal, region) -> matrix`` of shape
        (mf_mult.nb_dof(), mf_primal.nb_dof()).
    """

    def __init__(self, mesh: Mesh, order: int = 2,
                 coupling_assembler: Optional[Callable] = None):
        ContextDependencies.__init__(self)
        self.mesh = mesh
        self.order = int(order)
        self.coupling_assembler = coupling_assembler
        self.add_dependency(mesh)

    def linked_mesh(self) -> Mesh:
        return self.mesh

    def has_coupling_assembler(self) -> bool:
        return self.coupling_assembler is not None

    def coupling_matrix(self, mf_mult, mf_primal, region=None) -> sp.csr_matrix:
        """Assemble the multiplier/primal coupling matrix."""
        if self.coupling_assembler is None:
            raise ValueError("This integration method has no coupling assembler")
        B = self.coupling_assembler(mf_mult, mf_primal, region)
        B = sp.csr_matrix(B) if not sp.issparse(B) else B.tocsr()
        expected = (mf_mult.nb_dof(), mf_primal.nb_dof())
        if B.shape != expected:
            raise ValueError(f"Coupling matrix has shape {B.shape}, expected {expected}")
        return B

    def __repr__(self):
        return f"MeshIm(order={self.order}, on {self.mesh!r})"
