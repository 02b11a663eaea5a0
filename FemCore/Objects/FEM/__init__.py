"""
Finite Element Collaborators

Minimal finite element spaces and integration method handles, consumed by the
model through their dof counts and region filtering.

Classes
-------
MeshFem : Lagrange-type dof enumeration on a Mesh (qdim dofs per used point)
PartialMeshFem : MeshFem restricted to a subset of its dofs
MeshIm : Opaque integration method, optionally able to assemble a coupling matrix
classical_mesh_fem : search-or-create a stored MeshFem in a registry
"""

from .MeshFem import MeshFem, PartialMeshFem, classical_mesh_fem
from .MeshIm import MeshIm

__all__ = [
    'MeshFem',
    'PartialMeshFem',
    'classical_mesh_fem',
    'MeshIm',
]
