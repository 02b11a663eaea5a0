"""
FemCore Objects

Registry, mesh topology and finite element collaborators.

Subpackages
-----------
Registry : Stored-object registry with dependencies and permanence classes
Mesh : Convex templates, MeshStructure and Mesh with regions
FEM : MeshFem, PartialMeshFem and MeshIm

Modules
-------
Context : ContextDependencies, change propagation between mesh, spaces and models
"""

from FemCore.Objects import FEM
from FemCore.Objects import Mesh
from FemCore.Objects import Registry
from FemCore.Objects.Context import ContextDependencies

__all__ = [
    'Registry',
    'Mesh',
    'FEM',
    'ContextDependencies',
]
