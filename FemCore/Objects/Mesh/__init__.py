"""
Mesh Topology Module

Convex templates, the graph-only topology store and the stored, region-aware
Mesh built on it.

Classes
-------
ConvexStructure : Immutable combinatorial template of a convex
    - simplex_structure(dim): point, segment, triangle, tetrahedron, ...
    - parallelepiped_structure(dim): segment, quadrilateral, hexahedron, ...

MeshStructure : Points, convexes and point-to-convex adjacency chains

Mesh : MeshStructure + regions + change notification

Usage
-----
>>> from FemCore.Objects.Mesh import Mesh, triangle_structure
>>> m = Mesh()
>>> t0 = m.add_convex(triangle_structure(), [0, 1, 2])
>>> t1 = m.add_convex(triangle_structure(), [1, 2, 3])
>>> m.neighbour_of_convex(t0, 0) == t1
True
"""

from .ConvexStructure import (
    ConvexStructure,
    hexahedron_structure,
    parallelepiped_structure,
    point_structure,
    quadrilateral_structure,
    segment_structure,
    simplex_structure,
    tetrahedron_structure,
    triangle_structure,
)
from .Mesh import Mesh, MeshRegion
from .MeshStructure import ConvexToPoint, MeshStructure

__all__ = [
    # Templates
    'ConvexStructure',
    'simplex_structure',
    'parallelepiped_structure',
    'point_structure',
    'segment_structure',
    'triangle_structure',
    'tetrahedron_structure',
    'quadrilateral_structure',
    'hexahedron_structure',

    # Topology
    'MeshStructure',
    'ConvexToPoint',
    'Mesh',
    'MeshRegion',
]
