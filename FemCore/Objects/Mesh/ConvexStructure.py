"""
ConvexStructure - Combinatorial Templates of Convexes
=====================================================

A convex structure describes a convex purely combinatorially: its number of
vertices, its dimension, and which local vertices make up each face. It is
immutable and shared by every convex of the same shape.

Local numbering conventions:

Simplex of dimension n (n + 1 points):
    Face i is the face opposite to vertex i.
    Triangle faces: 0 -> (1, 2), 1 -> (0, 2), 2 -> (0, 1)

Parallelepiped of dimension n (2**n points):
    Point k has reference coordinates given by the bits of k
    (bit d = coordinate along direction d), so a quadrilateral is
        2 --- 3
        |     |
        0 --- 1
    Face 2*d holds the points with coordinate d equal to 1,
    face 2*d + 1 the points with coordinate d equal to 0.
"""

import functools
import itertools
from typing import Optional, Tuple


class ConvexStructure:
    """
    Immutable combinatorial template of a convex.

    Attributes
    ----------
    name : str
        Human readable name ('triangle', 'quadrilateral', ...).
    dim : int
        Dimension of the convex.
    nb_points : int
        Number of vertices.
    faces : tuple of tuple of int
        Local vertex indices of each face.
    edges : tuple of (int, int)
        Local vertex index pairs joined by an edge.
    """

    def __init__(self, name: str, dim: int, nb_points: int,
                 faces: Tuple[Tuple[int, ...], ...],
                 edges: Tuple[Tuple[int, int], ...],
                 face_family: Optional[str] = None):
        self.name = name
        self.dim = int(dim)
        self.nb_points = int(nb_points)
        self.faces = tuple(tuple(int(i) for i in f) for f in faces)
        self.edges = tuple((int(a), int(b)) for a, b in edges)
        self._face_family = face_family

        for f in self.faces:
            if any(i < 0 or i >= self.nb_points for i in f):
                raise ValueError(f"Face {f} refers to a vertex outside 0..{self.nb_points - 1}")

    @property
    def nb_faces(self) -> int:
        return len(self.faces)

    def nb_points_of_face(self, f: int) -> int:
        return len(self.faces[f])

    def ind_points_of_face(self, f: int) -> Tuple[int, ...]:
        if not 0 <= f < len(self.faces):
            raise IndexError(f"Face {f} out of range for a {self.name} ({self.nb_faces} faces)")
        return self.faces[f]

    def face_structure(self, f: int) -> "ConvexStructure":
        """Structure of face ``f`` (a convex of dimension dim - 1)."""
        self.ind_points_of_face(f)
        if self._face_family == "simplex":
            return simplex_structure(self.dim - 1)
        if self._face_family == "parallelepiped":
            return parallelepiped_structure(self.dim - 1)
        raise ValueError(f"A {self.name} has no face structure")

    def __repr__(self):
        return f"ConvexStructure({self.name}, dim={self.dim}, nb_points={self.nb_points})"


# ==============================================================================
# Factories (shared instances)
# ==============================================================================

_SIMPLEX_NAMES = {0: "point", 1: "segment", 2: "triangle", 3: "tetrahedron"}
_PARALLELEPIPED_NAMES = {0: "point", 1: "segment", 2: "quadrilateral", 3: "hexahedron"}


@functools.lru_cache(maxsize=None)
def simplex_structure(dim: int) -> ConvexStructure:
    """Return the shared structure of the simplex of dimension ``dim``."""
    if dim < 0:
        raise ValueError(f"Dimension must be non-negative, got {dim}")
    if dim == 1:
        # Segment: same template in both families
        return parallelepiped_structure(1)
    n = dim + 1
    faces = tuple(tuple(j for j in range(n) if j != i) for i in range(n)) if dim > 0 else ()
    edges = tuple(itertools.combinations(range(n), 2))
    return ConvexStructure(_SIMPLEX_NAMES.get(dim, f"simplex{dim}"), dim, n, faces, edges,
                           face_family="simplex" if dim > 0 else None)


@functools.lru_cache(maxsize=None)
def parallelepiped_structure(dim: int) -> ConvexStructure:
    """Return the shared structure of the parallelepiped of dimension ``dim``."""
    if dim < 0:
        raise ValueError(f"Dimension must be non-negative, got {dim}")
    if dim == 0:
        return simplex_structure(0)
    n = 2 ** dim
    faces = []
    for d in range(dim):
        faces.append(tuple(k for k in range(n) if (k >> d) & 1))
        faces.append(tuple(k for k in range(n) if not (k >> d) & 1))
    edges = tuple((a, b) for a, b in itertools.combinations(range(n), 2)
                  if bin(a ^ b).count("1") == 1)
    return ConvexStructure(_PARALLELEPIPED_NAMES.get(dim, f"parallelepiped{dim}"), dim, n,
                           tuple(faces), edges,
                           face_family="parallelepiped" if dim > 0 else None)


def point_structure() -> ConvexStructure:
    return simplex_structure(0)


def segment_structure() -> ConvexStructure:
    return parallelepiped_structure(1)


def triangle_structure() -> ConvexStructure:
    return simplex_structure(2)


def tetrahedron_structure() -> ConvexStructure:
    return simplex_structure(3)


def quadrilateral_structure() -> ConvexStructure:
    return parallelepiped_structure(2)


def hexahedron_structure() -> ConvexStructure:
    return parallelepiped_structure(3)
