"""
Shared fixtures for FemCore tests.

This module provides simple, reusable fixtures for testing.
"""
import numpy as np
import pytest

from FemCore.Models.Model import Model
from FemCore.Objects.FEM.MeshFem import MeshFem
from FemCore.Objects.Mesh.ConvexStructure import triangle_structure
from FemCore.Objects.Mesh.Mesh import Mesh
from FemCore.Objects.Mesh.MeshStructure import MeshStructure
from FemCore.Objects.Registry.StoredObjects import StoredObjectRegistry


# =============================================================================
# Registry Fixtures
# =============================================================================

@pytest.fixture
def registry():
    """Fresh, empty registry."""
    return StoredObjectRegistry()


# =============================================================================
# Mesh Fixtures
# =============================================================================

@pytest.fixture
def two_triangles():
    """
    Two triangles sharing the edge (1, 2):

        2 ----- 3
        | \\  t1 |
        |  \\    |
        | t0 \\  |
        0 ----- 1
    """
    ms = MeshStructure()
    t0 = ms.add_convex(triangle_structure(), [0, 1, 2])
    t1 = ms.add_convex(triangle_structure(), [1, 2, 3])
    return ms, t0, t1


@pytest.fixture
def two_triangle_mesh():
    """Same two triangles in a region-aware Mesh."""
    mesh = Mesh("two triangles")
    mesh.add_convex(triangle_structure(), [0, 1, 2])
    mesh.add_convex(triangle_structure(), [1, 2, 3])
    return mesh


@pytest.fixture
def scalar_mf(two_triangle_mesh):
    """Scalar MeshFem on the two triangles (4 dofs)."""
    return MeshFem(two_triangle_mesh, qdim=1)


# =============================================================================
# Model Fixtures
# =============================================================================

@pytest.fixture
def real_model():
    return Model()


@pytest.fixture
def complex_model():
    return Model(complex_version=True)


@pytest.fixture
def eye3():
    return np.eye(3)
