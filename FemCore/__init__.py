"""
FemCore - Model Assembly and Dependency Tracking for Finite Element Codes

A Python core for finite element programs combining:
- A graph-only mesh topology store (points, convexes, adjacency chains)
- A stored-object registry with dependency edges and permanence classes
- A model container holding variables, data and bricks, with lazy size
  resolution and version-gated reassembly of the global tangent system

Main Components
---------------
Objects : Registry, topology and finite element collaborators
    - StoredObjectRegistry: shared objects keyed by semantic identity
    - MeshStructure / Mesh: convex-to-point adjacency, regions
    - MeshFem / PartialMeshFem / MeshIm: dof providers, integration handles

Models : Assembly framework
    - Model: variables, data, bricks, assembly()
    - BaseBrick: the interface bricks implement
    - Explicit and constraint bricks

Configuration
-------------
    - ModelConstants: tunable constants
    - setup_logging: console/file logging of the 'FemCore' namespace

Quick Start
-----------
>>> import numpy as np
>>> from FemCore import Model
>>>
>>> md = Model()
>>> md.add_fixed_size_variable("x", 3)
>>> md.add_explicit_matrix("x", "x", np.eye(3), symmetric=True, coercive=True)
>>> md.add_explicit_rhs("x", [1.0, 2.0, 3.0])
>>> md.assembly()
>>> K = md.real_tangent_matrix()    # 3x3 identity
>>> F = md.real_rhs()               # [1, 2, 3]

Version: 1.0
"""

# Version information
__version__ = '1.0.0'
__author__ = 'FemCore Development Team'

from FemCore import Models
from FemCore import Objects
from FemCore.Config import ModelConstants, setup_logging
from FemCore.Errors import (
    BrickComputationError,
    DuplicateRegistrationError,
    FemCoreError,
    IllegalDeletionError,
    InconsistentStateError,
    UnknownReferenceError,
    WrongNumericFieldError,
)
from FemCore.Models import (
    BaseBrick,
    ConstraintWithMultipliersBrick,
    ConstraintWithPenalizationBrick,
    ExplicitMatrixBrick,
    ExplicitRhsBrick,
    Model,
    RangeBasisFilter,
    RegionDofFilter,
    TermDescription,
)
from FemCore.Objects.FEM import MeshFem, MeshIm, PartialMeshFem, classical_mesh_fem
from FemCore.Objects.Mesh import (
    ConvexStructure,
    Mesh,
    MeshRegion,
    MeshStructure,
    parallelepiped_structure,
    simplex_structure,
)
from FemCore.Objects.Registry import (
    Permanence,
    SerialKey,
    StoredObject,
    StoredObjectKey,
    StoredObjectRegistry,
    ValueKey,
)

# Define public API
__all__ = [
    # Version info
    '__version__',
    '__author__',

    # Configuration
    'ModelConstants',
    'setup_logging',

    # Registry
    'Permanence',
    'StoredObjectKey',
    'SerialKey',
    'ValueKey',
    'StoredObject',
    'StoredObjectRegistry',

    # Mesh topology
    'ConvexStructure',
    'simplex_structure',
    'parallelepiped_structure',
    'MeshStructure',
    'Mesh',
    'MeshRegion',

    # Finite element collaborators
    'MeshFem',
    'PartialMeshFem',
    'MeshIm',
    'classical_mesh_fem',

    # Models (primary API)
    'Model',
    'BaseBrick',
    'TermDescription',
    'ExplicitMatrixBrick',
    'ExplicitRhsBrick',
    'ConstraintWithMultipliersBrick',
    'ConstraintWithPenalizationBrick',
    'RegionDofFilter',
    'RangeBasisFilter',

    # Exceptions
    'FemCoreError',
    'DuplicateRegistrationError',
    'UnknownReferenceError',
    'WrongNumericFieldError',
    'IllegalDeletionError',
    'InconsistentStateError',
    'BrickComputationError',

    # Subpackages
    'Objects',
    'Models',
]
