"""
Stored-Object Registry

Dependency-tracked registry of shared objects (meshes, finite element
spaces, models, bricks) keyed by semantic identity.
"""

from .StoredObjects import (
    Permanence,
    SerialKey,
    StoredObject,
    StoredObjectKey,
    StoredObjectRegistry,
    ValueKey,
)

__all__ = [
    'Permanence',
    'StoredObjectKey',
    'SerialKey',
    'ValueKey',
    'StoredObject',
    'StoredObjectRegistry',
]
