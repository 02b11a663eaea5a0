"""
Mesh - Topology Store with Regions
==================================

A Mesh is a MeshStructure that can be stored in a StoredObjectRegistry,
carries named regions and notifies its dependents (finite element spaces)
whenever its topology changes.

Regions
-------
A region is identified by a non-negative integer and holds convexes and/or
convex faces:

    region 1 = {convex 0 (whole), convex 3 face 2}

Regions follow the convexes they refer to: removing a convex removes it
from every region, and renumbering (``optimize``) renumbers the regions.
"""

import logging
from typing import Dict, Iterator, List, Optional, Set, Tuple

from FemCore.Objects.Context import ContextDependencies
from FemCore.Objects.Mesh.MeshStructure import MeshStructure
from FemCore.Objects.Registry.StoredObjects import StoredObject

logger = logging.getLogger(__name__)


class MeshRegion:
    """
    Set of convexes and convex faces of a mesh.

    Attributes
    ----------
    id : int
        Region number.
    _entries : dict
        {convex_id: set of face numbers}, face None standing for the whole convex.
    """

    def __init__(self, rid: int = -1):
        self.id = rid
        self._entries: Dict[int, Set[Optional[int]]] = {}

    def add(self, ic: int, f: Optional[int] = None):
        self._entries.setdefault(ic, set()).add(f)

    def sup(self, ic: int, f: Optional[int] = None):
        faces = self._entries.get(ic)
        if faces is None:
            return
        faces.discard(f)
        if not faces:
            del self._entries[ic]

    def sup_convex(self, ic: int):
        """Forget every entry (whole convex and faces) of convex ``ic``."""
        self._entries.pop(ic, None)

    def swap_convex(self, c1: int, c2: int):
        e1 = self._entries.pop(c1, None)
        e2 = self._entries.pop(c2, None)
        if e1 is not None:
            self._entries[c2] = e1
        if e2 is not None:
            self._entries[c1] = e2

    def clear(self):
        self._entries.clear()

    def is_in(self, ic: int, f: Optional[int] = None) -> bool:
        return f in self._entries.get(ic, ())

    def convexes(self) -> List[int]:
        """Sorted IDs of the convexes with at least one entry."""
        return sorted(self._entries)

    def whole_convexes(self) -> List[int]:
        return sorted(ic for ic, faces in self._entries.items() if None in faces)

    def faces(self) -> List[Tuple[int, int]]:
        """Sorted (convex, face) pairs."""
        return sorted((ic, f) for ic, faces in self._entries.items() for f in faces if f is not None)

    def is_empty(self) -> bool:
        return not self._entries

    def __iter__(self) -> Iterator[Tuple[int, Optional[int]]]:
        for ic in sorted(self._entries):
            faces = self._entries[ic]
            if None in faces:
                yield ic, None
            for f in sorted(f for f in faces if f is not None):
                yield ic, f

    def __len__(self):
        return sum(len(faces) for faces in self._entries.values())

    def __repr__(self):
        return f"MeshRegion(id={self.id}, {len(self)} entries)"


class Mesh(MeshStructure, StoredObject, ContextDependencies):
    """
    Stored, region-aware mesh topology.

    Every topological change calls ``touch()`` so that the finite element
    spaces built on the mesh invalidate their dof numbering.

    Parameters
    ----------
    name : str
        Label used in listings.
    """

    def __init__(self, name: str = "mesh"):
        MeshStructure.__init__(self)
        ContextDependencies.__init__(self)
        self.name = name
        self._regions: Dict[int, MeshRegion] = {}

    def _on_topology_change(self):
        self.touch()

    # ==========================================================================
    # Regions
    # ==========================================================================

    def region(self, rid: int) -> MeshRegion:
        """Return region ``rid`` (an empty region if it was never filled)."""
        if rid < 0:
            raise ValueError(f"Region numbers must be non-negative, got {rid}")
        return self._regions.get(rid, MeshRegion(rid))

    def has_region(self, rid: int) -> bool:
        return rid in self._regions

    def regions_index(self) -> List[int]:
        return sorted(self._regions)

    def _writable_region(self, rid: int) -> MeshRegion:
        if rid < 0:
            raise ValueError(f"Region numbers must be non-negative, got {rid}")
        return self._regions.setdefault(rid, MeshRegion(rid))

    def add_convex_to_region(self, rid: int, ic: int):
        self._convex(ic)
        self._writable_region(rid).add(ic)
        self.touch()

    def add_face_to_region(self, rid: int, ic: int, f: int):
        cs = self.structure_of_convex(ic)
        cs.ind_points_of_face(f)
        self._writable_region(rid).add(ic, f)
        self.touch()

    def sup_region(self, rid: int):
        if self._regions.pop(rid, None) is not None:
            self.touch()

    # ==========================================================================
    # Topology changes kept in sync with regions
    # ==========================================================================

    def remove_convex(self, ic: int):
        self._convex(ic)
        for region in self._regions.values():
            region.sup_convex(ic)
        super().remove_convex(ic)

    def swap_convex(self, c1: int, c2: int):
        if min(c1, c2) < 0:
            raise IndexError(f"Convex IDs must be non-negative, got {c1} and {c2}")
        for region in self._regions.values():
            region.swap_convex(c1, c2)
        super().swap_convex(c1, c2)

    def clear(self):
        self._regions = {}
        super().clear()

    def __repr__(self):
        return f"Mesh({self.name!r}, {self.nb_convex()} convexes, {self.nb_points()} points)"
