"""
MeshStructure - Graph-Only Mesh Topology
========================================

This module stores the combinatorial part of a mesh: points, convexes and the
point-to-convex adjacency. Points carry no coordinates here.

Key Concepts for Students:
--------------------------
1. **Convex table**: Each convex occupies a slot of ``convex_tab``. Removing a
   convex frees its slot, the next insertion reuses the lowest free slot.

2. **Intrusive adjacency chain**: Every point stores the first convex attached
   to it (``first``) and its local index in that convex (``ind_in_first``).
   Every convex stores, for each of its local points, a link to the next
   convex of that point's chain. Walking the chain gives all convexes
   attached to a point in O(degree), without any extra container:

       point 1: first=(cv 1, local 0) -> (cv 0, local 1) -> end

3. **Search by vertex set**: To find the convexes containing points
   (p0, p1, ...), walk the chain of p0 and keep the convexes which also hold
   p1, p2, ... This serves both de-duplication on insertion and neighbour
   lookup across a shared face.

Typical Usage:
    >>> ms = MeshStructure()
    >>> t0 = ms.add_convex(triangle_structure(), [0, 1, 2])
    >>> t1 = ms.add_convex(triangle_structure(), [1, 2, 3])
    >>> ms.neighbour_of_convex(t0, 0)   # face 0 of t0 is (1, 2)
    1
"""

import logging
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import scipy.sparse as sp
from scipy.sparse.csgraph import reverse_cuthill_mckee

from FemCore.Errors import InconsistentStateError
from FemCore.Objects.Mesh.ConvexStructure import (
    ConvexStructure,
    segment_structure,
    simplex_structure,
)

logger = logging.getLogger(__name__)


def _check_id(i: int, what: str):
    if i < 0:
        raise IndexError(f"{what} IDs must be non-negative, got {i}")


class MeshPoint:
    """Head of the adjacency chain of a point (``first`` is None when unused)."""
    __slots__ = ("first", "ind_in_first")

    def __init__(self):
        self.first: Optional[int] = None
        self.ind_in_first: int = 0

    def is_valid(self) -> bool:
        return self.first is not None


class MeshPointLink:
    """Link from one (convex, local point) to the next convex of the point's chain."""
    __slots__ = ("next", "ind_in_next")

    def __init__(self):
        self.next: Optional[int] = None
        self.ind_in_next: int = 0


class MeshConvex:
    """A convex: its structure, its ordered point IDs and one chain link per point."""
    __slots__ = ("cstruct", "pts", "links")

    def __init__(self, cstruct: ConvexStructure, pts: List[int]):
        self.cstruct = cstruct
        self.pts = pts
        self.links = [MeshPointLink() for _ in pts]


class ConvexToPoint:
    """
    Restartable, forward-only sequence of the convexes attached to a point.

    Iterating walks the point's adjacency chain; every new iteration starts
    over from the chain head.
    """

    def __init__(self, ms: "MeshStructure", ip: int):
        self._ms = ms
        self._ip = int(ip)

    def items(self) -> Iterator[Tuple[int, int]]:
        """Yield (convex ID, local index of the point in that convex)."""
        ms = self._ms
        if self._ip < 0 or self._ip >= len(ms.points_tab):
            return
        head = ms.points_tab[self._ip]
        ic, i = head.first, head.ind_in_first
        while ic is not None:
            yield ic, i
            link = ms.convex_tab[ic].links[i]
            ic, i = link.next, link.ind_in_next

    def __iter__(self) -> Iterator[int]:
        for ic, _ in self.items():
            yield ic

    def __len__(self):
        return sum(1 for _ in self.items())

    def empty(self) -> bool:
        return next(iter(self), None) is None

    def front(self) -> Optional[int]:
        return next(iter(self), None)


class MeshStructure:
    """
    Mesh as a graph: points, convexes and point/convex adjacency links.

    Attributes
    ----------
    points_tab : list of MeshPoint
        Chain heads, indexed by point ID.
    convex_tab : list of MeshConvex or None
        Convex slots, None for a free slot.
    """

    def __init__(self):
        self.points_tab: List[MeshPoint] = []
        self.convex_tab: List[Optional[MeshConvex]] = []
        self._free_slots = set()
        self._nb_convex = 0

    # ==========================================================================
    # Change hook
    # ==========================================================================

    def _on_topology_change(self):
        """Called after every structural modification. Overridden by Mesh."""
        pass

    # ==========================================================================
    # Queries
    # ==========================================================================

    def _convex(self, ic: int) -> MeshConvex:
        if not self.convex_is_valid(ic):
            raise IndexError(f"Convex {ic} does not exist")
        return self.convex_tab[ic]

    def nb_convex(self) -> int:
        """Number of valid convexes."""
        return self._nb_convex

    def convex_is_valid(self, ic: int) -> bool:
        return 0 <= ic < len(self.convex_tab) and self.convex_tab[ic] is not None

    def point_is_valid(self, ip: int) -> bool:
        """True if the point is used by at least one convex."""
        return 0 <= ip < len(self.points_tab) and self.points_tab[ip].is_valid()

    def convex_index(self, dim: Optional[int] = None) -> List[int]:
        """Sorted IDs of the valid convexes (optionally of a given dimension)."""
        return [ic for ic, cv in enumerate(self.convex_tab)
                if cv is not None and (dim is None or cv.cstruct.dim == dim)]

    def point_index(self) -> List[int]:
        """Sorted IDs of the valid points."""
        return [ip for ip, p in enumerate(self.points_tab) if p.is_valid()]

    def nb_points(self) -> int:
        """Number of valid points."""
        return sum(1 for p in self.points_tab if p.is_valid())

    def nb_allocated_points(self) -> int:
        return len(self.points_tab)

    def structure_of_convex(self, ic: int) -> ConvexStructure:
        return self._convex(ic).cstruct

    def nb_points_of_convex(self, ic: int) -> int:
        return self._convex(ic).cstruct.nb_points

    def nb_faces_of_convex(self, ic: int) -> int:
        return self._convex(ic).cstruct.nb_faces

    def ind_points_of_convex(self, ic: int) -> Tuple[int, ...]:
        """Point IDs of convex ``ic``, ordered as its structure."""
        return tuple(self._convex(ic).pts)

    def ind_points_of_face_of_convex(self, ic: int, f: int) -> Tuple[int, ...]:
        cv = self._convex(ic)
        return tuple(cv.pts[j] for j in cv.cstruct.ind_points_of_face(f))

    def local_ind_of_convex_point(self, ic: int, ip: int) -> int:
        pts = self._convex(ic).pts
        if ip not in pts:
            raise ValueError(f"Point {ip} is not a vertex of convex {ic}")
        return pts.index(ip)

    def first_convex_of_point(self, ip: int) -> Optional[int]:
        _check_id(ip, "Point")
        return self.points_tab[ip].first if ip < len(self.points_tab) else None

    def ind_in_first_convex_of_point(self, ip: int) -> int:
        _check_id(ip, "Point")
        return self.points_tab[ip].ind_in_first

    def convex_to_point(self, ip: int) -> ConvexToPoint:
        """Sequence of the convexes attached to point ``ip``."""
        return ConvexToPoint(self, ip)

    def ind_points_to_point(self, ip: int) -> List[int]:
        """Points joined to ``ip`` by an edge of some convex."""
        found = set()
        for ic, i in self.convex_to_point(ip).items():
            cv = self.convex_tab[ic]
            for a, b in cv.cstruct.edges:
                if a == i:
                    found.add(cv.pts[b])
                elif b == i:
                    found.add(cv.pts[a])
        return sorted(found)

    def is_convex_has_points(self, ic: int, ipts: Iterable[int]) -> bool:
        pts = self._convex(ic).pts
        return all(ip in pts for ip in ipts)

    def is_convex_face_has_points(self, ic: int, f: int, ipts: Iterable[int]) -> bool:
        face_pts = self.ind_points_of_face_of_convex(ic, f)
        return all(ip in face_pts for ip in ipts)

    # ==========================================================================
    # Search by vertex set
    # ==========================================================================

    def convexes_with_points(self, ipts: Sequence[int], dim: Optional[int] = None,
                             exclude: Optional[int] = None, exact: bool = False) -> List[int]:
        """
        Convexes containing all of ``ipts``.

        Parameters
        ----------
        ipts : sequence of int
            Point IDs searched. The chain of ``ipts[0]`` is walked.
        dim : int, optional
            Keep only convexes of this dimension.
        exclude : int, optional
            Convex ID never returned.
        exact : bool
            Keep only convexes with exactly ``len(ipts)`` points.
        """
        ipts = [int(ip) for ip in ipts]
        if not ipts:
            return []
        rest = ipts[1:]
        found = []
        for ic in self.convex_to_point(ipts[0]):
            if ic == exclude:
                continue
            cv = self.convex_tab[ic]
            if exact and cv.cstruct.nb_points != len(ipts):
                continue
            if dim is not None and cv.cstruct.dim != dim:
                continue
            if all(ip in cv.pts for ip in rest):
                found.append(ic)
        return found

    def find_convex_with_points(self, cs: ConvexStructure, ipts: Sequence[int]) -> Optional[int]:
        """ID of the convex of structure ``cs`` with vertex set ``ipts``, or None."""
        for ic in self.convexes_with_points(ipts, exact=True):
            if self.convex_tab[ic].cstruct is cs:
                return ic
        return None

    def neighbours_of_convex(self, ic: int, f: int) -> List[int]:
        """Convexes of the same dimension sharing face ``f`` of ``ic`` (``ic`` excluded)."""
        cs = self.structure_of_convex(ic)
        face_pts = self.ind_points_of_face_of_convex(ic, f)
        return self.convexes_with_points(face_pts, dim=cs.dim, exclude=ic)

    def neighbour_of_convex(self, ic: int, f: int) -> Optional[int]:
        """The convex across face ``f`` of ``ic``, or None on a boundary face."""
        neighbours = self.neighbours_of_convex(ic, f)
        return neighbours[0] if neighbours else None

    # ==========================================================================
    # Insertion
    # ==========================================================================

    def _ensure_point(self, ip: int) -> MeshPoint:
        if ip < 0:
            raise ValueError(f"Point IDs must be non-negative, got {ip}")
        while len(self.points_tab) <= ip:
            self.points_tab.append(MeshPoint())
        return self.points_tab[ip]

    def _alloc_slot(self) -> int:
        if self._free_slots:
            ic = min(self._free_slots)
            self._free_slots.remove(ic)
            return ic
        self.convex_tab.append(None)
        return len(self.convex_tab) - 1

    def _reserve_slot(self, ic: int):
        while len(self.convex_tab) <= ic:
            self._free_slots.add(len(self.convex_tab))
            self.convex_tab.append(None)
        if self.convex_tab[ic] is not None:
            self.remove_convex(ic)
        self._free_slots.discard(ic)

    def add_convex_noverif(self, cs: ConvexStructure, ipts: Iterable[int],
                           to_index: Optional[int] = None) -> int:
        """
        Insert a convex without looking for an existing identical one.

        Parameters
        ----------
        cs : ConvexStructure
            Structure of the new convex.
        ipts : iterable of int
            Point IDs, ordered as the structure.
        to_index : int, optional
            Slot to use. An existing convex in that slot is removed first.
        """
        pts = [int(ip) for ip in ipts]
        if len(pts) != cs.nb_points:
            raise ValueError(f"A {cs.name} requires exactly {cs.nb_points} points, got {len(pts)}")
        if len(set(pts)) != len(pts):
            raise ValueError(f"Repeated point in convex {pts}")
        if to_index is not None:
            _check_id(int(to_index), "Convex")
        for ip in pts:
            self._ensure_point(ip)

        if to_index is not None:
            ic = int(to_index)
            self._reserve_slot(ic)
        else:
            ic = self._alloc_slot()

        cv = MeshConvex(cs, pts)
        self.convex_tab[ic] = cv
        self._nb_convex += 1

        # Push the convex at the head of each point chain
        for i, ip in enumerate(pts):
            head = self.points_tab[ip]
            link = cv.links[i]
            link.next, link.ind_in_next = head.first, head.ind_in_first
            head.first, head.ind_in_first = ic, i

        self._on_topology_change()
        return ic

    def insert_convex(self, cs: ConvexStructure, ipts: Iterable[int]) -> Tuple[int, bool]:
        """
        Insert a convex unless an identical one exists.

        Returns
        -------
        (int, bool)
            Convex ID and True if the convex was already present.
        """
        pts = [int(ip) for ip in ipts]
        existing = self.find_convex_with_points(cs, pts)
        if existing is not None:
            return existing, True
        return self.add_convex_noverif(cs, pts), False

    def add_convex(self, cs: ConvexStructure, ipts: Iterable[int]) -> int:
        """Insert a convex (or return the ID of the identical existing one)."""
        return self.insert_convex(cs, ipts)[0]

    def add_simplex(self, dim: int, ipts: Iterable[int]) -> int:
        return self.add_convex(simplex_structure(dim), ipts)

    def add_segment(self, a: int, b: int) -> int:
        return self.add_convex(segment_structure(), (a, b))

    def add_face_of_convex(self, ic: int, f: int) -> int:
        """Insert the convex corresponding to face ``f`` of ``ic``."""
        cs = self.structure_of_convex(ic)
        return self.add_convex(cs.face_structure(f), self.ind_points_of_face_of_convex(ic, f))

    def add_faces_of_convex(self, ic: int) -> List[int]:
        return [self.add_face_of_convex(ic, f) for f in range(self.nb_faces_of_convex(ic))]

    # ==========================================================================
    # Removal
    # ==========================================================================

    def _unlink(self, ip: int, ic: int, i: int):
        """Remove (ic, i) from the chain of point ip."""
        head = self.points_tab[ip]
        link = self.convex_tab[ic].links[i]
        if head.first == ic and head.ind_in_first == i:
            head.first, head.ind_in_first = link.next, link.ind_in_next
            return
        cur, cur_i = head.first, head.ind_in_first
        while cur is not None:
            cur_link = self.convex_tab[cur].links[cur_i]
            if cur_link.next == ic and cur_link.ind_in_next == i:
                cur_link.next, cur_link.ind_in_next = link.next, link.ind_in_next
                return
            cur, cur_i = cur_link.next, cur_link.ind_in_next
        raise InconsistentStateError(f"Convex {ic} missing from the chain of point {ip}")

    def remove_convex(self, ic: int):
        """Detach convex ``ic`` from its points and free its slot."""
        cv = self._convex(ic)
        for i, ip in enumerate(cv.pts):
            self._unlink(ip, ic, i)
        self.convex_tab[ic] = None
        self._free_slots.add(ic)
        self._nb_convex -= 1
        self._on_topology_change()

    def remove_convex_with_points(self, ipts: Sequence[int]):
        """Remove every convex containing all of ``ipts``."""
        for ic in self.convexes_with_points(ipts):
            self.remove_convex(ic)

    def remove_segment(self, a: int, b: int):
        self.remove_convex_with_points((a, b))

    def to_faces(self, dim: int):
        """Replace each convex of dimension ``dim`` by its faces."""
        for ic in self.convex_index(dim):
            self.add_faces_of_convex(ic)
            self.remove_convex(ic)

    def to_edges(self):
        """Replace every convex of dimension 2 or more by its edges."""
        dims = [cv.cstruct.dim for cv in self.convex_tab if cv is not None]
        for dim in range(max(dims, default=0), 1, -1):
            self.to_faces(dim)

    def clear(self):
        self.points_tab = []
        self.convex_tab = []
        self._free_slots = set()
        self._nb_convex = 0
        self._on_topology_change()

    # ==========================================================================
    # Renumbering
    # ==========================================================================

    def swap_points(self, i: int, j: int):
        """Exchange the IDs of points ``i`` and ``j``."""
        _check_id(i, "Point")
        _check_id(j, "Point")
        if i == j:
            return
        self._ensure_point(max(i, j))
        occ_i = list(self.convex_to_point(i).items())
        occ_j = list(self.convex_to_point(j).items())
        for ic, k in occ_i:
            self.convex_tab[ic].pts[k] = j
        for ic, k in occ_j:
            self.convex_tab[ic].pts[k] = i
        self.points_tab[i], self.points_tab[j] = self.points_tab[j], self.points_tab[i]
        self._on_topology_change()

    def swap_convex(self, c1: int, c2: int):
        """Exchange the IDs of convexes ``c1`` and ``c2`` (either may be a free slot)."""
        _check_id(c1, "Convex")
        _check_id(c2, "Convex")
        if c1 == c2:
            return
        while len(self.convex_tab) <= max(c1, c2):
            self._free_slots.add(len(self.convex_tab))
            self.convex_tab.append(None)

        points = set()
        for ic in (c1, c2):
            if self.convex_tab[ic] is not None:
                points.update(self.convex_tab[ic].pts)

        # Collect every chain reference before rewriting any of them
        refs = []
        for ip in points:
            head = self.points_tab[ip]
            refs.append((head, "first", head.first))
            ic, k = head.first, head.ind_in_first
            while ic is not None:
                link = self.convex_tab[ic].links[k]
                refs.append((link, "next", link.next))
                ic, k = link.next, link.ind_in_next

        swap = {c1: c2, c2: c1}
        for obj, attr, value in refs:
            if value in swap:
                setattr(obj, attr, swap[value])

        self.convex_tab[c1], self.convex_tab[c2] = self.convex_tab[c2], self.convex_tab[c1]
        for ic in (c1, c2):
            if self.convex_tab[ic] is None:
                self._free_slots.add(ic)
            else:
                self._free_slots.discard(ic)
        self._on_topology_change()

    def optimize(self):
        """
        Renumber convexes and points densely from 0.

        Convex and point IDs held elsewhere are invalidated.
        """
        valid = self.convex_index()
        n = len(valid)
        holes = [ic for ic in range(n) if self.convex_tab[ic] is None]
        movers = [ic for ic in valid if ic >= n]
        for hole, mover in zip(holes, movers):
            self.swap_convex(hole, mover)
        del self.convex_tab[n:]
        self._free_slots = set()

        valid_pts = self.point_index()
        n = len(valid_pts)
        holes = [ip for ip in range(n) if not self.points_tab[ip].is_valid()]
        movers = [ip for ip in valid_pts if ip >= n]
        for hole, mover in zip(holes, movers):
            self.swap_points(hole, mover)
        del self.points_tab[n:]

        logger.debug("Optimized structure: %d convexes, %d points", self._nb_convex, n)
        self._on_topology_change()

    # ==========================================================================
    # Orderings & edge lists
    # ==========================================================================

    def convex_adjacency(self) -> Tuple[List[int], sp.csr_matrix]:
        """Convex IDs and the symmetric adjacency matrix of convexes sharing a point."""
        ids = self.convex_index()
        position = {ic: k for k, ic in enumerate(ids)}
        rows, cols = [], []
        for ip in range(len(self.points_tab)):
            attached = [position[ic] for ic in self.convex_to_point(ip)]
            for a in attached:
                for b in attached:
                    if a != b:
                        rows.append(a)
                        cols.append(b)
        n = len(ids)
        data = np.ones(len(rows), dtype=np.int8)
        adjacency = sp.coo_matrix((data, (rows, cols)), shape=(n, n)).tocsr()
        adjacency.data[:] = 1
        return ids, adjacency

    def cuthill_mckee_on_convexes(self) -> List[int]:
        """Convex IDs in Cuthill-McKee order (bandwidth reducing)."""
        ids, adjacency = self.convex_adjacency()
        if not ids:
            return []
        perm = reverse_cuthill_mckee(adjacency, symmetric_mode=True)
        return [ids[k] for k in perm[::-1]]

    def edge_list(self, merge_convex: bool = True) -> list:
        """
        Edges of the mesh.

        Returns
        -------
        list
            Sorted (i, j) pairs with i < j when ``merge_convex`` is True,
            sorted (i, j, convex ID) triplets otherwise.
        """
        edges = set()
        for ic in self.convex_index():
            cv = self.convex_tab[ic]
            for a, b in cv.cstruct.edges:
                i, j = sorted((cv.pts[a], cv.pts[b]))
                edges.add((i, j) if merge_convex else (i, j, ic))
        return sorted(edges)
