"""
StoredObjects - Dependency-Tracked Registry of Shared Objects
==============================================================

This module implements the registry in which meshes, finite element spaces,
models and bricks are stored under a comparable key, together with the
dependency edges between them.

Key Concepts for Students:
--------------------------
1. **Keys**: A key identifies an object semantically ("the P1 space with
   qdim=2 on mesh #3"). Before building an expensive object, search the
   registry with its key and reuse the stored one if it exists:

       >>> obj = registry.search(key)
       >>> if obj is None:
       ...     obj = build(...)
       ...     registry.add(key, obj, dependencies=[mesh])

2. **Dependencies**: ``add_dependency(a, b)`` means "a depends on b". When b
   is deleted, a is deleted too. The reverse edge ("b has dependent a") is
   stored so that deletions can walk downstream.

3. **Permanence**: Controls automatic deletion.
       PERMANENT  (0) never deleted as a side effect (raises instead)
       STRONG     (1) deletion discouraged
       STANDARD   (2) default
       WEAK       (3) delete if necessary
       AUTODELETE (4) deleted as soon as its last dependent is gone

4. **Ownership**: Python reference counting owns the memory. Deleting an
   object removes it from the registry immediately; the object itself is
   freed once the last outside holder drops it.

Example dependency chain:
    mesh (STANDARD) <- mesh_fem (STANDARD) <- model (STANDARD)
    registry.delete_object(mesh)  # removes mesh, mesh_fem and model
"""

import functools
import itertools
import logging
import numbers
from abc import ABC, abstractmethod
from collections import defaultdict
from enum import IntEnum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from FemCore.Errors import (
    DuplicateRegistrationError,
    IllegalDeletionError,
    InconsistentStateError,
    UnknownReferenceError,
)

logger = logging.getLogger(__name__)


class Permanence(IntEnum):
    """Permanence class of a stored object (lower is stronger)."""
    PERMANENT = 0
    STRONG = 1
    STANDARD = 2
    WEAK = 3
    AUTODELETE = 4


# ==============================================================================
# Keys
# ==============================================================================

def _ordering_component(value):
    """
    Sort value of one key component, comparable with any other component.

    None sorts first, then real numbers (bool, int and float compare by
    value), then tuples (component-wise), then other values grouped by
    type name. Values of the same type must be mutually orderable.
    """
    if value is None:
        return 0, "", 0
    if isinstance(value, numbers.Real):
        return 1, "", value
    if isinstance(value, tuple):
        return 2, "", tuple(_ordering_component(v) for v in value)
    return 3, type(value).__qualname__, value


@functools.total_ordering
class StoredObjectKey(ABC):
    """
    Abstract key of a stored object.

    Keys of different concrete types live in one total order: they are
    compared by their ``KEY_KIND`` discriminant first, then by the tuple
    returned by ``compare_value()``, component by component (see
    ``_ordering_component``, so mixed-type components never fail to compare).
    Two keys are equal iff both agree.

    Attributes
    ----------
    KEY_KIND : str
        Stable per-type discriminant. Defaults to the qualified class name.
    """
    KEY_KIND: Optional[str] = None

    @abstractmethod
    def compare_value(self) -> tuple:
        """Return the type-specific comparison value."""
        pass

    def kind(self) -> str:
        cls = type(self)
        return cls.KEY_KIND or f"{cls.__module__}.{cls.__qualname__}"

    def _order(self):
        return self.kind(), self.compare_value()

    def _sort_order(self):
        return self.kind(), _ordering_component(self.compare_value())

    def __eq__(self, other):
        if not isinstance(other, StoredObjectKey):
            return NotImplemented
        return self._order() == other._order()

    def __lt__(self, other):
        if not isinstance(other, StoredObjectKey):
            return NotImplemented
        if self == other:
            return False
        return self._sort_order() < other._sort_order()

    def __hash__(self):
        return hash(self._order())

    def __repr__(self):
        return f"{type(self).__name__}{self.compare_value()!r}"


class SerialKey(StoredObjectKey):
    """
    Key for objects without a semantic identity (meshes, models, bricks).

    Each instance draws a new serial number, so two SerialKeys of the same
    kind are never equal.
    """
    KEY_KIND = "serial"
    _counter = itertools.count()

    def __init__(self, kind: Optional[str] = None):
        self.serial = next(SerialKey._counter)
        self.label = kind or "object"

    def compare_value(self) -> tuple:
        return self.label, self.serial


class ValueKey(StoredObjectKey):
    """Key made of a kind label and a tuple of hashable values (None allowed)."""
    KEY_KIND = "value"

    def __init__(self, kind: str, *values):
        self.label = str(kind)
        self.values = tuple(values)
        try:
            hash(self.values)
        except TypeError as exc:
            raise TypeError(f"ValueKey '{self.label}' values must be hashable, got {self.values!r}") from exc

    def compare_value(self) -> tuple:
        return (self.label,) + self.values


class StoredObject:
    """
    Base class for objects meant to be stored in a StoredObjectRegistry.

    The registry accepts any object; deriving from this class only documents
    the intent and gives access to ``stored_key`` once registered.
    """

    def stored_key(self, registry: "StoredObjectRegistry") -> Optional[StoredObjectKey]:
        """Key under which this object is stored in ``registry`` (None if absent)."""
        return registry.key_of(self)


# ==============================================================================
# Registry
# ==============================================================================

class _StoredRecord:
    """Registry entry: the object, its permanence and its dependency edges."""
    __slots__ = ("obj", "key", "permanence", "valid", "dependents", "dependencies")

    def __init__(self, obj, key, permanence):
        self.obj = obj
        self.key = key
        self.permanence = Permanence(permanence)
        self.valid = True
        # Ordered sets of id(obj) -> None
        self.dependents: Dict[int, None] = {}
        self.dependencies: Dict[int, None] = {}


class StoredObjectRegistry:
    """
    Registry of reference-counted objects keyed by semantic identity.

    The registry is an explicit object: every API touching it receives it as
    an argument. ``instance()`` provides one well-defined process-wide
    registry for code that wants a shared one, and ``reset_instance()`` tears
    it down.

    Attributes
    ----------
    _objects : dict
        Key index: {StoredObjectKey: _StoredRecord}
    _keys : dict
        Object table: {id(obj): StoredObjectKey}
    """
    _instance: Optional["StoredObjectRegistry"] = None

    def __init__(self):
        self._objects: Dict[StoredObjectKey, _StoredRecord] = {}
        self._keys: Dict[int, StoredObjectKey] = {}

    # ==========================================================================
    # Process-wide accessor
    # ==========================================================================

    @classmethod
    def instance(cls) -> "StoredObjectRegistry":
        """Return the process-wide registry, creating it on first use."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Drop the process-wide registry (and every reference it holds)."""
        if cls._instance is not None:
            cls._instance.clear()
        cls._instance = None

    # ==========================================================================
    # Lookup
    # ==========================================================================

    def __len__(self):
        return len(self._objects)

    def __contains__(self, obj):
        return self.exists(obj)

    def __iter__(self) -> Iterator[StoredObjectKey]:
        return iter(sorted(self._objects))

    def _record_of(self, obj) -> Optional[_StoredRecord]:
        key = self._keys.get(id(obj))
        if key is None:
            return None
        record = self._objects.get(key)
        if record is None or record.obj is not obj:
            raise InconsistentStateError(f"Object has key {key!r} but cannot be found")
        return record

    def _require(self, obj, what: str) -> _StoredRecord:
        record = self._record_of(obj)
        if record is None:
            raise UnknownReferenceError(
                f"{what}: inexistent object {obj!r} of type {type(obj).__name__}")
        return record

    def _record_by_id(self, oid: int) -> _StoredRecord:
        key = self._keys.get(oid)
        record = self._objects.get(key) if key is not None else None
        if record is None:
            raise InconsistentStateError(f"Dependency edge to a vanished object (id={oid})")
        return record

    def search(self, key: StoredObjectKey):
        """Return the object stored under ``key``, or None."""
        record = self._objects.get(key)
        return record.obj if record is not None else None

    def exists(self, obj) -> bool:
        """Return True if ``obj`` is stored."""
        return id(obj) in self._keys and self._record_of(obj) is not None

    def key_of(self, obj) -> Optional[StoredObjectKey]:
        """Return the key of a stored object, or None."""
        record = self._record_of(obj)
        return record.key if record is not None else None

    def permanence_of(self, obj) -> Permanence:
        return self._require(obj, "permanence_of").permanence

    def dependencies_of(self, obj) -> List[Any]:
        """Objects that ``obj`` depends on."""
        record = self._require(obj, "dependencies_of")
        return [self._record_by_id(oid).obj for oid in record.dependencies]

    def dependents_of(self, obj) -> List[Any]:
        """Objects depending on ``obj``."""
        record = self._require(obj, "dependents_of")
        return [self._record_by_id(oid).obj for oid in record.dependents]

    # ==========================================================================
    # Insertion & dependencies
    # ==========================================================================

    def add(self, key: StoredObjectKey, obj, permanence: Permanence = Permanence.STANDARD,
            dependencies: Optional[Iterable[Any]] = None):
        """
        Store ``obj`` under ``key``.

        Parameters
        ----------
        key : StoredObjectKey
            Semantic identity of the object.
        obj : object
            The object to store.
        permanence : Permanence
            Permanence class of the object.
        dependencies : iterable, optional
            Stored objects that ``obj`` depends on.

        Raises
        ------
        DuplicateRegistrationError
            If ``obj`` is already stored (under any key) or ``key`` is taken.
        UnknownReferenceError
            If a dependency is not stored. The object is not added.
        """
        if not isinstance(key, StoredObjectKey):
            raise TypeError(f"Key must be a StoredObjectKey, got {type(key).__name__}")
        if id(obj) in self._keys:
            raise DuplicateRegistrationError(
                "This object has already been stored, possibly with another key")
        if key in self._objects:
            raise DuplicateRegistrationError(f"Key {key!r} already designates a stored object")

        dependencies = list(dependencies or [])
        for dep in dependencies:
            self._require(dep, "add")

        self._keys[id(obj)] = key
        self._objects[key] = _StoredRecord(obj, key, permanence)
        for dep in dependencies:
            self.add_dependency(obj, dep)

        logger.debug("Stored %s (%s) as %r", type(obj).__name__, Permanence(permanence).name, key)
        return obj

    def add_dependency(self, obj1, obj2):
        """Record that ``obj1`` depends on ``obj2`` (idempotent)."""
        rec1 = self._require(obj1, "add_dependency")
        rec2 = self._require(obj2, "add_dependency")
        rec2.dependents[id(obj1)] = None
        rec1.dependencies[id(obj2)] = None

    def del_dependency(self, obj1, obj2) -> bool:
        """Remove the edge ``obj1 -> obj2``. Return True if ``obj2`` has no dependent left."""
        rec1 = self._require(obj1, "del_dependency")
        rec2 = self._require(obj2, "del_dependency")
        rec2.dependents.pop(id(obj1), None)
        rec1.dependencies.pop(id(obj2), None)
        return not rec2.dependents

    # ==========================================================================
    # Deletion
    # ==========================================================================

    def _deletion_closure(self, records: List[_StoredRecord]) -> List[_StoredRecord]:
        """
        Collect every record dying with ``records`` without mutating anything.

        Work-list traversal: each visited record is marked once, so cyclic
        dependency graphs terminate.
        """
        order: List[_StoredRecord] = []
        dead = set()
        for record in records:
            if id(record.obj) not in dead:
                dead.add(id(record.obj))
                order.append(record)

        released = defaultdict(set)  # {id(dependency): ids of its dead dependents}
        i = 0
        while i < len(order):
            record = order[i]
            oid = id(record.obj)
            i += 1

            # Dependencies left without dependent are auto-deleted
            for dep_id in record.dependencies:
                released[dep_id].add(oid)
                if dep_id in dead:
                    continue
                dep = self._record_by_id(dep_id)
                if dep.permanence == Permanence.AUTODELETE and not (dep.dependents.keys() - released[dep_id]):
                    dead.add(dep_id)
                    order.append(dep)

            # Dependents die with the object
            for dnt_id in record.dependents:
                if dnt_id in dead:
                    continue
                dnt = self._record_by_id(dnt_id)
                if dnt.permanence == Permanence.PERMANENT:
                    raise IllegalDeletionError(
                        f"Trying to delete a permanent object ({type(dnt.obj).__name__} {dnt.key!r}) "
                        f"depending on {type(record.obj).__name__} {record.key!r}")
                dead.add(dnt_id)
                order.append(dnt)
        return order

    def _basic_delete(self, order: List[_StoredRecord]):
        dead = {id(record.obj) for record in order}
        for record in order:
            oid = id(record.obj)
            for dep_id in record.dependencies:
                if dep_id not in dead:
                    self._record_by_id(dep_id).dependents.pop(oid, None)
            for dnt_id in record.dependents:
                if dnt_id not in dead:
                    self._record_by_id(dnt_id).dependencies.pop(oid, None)
        for record in order:
            record.valid = False
            del self._objects[record.key]
            del self._keys[id(record.obj)]
            record.dependencies.clear()
            record.dependents.clear()

    def delete_objects(self, objs: Iterable[Any]) -> List[Any]:
        """
        Delete ``objs`` together with everything that must die with them.

        Returns
        -------
        list
            Every deleted object, requested ones first.

        Raises
        ------
        UnknownReferenceError
            If one of ``objs`` is not stored.
        IllegalDeletionError
            If a PERMANENT object would be deleted as a consequence. Nothing is
            deleted in that case.
        """
        records = [self._require(obj, "delete_objects") for obj in objs]
        order = self._deletion_closure(records)
        self._basic_delete(order)
        logger.debug("Deleted %d stored object(s) (%d requested)", len(order), len(records))
        return [record.obj for record in order]

    def delete_object(self, obj) -> List[Any]:
        """Delete one object and its closure (see delete_objects)."""
        return self.delete_objects([obj])

    def delete_by_permanence(self, threshold: Permanence) -> List[Any]:
        """
        Delete every object whose permanence is at or above ``threshold``.

        A PERMANENT threshold is remapped to STRONG: bulk deletion never takes
        permanent objects along.
        """
        threshold = Permanence(threshold)
        if threshold == Permanence.PERMANENT:
            threshold = Permanence.STRONG
        targets = [record.obj for key, record in sorted(self._objects.items())
                   if record.permanence >= threshold]
        return self.delete_objects(targets)

    def clear(self):
        """Forget every object, regardless of permanence."""
        for record in self._objects.values():
            record.valid = False
        self._objects.clear()
        self._keys.clear()

    # ==========================================================================
    # Diagnostics
    # ==========================================================================

    def check_consistency(self):
        """Verify that the key index and the object table agree."""
        for oid, key in self._keys.items():
            record = self._objects.get(key)
            if record is None or id(record.obj) != oid:
                raise InconsistentStateError(f"Object has key {key!r} but cannot be found")
        for key, record in self._objects.items():
            if self._keys.get(id(record.obj)) != key:
                raise InconsistentStateError(f"Stored object under {key!r} has no matching key")
            for oid in itertools.chain(record.dependents, record.dependencies):
                if oid not in self._keys:
                    raise InconsistentStateError(f"Object {key!r} has an edge to a vanished object")
