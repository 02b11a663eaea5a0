"""
Context Dependencies
====================

Change propagation between a mesh, the finite element spaces built on it and
the models using those spaces.

Key Concepts for Students:
--------------------------
An object lists the objects it depends on (its *context*). When a context
object changes it calls ``touch()``: every transitive dependent receives
``update_from_context()`` once, and is expected to mark its cached data as
outdated rather than recompute it right away.

    mesh.touch()
        -> mesh_fem.update_from_context()   (dof numbering outdated)
        -> model.update_from_context()      (sizes must be resolved again)

Dependents are held through weak references: a dependency never keeps its
dependents alive.
"""

import logging
import weakref
from typing import List

logger = logging.getLogger(__name__)


class ContextDependencies:
    """
    Mixin giving an object a list of context dependencies and weakly held dependents.

    Subclasses call ``ContextDependencies.__init__(self)`` and override
    ``update_from_context``.
    """

    def __init__(self):
        self._context_dependencies: List["ContextDependencies"] = []
        self._context_dependents = weakref.WeakSet()

    def add_dependency(self, other: "ContextDependencies"):
        """Declare that this object depends on ``other`` (idempotent)."""
        if not any(dep is other for dep in self._context_dependencies):
            self._context_dependencies.append(other)
        other._context_dependents.add(self)

    def sup_dependency(self, other: "ContextDependencies"):
        """Drop the dependency on ``other`` if present."""
        self._context_dependencies = [dep for dep in self._context_dependencies if dep is not other]
        other._context_dependents.discard(self)

    def clear_dependencies(self):
        for dep in self._context_dependencies:
            dep._context_dependents.discard(self)
        self._context_dependencies = []

    def context_dependencies(self) -> List["ContextDependencies"]:
        return list(self._context_dependencies)

    def context_dependents(self) -> List["ContextDependencies"]:
        return list(self._context_dependents)

    def update_from_context(self):
        """Called when something this object depends on has changed."""
        pass

    def touch(self):
        """Notify every transitive dependent that this object changed."""
        visited = {id(self)}
        pending = list(self._context_dependents)
        while pending:
            obj = pending.pop(0)
            if id(obj) in visited:
                continue
            visited.add(id(obj))
            obj.update_from_context()
            pending.extend(obj._context_dependents)
