"""
FemCore Exceptions
==================

Every error raised by the registry, the mesh topology store and the model
derives from FemCoreError. None of them is recoverable where it is detected:
they propagate to the direct caller.

Kinds
-----
DuplicateRegistrationError : object stored twice, or variable name reused
UnknownReferenceError      : unregistered object or unknown variable/brick
WrongNumericFieldError     : real accessor on a complex model (or vice versa)
IllegalDeletionError       : a deletion closure reaches a PERMANENT object
InconsistentStateError     : registry indexes disagree (internal)
BrickComputationError      : a brick cannot produce its declared terms
"""


class FemCoreError(RuntimeError):
    """Base class for all FemCore errors."""
    pass


class DuplicateRegistrationError(FemCoreError):
    """Raised when an object is stored twice or a model name is reused.

    This typically indicates:
    - The same object handle passed to StoredObjectRegistry.add() again,
      possibly with another key
    - A variable/data name already declared in the model
    """
    pass


class UnknownReferenceError(FemCoreError, KeyError):
    """Raised when a name or an object handle does not resolve.

    This typically indicates:
    - A dependency edge naming an object that is not stored
    - A model accessor naming an undeclared variable or data
    - A brick index that was never allocated or has been deleted
    """

    def __str__(self):
        # KeyError quotes its argument, keep the plain message
        return str(self.args[0]) if self.args else ""


class WrongNumericFieldError(FemCoreError, TypeError):
    """Raised when a real accessor is used on a complex model or vice versa."""
    pass


class IllegalDeletionError(FemCoreError):
    """Raised when deleting objects would cascade into a PERMANENT object.

    The registry is left unchanged when this is raised.
    """
    pass


class InconsistentStateError(FemCoreError):
    """Raised when the registry's key index and object table disagree.

    This is an internal check only and indicates a prior invariant violation.
    """
    pass


class BrickComputationError(FemCoreError):
    """Raised when a brick cannot produce its declared terms.

    This typically indicates:
    - Malformed data shapes (explicit matrix with the wrong size)
    - The brick does not support the model's numeric field (real/complex)
    - The brick replaced a term buffer by something of the wrong shape
    """
    pass
