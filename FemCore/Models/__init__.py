"""
FemCore Models

The model container and the brick interface.

Classes
-------
Model : Variables, data, bricks and the assembled global system
BaseBrick : Abstract brick (real and/or complex compute callbacks)
TermDescription : Matrix or vector term declared by a brick
VarDescription : Variable/data descriptor

Bricks
------
ExplicitMatrixBrick, ExplicitRhsBrick : constant terms
ConstraintWithMultipliersBrick : B u = L with a multiplier variable
ConstraintWithPenalizationBrick : B u = L by penalization

Multiplier filters
------------------
RegionDofFilter : keep the multiplier dofs on the region (default)
RangeBasisFilter : keep linearly independent multiplier dofs
"""

from .BaseBrick import BaseBrick
from .Bricks import (
    ConstraintWithMultipliersBrick,
    ConstraintWithPenalizationBrick,
    ExplicitMatrixBrick,
    ExplicitRhsBrick,
)
from .Model import BrickDescription, Model
from .MultiplierFilter import MultiplierFilter, RangeBasisFilter, RegionDofFilter
from .Terms import TermDescription
from .VarDescription import VarDescription, VarFilter

__all__ = [
    'Model',
    'BrickDescription',
    'BaseBrick',
    'TermDescription',
    'VarDescription',
    'VarFilter',

    # Bricks
    'ExplicitMatrixBrick',
    'ExplicitRhsBrick',
    'ConstraintWithMultipliersBrick',
    'ConstraintWithPenalizationBrick',

    # Multiplier filters
    'MultiplierFilter',
    'RegionDofFilter',
    'RangeBasisFilter',
]
