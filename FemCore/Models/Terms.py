"""
Term Descriptions
=================

A brick declares, when it is added to a model, the list of terms it
contributes. A matrix term couples two variables (rows of ``var1``, columns
of ``var2``); a vector term is a right-hand side contribution on ``var1``.

Symmetric matrix terms between two different variables are mirrored by the
model: the block is added at (var1, var2) and its transpose at (var2, var1).
"""

from typing import Optional


class TermDescription:
    """
    One matrix or vector term of a brick.

    Parameters
    ----------
    var1 : str
        Row variable (or the variable of a vector term).
    var2 : str, optional
        Column variable. None for a vector term.
    symmetric : bool
        For matrix terms, whether the term is mirrored across the diagonal.
    """

    def __init__(self, var1: str, var2: Optional[str] = None, symmetric: bool = False):
        self.var1 = var1
        self.var2 = var2
        self.is_matrix_term = var2 is not None
        self.is_symmetric = bool(symmetric) and self.is_matrix_term

    @classmethod
    def matrix(cls, var1: str, var2: str, symmetric: bool = False) -> "TermDescription":
        return cls(var1, var2, symmetric)

    @classmethod
    def vector(cls, var: str) -> "TermDescription":
        return cls(var)

    def names(self):
        return (self.var1, self.var2) if self.is_matrix_term else (self.var1,)

    def __repr__(self):
        if self.is_matrix_term:
            sym = ", symmetric" if self.is_symmetric else ""
            return f"TermDescription({self.var1!r}, {self.var2!r}{sym})"
        return f"TermDescription({self.var1!r})"
