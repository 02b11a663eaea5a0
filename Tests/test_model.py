"""
Tests for the Model container.

Tests cover:
- Declaration of variables and data, name checks
- Read/write accessors and numeric field checks
- Size resolution and intervals
- Assembly: scatter, symmetric mirroring, data columns
- Version-gated recomputation of bricks
- Brick management (enable/disable/delete)
- History, global vector transfer, listings, clear
"""
import numpy as np
import pytest
from scipy.sparse.linalg import spsolve

from FemCore.Errors import (
    BrickComputationError,
    DuplicateRegistrationError,
    UnknownReferenceError,
    WrongNumericFieldError,
)
from FemCore.Models.BaseBrick import BaseBrick
from FemCore.Models.Model import Model
from FemCore.Models.Terms import TermDescription


class IdentityBrick(BaseBrick):
    """Identity matrix on (x, x) and a zero right-hand side."""

    def __init__(self):
        super().__init__("Identity", is_linear=True, is_symmetric=True, is_coercive=True)

    def asm_real_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        n = matl[0].shape[0]
        matl[0].setdiag(np.ones(n))


class CountingBrick(BaseBrick):
    """Diagonal matrix 2 + current value of x, counting its computations."""

    def __init__(self, is_linear=True):
        super().__init__("Counting", is_linear=is_linear, is_symmetric=True)
        self.calls = 0

    def asm_real_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        self.calls += 1
        x = md.real_variable(varnames[0])
        matl[0].setdiag(2.0 + x)
        vecl[1][:] = 1.0


class ComplexCountingBrick(BaseBrick):
    """Complex version of CountingBrick."""

    def __init__(self):
        super().__init__("Complex counting", is_symmetric=True, is_real=False, is_complex=True)
        self.calls = 0

    def asm_complex_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        self.calls += 1
        x = md.complex_variable(varnames[0])
        matl[0].setdiag(2.0 + x)
        vecl[1][:] = 1.0j


class WrongShapeBrick(BaseBrick):
    def __init__(self):
        super().__init__("Wrong shape")

    def asm_real_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        matl[0] = np.zeros((2, 2))


class FailingBrick(BaseBrick):
    def __init__(self):
        super().__init__("Failing")

    def asm_real_tangent_terms(self, md, ib, varnames, datanames, matl, vecl, mims, region):
        raise BrickComputationError("malformed data")


def add_counting_brick(md, name="x", is_linear=True, datanames=()):
    brick = CountingBrick(is_linear)
    ib = md.add_brick(brick, [name], list(datanames),
                      [TermDescription.matrix(name, name, True), TermDescription.vector(name)])
    return brick, ib


@pytest.mark.unit
@pytest.mark.model
class TestModelDeclarations:
    """Tests for variable and data declaration."""

    @pytest.mark.integration
    def test_identity_brick_scenario(self, real_model):
        """Identity brick on x (size 3) assembles I and a zero rhs."""
        md = real_model
        md.add_fixed_size_variable("x", 3)
        md.add_brick(IdentityBrick(), ["x"], [], [TermDescription.matrix("x", "x", True),
                                                  TermDescription.vector("x")])
        md.assembly()

        I = md.interval_of_variable("x")
        assert np.allclose(md.real_tangent_matrix()[I, I].toarray(), np.eye(3))
        assert np.allclose(md.real_rhs()[I], 0.0)

    def test_duplicate_name(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        with pytest.raises(DuplicateRegistrationError):
            real_model.add_fixed_size_variable("x", 2)
        with pytest.raises(DuplicateRegistrationError):
            real_model.add_fixed_size_data("x", 2)

    def test_unknown_variable(self, real_model):
        with pytest.raises(UnknownReferenceError):
            real_model.real_variable("nope")
        with pytest.raises(UnknownReferenceError):
            real_model.set_real_variable("nope")
        with pytest.raises(UnknownReferenceError):
            real_model.add_explicit_rhs("nope", [1.0])

    def test_invalid_declarations(self, real_model):
        with pytest.raises(ValueError):
            real_model.add_fixed_size_variable("x", -1)
        with pytest.raises(ValueError):
            real_model.add_fixed_size_variable("x", 2, history=0)
        with pytest.raises(ValueError):
            real_model.add_fixed_size_variable("x", 2, history=1000)
        assert not real_model.variable_exists("x")

    def test_initialized_data(self, real_model):
        real_model.add_initialized_fixed_size_data("d", [1.0, 2.0])
        assert real_model.is_true_data("d")
        assert np.allclose(real_model.real_variable("d"), [1.0, 2.0])
        with pytest.raises(WrongNumericFieldError):
            real_model.add_initialized_fixed_size_data("c", [1j])

    def test_new_name(self, real_model):
        assert real_model.new_name("u") == "u"
        real_model.add_fixed_size_variable("u", 1)
        real_model.add_fixed_size_variable("u_2", 1)
        assert real_model.new_name("u") == "u_3"

    def test_resize_fixed_size_variable(self, real_model):
        """Resizing keeps the leading values."""
        real_model.add_fixed_size_variable("x", 3)
        real_model.set_real_variable("x")[:] = [1.0, 2.0, 3.0]
        real_model.resize_fixed_size_variable("x", 5)

        assert real_model.nb_dof() == 5
        assert np.allclose(real_model.real_variable("x"), [1.0, 2.0, 3.0, 0.0, 0.0])

    def test_delete_variable(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        real_model.add_fixed_size_variable("y", 2)
        ib = real_model.add_explicit_matrix("y", "y", np.eye(2))

        # Used by a brick
        with pytest.raises(ValueError):
            real_model.delete_variable("y")

        real_model.delete_variable("x")
        assert not real_model.variable_exists("x")
        assert real_model.interval_of_variable("y") == slice(0, 2)

        real_model.delete_brick(ib)
        real_model.delete_variable("y")
        assert real_model.nb_dof() == 0


@pytest.mark.unit
@pytest.mark.model
class TestModelAccess:
    """Tests for value accessors and the numeric field."""

    def test_numeric_field_checks(self, real_model, complex_model):
        real_model.add_fixed_size_variable("x", 2)
        complex_model.add_fixed_size_variable("x", 2)

        with pytest.raises(WrongNumericFieldError):
            real_model.complex_variable("x")
        with pytest.raises(WrongNumericFieldError):
            real_model.complex_tangent_matrix()
        with pytest.raises(WrongNumericFieldError):
            complex_model.real_variable("x")
        with pytest.raises(WrongNumericFieldError):
            complex_model.set_real_variable("x")
        with pytest.raises(WrongNumericFieldError):
            complex_model.real_rhs()

        assert complex_model.complex_variable("x").dtype == np.complex128
        assert real_model.real_variable("x").dtype == np.float64

    def test_read_access_is_read_only(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        view = real_model.real_variable("x")
        with pytest.raises(ValueError):
            view[0] = 1.0

    def test_write_access(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        real_model.set_real_variable("x")[:] = [1.0, 2.0, 3.0]
        assert np.allclose(real_model.real_variable("x"), [1.0, 2.0, 3.0])
        with pytest.raises(ValueError):
            real_model.set_real_variable("x", 1)

    def test_intervals_follow_declaration_order(self, real_model):
        """Data take no room in the global system."""
        real_model.add_fixed_size_variable("x", 3)
        real_model.add_fixed_size_data("d", 4)
        real_model.add_fixed_size_variable("y", 2)

        assert real_model.nb_dof() == 5
        assert real_model.interval_of_variable("x") == slice(0, 3)
        assert real_model.interval_of_variable("y") == slice(3, 5)
        with pytest.raises(ValueError):
            real_model.interval_of_variable("d")

    def test_shift_variables_for_time_integration(self, real_model):
        real_model.add_fixed_size_variable("u", 2, history=2)
        real_model.set_real_variable("u")[:] = [1.0, 2.0]
        real_model.shift_variables_for_time_integration()

        assert np.allclose(real_model.real_variable("u", 1), [1.0, 2.0])
        assert np.allclose(real_model.real_variable("u", 0), [1.0, 2.0])

        real_model.set_real_variable("u")[:] = [5.0, 6.0]
        assert np.allclose(real_model.real_variable("u", 1), [1.0, 2.0])

    def test_to_and_from_variables(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        real_model.add_fixed_size_data("d", 1)
        real_model.add_fixed_size_variable("y", 1)

        real_model.to_variables([1.0, 2.0, 3.0])
        assert np.allclose(real_model.real_variable("x"), [1.0, 2.0])
        assert np.allclose(real_model.real_variable("y"), [3.0])
        assert np.allclose(real_model.from_variables(), [1.0, 2.0, 3.0])

        with pytest.raises(ValueError):
            real_model.to_variables([1.0])


@pytest.mark.unit
@pytest.mark.model
class TestModelAssembly:
    """Tests for the scatter of brick terms into the global system."""

    def test_symmetric_term_is_mirrored(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        real_model.add_fixed_size_variable("y", 2)
        B = np.arange(6.0).reshape(2, 3)
        real_model.add_explicit_matrix("y", "x", B, symmetric=True)
        real_model.assembly()

        K = real_model.real_tangent_matrix().toarray()
        assert np.allclose(K[3:5, 0:3], B)
        assert np.allclose(K[0:3, 3:5], B.T)
        assert np.allclose(K[0:3, 0:3], 0.0)

    def test_non_symmetric_term_is_not_mirrored(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        real_model.add_fixed_size_variable("y", 2)
        B = np.ones((2, 3))
        real_model.add_explicit_matrix("y", "x", B)
        real_model.assembly()

        K = real_model.real_tangent_matrix().toarray()
        assert np.allclose(K[3:5, 0:3], B)
        assert np.allclose(K[0:3, 3:5], 0.0)

    def test_contributions_are_summed(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        real_model.add_explicit_matrix("x", "x", np.eye(2))
        real_model.add_explicit_matrix("x", "x", 2.0 * np.eye(2))
        real_model.add_explicit_rhs("x", [1.0, 1.0])
        real_model.add_explicit_rhs("x", [0.5, 0.0])
        real_model.assembly()

        assert np.allclose(real_model.real_tangent_matrix().toarray(), 3.0 * np.eye(2))
        assert np.allclose(real_model.real_rhs(), [1.5, 1.0])

    def test_matrix_term_on_data_goes_to_rhs(self, real_model):
        """A block on (x, d) contributes -M @ d to the rhs of x."""
        real_model.add_fixed_size_variable("x", 2)
        real_model.add_initialized_fixed_size_data("d", [1.0, 2.0, 3.0])
        M = np.array([[1.0, 0.0, 1.0], [0.0, 2.0, 0.0]])
        real_model.add_explicit_matrix("x", "d", M)
        real_model.assembly()

        assert np.allclose(real_model.real_rhs(), -M @ np.array([1.0, 2.0, 3.0]))
        assert real_model.real_tangent_matrix().nnz == 0

    def test_assembly_is_idempotent(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        real_model.add_fixed_size_variable("y", 2)
        add_counting_brick(real_model)
        real_model.add_explicit_matrix("y", "x", np.ones((2, 3)), symmetric=True)
        real_model.add_explicit_rhs("y", [4.0, 5.0])

        real_model.assembly()
        K1 = real_model.real_tangent_matrix().toarray()
        F1 = real_model.real_rhs().copy()
        real_model.assembly()
        K2 = real_model.real_tangent_matrix().toarray()
        F2 = real_model.real_rhs()

        assert K1.tobytes() == K2.tobytes()
        assert F1.tobytes() == F2.tobytes()

    def test_assembly_versions(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        real_model.add_explicit_matrix("x", "x", np.eye(2))
        real_model.add_explicit_rhs("x", [1.0, 2.0])

        real_model.assembly("rhs")
        assert real_model.real_tangent_matrix().nnz == 0
        assert np.allclose(real_model.real_rhs(), [1.0, 2.0])

        real_model.assembly("matrix")
        assert np.allclose(real_model.real_tangent_matrix().toarray(), np.eye(2))
        with pytest.raises(ValueError):
            real_model.assembly("everything")

    def test_complex_assembly(self, complex_model):
        complex_model.add_fixed_size_variable("x", 2)
        complex_model.add_explicit_matrix("x", "x", 1j * np.eye(2))
        complex_model.add_explicit_rhs("x", [1.0 + 1.0j, 0.0])
        complex_model.assembly()

        assert np.allclose(complex_model.complex_tangent_matrix().toarray(), 1j * np.eye(2))
        assert np.allclose(complex_model.complex_rhs(), [1.0 + 1.0j, 0.0])
        assert complex_model.is_complex()

    def test_solve_assembled_system(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        real_model.add_explicit_matrix("x", "x", 2.0 * np.eye(3), symmetric=True, coercive=True)
        real_model.add_explicit_rhs("x", [2.0, 4.0, 6.0])
        real_model.assembly()

        U = spsolve(real_model.real_tangent_matrix().tocsc(), real_model.real_rhs())
        real_model.to_variables(U)
        assert np.allclose(real_model.real_variable("x"), [1.0, 2.0, 3.0])

    def test_wrong_buffer_shape_fails(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        real_model.add_brick(WrongShapeBrick(), ["x"], [], [TermDescription.matrix("x", "x")])
        with pytest.raises(BrickComputationError):
            real_model.assembly()

    def test_brick_failure_propagates(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        real_model.add_brick(FailingBrick(), ["x"], [], [TermDescription.vector("x")])
        with pytest.raises(BrickComputationError, match="malformed"):
            real_model.assembly()

    def test_unsupported_field_fails(self, complex_model):
        """A real-only brick cannot be assembled in a complex model."""
        complex_model.add_fixed_size_variable("x", 3)
        complex_model.add_brick(IdentityBrick(), ["x"], [], [TermDescription.matrix("x", "x")])
        with pytest.raises(BrickComputationError):
            complex_model.assembly()


@pytest.mark.unit
@pytest.mark.model
class TestModelRecomputation:
    """Tests for version-gated recomputation of bricks."""

    def test_unchanged_brick_is_not_recomputed(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        brick, _ = add_counting_brick(real_model)

        real_model.assembly()
        real_model.assembly()
        assert brick.calls == 1

    def test_written_variable_triggers_recomputation(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        brick, _ = add_counting_brick(real_model)
        real_model.assembly()

        real_model.set_real_variable("x")[:] = [1.0, 2.0, 3.0]
        real_model.assembly()

        assert brick.calls == 2
        assert np.allclose(real_model.real_tangent_matrix().diagonal(), [3.0, 4.0, 5.0])

    def test_unrelated_write_does_not_trigger_recomputation(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        real_model.add_fixed_size_variable("y", 1)
        brick, _ = add_counting_brick(real_model)
        real_model.assembly()

        real_model.set_real_variable("y")[:] = 7.0
        real_model.assembly()
        assert brick.calls == 1

    def test_complex_write_triggers_recomputation(self, complex_model):
        """Only the brick reading the written variable is recomputed."""
        md = complex_model
        md.add_fixed_size_variable("x", 2)
        md.add_fixed_size_variable("y", 1)
        bricks = {}
        for name in ("x", "y"):
            bricks[name] = ComplexCountingBrick()
            md.add_brick(bricks[name], [name], [],
                         [TermDescription.matrix(name, name, True), TermDescription.vector(name)])
        md.assembly()

        md.set_complex_variable("x")[:] = [1.0j, 2.0]
        md.assembly()

        assert bricks["x"].calls == 2
        assert bricks["y"].calls == 1
        assert np.allclose(md.complex_tangent_matrix().diagonal(), [2.0 + 1.0j, 4.0, 2.0])
        assert np.allclose(md.complex_rhs(), [1.0j, 1.0j, 1.0j])

    def test_data_change_triggers_recomputation(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        real_model.add_fixed_size_data("d", 1)
        brick, _ = add_counting_brick(real_model, datanames=["d"])
        real_model.assembly()

        real_model.set_real_variable("d")[:] = 3.0
        real_model.assembly()
        assert brick.calls == 2

    def test_nonlinear_brick_recomputed_every_time(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        brick, _ = add_counting_brick(real_model, is_linear=False)
        real_model.assembly()
        real_model.assembly()
        assert brick.calls == 2
        assert not real_model.is_linear()

    def test_size_resolution_triggers_recomputation(self, real_model):
        real_model.add_fixed_size_variable("x", 3)
        brick, _ = add_counting_brick(real_model)
        real_model.assembly()

        real_model.add_fixed_size_variable("z", 1)
        real_model.assembly()
        assert brick.calls == 2
        assert real_model.real_tangent_matrix().shape == (4, 4)


@pytest.mark.unit
@pytest.mark.model
class TestModelBricks:
    """Tests for brick management."""

    def test_disable_and_enable_brick(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        ib = real_model.add_explicit_matrix("x", "x", np.eye(2))

        real_model.disable_brick(ib)
        real_model.assembly()
        assert real_model.real_tangent_matrix().nnz == 0

        with pytest.warns(UserWarning):
            real_model.disable_brick(ib)

        real_model.enable_brick(ib)
        real_model.assembly()
        assert np.allclose(real_model.real_tangent_matrix().toarray(), np.eye(2))

        with pytest.warns(UserWarning):
            real_model.enable_brick(ib)

    def test_deleted_brick_keeps_indices_stable(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        b0 = real_model.add_explicit_matrix("x", "x", np.eye(2))
        b1 = real_model.add_explicit_rhs("x", [1.0, 1.0])

        real_model.delete_brick(b0)
        b2 = real_model.add_explicit_rhs("x", [1.0, 0.0])

        assert (b0, b1, b2) == (0, 1, 2)
        assert real_model.nb_bricks() == 2
        assert real_model.brick_index() == [1, 2]
        with pytest.raises(UnknownReferenceError):
            real_model.brick(b0)
        with pytest.raises(UnknownReferenceError):
            real_model.enable_brick(b0)

        real_model.assembly()
        assert np.allclose(real_model.real_rhs(), [2.0, 1.0])
        assert real_model.real_tangent_matrix().nnz == 0

    def test_brick_queries(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        real_model.add_fixed_size_data("d", 1)
        brick, ib = add_counting_brick(real_model, datanames=["d"])

        assert real_model.brick(ib) is brick
        assert real_model.varname_of_brick(ib) == ["x"]
        assert real_model.dataname_of_brick(ib) == ["d"]

    def test_add_brick_validation(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        real_model.add_fixed_size_variable("y", 2)
        with pytest.raises(TypeError):
            real_model.add_brick(object(), ["x"], [], [])
        # Term on a name the brick was not given
        with pytest.raises(ValueError):
            real_model.add_brick(IdentityBrick(), ["x"], [], [TermDescription.matrix("x", "y")])
        assert real_model.nb_bricks() == 0

    def test_aggregated_properties(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        assert real_model.is_linear() and real_model.is_symmetric() and real_model.is_coercive()

        ib = real_model.add_explicit_matrix("x", "x", np.eye(2), symmetric=False, coercive=False)
        assert real_model.is_linear()
        assert not real_model.is_symmetric()
        assert not real_model.is_coercive()

        real_model.disable_brick(ib)
        assert real_model.is_symmetric()


@pytest.mark.unit
@pytest.mark.model
class TestModelListings:
    """Tests for listings and reset."""

    def test_listings(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        real_model.add_fixed_size_data("d", 1)
        ib = real_model.add_explicit_matrix("x", "x", np.eye(2))
        real_model.disable_brick(ib)

        listing = real_model.listvar()
        assert "x" in listing and "variable" in listing
        assert "d" in listing and "data" in listing
        bricks = real_model.listbricks()
        assert "Explicit matrix" in bricks
        assert "deactivated" in bricks

    def test_clear(self, real_model):
        real_model.add_fixed_size_variable("x", 2)
        real_model.add_explicit_matrix("x", "x", np.eye(2))
        real_model.assembly()

        real_model.clear()

        assert real_model.nb_dof() == 0
        assert real_model.nb_bricks() == 0
        assert not real_model.variable_exists("x")
        assert real_model.real_tangent_matrix().shape == (0, 0)
        real_model.add_fixed_size_variable("x", 1)
        assert real_model.nb_dof() == 1

    def test_repr(self):
        assert "real" in repr(Model())
        assert "complex" in repr(Model(complex_version=True))
