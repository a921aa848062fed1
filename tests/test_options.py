"""Tests for SolverOptions validation and parsing."""

import math

import pytest

from daejax.errors import ConfigurationError, OrderOutOfRange
from daejax.options import SolverOptions


class TestDefaults:
    def test_defaults(self):
        opts = SolverOptions()
        assert opts.max_order == 6
        assert opts.step_decrease_factor_bounds == (0.2, 5.0)
        assert opts.step_increase_threshold == 0.5
        assert opts.newton_consecutive == 1
        assert opts.max_step == math.inf
        assert opts.linear_solver == "jax"
        assert opts.start_time == 0.0


class TestValidation:
    """Invalid values raise on construction and on assignment."""

    @pytest.mark.parametrize("order", [0, 7, -1])
    def test_order_out_of_range(self, order):
        with pytest.raises(OrderOutOfRange):
            SolverOptions(max_order=order)
        opts = SolverOptions()
        with pytest.raises(OrderOutOfRange):
            opts.max_order = order

    def test_order_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            SolverOptions(max_order=9)

    @pytest.mark.parametrize(
        "name,value",
        [
            ("initial_step", 0.0),
            ("min_step", -1.0),
            ("abs_tolerance", -1e-6),
            ("max_newton_iterations", 0),
            ("newton_tolerance", 0.0),
            ("step_increase_threshold", 1.5),
            ("step_decrease_factor_bounds", (1.2, 5.0)),
            ("step_decrease_factor_bounds", (0.2, 0.9)),
            ("newton_failure_factor", 1.0),
            ("max_step_retries", 0),
            ("linear_solver", "cholmod"),
            ("verbosity", -1),
            ("jacobian_tolerance", 0.0),
        ],
    )
    def test_invalid_values(self, name, value):
        with pytest.raises(ConfigurationError):
            SolverOptions(**{name: value})

    def test_cross_field(self):
        with pytest.raises(ConfigurationError, match="min_step"):
            SolverOptions(min_step=1.0, max_step=0.5)
        with pytest.raises(ConfigurationError, match="initial_step"):
            SolverOptions(initial_step=1e-14)
        with pytest.raises(ConfigurationError, match="both be zero"):
            SolverOptions(abs_tolerance=0.0, rel_tolerance=0.0)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            SolverOptions(linear_solver="nope")


class TestParsing:
    """String values from the CLI are converted to the field type."""

    def test_set_converts_types(self):
        opts = SolverOptions()
        opts.set("max_order", "3")
        opts.set("rel_tolerance", "1e-8")
        opts.set("refactor_every_iteration", "false")
        opts.set("step_decrease_factor_bounds", "0.1,4")
        opts.set("linear_solver", "'scipy'")
        opts.set("jacobian_tolerance", "1e-10")
        assert opts.max_order == 3
        assert opts.rel_tolerance == 1e-8
        assert opts.refactor_every_iteration is False
        assert opts.step_decrease_factor_bounds == (0.1, 4.0)
        assert opts.linear_solver == "scipy"
        assert opts.jacobian_tolerance == 1e-10
        opts.set("jacobian_tolerance", "none")
        assert opts.jacobian_tolerance is None

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError, match="Unknown option"):
            SolverOptions().set("dt_init", "1e-6")

    def test_unparseable(self):
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            SolverOptions().set("max_step", "large")

    def test_update_from_dict(self):
        opts = SolverOptions()
        opts.update_from_dict({"initial_step": "1e-6", "max_order": 5})
        assert opts.initial_step == 1e-6
        assert opts.max_order == 5

    def test_update_from_dict_lenient(self, caplog):
        opts = SolverOptions()
        opts.update_from_dict({"unknown": 1, "max_order": 2}, strict=False)
        assert opts.max_order == 2
        assert "Ignoring unknown option" in caplog.text


class TestCopy:
    def test_copy_is_independent(self):
        opts = SolverOptions(max_order=4)
        clone = opts.copy()
        clone.max_order = 2
        assert opts.max_order == 4

    def test_to_dict_round_trip(self):
        opts = SolverOptions(initial_step=1e-5, linear_solver="dense")
        assert SolverOptions(**opts.to_dict()).to_dict() == opts.to_dict()
