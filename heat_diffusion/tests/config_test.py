"Tests for the heat_diffusion.config module"
import pytest

from heat_diffusion.config import HeatConfig, build_parser, config_from_args
from heat_diffusion.errors import ConfigurationError, HeatDiffusionError


def test_default_diffusion_coefficient():
    """Default constants a=1, dt=1, dd=2 give r = 0.25."""
    config = HeatConfig(size=10, max_time=5, heat_time=2, interval=1)
    assert config.r == 0.25


def test_custom_diffusion_coefficient():
    config = HeatConfig(size=10, max_time=5, heat_time=2, interval=1,
                        a=2.0, dt=0.5, dd=1.0)
    assert config.r == 1.0


@pytest.mark.parametrize("kwargs", [
    dict(size=2, max_time=1, heat_time=1, interval=1),
    dict(size=10, max_time=-1, heat_time=1, interval=1),
    dict(size=10, max_time=1, heat_time=-3, interval=1),
    dict(size=10, max_time=1, heat_time=1, interval=-1),
    dict(size=10, max_time=1, heat_time=1, interval=1, dd=0.0),
])
def test_validate_rejects_bad_values(kwargs):
    with pytest.raises(ConfigurationError) as excinfo:
        HeatConfig(**kwargs).validate()
    assert excinfo.value.phase == "configuration"
    assert isinstance(excinfo.value, HeatDiffusionError)
    assert isinstance(excinfo.value, ValueError)


def test_two_cell_grid_explains_minimum_size():
    with pytest.raises(ConfigurationError, match="interior cell") as excinfo:
        HeatConfig(size=2, max_time=1, heat_time=1, interval=1).validate()
    assert "got 2" in str(excinfo.value)


def test_heat_time_may_exceed_max_time():
    config = HeatConfig(size=10, max_time=5, heat_time=50, interval=0).validate()
    assert config.heat_time == 50


def test_parser_reads_positional_and_options():
    parser = build_parser("test")
    args = parser.parse_args(["12", "100", "40", "10", "--dd", "4", "--output", "x.npz"])
    config = config_from_args(args)

    assert (config.size, config.max_time, config.heat_time, config.interval) == (12, 100, 40, 10)
    assert config.r == pytest.approx(1.0 / 16.0)
    assert args.output == "x.npz"
    assert not args.verbose


def test_parser_rejects_missing_arguments():
    parser = build_parser("test")
    with pytest.raises(SystemExit):
        parser.parse_args(["12", "100"])


def test_parser_rejects_malformed_arguments():
    parser = build_parser("test")
    with pytest.raises(SystemExit):
        parser.parse_args(["twelve", "100", "40", "10"])
