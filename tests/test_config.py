"""Tests for explicit compile and simulation configuration."""

import pytest

from blox.config import CompileConfig, SimulationConfig, load_config, METHODS, DEFAULT_SEED
from blox.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "blox.yaml"
    path.write_text(
        "compile:\n"
        "  connection_rule: diffusive\n"
        "  seed: 7\n"
        "simulation:\n"
        "  method: euler\n"
        "  dt: 0.05\n"
    )
    return path


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

class TestCompileConfig:
    def test_defaults(self):
        config = CompileConfig()
        assert config.connection_rule == "basic"
        assert config.seed == DEFAULT_SEED

    def test_rng_is_reproducible(self):
        a = CompileConfig().rng().random(5)
        b = CompileConfig(seed=None).rng().random(5)
        assert list(a) == list(b)
        assert list(CompileConfig(seed=3).rng().random(5)) != list(a)

    def test_unknown_rule(self):
        with pytest.raises(ConfigurationError, match="Unknown connection rule"):
            CompileConfig(connection_rule="wireless")

    def test_frozen(self):
        with pytest.raises(AttributeError):
            CompileConfig().seed = 3


class TestSimulationConfig:
    def test_defaults(self):
        config = SimulationConfig()
        assert config.method == "RK45"
        assert config.method in METHODS

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError, match="Unknown integration method"):
            SimulationConfig(method="verlet")

    def test_non_positive_dt(self):
        with pytest.raises(ConfigurationError):
            SimulationConfig(dt=0.0)

    def test_stepping_options(self):
        options = SimulationConfig(dt=0.1, seed=5).stepping_options()
        assert options["dt"] == 0.1
        assert options["seed"] == 5
        assert "method" not in options


# ---------------------------------------------------------------------------
# YAML files
# ---------------------------------------------------------------------------

class TestLoadConfig:
    def test_both_sections(self, config_file):
        compile_config, simulation_config = load_config(config_file)
        assert compile_config == CompileConfig(connection_rule="diffusive", seed=7)
        assert simulation_config.method == "euler"
        assert simulation_config.dt == 0.05

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == (CompileConfig(), SimulationConfig())

    def test_missing_section_uses_defaults(self, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text("simulation:\n  seed: 1\n")
        compile_config, simulation_config = load_config(str(path))
        assert compile_config == CompileConfig()
        assert simulation_config.seed == 1

    def test_unknown_section(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("plotting:\n  dpi: 300\n")
        with pytest.raises(ConfigurationError, match="sections"):
            load_config(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("compile:\n  rule: basic\n")
        with pytest.raises(ConfigurationError, match="Unknown compile options"):
            load_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("simulation:\n  method: leapfrog\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nowhere.yaml")
