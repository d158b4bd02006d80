"""Tests for typed environment settings."""

from pathlib import Path

import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    get_available_llm_providers,
    get_environment,
    get_environment_info,
    get_fibo_api_key,
    get_output_dir,
    get_trace_dir,
    list_environment_variables,
)

# =============================================================================
# Resolution and conversion
# =============================================================================


class TestGetEnvironment:
    """Override, environment and default precedence plus type conversion."""

    @pytest.mark.unit
    def test_unset_uses_declared_default(self, monkeypatch):
        monkeypatch.delenv("FIBO_MAX_POLLS", raising=False)
        assert get_environment(EnvVar.FIBO_MAX_POLLS) == 150

    @pytest.mark.unit
    def test_override_beats_environment(self, monkeypatch):
        monkeypatch.setenv("FIBO_MAX_POLLS", "9999")
        assert get_environment(EnvVar.FIBO_MAX_POLLS, override=5) == 5

    @pytest.mark.unit
    def test_int_from_environment(self, monkeypatch):
        monkeypatch.setenv("COMPILER_MAX_ATTEMPTS", "5")
        attempts = get_environment(EnvVar.COMPILER_MAX_ATTEMPTS)
        assert attempts == 5
        assert type(attempts) is int

    @pytest.mark.unit
    def test_float_from_environment(self, monkeypatch):
        monkeypatch.setenv("FIBO_POLL_INTERVAL", "0.5")
        assert get_environment(EnvVar.FIBO_POLL_INTERVAL) == pytest.approx(0.5)

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["true", "1", "YES", "On"])
    def test_truthy_strings(self, monkeypatch, raw):
        monkeypatch.setenv("COMPILER_TWO_PASS", raw)
        assert get_environment(EnvVar.COMPILER_TWO_PASS) is True

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["false", "0", "No", "OFF"])
    def test_falsy_strings(self, monkeypatch, raw):
        monkeypatch.setenv("COMPILER_TWO_PASS", raw)
        assert get_environment(EnvVar.COMPILER_TWO_PASS) is False

    @pytest.mark.unit
    def test_unparseable_bool_keeps_default(self, monkeypatch):
        monkeypatch.setenv("COMPILER_TWO_PASS", "maybe")
        assert get_environment(EnvVar.COMPILER_TWO_PASS) is True

    @pytest.mark.unit
    def test_unparseable_int_keeps_default(self, monkeypatch):
        monkeypatch.setenv("MCP_PORT", "not-a-number")
        assert get_environment(EnvVar.MCP_PORT) == 18080

    @pytest.mark.unit
    def test_path_variable(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TRACE_DIR", str(tmp_path))
        assert get_environment(EnvVar.TRACE_DIR) == tmp_path

    @pytest.mark.unit
    def test_keys_unset_are_none(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert get_environment(EnvVar.OPENAI_API_KEY) is None


class TestRegistry:
    """Declarations and category listing."""

    @pytest.mark.unit
    def test_declaration_fields(self):
        info = get_environment_info(EnvVar.FIBO_API_URL)
        assert info == EnvConfig(
            name="FIBO_API_URL",
            default="https://engine.prod.bria-api.com/v2",
            var_type=str,
            description=info.description,
            category="generation",
        )
        assert info.description

    @pytest.mark.unit
    def test_member_names_match_variables(self):
        """EnvVar[name] lookups rely on this."""
        assert all(var.name == var.value.name for var in EnvVar)

    @pytest.mark.unit
    def test_list_everything(self):
        assert list_environment_variables() == list(EnvVar)

    @pytest.mark.unit
    def test_list_one_category(self):
        generation = list_environment_variables("generation")
        assert EnvVar.FIBO_API_KEY in generation
        assert EnvVar.FIBO_MAX_POLLS in generation
        assert EnvVar.OPENAI_API_KEY not in generation


# =============================================================================
# Tests for convenience functions
# =============================================================================


class TestGetFiboApiKey:
    """Tests for Bria token resolution."""

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("FIBO_API_KEY", "from-env")
        assert get_fibo_api_key("explicit") == "explicit"

    @pytest.mark.unit
    def test_fibo_key_preferred(self, monkeypatch):
        """FIBO_API_KEY wins over BRIA_API_KEY."""
        monkeypatch.setenv("FIBO_API_KEY", "fibo")
        monkeypatch.setenv("BRIA_API_KEY", "bria")
        assert get_fibo_api_key() == "fibo"

    @pytest.mark.unit
    def test_bria_key_fallback(self, monkeypatch):
        """BRIA_API_KEY is used when FIBO_API_KEY is absent."""
        monkeypatch.delenv("FIBO_API_KEY", raising=False)
        monkeypatch.setenv("BRIA_API_KEY", "bria")
        assert get_fibo_api_key() == "bria"

    @pytest.mark.unit
    def test_none_when_unset(self, monkeypatch):
        """None when neither variable is set."""
        monkeypatch.delenv("FIBO_API_KEY", raising=False)
        monkeypatch.delenv("BRIA_API_KEY", raising=False)
        assert get_fibo_api_key() is None


class TestOutputPaths:
    """Tests for trace and output directory resolution."""

    @pytest.mark.unit
    def test_trace_dir_disabled_by_default(self, monkeypatch):
        """Tracing is off unless TRACE_DIR is set."""
        monkeypatch.delenv("TRACE_DIR", raising=False)
        assert get_trace_dir() is None

    @pytest.mark.unit
    def test_trace_dir_string_override(self, tmp_path):
        """Override accepts string paths."""
        assert get_trace_dir(str(tmp_path)) == tmp_path

    @pytest.mark.unit
    def test_output_dir_default(self, monkeypatch):
        """Output directory defaults to ./output."""
        monkeypatch.delenv("OUTPUT_DIR", raising=False)
        assert get_output_dir() == Path("output")


class TestAvailableProviders:
    """Tests for provider discovery by credentials."""

    @pytest.mark.unit
    def test_lists_configured_providers(self, monkeypatch):
        """Only providers with keys are listed."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.setenv("GRADIENT_API_KEY", "do-test")
        assert get_available_llm_providers() == ["openai", "gradient"]
