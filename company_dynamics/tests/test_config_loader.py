"""Tests for the YAML configuration loader."""

from pydantic import ValidationError
import pytest
import yaml

from company_dynamics.config_loader import CompanyConfigLoader, apply_overrides, load_config
from company_dynamics.exceptions import ConfigurationError


@pytest.fixture
def config_dir(tmp_path, mature_config_data):
    """Directory with a single-company file and a multi-company file."""
    single = mature_config_data()
    (tmp_path / "acme.yaml").write_text(yaml.safe_dump(single))

    second = mature_config_data(id="globex")
    second["static"]["name"] = "Globex"
    multi = {
        "_notes": "ignored",
        "companies": [single, second],
        "macro_events": [{"id": "crash", "chance": 0.5, "impact_days": [100, 200]}],
    }
    (tmp_path / "market.yaml").write_text(yaml.safe_dump(multi))
    return tmp_path


class TestApplyOverrides:
    def test_dot_notation(self):
        data = {"finance": {"starting_cash_usd": 1}}
        apply_overrides(data, {"finance.starting_cash_usd": 5, "costs.opex_fixed_usd": 2, "id": "x"})

        assert data == {
            "finance": {"starting_cash_usd": 5},
            "costs": {"opex_fixed_usd": 2},
            "id": "x",
        }

    def test_replaces_null_sections(self):
        data = {"finance": None}
        apply_overrides(data, {"finance.starting_debt_usd": 3})
        assert data == {"finance": {"starting_debt_usd": 3}}


class TestCompanyConfigLoader:
    """Test loading, caching and error reporting."""

    def test_load_single(self, config_dir):
        loader = CompanyConfigLoader(config_dir)
        config = loader.load("acme")

        assert config.id == "acme"
        assert config.static.sector == "Retail"

    def test_load_with_overrides(self, config_dir):
        loader = CompanyConfigLoader(config_dir)
        config = loader.load("acme", overrides={"finance.starting_cash_usd": 5e6})

        assert config.finance.starting_cash_usd == 5e6

    def test_cache(self, config_dir):
        loader = CompanyConfigLoader(config_dir)

        first = loader.load("acme")
        assert loader.load("acme") is first
        assert loader.load("acme", overrides={"id": "other"}) is not first

        loader.clear_cache()
        assert loader.load("acme") is not first

    def test_missing_file(self, config_dir):
        with pytest.raises(FileNotFoundError):
            CompanyConfigLoader(config_dir).load("nope")

    def test_invalid_single_raises_validation_error(self, config_dir):
        loader = CompanyConfigLoader(config_dir)
        with pytest.raises(ValidationError):
            loader.load("acme", overrides={"finance.starting_cash_usd": -1})

    def test_unparseable_yaml(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("companies: [unclosed\n")

        with pytest.raises(ConfigurationError, match="could not parse"):
            CompanyConfigLoader(tmp_path).read_raw("broken")

    def test_non_mapping(self, tmp_path):
        (tmp_path / "list.yaml").write_text("- 1\n- 2\n")

        with pytest.raises(ConfigurationError, match="expected a mapping"):
            CompanyConfigLoader(tmp_path).read_raw("list")

    def test_reserved_keys_are_stripped(self, config_dir):
        raw = CompanyConfigLoader(config_dir).read_raw("market")
        assert "_notes" not in raw

    def test_load_companies(self, config_dir):
        configs = CompanyConfigLoader(config_dir).load_companies("market")
        assert [c.id for c in configs] == ["acme", "globex"]

    def test_load_companies_overrides_each(self, config_dir):
        configs = CompanyConfigLoader(config_dir).load_companies(
            "market", overrides={"finance.interest_rate_annual": 0.09}
        )
        assert {c.finance.interest_rate_annual for c in configs} == {0.09}

    def test_issues_are_collected(self, tmp_path, mature_config_data):
        bad = mature_config_data(id="bad", **{"finance.starting_cash_usd": -5})
        dup = mature_config_data()
        data = {"companies": [mature_config_data(), bad, dup, "oops"]}
        (tmp_path / "broken.yaml").write_text(yaml.safe_dump(data))

        with pytest.raises(ConfigurationError) as exc_info:
            CompanyConfigLoader(tmp_path).load_companies("broken")

        issues = exc_info.value.issues
        assert len(issues) == 3
        assert any("companies[1] (bad)" in issue for issue in issues)
        assert any("duplicate company id 'acme'" in issue for issue in issues)
        assert any("companies[3]: expected a mapping" in issue for issue in issues)
        assert "3 critical issues" in str(exc_info.value)

    def test_missing_companies_list(self, config_dir):
        with pytest.raises(ConfigurationError, match="missing 'companies'"):
            CompanyConfigLoader(config_dir).load_companies("acme")

    def test_load_macro_events(self, config_dir):
        events = CompanyConfigLoader(config_dir).load_macro_events("market")

        assert [e.id for e in events] == ["crash"]
        assert events[0].impact_days.max == 200

    def test_invalid_macro_event(self, tmp_path):
        (tmp_path / "macro.yaml").write_text(yaml.safe_dump({"macro_events": [{"id": "x", "chance": 2}]}))

        with pytest.raises(ConfigurationError, match="macro_events\\[0\\]"):
            CompanyConfigLoader(tmp_path).load_macro_events("macro")

    def test_list_available_configs(self, config_dir):
        assert CompanyConfigLoader(config_dir).list_available_configs() == ["acme", "market"]


class TestBundledParameters:
    """Test the sample files shipped with the package."""

    def test_sample_companies(self, parameters_dir):
        loader = CompanyConfigLoader(parameters_dir)
        configs = loader.load_companies("sample_companies")

        by_id = {c.id: c for c in configs}
        assert set(by_id) == {"northwind_grocers", "helix_therapeutics", "lumen_cloud"}
        assert by_id["northwind_grocers"].base_business.multiple_curve.terminal_pe_ratio == 16
        assert len(by_id["helix_therapeutics"].pipeline[0].stages) == 3
        assert by_id["lumen_cloud"].archetype == "hypergrowth"

    def test_sample_macro_events(self, parameters_dir):
        events = CompanyConfigLoader(parameters_dir).load_macro_events("sample_companies")
        assert events[0].id == "credit_crunch"
        assert events[0].sector_impacts[0].sector == "Retail"

    def test_default_directory(self):
        assert "sample_companies" in CompanyConfigLoader().list_available_configs()

    def test_load_config_helper_rejects_multi_company_file(self):
        with pytest.raises(ValidationError):
            load_config("sample_companies")
