"""UserConfig accepts forgiving input and normalizes it."""

import pytest
from pydantic import ValidationError

from hexrollup.schemas import UserConfig

pytestmark = pytest.mark.unit


def test_aliases_and_field_names_both_accepted():
    assert UserConfig(SOURCE_DB="/a.db").source_db == "/a.db"
    assert UserConfig(source_db="/a.db").source_db == "/a.db"


def test_unknown_keys_ignored():
    cfg = UserConfig(SOURCE_DB="/a.db", MAP_THEME="dark")
    assert cfg.to_internal_overrides() == {"source": {"db_path": "/a.db"}}


def test_empty_user_config_has_no_overrides():
    assert UserConfig().to_internal_overrides() == {}


def test_invalid_point_policy_normalized():
    cfg = UserConfig(INVALID_POINT_POLICY=" FAIL_FAST ")
    assert cfg.to_internal_overrides()["aggregator"] == {"invalid_point_policy": "fail_fast"}


def test_invalid_point_policy_checked():
    with pytest.raises(ValidationError):
        UserConfig(INVALID_POINT_POLICY="ignore")


def test_rollup_to_scalar_becomes_list():
    assert UserConfig(ROLLUP_TO=2).rollup_to == [2]


def test_partial_levels_filled_with_defaults():
    overrides = UserConfig(LEVELS=[{"resolution": 6}]).to_internal_overrides()
    (level,) = overrides["levels"]
    assert level == {
        "resolution": 6,
        "region": None,
        "policy": "max_merge",
        "exclusion": {"min_visits": None, "require_last_visit": False},
    }


def test_flat_alias_and_nested_section_merge():
    cfg = UserConfig(STORE_DB="cells.db", store={"timeout_sec": 5.0})
    assert cfg.to_internal_overrides()["store"] == {"db_filename": "cells.db", "timeout_sec": 5.0}


def test_plot_and_export_switches():
    overrides = UserConfig(PLOTS=False, EXPORT_GEOJSON=False, EXPORT_JSON=True).to_internal_overrides()
    assert overrides["visualization"] == {"enabled": False}
    assert overrides["export"] == {"write_geojson": False, "write_json": True}


def test_nested_section_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        UserConfig(store={"bogus": 1})
