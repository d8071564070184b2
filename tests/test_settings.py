import pytest

from services.stop_planner.app import deps


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAPBOX_ACCESS_TOKEN", "pk.env")
    monkeypatch.setenv("OPTIMIZATION_PROFILE", "mapbox/driving-traffic")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = deps.Settings()

    assert settings.mapbox_access_token == "pk.env"
    assert settings.optimization_profile == "mapbox/driving-traffic"
    assert settings.optimization_max_coordinates == 12
    assert settings.log_level == "DEBUG"


def test_subclass_overrides_without_annotations() -> None:
    class TestSettings(deps.Settings):
        mapbox_access_token = "pk.test"
        geocoding_limit = 3

    settings = TestSettings()

    assert settings.mapbox_access_token == "pk.test"
    assert settings.geocoding_limit == 3
