from pathlib import Path

from locator.config import LocationConfig, load_settings


def test_defaults_match_documented_timings():
    config = LocationConfig()
    assert config.ttl == 300
    assert config.fix_timeout == 15
    assert config.follower_wait == 20
    assert config.cache_key == "cached_gps_location"
    assert config.default_location.latitude == 18.5204
    assert config.default_location.address.postal_code == "411001"


def test_from_settings_overrides_and_clamps():
    config = LocationConfig.from_settings(
        {
            "location": {"ttl_seconds": 120, "default_ttl_seconds": 600, "store_dir": "/tmp/loc"},
            "default_location": {"latitude": 12.97, "longitude": 77.59, "city": "Bengaluru"},
        }
    )
    assert config.ttl == 120
    assert config.default_ttl == 120
    assert config.store_dir == Path("/tmp/loc")
    assert config.default_location.address.city == "Bengaluru"
    assert config.default_location.address.region == "Maharashtra"


def test_load_settings_reads_toml(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text('[location]\nfix_timeout_seconds = 5\n', encoding="utf-8")
    config = LocationConfig.from_settings(load_settings(path))
    assert config.fix_timeout == 5
    assert config.follower_wait == 20


def test_repository_settings_file_parses():
    settings = load_settings(Path(__file__).resolve().parent.parent / "config" / "settings.toml")
    config = LocationConfig.from_settings(settings)
    assert config.ttl == 300
    assert settings["ipgeo"]["permission"] == "granted"
