import json
from pathlib import Path

from desktop.assistant_client.config.settings import AppSettings
from desktop.assistant_client.config.store import load_settings, save_settings


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    assert load_settings(tmp_path / "missing.json") == AppSettings()


def test_saved_settings_are_reloaded(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    settings = AppSettings()
    settings.server.base_url = "http://assistant.local:5000"
    settings.voice.backend = "remote"

    save_settings(settings, path)
    loaded = load_settings(path)

    assert loaded.server.base_url == "http://assistant.local:5000"
    assert loaded.voice.backend == "remote"
    assert loaded.preference == settings.preference


def test_unknown_keys_and_bad_json_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        "\ufeff" + json.dumps({"server": {"timeout_sec": 5, "legacy": True}, "preference": {"accent": "British"}}),
        encoding="utf-8",
    )
    loaded = load_settings(path)
    assert loaded.server.timeout_sec == 5
    assert loaded.preference.accent == "British"

    path.write_text("{not json", encoding="utf-8")
    assert load_settings(path) == AppSettings()
