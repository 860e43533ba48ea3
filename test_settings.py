"""Tests for QSettings-backed application settings."""

import pytest
from PySide6.QtCore import QSettings

from gripdiagram import DiagramSettings, Tool, load_settings, save_settings
from gripdiagram.settings import DATA_FILE_ENV, DEFAULT_DATA_FILE


@pytest.fixture
def qsettings(tmp_path, app, monkeypatch):
    monkeypatch.delenv(DATA_FILE_ENV, raising=False)
    return QSettings(str(tmp_path / "settings.ini"), QSettings.IniFormat)


class TestSettings:
    def test_defaults(self, qsettings):
        settings = load_settings(qsettings)
        assert settings == DiagramSettings()
        assert settings.data_file == DEFAULT_DATA_FILE
        assert settings.default_tool == Tool.SELECT

    def test_round_trip(self, qsettings, tmp_path):
        stored = DiagramSettings(
            data_file=str(tmp_path / "diagrams.json"),
            frame_interval_ms=0,
            minimap_minimized=True,
            minimap_includes_annotations=True,
            default_tool=Tool.PAN,
        )
        save_settings(stored, qsettings)
        assert load_settings(qsettings) == stored

    def test_invalid_values_fall_back(self, qsettings):
        qsettings.setValue("frameIntervalMs", "soon")
        qsettings.setValue("minimapMinimized", "maybe")
        qsettings.setValue("defaultTool", "lasso")
        qsettings.setValue("dataFile", "")
        settings = load_settings(qsettings)
        assert settings.frame_interval_ms == 16
        assert settings.minimap_minimized is False
        assert settings.default_tool == Tool.SELECT
        assert settings.data_file == DEFAULT_DATA_FILE

    def test_negative_frame_interval(self, qsettings):
        qsettings.setValue("frameIntervalMs", -5)
        assert load_settings(qsettings).frame_interval_ms == 16

    def test_environment_overrides_data_file(self, qsettings, tmp_path, monkeypatch):
        qsettings.setValue("dataFile", str(tmp_path / "stored.json"))
        monkeypatch.setenv(DATA_FILE_ENV, str(tmp_path / "override.json"))
        assert load_settings(qsettings).data_file == str(tmp_path / "override.json")
