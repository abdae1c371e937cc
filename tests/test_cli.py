"""Tests for the command-line entry point and configuration."""

import json

from tijarati.__main__ import main
from tijarati.config import get_settings, validate_all_settings


class TestSettings:

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("TIJARATI_REMINDER_MIN_LEAD_SECONDS", "30")
        monkeypatch.setenv("TIJARATI_GEMINI_MODEL_NAME", "  ")
        settings = get_settings()
        assert settings.reminders.min_lead_seconds == 30
        assert settings.gemini.model_name == "gemini-2.5-flash"

    def test_blank_api_key_is_unset(self, monkeypatch):
        monkeypatch.setenv("TIJARATI_GEMINI_API_KEY", "   ")
        assert get_settings().gemini.api_key is None

    def test_validate_all_settings_reports_errors(self, monkeypatch):
        monkeypatch.setenv("TIJARATI_SECURITY_MIN_PIN_LENGTH", "2")
        status = validate_all_settings()
        assert status["store"] is True
        assert status["security"] is False
        assert "security_error" in status


class TestCommands:
    """Each command opens the configured store and closes it again."""

    def test_clear_requires_confirmation(self, capsys):
        assert main(["clear"]) == 2
        assert "--yes" in capsys.readouterr().err

    def test_import_then_export(self, tmp_path):
        source = tmp_path / "in.json"
        source.write_text(json.dumps({
            "transactions": [{"id": "t1", "item": "bread", "amount": 3}],
            "partners": [{"id": 2, "name": "Sara"}],
        }), encoding="utf-8")
        target = tmp_path / "out.json"

        assert main(["import", str(source)]) == 0
        assert main(["export", str(target)]) == 0

        exported = json.loads(target.read_text(encoding="utf-8"))
        assert [tx["item"] for tx in exported["transactions"]] == ["bread"]
        assert exported["partners"][0]["id"] == 2

    def test_clear(self, tmp_path, capsys):
        source = tmp_path / "in.json"
        source.write_text(json.dumps({"transactions": [{"id": "t1"}]}), encoding="utf-8")
        main(["import", str(source)])

        assert main(["clear", "--yes"]) == 0
        capsys.readouterr()
        assert main(["export", "-"]) == 0
        out = capsys.readouterr().out
        assert json.loads(out) == {"transactions": [], "partners": []}

    def test_import_invalid_json(self, tmp_path, capsys):
        source = tmp_path / "in.json"
        source.write_text("{nope", encoding="utf-8")
        assert main(["import", str(source)]) == 1
        assert "Invalid snapshot JSON" in capsys.readouterr().err

    def test_import_non_object(self, tmp_path, capsys):
        source = tmp_path / "in.json"
        source.write_text("[]", encoding="utf-8")
        assert main(["import", str(source)]) == 1
        assert "Snapshot must be an object" in capsys.readouterr().err
