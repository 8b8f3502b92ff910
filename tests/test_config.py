"""Tests for configuration and secrets loading."""

import json
import subprocess
from unittest.mock import patch

import pytest

from eisenbox.config import load_email_accounts
from eisenbox.secrets import load_dotenv_file, load_secrets, with_env_overrides


class TestLoadEmailAccounts:
    def test_missing_file(self, tmp_path):
        assert load_email_accounts(tmp_path / "accounts.json") == []

    def test_list_of_accounts(self, tmp_path):
        path = tmp_path / "accounts.json"
        path.write_text(json.dumps([{"name": "a", "email": "a@example.com"}]))
        assert load_email_accounts(path)[0]["email"] == "a@example.com"

    def test_non_list_rejected(self, tmp_path):
        path = tmp_path / "accounts.json"
        path.write_text(json.dumps({"name": "a"}))
        with pytest.raises(ValueError, match="JSON list"):
            load_email_accounts(path)


class TestSecrets:
    def test_dotenv_file(self, tmp_path):
        path = tmp_path / "internal.env"
        path.write_text("OLLAMA_MODEL=qwen2.5\nTHROTTLE_SECONDS=2\n")
        assert load_dotenv_file(path) == {"OLLAMA_MODEL": "qwen2.5", "THROTTLE_SECONDS": "2"}

    def test_missing_dotenv_file(self, tmp_path):
        assert load_dotenv_file(tmp_path / "nope.env") == {}

    def test_env_overrides_named_keys_only(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_MODEL", "llama3")
        monkeypatch.setenv("UNRELATED", "x")
        merged = with_env_overrides({"OLLAMA_MODEL": "qwen2.5"}, ["OLLAMA_MODEL", "POLICY_PATH"])
        assert merged["OLLAMA_MODEL"] == "llama3"
        assert "UNRELATED" not in merged

    def test_sops_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_secrets(tmp_path / "internal.env.enc")

    def test_sops_decrypts(self, tmp_path):
        path = tmp_path / "internal.env.enc"
        path.write_text("encrypted")
        completed = subprocess.CompletedProcess(
            args=["sops"], returncode=0, stdout="OLLAMA_BASE_URL=http://gpu:11434\n", stderr=""
        )
        with patch("eisenbox.secrets.subprocess.run", return_value=completed) as mock_run:
            values = load_secrets(path)
        assert values == {"OLLAMA_BASE_URL": "http://gpu:11434"}
        assert mock_run.call_args.args[0] == ["sops", "--decrypt", str(path)]
