"""
Tests for scripts/admin_auth.py

Covers the three subcommands (token, verify, basic) in plain and ``--json``
output modes, and their exit codes.  ``load_settings`` is patched so the
script never reads the real environment.
"""

import argparse
import base64
import json

import pytest

from gastronomique.auth import issue_token, verify_token
from gastronomique.config import Settings
from scripts import admin_auth
from scripts.admin_auth import cmd_basic, cmd_token, cmd_verify
from tests.conftest import ADMIN_PASSWORD, ADMIN_USERNAME


@pytest.fixture
def use_settings(monkeypatch, settings):
    """Point the script at the given settings (defaults to the test settings)."""

    def _use(value=settings):
        monkeypatch.setattr(admin_auth, "load_settings", lambda: value)
        return value

    _use()
    return _use


def _args(as_json=False, **extra):
    return argparse.Namespace(json=as_json, **extra)


# ---------------------------------------------------------------------------
# token
# ---------------------------------------------------------------------------


class TestCmdToken:
    def test_plain_output_is_cookie_pair(self, use_settings, settings, capsys):
        assert cmd_token(_args()) == 0

        name, _, token = capsys.readouterr().out.strip().partition("=")
        assert name == "admin_session"
        assert verify_token(settings, token).subject == ADMIN_USERNAME

    def test_json_output(self, use_settings, settings, capsys):
        assert cmd_token(_args(as_json=True)) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["cookie"] == "admin_session"
        assert verify_token(settings, data["token"]) is not None

    def test_empty_secret_fails(self, use_settings, capsys):
        use_settings(
            Settings(admin_username=ADMIN_USERNAME, admin_password=ADMIN_PASSWORD, secret_key="")
        )

        assert cmd_token(_args()) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "secret" in captured.err


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------


class TestCmdVerify:
    def test_valid_token_plain(self, use_settings, settings, capsys):
        token = issue_token(settings, ADMIN_USERNAME)

        assert cmd_verify(_args(token=token)) == 0
        out = capsys.readouterr().out
        assert f"Valid token for '{ADMIN_USERNAME}'" in out
        assert "expires:" in out

    def test_valid_token_json(self, use_settings, settings, capsys):
        token = issue_token(settings, ADMIN_USERNAME, now=2_000_000_000)

        assert cmd_verify(_args(as_json=True, token=token)) == 0
        assert json.loads(capsys.readouterr().out) == {
            "valid": True,
            "subject": ADMIN_USERNAME,
            "issued_at": 2_000_000_000,
            "expires_at": 2_000_000_000 + settings.session_max_age,
        }

    def test_invalid_token_plain(self, use_settings, capsys):
        assert cmd_verify(_args(token="not-a-token")) == 1
        assert "invalid or expired" in capsys.readouterr().out

    def test_invalid_token_json(self, use_settings, capsys):
        assert cmd_verify(_args(as_json=True, token="not-a-token")) == 1
        assert json.loads(capsys.readouterr().out) == {"valid": False}

    def test_token_from_other_secret(self, use_settings, other_secret_settings, capsys):
        token = issue_token(other_secret_settings, ADMIN_USERNAME)
        assert cmd_verify(_args(as_json=True, token=token)) == 1
        assert json.loads(capsys.readouterr().out) == {"valid": False}

    def test_expired_token(self, use_settings, settings, capsys):
        token = issue_token(settings, ADMIN_USERNAME, now=1_000_000)
        assert cmd_verify(_args(token=token)) == 1


# ---------------------------------------------------------------------------
# basic
# ---------------------------------------------------------------------------


class TestCmdBasic:
    def _expected(self):
        raw = f"{ADMIN_USERNAME}:{ADMIN_PASSWORD}".encode("utf-8")
        return "Basic " + base64.b64encode(raw).decode("ascii")

    def test_plain_output(self, use_settings, capsys):
        assert cmd_basic(_args()) == 0
        assert capsys.readouterr().out.strip() == f"Authorization: {self._expected()}"

    def test_json_output(self, use_settings, capsys):
        assert cmd_basic(_args(as_json=True)) == 0
        assert json.loads(capsys.readouterr().out) == {"Authorization": self._expected()}


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


class TestMain:
    def test_dispatches_subcommand(self, use_settings, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["admin_auth.py", "--json", "basic"])
        assert admin_auth.main() == 0
        assert "Authorization" in json.loads(capsys.readouterr().out)

    def test_subcommand_required(self, monkeypatch):
        monkeypatch.setattr("sys.argv", ["admin_auth.py"])
        with pytest.raises(SystemExit):
            admin_auth.main()
