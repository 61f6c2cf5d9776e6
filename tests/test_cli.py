"""Tests for the jgoogle command line."""

import json
from unittest.mock import patch

import pytest
import requests
from click.testing import CliRunner

from jgoogle.accounts import AccountStore
from jgoogle.cli import cli, split_list
from jgoogle.errors import ExitCode

TOKEN_RESPONSE = {"access_token": "AT1", "refresh_token": "RT1", "expires_in": 3599}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def env_store(jgoogle_env):
    return AccountStore(jgoogle_env)


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "jgoogle" in result.output


def test_accounts_list_empty(runner, jgoogle_env):
    result = runner.invoke(cli, ["accounts", "list"])
    assert result.exit_code == ExitCode.SUCCESS
    assert "No accounts configured" in result.output


def test_accounts_list(runner, env_store, make_account):
    env_store.upsert(make_account("b@x.com"))
    env_store.upsert(make_account("a@x.com"))

    result = runner.invoke(cli, ["accounts", "list"])

    assert result.exit_code == 0
    assert result.output.splitlines() == ["b@x.com", "a@x.com"]


def test_accounts_add_manual(runner, jgoogle_env, make_response):
    with patch("requests.post", return_value=make_response(json_data=TOKEN_RESPONSE)) as mock_post:
        result = runner.invoke(cli, ["accounts", "add", "a@x.com", "--manual"], input="CODE123\n")

    assert result.exit_code == 0, result.output
    assert "Account 'a@x.com' added" in result.output
    assert "https://accounts.google.com/" in result.output

    data = mock_post.call_args.kwargs["data"]
    assert data["grant_type"] == "authorization_code"
    assert data["code"] == "CODE123"
    assert data["redirect_uri"] == "urn:ietf:wg:oauth:2.0:oob"

    records = json.loads((jgoogle_env / "accounts.json").read_text())
    assert len(records) == 1
    assert records[0]["email"] == "a@x.com"
    assert records[0]["oauth2"]["clientId"] == "test-client-id"
    assert records[0]["oauth2"]["clientSecret"] == "test-client-secret"
    assert records[0]["oauth2"]["refreshToken"] == "RT1"
    assert records[0]["oauth2"]["accessToken"] == "AT1"


def test_accounts_add_rejected_code(runner, jgoogle_env, make_response):
    rejected = make_response(400, {"error": "invalid_grant", "error_description": "Malformed auth code."})
    with patch("requests.post", return_value=rejected):
        result = runner.invoke(cli, ["accounts", "add", "a@x.com", "--manual"], input="BAD\n")

    assert result.exit_code == ExitCode.AUTH_ERROR
    assert "invalid_grant" in result.output
    assert "jgoogle accounts add a@x.com" in result.output
    assert not (jgoogle_env / "accounts.json").exists()


def test_accounts_add_network_failure(runner, jgoogle_env):
    with patch("requests.post", side_effect=requests.ConnectionError("unreachable")):
        result = runner.invoke(cli, ["accounts", "add", "a@x.com", "--manual"], input="CODE\n")

    assert result.exit_code == ExitCode.NETWORK_ERROR


def test_accounts_add_duplicate(runner, env_store, make_account):
    env_store.upsert(make_account("a@x.com"))

    with patch("requests.post") as mock_post:
        result = runner.invoke(cli, ["accounts", "add", "a@x.com", "--manual"], input="CODE\n")

    assert result.exit_code == ExitCode.INVALID_INPUT
    assert "already exists" in result.output
    mock_post.assert_not_called()


def test_accounts_add_invalid_email(runner, jgoogle_env):
    result = runner.invoke(cli, ["accounts", "add", "not-an-email"])
    assert result.exit_code == ExitCode.INVALID_INPUT


def test_accounts_add_without_client_credentials(runner, jgoogle_env, monkeypatch):
    monkeypatch.delenv("GOOGLE_CLIENT_ID")

    result = runner.invoke(cli, ["accounts", "add", "a@x.com", "--manual"])

    assert result.exit_code == ExitCode.CONFIG_ERROR
    assert "GOOGLE_CLIENT_ID" in result.output


def test_accounts_remove(runner, env_store, make_account):
    env_store.upsert(make_account("a@x.com"))
    env_store.upsert(make_account("b@x.com"))

    result = runner.invoke(cli, ["accounts", "remove", "a@x.com"])

    assert result.exit_code == 0
    assert [a.email for a in AccountStore(env_store.state_dir).list()] == ["b@x.com"]


def test_accounts_remove_unknown(runner, jgoogle_env):
    result = runner.invoke(cli, ["accounts", "remove", "nobody@x.com"])
    assert result.exit_code == ExitCode.INVALID_INPUT
    assert "not found" in result.output


def test_usage_error_exit_code(runner, jgoogle_env):
    result = runner.invoke(cli, ["accounts", "add"])
    assert result.exit_code == ExitCode.INVALID_INPUT


def test_unknown_option_exit_code(runner, jgoogle_env):
    result = runner.invoke(cli, ["--bogus"])
    assert result.exit_code == ExitCode.INVALID_INPUT


def test_invalid_config_exit_code(runner, jgoogle_env, monkeypatch):
    monkeypatch.setenv("JGOOGLE_CALLBACK_TIMEOUT", "soon")
    result = runner.invoke(cli, ["accounts", "list"])
    assert result.exit_code == ExitCode.CONFIG_ERROR


def test_service_command_for_unknown_account(runner, jgoogle_env):
    with patch("requests.request") as mock_req:
        result = runner.invoke(cli, ["nobody@x.com", "drive", "ls"])

    assert result.exit_code == ExitCode.AUTH_ERROR
    assert "jgoogle accounts add nobody@x.com" in result.output
    mock_req.assert_not_called()


def test_service_command_with_revoked_token(runner, env_store, make_account, make_response):
    env_store.upsert(make_account("a@x.com"))

    with patch("requests.post", return_value=make_response(400, {"error": "invalid_grant"})):
        result = runner.invoke(cli, ["a@x.com", "drive", "ls"])

    assert result.exit_code == ExitCode.AUTH_ERROR
    assert env_store.get("a@x.com").oauth2.refresh_token == "RT1"


def test_drive_ls(runner, env_store, make_account, make_response):
    env_store.upsert(make_account("a@x.com", access_token="AT1", valid=True))
    data = {
        "files": [
            {
                "id": "f1",
                "name": "Reports",
                "mimeType": "application/vnd.google-apps.folder",
                "modifiedTime": "2024-03-05T14:30:00.000Z",
            },
            {"id": "f2", "name": "a.txt", "mimeType": "text/plain", "size": "1536"},
        ],
        "nextPageToken": "NEXT",
    }
    with patch("requests.request", return_value=make_response(json_data=data)):
        result = runner.invoke(cli, ["a@x.com", "drive", "ls"])

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "ID\tNAME\tTYPE\tSIZE\tMODIFIED"
    assert lines[1] == "f1\tReports\tfolder\t0 B\t2024-03-05 14:30"
    assert lines[2] == "f2\ta.txt\tfile\t1.5 KB\t"
    assert "# Next page: --page NEXT" in result.output


def test_drive_get_not_found(runner, env_store, make_account, make_response):
    env_store.upsert(make_account("a@x.com", access_token="AT1", valid=True))
    missing = make_response(404, {"error": {"code": 404, "message": "File not found: zz"}})

    with patch("requests.request", return_value=missing):
        result = runner.invoke(cli, ["a@x.com", "drive", "get", "zz"])

    assert result.exit_code == ExitCode.NOT_FOUND
    assert "File not found" in result.output


def test_mail_send(runner, env_store, make_account, make_response):
    env_store.upsert(make_account("a@x.com", access_token="AT1", valid=True))

    with patch("requests.request", return_value=make_response(json_data={"id": "m9"})) as mock_req:
        result = runner.invoke(
            cli,
            ["a@x.com", "mail", "send", "--to", "b@x.com, c@x.com", "--subject", "Hi", "--body", "Hello"],
        )

    assert result.exit_code == 0, result.output
    assert "Sent: m9" in result.output
    assert mock_req.call_args.args[1].endswith("/messages/send")


def test_mail_send_missing_option(runner, env_store, make_account):
    env_store.upsert(make_account("a@x.com", access_token="AT1", valid=True))
    result = runner.invoke(cli, ["a@x.com", "mail", "send", "--to", "b@x.com"])
    assert result.exit_code == ExitCode.INVALID_INPUT


def test_cal_create_requires_title(runner, env_store, make_account):
    env_store.upsert(make_account("a@x.com", access_token="AT1", valid=True))
    result = runner.invoke(cli, ["a@x.com", "cal", "create", "primary", "--start", "x", "--end", "y"])
    assert result.exit_code == ExitCode.INVALID_INPUT


def test_storage_error_exit_code(runner, jgoogle_env):
    jgoogle_env.parent.mkdir(parents=True, exist_ok=True)
    jgoogle_env.write_text("not a directory")

    result = runner.invoke(cli, ["accounts", "list"])

    assert result.exit_code == ExitCode.STORAGE_ERROR


def test_split_list():
    assert split_list(" a@x.com, ,b@x.com ") == ["a@x.com", "b@x.com"]
    assert split_list(None) == []


def test_accounts_add_browser_timeout(runner, jgoogle_env, monkeypatch):
    monkeypatch.setenv("JGOOGLE_CALLBACK_TIMEOUT", "1")

    with patch("jgoogle.flow.webbrowser.open", return_value=True), patch("requests.post") as mock_post:
        result = runner.invoke(cli, ["accounts", "add", "a@x.com"])

    assert result.exit_code == ExitCode.AUTH_ERROR
    assert "timeout" in result.output
    mock_post.assert_not_called()
    assert AccountStore(jgoogle_env).list() == []
    assert not (jgoogle_env / "accounts.json").exists()


def test_drive_download_into_new_directory(runner, env_store, make_account, make_response, tmp_path):
    env_store.upsert(make_account("a@x.com", access_token="AT1", valid=True))
    meta = make_response(json_data={"id": "f1", "name": "report.pdf", "mimeType": "application/pdf"})

    with patch("requests.request", side_effect=[meta, make_response(content=b"%PDF")]):
        result = runner.invoke(cli, ["a@x.com", "drive", "download", "f1", "out/"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "out" / "report.pdf").read_bytes() == b"%PDF"
