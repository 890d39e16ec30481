"""CLI tests — argument handling and output, HTTP mocked with httpx.MockTransport."""

import json

import httpx
import pytest
from click.testing import CliRunner

from ticktee.cli import main as cli


@pytest.fixture()
def mock_api(monkeypatch):
    """Route the CLI's httpx client to an in-process handler."""
    requests: list[httpx.Request] = []
    responses: dict[tuple[str, str], httpx.Response] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.get(
            (request.method, request.url.path),
            httpx.Response(404, json={"detail": "Not Found"}),
        )

    real_client = httpx.AsyncClient

    def fake_client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(cli.httpx, "AsyncClient", fake_client)
    monkeypatch.setenv("TICKTEE_TOKEN", "test-token")
    return requests, responses


def test_transfer_posts_body(mock_api):
    requests, responses = mock_api
    responses[("POST", "/api/v1/point-transfers")] = httpx.Response(
        201, json={"id": 9, "to_account_id": 2, "points": 200}
    )

    result = CliRunner().invoke(cli.main, ["transfer", "2", "200", "--reason", "gift"])

    assert result.exit_code == 0, result.output
    assert "Sent 200 points to account #2" in result.output
    sent = requests[0]
    assert sent.headers["Authorization"] == "Bearer test-token"
    assert json.loads(sent.content) == {"to_account_id": 2, "points": 200, "reason": "gift"}


def test_api_error_detail_is_shown(mock_api):
    _, responses = mock_api
    responses[("POST", "/api/v1/point-transfers")] = httpx.Response(
        400, json={"detail": "Insufficient points"}
    )

    result = CliRunner().invoke(cli.main, ["transfer", "2", "999999"])

    assert result.exit_code == 1
    assert "Insufficient points" in result.output


def test_balance(mock_api):
    _, responses = mock_api
    responses[("GET", "/api/v1/auth/me")] = httpx.Response(
        200, json={"id": 1, "username": "user", "points": 5000, "is_admin": False}
    )

    result = CliRunner().invoke(cli.main, ["balance"])

    assert result.exit_code == 0
    assert result.output.strip() == "5000"


def test_requires_token(mock_api, monkeypatch):
    monkeypatch.delenv("TICKTEE_TOKEN")

    result = CliRunner().invoke(cli.main, ["me"])

    assert result.exit_code == 1
    assert "not logged in" in result.output


def test_ws_url_follows_api_url(monkeypatch):
    monkeypatch.setattr(cli.settings, "api_url", "https://points.example.org/")
    assert cli._ws_url("abc") == "wss://points.example.org/ws?token=abc"
    assert cli._ws_url(None) == "wss://points.example.org/ws"
