from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

import easyllm.cli as cli_mod
from easyllm.client import EasyLLM
from easyllm.config import ClientConfig

runner = CliRunner()


def flat(output: str) -> str:
    return " ".join(output.split())


def sse_body(*contents: str) -> bytes:
    frames = [
        "data: " + json.dumps({"id": "c", "choices": [{"index": 0, "delta": {"content": content}}]}) + "\n\n"
        for content in contents
    ]
    return ("".join(frames) + "data: [DONE]\n\n").encode()


def default_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/chat/completions"):
        body = json.loads(request.content)
        if body.get("stream"):
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=sse_body("Hello", " world"))
        return httpx.Response(
            200,
            json={"id": "x", "choices": [{"index": 0, "message": {"role": "assistant", "content": "Buffered reply"}}]},
        )
    if path.endswith("/models"):
        return httpx.Response(200, json={"data": [{"id": "llama4-scout", "owned_by": "llm.vin"}]})
    if path.endswith("/moderations"):
        return httpx.Response(
            200,
            json={
                "results": [
                    {"flagged": False, "categories": {"violence": False}},
                    {"flagged": True, "categories": {"violence": True, "hate": False}},
                ]
            },
        )
    if path.endswith("/images/generations"):
        return httpx.Response(200, json={"data": [{"url": "https://img.example/fox.png"}]})
    return httpx.Response(404, text="Not Found")


@pytest.fixture
def requests_seen(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> list[httpx.Request]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return default_handler(request)

    def build_client(config: ClientConfig) -> EasyLLM:
        return EasyLLM(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    for name in ("API_KEY", "BASE_URL", "PROVIDER", "TIMEOUT", "MAX_RETRIES", "WEB_SEARCH", "MODEL"):
        monkeypatch.delenv(f"EASYLLM_{name}", raising=False)
    monkeypatch.setattr("easyllm.config.DEFAULT_CONFIG_DIR", tmp_path / "home")
    monkeypatch.setattr(cli_mod, "_build_client", build_client)
    monkeypatch.chdir(tmp_path)
    return seen


def test_chat_streams_reply(requests_seen: list[httpx.Request]) -> None:
    result = runner.invoke(cli_mod.app, ["--api-key", "k", "chat", "Say hello"])

    assert result.exit_code == 0, result.output
    assert "Hello world" in result.output
    body = json.loads(requests_seen[0].content)
    assert body["model"] == "llama4-scout"
    assert body["messages"] == [{"role": "user", "content": "Say hello"}]
    assert body["stream"] is True
    assert requests_seen[0].headers["Authorization"] == "Bearer k"


def test_chat_buffered_with_options(requests_seen: list[httpx.Request]) -> None:
    result = runner.invoke(
        cli_mod.app,
        [
            "chat",
            "Question?",
            "--no-stream",
            "--model",
            "gpt-4o-mini",
            "--system",
            "Be brief",
            "--web-search",
            "--temperature",
            "0.5",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Buffered reply" in result.output
    body = json.loads(requests_seen[0].content)
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"][0] == {"role": "system", "content": "Be brief"}
    assert body["webSearch"] is True
    assert body["temperature"] == 0.5
    assert "stream" not in body


def test_chat_attaches_files(requests_seen: list[httpx.Request], tmp_path: Path) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("remember the milk")

    result = runner.invoke(cli_mod.app, ["chat", "Summarize", "--file", str(notes)])

    assert result.exit_code == 0, result.output
    messages = json.loads(requests_seen[0].content)["messages"]
    assert messages[0] == {"role": "file", "content": "remember the milk", "fileName": "notes.txt"}
    assert messages[1]["content"] == "Summarize"


def test_chat_reports_api_errors(requests_seen: list[httpx.Request], monkeypatch: pytest.MonkeyPatch) -> None:
    def build_client(config: ClientConfig) -> EasyLLM:
        transport = httpx.MockTransport(lambda _request: httpx.Response(401, text="Unauthorized"))
        return EasyLLM(config, client=httpx.AsyncClient(transport=transport))

    monkeypatch.setattr(cli_mod, "_build_client", build_client)

    result = runner.invoke(cli_mod.app, ["chat", "hi"])

    assert result.exit_code == 1
    assert "HTTP 401: Unauthorized" in flat(result.output)


def test_models_lists_ids(requests_seen: list[httpx.Request]) -> None:
    result = runner.invoke(cli_mod.app, ["models"])

    assert result.exit_code == 0, result.output
    assert "llama4-scout" in result.output
    assert requests_seen[0].method == "GET"


def test_moderate_prints_verdicts(requests_seen: list[httpx.Request]) -> None:
    result = runner.invoke(cli_mod.app, ["moderate", "nice text", "mean text"])

    assert result.exit_code == 0, result.output
    assert "Text 1: SAFE" in result.output
    assert "Text 2: FLAGGED (violence)" in result.output
    assert json.loads(requests_seen[0].content) == {"input": ["nice text", "mean text"]}


def test_image_prints_urls(requests_seen: list[httpx.Request]) -> None:
    result = runner.invoke(cli_mod.app, ["image", "a fox", "--size", "512x512"])

    assert result.exit_code == 0, result.output
    assert "https://img.example/fox.png" in result.output
    assert json.loads(requests_seen[0].content) == {"prompt": "a fox", "size": "512x512"}


def test_provider_option_routes_to_openai(requests_seen: list[httpx.Request]) -> None:
    result = runner.invoke(cli_mod.app, ["--provider", "openai", "models"])

    assert result.exit_code == 0, result.output
    assert str(requests_seen[0].url) == "https://api.openai.com/v1/models"


def test_config_init_writes_file_without_key(requests_seen: list[httpx.Request], tmp_path: Path) -> None:
    result = runner.invoke(
        cli_mod.app,
        ["--api-key", "secret", "--provider", "custom", "--base-url", "http://localhost:9000/v1", "config", "init"],
    )

    assert result.exit_code == 0, result.output
    assert "configuration saved" in flat(result.output)
    written = (tmp_path / "home" / "config.toml").read_text()
    assert 'base_url = "http://localhost:9000/v1"' in written
    assert "secret" not in written
    assert requests_seen == []


def test_project_config_is_picked_up(requests_seen: list[httpx.Request], tmp_path: Path) -> None:
    project_dir = tmp_path / ".easyllm"
    project_dir.mkdir()
    (project_dir / "config.toml").write_text('provider = "custom"\nbase_url = "http://project.local/v1"\n')

    result = runner.invoke(cli_mod.app, ["models"])

    assert result.exit_code == 0, result.output
    assert str(requests_seen[0].url) == "http://project.local/v1/models"


def test_missing_config_file_exits(requests_seen: list[httpx.Request], tmp_path: Path) -> None:
    result = runner.invoke(cli_mod.app, ["--config", str(tmp_path / "nope.toml"), "models"])

    assert result.exit_code == 1
    assert "not found" in flat(result.output)
    assert requests_seen == []


def test_config_show_masks_key(requests_seen: list[httpx.Request]) -> None:
    result = runner.invoke(cli_mod.app, ["--api-key", "secret", "config", "show"])

    assert result.exit_code == 0, result.output
    assert "api_key: set" in result.output
    assert "secret" not in result.output


def test_version_command_runs() -> None:
    result = runner.invoke(cli_mod.app, ["version"])

    assert result.exit_code == 0
    assert "EasyLLM version" in result.output
