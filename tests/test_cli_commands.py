"""
CLI tests for ``mpipe`` and ``mpask``.

Entry points are called in-process (``main(argv)`` / ``ask_main(argv)``) and
assertions are made on captured stdout/stderr and the returned exit code.
Nothing here talks to a real provider: requests are either dry runs or go
through an ``httpx.MockTransport``.
"""

import io
import json

import httpx
import pytest

from mpipe.cli import app
from mpipe.cli.app import ask_main, main, run_pipeline
from mpipe.clients import OpenAIAdapter
from mpipe.core.options import CliOptions, ConfigResolver

MODEL = "gpt-4o-mini"

PROFILES = """
[profiles.work]
provider = "fireworks"
model = "accounts/fireworks/models/kimi-k2-instruct-0905"
temperature = 0.4
output = "json"

[profiles.broken]
model = "m"
provider = "unknown"

[profiles.badoutput]
model = "m"
output = "yaml"
"""

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def dry_run(capsys, *args: str) -> dict:
    """Run ``mpask --dry-run`` and return the parsed stdout payload."""
    code = ask_main(["--dry-run", *args])
    out = capsys.readouterr().out
    assert code == 0, out
    assert out.count("\n") == 1
    return json.loads(out)


def mock_adapter(*responses: httpx.Response) -> OpenAIAdapter:
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        return queue.pop(0)

    return OpenAIAdapter(http_client_factory=lambda: httpx.Client(transport=httpx.MockTransport(handler)))


def completion(content, usage=None) -> httpx.Response:
    body = {
        "id": "chatcmpl-cli",
        "object": "chat.completion",
        "created": 0,
        "model": MODEL,
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
    }
    if usage is not None:
        body["usage"] = usage
    return httpx.Response(200, json=body)


# ---------------------------------------------------------------------------
# Dry run and prompt selection
# ---------------------------------------------------------------------------


class TestDryRun:
    def test_works_without_api_key(self, capsys):
        payload = dry_run(capsys, "--model", MODEL, "2+2?")

        assert payload["dry_run"] is True
        assert payload["provider"] == "openai"
        assert payload["endpoint"] == "https://api.openai.com/v1/chat/completions"
        assert payload["model"] == MODEL
        assert payload["messages"] == [{"role": "user", "content": "2+2?"}]
        assert payload["authorization"] == "Bearer ***REDACTED***"

    def test_key_is_never_printed(self, capsys, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-very-secret")
        code = ask_main(["--dry-run", "--verbose", "--model", MODEL, "hi"])
        captured = capsys.readouterr()

        assert code == 0
        assert "sk-very-secret" not in captured.out
        assert "sk-very-secret" not in captured.err
        assert "api_key_present=true" in captured.err

    def test_argument_wins_over_stdin(self, capsys, monkeypatch, exploding_stdin):
        monkeypatch.setattr("sys.stdin", exploding_stdin)
        payload = dry_run(capsys, "--model", MODEL, "from argument")
        assert payload["messages"][-1]["content"] == "from argument"

    def test_prompt_from_stdin(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("  from stdin \n"))
        payload = dry_run(capsys, "--model", MODEL)
        assert payload["messages"][-1]["content"] == "from stdin"

    def test_prompt_segments_and_system(self, capsys):
        payload = dry_run(
            capsys,
            "--model", MODEL,
            "--system", "Be terse.",
            "--prompt", "Context:",
            "--postprompt", "Answer in one word.",
            "2+2?",
        )
        assert payload["messages"] == [
            {"role": "system", "content": "Be terse."},
            {"role": "user", "content": "Context:\n\n2+2?\n\nAnswer in one word."},
        ]

    def test_request_echo_and_output(self, capsys):
        payload = dry_run(capsys, "--model", MODEL, "--json", "--temperature", "0", "--retries", "2", "hi")

        assert payload["output"] == "json"
        assert payload["request"] == {
            "temperature": 0.0,
            "max_tokens": None,
            "timeout_secs": None,
            "retries": 2,
            "retry_delay_ms": 500,
        }

    def test_show_usage_marker(self, capsys):
        code = ask_main(["--dry-run", "--show-usage", "--model", MODEL, "hi"])
        captured = capsys.readouterr()
        assert code == 0
        assert "usage: unavailable latency_ms=0 (dry-run)" in captured.err

    def test_mpipe_ask_subcommand(self, capsys):
        code = main(["ask", "--dry-run", "--provider", "fireworks", "--model", "kimi", "hi"])
        payload = json.loads(capsys.readouterr().out)
        assert code == 0
        assert payload["provider"] == "fireworks"
        assert payload["endpoint"] == "https://api.fireworks.ai/inference/v1/chat/completions"


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class TestConfigErrors:
    def test_missing_model(self, capsys):
        code = ask_main(["--dry-run", "hi"])
        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert "Error: No model provided. Use --model or set MP_MODEL." in captured.err

    def test_missing_api_key(self, capsys):
        code = ask_main(["--model", MODEL, "hi"])
        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert "OPENAI_API_KEY is not set in the environment" in captured.err

    def test_verbose_runs_before_key_check(self, capsys):
        code = ask_main(["--verbose", "--model", MODEL, "hi"])
        captured = capsys.readouterr()

        assert code == 1
        assert captured.out == ""
        verbose_at = captured.err.index("verbose: provider=openai")
        error_at = captured.err.index("Error: OPENAI_API_KEY is not set in the environment")
        assert verbose_at < error_at
        assert "api_key_present=false" in captured.err

    def test_undecodable_stdin(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(b"\xff"), encoding="utf-8"))
        code = ask_main(["--dry-run", "--model", MODEL])
        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert "Error: Failed to read stdin" in captured.err

    def test_no_prompt_on_terminal(self, capsys, monkeypatch, tty_stdin):
        monkeypatch.setattr("sys.stdin", tty_stdin)
        code = ask_main(["--dry-run", "--model", MODEL])
        assert code == 1
        assert "No prompt provided" in capsys.readouterr().err

    def test_out_of_range_temperature(self, capsys):
        code = ask_main(["--dry-run", "--model", MODEL, "--temperature", "3", "hi"])
        assert code == 1
        assert "Invalid temperature 3.0" in capsys.readouterr().err

    def test_invalid_env_provider(self, capsys, monkeypatch):
        monkeypatch.setenv("MP_PROVIDER", "bogus")
        code = ask_main(["--dry-run", "--model", MODEL, "hi"])
        assert code == 1
        assert "Invalid MP_PROVIDER 'bogus'" in capsys.readouterr().err

    def test_unknown_cli_provider_is_a_usage_error(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            ask_main(["--provider", "bogus", "--model", MODEL, "hi"])
        assert excinfo.value.code == 2


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestProfiles:
    @pytest.fixture(autouse=True)
    def profile_file(self, write_config, monkeypatch):
        path = write_config(PROFILES)
        monkeypatch.setenv("MP_CONFIG", str(path))
        return path

    def test_profile_values_apply(self, capsys):
        payload = dry_run(capsys, "--profile", "work", "hi")

        assert payload["provider"] == "fireworks"
        assert payload["model"] == "accounts/fireworks/models/kimi-k2-instruct-0905"
        assert payload["request"]["temperature"] == 0.4
        assert payload["output"] == "json"

    def test_cli_and_env_beat_profile(self, capsys, monkeypatch):
        monkeypatch.setenv("MP_TEMPERATURE", "0.9")
        payload = dry_run(capsys, "--profile", "work", "--model", "override", "--output", "text", "hi")

        assert payload["model"] == "override"
        assert payload["request"]["temperature"] == 0.9
        assert payload["output"] == "text"

    def test_profile_not_used_without_flag(self, capsys):
        code = ask_main(["--dry-run", "hi"])
        assert code == 1
        assert "No model provided" in capsys.readouterr().err

    def test_invalid_profile_provider(self, capsys):
        code = ask_main(["--dry-run", "--profile", "broken", "hi"])
        assert code == 1
        assert "Invalid profile provider 'unknown'. Supported values: openai, fireworks." in capsys.readouterr().err

    def test_invalid_profile_output(self, capsys):
        code = ask_main(["--dry-run", "--profile", "badoutput", "hi"])
        assert code == 1
        assert "Invalid profile output 'yaml'" in capsys.readouterr().err

    def test_unknown_profile(self, capsys):
        code = ask_main(["--dry-run", "--profile", "missing", "hi"])
        assert code == 1
        assert "Profile 'missing' not found" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# config check
# ---------------------------------------------------------------------------


class TestConfigCheck:
    def test_valid_profile(self, capsys, write_config, monkeypatch):
        path = write_config('[profiles.work]\nprovider = "openai"\nmodel = "m"\n')
        monkeypatch.setenv("MP_CONFIG", str(path))

        code = main(["config", "check", "--profile", "work"])

        assert code == 0
        assert capsys.readouterr().out == f"config OK: {path}\n"

    def test_whole_file_with_invalid_profile(self, capsys, write_config, monkeypatch):
        monkeypatch.setenv("MP_CONFIG", str(write_config(PROFILES)))
        code = main(["config", "check"])
        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert "Invalid profile provider 'unknown'" in captured.err

    def test_only_named_profile_is_checked(self, capsys, write_config, monkeypatch):
        monkeypatch.setenv("MP_CONFIG", str(write_config(PROFILES)))
        assert main(["config", "check", "--profile", "work"]) == 0

    def test_missing_file(self, capsys, tmp_path, monkeypatch):
        monkeypatch.setenv("MP_CONFIG", str(tmp_path / "nope.toml"))
        code = main(["config", "check"])
        assert code == 1
        assert "Failed to read config file" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Full pipeline against a mocked provider
# ---------------------------------------------------------------------------


class TestPipeline:
    @pytest.fixture(autouse=True)
    def api_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    def test_text_answer(self, capsys):
        options = ConfigResolver(CliOptions(model=MODEL, input="2+2?")).resolve()
        code = run_pipeline(options, adapter=mock_adapter(completion("4")))
        captured = capsys.readouterr()
        assert code == 0
        assert captured.out == "4"

    def test_json_answer_with_save(self, capsys, tmp_path):
        target = tmp_path / "answer.json"
        options = ConfigResolver(
            CliOptions(model=MODEL, input="2+2?", json=True, show_usage=True, save=str(target))
        ).resolve()
        usage = {"prompt_tokens": 9, "completion_tokens": 1, "total_tokens": 10}

        code = run_pipeline(options, adapter=mock_adapter(completion("4", usage)))

        captured = capsys.readouterr()
        payload = json.loads(captured.out)
        assert code == 0
        assert payload["answer"] == "4"
        assert payload["usage"] == usage
        assert isinstance(payload["latency_ms"], int)
        assert "usage: prompt_tokens=9 completion_tokens=1 total_tokens=10" in captured.err
        assert target.read_text(encoding="utf-8") == captured.out

    def test_fail_on_empty(self, capsys):
        options = ConfigResolver(CliOptions(model=MODEL, input="hi", fail_on_empty=True)).resolve()
        code = run_pipeline(options, adapter=mock_adapter(completion("")))
        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert "Model response is empty and --fail-on-empty is enabled." in captured.err

    def test_fail_on_empty_in_json_mode(self, capsys, tmp_path):
        target = tmp_path / "answer.json"
        options = ConfigResolver(
            CliOptions(model=MODEL, input="hi", json=True, fail_on_empty=True, save=str(target))
        ).resolve()

        code = run_pipeline(options, adapter=mock_adapter(completion("  ")))

        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert "Model response is empty and --fail-on-empty is enabled." in captured.err
        assert not target.exists()

    def test_fatal_provider_error(self, capsys):
        options = ConfigResolver(CliOptions(model=MODEL, input="hi", retries=3)).resolve()
        adapter = mock_adapter(httpx.Response(401, json={"error": {"message": "bad key"}}))

        code = run_pipeline(options, adapter=adapter)

        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert "openai API error 401" in captured.err


# ---------------------------------------------------------------------------
# Version and interrupts
# ---------------------------------------------------------------------------


def test_version_prints_build_metadata(capsys, monkeypatch):
    monkeypatch.setenv("MP_GIT_SHA", "abc1234")
    code = ask_main(["--version"])
    out = capsys.readouterr().out
    assert code == 0
    lines = out.splitlines()
    assert lines[1] == "commit: abc1234"
    assert lines[2] == "built: unknown"


def test_version_needs_no_model(capsys):
    assert main(["ask", "-V"]) == 0


def test_keyboard_interrupt_exits_130(capsys, monkeypatch):
    def interrupted(args):
        raise KeyboardInterrupt

    monkeypatch.setattr(app, "run_ask", interrupted)
    assert ask_main(["--model", MODEL, "hi"]) == 130
