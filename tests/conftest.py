"""Shared fixtures: every test starts from a clean MP_* / credential environment."""

import pytest

from mpipe.clients.base import RequestDescription
from mpipe.models.message import ChatMessage
from mpipe.utils.config import Provider

_ENV_VARS = (
    "MP_PROVIDER",
    "MP_MODEL",
    "MP_TEMPERATURE",
    "MP_MAX_TOKENS",
    "MP_TIMEOUT",
    "MP_RETRIES",
    "MP_RETRY_DELAY",
    "MP_CONFIG",
    "MP_GIT_SHA",
    "MP_BUILD_TS",
    "OPENAI_API_KEY",
    "FIREWORKS_API_KEY",
)


class _ExplodingStdin:
    """A piped stdin that fails the test if anything reads it."""

    def isatty(self) -> bool:
        return False

    def read(self, *args):
        raise AssertionError("stdin must not be read when a prompt argument is given")


class _TtyStdin:
    def isatty(self) -> bool:
        return True

    def read(self, *args):
        raise AssertionError("an interactive stdin must not be read")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Never pick up a real ~/.config/mpipe/config.toml
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def exploding_stdin() -> _ExplodingStdin:
    return _ExplodingStdin()


@pytest.fixture
def tty_stdin() -> _TtyStdin:
    return _TtyStdin()


@pytest.fixture
def request_description() -> RequestDescription:
    return RequestDescription(
        provider=Provider.OPENAI,
        endpoint="https://api.openai.com/v1/chat/completions",
        model="gpt-4o-mini",
        messages=(ChatMessage.user("hello"),),
        api_key="sk-test",
        echo={"temperature": None, "max_tokens": None, "timeout_secs": None, "retries": 2, "retry_delay_ms": 300},
    )


@pytest.fixture
def write_config(tmp_path):
    """Write a profile file and return its path."""

    def _write(text: str, name: str = "config.toml"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
