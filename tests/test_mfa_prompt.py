from __future__ import annotations

import io

import pytest

from assume_role.errors import InputError
from assume_role.mfa_prompt import MFAPrompt


class _TerminalInput(io.StringIO):
    def isatty(self) -> bool:
        return True


def test_select_device_accepts_valid_choice() -> None:
    out = io.StringIO()
    prompt = MFAPrompt(io.StringIO("2\n"), out)

    assert prompt.select_device(["foo", "bar"]) == "bar"
    assert out.getvalue() == "[1]: foo\n[2]: bar\nSelect MFA device: "


def test_select_device_reprompts_until_valid() -> None:
    out = io.StringIO()
    prompt = MFAPrompt(io.StringIO("asd\n0\n3\n 1 \n"), out)

    assert prompt.select_device(["foo", "bar"]) == "foo"
    text = out.getvalue()
    assert text.count("Select MFA device: ") == 4
    assert text.count("Invalid input (not a number)\n") == 1
    assert text.count("Invalid input (not in range)\n") == 2


def test_select_device_end_of_input_raises() -> None:
    prompt = MFAPrompt(io.StringIO("x\n"), io.StringIO())

    with pytest.raises(InputError, match="MFA device option"):
        prompt.select_device(["foo", "bar"])


def test_read_token_from_pipe_is_trimmed() -> None:
    out = io.StringIO()
    prompt = MFAPrompt(io.StringIO("  123456 \n"), out)

    assert prompt.read_token() == "123456"
    assert out.getvalue() == "Enter MFA token: "


def test_read_token_from_terminal_uses_getpass(monkeypatch: pytest.MonkeyPatch) -> None:
    out = io.StringIO()
    captured: dict[str, object] = {}

    def fake_getpass(prompt: str, stream: object) -> str:
        captured["prompt"] = prompt
        captured["stream"] = stream
        return " 654321"

    monkeypatch.setattr("assume_role.mfa_prompt.getpass.getpass", fake_getpass)
    prompt = MFAPrompt(_TerminalInput(""), out)

    assert prompt.read_token() == "654321"
    assert captured == {"prompt": "Enter MFA token: ", "stream": out}


def test_read_token_end_of_input_raises() -> None:
    with pytest.raises(InputError, match="MFA token"):
        MFAPrompt(io.StringIO(""), io.StringIO()).read_token()
