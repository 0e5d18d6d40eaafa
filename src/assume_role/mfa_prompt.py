"""Interactive MFA device selection and token entry."""

from __future__ import annotations

import getpass
from collections.abc import Sequence
from typing import TextIO

from assume_role.errors import InputError

SELECT_DEVICE_PROMPT = "Select MFA device: "
TOKEN_PROMPT = "Enter MFA token: "
NOT_A_NUMBER = "Invalid input (not a number)\n"
NOT_IN_RANGE = "Invalid input (not in range)\n"


class MFAPrompt:
    """Prompts on ``stdout`` and reads answers from ``stdin``.

    Malformed answers are reported and asked again. Only running out of input
    raises :class:`InputError`.
    """

    def __init__(self, stdin: TextIO, stdout: TextIO) -> None:
        self._input = stdin
        self._output = stdout

    def _write(self, text: str) -> None:
        self._output.write(text)
        self._output.flush()

    def _read_line(self, what: str) -> str:
        line = self._input.readline()
        if not line:
            raise InputError(f"unable to read {what} from stdin: unexpected end of input")
        return line.strip()

    def _input_is_terminal(self) -> bool:
        isatty = getattr(self._input, "isatty", None)
        try:
            return bool(isatty and isatty())
        except ValueError:
            # closed stream
            return False

    def select_device(self, devices: Sequence[str]) -> str:
        """Return the device the user picks from a 1-based numbered list."""
        while True:
            for index, device in enumerate(devices, start=1):
                self._write(f"[{index}]: {device}\n")
            self._write(SELECT_DEVICE_PROMPT)

            answer = self._read_line("MFA device option")
            try:
                choice = int(answer)
            except ValueError:
                self._write(NOT_A_NUMBER)
                continue

            if not 1 <= choice <= len(devices):
                self._write(NOT_IN_RANGE)
                continue

            return devices[choice - 1]

    def read_token(self) -> str:
        if self._input_is_terminal():
            # getpass disables echo, then writes the newline the user typed.
            try:
                token = getpass.getpass(prompt=TOKEN_PROMPT, stream=self._output)
            except EOFError as exc:
                raise InputError("unable to read MFA token from stdin: end of input") from exc
            return token.strip()

        self._write(TOKEN_PROMPT)
        return self._read_line("MFA token")
