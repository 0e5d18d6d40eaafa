"""Command-line entrypoint: assume a role, then print or exec with the credentials."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from typing import TextIO

from assume_role.app import AssumeRoleParameters, build_app
from assume_role.aws_credentials.sts_provider import TemporaryCredentials
from assume_role.config import load_settings
from assume_role.errors import AssumeRoleBaseError, ValidationError
from assume_role.logging_utils import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_EXEC_FAILED = 127

HELP_TEXT = """\
Assume an AWS role and run the specified command.

Usage:
  assume-role [options] <command> [args ...]

Options:
      --help                       Help for assume-role
      -f, --force-refresh          Forces credentials refresh irrespective of their expiry
      --role string                Name of the role to assume
      --role-session-name string   Name of the session for the assumed role
"""


_VALUE_OPTIONS = ("--role", "--role-session-name")
_FLAG_OPTIONS = ("-f", "--force-refresh")


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise ValidationError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="assume-role", add_help=False, allow_abbrev=False)
    parser.add_argument("--role", default="")
    parser.add_argument("--role-session-name", dest="role_session_name", default="")
    parser.add_argument("-f", "--force-refresh", dest="force_refresh", action="store_true")
    return parser


def _split_command(args: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split ``args`` into options and the command.

    The command starts after ``--`` or at the first argument that is not one
    of our options, even if it looks like a flag.
    """
    index = 0
    while index < len(args):
        arg = args[index]
        if arg == "--":
            return list(args[:index]), list(args[index + 1 :])
        if arg in _VALUE_OPTIONS:
            index += 2
        elif arg in _FLAG_OPTIONS or arg.startswith(tuple(f"{name}=" for name in _VALUE_OPTIONS)):
            index += 1
        else:
            return list(args[:index]), list(args[index:])
    return list(args), []


def parse_options(args: Sequence[str]) -> argparse.Namespace:
    option_args, command = _split_command(args)
    opts = _build_parser().parse_args(option_args)
    opts.command = command
    if not opts.role:
        raise ValidationError("Missing required argument: --role")
    return opts


def credentials_to_env(creds: TemporaryCredentials) -> list[str]:
    return [f"{key}={value}" for key, value in creds.to_env().items()]


def execute(command: Sequence[str], env: dict[str, str]) -> None:
    """Replace the current process with ``command``; only returns by raising."""
    os.execvpe(command[0], list(command), env)


def main(
    argv: Sequence[str] | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout
    stderr = sys.stderr if stderr is None else stderr

    if len(args) == 1 and args[0] in ("-h", "--help"):
        stdout.write(HELP_TEXT)
        return EXIT_OK

    try:
        settings = load_settings()
        configure_logging()
        opts = parse_options(args)
        app = build_app(settings, stdin=stdin, stderr=stderr)
        creds = app.assume_role(
            AssumeRoleParameters(
                role=opts.role,
                role_session_name=opts.role_session_name,
                force_refresh=opts.force_refresh,
            )
        )
    except (AssumeRoleBaseError, RuntimeError, FileNotFoundError) as exc:
        stderr.write(f"ERROR: {exc}\n")
        return EXIT_ERROR

    variables = credentials_to_env(creds)
    if not opts.command:
        for line in variables:
            stdout.write(f"{line}\n")
        return EXIT_OK

    env = dict(os.environ)
    env.update(creds.to_env())
    logger.debug("Executing %s", opts.command[0])
    stdout.flush()
    try:
        execute(opts.command, env)
    except OSError as exc:
        stderr.write(f"ERROR: Could not execute command: {exc}\n")
        return EXIT_EXEC_FAILED
    return EXIT_OK


def run_entrypoint() -> None:
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
