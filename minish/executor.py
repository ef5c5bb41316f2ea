"""Run command lines: sequences, pipelines, builtins and external programs."""

from __future__ import annotations

import contextlib
import copy
import os
import signal
import subprocess
import sys
import tempfile
from typing import IO, Any, Iterable, Sequence, TextIO

from minish.builtins import ExitRequested, is_builtin, run_builtin
from minish.commands import (
    CommandError,
    SimpleCommand,
    build_command,
    split_pipeline,
    split_sequences,
)
from minish.env import Environment, ShellState
from minish.expand import UnterminatedQuoteError, expand_tokens
from minish.lexer import SYNTAX_ERROR_STATUS, ShellSyntaxError, Token, check_syntax, tokenize

PROMPT = "minishell$ "
LAUNCH_FAILURE_STATUS = 1


def _exit_status(returncode: int, out: TextIO) -> int:
    """Map a child's return code to the status the shell reports."""
    if returncode >= 0:
        return returncode
    signum = -returncode
    if hasattr(signal, "SIGQUIT") and signum == signal.SIGQUIT:
        out.write("Quit: 3\n")
    return signum


class Shell:
    """An interactive shell bound to a state and to input and output streams."""

    def __init__(
        self,
        state: ShellState | None = None,
        *,
        out: TextIO | None = None,
        stdin: Any = None,
        err: TextIO | None = None,
        prompt: str = "",
    ) -> None:
        self.state = state if state is not None else ShellState()
        self.out = out if out is not None else sys.stdout
        self.stdin = stdin
        self.err = err if err is not None else sys.stderr
        self.prompt = prompt

    # -- entry points -------------------------------------------------

    def run_line(self, line: str) -> int:
        """Parse, expand and run one command line; return the new status.

        An unterminated quote ends the shell by raising ExitRequested.
        """
        try:
            tokens = check_syntax(tokenize(line))
        except ShellSyntaxError as error:
            self.out.write(error.message + "\n")
            self.state.status = error.status
            return self.state.status
        if not tokens:
            return self.state.status
        try:
            expanded = expand_tokens(tokens, self.state)
        except UnterminatedQuoteError as error:
            self.out.write(error.message + "\n")
            raise ExitRequested(error.status) from error
        return self.run_tokens(expanded)

    def run_tokens(self, tokens: Iterable[Token]) -> int:
        """Run already expanded tokens, one ``;``-separated sequence at a time."""
        for sequence in split_sequences(tokens):
            if self.state.status != SYNTAX_ERROR_STATUS:
                self.state.status = 0
            stages = split_pipeline(sequence)
            if len(stages) == 1:
                self._run_simple(stages[0])
            else:
                commands = self._build_stages(stages)
                if commands:
                    self.run_pipeline(commands)
        return self.state.status

    def run_pipeline(self, commands: Sequence[SimpleCommand]) -> int:
        """Run commands joined by pipes; the status is the last stage's."""
        commands = list(commands)
        if not commands:
            return self.state.status
        status = self.state.status
        launched: list[tuple[subprocess.Popen, bool]] = []
        last_process: subprocess.Popen | None = None
        with contextlib.ExitStack() as stack:
            upstream: Any = None
            for index, command in enumerate(commands):
                last = index == len(commands) - 1
                stdin = self._input_for(stack, command, upstream)
                previous = upstream
                if is_builtin(command.argv[0]):
                    upstream = self._builtin_stage(stack, command, last)
                    status = 0
                    last_process = None
                else:
                    upstream, process, capture = self._external_stage(
                        stack, command, stdin, last
                    )
                    last_process = process
                    if process is None:
                        status = LAUNCH_FAILURE_STATUS
                    else:
                        launched.append((process, capture))
                if isinstance(previous, IO) or hasattr(previous, "close"):
                    if previous is not self.stdin and previous is not None:
                        with contextlib.suppress(OSError):
                            previous.close()
            for process, capture in launched:
                if capture:
                    data, _ = process.communicate()
                    self.out.write(data.decode("utf-8", errors="replace"))
                else:
                    process.wait()
        if last_process is not None:
            status = _exit_status(last_process.returncode, self.out)
        self.state.status = status
        return status

    def repl(self, stream: TextIO) -> int:
        """Read and run lines from ``stream`` until end of input or ``exit``."""
        while True:
            if self.prompt:
                self.out.write(self.prompt)
                self.out.flush()
            try:
                line = stream.readline()
            except KeyboardInterrupt:
                self.out.write("\n")
                continue
            if line == "":
                return self.state.status
            try:
                self.run_line(line.rstrip("\n"))
            except ExitRequested as request:
                return request.status
            except KeyboardInterrupt:
                self.out.write("\n")

    # -- helpers ------------------------------------------------------

    def _run_simple(self, stage: list[Token]) -> None:
        if not stage:
            return
        try:
            command = build_command(self.state, stage, self.out)
        except CommandError:
            return
        if command is None:
            return
        if is_builtin(command.argv[0]) and not command.redirections:
            run_builtin(self.state, command.argv, self.out)
            return
        self.run_pipeline([command])

    def _build_stages(self, stages: list[list[Token]]) -> list[SimpleCommand]:
        """Prepare stages in order, stopping at the first that cannot run."""
        commands: list[SimpleCommand] = []
        for stage in stages:
            if not stage:
                continue
            try:
                command = build_command(self.state, stage, self.out)
            except CommandError:
                break
            if command is None:
                break
            commands.append(command)
        return commands

    def _input_for(
        self, stack: contextlib.ExitStack, command: SimpleCommand, upstream: Any
    ) -> Any:
        if command.stdin is not None:
            return stack.enter_context(command.stdin.open())
        if upstream is not None:
            return upstream
        return self.stdin

    def _terminal(self) -> Any:
        """The descriptor of ``out`` if it has one, otherwise a pipe to copy from."""
        try:
            descriptor = self.out.fileno()
        except (AttributeError, OSError, ValueError):
            return subprocess.PIPE
        self.out.flush()
        return descriptor

    def _builtin_stage(
        self, stack: contextlib.ExitStack, command: SimpleCommand, last: bool
    ) -> Any:
        """Run a builtin as a pipeline stage on a copy of the state."""
        feeds: Any = None
        if command.stdout is not None:
            sink = stack.enter_context(command.stdout.open())
            feeds = subprocess.DEVNULL
        elif not last:
            sink = stack.enter_context(
                tempfile.TemporaryFile("w+", encoding="utf-8")
            )
            feeds = sink
        else:
            sink = self.out
        child_state = copy.deepcopy(self.state)
        try:
            run_builtin(child_state, command.argv, sink)
        except ExitRequested:
            pass
        sink.flush()
        if feeds is sink:
            sink.seek(0)
        return feeds

    def _external_stage(
        self,
        stack: contextlib.ExitStack,
        command: SimpleCommand,
        stdin: Any,
        last: bool,
    ) -> tuple[Any, subprocess.Popen | None, bool]:
        """Start an external program; return what the next stage reads."""
        if command.stdout is not None:
            stdout: Any = stack.enter_context(command.stdout.open())
        elif not last:
            stdout = subprocess.PIPE
        else:
            stdout = self._terminal()
        capture = last and stdout is subprocess.PIPE
        if hasattr(stdin, "flush"):
            stdin.flush()
        try:
            process = subprocess.Popen(
                command.argv,
                stdin=stdin,
                stdout=stdout,
                env=dict(self.state.environ.items()),
            )
        except (OSError, ValueError) as error:
            reason = getattr(error, "strerror", None) or str(error)
            self.err.write(f"exceve: {reason}\n")
            return subprocess.DEVNULL, None, False
        if stdout is subprocess.PIPE and not last:
            return process.stdout, process, False
        return subprocess.DEVNULL, process, capture


def _ignore_quit(signum: int, frame: Any) -> None:
    """Keep the shell alive on SIGQUIT; children still get the default action."""


def main(argv: Sequence[str] | None = None) -> int:
    """Start an interactive shell on standard input and return its exit status."""
    environ = Environment.from_strings(
        f"{name}={value}" for name, value in os.environ.items()
    )
    prompt = PROMPT if sys.stdin.isatty() else ""
    shell = Shell(ShellState(environ=environ), prompt=prompt)
    previous_handler = None
    if hasattr(signal, "SIGQUIT"):
        previous_handler = signal.signal(signal.SIGQUIT, _ignore_quit)
    try:
        return shell.repl(sys.stdin)
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGQUIT, previous_handler)


if __name__ == "__main__":
    sys.exit(main())