"""A small interactive command loop."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from collections import deque
from typing import TextIO

from .buffer import ParserError

PROMPT = "$ "


class CommandError(ParserError):
    """Raised when the command loop is misused."""


class CmdContext:
    """State shared by commands: the streams and the stop flag."""

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self.stdin = sys.stdin if stdin is None else stdin
        self.stdout = sys.stdout if stdout is None else stdout
        self.stderr: TextIO = sys.stderr
        self.end_processing = False
        self._pending: deque[str] = deque()

    def stop_processing(self) -> None:
        """Ask the command loop to finish."""
        self.end_processing = True

    def read_token(self) -> str | None:
        """Next whitespace-separated word of input, or None at its end."""
        while not self._pending:
            line = self.stdin.readline()
            if not line:
                return None
            self._pending.extend(line.split())
        return self._pending.popleft()


class Command(ABC):
    """An action the loop can run."""

    def __init__(self, description: str = "") -> None:
        self.description = description

    def fetch_params(self, line: str) -> tuple[str, ...]:
        """Words of the command line that follow the command name."""
        return tuple(line.split()[1:])

    @abstractmethod
    def execute(self, context: CmdContext) -> None:
        """Run the command."""


class QuitCommand(Command):
    """Stops the loop."""

    def __init__(self) -> None:
        super().__init__("Quit")

    def execute(self, context: CmdContext) -> None:
        if context is None:
            return
        context.stop_processing()


class Commander:
    """Reads command names and runs the matching commands."""

    def __init__(self, context: CmdContext) -> None:
        if context is None:
            raise CommandError("Uninitialized commander context!")
        self.context = context
        self.commands: dict[str, Command] = {}
        self.add_command("q", QuitCommand())

    def add_command(self, name: str, command: Command, overwrite: bool = True) -> bool:
        """Register a command; False if the name is taken and not overwritten."""
        if name in self.commands and not overwrite:
            return False
        self.commands[name] = command
        return True

    def get_command(self, line: str) -> Command | None:
        """Command registered under ``line``, or None."""
        cmd = self.commands.get(line)
        if cmd is None:
            print("No such command", file=self.context.stderr)
        return cmd

    def print_help(self) -> None:
        """List the available commands."""
        out = self.context.stdout
        print(f"Available commands: {len(self.commands)}", file=out)
        for name, cmd in sorted(self.commands.items()):
            if cmd is None:
                continue
            print(f"{name} \t- {cmd.description}", file=out)

    def run(self) -> None:
        """The main loop: prompt, read a command, run it, until stopped."""
        while True:
            if self.context is None:
                raise CommandError("Uninitialized commander context!")
            if self.context.end_processing:
                break
            self.context.stdout.write(PROMPT)
            self.context.stdout.flush()
            line = self.context.read_token()
            if line is None:
                break
            cmd = self.get_command(line)
            if cmd is None:
                self.print_help()
                continue
            try:
                cmd.fetch_params(line)
                cmd.execute(self.context)
            except ParserError as exc:
                print(f"ERROR: {exc}", file=self.context.stderr)