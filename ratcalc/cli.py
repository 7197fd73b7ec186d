#!/usr/bin/env python3
"""
RATCALC Command-Line Interface

Provides interactive REPL, script execution, and pipe/filter modes.

Usage:
    ratcalc                         # Start REPL
    ratcalc script.calc             # Run script
    ratcalc -e "2 x + 3 x"          # Evaluate expression
    echo "1/3 + 1/6" | ratcalc      # Filter mode

Script Format (.calc files):
    # comment
    :precision 10
    r := 3/2
    r^2 + 1

REPL Commands:
    :help              Show help
    :vars              List variables
    :unset NAME        Remove a variable
    :clear             Remove all variables
    :trace on|off      Toggle tracing
    :precision N       Digits shown in decimal expansions
    :quit              Exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__, config
from .engine import Calculator
from .errors import CalcError
from .logging_config import configure_logging

logger = logging.getLogger(__name__)

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False


class CommandError(Exception):
    """A REPL command was used incorrectly."""


class CalcCompleter:
    """Tab completer for the RATCALC REPL."""

    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":vars", ":unset", ":clear",
        ":trace", ":precision",
    ]

    TRACE_OPTIONS = ["on", "off"]

    def __init__(self, repl: 'CalcREPL'):
        self.repl = repl
        self.matches: List[str] = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)

        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> list:
        """Get list of matches for the current input."""
        line = line.lstrip()

        if line.startswith(":trace "):
            return [t for t in self.TRACE_OPTIONS if t.startswith(text)]

        if line.startswith(":unset "):
            return [n for n in self.repl.calculator.scope.names() if n.startswith(text)]

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        # In expression context, complete variable names
        if text.isalpha():
            return [n for n in self.repl.calculator.scope.names() if n.startswith(text)]

        return []


def count_parens(text: str) -> int:
    """Count unbalanced parentheses. Returns >0 if more open than close."""
    depth = 0
    for c in text:
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
    return depth


class CalcREPL:
    """Interactive REPL for ratcalc."""

    def __init__(self, calculator: Optional[Calculator] = None, history: bool = True):
        self.calculator = calculator if calculator is not None else Calculator()
        self.trace = False
        self.running = True
        self.multi_line_buffer = ""
        self.history_file = config.HISTORY_FILE
        self.use_history = history and HAS_READLINE

        # Set up readline history and completion
        if self.use_history:
            try:
                readline.read_history_file(self.history_file)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("could not read history from %s: %s", self.history_file, e)
            readline.set_history_length(config.HISTORY_LENGTH)

            self.completer = CalcCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")

            # Keep ':' inside command words
            readline.set_completer_delims(" \t\n()+-*/^%=,")

    def save_history(self):
        """Save readline history."""
        if self.use_history:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                logger.warning("could not save history to %s: %s", self.history_file, e)

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.

        Raises:
            CommandError: unknown command or bad arguments
        """
        parts = line[1:].split(None, 1)
        if not parts:
            raise CommandError("Unknown command. Type :help for help.")

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd == "quit" or cmd == "exit" or cmd == "q":
            self.running = False
            return None

        elif cmd == "vars":
            variables = self.calculator.variables()
            if not variables:
                return "No variables defined"
            return "\n".join(variables)

        elif cmd == "unset":
            if not arg:
                raise CommandError("Usage: :unset NAME")
            if not self.calculator.scope.remove(arg):
                raise CommandError(f"{arg} is not defined")
            return f"Removed {arg}"

        elif cmd == "clear":
            self.calculator.scope.clear()
            return "Cleared all variables"

        elif cmd == "trace":
            if arg.lower() in ("on", "true", "1"):
                self.trace = True
                return "Tracing enabled"
            elif arg.lower() in ("off", "false", "0"):
                self.trace = False
                return "Tracing disabled"
            else:
                self.trace = not self.trace
                return f"Tracing {'enabled' if self.trace else 'disabled'}"

        elif cmd == "precision":
            if not arg:
                return f"Precision: {self.calculator.precision}"
            if not arg.isdigit():
                raise CommandError("Usage: :precision N (N >= 0)")
            self.calculator.precision = int(arg)
            return f"Precision set to: {self.calculator.precision}"

        else:
            raise CommandError(f"Unknown command: {cmd}. Type :help for help.")

    def help_text(self) -> str:
        """Return help text."""
        return """RATCALC REPL Commands:
  :help              Show this help
  :vars              List all variables
  :unset NAME        Remove a variable
  :clear             Remove all variables
  :trace on|off      Toggle tracing
  :precision N       Digits shown in decimal expansions
  :quit              Exit

Syntax:
  2 x + 3 x                    Evaluate an expression
  name := expression           Bind a variable (prints nothing)
  + − ∙ ÷ % ^ =                Operators (ASCII - * / also work)
  (a, b)                       Tuple
"""

    def run_statement(self, line: str) -> Optional[str]:
        """
        Evaluate one statement and return what to print.

        Raises:
            CalcError: the statement failed
        """
        if self.trace:
            result, trace = self.calculator.evaluate(line, trace=True)
            output = self.calculator.format_result(result)
            lines = [output] if output else []
            if trace:
                lines.append(trace.format("chain"))
            return "\n".join(lines) or None

        return self.calculator.execute(line)

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        # Empty line or comment
        if not line or line.startswith("#"):
            return None

        # Command
        if line.startswith(":") and not line.startswith(":="):
            try:
                return self.handle_command(line)
            except (CommandError, CalcError) as e:
                return f"Error: {e}"

        try:
            return self.run_statement(line)
        except CalcError as e:
            logger.debug("statement failed: %r", line, exc_info=True)
            return f"Error: {e}"

    def run(self, banner: bool = True):
        """Run the REPL loop."""
        if banner:
            print(f"RATCALC {__version__} - exact rational calculator")
            print("Type :help for help, :quit to exit")
            print()

        while self.running:
            try:
                if self.multi_line_buffer:
                    prompt = "... "
                else:
                    prompt = "% "

                line = input(prompt)

                if self.multi_line_buffer:
                    self.multi_line_buffer += "\n" + line
                else:
                    self.multi_line_buffer = line

                # Keep reading while parentheses are open
                if count_parens(self.multi_line_buffer) > 0:
                    continue

                complete_input = self.multi_line_buffer
                self.multi_line_buffer = ""

                result = self.process_line(complete_input)
                if result:
                    print(result)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                # Ctrl+C cancels multi-line input, otherwise ends the session
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                    continue
                print()
                break

        self.save_history()


class ScriptRunner:
    """Runs ratcalc scripts, single expressions and piped input."""

    def __init__(self, calculator: Optional[Calculator] = None):
        self.repl = CalcREPL(calculator, history=False)

    def _run_line(self, line: str) -> Optional[str]:
        """Run a command or statement, raising on failure."""
        if line.startswith(":") and not line.startswith(":="):
            return self.repl.handle_command(line)
        return self.repl.run_statement(line)

    def run_script(self, path: Path) -> int:
        """
        Run a script file.

        Every line is processed even if earlier lines fail.

        Returns:
            Exit code (0 if every line succeeded)
        """
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        status = 0
        for lineno, line in enumerate(lines, 1):
            line = line.strip()

            # Skip empty lines, comments, and shebang
            if not line or line.startswith("#"):
                continue

            try:
                result = self._run_line(line)
            except (CalcError, CommandError) as e:
                print(f"{path}:{lineno}: Error: {e}", file=sys.stderr)
                status = 1
                continue

            if result and not line.startswith(":"):
                print(result)
            if not self.repl.running:
                break

        return status

    def run_expression(self, expr_str: str) -> int:
        """
        Evaluate a single statement.

        Returns:
            Exit code (0 for success)
        """
        try:
            result = self.repl.run_statement(expr_str)
        except CalcError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        if result:
            print(result)
        return 0

    def run_stdin(self) -> int:
        """
        Read statements from stdin and evaluate them.

        Failed lines are reported on stderr and the session continues.

        Returns:
            Exit code (0 at end of input)
        """
        for line in sys.stdin:
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            try:
                result = self._run_line(line)
            except (CalcError, CommandError) as e:
                print(f"Error: {e}", file=sys.stderr)
                continue

            if result:
                print(result)
            if not self.repl.running:
                break

        return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="ratcalc",
        description="RATCALC - exact rational calculator with algebraic simplification",
        epilog="Examples:\n"
               "  ratcalc                        Start REPL\n"
               "  ratcalc script.calc            Run script\n"
               "  ratcalc -e '2 x + 3 x'         Evaluate expression\n"
               "  echo '1/3 + 1/6' | ratcalc     Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run"
    )

    parser.add_argument(
        "-e", "--expr",
        help="Evaluate a single statement"
    )

    parser.add_argument(
        "-p", "--precision",
        type=int,
        default=config.PRECISION,
        help="Digits shown in decimal expansions (default: %(default)s)"
    )

    parser.add_argument(
        "-t", "--trace",
        action="store_true",
        help="Show every pipeline stage"
    )

    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat unbound names as errors"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (no REPL banner)"
    )

    parser.add_argument(
        "--log-level",
        default=config.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Logging level (default: %(default)s)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    calculator = Calculator(precision=args.precision, strict=args.strict)
    runner = ScriptRunner(calculator)
    runner.repl.trace = args.trace

    # Determine mode
    if args.script:
        sys.exit(runner.run_script(Path(args.script)))

    elif args.expr is not None:
        sys.exit(runner.run_expression(args.expr))

    elif not sys.stdin.isatty():
        sys.exit(runner.run_stdin())

    else:
        repl = CalcREPL(calculator)
        repl.trace = args.trace
        repl.run(banner=not args.quiet)
        sys.exit(0)


if __name__ == "__main__":
    main()
