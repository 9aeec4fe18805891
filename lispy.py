import logging
import os
import readline  # line editing and history for input()
import sys
from pathlib import Path

from lispy.lispy_runtime import ScriptRunner
from lispy.lispy_printer import Printer

BANNER = "Lispy Version 0.0.0.0.1"
PROMPT = "lispy> "
QUIT_COMMANDS = ("\\quit", "exit")


def read_line(prompt: str) -> str:
    """Reads one line of input; raises EOFError at end of input."""
    return input(prompt)


def configure_logging():
    logging.basicConfig()
    level = logging.DEBUG if os.environ.get("LISPY_DEBUG") else logging.WARNING
    logging.getLogger("lispy").setLevel(level)


def run_script_file(file_path: str):
    """Run a Lispy script file non-interactively and exit with appropriate status."""
    runner = ScriptRunner()
    printer = Printer()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = runner.handle_program(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    # Each Error value produced along the way was recorded as a stderr effect
    failed = False
    for effect in result.side_effects:
        if effect.get('topics') == ['stderr']:
            print(effect.get('message', ''), file=sys.stderr)
            failed = True
    print(printer.pformat(result.value))
    if failed:
        raise SystemExit(1)


def main():
    """Run a script file when provided, otherwise start the interactive REPL."""
    configure_logging()
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        if not arg.startswith("-"):
            run_script_file(arg)
            return

    print(BANNER)
    print("Press Ctrl+C to Exit\n")

    runner = ScriptRunner()
    printer = Printer()

    while True:
        try:
            line = read_line(PROMPT).strip()

            if line in QUIT_COMMANDS:
                break

            result = runner.handle_script(line)

            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)
                continue

            print(printer.pformat(result.value))

        except EOFError:
            print()
            break


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print()
