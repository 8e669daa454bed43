#!/usr/bin/env python3

# Entry of osh

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

try:
    import readline  # type: ignore
except Exception:  # pragma: no cover - fallback when readline unavailable
    readline = None

READLINE_ACTIVE = bool(readline)

PROMPT = "osh> "
BANNER = 'osh: a small Unix shell. Begin typing commands, or type "exit" to quit.'
DEBUG_FORMAT = "osh[%(process)d] %(levelname)s %(name)s: %(message)s"

from ops import ShellSession, execute_line, is_exit  # local module in the same folder


def setup_readline() -> None:
    if not READLINE_ACTIVE:
        return
    try:
        readline.parse_and_bind("set editing-mode emacs")
        readline.parse_and_bind("Control-l: clear-screen")
    except Exception:
        pass


def setup_logging(debug: bool) -> None:
    if not debug:
        return
    logging.basicConfig(level=logging.DEBUG, format=DEBUG_FORMAT, stream=sys.stderr)


def repl(prompt: str = PROMPT, session: Optional[ShellSession] = None, banner: bool = True) -> int:
    session = session if session is not None else ShellSession()

    setup_readline()
    if banner:
        print(BANNER)

    while True:
        try:
            line = input(prompt)
        except EOFError:
            # Ctrl-D behaves like "exit"
            print()
            break
        except KeyboardInterrupt:
            # Ctrl-C at prompt -> new line and continue
            print()
            continue

        if is_exit(line):
            break
        if line == "":
            continue

        try:
            execute_line(line, session)
        except Exception as e:
            sys.stderr.write(f"osh: error: {e}\n")
            sys.stderr.flush()

    return 0


def parse_args(args=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="osh - a small Unix command interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Supported command forms (one operator per line):
  prog args...             run a program and wait for it
  prog args... &           run it without waiting
  prog args... < file      read standard input from file
  prog args... > file      write standard output to file (truncated)
  prog1 args... | prog2    feed prog1's output to prog2
  !!                       repeat the last command
  exit                     leave the shell
"""
    )

    parser.add_argument(
        "--prompt", "-p",
        metavar="TEXT",
        default=PROMPT,
        help=f"Prompt printed before each command (default: {PROMPT!r})"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Do not print the start-up banner"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log parsed plans and process activity to stderr"
    )

    return parser.parse_args(args)


def main() -> None:
    args = parse_args()
    setup_logging(args.debug)
    sys.exit(repl(prompt=args.prompt, banner=not args.quiet))


if __name__ == "__main__":
    main()
