"""Tokenization and command-plan building for osh.

This module turns a raw input line into a command plan: either a single
argv with an optional redirection, or two argvs joined by a pipe. Only the
first operator on a line is honoured; any later ``<``, ``>`` or ``|`` token is
an ordinary argument of whichever side contains it.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from errors import MissingRedirectTarget, TooManyTokens

MAX_LINE = 80  # input buffer size, terminator included
MAX_ARGS = MAX_LINE // 2 + 1

BACKGROUND_MARK = "&"


class OperatorKind(Enum):
    NONE = "none"
    INPUT_REDIRECT = "<"
    OUTPUT_REDIRECT = ">"
    PIPE = "|"


OPERATORS = {
    "<": OperatorKind.INPUT_REDIRECT,
    ">": OperatorKind.OUTPUT_REDIRECT,
    "|": OperatorKind.PIPE,
}


@dataclass
class Redirect:
    """Rebinds stdin (``<``) or stdout (``>``) to ``path``."""
    kind: OperatorKind
    path: str

    @property
    def target_fd(self) -> int:
        return 0 if self.kind is OperatorKind.INPUT_REDIRECT else 1

    @property
    def flags(self) -> int:
        if self.kind is OperatorKind.INPUT_REDIRECT:
            return os.O_RDONLY
        # existing content is discarded
        return os.O_WRONLY | os.O_CREAT | os.O_TRUNC


@dataclass
class SinglePlan:
    """One program; argv[0] is the program name."""
    argv: list[str]
    redirect: Optional[Redirect] = None


@dataclass
class PipedPlan:
    """``left`` writes into the pipe, ``right`` reads from it."""
    left: list[str]
    right: list[str]


# Discriminated union type alias
CommandPlan = SinglePlan | PipedPlan


@dataclass
class ParsedLine:
    plan: CommandPlan
    background: bool = False


# --- Tokenization ---

def tokenize(line: str, limit: int = MAX_ARGS) -> list[str]:
    """Split ``line`` on runs of whitespace.

    No quoting or escaping is recognised. Raises TooManyTokens when the line
    holds more than ``limit`` words.
    """
    tokens = line.split()
    if len(tokens) > limit:
        raise TooManyTokens(f"{len(tokens)} words, at most {limit} allowed")
    return tokens


def split_background(line: str) -> tuple[str, bool]:
    """Strip a trailing ``&`` and report whether it was there."""
    if line.endswith(BACKGROUND_MARK):
        return line[:-1], True
    return line, False


# --- Operator scan ---

def scan_operator(tokens: list[str]) -> tuple[OperatorKind, Optional[int]]:
    # index 0 is always the program name
    for i in range(1, len(tokens)):
        kind = OPERATORS.get(tokens[i])
        if kind is not None:
            return kind, i
    return OperatorKind.NONE, None


# --- Plan building ---

def build_plan(tokens: list[str], kind: OperatorKind, index: Optional[int]) -> CommandPlan:
    if kind is OperatorKind.NONE or index is None:
        return SinglePlan(list(tokens))
    if kind is OperatorKind.PIPE:
        # an empty right side is left for exec to reject
        return PipedPlan(tokens[:index], tokens[index + 1:])
    if index + 1 >= len(tokens):
        raise MissingRedirectTarget(f"'{tokens[index]}' needs a file name")
    return SinglePlan(tokens[:index], Redirect(kind, tokens[index + 1]))


def parse_line(line: str) -> ParsedLine:
    line, background = split_background(line)
    tokens = tokenize(line)
    kind, index = scan_operator(tokens)
    return ParsedLine(build_plan(tokens, kind, index), background)


# --- Formatting (debug / test aid) ---

def format_plan(plan: CommandPlan) -> str:
    if isinstance(plan, PipedPlan):
        return "PIPE " + " ".join(plan.left) + " | " + " ".join(plan.right)
    text = "CMD  " + " ".join(plan.argv)
    if plan.redirect is not None:
        text += f" {plan.redirect.kind.value} {plan.redirect.path}"
    return text
