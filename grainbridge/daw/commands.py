"""
Data-only write commands for collaborators.

Rules describe side effects as ``Command`` values instead of calling
collaborators directly, so the same rule can run as a dry run (commands
discarded) or for real (commands handed to ``Instrument.execute``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Port(str, Enum):
    """Which collaborator a command is addressed to."""

    ENGINE = "engine"
    SEQUENCER = "sequencer"
    CHORDS = "chords"
    DRUMS = "drums"


@dataclass(frozen=True)
class Command:
    """Call ``op(*args)`` on the collaborator behind ``port``."""

    port: Port
    op: str
    args: tuple[object, ...] = ()

    def describe(self) -> str:
        rendered = ", ".join(repr(arg) for arg in self.args)
        return f"{self.port.value}.{self.op}({rendered})"


def engine(op: str, *args: object) -> Command:
    return Command(Port.ENGINE, op, args)


def sequencer(op: str, *args: object) -> Command:
    return Command(Port.SEQUENCER, op, args)


def chords(op: str, *args: object) -> Command:
    return Command(Port.CHORDS, op, args)


def drums(op: str, *args: object) -> Command:
    return Command(Port.DRUMS, op, args)
