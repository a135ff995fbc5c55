"""Problem-list sinks that receive the visible diagnostics."""

from typing import Protocol

from reloc.types import ProblemEntry


class ProblemListSink(Protocol):
    """Protocol for the host's problem list.

    `set` replaces whatever was shown for that URI.
    """

    def set(self, uri: str, problems: list[ProblemEntry]) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemoryProblemList:
    """Problem list kept in a dict, keyed by URI in insertion order."""

    def __init__(self):
        self.problems: dict[str, list[ProblemEntry]] = {}

    def set(self, uri: str, problems: list[ProblemEntry]) -> None:
        self.problems[uri] = list(problems)

    def clear(self) -> None:
        self.problems.clear()

    def get(self, uri: str) -> list[ProblemEntry]:
        return self.problems.get(uri, [])

    def total(self) -> int:
        return sum(len(problems) for problems in self.problems.values())
