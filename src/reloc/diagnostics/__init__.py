"""Diagnostics and the collection that keeps them in sync with the rebaser."""

from reloc.diagnostics.collection import DiagnosticCollection
from reloc.diagnostics.entry import DiagnosticEntry
from reloc.diagnostics.events import ChangeEvent
from reloc.diagnostics.sinks import InMemoryProblemList, ProblemListSink

__all__ = [
    "ChangeEvent",
    "DiagnosticCollection",
    "DiagnosticEntry",
    "InMemoryProblemList",
    "ProblemListSink",
]
