"""Change notifications sent by the diagnostic collection."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from reloc.types import ChangeType

if TYPE_CHECKING:
    from reloc.diagnostics.entry import DiagnosticEntry


@dataclass
class ChangeEvent:
    """What changed in the collection.

    `diagnostics` is empty for Synchronize.
    """

    type: ChangeType
    diagnostics: list["DiagnosticEntry"] = field(default_factory=list)
