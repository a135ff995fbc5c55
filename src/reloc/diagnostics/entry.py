"""A single finding and its location state."""

from typing import Callable

from reloc.events import Observers
from reloc.rebaser.rebaser import UriRebaser
from reloc.types import Location, ProblemEntry, RunInfo, Severity


class DiagnosticEntry:
    """One finding from a log.

    Starts at its artifact location. Once the rebaser resolves the artifact,
    the entry switches to the mapped location and tells its subscribers.
    """

    def __init__(
        self,
        run: RunInfo,
        result_id: int,
        artifact_location: Location,
        message: str,
        severity: Severity = Severity.WARNING,
        rule_id: str | None = None,
    ):
        self.run = run
        self.result_id = result_id
        self.artifact_location = artifact_location
        self.message = message or "No message"
        self.severity = severity
        self.rule_id = rule_id

        self._location = artifact_location
        self._location_mapped: Observers[Location] = Observers()
        self._mapping = False

    @property
    def key(self) -> tuple[int, int]:
        return (self.run.id, self.result_id)

    @property
    def location(self) -> Location:
        return self._location

    @property
    def artifact_uri(self) -> str | None:
        return self.artifact_location.uri

    def subscribe_location_mapped(self, callback: Callable[[Location], object]) -> Callable[[], None]:
        return self._location_mapped.subscribe(callback)

    def update_to_mapped_location(self, location: Location) -> None:
        if not location.mapped:
            raise ValueError("Only expect mapped locations")
        self._location = location

    async def attempt_to_map(
        self,
        rebaser: UriRebaser,
        prompt_user: bool = False,
        fresh: bool = False,
    ) -> bool:
        """Try to resolve the artifact location. Returns True when it mapped.

        `fresh` marks a user-initiated retry: an earlier skipped pick for the
        same artifact no longer suppresses the prompt.
        """
        if self._location.mapped or not self.artifact_uri or self._mapping:
            return False

        if fresh:
            rebaser.forget_declined(self.artifact_uri)

        self._mapping = True
        try:
            local_uri = await rebaser.translate_artifact_to_local(
                self.artifact_uri, prompt_user=prompt_user
            )
        finally:
            self._mapping = False

        if local_uri is None or self._location.mapped:
            return False

        mapped = Location(uri=local_uri, mapped=True, range=self.artifact_location.range)
        self.update_to_mapped_location(mapped)
        await self._location_mapped.notify_async(mapped)
        return True

    def to_problem(self) -> ProblemEntry:
        message = self.message
        if self.rule_id:
            message = f"[{self.rule_id}] {message}"
        if not self._location.mapped:
            message = f"[Unmapped] {message}"

        return ProblemEntry(
            range=self._location.range,
            message=message,
            severity=self.severity,
            code=self.rule_id,
            source=self.run.tool_name,
        )

    def __repr__(self) -> str:
        state = "mapped" if self._location.mapped else "unmapped"
        return f"DiagnosticEntry(run={self.run.id}, result={self.result_id}, {state} {self._location.uri})"
