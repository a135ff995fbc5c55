"""Minimal SARIF reader.

Only pulls out what the rebaser and the collection need: each result's first
physical location, its rule, level and message, and the tool name. Artifact
URIs are resolved against the run's `originalUriBaseIds`.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from reloc.diagnostics.entry import DiagnosticEntry
from reloc.errors import LogReadError
from reloc.rebaser.uris import has_scheme, path_to_uri
from reloc.types import Location, Range, RunInfo, severity_from_level

logger = logging.getLogger(__name__)

ARGUMENT = re.compile(r"\{(\d+)\}")


@dataclass
class LoadedLog:
    """Runs and diagnostics read from one log file."""

    source_uri: str
    runs: list[RunInfo] = field(default_factory=list)
    entries: list[DiagnosticEntry] = field(default_factory=list)
    artifact_uris: list[str] = field(default_factory=list)


def _combine(base: str, relative: str) -> str:
    if not relative:
        return base
    if has_scheme(relative):
        return relative
    return f"{base.rstrip('/')}/{relative.lstrip('/')}"


def expand_base_ids(original_uri_base_ids: dict[str, Any] | None) -> dict[str, str] | None:
    """Resolve every base id to a full URI, following nested `uriBaseId`s.

    An id whose chain is broken or cyclic expands to its own (relative) URI.
    """
    if original_uri_base_ids is None:
        return None

    expanded: dict[str, str] = {}

    def expand(base_id: str, visiting: set[str]) -> str | None:
        if base_id in expanded:
            return expanded[base_id]
        location = original_uri_base_ids.get(base_id)
        if not isinstance(location, dict):
            return None

        uri = location.get("uri") or ""
        parent = location.get("uriBaseId")
        if parent and parent not in visiting:
            parent_uri = expand(parent, visiting | {base_id})
            if parent_uri is not None:
                uri = _combine(parent_uri, uri)

        expanded[base_id] = uri
        return uri

    for base_id in original_uri_base_ids:
        expand(base_id, set())
    return expanded


def override_base_uri(log: dict[str, Any], new_base_uri: str | None) -> None:
    """Point every `originalUriBaseIds` entry of every run at `new_base_uri`."""
    if not new_base_uri:
        return
    for run in log.get("runs") or []:
        for location in (run.get("originalUriBaseIds") or {}).values():
            if isinstance(location, dict):
                location["uri"] = new_base_uri


def _tool_name(run: dict[str, Any]) -> str:
    driver = (run.get("tool") or {}).get("driver") or {}
    return driver.get("fullName") or driver.get("name") or "Unknown tool"


def _rule_for(run: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
    rules = ((run.get("tool") or {}).get("driver") or {}).get("rules") or []
    index = result.get("ruleIndex")
    if isinstance(index, int) and 0 <= index < len(rules):
        return rules[index]
    rule_id = result.get("ruleId")
    return next((rule for rule in rules if rule.get("id") == rule_id), {})


def _message_text(result: dict[str, Any], rule: dict[str, Any]) -> str:
    message = result.get("message") or {}
    text = message.get("text") or message.get("markdown")
    if not text and message.get("id"):
        template = (rule.get("messageStrings") or {}).get(message["id"]) or {}
        text = template.get("text")
    if not text:
        return "No message"

    arguments = message.get("arguments") or []

    def substitute(match: re.Match) -> str:
        index = int(match.group(1))
        return str(arguments[index]) if index < len(arguments) else match.group(0)

    return ARGUMENT.sub(substitute, text)


def _range(region: dict[str, Any] | None) -> Range:
    """Convert a one-based SARIF region to a zero-based range."""
    region = region or {}
    start_line = region.get("startLine", 1)
    start_column = region.get("startColumn", 1)
    end_line = region.get("endLine", start_line)
    end_column = region.get("endColumn", start_column)
    return Range(
        start_line=max(0, start_line - 1),
        start_column=max(0, start_column - 1),
        end_line=max(0, end_line - 1),
        end_column=max(0, end_column - 1),
    )


def _artifact_uri(
    run: dict[str, Any],
    artifact_location: dict[str, Any] | None,
    base_ids: dict[str, str] | None,
) -> str | None:
    if not artifact_location:
        return None

    artifacts = run.get("artifacts") or []
    index = artifact_location.get("index", -1)
    run_location = {}
    if isinstance(index, int) and 0 <= index < len(artifacts):
        run_location = artifacts[index].get("location") or {}

    uri = artifact_location.get("uri") or run_location.get("uri")
    if not uri:
        return None

    base_id = artifact_location.get("uriBaseId") or run_location.get("uriBaseId")
    base = (base_ids or {}).get(base_id) if base_id else None
    if base and not has_scheme(uri):
        return _combine(base, uri)
    return uri


def read_log(
    log: dict[str, Any],
    source_uri: str,
    first_run_id: int = 0,
) -> LoadedLog:
    """Build runs and diagnostics from an already parsed log."""
    runs = log.get("runs")
    if not isinstance(runs, list):
        raise LogReadError(f"{source_uri} has no runs")

    loaded = LoadedLog(source_uri=source_uri)
    seen_uris: set[str] = set()

    for offset, run in enumerate(runs):
        info = RunInfo(id=first_run_id + offset, source_uri=source_uri, tool_name=_tool_name(run))
        loaded.runs.append(info)
        base_ids = expand_base_ids(run.get("originalUriBaseIds"))

        for artifact in run.get("artifacts") or []:
            uri = _artifact_uri(run, artifact.get("location"), base_ids)
            if uri and uri not in seen_uris:
                seen_uris.add(uri)
                loaded.artifact_uris.append(uri)

        for result_id, result in enumerate(run.get("results") or []):
            physical = ((result.get("locations") or [{}])[0] or {}).get("physicalLocation") or {}
            uri = _artifact_uri(run, physical.get("artifactLocation"), base_ids)
            if uri and uri not in seen_uris:
                seen_uris.add(uri)
                loaded.artifact_uris.append(uri)

            rule = _rule_for(run, result)
            level = result.get("level") or (rule.get("defaultConfiguration") or {}).get("level")
            loaded.entries.append(
                DiagnosticEntry(
                    run=info,
                    result_id=result_id,
                    artifact_location=Location(uri=uri, range=_range(physical.get("region"))),
                    message=_message_text(result, rule),
                    severity=severity_from_level(level),
                    rule_id=result.get("ruleId") or rule.get("id"),
                )
            )

    logger.debug(f"Read {len(loaded.entries)} results in {len(loaded.runs)} runs from {source_uri}")
    return loaded


def load_log(
    path: Path,
    first_run_id: int = 0,
    base_uri: str | None = None,
) -> LoadedLog:
    """Read a SARIF file.

    `base_uri` overrides every `originalUriBaseIds` entry before resolving.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8-sig") as f:
            log = json.load(f)
    except OSError as e:
        raise LogReadError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise LogReadError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(log, dict):
        raise LogReadError(f"{path} is not a SARIF log")

    override_base_uri(log, base_uri)
    return read_log(log, path_to_uri(path), first_run_id=first_run_id)
