"""
Lookup stages and the application-code join.

A pipeline describes its enrichment as a list of Lookup stages applied to an
event collection. PostgresStoreGateway compiles the stages into one SQL
statement; ``apply_lookups`` evaluates the same stages one document at a time
and is the reference behaviour for both.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Iterator

from sale_actions.utils.validation import sanitize_sql_identifier

FindMatching = Callable[[str, str, Any], list[dict[str, Any]]]


class LookupMode(str, Enum):
    """What a lookup stage does with the matches it finds."""

    REQUIRE = "require"  # drop documents with no match, attach matches
    EXCLUDE = "exclude"  # drop documents with any match
    ATTACH = "attach"  # keep every document, attach matches (possibly none)


@dataclass(frozen=True)
class Lookup:
    """
    Equality join of an event document against another collection.

    Attributes:
        from_collection: Collection searched for matches
        local_field: Field of the event document
        foreign_field: Field of the matched documents
        as_field: Field of the output document receiving the matches
        mode: Filtering behaviour (see LookupMode)
        project: When set, attach only this field of each match
    """

    from_collection: str
    local_field: str
    foreign_field: str
    as_field: str
    mode: LookupMode = LookupMode.ATTACH
    project: str | None = None

    def __post_init__(self) -> None:
        sanitize_sql_identifier(self.from_collection, "from_collection")
        sanitize_sql_identifier(self.local_field, "local_field")
        sanitize_sql_identifier(self.foreign_field, "foreign_field")
        sanitize_sql_identifier(self.as_field, "as_field")
        if self.project is not None:
            sanitize_sql_identifier(self.project, "project")


def as_text(value: Any) -> str | None:
    """
    Render a scalar the way PostgreSQL's ``->>`` operator renders JSON values.

    Join keys are compared on this text form by every gateway.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value, separators=(", ", ": "))


def project_matches(matches: list[dict[str, Any]], project: str | None) -> list[Any]:
    """Reduce matches to one field, skipping matches that lack it."""
    if project is None:
        return matches
    return [match[project] for match in matches if project in match]


def apply_lookups(
    documents: Iterable[dict[str, Any]],
    lookups: list[Lookup],
    find_matching: FindMatching,
) -> Iterator[dict[str, Any]]:
    """
    Join each document against the lookup collections.

    Local values are always read from the document as stored, so the order of
    the stages does not change the result.

    Args:
        documents: Event documents, consumed lazily
        lookups: Lookup stages
        find_matching: ``(collection, field, value) -> matches`` in store order

    Yields:
        Documents that pass every REQUIRE/EXCLUDE stage, with matches attached
    """
    for document in documents:
        output = dict(document)
        keep = True
        for lookup in lookups:
            value = document.get(lookup.local_field)
            matches = (
                find_matching(lookup.from_collection, lookup.foreign_field, value)
                if value is not None
                else []
            )
            if lookup.mode is LookupMode.EXCLUDE:
                if matches:
                    keep = False
                    break
                continue
            if lookup.mode is LookupMode.REQUIRE and not matches:
                keep = False
                break
            output[lookup.as_field] = project_matches(matches, lookup.project)
        if keep:
            yield output
