"""
Decoding of schema-less store documents into typed records.

A document either decodes into its model or yields a DecodeFailure that
names the document and the fields that did not match. Schema mismatches are
data errors, reported by the caller; nothing here raises for them.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class Decoded(Generic[ModelT]):
    """Successfully decoded document."""

    record: ModelT


@dataclass(frozen=True)
class DecodeFailure:
    """Document that does not match the expected schema."""

    document_id: str | None
    error: str
    fields: tuple[str, ...] = ()


DecodeResult = Decoded[ModelT] | DecodeFailure


def document_id(document: dict[str, Any]) -> str | None:
    """Best-effort identifier of a raw document for error reports."""
    for key in ("_id", "tx_hash", "meta_hash"):
        value = document.get(key)
        if value is not None:
            return str(value)
    return None


def decode_document(document: dict[str, Any], model: type[ModelT]) -> "Decoded[ModelT] | DecodeFailure":
    """
    Decode a raw document into ``model``.

    Args:
        document: Raw document as returned by the store
        model: Pydantic model to validate against

    Returns:
        Decoded wrapping the record, or DecodeFailure describing the mismatch
    """
    try:
        return Decoded(model.model_validate(document))
    except ValidationError as e:
        fields = tuple(
            ".".join(str(part) for part in err["loc"]) for err in e.errors()
        )
        return DecodeFailure(
            document_id=document_id(document),
            error=f"{e.error_count()} validation error(s) for {model.__name__}",
            fields=fields,
        )
