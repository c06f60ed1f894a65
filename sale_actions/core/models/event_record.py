"""
Event record models: sales and auto-renewal toggles, as seen after enrichment.

Both models carry the joined metadata (at least one entry, otherwise the
record is not ready) and the sibling group labels collected from every
subscription made in the same transaction.
"""

from pydantic import BaseModel, Field, field_validator

from .metadata_record import MetadataRecord


class EnrichedRecord(BaseModel):
    """
    Fields shared by every enriched event record.

    Attributes:
        tx_hash: Transaction identifier (opaque external reference)
        domain: Human-readable label of the purchased item
        metadata: Joined metadata records (non-empty)
        same_tx_groups: Group labels subscribed within the same transaction
    """

    tx_hash: str = Field(..., min_length=1)
    domain: str
    metadata: list[MetadataRecord] = Field(..., min_length=1)
    same_tx_groups: list[str] = Field(default_factory=list)

    @property
    def contact_email(self) -> str:
        """Contact address of the first joined metadata record."""
        return self.metadata[0].email

    @field_validator("tx_hash")
    @classmethod
    def check_tx_hash_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("tx_hash must not be blank")
        return v


class SaleRecord(EnrichedRecord):
    """
    A purchase recorded by the indexer in the ``sales`` collection.

    Attributes:
        meta_hash: Content hash linking the sale to its metadata
        price: Amount paid
        payer: Paying account
        timestamp: Sale time (unix seconds)
        expiry: Expiry of the purchased item (unix seconds)
        auto: Whether auto-renewal was enabled at purchase time
        sponsor: Referral sponsor, when any
        sponsor_comm: Referral commission, when any
    """

    meta_hash: str = Field(..., min_length=1)
    price: float
    payer: str
    timestamp: int
    expiry: int
    auto: bool
    sponsor: int | str | None = None
    sponsor_comm: float | None = None

    @field_validator("meta_hash")
    @classmethod
    def check_meta_hash_not_blank(cls, v: str) -> str:
        """Marker keys are matched verbatim, so blank hashes are rejected, not stripped."""
        if not v.strip():
            raise ValueError("meta_hash must not be blank")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "tx_hash": "0x06a1",
                "meta_hash": "2a3f0c9d",
                "domain": "alice.stark",
                "price": 8.99,
                "payer": "0x0123",
                "timestamp": 1700000000,
                "expiry": 1731536000,
                "auto": True,
                "metadata": [
                    {
                        "meta_hash": "2a3f0c9d",
                        "email": "alice@example.com",
                        "tax_state": "FR",
                        "salt": "b7e1c4",
                    }
                ],
                "same_tx_groups": ["purchase", "newsletter"],
            }
        }


class RenewalToggleRecord(EnrichedRecord):
    """
    An auto-renewal update recorded in ``auto_renew_updates``.

    An allowance of zero means auto-renewal was disabled.

    Attributes:
        meta_hash: Content hash linking the update to its metadata
        renewer: Account that toggled auto-renewal
        allowance: Remaining renewal allowance as a decimal string
    """

    meta_hash: str | None = None
    renewer: str
    allowance: str

    @field_validator("allowance")
    @classmethod
    def check_allowance_is_decimal(cls, v: str) -> str:
        """Allowance is a base-10 integer serialized as a string."""
        if not v.strip().isdigit():
            raise ValueError(f"allowance must be a decimal integer string, got {v!r}")
        return v.strip()

    @property
    def is_disable(self) -> bool:
        """True when this update turns auto-renewal off."""
        return int(self.allowance) == 0
