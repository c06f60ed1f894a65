"""
MetadataRecord model representing off-chain contact data keyed by content hash.
"""

from pydantic import BaseModel, Field


class MetadataRecord(BaseModel):
    """
    Off-chain identity/contact data submitted alongside a purchase.

    Created by the ingestion endpoint; read-only to the worker.

    Attributes:
        meta_hash: Content hash over email, tax_state and salt (join key)
        email: Contact address used for mailing list subscription
        tax_state: Jurisdiction of the buyer
        salt: Random salt mixed into the content hash
    """

    meta_hash: str = Field(..., min_length=1)
    email: str
    tax_state: str
    salt: str

    class Config:
        json_schema_extra = {
            "example": {
                "meta_hash": "2a3f0c9d",
                "email": "alice@example.com",
                "tax_state": "FR",
                "salt": "b7e1c4",
            }
        }
