"""Correction ledger for disputed entity extractions."""

from chatctx.corrections.ledger import (
    CorrectionLedger,
    CorrectionMetadata,
    CorrectionRecord,
    RemovalRecord,
)
from chatctx.corrections.transform import corrections_from_payload

__all__ = [
    "CorrectionLedger",
    "CorrectionMetadata",
    "CorrectionRecord",
    "RemovalRecord",
    "corrections_from_payload",
]
