"""Receiving Report Services - RRP numbering and status workflow"""

from .rrp_numbering import (
    RrpNumberingService, RrpNumber, RrpItem, RrpRegistration,
    parse_rrp_number, normalize_prefix
)

# Create aliases for API compatibility
numbering_service = RrpNumberingService

__all__ = [
    "RrpNumberingService",
    "RrpNumber",
    "RrpItem",
    "RrpRegistration",
    "parse_rrp_number",
    "normalize_prefix",
    "numbering_service",
]
