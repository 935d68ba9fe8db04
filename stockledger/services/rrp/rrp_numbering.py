"""
RRP Numbering Service
Assigns and validates receiving report numbers, including fiscal year
scoping and the T-suffix correction protocol
"""
from typing import List, Optional, Dict, Any
from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
import re

from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.core.exceptions import (
    BusinessLogicError, DuplicateActiveRRP, DuplicateInFiscalYear,
    InvalidRrpNumber, InvalidStatusTransition, OutOfSequenceDate,
    RecordNotFoundError, ValidationError
)
from stockledger.core.logging import get_logger
from stockledger.models.rrp import AppConfigRec, RrpDetailRec
from stockledger.models.stock import ReceiveDetailRec
from stockledger.services.stock.ledger_types import ApprovalStatus

logger = get_logger("rrp")

# Report type names accepted in place of the prefix letter
PREFIX_ALIASES = {"local": "L", "foreign": "F"}
MAX_BASE_DIGITS = 999


@dataclass(frozen=True)
class RrpNumber:
    """Parsed receiving report number"""
    prefix: str
    digits: int
    suffix: Optional[int] = None

    @property
    def base(self) -> str:
        return f"{self.prefix}{self.digits:03d}"

    @property
    def full(self) -> str:
        if self.suffix is None:
            return self.base
        return f"{self.base}T{self.suffix}"

    @property
    def is_correction(self) -> bool:
        return self.suffix is not None

    def __str__(self):
        return self.full


@dataclass(frozen=True)
class RrpItem:
    """One receive event priced by a receiving report"""
    receive_fk: Optional[int]
    total_amount: Decimal = Decimal('0')


@dataclass
class RrpRegistration:
    """Accepted registration"""
    rrp_number: str
    fiscal_year: str
    rrp_date: date
    record_ids: List[int] = field(default_factory=list)
    replaced_ids: List[int] = field(default_factory=list)
    relinked_receive_ids: List[int] = field(default_factory=list)
    status: str = "ACCEPTED"


def _number_pattern():
    prefixes = ''.join(settings.RRP_PREFIXES)
    return re.compile(rf"^([{prefixes}])(\d{{3}})(?:T(\d+))?$")


def parse_rrp_number(number: str) -> RrpNumber:
    """Parse <prefix><3 digits>[T<n>]; anything else is InvalidRrpNumber"""
    match = _number_pattern().match((number or '').strip())
    if not match:
        raise InvalidRrpNumber(
            f"Invalid RRP number format {number!r}. Must be in format L001 or L001T1"
        )
    prefix, digits, suffix = match.groups()
    return RrpNumber(prefix=prefix, digits=int(digits), suffix=int(suffix) if suffix else None)


def normalize_prefix(prefix: str) -> str:
    value = (prefix or '').strip()
    value = PREFIX_ALIASES.get(value.lower(), value.upper())
    if value not in settings.RRP_PREFIXES:
        raise InvalidRrpNumber(f"Invalid RRP prefix {prefix!r}")
    return value


class RrpNumberingService:
    """
    RRP Numbering Authority

    At most one non-rejected report may use a base number within a fiscal
    year. Rejected reports are either reused verbatim (bare number) or
    superseded by a T<n> correction.
    """

    def __init__(self, db: Session, current_user: Optional[str] = None):
        self.db = db
        self.current_user = current_user

    # Fiscal year

    def get_current_fiscal_year(self) -> str:
        """Current fiscal year from app_config, falling back to settings"""
        row = self.db.query(AppConfigRec).filter(
            AppConfigRec.config_type == 'rrp',
            AppConfigRec.config_name == 'current_fy'
        ).first()
        if row and row.config_value:
            return row.config_value.strip()
        if settings.CURRENT_FISCAL_YEAR:
            return settings.CURRENT_FISCAL_YEAR
        raise BusinessLogicError("Current fiscal year is not configured")

    # Number proposals

    def next_rrp_number(self, prefix: str) -> str:
        """Highest base number used with the prefix plus one, <prefix>001 when none"""
        prefix = normalize_prefix(prefix)
        rows = self.db.query(RrpDetailRec.base_number).filter(
            RrpDetailRec.base_number.like(f"{prefix}%")
        ).distinct().all()

        highest = 0
        for (base_number,) in rows:
            digits = base_number[1:]
            if digits.isdigit():
                highest = max(highest, int(digits))

        if highest >= MAX_BASE_DIGITS:
            raise BusinessLogicError(f"RRP numbers for prefix {prefix} are exhausted")
        return f"{prefix}{highest + 1:03d}"

    def next_correction_number(self, base_number: str, fiscal_year: Optional[str] = None) -> str:
        """Next T<n> correction of a base number, T1 when none exist"""
        parsed = parse_rrp_number(base_number)
        fiscal_year = fiscal_year or self.get_current_fiscal_year()
        suffixes = [r.correction_suffix for r in self._chain(parsed.base, fiscal_year) if r.correction_suffix]
        return f"{parsed.base}T{max(suffixes, default=0) + 1}"

    def latest_rrp_details(self, prefix: str) -> Dict[str, Any]:
        """Latest non-rejected report of the prefix and the next free number"""
        prefix = normalize_prefix(prefix)
        latest = self.db.query(RrpDetailRec).filter(
            RrpDetailRec.base_number.like(f"{prefix}%"),
            RrpDetailRec.approval_status != ApprovalStatus.REJECTED.value
        ).order_by(RrpDetailRec.rrp_date.desc(), RrpDetailRec.id.desc()).first()

        return {
            "prefix": prefix,
            "rrp_number": latest.rrp_number if latest else None,
            "rrp_date": latest.rrp_date if latest else None,
            "fiscal_year": latest.fiscal_year if latest else None,
            "next_rrp_number": self.next_rrp_number(prefix),
        }

    # Validation

    def verify_rrp_number(self, number: str, rrp_date: date, fiscal_year: Optional[str] = None) -> RrpNumber:
        """
        Run every registration check without writing anything

        Raises:
            InvalidRrpNumber: bad format
            DuplicateInFiscalYear: bare number already active in the fiscal year
            DuplicateActiveRRP: correction of a report that is not rejected
            OutOfSequenceDate: correction date outside its neighbours
        """
        parsed = parse_rrp_number(number)
        fiscal_year = fiscal_year or self.get_current_fiscal_year()
        chain = self._chain(parsed.base, fiscal_year)

        if parsed.is_correction:
            self._correction_target(parsed, chain)
            self._check_date_sequence(parsed, rrp_date, chain)
        else:
            self._check_fiscal_year(parsed, fiscal_year, chain)
        return parsed

    # Registration

    def register_rrp(
        self,
        number: str,
        fiscal_year: Optional[str],
        rrp_date: date,
        items: Optional[List[RrpItem]] = None,
        created_by: Optional[str] = None
    ) -> RrpRegistration:
        """
        Register a receiving report

        A bare number is used as-is, or reused verbatim when the last report
        under it was rejected. A T<n> number replaces the rejected report it
        corrects. Rejected rows that are replaced are deleted; their receive
        events are unlinked first and, when no items are given, re-linked to
        the replacement.

        Returns:
            RrpRegistration describing the rows written

        Raises:
            The errors of verify_rrp_number
        """
        fiscal_year = fiscal_year or self.get_current_fiscal_year()
        parsed = self.verify_rrp_number(number, rrp_date, fiscal_year)
        chain = self._chain(parsed.base, fiscal_year)

        if parsed.is_correction:
            replaced = [r for r in chain if r.rrp_number == self._correction_target(parsed, chain).rrp_number
                        and r.approval_status == ApprovalStatus.REJECTED.value]
        elif chain and chain[-1].approval_status == ApprovalStatus.REJECTED.value:
            replaced = [r for r in chain if r.rrp_number == parsed.full
                        and r.approval_status == ApprovalStatus.REJECTED.value]
        else:
            replaced = []

        if items is not None:
            for item in items:
                if item.receive_fk is not None and self.db.get(ReceiveDetailRec, item.receive_fk) is None:
                    raise RecordNotFoundError(f"Receive {item.receive_fk} not found")

        registration = RrpRegistration(
            rrp_number=parsed.full,
            fiscal_year=fiscal_year,
            rrp_date=rrp_date,
            replaced_ids=[r.id for r in replaced],
        )

        try:
            released = self._delete_rejected(replaced)
            if items is None:
                items = [RrpItem(receive_fk=fk, total_amount=amount) for fk, amount in released]

            for item in items or [RrpItem(receive_fk=None)]:
                record = RrpDetailRec(
                    rrp_number=parsed.full,
                    base_number=parsed.base,
                    correction_suffix=parsed.suffix,
                    fiscal_year=fiscal_year,
                    rrp_date=rrp_date,
                    approval_status=ApprovalStatus.PENDING.value,
                    receive_fk=item.receive_fk,
                    total_amount=Decimal(str(item.total_amount or 0)),
                    created_by=created_by or self.current_user or '',
                )
                self.db.add(record)
                self.db.flush()
                registration.record_ids.append(record.id)

                if item.receive_fk is not None:
                    receive = self.db.get(ReceiveDetailRec, item.receive_fk)
                    receive.rrp_fk = record.id
                    registration.relinked_receive_ids.append(receive.id)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"RRP {parsed.full} ({fiscal_year}) registered with {len(registration.record_ids)} items, "
            f"{len(registration.replaced_ids)} rejected rows replaced"
        )
        return registration

    # Status transitions

    def approve_rrp(self, number: str, approved_by: Optional[str] = None,
                    fiscal_year: Optional[str] = None) -> List[RrpDetailRec]:
        """PENDING -> APPROVED for every row of the report"""
        rows = self._rows(number, fiscal_year)
        pending = [r for r in rows if r.approval_status == ApprovalStatus.PENDING.value]
        if not pending:
            raise InvalidStatusTransition(
                f"RRP {number} is {rows[-1].approval_status} and cannot be approved"
            )
        for row in pending:
            row.approval_status = ApprovalStatus.APPROVED.value
            row.approved_by = approved_by or self.current_user
        self.db.commit()
        logger.info(f"RRP {number} approved by {approved_by or self.current_user}")
        return pending

    def reject_rrp(self, number: str, rejected_by: Optional[str] = None, reason: Optional[str] = None,
                   fiscal_year: Optional[str] = None) -> List[RrpDetailRec]:
        """
        PENDING/APPROVED -> REJECTED for every row of the report

        The linked receive events lose their rrp_fk so a rejected report
        never prices a receipt.
        """
        rows = self._rows(number, fiscal_year)
        active = [r for r in rows if r.approval_status != ApprovalStatus.REJECTED.value]
        if not active:
            raise InvalidStatusTransition(f"RRP {number} is already rejected")

        ids = [r.id for r in active]
        self.db.query(ReceiveDetailRec).filter(ReceiveDetailRec.rrp_fk.in_(ids)).update(
            {ReceiveDetailRec.rrp_fk: None}
        )
        for row in active:
            row.approval_status = ApprovalStatus.REJECTED.value
            row.rejected_by = rejected_by or self.current_user
            row.rejection_reason = reason
        self.db.commit()
        logger.info(f"RRP {number} rejected by {rejected_by or self.current_user}: {reason or 'no reason given'}")
        return active

    # Helpers

    def _chain(self, base_number: str, fiscal_year: str) -> List[RrpDetailRec]:
        """All rows of a base number in a fiscal year, oldest correction first"""
        rows = self.db.query(RrpDetailRec).filter(
            RrpDetailRec.base_number == base_number,
            RrpDetailRec.fiscal_year == fiscal_year
        ).order_by(RrpDetailRec.id).all()
        return sorted(rows, key=lambda r: (r.correction_suffix or 0, r.id))

    def _rows(self, number: str, fiscal_year: Optional[str]) -> List[RrpDetailRec]:
        parsed = parse_rrp_number(number)
        fiscal_year = fiscal_year or self.get_current_fiscal_year()
        rows = [r for r in self._chain(parsed.base, fiscal_year) if r.rrp_number == parsed.full]
        if not rows:
            raise RecordNotFoundError(f"RRP {parsed.full} not found in fiscal year {fiscal_year}")
        return rows

    def _check_fiscal_year(self, parsed: RrpNumber, fiscal_year: str, chain: List[RrpDetailRec]):
        active = [r for r in chain if r.approval_status != ApprovalStatus.REJECTED.value]
        if active:
            logger.warning(f"RRP {parsed.full} rejected: duplicate in fiscal year {fiscal_year}")
            raise DuplicateInFiscalYear(
                f"Duplicate RRP number {parsed.base} in fiscal year {fiscal_year} ({active[-1].rrp_number})",
                rrp_number=parsed.full
            )

    def _correction_target(self, parsed: RrpNumber, chain: List[RrpDetailRec]) -> RrpDetailRec:
        """
        The rejected report a T<n> number corrects

        Any non-rejected row of the chain blocks the correction, whichever
        number it carries.
        """
        active = [r for r in chain if r.approval_status != ApprovalStatus.REJECTED.value]
        if active:
            logger.warning(f"RRP {parsed.full} rejected: {active[-1].rrp_number} is {active[-1].approval_status}")
            raise DuplicateActiveRRP(
                f"RRP {active[-1].rrp_number} is {active[-1].approval_status}; "
                f"only rejected reports can be corrected",
                rrp_number=parsed.full
            )
        if not chain:
            raise DuplicateActiveRRP(f"No rejected RRP {parsed.base} to correct", rrp_number=parsed.full)

        exact = [r for r in chain if r.rrp_number == parsed.full]
        return exact[-1] if exact else chain[-1]

    def _check_date_sequence(self, parsed: RrpNumber, rrp_date: date, chain: List[RrpDetailRec]):
        if rrp_date is None:
            raise ValidationError("RRP date is required")

        lower = [r for r in chain if r.correction_suffix and r.correction_suffix < parsed.suffix]
        higher = [r for r in chain if r.correction_suffix and r.correction_suffix > parsed.suffix]

        if lower:
            previous = max(lower, key=lambda r: (r.correction_suffix, r.id))
            if rrp_date < previous.rrp_date:
                raise OutOfSequenceDate(
                    f"RRP date cannot be before the previous RRP date ({previous.rrp_number}: {previous.rrp_date})",
                    rrp_number=parsed.full
                )
        if higher:
            following = min(higher, key=lambda r: (r.correction_suffix, r.id))
            if rrp_date > following.rrp_date:
                raise OutOfSequenceDate(
                    f"RRP date cannot be greater than the next RRP date ({following.rrp_number}: {following.rrp_date})",
                    rrp_number=parsed.full
                )

    def _delete_rejected(self, rows: List[RrpDetailRec]):
        """Unlink and delete rejected rows; returns their (receive_fk, total_amount) pairs"""
        if not rows:
            return []
        released = [(r.receive_fk, r.total_amount) for r in rows if r.receive_fk is not None]
        ids = [r.id for r in rows]

        self.db.query(ReceiveDetailRec).filter(ReceiveDetailRec.rrp_fk.in_(ids)).update(
            {ReceiveDetailRec.rrp_fk: None}
        )
        for row in rows:
            self.db.delete(row)
        self.db.flush()
        logger.info(f"Deleted rejected RRP rows {ids}")
        return released
