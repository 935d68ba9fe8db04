"""
Custom Application Exceptions
"""
from typing import Optional


class StockLedgerException(Exception):
    """Base exception for the stock ledger application"""
    pass


class ValidationError(StockLedgerException):
    """Raised when data validation fails"""
    pass


class BusinessLogicError(StockLedgerException):
    """Raised when business rules are violated"""
    pass


class RecordNotFoundError(StockLedgerException):
    """Raised when a stock item or receiving report does not exist"""
    pass


class InvalidMovementData(ValidationError):
    """
    Raised when a receive/issue row cannot be normalized

    A bad date or quantity would corrupt the movement order, so the replay
    of that SKU is abandoned instead of defaulting the value.
    """

    def __init__(self, message: str, event_id: Optional[int] = None, field: Optional[str] = None):
        super().__init__(message)
        self.event_id = event_id
        self.field = field


class InvalidRrpNumber(ValidationError):
    """Raised when an RRP number is not <L|F><3 digits>[T<n>]"""
    pass


class RrpNumberError(BusinessLogicError):
    """Base class for RRP registration rejections"""
    reason = "RRP_REJECTED"

    def __init__(self, message: str, rrp_number: Optional[str] = None):
        super().__init__(message)
        self.rrp_number = rrp_number


class DuplicateActiveRRP(RrpNumberError):
    """Correction submitted for a receiving report that is not rejected"""
    reason = "DUPLICATE_ACTIVE_RRP"


class DuplicateInFiscalYear(RrpNumberError):
    """Base number already used in the same fiscal year"""
    reason = "DUPLICATE_IN_FISCAL_YEAR"


class OutOfSequenceDate(RrpNumberError):
    """Correction date falls outside its neighbouring corrections"""
    reason = "OUT_OF_SEQUENCE_DATE"


class InvalidStatusTransition(BusinessLogicError):
    """Raised when an approval status change is not allowed"""
    pass


class UnresolvedDeferral(UserWarning):
    """
    Shortfall still owed at the end of a ledger replay

    Attached to the ledger result and logged, never raised: the ledger is
    still rendered with the shortfall flagged.
    """

    def __init__(self, nac_code: Optional[str], quantity_owed, issue_ref: Optional[str] = None):
        self.nac_code = nac_code
        self.quantity_owed = quantity_owed
        self.issue_ref = issue_ref
        super().__init__(
            f"{nac_code or 'SKU'}: {quantity_owed} still owed for issue {issue_ref or 'unknown'}"
        )
