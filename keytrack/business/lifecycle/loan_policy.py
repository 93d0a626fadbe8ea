"""
Due dates for checkout loan types.
"""

from datetime import datetime, timedelta
from typing import Optional

from keytrack.business.errors import ValidationError
from keytrack.data.core.asset_info.constants import LoanType


class LoanPolicy:
    """Maps a loan type to the due date of a checkout starting at `now`"""

    DURATIONS = {
        LoanType.ONE_HOUR: timedelta(hours=1),
        LoanType.FOUR_HOURS: timedelta(hours=4),
    }

    # Loans with no due date
    OPEN_ENDED = {LoanType.STANDARD, LoanType.INDEFINITE, LoanType.LONG_TERM, LoanType.PERMANENT}

    @classmethod
    def due_date_for(cls, loan_type: Optional[str], now: datetime) -> Optional[datetime]:
        """
        Args:
            loan_type: One of LoanType, or None for a standard loan
            now: Checkout time

        Raises:
            ValidationError: If loan_type is not a known LoanType
        """
        if loan_type is None:
            return None
        if not LoanType.is_valid(loan_type):
            raise ValidationError(f"Unknown loan type: {loan_type}")
        if loan_type in cls.DURATIONS:
            return now + cls.DURATIONS[loan_type]
        if loan_type == LoanType.END_OF_DAY:
            return now.replace(hour=23, minute=59, second=59, microsecond=999999)
        return None
