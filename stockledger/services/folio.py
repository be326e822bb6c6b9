"""
Folio and shift-key generation.

Folios are strings: `<prefix><HHMMSS><letter><sequence id>`. The prefix is
the open shift's correlation key when there is one. Times always come from
the server clock in the business timezone, never from the client.
"""

import enum
from datetime import datetime
from typing import Callable, Optional

from stockledger.services.exceptions import ValidationError
from stockledger.utils.timezone import get_business_now

Clock = Callable[[], datetime]


class FolioType(str, enum.Enum):
    SALE = "V"
    PURCHASE = "C"
    MOVEMENT = "M"  # cash or stock movement


def _now(clock: Optional[Clock]) -> datetime:
    return (clock or get_business_now)()


def generate(
    prefix: Optional[str],
    sequence_id: int,
    folio_type: FolioType = FolioType.SALE,
    clock: Optional[Clock] = None,
) -> str:
    """Build a folio for a sale, purchase or movement row that already has an id."""
    if isinstance(sequence_id, bool) or not isinstance(sequence_id, int) or sequence_id < 0:
        raise ValidationError("sequence_id", f"must be a non-negative integer, got {sequence_id!r}")

    letter = FolioType(folio_type).value
    now = _now(clock)
    return f"{prefix or ''}{now:%H%M%S}{letter}{sequence_id}"


def generate_shift_key(tenant_id: int, user_id: int, clock: Optional[Clock] = None) -> str:
    """Correlation key: YYMMDD + tenant id + user id + HHMMSS."""
    now = _now(clock)
    return f"{now:%y%m%d}{tenant_id}{user_id}{now:%H%M%S}"
