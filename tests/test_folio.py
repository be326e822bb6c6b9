import re

import pytest

from stockledger.services import folio
from stockledger.services.exceptions import ValidationError


def test_sale_folio_with_shift_prefix(fixed_clock):
    assert folio.generate("26101917140509", 42, clock=fixed_clock) == "26101917140509140509V42"


def test_folio_without_prefix(fixed_clock):
    assert folio.generate(None, 3, folio.FolioType.PURCHASE, clock=fixed_clock) == "140509C3"
    assert folio.generate("", 3, folio.FolioType.MOVEMENT, clock=fixed_clock) == "140509M3"


def test_folio_type_accepts_letter():
    assert re.fullmatch(r"\d{6}M0", folio.generate(None, 0, "M"))


@pytest.mark.parametrize("sequence_id", [-1, "7", 1.5, True, None])
def test_invalid_sequence_ids(sequence_id):
    with pytest.raises(ValidationError) as exc_info:
        folio.generate(None, sequence_id)
    assert exc_info.value.field == "sequence_id"


def test_shift_key(fixed_clock):
    assert folio.generate_shift_key(1, 7, clock=fixed_clock) == "26101917140509"
    assert folio.generate_shift_key(12, 345, clock=fixed_clock) == "26101912345140509"


def test_shift_key_uses_business_time_by_default():
    assert re.fullmatch(r"\d{6}17\d{6}", folio.generate_shift_key(1, 7))
