from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from stockledger.database import unit_of_work
from stockledger.models import Sale, SaleStatus, SaleType, Shift, ShiftStatus
from stockledger.services import inventory_workflow, shifts
from stockledger.services.context import TenantContext
from stockledger.services.exceptions import (
    NotFoundError,
    ShiftAlreadyClosed,
    ShiftAlreadyOpen,
    ValidationError,
)
from stockledger.utils.timezone import utc_now


def cash_rows(db, shift_key):
    return db.execute(
        select(Sale).where(Sale.shift_key == shift_key, Sale.sale_type == SaleType.MOVIMIENTO).order_by(Sale.id)
    ).scalars().all()


def test_open_shift_builds_key_and_number(db, ctx, fixed_clock):
    with unit_of_work(db):
        shift = shifts.open_shift(db, ctx, opening_float="500", sales_goal="8000", clock=fixed_clock)

    assert shift.key == "261019" + "1" + "7" + "140509"
    assert shift.number == shift.id
    assert shift.status is ShiftStatus.ABIERTO
    assert shift.user_alias == "cajero1"
    assert shift.sales_goal == Decimal("8000")
    assert shifts.get_open_shift(db, ctx.tenant_id, ctx.user_id).id == shift.id


def test_opening_float_is_recorded_as_cash_movement(db, ctx, fixed_clock):
    with unit_of_work(db):
        shift = shifts.open_shift(db, ctx, opening_float="500", clock=fixed_clock)

    rows = cash_rows(db, shift.key)
    assert len(rows) == 1
    assert rows[0].total == Decimal("500")
    assert rows[0].status is SaleStatus.COBRADO
    assert rows[0].description == shifts.OPENING_FLOAT_DESCRIPTION
    assert rows[0].folio == f"{shift.key}140509M{rows[0].id}"


def test_negative_opening_float_is_rejected(db, ctx):
    with pytest.raises(ValidationError) as exc_info:
        shifts.open_shift(db, ctx, opening_float=-1)
    assert exc_info.value.field == "opening_float"


def test_second_open_shift_for_same_user_is_rejected(db, ctx):
    with unit_of_work(db):
        shifts.open_shift(db, ctx)

    with pytest.raises(ShiftAlreadyOpen) as exc_info:
        with unit_of_work(db):
            shifts.open_shift(db, ctx)
    assert exc_info.value.code == "SHIFT_ALREADY_OPEN"


def test_another_user_can_open_alongside(db, ctx):
    cashier = TenantContext(tenant_id=ctx.tenant_id, user_id=8, user_alias="cajero2")

    with unit_of_work(db):
        shifts.open_shift(db, ctx)
        shifts.open_shift(db, cashier)

    assert len(shifts.list_shifts(db, ctx.tenant_id, status="abierto")) == 2


def test_open_shift_index_rejects_direct_duplicates(db, ctx):
    for _ in range(2):
        db.add(
            Shift(
                tenant_id=ctx.tenant_id,
                started_at=utc_now(),
                status=ShiftStatus.ABIERTO,
                key="K",
                user_id=ctx.user_id,
                user_alias=ctx.user_alias,
            )
        )
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_concurrent_open_is_reported_as_already_open(db, ctx, monkeypatch):
    with unit_of_work(db):
        shifts.open_shift(db, ctx)

    # The other request committed after this one's check ran
    monkeypatch.setattr(shifts, "get_open_shift", lambda db, tenant_id, user_id: None)

    with pytest.raises(ShiftAlreadyOpen):
        with unit_of_work(db):
            shifts.open_shift(db, ctx)

    monkeypatch.undo()
    assert len(shifts.list_shifts(db, ctx.tenant_id, status="abierto")) == 1


def test_close_then_reopen(db, ctx):
    with unit_of_work(db):
        first = shifts.open_shift(db, ctx)
    with unit_of_work(db):
        shifts.close_shift(db, ctx, first.id)

    closed = shifts.get_shift(db, ctx.tenant_id, first.id)
    assert closed.status is ShiftStatus.CERRADO
    assert closed.ended_at is not None
    assert shifts.get_open_shift(db, ctx.tenant_id, ctx.user_id) is None

    with unit_of_work(db):
        second = shifts.open_shift(db, ctx)
    assert second.id != first.id


def test_closing_twice_is_rejected(db, ctx):
    with unit_of_work(db):
        shift = shifts.open_shift(db, ctx)
    with unit_of_work(db):
        shifts.close_shift(db, ctx, shift.id)

    with pytest.raises(ShiftAlreadyClosed) as exc_info:
        shifts.close_shift(db, ctx, shift.id)
    assert exc_info.value.code == "SHIFT_ALREADY_CLOSED"


def test_withdrawal_is_recorded_as_negative_cash_movement(db, ctx):
    with unit_of_work(db):
        shift = shifts.open_shift(db, ctx, opening_float="200")
    with unit_of_work(db):
        shifts.close_current_shift(db, ctx, withdrawal="150.50")

    rows = cash_rows(db, shift.key)
    assert [row.total for row in rows] == [Decimal("200"), Decimal("-150.50")]
    assert rows[1].description == shifts.WITHDRAWAL_DESCRIPTION


def test_negative_withdrawal_is_rejected(db, ctx):
    with unit_of_work(db):
        shift = shifts.open_shift(db, ctx)

    with pytest.raises(ValidationError) as exc_info:
        shifts.close_shift(db, ctx, shift.id, withdrawal="-5")
    assert exc_info.value.field == "withdrawal"


def test_close_current_without_open_shift(db, ctx):
    with pytest.raises(NotFoundError):
        shifts.close_current_shift(db, ctx)


def test_open_orders_are_detected(db, ctx, bread):
    with unit_of_work(db):
        shift = shifts.open_shift(db, ctx)
        sale = inventory_workflow.register_sale(db, ctx, [{"product_id": bread.id, "quantity": 1}])

    assert sale.shift_key == shift.key
    assert sale.folio.startswith(shift.key)
    assert shifts.has_open_orders(db, ctx.tenant_id, shift.key) is True

    with unit_of_work(db):
        inventory_workflow.complete_sale(db, ctx, sale.id)

    assert shifts.has_open_orders(db, ctx.tenant_id, shift.key) is False


def test_shifts_are_isolated_per_tenant(db, ctx, other_tenant_ctx):
    with unit_of_work(db):
        shift = shifts.open_shift(db, ctx)

    with pytest.raises(NotFoundError):
        shifts.get_shift(db, other_tenant_ctx.tenant_id, shift.id)
    assert shifts.list_shifts(db, other_tenant_ctx.tenant_id) == []
    # Same user id in another tenant is a different cashier
    with unit_of_work(db):
        shifts.open_shift(db, other_tenant_ctx)
