import logging
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from stockledger.database import unit_of_work
from stockledger.logging_config import NEGATIVE_STOCK_LOGGER
from stockledger.models import (
    Movement,
    MovementLine,
    MovementReason,
    MovementStatus,
    ProductKind,
    SaleLine,
)
from stockledger.services import catalog, inventory_workflow, ledger, reconciler, recipe_costing, shifts
from stockledger.services.exceptions import (
    AlreadyProcessed,
    InvalidStatusTransition,
    NotFoundError,
    StockWriteViolation,
)


def sell(db, ctx, product, quantity):
    with unit_of_work(db):
        sale = inventory_workflow.register_sale(db, ctx, [{"product_id": product.id, "quantity": quantity}])
        result = inventory_workflow.complete_sale(db, ctx, sale.id)
    return sale, result


def stock_of(db, ingredient_id, tenant_id=1):
    db.expire_all()
    return catalog.get_ingredient(db, tenant_id, ingredient_id).quantity_on_hand


def test_selling_four_bread_deducts_two_kilos_of_flour(db, ctx, flour, bread):
    sale, result = sell(db, ctx, bread, 4)

    lines = db.execute(
        select(MovementLine).where(MovementLine.reference_id == sale.folio)
    ).scalars().all()
    assert len(lines) == 1
    assert lines[0].ingredient_id == flour.id
    assert lines[0].quantity == Decimal("-2.0")
    assert lines[0].status is MovementStatus.PROCESADO
    assert lines[0].stock_reference == Decimal("10")

    assert stock_of(db, flour.id) == Decimal("8.0")
    assert result.stock[flour.id].quantity_on_hand == Decimal("8.0")
    assert result.warnings == []
    assert result.unprocessed_sale_line_ids == []

    movement = db.get(Movement, result.movement_ids[0])
    assert movement.status is MovementStatus.PROCESADO
    assert movement.reason is MovementReason.VENTA


def test_recipe_repeating_an_ingredient_deducts_every_line(db, ctx, flour, make_product):
    recipe = recipe_costing.save_recipe(
        db,
        ctx,
        "Double flour bread",
        [
            {"ingredient_id": flour.id, "quantity": "0.5"},
            {"ingredient_id": flour.id, "quantity": "0.25"},
        ],
    )
    db.commit()
    product = make_product("Double flour bread", ProductKind.RECETA, reference_id=recipe.id)

    sale, result = sell(db, ctx, product, 4)

    lines = db.execute(
        select(MovementLine).where(MovementLine.reference_id == sale.folio)
    ).scalars().all()
    assert [line.quantity for line in lines] == [Decimal("-3")]
    assert stock_of(db, flour.id) == Decimal("7")
    assert result.unprocessed_sale_line_ids == []

    with unit_of_work(db):
        inventory_workflow.complete_sale(db, ctx, sale.id)
    assert stock_of(db, flour.id) == Decimal("7")


def test_reapplying_a_settled_reference_is_a_noop(db, ctx, flour, bread):
    sale, _ = sell(db, ctx, bread, 4)

    with unit_of_work(db):
        again = reconciler.apply(db, ctx.tenant_id, sale.folio)

    assert again.already_processed is True
    assert again.applied_line_ids == []
    assert stock_of(db, flour.id) == Decimal("8.0")

    with pytest.raises(AlreadyProcessed) as exc_info:
        reconciler.apply(db, ctx.tenant_id, sale.folio, strict=True)
    assert exc_info.value.code == "ALREADY_PROCESSED"


def test_completing_a_sale_twice_deducts_once(db, ctx, flour, bread):
    sale, _ = sell(db, ctx, bread, 4)

    with unit_of_work(db):
        retry = inventory_workflow.complete_sale(db, ctx, sale.id)

    assert retry.movement_ids == []
    assert stock_of(db, flour.id) == Decimal("8.0")
    count = len(db.execute(select(MovementLine).where(MovementLine.reference_id == sale.folio)).scalars().all())
    assert count == 1


def test_string_operands_are_added_as_numbers():
    ingredient = SimpleNamespace(quantity_on_hand="10", average_cost="0", supplier_name=None)
    line = SimpleNamespace(quantity="-2", reason=MovementReason.VENTA, unit_cost=None, supplier_name=None)

    reconciler._apply_line(ingredient, line)

    assert ingredient.quantity_on_hand == Decimal("8")


def test_every_movement_reason_is_handled():
    for reason in MovementReason:
        ingredient = SimpleNamespace(quantity_on_hand=Decimal("5"), average_cost=Decimal("1"), supplier_name=None)
        line = SimpleNamespace(quantity=Decimal("1"), reason=reason, unit_cost=Decimal("1"), supplier_name=None)
        reconciler._apply_line(ingredient, line)


def test_negative_stock_is_allowed_and_reported(db, ctx, make_ingredient, make_product, caplog):
    salt = make_ingredient("Salt", quantity="1", cost="1")
    product = make_product("Salt bag", ProductKind.INVENTARIO, reference_id=salt.id)

    with caplog.at_level(logging.WARNING, logger=NEGATIVE_STOCK_LOGGER):
        sale, result = sell(db, ctx, product, 3)

    assert stock_of(db, salt.id) == Decimal("-2")
    assert len(result.warnings) == 1
    warning = result.warnings[0]
    assert warning.ingredient_id == salt.id
    assert warning.quantity_on_hand == Decimal("-2")
    assert warning.reference_id == sale.folio

    records = [r for r in caplog.records if r.name == NEGATIVE_STOCK_LOGGER]
    assert len(records) == 1
    assert records[0].ingredient_id == salt.id
    assert records[0].tenant_id == ctx.tenant_id
    assert records[0].reference_id == sale.folio


def test_manual_adjustment_sets_the_counted_quantity(db, ctx, flour):
    with unit_of_work(db):
        result = inventory_workflow.record_adjustment(
            db,
            ctx,
            "AJUSTE_MANUAL",
            [{"ingredient_id": flour.id, "quantity": "25", "unit_cost": "3", "supplier_name": "Molinos"}],
        )

    db.expire_all()
    ingredient = catalog.get_ingredient(db, ctx.tenant_id, flour.id)
    assert ingredient.quantity_on_hand == Decimal("25")
    assert ingredient.average_cost == Decimal("3")
    assert ingredient.supplier_name == "Molinos"
    assert result.stock[flour.id].quantity_on_hand == Decimal("25")


def test_waste_is_deducted(db, ctx, flour):
    with unit_of_work(db):
        inventory_workflow.record_adjustment(db, ctx, MovementReason.MERMA, [{"ingredient_id": flour.id, "quantity": 1.5}])

    assert stock_of(db, flour.id) == Decimal("8.5")


def test_purchase_updates_weighted_average_cost(db, ctx, flour):
    with unit_of_work(db):
        result = inventory_workflow.record_purchase(
            db,
            ctx,
            [{"ingredient_id": flour.id, "quantity": "10", "unit_cost": "3.5", "supplier_name": "Harinera"}],
        )

    db.expire_all()
    ingredient = catalog.get_ingredient(db, ctx.tenant_id, flour.id)
    assert ingredient.quantity_on_hand == Decimal("20")
    assert ingredient.average_cost == Decimal("3.0")
    assert ingredient.supplier_name == "Harinera"
    assert "C" in result.reference_id


def test_weighted_average_cost_starts_from_line_cost_when_empty():
    assert reconciler.weighted_average_cost(Decimal("0"), Decimal("9"), Decimal("4"), Decimal("2")) == Decimal("2")
    assert reconciler.weighted_average_cost(Decimal("-3"), Decimal("9"), Decimal("4"), Decimal("2")) == Decimal("2")


def test_failure_during_reconciliation_rolls_everything_back(db, ctx, flour, make_ingredient, make_product, monkeypatch):
    yeast = make_ingredient("Yeast", quantity="5", cost="10")
    recipe = recipe_costing.save_recipe(
        db,
        ctx,
        "Brioche",
        [
            {"ingredient_id": flour.id, "quantity": "1"},
            {"ingredient_id": yeast.id, "quantity": "0.1"},
        ],
    )
    db.commit()
    brioche = make_product("Brioche", ProductKind.RECETA, reference_id=recipe.id)

    with unit_of_work(db):
        sale = inventory_workflow.register_sale(db, ctx, [{"product_id": brioche.id, "quantity": 2}])
    sale_id = sale.id

    original = reconciler._apply_line
    calls = []

    def flaky_apply_line(ingredient, line):
        calls.append(line.id)
        if len(calls) == 2:
            raise RuntimeError("connection lost")
        original(ingredient, line)

    monkeypatch.setattr(reconciler, "_apply_line", flaky_apply_line)

    with pytest.raises(RuntimeError):
        with unit_of_work(db):
            inventory_workflow.complete_sale(db, ctx, sale_id)

    assert stock_of(db, flour.id) == Decimal("10")
    assert stock_of(db, yeast.id) == Decimal("5")
    assert db.execute(select(MovementLine)).scalars().all() == []
    sale_line = db.execute(select(SaleLine).where(SaleLine.sale_id == sale_id)).scalar_one()
    assert sale_line.inventory_processed is False


def test_stock_fields_cannot_be_written_outside_the_reconciler(db, flour):
    flour.quantity_on_hand = Decimal("99")

    with pytest.raises(StockWriteViolation):
        db.flush()
    db.rollback()

    assert stock_of(db, flour.id) == Decimal("10")


def test_other_ingredient_fields_remain_editable(db, flour):
    flour.name = "Wheat flour"
    flour.min_stock = Decimal("2")
    db.commit()

    db.expire_all()
    assert catalog.get_ingredient(db, 1, flour.id).name == "Wheat flour"


def test_process_movement_applies_once(db, ctx, flour):
    with unit_of_work(db):
        movement = ledger.record_manual_movement(
            db, ctx, "ENTRADA", "COMPRA", [{"ingredient_id": flour.id, "quantity": "4", "unit_cost": "2.5"}]
        )
    movement_id = movement.id

    with unit_of_work(db):
        result = reconciler.process_movement(db, ctx.tenant_id, movement_id)
    assert len(result.applied_line_ids) == 1
    assert stock_of(db, flour.id) == Decimal("14")

    with pytest.raises(AlreadyProcessed):
        reconciler.process_movement(db, ctx.tenant_id, movement_id)


def test_cancelled_movement_cannot_be_processed(db, ctx, flour):
    with unit_of_work(db):
        movement = ledger.record_manual_movement(
            db, ctx, "SALIDA", "CONSUMO", [{"ingredient_id": flour.id, "quantity": "1"}]
        )
        ledger.cancel_movement(db, ctx, movement.id)

    with pytest.raises(InvalidStatusTransition):
        reconciler.process_movement(db, ctx.tenant_id, movement.id)
    assert stock_of(db, flour.id) == Decimal("10")


def test_movements_sharing_a_shift_key_are_processed_separately(db, ctx, flour):
    with unit_of_work(db):
        shift = shifts.open_shift(db, ctx)
        first = ledger.record_manual_movement(db, ctx, "SALIDA", "CONSUMO", [{"ingredient_id": flour.id, "quantity": "1"}])
        second = ledger.record_manual_movement(db, ctx, "SALIDA", "CONSUMO", [{"ingredient_id": flour.id, "quantity": "2"}])

    assert first.reference_id == second.reference_id == shift.key

    with unit_of_work(db):
        reconciler.process_movement(db, ctx.tenant_id, first.id)

    db.expire_all()
    assert stock_of(db, flour.id) == Decimal("9")
    assert ledger.get_movement(db, ctx.tenant_id, second.id).status is MovementStatus.PENDIENTE


def test_unknown_reference_in_strict_mode(db, ctx):
    with pytest.raises(NotFoundError):
        reconciler.apply(db, ctx.tenant_id, "NOPE", strict=True)

    result = reconciler.apply(db, ctx.tenant_id, "NOPE")
    assert result.already_processed is False
    assert result.applied_line_ids == []


def test_reconciliation_is_isolated_per_tenant(db, ctx, other_tenant_ctx, flour, make_ingredient):
    foreign = make_ingredient("Flour", quantity="50", tenant_id=other_tenant_ctx.tenant_id)

    with unit_of_work(db):
        inventory_workflow.record_adjustment(db, ctx, "CONSUMO", [{"ingredient_id": flour.id, "quantity": "1"}])

    assert stock_of(db, foreign.id, tenant_id=other_tenant_ctx.tenant_id) == Decimal("50")
    with pytest.raises(NotFoundError):
        with unit_of_work(db):
            inventory_workflow.record_adjustment(
                db, other_tenant_ctx, "CONSUMO", [{"ingredient_id": flour.id, "quantity": "1"}]
            )
