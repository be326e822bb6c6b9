import enum

from sqlalchemy import Enum


class ProductKind(str, enum.Enum):
    DIRECTO = "DIRECTO"        # no inventory impact
    INVENTARIO = "INVENTARIO"  # reference_id is an ingredient id
    RECETA = "RECETA"          # reference_id is a recipe id


class MovementDirection(str, enum.Enum):
    ENTRADA = "ENTRADA"
    SALIDA = "SALIDA"


class MovementReason(str, enum.Enum):
    COMPRA = "COMPRA"
    VENTA = "VENTA"
    AJUSTE_MANUAL = "AJUSTE_MANUAL"
    MERMA = "MERMA"
    INV_INICIAL = "INV_INICIAL"
    CONSUMO = "CONSUMO"


class MovementStatus(str, enum.Enum):
    PENDIENTE = "PENDIENTE"
    PROCESADO = "PROCESADO"
    ELIMINADO = "ELIMINADO"


class ShiftStatus(str, enum.Enum):
    ABIERTO = "abierto"
    CERRADO = "cerrado"


class SaleType(str, enum.Enum):
    VENTA = "VENTA"
    MOVIMIENTO = "MOVIMIENTO"  # cash movement recorded as a sale-shaped row


class SaleStatus(str, enum.Enum):
    ORDENADO = "ORDENADO"
    COBRADO = "COBRADO"
    CANCELADO = "CANCELADO"


# Reasons whose lines state the true count instead of a change
ABSOLUTE_REASONS = frozenset({MovementReason.AJUSTE_MANUAL, MovementReason.INV_INICIAL})

ALLOWED_DIRECTIONS = {
    MovementReason.COMPRA: frozenset({MovementDirection.ENTRADA}),
    MovementReason.INV_INICIAL: frozenset({MovementDirection.ENTRADA}),
    MovementReason.VENTA: frozenset({MovementDirection.SALIDA}),
    MovementReason.MERMA: frozenset({MovementDirection.SALIDA}),
    MovementReason.CONSUMO: frozenset({MovementDirection.SALIDA}),
    MovementReason.AJUSTE_MANUAL: frozenset({MovementDirection.ENTRADA, MovementDirection.SALIDA}),
}


def enum_column(enum_cls, length: int = 20) -> Enum:
    """String-backed column that round-trips the enum member by its value."""
    return Enum(
        enum_cls,
        native_enum=False,
        create_constraint=True,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
