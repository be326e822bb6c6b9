"""
Gross margin calculation and classification.

Bands:
    pct < 30          CRÍTICO          alert ALTA
    30 <= pct < 40    BAJO             alert MEDIA
    40 <= pct <= 50   SALUDABLE        alert NINGUNA
    50 < pct <= 70    MUY BUENO        alert NINGUNA
    pct > 70          REVISAR COSTEO   alert ALTA

Under the configured alert threshold the four improvement alerts are
attached; above 70% a costing check alert is attached instead.
"""

from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import List, Optional

from stockledger.config import settings
from stockledger.services.exceptions import ValidationError
from stockledger.utils.numbers import quantize_money, to_decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")
COSTING_LIMIT = Decimal("70")


@dataclass(frozen=True)
class MarginBand:
    label: str
    description: str
    color: str
    alert_level: str


CRITICAL = MarginBand("CRÍTICO", "Margen muy bajo (riesgoso)", "#ef4444", "ALTA")
LOW = MarginBand("BAJO", "Requiere revisión", "#f59e0b", "MEDIA")
HEALTHY = MarginBand("SALUDABLE", "Margen adecuado", "#10b981", "NINGUNA")
VERY_GOOD = MarginBand("MUY BUENO", "Margen excelente", "#3b82f6", "NINGUNA")
REVIEW_COSTING = MarginBand("REVISAR COSTEO", "Posible error en costos", "#8b5cf6", "ALTA")


@dataclass(frozen=True)
class MarginAlert:
    code: str
    message: str
    description: str
    action: str


IMPROVEMENT_ALERTS = (
    MarginAlert(
        "REC001",
        "Recetas mal costadas",
        "Revisar costos de las recetas y actualizar precios de insumos",
        "Actualizar costeo de recetas en el sistema",
    ),
    MarginAlert(
        "MER001",
        "Mermas no registradas",
        "Las mermas pueden estar afectando el margen real",
        "Registrar mermas y desperdicios en el sistema",
    ),
    MarginAlert(
        "PVB001",
        "Precio de venta bajo",
        "Los precios de venta pueden no estar cubriendo los costos adecuadamente",
        "Revisar y ajustar precios de venta",
    ),
    MarginAlert(
        "INS001",
        "Insumos con sobrecosto",
        "Algunos insumos pueden tener costos elevados",
        "Negociar con proveedores o buscar alternativas",
    ),
)

COSTING_ALERT = MarginAlert(
    "COST001",
    "Verificar costeo de productos",
    "Un margen superior al 70% puede indicar errores en el registro de costos",
    "Revisar y validar los costos de los productos vendidos",
)


@dataclass
class MarginEvaluation:
    band: MarginBand
    alerts: List[MarginAlert] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "classification": self.band.label,
            "description": self.band.description,
            "color": self.band.color,
            "alert_level": self.band.alert_level,
            "alerts": [asdict(alert) for alert in self.alerts],
        }


def _lenient(value) -> Decimal:
    # Non-numeric input counts as zero
    try:
        return to_decimal(value, default=ZERO)
    except ValidationError:
        return ZERO


def calculate_margin(sales, cost) -> dict:
    """Gross margin and margin percentage (two decimals, 0 when there are no sales)."""
    sales_value = _lenient(sales)
    cost_value = _lenient(cost)

    gross_margin = sales_value - cost_value
    pct = quantize_money(gross_margin / sales_value * HUNDRED) if sales_value > 0 else Decimal("0.00")

    return {
        "sales": sales_value,
        "cost": cost_value,
        "gross_margin": gross_margin,
        "margin_pct": pct,
    }


def classify(pct: Decimal) -> MarginBand:
    if pct < 30:
        return CRITICAL
    if pct < 40:
        return LOW
    if pct <= 50:
        return HEALTHY
    if pct <= COSTING_LIMIT:
        return VERY_GOOD
    return REVIEW_COSTING


def evaluate_margin(pct, threshold: Optional[float] = None) -> MarginEvaluation:
    pct = to_decimal(pct, "margin_pct")
    limit = to_decimal(settings.MARGIN_ALERT_THRESHOLD if threshold is None else threshold, "threshold")

    evaluation = MarginEvaluation(band=classify(pct))
    if pct < limit:
        evaluation.alerts.extend(IMPROVEMENT_ALERTS)
    if pct > COSTING_LIMIT:
        evaluation.alerts.append(COSTING_ALERT)
    return evaluation


def calculate_and_evaluate(sales, cost) -> dict:
    result = calculate_margin(sales, cost)
    result.update(evaluate_margin(result["margin_pct"]).as_dict())
    return result
