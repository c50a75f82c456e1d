"""
Spend aggregation - derives materials and equipment spend from live inventory
"""
import math
from typing import Any, Iterable

from sitepulse.budget.schemas import SpendTotals


def field_value(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def as_amount(value: Any) -> float:
    """Coerce a stored numeric field to float; anything unusable counts as zero"""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def material_cost(material: Any) -> float:
    """Cumulative purchased quantity wins over on-hand quantity when recorded"""
    bought = field_value(material, "total_bought")
    quantity = bought if bought is not None else field_value(material, "quantity")
    return as_amount(quantity) * as_amount(field_value(material, "price"))


def equipment_cost(equipment: Any) -> float:
    if field_value(equipment, "type") != "rental":
        return 0.0
    return as_amount(field_value(equipment, "rental_cost"))


def calculate_materials_spent(materials: Iterable[Any]) -> float:
    return sum((material_cost(m) for m in materials or []), 0.0)


def calculate_equipment_spent(equipment: Iterable[Any]) -> float:
    return sum((equipment_cost(e) for e in equipment or []), 0.0)


def aggregate_spend(materials: Iterable[Any], equipment: Iterable[Any]) -> SpendTotals:
    return SpendTotals(
        materials_spent=calculate_materials_spent(materials),
        equipment_spent=calculate_equipment_spent(equipment),
    )
