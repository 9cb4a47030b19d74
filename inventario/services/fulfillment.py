"""
Máquina de estados de preparación de pedidos.

Pendiente -> En Preparación -> Preparado -> Despachado (terminal).
No hay transiciones hacia atrás ni estado de cancelación.
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional

from ..models import OrderStatus, Product, SalesOrder
from .stock import refresh_available

logger = logging.getLogger(__name__)

NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.IN_PREPARATION,
    OrderStatus.IN_PREPARATION: OrderStatus.PREPARED,
    OrderStatus.PREPARED: OrderStatus.DISPATCHED,
}

# Estados que todavía ve el depósito
WAREHOUSE_STATUSES = (OrderStatus.PENDING, OrderStatus.IN_PREPARATION, OrderStatus.PREPARED)


class InvalidTransition(ValueError):
    """Transición de estado no permitida."""


def next_status(current) -> Optional[OrderStatus]:
    return NEXT_STATUS.get(OrderStatus(current))


def validate_transition(current, target) -> OrderStatus:
    """
    Valida que `target` sea exactamente el siguiente estado de `current`.

    Raises:
        InvalidTransition: si el pedido ya está despachado, o si se intenta
        saltear o retroceder un estado.
    """
    current = OrderStatus(current)
    target = OrderStatus(target)

    if current == OrderStatus.DISPATCHED:
        raise InvalidTransition("El pedido ya fue despachado y no admite más cambios de estado.")

    expected = NEXT_STATUS[current]
    if target != expected:
        raise InvalidTransition(
            f"Transición no permitida: '{current.value}' -> '{target.value}'. Siguiente estado válido: '{expected.value}'."
        )
    return target


def is_fulfillable(order: SalesOrder, products_by_id: Mapping[int, Product]) -> bool:
    """Un pedido se puede cubrir si cada línea pide <= stock_disponible de su producto."""
    if not order.items:
        return False
    for item in order.items:
        product = products_by_id.get(item.product_id) if item.product_id is not None else None
        if product is None:
            if item.product_id is not None:
                logger.warning(f"⚠️ Pedido {order.id}: el producto {item.product_id} ({item.sku}) no existe.")
            return False
        if (product.stock_disponible or 0) < item.quantity:
            return False
    return True


def build_picking_list(orders: Iterable[SalesOrder]) -> List[Dict]:
    """
    Hoja de picking consolidada: total a retirar por SKU para todos los pedidos.

    Ordenada alfabéticamente por SKU.
    """
    totals: Dict[str, int] = {}
    for order in orders:
        for item in order.items:
            totals[item.sku] = totals.get(item.sku, 0) + item.quantity
    return [{"sku": sku, "quantity": totals[sku]} for sku in sorted(totals)]


def render_picking_list(entries: List[Dict]) -> str:
    """Versión de texto imprimible de la hoja de picking."""
    lines = ["SKU\tCANTIDAD"]
    for entry in sorted(entries, key=lambda e: e["sku"]):
        lines.append(f"{entry['sku']}\t{int(entry['quantity'])}")
    return "\n".join(lines) + "\n"


def apply_dispatch(order: SalesOrder, products_by_id: Mapping[int, Product]) -> List[Dict]:
    """
    Descuenta del stock lo que sale físicamente con el pedido y lo marca Despachado.

    No hace commit: el llamador debe ejecutarlo dentro de una única transacción
    para que stock y estado cambien juntos o no cambien.

    Returns:
        Lista de movimientos aplicados: {"product": Product, "quantity": int}.
    """
    validate_transition(order.status, OrderStatus.DISPATCHED)

    applied = []
    for item in order.items:
        if item.product_id is None:
            continue
        product = products_by_id.get(item.product_id)
        if product is None:
            logger.warning(
                f"⚠️ Despacho pedido {order.id}: el producto {item.product_id} ({item.sku}) no existe, no se descuenta stock."
            )
            continue
        product.stock_total = max(0, (product.stock_total or 0) - item.quantity)
        product.stock_reservado = max(0, (product.stock_reservado or 0) - (item.reserved_quantity or 0))
        refresh_available(product)
        applied.append({"product": product, "quantity": item.quantity})

    order.status = OrderStatus.DISPATCHED.value
    return applied
