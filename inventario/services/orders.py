"""
Orquestación de pedidos de venta contra la base de datos.

Cada operación corre en una única transacción: o se aplican todos los
cambios de stock y estado, o no se aplica ninguno.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import case, func, or_, cast, String
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from .. import crud, events
from ..models import (
    InventoryMovement, MovementType, OrderItem, OrderStatus, SalesOrder,
    ShippingType, SupplierOrder,
)
from ..schemas import BulkDispatchRequest, SaleCreate
from . import confirmation, fulfillment, stock

logger = logging.getLogger("inventory-service")


def _order_query():
    return select(SalesOrder).options(selectinload(SalesOrder.items))


async def get_order(db: AsyncSession, order_id: int) -> Optional[SalesOrder]:
    result = await db.execute(
        _order_query().filter(SalesOrder.id == order_id).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def _get_orders_by_ids(db: AsyncSession, order_ids: List[int]) -> List[SalesOrder]:
    """Carga los pedidos pedidos en el orden recibido. Falla si alguno no existe."""
    unique_ids = list(dict.fromkeys(order_ids))
    result = await db.execute(
        _order_query().filter(SalesOrder.id.in_(unique_ids)).execution_options(populate_existing=True)
    )
    by_id = {o.id: o for o in result.scalars().all()}
    missing = [oid for oid in unique_ids if oid not in by_id]
    if missing:
        raise ValueError(f"Pedidos no encontrados: {missing}")
    return [by_id[oid] for oid in unique_ids]


async def _products_for(db: AsyncSession, orders: List[SalesOrder]):
    return await crud.get_products_by_ids(
        db, [item.product_id for order in orders for item in order.items]
    )


def order_to_response(order: SalesOrder, products_by_id=None) -> Dict:
    """Serializa el pedido. Si se pasan los productos, incluye si se puede cubrir con stock."""
    return {
        "id": order.id,
        "status": order.status,
        "shipping_type": order.shipping_type,
        "buyer_name": order.buyer_name,
        "meli_order_id": order.meli_order_id,
        "total_amount": order.total_amount,
        "assigned_to": order.assigned_to,
        "created_at": order.created_at,
        "items": order.items,
        "fulfillable": fulfillment.is_fulfillable(order, products_by_id) if products_by_id is not None else None,
    }


# --- CONSULTAS ---

async def get_orders(
    db: AsyncSession,
    page: int = 1,
    limit: int = 50,
    status: Optional[str] = None,
    shipping_type: Optional[str] = None,
    search: Optional[str] = None,
    only_in_stock: bool = False,
):
    """
    Lista pedidos de venta paginados, los más recientes primero.

    `only_in_stock` deja solo los pedidos cuyas líneas se pueden cubrir con el
    stock disponible actual. Es un filtro de visualización: no bloquea transiciones.
    """
    conditions = []
    if status:
        conditions.append(SalesOrder.status == status)
    if shipping_type:
        conditions.append(SalesOrder.shipping_type == shipping_type)
    if search:
        term = f"%{search}%"
        conditions.append(
            or_(
                SalesOrder.buyer_name.ilike(term),
                SalesOrder.meli_order_id.ilike(term),
                cast(SalesOrder.id, String).ilike(term),
                SalesOrder.items.any(OrderItem.sku.ilike(term)),
            )
        )

    query = _order_query().filter(*conditions).order_by(SalesOrder.created_at.desc(), SalesOrder.id.desc())
    offset = (page - 1) * limit

    if only_in_stock:
        # La suficiencia depende del stock actual, se filtra en memoria
        result = await db.execute(query)
        orders = result.scalars().all()
        products_by_id = await _products_for(db, orders)
        orders = [o for o in orders if fulfillment.is_fulfillable(o, products_by_id)]
        total = len(orders)
        orders = orders[offset:offset + limit]
    else:
        count_query = select(func.count(SalesOrder.id)).filter(*conditions)
        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(query.offset(offset).limit(limit))
        orders = result.scalars().all()
        products_by_id = await _products_for(db, orders)

    return {
        "data": [order_to_response(o, products_by_id) for o in orders],
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit if limit > 0 else 0
        }
    }


async def picking_list(db: AsyncSession, order_ids: List[int]) -> List[Dict]:
    orders = await _get_orders_by_ids(db, order_ids)
    return fulfillment.build_picking_list(orders)


async def warehouse_queue(db: AsyncSession, user: str) -> Dict[str, List[SalesOrder]]:
    """
    Pedidos que todavía ve el depósito: los asignados a `user` y los sin asignar.
    Flex primero, luego los más antiguos.
    """
    flex_first = case((SalesOrder.shipping_type == ShippingType.FLEX.value, 0), else_=1)
    query = (
        _order_query()
        .filter(
            SalesOrder.status.in_([s.value for s in fulfillment.WAREHOUSE_STATUSES]),
            or_(SalesOrder.assigned_to == user, SalesOrder.assigned_to.is_(None)),
        )
        .order_by(flex_first, SalesOrder.created_at.asc(), SalesOrder.id.asc())
    )
    result = await db.execute(query)
    orders = result.scalars().all()
    return {
        "mine": [o for o in orders if o.assigned_to == user],
        "unassigned": [o for o in orders if o.assigned_to is None],
    }


# --- VENTAS ---

async def _resolve(db: AsyncSession, sku: str) -> stock.Resolution:
    product = await crud.get_product_by_sku(db, sku)
    kit = None if product is not None else await crud.get_kit_by_sku(db, sku)
    return stock.resolve_sku(sku, product, kit)


async def create_sale(db: AsyncSession, sale: SaleCreate) -> SalesOrder:
    """
    Registra una venta.

    1. Resuelve cada SKU (producto, kit o no registrado) y lo expande en líneas.
    2. Crea el pedido en estado Pendiente.
    3. Reserva stock por línea; lo que falta genera un pedido a proveedor.
    """
    lines: List[stock.SaleLine] = []
    for sale_line in sale.items:
        resolution = await _resolve(db, sale_line.sku)
        components = {}
        if isinstance(resolution, stock.ResolvedKit):
            components = await crud.get_products_by_ids(db, [c.product_id for c in resolution.kit.components])
        lines.extend(stock.expand_sale(resolution, sale_line.quantity, components))

    products_by_id = await crud.get_products_by_ids(db, [line.product_id for line in lines])
    shipping_type = ShippingType(sale.shipping_type).value

    items = []
    reservations = []
    for line in lines:
        product = products_by_id.get(line.product_id)
        reserved = stock.reserve(product, line.quantity) if product is not None else 0
        items.append(OrderItem(
            product_id=line.product_id,
            sku=line.sku,
            title=line.title,
            quantity=line.quantity,
            unit_price=line.unit_price,
            reserved_quantity=reserved,
        ))
        reservations.append((line, product, reserved))

    order = SalesOrder(
        status=OrderStatus.PENDING.value,
        shipping_type=shipping_type,
        buyer_name=sale.buyer_name,
        meli_order_id=sale.meli_order_id,
        total_amount=stock.round_money(sum((line.unit_price * line.quantity for line in lines), Decimal(0))),
        items=items,
    )
    db.add(order)
    await db.flush()

    for line, product, reserved in reservations:
        if reserved > 0:
            db.add(InventoryMovement(
                product_id=product.id,
                sku=product.sku,
                type=MovementType.RESERVE.value,
                quantity=-reserved,
                description=f"Reserva pedido #{order.id}",
                reference_id=order.id,
            ))

        shortfall = line.quantity - reserved
        if shortfall > 0:
            db.add(SupplierOrder(
                supplier_id=product.supplier_id if product is not None else None,
                product_id=line.product_id,
                sku=line.sku,
                quantity=shortfall,
                sale_type=shipping_type,
                related_sale_id=order.id,
            ))
            logger.info(f"⚠️ Pedido #{order.id}: faltan {shortfall} de {line.sku}, se genera pedido a proveedor")

    await db.commit()
    logger.info(f"✅ Venta registrada: pedido #{order.id} ({len(items)} líneas)")

    events.publish_stock_updated(
        [product.sku for _, product, reserved in reservations if product is not None and reserved > 0],
        reason="sale",
    )
    return await get_order(db, order.id)


# --- ESTADOS ---

async def _dispatch(db: AsyncSession, order: SalesOrder) -> List[str]:
    """Despacha un pedido dentro de la transacción actual. Devuelve los SKU afectados."""
    products_by_id = await _products_for(db, [order])
    applied = fulfillment.apply_dispatch(order, products_by_id)
    for entry in applied:
        product = entry["product"]
        db.add(InventoryMovement(
            product_id=product.id,
            sku=product.sku,
            type=MovementType.DISPATCH.value,
            quantity=-entry["quantity"],
            description=f"Despacho pedido #{order.id}",
            reference_id=order.id,
        ))
    return [entry["product"].sku for entry in applied]


async def dispatch_order(db: AsyncSession, order_id: int) -> Optional[SalesOrder]:
    """
    Preparado -> Despachado. Descuenta stock y cambia el estado en una sola transacción.

    Raises:
        InvalidTransition: si el pedido no está en estado Preparado.
    """
    order = await get_order(db, order_id)
    if not order:
        return None

    try:
        skus = await _dispatch(db, order)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"📦 Pedido #{order_id} despachado")
    events.publish_stock_updated(skus, reason="dispatch")
    return await get_order(db, order_id)


async def change_status(db: AsyncSession, order_id: int, target) -> Optional[SalesOrder]:
    """Avanza el pedido al siguiente estado. El paso a Despachado delega en dispatch_order."""
    target = OrderStatus(target)
    if target == OrderStatus.DISPATCHED:
        return await dispatch_order(db, order_id)

    order = await get_order(db, order_id)
    if not order:
        return None

    fulfillment.validate_transition(order.status, target)
    order.status = target.value
    await db.commit()

    logger.info(f"✅ Pedido #{order_id} -> {target.value}")
    return await get_order(db, order_id)


async def bulk_dispatch(db: AsyncSession, data: BulkDispatchRequest) -> List[SalesOrder]:
    """
    Despacho masivo. Requiere la frase 'DESPACHAR <n>' y es todo o nada:
    si un pedido no se puede despachar, no se despacha ninguno.
    """
    order_ids = list(dict.fromkeys(data.order_ids))
    confirmation.dispatch_gate(len(order_ids)).require(data.confirmation)

    orders = await _get_orders_by_ids(db, order_ids)
    skus = []
    try:
        for order in orders:
            skus.extend(await _dispatch(db, order))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"📦 Despacho masivo: {len(orders)} pedidos")
    events.publish_stock_updated(skus, reason="dispatch")
    return await _get_orders_by_ids(db, order_ids)


async def assign_orders(db: AsyncSession, order_ids: List[int], user: str) -> Dict:
    """Asigna pedidos del depósito a un operario y devuelve su hoja de picking."""
    orders = await _get_orders_by_ids(db, order_ids)

    for order in orders:
        if OrderStatus(order.status) not in fulfillment.WAREHOUSE_STATUSES:
            raise ValueError(f"El pedido #{order.id} ya fue despachado.")
        if order.assigned_to and order.assigned_to != user:
            raise ValueError(f"El pedido #{order.id} ya está asignado a {order.assigned_to}.")

    for order in orders:
        order.assigned_to = user
    await db.commit()

    return {
        "assigned": [o.id for o in orders],
        "picking_list": fulfillment.build_picking_list(orders),
    }


async def clear_pending(db: AsyncSession, confirmation_text: str) -> Dict[str, int]:
    """
    Limpieza total: elimina los pedidos Pendientes de Mercado Envíos y Flex y
    todos los pedidos a proveedor. Requiere la frase exacta 'SOY UN VAGO'.

    La reserva de stock de los pedidos eliminados se libera.
    """
    confirmation.CLEAR_ALL.require(confirmation_text)

    result = await db.execute(
        _order_query().filter(
            SalesOrder.status == OrderStatus.PENDING.value,
            SalesOrder.shipping_type.in_([ShippingType.MERCADO_ENVIOS.value, ShippingType.FLEX.value]),
        )
    )
    orders = result.scalars().all()
    products_by_id = await _products_for(db, orders)

    # Primero los pedidos a proveedor: referencian a las ventas
    deleted_supplier_orders = await crud.delete_rows(db, SupplierOrder)

    released = set()
    for order in orders:
        for item in order.items:
            product = products_by_id.get(item.product_id)
            if product is not None and item.reserved_quantity:
                product.stock_reservado = max(0, (product.stock_reservado or 0) - item.reserved_quantity)
                stock.refresh_available(product)
                released.add(product.sku)
        await db.delete(order)

    await db.commit()

    logger.info(f"⚠️ Limpieza: {len(orders)} pedidos pendientes y {deleted_supplier_orders} pedidos a proveedor eliminados")
    events.publish_stock_updated(released, reason="clear")
    return {
        "deleted_sales_orders": len(orders),
        "deleted_supplier_orders": deleted_supplier_orders,
    }
