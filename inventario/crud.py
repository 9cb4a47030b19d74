from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy import func, or_, delete
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, Dict, Any, Iterable, List
import logging

from . import models, schemas
from .services import stock

logger = logging.getLogger("inventory-service")


def _paginate_meta(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit if limit > 0 else 0
    }

# --- PRODUCTOS ---

async def get_product_by_sku(db: AsyncSession, sku: str):
    """Busca un producto por SKU sin distinguir mayúsculas."""
    query = select(models.Product).filter(
        func.upper(models.Product.sku) == stock.normalize_sku(sku)
    )
    result = await db.execute(query)
    return result.scalars().first()

async def get_product_by_id(db: AsyncSession, product_id: int):
    result = await db.execute(select(models.Product).filter(models.Product.id == product_id))
    return result.scalars().first()

async def get_products_by_ids(db: AsyncSession, product_ids: Iterable[int]) -> Dict[int, models.Product]:
    """Devuelve {id: Product}. Los IDs inexistentes simplemente no aparecen."""
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    result = await db.execute(select(models.Product).filter(models.Product.id.in_(list(ids))))
    return {p.id: p for p in result.scalars().all()}

async def get_products(
    db: AsyncSession,
    page: int = 1,
    limit: int = 50,
    search: Optional[str] = None,
    brand: Optional[str] = None,
    rubro: Optional[str] = None
) -> Dict[str, Any]:
    """
    Lista productos con paginación.
    `search` busca por SKU, nombre o marca.
    """
    offset = (page - 1) * limit
    conditions = []

    if search:
        term = f"%{search}%"
        conditions.append(
            or_(
                models.Product.sku.ilike(term),
                models.Product.name.ilike(term),
                models.Product.brand.ilike(term)
            )
        )
    if brand:
        conditions.append(models.Product.brand == brand)
    if rubro:
        conditions.append(models.Product.rubro == rubro)

    # 1. Conteo
    count_query = select(func.count(models.Product.id)).filter(*conditions)
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    # 2. Datos
    query = (
        select(models.Product)
        .filter(*conditions)
        .order_by(models.Product.sku.asc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(query)

    return {"data": result.scalars().all(), "meta": _paginate_meta(total, page, limit)}

async def register_stock_entry(db: AsyncSession, entry: schemas.StockEntryCreate):
    """
    Ingreso de mercadería.

    Suma al producto existente o crea uno nuevo si el SKU no existe.
    Registra el movimiento de tipo 'entrada' en la misma transacción.

    Returns:
        (product, created)
    """
    sku = stock.normalize_sku(entry.sku)
    if not sku:
        raise ValueError("El SKU es obligatorio.")

    if entry.supplier_id is not None and await get_supplier(db, entry.supplier_id) is None:
        raise ValueError(f"Proveedor {entry.supplier_id} no encontrado.")

    product = await get_product_by_sku(db, sku)
    created = product is None

    if created:
        extra = entry.model_dump(exclude_unset=True, exclude={"sku", "quantity", "name"})
        extra = {k: v for k, v in extra.items() if v is not None}
        product = stock.new_product_from_entry(sku, entry.name, entry.quantity, **extra)
        db.add(product)
        await db.flush()
    else:
        stock.apply_entry(product, entry.quantity)

    db.add(models.InventoryMovement(
        product_id=product.id,
        sku=product.sku,
        type=models.MovementType.ENTRY.value,
        quantity=entry.quantity,
        description="Alta de producto" if created else "Ingreso de mercadería",
    ))
    await db.commit()
    await db.refresh(product)

    logger.info(f"📦 Ingreso {product.sku}: +{entry.quantity} (total {product.stock_total})")
    return product, created

async def update_product(db: AsyncSession, product_id: int, updates: schemas.ProductUpdate):
    db_product = await get_product_by_id(db, product_id)
    if not db_product:
        return None

    update_data = updates.model_dump(exclude_unset=True)
    if update_data.get("supplier_id") is not None and await get_supplier(db, update_data["supplier_id"]) is None:
        raise ValueError(f"Proveedor {update_data['supplier_id']} no encontrado.")

    for key, value in update_data.items():
        setattr(db_product, key, value)

    await db.commit()
    await db.refresh(db_product)
    return db_product

async def delete_product(db: AsyncSession, product_id: int):
    """
    Borra el producto. Kits y pedidos que lo referencian conservan la referencia
    y lo tratan como producto inexistente.
    """
    product = await get_product_by_id(db, product_id)
    if product:
        await db.delete(product)
        await db.commit()
    return product

# --- MOVIMIENTOS ---

async def get_recent_movements(db: AsyncSession, limit: int = 100):
    query = (
        select(models.InventoryMovement)
        .order_by(models.InventoryMovement.created_at.desc(), models.InventoryMovement.id.desc())
        .limit(limit)
    )
    result = await db.execute(query)
    return result.scalars().all()

# --- KITS ---

def _kit_query():
    return select(models.Kit).options(selectinload(models.Kit.components))

async def get_kit_by_id(db: AsyncSession, kit_id: int):
    result = await db.execute(
        _kit_query().filter(models.Kit.id == kit_id).execution_options(populate_existing=True)
    )
    return result.scalars().first()

async def get_kit_by_sku(db: AsyncSession, sku: str):
    result = await db.execute(
        _kit_query().filter(func.upper(models.Kit.sku) == stock.normalize_sku(sku))
    )
    return result.scalars().first()

async def kit_to_response(db: AsyncSession, kit: models.Kit, products_by_id=None) -> Dict[str, Any]:
    """Serializa el kit junto con su stock armable calculado al momento."""
    if products_by_id is None:
        products_by_id = await get_products_by_ids(db, [c.product_id for c in kit.components])
    return {
        "id": kit.id,
        "sku": kit.sku,
        "name": kit.name,
        "components": kit.components,
        "available_stock": stock.kit_availability(kit, products_by_id),
    }

async def get_kits(db: AsyncSession, search: Optional[str] = None):
    query = _kit_query()
    if search:
        term = f"%{search}%"
        query = query.filter(or_(models.Kit.sku.ilike(term), models.Kit.name.ilike(term)))
    result = await db.execute(query.order_by(models.Kit.sku.asc()))
    kits = result.scalars().all()

    products_by_id = await get_products_by_ids(
        db, [c.product_id for kit in kits for c in kit.components]
    )
    return [await kit_to_response(db, kit, products_by_id) for kit in kits]

async def _build_components(db: AsyncSession, components: List[schemas.KitComponentIn]):
    products_by_id = await get_products_by_ids(db, [c.product_id for c in components])
    built = []
    seen = set()
    for component in components:
        product = products_by_id.get(component.product_id)
        if product is None:
            raise ValueError(f"El producto {component.product_id} no existe.")
        if product.id in seen:
            raise ValueError(f"El producto {product.sku} está repetido en el kit.")
        seen.add(product.id)
        built.append(models.KitComponent(
            product_id=product.id,
            sku=product.sku,
            quantity=component.quantity,
        ))
    return built

async def create_kit(db: AsyncSession, kit_in: schemas.KitCreate):
    sku = stock.normalize_sku(kit_in.sku)

    if await get_product_by_sku(db, sku):
        raise ValueError(f"Ya existe un producto con el SKU '{sku}'. Los kits deben tener un SKU propio.")
    if await get_kit_by_sku(db, sku):
        raise ValueError(f"Ya existe un kit con el SKU '{sku}'.")

    kit = models.Kit(
        sku=sku,
        name=kit_in.name.strip(),
        components=await _build_components(db, kit_in.components),
    )
    db.add(kit)
    await db.commit()

    logger.info(f"✅ Kit {sku} creado con {len(kit.components)} componentes")
    return await get_kit_by_id(db, kit.id)

async def update_kit(db: AsyncSession, kit_id: int, updates: schemas.KitUpdate):
    kit = await get_kit_by_id(db, kit_id)
    if not kit:
        return None

    if updates.name is not None:
        kit.name = updates.name.strip()
    if updates.components is not None:
        kit.components = await _build_components(db, updates.components)

    await db.commit()
    return await get_kit_by_id(db, kit_id)

async def delete_kit(db: AsyncSession, kit_id: int):
    """Borrar un kit no toca el stock de sus componentes."""
    kit = await get_kit_by_id(db, kit_id)
    if kit:
        await db.delete(kit)
        await db.commit()
    return kit

# --- PROVEEDORES ---

async def get_suppliers(db: AsyncSession):
    result = await db.execute(select(models.Supplier).order_by(models.Supplier.name.asc()))
    return result.scalars().all()

async def get_supplier(db: AsyncSession, supplier_id: int):
    result = await db.execute(select(models.Supplier).filter(models.Supplier.id == supplier_id))
    return result.scalars().first()

async def _supplier_name_taken(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    query = select(models.Supplier.id).filter(func.lower(models.Supplier.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(models.Supplier.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None

async def create_supplier(db: AsyncSession, supplier: schemas.SupplierCreate):
    if await _supplier_name_taken(db, supplier.name):
        raise ValueError(f"Ya existe un proveedor llamado '{supplier.name}'.")
    db_supplier = models.Supplier(name=supplier.name.strip(), markup=supplier.markup)
    db.add(db_supplier)
    await db.commit()
    await db.refresh(db_supplier)
    return db_supplier

async def update_supplier(db: AsyncSession, supplier_id: int, updates: schemas.SupplierUpdate):
    db_supplier = await get_supplier(db, supplier_id)
    if not db_supplier:
        return None

    update_data = updates.model_dump(exclude_unset=True)
    if update_data.get("name") and await _supplier_name_taken(db, update_data["name"], exclude_id=supplier_id):
        raise ValueError(f"Ya existe un proveedor llamado '{update_data['name']}'.")

    for key, value in update_data.items():
        setattr(db_supplier, key, value)

    await db.commit()
    await db.refresh(db_supplier)
    return db_supplier

async def delete_supplier(db: AsyncSession, supplier_id: int):
    """Elimina el proveedor y deja sin proveedor a sus productos y pedidos."""
    db_supplier = await get_supplier(db, supplier_id)
    if not db_supplier:
        return None

    products = await db.execute(select(models.Product).filter(models.Product.supplier_id == supplier_id))
    for product in products.scalars().all():
        product.supplier_id = None
    orders = await db.execute(select(models.SupplierOrder).filter(models.SupplierOrder.supplier_id == supplier_id))
    for order in orders.scalars().all():
        order.supplier_id = None

    await db.delete(db_supplier)
    await db.commit()
    return db_supplier

async def apply_supplier_markup(db: AsyncSession, supplier_id: int) -> Optional[int]:
    """
    Recalcula el precio de venta de todos los productos del proveedor:
    sale_price = cost_price * (1 + markup/100).

    Returns:
        Cantidad de productos actualizados, o None si el proveedor no existe.
    """
    supplier = await get_supplier(db, supplier_id)
    if not supplier:
        return None

    result = await db.execute(select(models.Product).filter(models.Product.supplier_id == supplier_id))
    products = result.scalars().all()
    for product in products:
        product.sale_price = stock.price_with_markup(product.cost_price, supplier.markup)

    await db.commit()
    logger.info(f"✅ Recargo {supplier.markup}% aplicado a {len(products)} productos de {supplier.name}")
    return len(products)

async def bulk_update_costs(db: AsyncSession, data: schemas.BulkCostUpdate) -> int:
    """
    Aumenta (o baja) el costo un porcentaje para los productos filtrados por
    marca y/o rubro, y recalcula el precio de venta con el recargo de cada proveedor.
    """
    if not data.brand and not data.rubro:
        raise ValueError("Debe indicar al menos una marca o un rubro.")

    conditions = []
    if data.brand:
        conditions.append(models.Product.brand == data.brand)
    if data.rubro:
        conditions.append(models.Product.rubro == data.rubro)

    result = await db.execute(
        select(models.Product)
        .options(selectinload(models.Product.supplier))
        .filter(*conditions)
    )
    products = result.scalars().all()

    factor = 1 + Decimal(str(data.percentage)) / Decimal(100)
    for product in products:
        product.cost_price = stock.round_money(Decimal(str(product.cost_price or 0)) * factor)
        markup = product.supplier.markup if product.supplier else 0
        product.sale_price = stock.price_with_markup(product.cost_price, markup)

    await db.commit()
    return len(products)

# --- PEDIDOS A PROVEEDOR ---

async def get_supplier_orders(
    db: AsyncSession,
    supplier_id: Optional[int] = None,
    sale_type: Optional[str] = None,
    hide_invoiced: bool = False
):
    conditions = []
    if supplier_id is not None:
        conditions.append(models.SupplierOrder.supplier_id == supplier_id)
    if sale_type:
        conditions.append(models.SupplierOrder.sale_type == sale_type)
    if hide_invoiced:
        conditions.append(models.SupplierOrder.status != models.SupplierOrderStatus.INVOICED.value)

    query = (
        select(models.SupplierOrder)
        .filter(*conditions)
        .order_by(models.SupplierOrder.created_at.desc(), models.SupplierOrder.id.desc())
    )
    result = await db.execute(query)
    return result.scalars().all()

async def get_supplier_order(db: AsyncSession, order_id: int):
    result = await db.execute(select(models.SupplierOrder).filter(models.SupplierOrder.id == order_id))
    return result.scalars().first()

async def mark_supplier_orders_invoiced(db: AsyncSession, order_ids: List[int]) -> int:
    result = await db.execute(select(models.SupplierOrder).filter(models.SupplierOrder.id.in_(order_ids)))
    orders = result.scalars().all()
    for order in orders:
        order.status = models.SupplierOrderStatus.INVOICED.value
    await db.commit()
    return len(orders)

async def complete_supplier_order(db: AsyncSession, order_id: int):
    """Marcar como 'hecho' elimina el pedido a proveedor."""
    order = await get_supplier_order(db, order_id)
    if order:
        await db.delete(order)
        await db.commit()
    return order

async def change_supplier_order_supplier(db: AsyncSession, order_id: int, supplier_id: int):
    order = await get_supplier_order(db, order_id)
    if not order:
        return None
    if await get_supplier(db, supplier_id) is None:
        raise ValueError(f"Proveedor {supplier_id} no encontrado.")

    order.supplier_id = supplier_id
    await db.commit()
    await db.refresh(order)
    return order

# --- ÓRDENES DE COMPRA ---

async def create_purchase_order(db: AsyncSession, data: schemas.PurchaseOrderCreate, now: Optional[datetime] = None):
    """
    Genera una OC consolidada por SKU a partir de pedidos a proveedor seleccionados.

    Los pedidos seleccionados deben existir y no pertenecer a otro proveedor.
    """
    supplier = await get_supplier(db, data.supplier_id)
    if not supplier:
        raise ValueError(f"Proveedor {data.supplier_id} no encontrado.")

    result = await db.execute(
        select(models.SupplierOrder)
        .filter(models.SupplierOrder.id.in_(data.supplier_order_ids))
        .order_by(models.SupplierOrder.id.asc())
    )
    orders = result.scalars().all()

    missing = set(data.supplier_order_ids) - {o.id for o in orders}
    if missing:
        raise ValueError(f"Pedidos a proveedor no encontrados: {sorted(missing)}")
    foreign = [o.id for o in orders if o.supplier_id is not None and o.supplier_id != supplier.id]
    if foreign:
        raise ValueError(f"Los pedidos {foreign} pertenecen a otro proveedor.")

    # Respeta el orden en que el usuario los seleccionó
    by_id = {o.id: o for o in orders}
    ordered = [by_id[oid] for oid in dict.fromkeys(data.supplier_order_ids)]
    items = stock.consolidate_purchase_items({"sku": o.sku, "quantity": o.quantity} for o in ordered)

    po = models.PurchaseOrder(
        po_number=stock.purchase_order_number(now),
        supplier_name=supplier.name,
        items=items,
        total_items=sum(item["quantity"] for item in items),
    )
    db.add(po)
    await db.commit()
    await db.refresh(po)

    logger.info(f"✅ Orden de Compra {po.po_number} guardada para {supplier.name}")
    return po

async def get_purchase_orders(
    db: AsyncSession,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
):
    conditions = []
    if start_date:
        conditions.append(models.PurchaseOrder.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        conditions.append(models.PurchaseOrder.created_at <= datetime.combine(end_date, time.max))

    query = (
        select(models.PurchaseOrder)
        .filter(*conditions)
        .order_by(models.PurchaseOrder.created_at.desc(), models.PurchaseOrder.id.desc())
    )
    result = await db.execute(query)
    return result.scalars().all()

async def get_purchase_order(db: AsyncSession, po_id: int):
    result = await db.execute(select(models.PurchaseOrder).filter(models.PurchaseOrder.id == po_id))
    return result.scalars().first()

# --- PUBLICACIONES ---

async def get_publications(db: AsyncSession, sku: Optional[str] = None):
    query = select(models.Publication)
    if sku:
        query = query.filter(models.Publication.sku == stock.normalize_sku(sku))
    result = await db.execute(query.order_by(models.Publication.sku.asc(), models.Publication.id.asc()))
    return result.scalars().all()

async def create_publication(db: AsyncSession, data: schemas.PublicationCreate):
    """Vincula un SKU existente (producto o kit) con una publicación de MercadoLibre."""
    sku = stock.normalize_sku(data.sku)
    if not await get_product_by_sku(db, sku) and not await get_kit_by_sku(db, sku):
        raise ValueError(f"El SKU '{sku}' no corresponde a ningún producto ni kit.")

    publication = models.Publication(
        sku=sku,
        meli_item_id=data.meli_item_id.strip(),
        meli_variation_id=(data.meli_variation_id or "").strip() or None,
        safety_stock=data.safety_stock,
    )
    db.add(publication)
    await db.commit()
    await db.refresh(publication)
    return publication

async def delete_publication(db: AsyncSession, publication_id: int):
    result = await db.execute(select(models.Publication).filter(models.Publication.id == publication_id))
    publication = result.scalars().first()
    if publication:
        await db.delete(publication)
        await db.commit()
    return publication

# --- DASHBOARD ---

async def get_dashboard_stats(db: AsyncSession) -> Dict[str, Any]:
    totals = await db.execute(
        select(
            func.count(models.Product.id),
            func.coalesce(func.sum(models.Product.stock_total), 0),
            func.coalesce(func.sum(models.Product.stock_total * models.Product.cost_price), 0),
        )
    )
    total_skus, total_units, inventory_value = totals.one()

    suppliers = await db.execute(select(func.count(models.Supplier.id)))

    rubro_label = func.coalesce(models.Product.rubro, "Sin rubro")
    by_rubro = await db.execute(
        select(rubro_label, func.sum(models.Product.stock_total))
        .group_by(rubro_label)
        .order_by(rubro_label.asc())
    )

    return {
        "total_skus": total_skus or 0,
        "total_units": int(total_units or 0),
        "total_inventory_value": stock.round_money(Decimal(str(inventory_value or 0))),
        "total_suppliers": suppliers.scalar() or 0,
        "stock_by_rubro": [{"rubro": row[0], "stock_total": int(row[1] or 0)} for row in by_rubro.all()],
    }

async def delete_rows(db: AsyncSession, model, *conditions) -> int:
    """DELETE masivo sin commit. Devuelve la cantidad de filas borradas."""
    result = await db.execute(delete(model).where(*conditions))
    return result.rowcount or 0
