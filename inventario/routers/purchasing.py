from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date
from .. import crud, schemas
from ..database import get_db
from ..models import ShippingType

router = APIRouter(tags=["Purchasing"])

# --- PROVEEDORES ---

@router.get("/suppliers", response_model=List[schemas.SupplierResponse])
async def read_suppliers(db: AsyncSession = Depends(get_db)):
    return await crud.get_suppliers(db)

@router.post("/suppliers", response_model=schemas.SupplierResponse, status_code=201)
async def create_supplier(supplier: schemas.SupplierCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await crud.create_supplier(db, supplier)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.put("/suppliers/{supplier_id}", response_model=schemas.SupplierResponse)
async def update_supplier(
    supplier_id: int,
    updates: schemas.SupplierUpdate,
    db: AsyncSession = Depends(get_db)
):
    try:
        supplier = await crud.update_supplier(db, supplier_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not supplier:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado")
    return supplier

@router.delete("/suppliers/{supplier_id}", status_code=204)
async def delete_supplier(supplier_id: int, db: AsyncSession = Depends(get_db)):
    supplier = await crud.delete_supplier(db, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado")
    return

@router.post("/suppliers/{supplier_id}/apply-markup", response_model=schemas.PriceUpdateResult)
async def apply_markup(supplier_id: int, db: AsyncSession = Depends(get_db)):
    """Recalcula el precio de venta de los productos del proveedor con su recargo."""
    updated = await crud.apply_supplier_markup(db, supplier_id)
    if updated is None:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado")
    return {"updated": updated}

@router.post("/products/bulk-cost-update", response_model=schemas.PriceUpdateResult)
async def bulk_cost_update(data: schemas.BulkCostUpdate, db: AsyncSession = Depends(get_db)):
    """
    **Actualización Masiva de Costos**

    Aplica un porcentaje al costo de los productos de una marca y/o rubro
    y recalcula el precio de venta con el recargo del proveedor.
    """
    try:
        return {"updated": await crud.bulk_update_costs(db, data)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

# --- PEDIDOS A PROVEEDOR ---

@router.get("/supplier-orders", response_model=List[schemas.SupplierOrderResponse])
async def read_supplier_orders(
    supplier_id: Optional[int] = None,
    sale_type: Optional[ShippingType] = None,
    hide_invoiced: bool = False,
    db: AsyncSession = Depends(get_db)
):
    return await crud.get_supplier_orders(
        db,
        supplier_id=supplier_id,
        sale_type=sale_type.value if sale_type else None,
        hide_invoiced=hide_invoiced,
    )

@router.post("/supplier-orders/invoice", response_model=schemas.PriceUpdateResult)
async def invoice_supplier_orders(data: schemas.SupplierOrderSelection, db: AsyncSession = Depends(get_db)):
    """Marca la selección como Facturado."""
    return {"updated": await crud.mark_supplier_orders_invoiced(db, data.order_ids)}

@router.put("/supplier-orders/{order_id}/supplier", response_model=schemas.SupplierOrderResponse)
async def change_supplier(
    order_id: int,
    data: schemas.SupplierChange,
    db: AsyncSession = Depends(get_db)
):
    try:
        order = await crud.change_supplier_order_supplier(db, order_id, data.supplier_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not order:
        raise HTTPException(status_code=404, detail="Pedido a proveedor no encontrado")
    return order

@router.delete("/supplier-orders/{order_id}", status_code=204)
async def complete_supplier_order(order_id: int, db: AsyncSession = Depends(get_db)):
    """Marcar como hecho: el pedido a proveedor se elimina."""
    order = await crud.complete_supplier_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Pedido a proveedor no encontrado")
    return

# --- ÓRDENES DE COMPRA ---

@router.post("/purchase-orders", response_model=schemas.PurchaseOrderResponse, status_code=201)
async def create_purchase_order(data: schemas.PurchaseOrderCreate, db: AsyncSession = Depends(get_db)):
    """
    **Generar Orden de Compra**

    Consolida por SKU los pedidos a proveedor seleccionados. Número `OC-XXXXXX`.
    """
    try:
        return await crud.create_purchase_order(db, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/purchase-orders", response_model=List[schemas.PurchaseOrderResponse])
async def read_purchase_orders(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db)
):
    return await crud.get_purchase_orders(db, start_date=start_date, end_date=end_date)

@router.get("/purchase-orders/{po_id}", response_model=schemas.PurchaseOrderResponse)
async def read_purchase_order(po_id: int, db: AsyncSession = Depends(get_db)):
    po = await crud.get_purchase_order(db, po_id)
    if not po:
        raise HTTPException(status_code=404, detail="Orden de compra no encontrada")
    return po

# --- PUBLICACIONES ---

@router.get("/publications", response_model=List[schemas.PublicationResponse])
async def read_publications(sku: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    return await crud.get_publications(db, sku=sku)

@router.post("/publications", response_model=schemas.PublicationResponse, status_code=201)
async def create_publication(data: schemas.PublicationCreate, db: AsyncSession = Depends(get_db)):
    """Vincula un SKU con una publicación de MercadoLibre para sincronizar su stock."""
    try:
        return await crud.create_publication(db, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/publications/{publication_id}", status_code=204)
async def delete_publication(publication_id: int, db: AsyncSession = Depends(get_db)):
    publication = await crud.delete_publication(db, publication_id)
    if not publication:
        raise HTTPException(status_code=404, detail="Publicación no encontrada")
    return
