from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from .. import schemas
from ..database import get_db
from ..models import OrderStatus, ShippingType
from ..services import orders as order_service
from ..services.fulfillment import InvalidTransition, render_picking_list

router = APIRouter(tags=["Orders"])

@router.post("/sales", response_model=schemas.OrderResponse, status_code=201)
async def register_sale(sale: schemas.SaleCreate, db: AsyncSession = Depends(get_db)):
    """
    **Registrar Venta**

    Expande kits, reserva stock y genera pedidos a proveedor por lo que falte.
    Los SKU no registrados se aceptan como línea sin producto.
    """
    try:
        return await order_service.create_sale(db, sale)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/orders", response_model=schemas.PaginatedResponse[schemas.OrderResponse])
async def read_orders(
    page: int = 1,
    limit: int = 50,
    status: Optional[OrderStatus] = None,
    shipping_type: Optional[ShippingType] = None,
    search: Optional[str] = None,
    only_in_stock: bool = False,
    db: AsyncSession = Depends(get_db)
):
    """
    Lista pedidos de venta.

    `only_in_stock=true` deja solo los que se pueden cubrir con el stock disponible.
    """
    return await order_service.get_orders(
        db,
        page=page,
        limit=limit,
        status=status.value if status else None,
        shipping_type=shipping_type.value if shipping_type else None,
        search=search,
        only_in_stock=only_in_stock,
    )

@router.get("/orders/warehouse", response_model=schemas.WarehouseQueue)
async def read_warehouse_queue(user: str, db: AsyncSession = Depends(get_db)):
    """Cola del depósito: mis pedidos y los sin asignar. Flex primero."""
    return await order_service.warehouse_queue(db, user)

@router.post("/orders/assign", response_model=schemas.AssignOrdersResponse)
async def assign_orders(data: schemas.AssignOrdersRequest, db: AsyncSession = Depends(get_db)):
    """Toma pedidos para un operario y devuelve la hoja de picking consolidada."""
    try:
        return await order_service.assign_orders(db, data.order_ids, data.user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/orders/picking-list", response_model=List[schemas.PickingListEntry])
async def picking_list(data: schemas.PickingListRequest, db: AsyncSession = Depends(get_db)):
    try:
        return await order_service.picking_list(db, data.order_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/orders/picking-list/export", response_class=PlainTextResponse)
async def export_picking_list(data: schemas.PickingListRequest, db: AsyncSession = Depends(get_db)):
    """Hoja de picking en texto plano (SKU y cantidad separados por tabulador)."""
    try:
        entries = await order_service.picking_list(db, data.order_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PlainTextResponse(render_picking_list(entries))

@router.post("/orders/bulk-dispatch", response_model=List[schemas.OrderResponse])
async def bulk_dispatch(data: schemas.BulkDispatchRequest, db: AsyncSession = Depends(get_db)):
    """
    **Despacho Masivo**

    Requiere escribir `DESPACHAR <n>`. Todo o nada.

    **Errores:**
    - `400 Bad Request`: frase incorrecta o pedido inexistente.
    - `409 Conflict`: algún pedido no está en estado Preparado.
    """
    try:
        return await order_service.bulk_dispatch(db, data)
    except InvalidTransition:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/orders/clear", response_model=schemas.ClearOrdersResponse, status_code=status.HTTP_200_OK)
async def clear_orders(data: schemas.ClearOrdersRequest, db: AsyncSession = Depends(get_db)):
    """
    **Limpiar Todo**

    Elimina pedidos Pendientes (Mercado Envíos y Flex) y todos los pedidos a proveedor.
    Requiere escribir exactamente `SOY UN VAGO`.
    """
    try:
        return await order_service.clear_pending(db, data.confirmation)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/orders/{order_id}", response_model=schemas.OrderResponse)
async def read_order(order_id: int, db: AsyncSession = Depends(get_db)):
    order = await order_service.get_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Pedido no encontrado")
    return order

@router.patch("/orders/{order_id}/status", response_model=schemas.OrderResponse)
async def update_order_status(
    order_id: int,
    data: schemas.StatusUpdate,
    db: AsyncSession = Depends(get_db)
):
    """
    Avanza el pedido al siguiente estado.

    El paso a Despachado descuenta stock en la misma transacción.
    Transiciones salteadas, hacia atrás o desde Despachado devuelven `409`.
    """
    order = await order_service.change_status(db, order_id, data.status)
    if order is None:
        raise HTTPException(status_code=404, detail="Pedido no encontrado")
    return order

@router.post("/orders/{order_id}/dispatch", response_model=schemas.OrderResponse)
async def dispatch_order(order_id: int, db: AsyncSession = Depends(get_db)):
    order = await order_service.dispatch_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Pedido no encontrado")
    return order
