from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from .. import crud, schemas, events
from ..database import get_db

router = APIRouter(prefix="/products", tags=["Products"])

@router.get("", response_model=schemas.PaginatedResponse[schemas.ProductResponse])
async def read_products(
    page: int = 1,
    limit: int = 50,
    search: Optional[str] = None,
    brand: Optional[str] = None,
    rubro: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    **Listar Productos**

    Catálogo paginado. El filtro `search` busca por SKU, nombre o marca.
    """
    return await crud.get_products(db, page=page, limit=limit, search=search, brand=brand, rubro=rubro)

@router.post("/entry", response_model=schemas.StockEntryResponse, status_code=201)
async def register_entry(
    entry: schemas.StockEntryCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    **Ingreso de Mercadería**

    Suma stock a un SKU existente o da de alta el producto si no existe.

    **Errores:**
    - `400 Bad Request`: SKU nuevo sin nombre, o proveedor inexistente.
    """
    try:
        product, created = await crud.register_stock_entry(db, entry)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    events.publish_stock_updated([product.sku], reason="entry")
    return {"created": created, "product": product}

@router.get("/by-sku/{sku}", response_model=schemas.ProductResponse)
async def read_product_by_sku(sku: str, db: AsyncSession = Depends(get_db)):
    db_product = await crud.get_product_by_sku(db, sku)
    if db_product is None:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return db_product

@router.get("/{product_id}", response_model=schemas.ProductResponse)
async def read_product(product_id: int, db: AsyncSession = Depends(get_db)):
    """Obtiene el detalle de un producto por ID."""
    db_product = await crud.get_product_by_id(db, product_id)
    if db_product is None:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return db_product

@router.put("/{product_id}", response_model=schemas.ProductResponse)
async def update_product(
    product_id: int,
    product_update: schemas.ProductUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Edita los datos descriptivos y precios. El stock no se edita por aquí."""
    try:
        updated_product = await crud.update_product(db, product_id, product_update)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not updated_product:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return updated_product

@router.delete("/{product_id}", status_code=204)
async def delete_product(product_id: int, db: AsyncSession = Depends(get_db)):
    product = await crud.delete_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return
