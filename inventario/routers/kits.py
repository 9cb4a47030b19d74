from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from .. import crud, schemas
from ..database import get_db

router = APIRouter(prefix="/kits", tags=["Kits"])

@router.get("", response_model=List[schemas.KitResponse])
async def read_kits(search: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    """Lista los kits con su stock armable calculado en el momento."""
    return await crud.get_kits(db, search=search)

@router.post("", response_model=schemas.KitResponse, status_code=201)
async def create_kit(kit: schemas.KitCreate, db: AsyncSession = Depends(get_db)):
    """
    **Crear Kit**

    **Errores:**
    - `400 Bad Request`: SKU usado por un producto u otro kit, o componente inexistente.
    """
    try:
        db_kit = await crud.create_kit(db, kit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await crud.kit_to_response(db, db_kit)

@router.get("/{kit_id}", response_model=schemas.KitResponse)
async def read_kit(kit_id: int, db: AsyncSession = Depends(get_db)):
    db_kit = await crud.get_kit_by_id(db, kit_id)
    if db_kit is None:
        raise HTTPException(status_code=404, detail="Kit no encontrado")
    return await crud.kit_to_response(db, db_kit)

@router.put("/{kit_id}", response_model=schemas.KitResponse)
async def update_kit(kit_id: int, updates: schemas.KitUpdate, db: AsyncSession = Depends(get_db)):
    try:
        db_kit = await crud.update_kit(db, kit_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if db_kit is None:
        raise HTTPException(status_code=404, detail="Kit no encontrado")
    return await crud.kit_to_response(db, db_kit)

@router.delete("/{kit_id}", status_code=204)
async def delete_kit(kit_id: int, db: AsyncSession = Depends(get_db)):
    """Elimina el kit. El stock de los componentes no cambia."""
    db_kit = await crud.delete_kit(db, kit_id)
    if not db_kit:
        raise HTTPException(status_code=404, detail="Kit no encontrado")
    return
