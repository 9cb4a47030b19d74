from typing import List
from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from contextlib import asynccontextmanager
import logging
import os

from . import crud, schemas, database, models
from .routers import kits, orders, products, purchasing
from .services.confirmation import CLEAR_ALL, dispatch_gate
from .services.fulfillment import InvalidTransition

# Configuración de Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("inventory-service")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:4200").split(",") if o.strip()]

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Crear tablas si no existen
    async with database.engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    logger.info("✅ Inventory Service listo")
    yield

app = FastAPI(
    title="Inventory Service",
    description="Stock, pedidos de venta, compras y sincronización con MercadoLibre.",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- ERRORES ---

@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=409, content={"detail": str(exc)})

@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    logger.warning(f"⚠️ Conflicto de concurrencia en {request.url.path}: {exc}")
    return JSONResponse(
        status_code=409,
        content={"detail": "El registro fue modificado por otra operación. Recargue e intente de nuevo."}
    )

app.include_router(products.router)
app.include_router(kits.router)
app.include_router(orders.router)
app.include_router(purchasing.router)

# --- ENDPOINTS GENERALES ---

@app.get("/health")
def health_check():
    """Health check para Kubernetes/Docker."""
    return {"status": "ok"}

@app.get("/dashboard", response_model=schemas.DashboardStats)
async def get_dashboard(db: AsyncSession = Depends(database.get_db)):
    """Totales de stock, valorización del inventario y stock por rubro."""
    return await crud.get_dashboard_stats(db)

@app.get("/movements", response_model=List[schemas.MovementResponse])
async def get_movements(limit: int = 100, db: AsyncSession = Depends(database.get_db)):
    """Últimos movimientos de inventario."""
    return await crud.get_recent_movements(db, limit=min(max(limit, 1), 100))

@app.get("/confirmations/check", response_model=schemas.ConfirmationCheck)
def check_confirmation(action: str, text: str = "", count: int = 0):
    """
    Indica si el texto habilita una acción destructiva.

    - `action=clear`: frase `SOY UN VAGO` (distingue mayúsculas).
    - `action=dispatch`: frase `DESPACHAR <count>` (no distingue mayúsculas).
    """
    if action == "clear":
        gate = CLEAR_ALL
    elif action == "dispatch":
        gate = dispatch_gate(count)
    else:
        raise HTTPException(status_code=400, detail=f"Acción desconocida: {action}")
    return {"phrase": gate.phrase, "enabled": gate.is_enabled(text)}
