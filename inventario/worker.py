"""
Worker de sincronización de stock con MercadoLibre.

Escucha `stock.updated` en el bus de eventos y, para cada publicación
vinculada a los SKU afectados (o a kits que los contienen), publica
max(0, disponible - stock de seguridad).
"""
import asyncio
import functools
import json
import logging
import os

import aio_pika
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from .database import make_sync_session_factory
from .models import Kit, KitComponent, Product, Publication
from .services.marketplace import MeliClient, MeliError
from .services.stock import kit_availability, normalize_sku

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("inventory-service")

# Configuración
RABBITMQ_URL = os.getenv("RABBITMQ_URL")
MELI_ACCESS_TOKEN = os.getenv("MELI_ACCESS_TOKEN")
QUEUE_NAME = "inventory_meli_stock_sync"


@retry(
    stop=stop_after_attempt(15),
    wait=wait_fixed(5),
    retry=retry_if_exception_type(Exception)
)
async def get_rabbitmq_connection():
    logger.info("⏳ [Inventory] Conectando a RabbitMQ...")
    connection = await aio_pika.connect_robust(RABBITMQ_URL)
    logger.info("✅ [Inventory] Conectado exitosamente.")
    return connection


def publishable_quantities(db, skus):
    """
    Calcula la cantidad a publicar por cada publicación afectada.

    Returns:
        Lista de (Publication, cantidad).
    """
    skus = {normalize_sku(s) for s in skus if s}
    if not skus:
        return []

    products = db.execute(select(Product).filter(Product.sku.in_(list(skus)))).scalars().all()
    product_ids = [p.id for p in products]

    kits = []
    if product_ids:
        kits = db.execute(
            select(Kit)
            .options(selectinload(Kit.components))
            .join(KitComponent, KitComponent.kit_id == Kit.id)
            .filter(KitComponent.product_id.in_(product_ids))
            .distinct()
        ).scalars().all()

    component_ids = {c.product_id for kit in kits for c in kit.components}
    components = db.execute(select(Product).filter(Product.id.in_(list(component_ids)))).scalars().all() if component_ids else []
    products_by_id = {p.id: p for p in components}

    available = {kit.sku: kit_availability(kit, products_by_id) for kit in kits}
    # Si un SKU fuera producto y kit a la vez, manda el producto
    available.update({p.sku: p.stock_disponible or 0 for p in products})

    publications = db.execute(
        select(Publication).filter(Publication.sku.in_(list(available))).order_by(Publication.id.asc())
    ).scalars().all()

    return [(pub, max(0, available[pub.sku] - (pub.safety_stock or 0))) for pub in publications]


async def sync_skus(skus, client: MeliClient, session_factory) -> dict:
    """Empuja el stock publicable de los SKU a MercadoLibre. Los errores se loguean y se sigue."""
    summary = {"updated": 0, "skipped": 0, "failed": 0}

    with session_factory() as db:
        for publication, quantity in publishable_quantities(db, skus):
            try:
                result = await client.update_stock(publication, quantity)
            except MeliError as e:
                logger.error(f"❌ {publication.meli_item_id} ({publication.sku}): {e}")
                summary["failed"] += 1
                continue

            if result.get("skipped"):
                logger.warning(f"⚠️ {result.get('message')}")
                summary["skipped"] += 1
                continue

            publication.last_synced_quantity = quantity
            summary["updated"] += 1
            logger.info(f"✅ {publication.meli_item_id} ({publication.sku}) -> {quantity}")

        db.commit()

    return summary


async def process_message(message: aio_pika.IncomingMessage, client: MeliClient, session_factory):
    async with message.process():
        try:
            body = json.loads(message.body)

            # Soporte para estructura plana o anidada en 'data'
            skus = body.get("skus") or body.get("data", {}).get("skus")

            if skus and message.routing_key == "stock.updated":
                logger.info(f"📦 Sincronizando stock de {len(skus)} SKU ({body.get('reason')})")
                await sync_skus(skus, client, session_factory)
        except Exception as e:
            logger.error(f"❌ Error procesando mensaje: {e}")


async def main():
    if not MELI_ACCESS_TOKEN:
        logger.warning("⚠️ MELI_ACCESS_TOKEN no configurado, el worker no puede sincronizar.")
        return

    client = MeliClient(MELI_ACCESS_TOKEN)
    session_factory = make_sync_session_factory()

    connection = await get_rabbitmq_connection()
    async with connection:
        channel = await connection.channel()
        exchange = await channel.declare_exchange('erp_events', aio_pika.ExchangeType.TOPIC, durable=True)
        queue = await channel.declare_queue(QUEUE_NAME, durable=True)

        await queue.bind(exchange, routing_key='stock.updated')

        logger.info("🎧 [Inventory] Escuchando eventos...")
        await queue.consume(functools.partial(process_message, client=client, session_factory=session_factory))
        await asyncio.Future()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
