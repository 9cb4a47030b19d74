import pika
import json
import os
import logging
from decimal import Decimal
from datetime import date, datetime

logger = logging.getLogger("inventory-service")

EXCHANGE = "erp_events"


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (date, datetime)):
            return obj.isoformat()
        return str(obj)


def publish_event(routing_key: str, data: dict):
    """Publica un evento en el bus de mensajes. Si falla, solo se loguea."""
    url = os.getenv("RABBITMQ_URL")
    if not url:
        logger.debug(f"Bus de eventos no configurado, se omite {routing_key}")
        return
    try:
        connection = pika.BlockingConnection(pika.URLParameters(url))
        channel = connection.channel()
        channel.exchange_declare(exchange=EXCHANGE, exchange_type='topic', durable=True)

        message_body = json.dumps(data, cls=CustomJSONEncoder)

        channel.basic_publish(
            exchange=EXCHANGE,
            routing_key=routing_key,
            body=message_body,
            properties=pika.BasicProperties(delivery_mode=2, content_type='application/json')
        )
        connection.close()
        logger.info(f"📢 Evento publicado: {routing_key}")
    except Exception as e:
        logger.error(f"❌ Error publicando evento {routing_key}: {e}")


def publish_stock_updated(skus, reason: str):
    """Avisa al worker de sincronización qué SKUs cambiaron de stock."""
    skus = sorted({s for s in skus if s})
    if not skus:
        return
    publish_event("stock.updated", {"skus": skus, "reason": reason})
