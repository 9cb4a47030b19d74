"""
Cliente mínimo de MercadoLibre para sincronizar stock publicable.

Solo envía available_quantity (y status active/paused). El mapeo del resto
de los campos de la publicación no se maneja aquí.
"""
import logging
import os
from typing import Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

MELI_API_URL = os.getenv("MELI_API_URL", "https://api.mercadolibre.com")
MAX_RETRIES = 5

# Causas de error 400 que indican que la publicación no se puede modificar
NON_MODIFIABLE_CAUSES = {"item.price.not_modifiable", "field_not_updatable"}


class MeliRetryableError(Exception):
    """409/429: conflicto o límite de tasa. Se reintenta con backoff."""


class MeliError(Exception):
    """Fallo definitivo al actualizar una publicación."""


class MeliClient:
    def __init__(
        self,
        access_token: str,
        base_url: str = MELI_API_URL,
        max_retries: int = MAX_RETRIES,
        backoff: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.backoff = backoff
        self.transport = transport

    def _build_request(self, publication, quantity: int):
        """Arma URL y cuerpo según sea publicación simple o variación."""
        if publication.meli_variation_id:
            url = f"{self.base_url}/items/{publication.meli_item_id}/variations"
            body = [{"id": publication.meli_variation_id, "available_quantity": quantity}]
        else:
            url = f"{self.base_url}/items/{publication.meli_item_id}"
            body = {"available_quantity": quantity}
            new_status = "active" if quantity > 0 else "paused"
            if publication.current_status != new_status:
                body["status"] = new_status
        return url, body

    async def _put(self, client: httpx.AsyncClient, url: str, body) -> dict:
        response = await client.put(url, json=body)
        if response.is_success:
            return {"success": True, "data": response.json()}

        status_code = response.status_code
        try:
            error_body = response.json()
        except ValueError:
            error_body = {"message": response.text}

        if status_code == 400:
            causes = {cause.get("code") for cause in (error_body.get("cause") or []) if isinstance(cause, dict)}
            if causes & NON_MODIFIABLE_CAUSES:
                return {"success": False, "skipped": True, "message": f"Publicación no modificable: {url}"}

        if status_code in (409, 429):
            raise MeliRetryableError(f"Conflicto ({status_code}) en {url}")

        raise MeliError(f"Fallo definitivo en {url}. Status: {status_code}. Respuesta: {error_body}")

    async def update_stock(self, publication, quantity: int) -> dict:
        """
        Actualiza la cantidad disponible de una publicación.

        Reintenta 409/429 con backoff exponencial hasta `max_retries` intentos.

        Raises:
            MeliError: error definitivo, o reintentos agotados.
        """
        url, body = self._build_request(publication, quantity)
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        async with httpx.AsyncClient(headers=headers, transport=self.transport, timeout=10.0) as client:
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.max_retries),
                    wait=wait_exponential(multiplier=self.backoff),
                    retry=retry_if_exception_type(MeliRetryableError),
                    reraise=True,
                ):
                    with attempt:
                        result = await self._put(client, url, body)
            except MeliRetryableError as e:
                raise MeliError(f"No se pudo actualizar {publication.meli_item_id} tras {self.max_retries} intentos: {e}")
            except httpx.HTTPError as e:
                raise MeliError(f"Error de conexión con MercadoLibre: {e}")

        if result.get("success") and not publication.meli_variation_id:
            publication.current_status = body.get("status", publication.current_status)
        return result
