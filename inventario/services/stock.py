"""
Reglas de stock del depósito.

Funciones puras sobre instancias de los modelos (no tocan la base de datos):
ingreso de mercadería, reservas, disponibilidad de kits, resolución de SKU
y expansión de ventas en líneas de pedido.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Mapping, Optional, Union

from ..models import Kit, Product

logger = logging.getLogger(__name__)


# --- SKU ---

def normalize_sku(sku: str) -> str:
    """Los SKU se guardan siempre en mayúsculas y sin espacios en los extremos."""
    return (sku or "").strip().upper()


# --- STOCK DE PRODUCTOS ---

def refresh_available(product: Product) -> int:
    """Recalcula stock_disponible = stock_total - stock_reservado (nunca negativo)."""
    product.stock_disponible = max(0, (product.stock_total or 0) - (product.stock_reservado or 0))
    return product.stock_disponible


def apply_entry(product: Product, quantity: int) -> Product:
    """
    Suma mercadería a un producto existente.

    El ingreso impacta en stock_total y stock_disponible; stock_reservado no cambia.
    """
    if quantity <= 0:
        raise ValueError("La cantidad a ingresar debe ser mayor a 0.")
    product.stock_total = (product.stock_total or 0) + quantity
    product.stock_disponible = (product.stock_disponible or 0) + quantity
    return product


def new_product_from_entry(sku: str, name: str, quantity: int, **fields) -> Product:
    """Crea un producto nuevo a partir de su primer ingreso de stock."""
    if quantity <= 0:
        raise ValueError("La cantidad a ingresar debe ser mayor a 0.")
    if not (name or "").strip():
        raise ValueError("El nombre es obligatorio para crear un producto nuevo.")
    fields.setdefault("cost_price", Decimal(0))
    fields.setdefault("sale_price", Decimal(0))
    return Product(
        sku=normalize_sku(sku),
        name=name.strip(),
        stock_total=quantity,
        stock_reservado=0,
        stock_disponible=quantity,
        **fields,
    )


def reserve(product: Product, quantity: int) -> int:
    """
    Reserva hasta `quantity` unidades del stock disponible.

    Returns:
        Unidades efectivamente reservadas (puede ser menor si falta stock).
    """
    reserved = max(0, min(quantity, product.stock_disponible or 0))
    product.stock_reservado = (product.stock_reservado or 0) + reserved
    refresh_available(product)
    return reserved


# --- KITS ---

def kit_availability(kit: Kit, products_by_id: Mapping[int, Product]) -> int:
    """
    Cantidad de kits armables con el stock disponible actual.

    min(floor(disponible / cantidad)) sobre los componentes. Un componente cuyo
    producto ya no existe aporta 0.
    """
    if not kit.components:
        return 0

    levels = []
    for component in kit.components:
        product = products_by_id.get(component.product_id)
        if product is None:
            logger.warning(
                f"⚠️ Kit {kit.sku}: el componente {component.sku} (producto {component.product_id}) no existe. Se cuenta como 0."
            )
            levels.append(0)
            continue
        levels.append((product.stock_disponible or 0) // max(1, component.quantity))
    return min(levels)


# --- RESOLUCIÓN DE SKU ---

@dataclass(frozen=True)
class ResolvedProduct:
    product: Product


@dataclass(frozen=True)
class ResolvedKit:
    kit: Kit


@dataclass(frozen=True)
class Unregistered:
    sku: str


Resolution = Union[ResolvedProduct, ResolvedKit, Unregistered]


def resolve_sku(sku: str, product: Optional[Product], kit: Optional[Kit]) -> Resolution:
    """Decide una sola vez qué es un SKU. El producto tiene prioridad sobre el kit."""
    if product is not None:
        return ResolvedProduct(product)
    if kit is not None:
        return ResolvedKit(kit)
    return Unregistered(normalize_sku(sku))


@dataclass
class SaleLine:
    """Línea de venta ya expandida, lista para convertirse en OrderItem."""
    sku: str
    quantity: int
    title: str
    unit_price: Decimal
    product_id: Optional[int] = None


def expand_sale(resolution: Resolution, quantity: int,
                products_by_id: Optional[Mapping[int, Product]] = None) -> List[SaleLine]:
    """
    Convierte la venta de `quantity` unidades de un SKU resuelto en líneas de pedido.

    - Producto: una línea.
    - Kit: una línea por componente con cantidad componente.quantity * quantity.
    - No registrado: una línea sin producto y con precio 0 (se acepta igual).
    """
    if quantity <= 0:
        raise ValueError("La cantidad vendida debe ser mayor a 0.")

    if isinstance(resolution, ResolvedProduct):
        product = resolution.product
        return [SaleLine(
            sku=product.sku,
            quantity=quantity,
            title=product.name,
            unit_price=Decimal(product.sale_price or 0),
            product_id=product.id,
        )]

    if isinstance(resolution, ResolvedKit):
        products_by_id = products_by_id or {}
        lines = []
        for component in resolution.kit.components:
            product = products_by_id.get(component.product_id)
            if product is None:
                logger.warning(
                    f"⚠️ Kit {resolution.kit.sku}: componente {component.sku} sin producto. Se registra como no registrado."
                )
                lines.append(SaleLine(
                    sku=component.sku,
                    quantity=component.quantity * quantity,
                    title=f"Producto no registrado: {component.sku}",
                    unit_price=Decimal(0),
                ))
                continue
            lines.append(SaleLine(
                sku=product.sku,
                quantity=component.quantity * quantity,
                title=product.name,
                unit_price=Decimal(product.sale_price or 0),
                product_id=product.id,
            ))
        return lines

    return [SaleLine(
        sku=resolution.sku,
        quantity=quantity,
        title=f"Producto no registrado: {resolution.sku}",
        unit_price=Decimal(0),
    )]


# --- COMPRAS ---

def consolidate_purchase_items(lines: Iterable[Mapping]) -> List[Dict]:
    """Agrupa por SKU sumando cantidades. Conserva el orden de primera aparición."""
    grouped: Dict[str, Dict] = {}
    for line in lines:
        sku = line["sku"]
        if sku in grouped:
            grouped[sku]["quantity"] += line["quantity"]
        else:
            grouped[sku] = {"sku": sku, "quantity": line["quantity"]}
    return list(grouped.values())


def purchase_order_number(now: Optional[datetime] = None) -> str:
    """Número de OC derivado del timestamp en milisegundos: OC-XXXXXX."""
    now = now or datetime.now()
    millis = int(now.timestamp() * 1000)
    return f"OC-{str(millis)[-6:]}"


def round_money(amount: Decimal) -> Decimal:
    """Redondea un monto a 2 decimales."""
    return Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def price_with_markup(cost_price, markup) -> Decimal:
    """Precio de venta = costo * (1 + recargo%)."""
    factor = 1 + Decimal(str(markup or 0)) / Decimal(100)
    return round_money(Decimal(str(cost_price or 0)) * factor)
