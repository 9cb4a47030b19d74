from pydantic import BaseModel, ConfigDict, Field, field_validator
from decimal import Decimal
from datetime import datetime
from typing import Optional, List, Generic, TypeVar

from .models import OrderStatus, ShippingType

T = TypeVar("T")

# --- UTILIDADES ---

class MetaData(BaseModel):
    """Metadatos de paginación."""
    total: int
    page: int
    limit: int
    total_pages: int

class PaginatedResponse(BaseModel, Generic[T]):
    """Respuesta genérica paginada."""
    data: List[T]
    meta: MetaData

# --- PRODUCTOS ---

class ProductBase(BaseModel):
    """Datos descriptivos del producto."""
    name: str = Field(..., description="Nombre del producto")
    brand: Optional[str] = None
    rubro: Optional[str] = None
    subrubro: Optional[str] = None
    supplier_id: Optional[int] = None
    cost_price: Decimal = Field(Decimal(0), ge=0)
    sale_price: Decimal = Field(Decimal(0), ge=0)

class ProductUpdate(BaseModel):
    """Campos opcionales para edición. El stock solo cambia por ingresos y despachos."""
    name: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = None
    rubro: Optional[str] = None
    subrubro: Optional[str] = None
    supplier_id: Optional[int] = None
    cost_price: Optional[Decimal] = Field(None, ge=0)
    sale_price: Optional[Decimal] = Field(None, ge=0)

    @field_validator("name", "cost_price", "sale_price")
    @classmethod
    def not_null(cls, value):
        # Se pueden omitir, pero no vaciar con null
        if value is None:
            raise ValueError("no puede ser null")
        return value

class ProductResponse(ProductBase):
    """Respuesta completa del producto."""
    id: int
    sku: str
    stock_total: int
    stock_reservado: int
    stock_disponible: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class StockEntryCreate(BaseModel):
    """Ingreso de mercadería. Si el SKU no existe se crea el producto."""
    sku: str = Field(..., min_length=1, description="SKU (no distingue mayúsculas)")
    quantity: int = Field(..., gt=0, description="Unidades que ingresan")
    name: Optional[str] = Field(None, description="Obligatorio solo si el producto es nuevo")
    brand: Optional[str] = None
    rubro: Optional[str] = None
    subrubro: Optional[str] = None
    supplier_id: Optional[int] = None
    cost_price: Optional[Decimal] = Field(None, ge=0)
    sale_price: Optional[Decimal] = Field(None, ge=0)

class StockEntryResponse(BaseModel):
    created: bool
    product: ProductResponse

class MovementResponse(BaseModel):
    id: int
    product_id: int
    sku: str
    type: str
    quantity: int
    description: Optional[str] = None
    reference_id: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# --- KITS ---

class KitComponentIn(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)

class KitComponentResponse(BaseModel):
    product_id: int
    sku: str
    quantity: int

    model_config = ConfigDict(from_attributes=True)

class KitCreate(BaseModel):
    sku: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    components: List[KitComponentIn] = Field(..., min_length=1)

class KitUpdate(BaseModel):
    """El SKU de un kit no se puede cambiar."""
    name: Optional[str] = Field(None, min_length=1)
    components: Optional[List[KitComponentIn]] = Field(None, min_length=1)

class KitResponse(BaseModel):
    id: int
    sku: str
    name: str
    components: List[KitComponentResponse]
    available_stock: int = 0

    model_config = ConfigDict(from_attributes=True)

# --- PEDIDOS DE VENTA ---

class SaleLineIn(BaseModel):
    sku: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)

class SaleCreate(BaseModel):
    """Venta manual o importada de MercadoLibre."""
    items: List[SaleLineIn] = Field(..., min_length=1)
    shipping_type: ShippingType = ShippingType.MERCADO_ENVIOS
    buyer_name: Optional[str] = "Venta Manual"
    meli_order_id: Optional[str] = None

class OrderItemResponse(BaseModel):
    id: int
    product_id: Optional[int] = None
    sku: str
    title: Optional[str] = None
    quantity: int
    unit_price: Decimal
    reserved_quantity: int

    model_config = ConfigDict(from_attributes=True)

class OrderResponse(BaseModel):
    id: int
    status: str
    shipping_type: str
    buyer_name: Optional[str] = None
    meli_order_id: Optional[str] = None
    total_amount: Decimal
    assigned_to: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse]
    fulfillable: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)

class StatusUpdate(BaseModel):
    status: OrderStatus

class PickingListEntry(BaseModel):
    sku: str
    quantity: int

class PickingListRequest(BaseModel):
    order_ids: List[int] = Field(..., min_length=1)

class AssignOrdersRequest(BaseModel):
    order_ids: List[int] = Field(..., min_length=1)
    user: str = Field(..., min_length=1, description="Operario que toma los pedidos")

class AssignOrdersResponse(BaseModel):
    assigned: List[int]
    picking_list: List[PickingListEntry]

class WarehouseQueue(BaseModel):
    mine: List[OrderResponse]
    unassigned: List[OrderResponse]

class BulkDispatchRequest(BaseModel):
    order_ids: List[int] = Field(..., min_length=1)
    confirmation: str

class ClearOrdersRequest(BaseModel):
    confirmation: str

class ClearOrdersResponse(BaseModel):
    deleted_sales_orders: int
    deleted_supplier_orders: int

class ConfirmationCheck(BaseModel):
    phrase: str
    enabled: bool

# --- PROVEEDORES Y COMPRAS ---

class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1)
    markup: Decimal = Field(Decimal(0), description="Recargo % sobre el costo")

class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    markup: Optional[Decimal] = None

    @field_validator("name", "markup")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("no puede ser null")
        return value

class SupplierResponse(BaseModel):
    id: int
    name: str
    markup: Decimal

    model_config = ConfigDict(from_attributes=True)

class BulkCostUpdate(BaseModel):
    percentage: Decimal = Field(..., description="Aumento % del costo (puede ser negativo)")
    brand: Optional[str] = None
    rubro: Optional[str] = None

class PriceUpdateResult(BaseModel):
    updated: int

class SupplierOrderResponse(BaseModel):
    id: int
    supplier_id: Optional[int] = None
    product_id: Optional[int] = None
    sku: str
    quantity: int
    status: str
    sale_type: Optional[str] = None
    related_sale_id: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class SupplierOrderSelection(BaseModel):
    order_ids: List[int] = Field(..., min_length=1)

class SupplierChange(BaseModel):
    supplier_id: int

class PurchaseOrderCreate(BaseModel):
    supplier_id: int
    supplier_order_ids: List[int] = Field(..., min_length=1)

class PurchaseOrderItem(BaseModel):
    sku: str
    quantity: int

class PurchaseOrderResponse(BaseModel):
    id: int
    po_number: str
    supplier_name: str
    items: List[PurchaseOrderItem]
    total_items: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# --- PUBLICACIONES ---

class PublicationCreate(BaseModel):
    sku: str = Field(..., min_length=1)
    meli_item_id: str = Field(..., min_length=1)
    meli_variation_id: Optional[str] = None
    safety_stock: int = Field(0, ge=0)

class PublicationResponse(BaseModel):
    id: int
    sku: str
    meli_item_id: str
    meli_variation_id: Optional[str] = None
    safety_stock: int
    current_status: Optional[str] = None
    last_synced_quantity: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

# --- DASHBOARD ---

class RubroStock(BaseModel):
    rubro: str
    stock_total: int

class DashboardStats(BaseModel):
    total_skus: int
    total_units: int
    total_inventory_value: Decimal
    total_suppliers: int
    stock_by_rubro: List[RubroStock]
