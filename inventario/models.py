from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
import enum


class OrderStatus(str, enum.Enum):
    PENDING = "Pendiente"                   # Recién vendido, stock reservado
    IN_PREPARATION = "En Preparación"       # El depósito lo está armando
    PREPARED = "Preparado"                  # Listo para despachar
    DISPATCHED = "Despachado"               # Terminal: stock descontado


class ShippingType(str, enum.Enum):
    MERCADO_ENVIOS = "mercado_envios"
    FLEX = "flex"
    OTHER = "other"


class SupplierOrderStatus(str, enum.Enum):
    PENDING = "Pendiente"
    INVOICED = "Facturado"


class MovementType(str, enum.Enum):
    ENTRY = "entrada"       # Ingreso de mercadería
    RESERVE = "reserva"     # Reserva por venta
    DISPATCH = "despacho"   # Salida física del depósito


class Supplier(Base):
    """Proveedor con su regla de recargo (markup %) sobre el costo."""
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    markup = Column(Numeric(6, 2), default=0)


class Product(Base):
    """
    Representa un producto físico del depósito.

    Attributes:
        sku: Código único (siempre en MAYÚSCULAS).
        stock_total: Unidades físicas en el depósito.
        stock_reservado: Unidades comprometidas por pedidos pendientes.
        stock_disponible: stock_total - stock_reservado (nunca negativo).
        version: Contador de concurrencia optimista.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, index=True, nullable=False)
    brand = Column(String, index=True, nullable=True)
    rubro = Column(String, index=True, nullable=True)
    subrubro = Column(String, nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)

    stock_total = Column(Integer, nullable=False, default=0)
    stock_reservado = Column(Integer, nullable=False, default=0)
    stock_disponible = Column(Integer, nullable=False, default=0)

    cost_price = Column(Numeric(12, 2), default=0)
    sale_price = Column(Numeric(12, 2), default=0)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    supplier = relationship("Supplier")

    __mapper_args__ = {"version_id_col": version}


class Kit(Base):
    """Producto virtual armado con cantidades fijas de otros productos. No tiene stock propio."""
    __tablename__ = "kits"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    components = relationship(
        "KitComponent",
        back_populates="kit",
        cascade="all, delete-orphan",
        order_by="KitComponent.id",
    )


class KitComponent(Base):
    __tablename__ = "kit_components"

    id = Column(Integer, primary_key=True, index=True)
    kit_id = Column(Integer, ForeignKey("kits.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, nullable=False)   # Referencia blanda: el producto puede desaparecer
    sku = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    kit = relationship("Kit", back_populates="components")


class SalesOrder(Base):
    """Pedido de venta. Avanza Pendiente -> En Preparación -> Preparado -> Despachado."""
    __tablename__ = "sales_orders"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(String, index=True, nullable=False, default=OrderStatus.PENDING.value)
    shipping_type = Column(String, index=True, nullable=False, default=ShippingType.MERCADO_ENVIOS.value)
    buyer_name = Column(String, nullable=True)
    meli_order_id = Column(String, index=True, nullable=True)
    total_amount = Column(Numeric(12, 2), default=0)
    assigned_to = Column(String, index=True, nullable=True)   # Operario de depósito

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    __mapper_args__ = {"version_id_col": version}


class OrderItem(Base):
    """Línea de pedido. La cantidad queda fija una vez creada la venta."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, nullable=True)     # None = producto no registrado
    sku = Column(String, index=True, nullable=False)
    title = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)

    order = relationship("SalesOrder", back_populates="items")


class SupplierOrder(Base):
    """Pedido a proveedor generado cuando una venta no se puede cubrir con stock propio."""
    __tablename__ = "supplier_orders"

    id = Column(Integer, primary_key=True, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    product_id = Column(Integer, nullable=True)
    sku = Column(String, index=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default=SupplierOrderStatus.PENDING.value)
    sale_type = Column(String, nullable=True)
    related_sale_id = Column(Integer, ForeignKey("sales_orders.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PurchaseOrder(Base):
    """Orden de Compra (OC) consolidada por SKU para un proveedor."""
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    po_number = Column(String, index=True, nullable=False)
    supplier_name = Column(String, nullable=False)
    items = Column(JSON, nullable=False)            # [{"sku": ..., "quantity": ...}]
    total_items = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class InventoryMovement(Base):
    """Historial de movimientos de stock (solo inserción)."""
    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, index=True, nullable=False)
    sku = Column(String, nullable=False)
    type = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)     # Positivo = ingreso, negativo = egreso
    description = Column(String, nullable=True)
    reference_id = Column(Integer, nullable=True)  # ID del pedido si aplica
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Publication(Base):
    """Vínculo entre un SKU (producto o kit) y una publicación de MercadoLibre."""
    __tablename__ = "publications"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String, index=True, nullable=False)
    meli_item_id = Column(String, index=True, nullable=False)
    meli_variation_id = Column(String, nullable=True)
    safety_stock = Column(Integer, nullable=False, default=0)
    current_status = Column(String, nullable=True)   # active / paused
    last_synced_quantity = Column(Integer, nullable=True)
