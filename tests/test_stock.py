from datetime import datetime, timezone
from decimal import Decimal

import pytest

from inventario.models import Kit, KitComponent, Product
from inventario.services import stock


def make_product(id, sku, total=0, reserved=0, sale_price=0, **fields):
    product = Product(
        id=id,
        sku=sku,
        name=f"Producto {sku}",
        stock_total=total,
        stock_reservado=reserved,
        sale_price=Decimal(sale_price),
        **fields,
    )
    stock.refresh_available(product)
    return product


def make_kit(sku, *components):
    return Kit(
        sku=sku,
        name=f"Kit {sku}",
        components=[KitComponent(product_id=pid, sku=psku, quantity=qty) for pid, psku, qty in components],
    )


class TestStockEntry:
    def test_entry_on_existing_product_keeps_reservation(self):
        product = make_product(1, "A", total=10, reserved=4)

        stock.apply_entry(product, 5)

        assert product.stock_total == 15
        assert product.stock_disponible == 11
        assert product.stock_reservado == 4

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_entry_requires_positive_quantity(self, quantity):
        product = make_product(1, "A", total=10)
        with pytest.raises(ValueError):
            stock.apply_entry(product, quantity)
        assert product.stock_total == 10

    def test_new_product_from_entry(self):
        product = stock.new_product_from_entry("  abc-1 ", "Tornillo", 7)

        assert product.sku == "ABC-1"
        assert product.stock_total == 7
        assert product.stock_disponible == 7
        assert product.stock_reservado == 0
        assert product.sale_price == Decimal(0)

    def test_new_product_needs_a_name(self):
        with pytest.raises(ValueError):
            stock.new_product_from_entry("abc", "  ", 1)


class TestReserve:
    def test_reserves_everything_when_available(self):
        product = make_product(1, "A", total=10)
        assert stock.reserve(product, 4) == 4
        assert (product.stock_reservado, product.stock_disponible) == (4, 6)

    def test_reserves_only_what_is_available(self):
        product = make_product(1, "A", total=5, reserved=2)
        assert stock.reserve(product, 10) == 3
        assert (product.stock_reservado, product.stock_disponible) == (5, 0)


class TestKitAvailability:
    def test_minimum_over_components(self):
        products = {1: make_product(1, "A", total=10), 2: make_product(2, "B", total=9)}
        kit = make_kit("K1", (1, "A", 2), (2, "B", 3))

        assert stock.kit_availability(kit, products) == 3

    def test_missing_component_counts_as_zero(self, caplog):
        products = {1: make_product(1, "A", total=10)}
        kit = make_kit("K1", (1, "A", 1), (99, "GONE", 1))

        assert stock.kit_availability(kit, products) == 0
        assert "GONE" in caplog.text

    def test_kit_without_components(self):
        assert stock.kit_availability(make_kit("EMPTY"), {}) == 0


class TestSaleExpansion:
    def test_product_wins_over_kit(self):
        product = make_product(1, "X", total=1)
        kit = make_kit("X", (2, "Y", 1))
        assert stock.resolve_sku("x", product, kit) == stock.ResolvedProduct(product)
        assert stock.resolve_sku("x", None, kit) == stock.ResolvedKit(kit)
        assert stock.resolve_sku(" x ", None, None) == stock.Unregistered("X")

    def test_kit_expands_per_component(self):
        products = {1: make_product(1, "A", sale_price=10), 2: make_product(2, "B", sale_price=3)}
        kit = make_kit("K1", (1, "A", 2), (2, "B", 3))

        lines = stock.expand_sale(stock.ResolvedKit(kit), 2, products)

        assert [(line.sku, line.quantity, line.product_id) for line in lines] == [("A", 4, 1), ("B", 6, 2)]
        assert lines[0].unit_price == Decimal(10)

    def test_unregistered_sku_becomes_placeholder(self):
        [line] = stock.expand_sale(stock.Unregistered("NOPE"), 3)

        assert line.product_id is None
        assert line.unit_price == Decimal(0)
        assert line.quantity == 3
        assert line.title == "Producto no registrado: NOPE"


class TestPurchasing:
    def test_consolidates_by_sku_in_first_seen_order(self):
        lines = [{"sku": "B", "quantity": 1}, {"sku": "A", "quantity": 2}, {"sku": "B", "quantity": 4}]
        assert stock.consolidate_purchase_items(lines) == [
            {"sku": "B", "quantity": 5},
            {"sku": "A", "quantity": 2},
        ]

    def test_purchase_order_number_uses_last_six_millis_digits(self):
        now = datetime(2024, 1, 1, 0, 0, 45, tzinfo=timezone.utc)
        assert stock.purchase_order_number(now) == "OC-245000"

    def test_price_with_markup(self):
        assert stock.price_with_markup(Decimal("100"), Decimal("30")) == Decimal("130.00")
        assert stock.price_with_markup(Decimal("9.99"), None) == Decimal("9.99")
