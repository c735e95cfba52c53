import pytest

from kelola.errors import ConflictError, ProductNotFoundError, ValidationError, VariantNotFoundError
from kelola.extensions import db
from kelola.errors import CustomerNotFoundError
from kelola.models import ActivityAction, ActivityLog, Product, ProductVariant, StockMovement, Supplier
from kelola.services import catalog_service, ledger_service, party_service, sales_service
from kelola.validation import PartyRequest, ProductRequest, SaleItemRequest, SaleRequest, VariantRequest


class TestProducts:

    def test_starting_stock_is_initial_stock_not_a_movement(self, make_variant):
        variant = make_variant(stock=12)

        assert variant.initial_stock == 12
        assert db.session.query(StockMovement).count() == 0
        assert ledger_service.reconcile_variant(variant.id)["drift"] == 0

    def test_duplicate_sku(self, db_session):
        request = ProductRequest(sku="KMJ-1", name="Kemeja")
        catalog_service.create_product(request)

        with pytest.raises(ConflictError):
            catalog_service.create_product(request)
        assert db.session.query(Product).count() == 1

    def test_duplicate_size_color_rejected(self, make_variant):
        variant = make_variant(size="M", color="Navy")

        with pytest.raises(ConflictError):
            catalog_service.add_variant(variant.product_id, VariantRequest(size="M", color="Navy"))

    def test_duplicate_barcode_rejected(self, make_variant):
        make_variant(barcode="8990001")

        with pytest.raises(ConflictError) as exc:
            make_variant(barcode="8990001")
        assert exc.value.details["barcode"] == "8990001"

    def test_add_variant_to_missing_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            catalog_service.add_variant(404, VariantRequest(size="S"))

    def test_negative_stock_rejected_on_input(self):
        with pytest.raises(ValidationError):
            VariantRequest.from_payload({"size": "S", "stock": -1})

    def test_effective_price(self, make_variant):
        plain = make_variant(selling_price_cents=15000)
        priced = make_variant(selling_price_cents=15000, price_cents=17500)

        assert plain.effective_price_cents() == 15000
        assert priced.effective_price_cents() == 17500


class TestDeactivation:

    def test_deactivated_variant_is_hidden_but_kept(self, make_variant):
        variant = make_variant(stock=3)
        ledger_service.apply_stock_delta(variant.id, -1, None, "SALE")

        catalog_service.deactivate_variant(variant.product_id, variant.id)

        assert catalog_service.list_variants(product_id=variant.product_id) == []
        hidden = catalog_service.list_variants(product_id=variant.product_id, include_inactive=True)
        assert [v.id for v in hidden] == [variant.id]
        assert db.session.get(ProductVariant, variant.id).stock == 2
        assert db.session.query(StockMovement).filter_by(variant_id=variant.id).count() == 1

    def test_wrong_product_is_not_found(self, make_variant):
        variant = make_variant()
        other = make_variant()

        with pytest.raises(VariantNotFoundError):
            catalog_service.deactivate_variant(other.product_id, variant.id)

    def test_min_stock_update_is_logged(self, make_variant, owner):
        variant = make_variant(stock=7, min_stock=5)

        updated = catalog_service.update_variant_min_stock(
            variant.product_id, variant.id, 12, actor_id=owner.id
        )

        assert updated.min_stock == 12
        assert updated.stock == 7
        assert db.session.query(StockMovement).count() == 0
        entry = db.session.query(ActivityLog).filter_by(resource="product_variants", action=ActivityAction.UPDATE).one()
        assert entry.user_id == owner.id
        assert entry.details["previous_min_stock"] == 5
        assert entry.details["min_stock"] == 12

    def test_min_stock_update_rejects_negative_and_wrong_product(self, make_variant):
        variant = make_variant(min_stock=5)
        other = make_variant()

        with pytest.raises(ValidationError):
            catalog_service.update_variant_min_stock(variant.product_id, variant.id, -1)
        with pytest.raises(VariantNotFoundError):
            catalog_service.update_variant_min_stock(other.product_id, variant.id, 3)
        assert db.session.get(ProductVariant, variant.id).min_stock == 5

    def test_barcode_lookup(self, make_variant):
        variant = make_variant(barcode="8991234")

        assert catalog_service.find_variant_by_barcode(" 8991234 ").id == variant.id
        assert catalog_service.find_variant_by_barcode("nope") is None


class TestParties:

    def test_create_and_search(self, db_session):
        party_service.create_party(PartyRequest(name="CV Sumber Kain", phone="0221"))
        party_service.create_party(PartyRequest(name="Butik Anggrek", phone="0222"))

        result = party_service.list_parties(search="kain")

        assert [p.name for p in result["parties"]] == ["CV Sumber Kain"]
        assert result["pagination"]["total"] == 1

    def test_phone_must_be_unique_among_active(self, db_session):
        party_service.create_party(PartyRequest(name="A", phone="0811"))

        with pytest.raises(ValidationError):
            party_service.create_party(PartyRequest(name="B", phone="0811"))
        assert db.session.query(Supplier).count() == 1

    def test_update_checks_phone_against_others_only(self, db_session, owner):
        kept = party_service.create_party(PartyRequest(name="A", phone="0811"))
        other = party_service.create_party(PartyRequest(name="B", phone="0812"))

        renamed = party_service.update_party(
            kept.id, PartyRequest(name="A Jaya", phone="0811", email="a@toko.id"), actor_id=owner.id
        )
        assert renamed.name == "A Jaya"
        assert renamed.email == "a@toko.id"

        with pytest.raises(ValidationError):
            party_service.update_party(other.id, PartyRequest(name="B", phone="0811"))
        assert db.session.get(Supplier, other.id).phone == "0812"

        entry = db.session.query(ActivityLog).filter_by(resource="suppliers", action=ActivityAction.UPDATE).one()
        assert entry.details["changes"]["name"] == {"from": "A", "to": "A Jaya"}

    def test_deactivate_keeps_sales_history(self, make_variant):
        variant = make_variant(stock=5)
        sale = sales_service.create_sale(SaleRequest(
            items=[SaleItemRequest(variant_id=variant.id, quantity=1)],
            customer_name="Bu Sri",
            customer_phone="0877",
        ))
        customer_id = sale.supplier_id

        party_service.deactivate_party(customer_id)

        assert party_service.list_parties()["parties"] == []
        assert db.session.get(Supplier, customer_id).is_active is False
        assert sales_service.get_sale(sale.id).supplier_id == customer_id
        with pytest.raises(CustomerNotFoundError):
            party_service.deactivate_party(customer_id)

    def test_customer_summary(self, make_variant):
        shirt = make_variant(stock=10, selling_price_cents=1000)
        scarf = make_variant(stock=10, selling_price_cents=500)
        for items in (
            [SaleItemRequest(variant_id=shirt.id, quantity=2)],
            [SaleItemRequest(variant_id=scarf.id, quantity=4), SaleItemRequest(variant_id=shirt.id, quantity=1)],
        ):
            sale = sales_service.create_sale(
                SaleRequest(items=items, customer_name="Bu Sri", customer_phone="0877")
            )

        summary = party_service.customer_summary(sale.supplier_id)

        assert summary["total_transactions"] == 2
        assert summary["total_spent_cents"] == 2000 + 3000
        assert summary["average_transaction_cents"] == 2500
        assert summary["total_items"] == 7
        assert [f["product_id"] for f in summary["favorite_products"]] == [scarf.product_id, shirt.product_id]
        assert summary["favorite_products"][0]["quantity"] == 4
        assert summary["days_since_last_purchase"] == 0
        assert len(summary["recent_sales"]) == 2
