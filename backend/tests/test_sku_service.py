"""
SKU generator tests.

Verifies:
- SKU format checks (PREFIX 3-4 letters + 5 digits)
- Sequence lookup is per exact prefix (GEN does not see GENX)
- Category prefix resolution with GEN fallback
- Limit and duplicate errors
"""

from decimal import Decimal

import pytest

from backoffice.models import Product, ProductCategory
from backoffice.services import sku_service
from backoffice.services.sku_service import SkuGenerationError


def _add_product(db_session, sku, category_id=None):
    product = Product(
        sku=sku,
        name=f"Product {sku}",
        category_id=category_id,
        price_excluding_vat=Decimal("100.00"),
        vat_rate=Decimal("7.00"),
        vat_amount=Decimal("7.00"),
        price_including_vat=Decimal("107.00"),
        stock_quantity=1,
        status="active",
    )
    db_session.add(product)
    db_session.commit()
    return product


# =============================================================================
# FORMAT
# =============================================================================


class TestSkuFormat:

    @pytest.mark.parametrize(
        "sku,expected",
        [
            ("DRES00001", True),
            ("GEN00001", True),
            ("WORK99999", True),
            ("AB00001", False),
            ("DRESS00001", False),
            ("dres00001", False),
            ("DRES0001", False),
            ("DRES000001", False),
            ("", False),
            (None, False),
        ],
    )
    def test_validate_sku_format(self, sku, expected):
        assert sku_service.validate_sku_format(sku) is expected

    def test_parse_sku(self):
        assert sku_service.parse_sku("WORK00042") == ("WORK", 42)

    def test_parse_invalid_sku(self):
        with pytest.raises(SkuGenerationError) as exc:
            sku_service.parse_sku("BAD-1")
        assert exc.value.code == "INVALID_SKU_FORMAT"

    def test_format_sku_zero_pads(self):
        assert sku_service.format_sku("GEN", 7) == "GEN00007"
        assert sku_service.format_sku("DRES", 12345) == "DRES12345"


# =============================================================================
# PREFIX / SEQUENCE
# =============================================================================


class TestPrefixAndSequence:

    def test_no_category_uses_default_prefix(self, db_session):
        assert sku_service.get_category_prefix(None) == "GEN"

    def test_category_prefix(self, db_session, category):
        assert sku_service.get_category_prefix(category.id) == "DRES"

    def test_category_without_prefix_uses_default(self, db_session):
        category = ProductCategory(name="ไม่มี Prefix", prefix=None, status="active")
        db_session.add(category)
        db_session.commit()
        assert sku_service.get_category_prefix(category.id) == "GEN"

    def test_unknown_category(self, db_session):
        with pytest.raises(SkuGenerationError) as exc:
            sku_service.get_category_prefix(9999)
        assert exc.value.code == "CATEGORY_NOT_FOUND"
        assert exc.value.status == 404

    def test_max_sequence_empty(self, db_session):
        assert sku_service.get_max_sequential_number("DRES") == 0

    def test_max_sequence_uses_highest(self, db_session):
        _add_product(db_session, "DRES00001")
        _add_product(db_session, "DRES00007")
        _add_product(db_session, "DRES00003")
        assert sku_service.get_max_sequential_number("DRES") == 7
        assert sku_service.get_next_sequential_number("DRES") == 8

    def test_max_sequence_matches_exact_prefix(self, db_session):
        _add_product(db_session, "GEN00003")
        _add_product(db_session, "GENX00012")
        assert sku_service.get_max_sequential_number("GEN") == 3
        assert sku_service.get_max_sequential_number("GENX") == 12

    def test_limit_reached(self, db_session):
        _add_product(db_session, "FULL99999")
        with pytest.raises(SkuGenerationError) as exc:
            sku_service.get_next_sequential_number("FULL")
        assert exc.value.code == "SKU_LIMIT_REACHED"
        assert exc.value.suggestion

    def test_is_sku_unique(self, db_session, product):
        assert sku_service.is_sku_unique("DRES00001") is False
        assert sku_service.is_sku_unique("DRES00001", exclude_product_id=product.id) is True
        assert sku_service.is_sku_unique("DRES00002") is True


# =============================================================================
# GENERATION
# =============================================================================


class TestGenerateSku:

    def test_first_sku_for_category(self, db_session, category):
        result = sku_service.generate_sku(category.id)
        assert result == {"sku": "DRES00001", "prefix": "DRES", "sequential_number": 1}

    def test_next_sku_after_existing(self, db_session, category, product):
        assert sku_service.generate_sku(category.id)["sku"] == "DRES00002"

    def test_default_prefix(self, db_session):
        assert sku_service.generate_sku()["sku"] == "GEN00001"

    def test_duplicate_sku_rejected(self, db_session, product):
        with pytest.raises(SkuGenerationError) as exc:
            sku_service.ensure_sku_available("DRES00001")
        assert exc.value.code == "DUPLICATE_SKU"
        assert exc.value.status == 409
