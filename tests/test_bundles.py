from decimal import Decimal

from app.modules.promotions.engine import SourceKind
from app.modules.promotions.engine.bundles import match_bundle
from app.modules.promotions.engine.working_set import clone_cart
from helpers import bundle, line


def test_bundle_fires_once_per_complete_set():
    combo = bundle(1, [(10, 1), (20, 2)], 10)
    cart = [line(10, 3, "50.00"), line(20, 5, "5.00")]
    evaluation = match_bundle(combo, clone_cart(cart))

    # min(3 // 1, 5 // 2) = 2 juegos -> (50 + 2 x 5) x 2 = 120 -> 10%
    assert evaluation.application.discount_amount == Decimal("12.00")
    assert evaluation.application.source_kind == SourceKind.bundle
    affected = {(a.product_id, a.variant_id): a.quantity_affected for a in evaluation.application.affected_lines}
    assert affected == {(10, None): 2, (20, None): 4}


def test_incomplete_bundle_does_not_fire():
    combo = bundle(1, [(10, 1), (20, 1)], 10)
    assert match_bundle(combo, clone_cart([line(10, 3, "50.00")])) is None


def test_fixed_bundle_discount_is_per_set():
    combo = bundle(1, [(10, 1), (20, 1)], "5.00", discount_type="fixed")
    evaluation = match_bundle(combo, clone_cart([line(10, 2, "20.00"), line(20, 2, "20.00")]))
    assert evaluation.application.discount_amount == Decimal("10.00")


def test_fixed_price_bundle_charges_the_set_price():
    combo = bundle(1, [(10, 1), (20, 1)], "30.00", discount_type="fixed_price")
    evaluation = match_bundle(combo, clone_cart([line(10, 1, "25.00"), line(20, 1, "15.00")]))
    assert evaluation.application.discount_amount == Decimal("10.00")


def test_fixed_price_above_nominal_gives_no_discount():
    combo = bundle(1, [(10, 1)], "99.00", discount_type="fixed_price")
    assert match_bundle(combo, clone_cart([line(10, 1, "25.00")])) is None


def test_variant_pinned_component_only_matches_that_variant():
    combo = bundle(1, [(10, 1, 2), (20, 1)], 50)
    cart = [line(10, 1, "10.00", variant_id=1), line(20, 1, "10.00")]
    assert match_bundle(combo, clone_cart(cart)) is None

    cart.append(line(10, 1, "12.00", variant_id=2))
    evaluation = match_bundle(combo, clone_cart(cart))
    assert evaluation.application.discount_amount == Decimal("11.00")


def test_components_sharing_a_product_are_not_double_counted():
    # Un componente con variante fija y otro sin variante del mismo producto
    combo = bundle(1, [(10, 1, 1), (10, 1)], 100)
    evaluation = match_bundle(combo, clone_cart([line(10, 3, "1.00", variant_id=1)]))

    assert sum(evaluation.consumed.values()) == 2
    assert evaluation.application.discount_amount == Decimal("2.00")


def test_bundle_respects_remaining_quantity():
    combo = bundle(1, [(10, 1)], 10)
    lines = clone_cart([line(10, 2, "10.00")])
    lines[0].remaining = 1
    evaluation = match_bundle(combo, lines)
    assert evaluation.consumed == {0: 1}
