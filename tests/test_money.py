from decimal import Decimal

from app.modules.promotions.engine.money import Money, round_half_up


def test_round_half_up_rounds_away_from_zero_on_half():
    assert round_half_up(Decimal("2.345")) == Decimal("2.35")
    assert round_half_up(Decimal("2.344")) == Decimal("2.34")
    assert round_half_up("0.005") == Decimal("0.01")


def test_float_input_does_not_leak_binary_error():
    # 1.005 en binario es 1.00499999...
    assert Money.of(1.005).amount == Decimal("1.01")


def test_money_is_stored_in_cents():
    money = Money.of("19.99")
    assert money.cents == 1999
    assert money.amount == Decimal("19.99")


def test_add_subtract_are_exact():
    total = Money.of("0.10") + Money.of("0.20")
    assert total == Money.of("0.30")
    assert (total - Money.of("0.30")) == Money.zero()
    assert not Money.zero()


def test_multiply_rounds_once():
    assert Money.of("10.00").multiply(3) == Money.of("30.00")
    assert Money.of("0.33").multiply(Decimal("0.5")).amount == Decimal("0.17")


def test_percentage_of_is_unrounded():
    assert Money.of("9.99").percentage_of(10) == Decimal("0.999")


def test_total_sums_without_rounding_drift():
    amounts = [Money.of("0.01")] * 100
    assert Money.total(amounts).amount == Decimal("1.00")


def test_ordering():
    assert Money.of("1.00") < Money.of("1.01")
    assert max(Money.of("2"), Money.of("3")) == Money.of("3")
