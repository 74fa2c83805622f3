from cartsync import pricing
from cartsync.model import VariantSnapshot, new_line
from cartsync.pricing import PricingRules
from tests.conftest import make_line, make_product


def example_cart() -> list:
    return [
        make_line("a", "v1", quantity=2, price=2000),
        make_line("b", "v1", quantity=1, price=1500),
    ]


class TestSummarize:
    def test_worked_example(self) -> None:
        totals = pricing.summarize(example_cart())
        assert totals.subtotal == 5500
        assert totals.shipping == 999
        assert totals.tax == 440
        assert totals.total == 6939
        assert totals.item_count == 3

    def test_worked_example_with_discount(self) -> None:
        totals = pricing.summarize(example_cart(), discount=1000)
        assert totals.discount == 1000
        assert totals.total == 5939

    def test_total_never_negative(self) -> None:
        totals = pricing.summarize([make_line(price=100)], discount=100_000)
        assert totals.total == 0

    def test_empty_cart(self) -> None:
        totals = pricing.summarize([])
        assert totals.subtotal == 0
        assert totals.item_count == 0
        assert totals.tax == 0


class TestRules:
    def test_free_shipping_threshold_inclusive(self) -> None:
        assert pricing.shipping(10000) == 0
        assert pricing.shipping(9999) == 999

    def test_tax_rounds_half_up(self) -> None:
        # 80.48 -> 80, 80.56 -> 81
        assert pricing.tax(1006) == 80
        assert pricing.tax(1007) == 81
        assert pricing.tax(5500) == 440

    def test_custom_rules(self) -> None:
        rules = PricingRules(free_shipping_threshold=5000, flat_shipping=500, tax_rate_bps=1000)
        totals = pricing.summarize(example_cart(), rules=rules)
        assert totals.shipping == 0
        assert totals.tax == 550

    def test_savings_use_compare_price(self) -> None:
        line = new_line(
            make_product(price=2000, compare_price=2500),
            "v1",
            2,
            VariantSnapshot("v1"),
        )
        assert pricing.savings([line]) == 1000
        assert pricing.savings([make_line()]) == 0
