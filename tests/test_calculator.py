from decimal import Decimal

import pytest

from apps.commissions.calculator import split_amount, split_for_sale


def test_hundred_dollar_sale_split():
    split = split_amount("100.00")

    assert split.commission == Decimal("15.00")
    assert split.platform_fee == Decimal("5.00")
    assert split.merchant_amount == Decimal("80.00")


@pytest.mark.parametrize(
    "amount, commission, fee",
    [
        ("0.10", "0.02", "0.01"),  # 0.015 and 0.005 round half up
        ("33.33", "5.00", "1.67"),
        ("19.99", "3.00", "1.00"),
    ],
)
def test_rounding_is_half_up_to_the_cent(amount, commission, fee):
    split = split_amount(amount)

    assert split.commission == Decimal(commission)
    assert split.platform_fee == Decimal(fee)


@pytest.mark.parametrize("amount", ["0.01", "0.03", "1.07", "9.99", "123.45", "100000.01"])
def test_parts_always_sum_to_the_amount(amount):
    split = split_amount(amount)

    assert split.commission + split.platform_fee + split.merchant_amount == Decimal(amount)
    assert split.merchant_amount >= 0


def test_unattributed_sale_pays_no_commission():
    split = split_for_sale("100.00", attributed=False)

    assert split.commission == Decimal("0.00")
    assert split.platform_fee == Decimal("5.00")
    assert split.merchant_amount == Decimal("95.00")


def test_custom_rates():
    split = split_amount("50.00", affiliate_rate="0.30", fee_rate="0")

    assert split.commission == Decimal("15.00")
    assert split.merchant_amount == Decimal("35.00")
