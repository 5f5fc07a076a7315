"""
Ledger Arithmetic (Canonical)
=============================

Purpose:
- Net price, balance and payment split math for membership purchases.
- Pure functions: no DB, no HTTP, no clock.

Money:
- Every amount is a Decimal quantized to 2 places (ROUND_HALF_UP).
- Floats are converted through str() so 0.1 stays 0.1.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Tuple

from gymledger.services.errors import InvalidAmount, InvalidDiscount


D = Decimal

ZERO = D("0.00")


def _q2(x: Decimal) -> Decimal:
    return x.quantize(D("0.01"), rounding=ROUND_HALF_UP)


def to_money(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Coerce a DB/JSON value into a quantized Decimal.
    None falls back to default; anything unparseable raises InvalidAmount.
    """
    if value is None:
        return _q2(default)
    if isinstance(value, bool):
        raise InvalidAmount(f"not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = D(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmount(f"not a monetary amount: {value!r}")
    if not amount.is_finite():
        raise InvalidAmount(f"not a monetary amount: {value!r}")
    return _q2(amount)


def net_price(price: Decimal, discount: Decimal) -> Decimal:
    """
    price - discount, with 0 <= discount <= price.
    """
    price = to_money(price)
    discount = to_money(discount)
    if discount < ZERO or discount > price:
        raise InvalidDiscount(f"discount {discount} must be between 0 and the price {price}")
    return _q2(price - discount)


def compute_balance(net: Decimal, paid_amount: Decimal) -> Decimal:
    """
    What is still owed after paying paid_amount against net.
    Overpayment does not become credit; a negative payment counts as nothing paid.
    """
    net = to_money(net)
    paid = max(ZERO, to_money(paid_amount))
    return _q2(max(ZERO, net - paid))


def split_payment(
    net: Decimal,
    is_full_payment: bool,
    requested_paid_amount: Decimal,
) -> Tuple[Decimal, Decimal]:
    """
    Returns (amount_to_charge, resulting_balance).

    Full payment charges the whole net price. A partial payment charges the
    requested amount, capped at the net price, and leaves the rest as balance.
    """
    net = to_money(net)
    if is_full_payment:
        return net, ZERO

    amount = min(to_money(requested_paid_amount), net)
    return _q2(amount), _q2(net - amount)
