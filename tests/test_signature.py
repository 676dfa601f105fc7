import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from storefront.domain import PaymentMethod
from storefront.signature import signature_of
from conftest import make_cart


def test_line_order_does_not_matter():
    a = make_cart(lines=((1, 399, 2), (2, 500, 1)))
    b = make_cart(lines=((2, 500, 1), (1, 399, 2)))
    assert signature_of(a, 700, "efapi", PaymentMethod.ONLINE) == signature_of(
        b, 700, "efapi", PaymentMethod.ONLINE
    )


def test_any_input_change_changes_signature():
    cart = make_cart(lines=((1, 399, 2),))
    base = signature_of(cart, 700, "efapi", PaymentMethod.ONLINE)

    assert signature_of(make_cart(lines=((1, 399, 3),)), 700, "efapi", PaymentMethod.ONLINE) != base
    assert signature_of(make_cart(lines=((1, 400, 2),)), 700, "efapi", PaymentMethod.ONLINE) != base
    assert signature_of(cart, 701, "efapi", PaymentMethod.ONLINE) != base
    assert signature_of(cart, 700, "palmital", PaymentMethod.ONLINE) != base
    assert signature_of(cart, 700, "efapi", PaymentMethod.CASH) != base


def test_signature_is_url_safe_text():
    sig = signature_of(make_cart(), 700, "efapi", "online")
    assert isinstance(sig, str)
    assert "+" not in sig and "/" not in sig
