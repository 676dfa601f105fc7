import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
import pytest

from storefront.domain import Cart, OTHER_NEIGHBORHOOD
from storefront.validation import normalize_phone, validate_checkout
from conftest import make_cart, make_customer


def test_normalize_phone():
    assert normalize_phone("(49) 99123-4567") == "5549991234567"
    assert normalize_phone("+55 49 99123-4567") == "5549991234567"
    assert normalize_phone("49 99123-4567 ramal 12") == "5549991234567"
    assert normalize_phone("") == ""


def test_valid_checkout_returns_cleaned_customer():
    res = validate_checkout(make_cart(), "efapi", make_customer(name="  Ana  "), 700)
    assert res.is_right
    assert res.value.name == "Ana"
    assert res.value.phone == "5549991234567"


@pytest.mark.parametrize(
    "cart, store, overrides, fee, field",
    [
        (Cart(store="efapi"), "efapi", {}, 700, "cart"),
        (make_cart(), None, {}, 700, "store"),
        (make_cart(), "efapi", {"name": " "}, 700, "name"),
        (make_cart(), "efapi", {"neighborhood": ""}, 700, "neighborhood"),
        (make_cart(), "efapi", {"neighborhood": OTHER_NEIGHBORHOOD}, 700, "custom_neighborhood"),
        (make_cart(), "efapi", {"street": ""}, 700, "street"),
        (make_cart(), "efapi", {"number": ""}, 700, "number"),
        (make_cart(), "efapi", {"phone": "9912"}, 700, "phone"),
        (make_cart(), "efapi", {}, None, "delivery_fee"),
    ],
)
def test_first_failing_field_is_reported(cart, store, overrides, fee, field):
    res = validate_checkout(cart, store, make_customer(**overrides), fee)
    assert res.is_left
    assert res.error.field == field


def test_stops_on_first_error():
    res = validate_checkout(Cart(store="efapi"), None, make_customer(name="", phone=""), None)
    assert res.error.field == "cart"


def test_other_neighborhood_uses_free_text():
    customer = make_customer(neighborhood=OTHER_NEIGHBORHOOD, custom_neighborhood="Jardim Itália")
    res = validate_checkout(make_cart(), "efapi", customer, 0)
    assert res.is_right
    assert res.value.address == "Jardim Itália"
