import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from storefront.ftypes import Either, Maybe


def test_maybe():
    assert Maybe.some(3).map(lambda x: x + 1).get_or_else(0) == 4
    assert Maybe.nothing().map(lambda x: x + 1).get_or_else(0) == 0
    assert repr(Maybe.of(None)) == "Nothing"


def test_either_bind_stops_on_left():
    calls = []

    def step(x):
        calls.append(x)
        return Either.right(x + 1)

    res = Either.left("boom").bind(step).map(lambda x: x * 2)
    assert res.is_left and res.error == "boom"
    assert calls == []

    assert Either.right(1).bind(step).map(lambda x: x * 2).value == 4
    assert Either.right(1).error is None


def test_either_fold():
    assert Either.left("e").fold(lambda e: f"err:{e}", str) == "err:e"
    assert Either.right(5).fold(lambda e: "err", lambda v: v + 1) == 6
