import pytest

from inventario.services.confirmation import CLEAR_ALL, dispatch_gate


@pytest.mark.parametrize("text,enabled", [
    ("SOY UN VAGO", True),
    ("soy un vago", False),
    ("SOY UN VAGO ", False),
    ("", False),
    (None, False),
])
def test_clear_all_is_case_sensitive(text, enabled):
    assert CLEAR_ALL.is_enabled(text) is enabled


@pytest.mark.parametrize("text,enabled", [
    ("DESPACHAR 3", True),
    ("despachar 3", True),
    ("Despachar 3", True),
    ("DESPACHAR 4", False),
    ("DESPACHAR", False),
])
def test_dispatch_gate_ignores_case(text, enabled):
    assert dispatch_gate(3).is_enabled(text) is enabled


def test_require_refuses_wrong_phrase():
    with pytest.raises(ValueError, match="DESPACHAR 2"):
        dispatch_gate(2).require("DESPACHAR 1")
    CLEAR_ALL.require("SOY UN VAGO")
