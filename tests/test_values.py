import math

import pytest

from alphavm.values import (
    TABLE_HASHSIZE,
    AVMError,
    MemCell,
    MemCellType,
    hash_number,
    hash_string,
    mod_impl,
    numeric_value,
    tobool,
)


def test_hash_string_empty_and_single_char():
    assert hash_string("") == 0
    assert hash_string("a") == ord("a") % TABLE_HASHSIZE


@pytest.mark.parametrize("text", ["x", "hello", "a much longer key value", "äöü"])
def test_hash_string_in_range_and_stable(text):
    h = hash_string(text)
    assert 0 <= h < TABLE_HASHSIZE
    assert hash_string(text) == h


def test_hash_number_wraps_by_table_size():
    assert hash_number(5.0) == 5
    assert hash_number(TABLE_HASHSIZE + 5.0) == hash_number(5.0)
    assert hash_number(5.9) == hash_number(5.0)


def test_hash_number_non_finite_goes_to_first_bucket():
    assert hash_number(math.nan) == 0
    assert hash_number(math.inf) == 0


@pytest.mark.parametrize(
    "cell, expected",
    [
        (MemCell.number(0), False),
        (MemCell.number(2.5), True),
        (MemCell.string(""), False),
        (MemCell.string("x"), True),
        (MemCell.boolean(True), True),
        (MemCell.boolean(False), False),
        (MemCell.table(object()), True),
        (MemCell.userfunc(3), True),
        (MemCell.libfunc("print"), True),
        (MemCell.nil(), False),
    ],
)
def test_tobool(cell, expected):
    assert tobool(cell) is expected


def test_tobool_undef_raises():
    with pytest.raises(AVMError):
        tobool(MemCell.undef())


@pytest.mark.parametrize("x, y", [(7, 3), (-7, 3), (7, -3), (10, 5), (0, 4)])
def test_mod_matches_truncated_remainder(x, y):
    assert mod_impl(float(x), float(y)) == math.fmod(x, y)


def test_mod_negative_dividend_keeps_sign():
    assert mod_impl(-7.0, 3.0) == -1.0


def test_mod_non_integral_dividend_is_zero():
    assert mod_impl(7.5, 2.0) == 0.0


@pytest.mark.parametrize("y", [0.0, 0.5])
def test_mod_by_zero_raises(y):
    with pytest.raises(AVMError):
        mod_impl(4.0, y)


def test_numeric_value():
    assert numeric_value(MemCell.number(4.25)) == 4.25
    assert numeric_value(MemCell.boolean(True)) == 1.0
    assert numeric_value(MemCell.boolean(False)) == 0.0
    assert numeric_value(MemCell.nil()) == 0.0
    assert numeric_value(MemCell.string("9")) == 0.0


def test_type_names_follow_typeof():
    names = [t.type_name for t in MemCellType]
    assert names == [
        "number",
        "string",
        "bool",
        "table",
        "userfunc",
        "libfunc",
        "nil",
        "undef",
    ]
    assert MemCell.string("s").type_name == "string"


def test_copy_load_and_clear():
    original = MemCell.string("abc")
    duplicate = original.copy()
    assert duplicate == original
    duplicate.clear()
    assert duplicate.type is MemCellType.UNDEF
    assert original.value == "abc"
    target = MemCell.nil()
    target.load(original)
    assert target == original


def test_default_cell_is_undef():
    cell = MemCell()
    assert cell.type is MemCellType.UNDEF
    assert cell.value is None