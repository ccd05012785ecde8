import pytest

from rasqueue import bit32
from rasqueue.bit32 import BitFieldError

SAMPLES = [0, 1, 0x12345678, 0xDEADBEEF, 0x80000000, 0xFFFFFFFF]


def test_band_with_no_arguments_is_all_ones():
    assert bit32.band() == bit32.bnot(0)
    assert bit32.btest() is True


@pytest.mark.parametrize("x", SAMPLES)
def test_and_or_with_complement(x):
    assert bit32.band(x, bit32.bnot(x)) == 0
    assert bit32.bor(x, bit32.bnot(x)) == bit32.bnot(0)
    assert bit32.bxor(x, x) == 0
    assert bit32.bnot(bit32.bnot(x)) == x


def test_pinned_values():
    assert bit32.band(0xFF00, 0x0FF0) == 0x0F00
    assert bit32.bor(0xF0, 0x0F) == 0xFF
    assert bit32.bnot(0) == bit32.ALL_ONES


def test_negative_numbers_wrap():
    assert bit32.band(-1) == bit32.bnot(0)


def test_btest():
    assert bit32.btest(0x10, 0x30) is True
    assert bit32.btest(0x10, 0x20) is False


@pytest.mark.parametrize("x", SAMPLES)
@pytest.mark.parametrize("n", [0, 1, 7, 31])
def test_rotate_round_trip(x, n):
    assert bit32.rrotate(bit32.lrotate(x, n), n) == x
    assert bit32.lrotate(x, n) == bit32.rrotate(x, -n)


def test_rotate_full_width_is_identity():
    assert bit32.lrotate(0xDEADBEEF, 32) == 0xDEADBEEF


def test_shift_beyond_width_is_zero():
    assert bit32.lshift(0xFFFFFFFF, 32) == 0
    assert bit32.rshift(0xFFFFFFFF, 32) == 0


def test_negative_shift_reverses_direction():
    assert bit32.lshift(0x1234, -4) == bit32.rshift(0x1234, 4)
    assert bit32.rshift(0x1234, -4) == bit32.lshift(0x1234, 4)


def test_shift_round_trip():
    x = 0x12345678
    assert bit32.lshift(bit32.rshift(x, 8), 8) == bit32.band(x, bit32.lshift(bit32.bnot(0), 8))


def test_arshift_propagates_sign_bit():
    top = bit32.lshift(1, 31)
    assert top == 0x80000000
    assert bit32.arshift(top, 31) == bit32.bnot(0)
    assert bit32.arshift(top, 40) == bit32.bnot(0)


def test_arshift_positive_matches_rshift():
    assert bit32.arshift(0x7FFFFFFF, 4) == bit32.rshift(0x7FFFFFFF, 4)
    assert bit32.arshift(0x80000000, -1) == bit32.lshift(0x80000000, 1)


@pytest.mark.parametrize("field,width", [(0, 1), (4, 8), (0, 32), (31, 1)])
def test_replace_then_extract(field, width):
    n = 0xDEADBEEF
    v = 0x12345678
    result = bit32.replace(n, v, field, width)
    assert bit32.extract(result, field, width) == bit32.extract(v, 0, width)


def test_replace_leaves_other_bits():
    n = 0xDEADBEEF
    result = bit32.replace(n, 0, 8, 8)
    assert bit32.band(result, 0xFF) == bit32.band(n, 0xFF)
    assert bit32.rshift(result, 16) == bit32.rshift(n, 16)


def test_extract_default_width():
    assert bit32.extract(0x80000000, 31) == 1
    assert bit32.extract(0x80000000, 30) == 0


@pytest.mark.parametrize("field,width", [(-1, 1), (0, 0), (30, 3), (32, 1)])
def test_field_errors(field, width):
    with pytest.raises(BitFieldError):
        bit32.extract(0, field, width)
    with pytest.raises(BitFieldError):
        bit32.replace(0, 0, field, width)


def test_numeric_strings_and_floats_accepted():
    assert bit32.bor("0x10", 1.0) == bit32.bor(16, 1)


@pytest.mark.parametrize("bad", [None, "abc", True, [1]])
def test_non_numbers_rejected(bad):
    with pytest.raises(TypeError):
        bit32.band(bad)