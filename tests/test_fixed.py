import pytest
import math
import random
from fractions import Fraction
from itertools import product

from cplxarith import fixed
from cplxarith.mode import ConfigError


def test_ranges():
    assert fixed.signed_min(8) == -128
    assert fixed.signed_max(8) == 127
    assert fixed.signed_min(1) == -1
    assert fixed.signed_max(1) == 0

    assert fixed.fits(127, 8)
    assert fixed.fits(-128, 8)
    assert not fixed.fits(128, 8)
    assert not fixed.fits(-129, 8)


@pytest.mark.parametrize("width", [0, -3, 2.0, None])
def test_bad_width(width):
    with pytest.raises(ConfigError):
        fixed.check_width(width)


def test_check_value():
    assert fixed.check_value(-8, 4) == -8
    with pytest.raises(ValueError, match="term 8"):
        fixed.check_value(8, 4, "term")


def test_wrap():
    assert fixed.wrap(128, 8) == -128
    assert fixed.wrap(-129, 8) == 127
    assert fixed.wrap(0x1ff, 8) == -1
    assert fixed.wrap(5, 8) == 5


def test_saturate():
    assert fixed.saturate(200, 8) == (127, True)
    assert fixed.saturate(-200, 8) == (-128, True)
    assert fixed.saturate(-128, 8) == (-128, False)


@pytest.mark.parametrize("mode", ["", "O", "S", "OS"])
def test_resize_bounds(mode):
    for x in range(-512, 512):
        (v, ovf) = fixed.resize(x, 8, mode)
        out_of_range = not fixed.fits(x, 8)

        if "S" in mode:
            assert v == max(-128, min(127, x))
        else:
            assert v == fixed.wrap(x, 8)

        # Flagged whether or not saturation clamped the value.
        assert ovf == (out_of_range and "O" in mode)


def test_resize_round_trip():
    for x in range(-512, 512):
        (narrow, _) = fixed.resize(x, 6, "S")
        (wide, ovf) = fixed.resize(narrow, 10, "OS")
        # Sign extension of the narrowed value, not the original.
        assert wide == narrow
        assert not ovf
        if not fixed.fits(x, 6):
            assert wide != x


def test_resize_idempotent():
    for x in range(-128, 128):
        assert fixed.resize(x, 8, "OS") == (x, False)


def test_resize_reset():
    assert fixed.resize(300, 8, "ROS", rst=True) == (0, False)
    assert fixed.resize(300, 8, "XOS", rst=True) == (127, True)
    assert fixed.resize(300, 8, "OS", rst=True) == (127, True)


def test_add_sub():
    assert fixed.add(100, 100, 8) == (-56, False)
    assert fixed.add(100, 100, 8, "O") == (-56, True)
    assert fixed.add(100, 100, 8, "OS") == (127, True)
    assert fixed.add(100, 100, 9, "OS") == (200, False)
    assert fixed.sub(-100, 100, 8, "OS") == (-128, True)
    assert fixed.sub(-100, 100, 8, "ROS", rst=True) == (0, False)


def test_shift_left():
    assert fixed.shift_left(3, 2, 8) == (12, False)
    assert fixed.shift_left(48, 2, 8, "O") == (-64, True)
    assert fixed.shift_left(48, 2, 8, "OS") == (127, True)
    assert fixed.shift_left(-48, 2, 8, "OS") == (-128, True)

    with pytest.raises(ConfigError):
        fixed.shift_left(1, -1, 8)


def model_round(x, n, rounding):
    q = Fraction(x, 2**n)

    if rounding == "D":
        return math.floor(q)
    elif rounding == "U":
        return math.ceil(q)
    elif rounding == "N":
        return math.floor(q + Fraction(1, 2))
    elif rounding == "Z":
        return math.trunc(q)
    else:  # "I"
        return math.floor(q) if q < 0 else math.ceil(q)


@pytest.mark.parametrize("rounding", ["D", "N", "U", "Z", "I"])
def test_shift_right_rounding(rounding):
    for (x, n) in product(range(-128, 128), range(8)):
        assert fixed.shift_right(x, n, rounding) == \
            model_round(x, n, rounding)


def test_shift_right_default_is_floor():
    for (x, n) in product(range(-128, 128), range(8)):
        assert fixed.shift_right(x, n) == x // 2**n


def test_shift_right_ties():
    # Nearest ties toward +infinity.
    assert fixed.shift_right(5, 1, "N") == 3
    assert fixed.shift_right(-5, 1, "N") == -2
    assert fixed.shift_right(-3, 1, "Z") == -1
    assert fixed.shift_right(-3, 1, "I") == -2
    assert fixed.shift_right(3, 1, "I") == 2

    with pytest.raises(ConfigError):
        fixed.shift_right(1, -1)


def test_away_mirrors_truncate():
    for (x, n) in product(range(-128, 128), range(8)):
        floor = fixed.shift_right(x, n, "D")
        ceil = fixed.shift_right(x, n, "U")

        if x < 0:
            assert fixed.shift_right(x, n, "Z") == ceil
            assert fixed.shift_right(x, n, "I") == floor
        else:
            assert fixed.shift_right(x, n, "Z") == floor
            assert fixed.shift_right(x, n, "I") == ceil

        # Both are odd functions.
        if x > -128:
            assert fixed.shift_right(-x, n, "Z") == \
                -fixed.shift_right(x, n, "Z")
            assert fixed.shift_right(-x, n, "I") == \
                -fixed.shift_right(x, n, "I")


def test_round_bias():
    assert fixed.round_bias(0) == 0
    assert fixed.round_bias(1) == 1
    assert fixed.round_bias(5) == 16

    for (x, n) in product(range(-128, 128), range(1, 8)):
        assert (x + fixed.round_bias(n)) >> n == \
            fixed.shift_right(x, n, "N")


def test_log2ceil():
    assert [fixed.log2ceil(n) for n in range(1, 10)] == \
        [0, 1, 2, 2, 3, 3, 3, 3, 4]

    with pytest.raises(ValueError):
        fixed.log2ceil(0)


def test_guard_bits():
    assert fixed.guard_bits(20, 17) == 3
    assert fixed.guard_bits(20, 17, 4) == 2
    assert fixed.guard_bits(20, 17, 8) == 3
    assert fixed.guard_bits(17, 17, 1) == 0

    with pytest.raises(ConfigError, match="needs 4 guard bits"):
        fixed.guard_bits(20, 17, 9)
    with pytest.raises(ConfigError, match="narrower"):
        fixed.guard_bits(16, 17)
    with pytest.raises(ConfigError):
        fixed.guard_bits(20, 17, -1)


def test_guard_bits_sufficient():
    num_summand = 4
    term_width = 9
    g = fixed.guard_bits(term_width + 2, term_width, num_summand)
    assert g == 2

    extremes = (fixed.signed_min(term_width), fixed.signed_max(term_width))
    for terms in product(extremes, repeat=num_summand):
        assert fixed.fits(sum(terms), term_width + g)


def test_guard_bits_tight():
    num_summand = 4
    term_width = 9
    g = fixed.guard_bits(term_width + 2, term_width, num_summand)

    # One fewer guard bit can't hold the worst case.
    worst = num_summand * fixed.signed_min(term_width)
    assert fixed.fits(worst, term_width + g)
    assert not fixed.fits(worst, term_width + g - 1)


@pytest.mark.parametrize("term_width,num_summand", [(9, 4), (13, 5), (6, 8)])
def test_guard_bits_capacity(term_width, num_summand):
    g = fixed.guard_bits(32, term_width, num_summand)
    lo = fixed.signed_min(term_width)
    hi = fixed.signed_max(term_width)

    # 2**g worst-case terms fit, one more does not.
    assert fixed.fits(2**g * lo, term_width + g)
    assert fixed.fits(2**g * hi, term_width + g)
    assert not fixed.fits((2**g + 1) * lo, term_width + g)
    assert not fixed.fits((2**g + 1) * hi, term_width + g)


def test_random_sums_never_wrap():
    random.seed(0)
    term_width = 13
    num_summand = 5
    g = fixed.guard_bits(32, term_width, num_summand)

    lo = fixed.signed_min(term_width)
    hi = fixed.signed_max(term_width)
    for _ in range(1000):
        terms = [random.randint(lo, hi) for _ in range(num_summand)]
        assert fixed.fits(sum(terms), term_width + g)
