import pytest

from cplxarith.cplx import Cplx, CplxLayout, pack, unpack
from cplxarith.mode import ConfigError


def test_construction_checks_width():
    Cplx(127, -128, 8)
    with pytest.raises(ValueError, match="real lane"):
        Cplx(128, 0, 8)
    with pytest.raises(ValueError, match="imaginary lane"):
        Cplx(0, -129, 8)
    with pytest.raises(ConfigError):
        Cplx(0, 0, 0)


def test_resize_up_passes_flags():
    a = Cplx(-5, 7, 4, ovf=True)
    b = a.resize(8)
    assert b == Cplx(-5, 7, 8, ovf=True)


def test_resize_idempotent():
    a = Cplx(-100, 100, 8, vld=False, ovf=True)
    assert a.resize(8) == a
    assert a.resize(8, "OS") == a


def test_resize_down():
    a = Cplx(100, -3, 8)
    assert a.resize(6) == Cplx(-28, -3, 6)
    assert a.resize(6, "O") == Cplx(-28, -3, 6, ovf=True)
    assert a.resize(6, "OS") == Cplx(31, -3, 6, ovf=True)
    # Saturation alone doesn't flag.
    assert a.resize(6, "S") == Cplx(31, -3, 6)


def test_resize_round_trip():
    a = Cplx(100, -100, 8)
    b = a.resize(6, "S").resize(8)
    assert b == Cplx(31, -32, 8)
    assert b != a


def test_add_sub_flags():
    a = Cplx(3, 4, 8, vld=True, rst=False, ovf=True)
    b = Cplx(1, 2, 8, vld=False, rst=True, ovf=False)

    c = a.add(b)
    assert (c.re, c.im, c.width) == (4, 6, 8)
    assert (c.vld, c.rst, c.ovf) == (False, True, True)

    d = a.sub(b)
    assert (d.re, d.im) == (2, 2)
    assert (d.vld, d.rst, d.ovf) == (False, True, True)


def test_add_overflow():
    a = Cplx(100, -100, 8)
    b = Cplx(100, -100, 8)

    assert a.add(b) == Cplx(-56, 56, 8)
    assert a + b == Cplx(-56, 56, 8, ovf=True)
    assert a.add(b, mode="OS") == Cplx(127, -128, 8, ovf=True)
    # One extra bit always holds the sum.
    assert a.add(b, width=9, mode="OS") == Cplx(200, -200, 9)


def test_sub_overflow():
    a = Cplx(-100, 100, 8)
    b = Cplx(100, -100, 8)

    assert a - b == Cplx(56, -56, 8, ovf=True)
    assert a.sub(b, mode="S") == Cplx(-128, 127, 8)


def test_mixed_widths():
    a = Cplx(7, -8, 4)
    b = Cplx(100, 20, 8)
    assert a + b == Cplx(107, 12, 8)


def test_add_reset():
    a = Cplx(3, 4, 8, rst=True, ovf=True)
    b = Cplx(100, 100, 8)

    assert a.add(b, mode="RO") == Cplx(0, 0, 8, vld=False, rst=True)
    c = a.add(b, mode="XO")
    assert (c.vld, c.rst, c.ovf) == (False, True, False)
    c = a.add(b, mode="O")
    assert (c.vld, c.rst, c.ovf) == (True, True, True)


def test_mul():
    a = Cplx(3, -4, 8, ovf=True)
    b = Cplx(1, 2, 8, vld=False)

    assert a * b == Cplx(11, 2, 17, vld=False, ovf=True)
    assert Cplx(1, 1, 4).mul(Cplx(1, 1, 8)).width == 13

    # Only the most negative corner needs the top bit.
    corner = Cplx(-128, -128, 8)
    assert corner * corner == Cplx(0, 32768, 17)

    c = Cplx(5, 5, 8, rst=True)
    assert c.mul(b, mode="R") == Cplx(0, 0, 17, vld=False, rst=True)


def test_shifts():
    a = Cplx(-5, 5, 8)

    assert a.shift_right(1) == Cplx(-3, 2, 8)
    assert a.shift_right(1, "N") == Cplx(-2, 3, 8)
    assert a.shift_right(1, "Z") == Cplx(-2, 2, 8)
    assert a.shift_right(1, "I") == Cplx(-3, 3, 8)

    assert a.shift_left(4) == Cplx(-80, 80, 8)
    assert a.shift_left(5, "O") == Cplx(96, -96, 8, ovf=True)
    assert a.shift_left(5, "OS") == Cplx(-128, 127, 8, ovf=True)

    # Right shifts keep an existing overflow flag.
    assert Cplx(4, 4, 8, ovf=True).shift_right(2) == Cplx(1, 1, 8, ovf=True)


def test_bits():
    a = Cplx(5, -3, 16)
    assert a.to_bits() == 0xfffd0005
    assert Cplx.from_bits(0xfffd0005, 16, vld=True, rst=False) == a

    with pytest.raises(ValueError):
        Cplx.from_bits(1 << 32, 16, vld=True, rst=False)
    with pytest.raises(ValueError):
        Cplx.from_bits(-1, 16, vld=True, rst=False)


def test_end_to_end():
    bits = pack([Cplx(5, -3, 16)])
    (s,) = unpack(bits, 1, 16, vld=True, rst=False)

    assert (s.re, s.im) == (5, -3)
    assert not s.rst
    assert not s.ovf
    assert s.vld


def test_pack_array():
    samples = [Cplx(i, -i, 8) for i in range(-4, 4)]
    bits = pack(samples)

    assert bits < 1 << (8 * 16)
    # Element 0 in the lowest slice.
    assert bits & 0xffff == Cplx(-4, 4, 8).to_bits()
    assert unpack(bits, len(samples), 8, vld=True, rst=False) == samples
    assert pack([]) == 0


def test_pack_width_mismatch():
    with pytest.raises(ConfigError, match="sample 1"):
        pack([Cplx(0, 0, 8), Cplx(0, 0, 9)])


def test_layout():
    layout = CplxLayout(12)
    assert layout.size == 3 + 2 * 12
    assert set(name for (name, _) in layout) == \
        {"rst", "vld", "ovf", "re", "im"}

    with pytest.raises(ConfigError):
        CplxLayout(0)
