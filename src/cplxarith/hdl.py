"""Amaranth expression builders for the numeric policy in :mod:`.fixed`.

Every function here returns combinational expressions; callers decide
which domain the results are assigned in. Results may be wider than the
target width; assigning them to a signal of the target width gives the
correct bits.
"""

from amaranth import C, Mux

from .fixed import signed_max, signed_min
from .mode import Mode, as_mode


def resize(value, width, mode=None):
    """Resize a signed ``value`` to ``width`` bits.

    Parameters
    ----------
    value : Value
        Signed value.
    width : int
        Target width.
    mode : Mode, str, or None
        Only :attr:`Mode.SATURATE` and :attr:`Mode.DETECT_OVERFLOW` are
        used; reset handling is up to the caller.

    Returns
    -------
    tuple of (Value, Value)
        The resized value and a 1-bit overflow flag.
    """
    mode = as_mode(mode)

    # Growing (or keeping) the width can't lose information.
    if len(value) <= width:
        return (value, C(0, 1))

    vmax = signed_max(width)
    vmin = signed_min(width)
    too_big = value > vmax
    too_small = value < vmin

    if Mode.SATURATE in mode:
        result = Mux(too_big, vmax, Mux(too_small, vmin,
                                         value[:width].as_signed()))
    else:
        result = value[:width].as_signed()

    if Mode.DETECT_OVERFLOW in mode:
        ovf = too_big | too_small
    else:
        ovf = C(0, 1)

    return (result, ovf)


def shift_right(value, n, mode=None):
    """Divide a signed ``value`` by ``2**n`` with the rounding of ``mode``.

    Returns
    -------
    Value
        Signed quotient, see :func:`cplxarith.fixed.shift_right`.
    """
    if n == 0:
        return value

    rounding = as_mode(mode).rounding
    half = 1 << (n - 1)
    ones = (1 << n) - 1
    neg = value < 0

    # >> on a signed Value is an arithmetic shift.
    if rounding is Mode.ROUND_NEAREST:
        return (value + half) >> n
    elif rounding is Mode.ROUND_CEIL:
        return (value + ones) >> n
    elif rounding is Mode.ROUND_TRUNCATE:
        return Mux(neg, (value + ones) >> n, value >> n)
    elif rounding is Mode.ROUND_AWAY:
        return Mux(neg, value >> n, (value + ones) >> n)
    else:
        return value >> n


def shift_left(value, n, width, mode=None):
    """Multiply a signed ``value`` by ``2**n`` and resize to ``width`` bits.

    Returns
    -------
    tuple of (Value, Value)
        See :func:`resize`.
    """
    return resize(value << n, width, mode)


def apply_reset(m, domain, outp, rst, mode):
    """Override sample fields of ``outp`` when ``rst`` is asserted.

    Must be called after the regular assignments to ``outp``, so that the
    assignments made here take priority.

    Parameters
    ----------
    m : Module
        Module to add the statements to.
    domain : str
        Domain ``outp`` is driven in.
    outp : View
        A :class:`~cplxarith.cplx.CplxLayout` view.
    rst : Value
        Reset flag.
    mode : Mode
        Policy flags.
    """
    if Mode.USE_RESET in mode:
        with m.If(rst):
            m.d[domain] += [
                outp.re.eq(0),
                outp.im.eq(0),
                outp.vld.eq(0),
                outp.ovf.eq(0),
            ]
    elif Mode.RESET_DONT_CARE in mode:
        with m.If(rst):
            m.d[domain] += [
                outp.vld.eq(0),
                outp.ovf.eq(0),
            ]
