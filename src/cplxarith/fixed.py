"""Bit-accurate model of fixed-width signed arithmetic.

Values are plain Python integers; the width of every value is carried
explicitly by the caller and checked at each operation boundary. All
functions are pure.
"""

from .mode import ConfigError, Mode, as_mode


def signed_min(width):
    """Most negative value representable in ``width`` bits."""
    return -(1 << (width - 1))


def signed_max(width):
    """Most positive value representable in ``width`` bits."""
    return (1 << (width - 1)) - 1


def fits(value, width):
    """Whether ``value`` is representable as a ``width``-bit signed int."""
    return signed_min(width) <= value <= signed_max(width)


def check_width(width):
    """Reject widths a signed value cannot have."""
    if not isinstance(width, int) or width < 1:
        raise ConfigError(f"width must be a positive integer, not {width!r}")
    return width


def check_value(value, width, name="value"):
    """Raise :class:`ValueError` if ``value`` does not fit ``width`` bits."""
    if not fits(value, width):
        raise ValueError(f"{name} {value} does not fit in {width} signed "
                         "bits")
    return value


def wrap(value, width):
    """Truncate ``value`` to ``width`` bits, two's complement style."""
    value &= (1 << width) - 1
    if value >> (width - 1):
        value -= 1 << width
    return value


def saturate(value, width):
    """Clamp ``value`` to the range of ``width`` bits.

    Returns
    -------
    tuple of (int, bool)
        The clamped value and whether clamping occurred.
    """
    vmax = signed_max(width)
    vmin = signed_min(width)

    if value > vmax:
        return (vmax, True)
    elif value < vmin:
        return (vmin, True)
    else:
        return (value, False)


def resize(value, width, mode=None, rst=False):
    """Resize ``value`` to ``width`` bits under ``mode``.

    Widening never overflows. When narrowing, out-of-range values are
    clamped under :attr:`Mode.SATURATE` and wrapped otherwise. The overflow
    flag is only ever set under :attr:`Mode.DETECT_OVERFLOW`, and is set
    whether or not the value was clamped.

    Parameters
    ----------
    value : int
        Value to resize, of any width.
    width : int
        Target width in bits, including the sign bit.
    mode : Mode, str, or None
        Policy flags.
    rst : bool
        Reset input. Under :attr:`Mode.USE_RESET` the result is forced
        to zero.

    Returns
    -------
    tuple of (int, bool)
        The resized value and the overflow flag.
    """
    mode = as_mode(mode)
    check_width(width)

    if rst and Mode.USE_RESET in mode:
        return (0, False)

    if Mode.SATURATE in mode:
        (result, ovf) = saturate(value, width)
    else:
        result = wrap(value, width)
        ovf = not fits(value, width)

    return (result, ovf and Mode.DETECT_OVERFLOW in mode)


def add(l, r, width, mode=None, rst=False):
    """Add ``l + r`` and resize the sum to ``width`` bits.

    Returns
    -------
    tuple of (int, bool)
        See :func:`resize`.
    """
    return resize(l + r, width, mode, rst)


def sub(l, r, width, mode=None, rst=False):
    """Subtract ``l - r`` and resize the difference to ``width`` bits.

    Returns
    -------
    tuple of (int, bool)
        See :func:`resize`.
    """
    return resize(l - r, width, mode, rst)


def shift_left(value, n, width, mode=None):
    """Multiply ``value`` by ``2**n``, keeping ``width`` bits.

    The top bits are wrapped away or saturated exactly like :func:`resize`.

    Returns
    -------
    tuple of (int, bool)
        See :func:`resize`.
    """
    if n < 0:
        raise ConfigError(f"shift amount must not be negative, not {n}")
    return resize(value << n, width, mode)


def shift_right(value, n, mode=None):
    """Divide ``value`` by ``2**n`` using the rounding flag of ``mode``.

    The result is never wider than ``value``, so right shifts cannot
    overflow.

    Parameters
    ----------
    value : int
        Dividend.
    n : int
        Shift amount, non-negative.
    mode : Mode, str, or None
        Only the rounding flag is used; floor is the default.

    Returns
    -------
    int
        The rounded quotient.
    """
    if n < 0:
        raise ConfigError(f"shift amount must not be negative, not {n}")
    if n == 0:
        return value

    rounding = as_mode(mode).rounding
    half = 1 << (n - 1)
    ones = (1 << n) - 1

    # Python's >> on negative ints is already an arithmetic (floor) shift.
    if rounding is Mode.ROUND_NEAREST:
        return (value + half) >> n
    elif rounding is Mode.ROUND_CEIL:
        return (value + ones) >> n
    elif rounding is Mode.ROUND_TRUNCATE:
        return (value + ones) >> n if value < 0 else value >> n
    elif rounding is Mode.ROUND_AWAY:
        return value >> n if value < 0 else (value + ones) >> n
    else:
        return value >> n


def round_bias(n):
    """Half-quantum bias which turns a floor shift by ``n`` into nearest."""
    return 1 << (n - 1) if n > 0 else 0


def log2ceil(n):
    """Smallest ``k`` with ``2**k >= n``; ``log2ceil(1) == 0``."""
    if n < 1:
        raise ValueError(f"log2ceil() is undefined for {n}")
    return (n - 1).bit_length()


def guard_bits(acc_width, product_width, num_summand=0):
    r"""Compute the guard bits needed to accumulate ``num_summand`` terms.

    Each accumulated term adds at most one product magnitude to the sum in
    the worst (all same sign) case, so :math:`\lceil\log_2 K\rceil` bits
    above the product width absorb any :math:`K` terms without wrapping.

    Parameters
    ----------
    acc_width : int
        Width of the accumulator register.
    product_width : int
        Width of a single accumulated term.
    num_summand : int
        Maximum number of terms accumulated between clears. ``0`` means
        unspecified; all available headroom is assumed.

    Returns
    -------
    int
        Number of guard bits.

    Raises
    ------
    ConfigError
        If the accumulator is narrower than a single term, or
        ``num_summand`` needs more guard bits than the accumulator has.
    """
    check_width(acc_width)
    check_width(product_width)

    headroom = acc_width - product_width
    if headroom < 0:
        raise ConfigError(f"accumulator width {acc_width} is narrower than "
                          f"term width {product_width}")

    if num_summand < 0:
        raise ConfigError("number of summands must not be negative, not "
                          f"{num_summand}")
    elif num_summand == 0:
        return headroom

    g = log2ceil(num_summand)
    if g > headroom:
        raise ConfigError(f"accumulating {num_summand} terms of "
                          f"{product_width} bits needs {g} guard bits, but "
                          f"a {acc_width}-bit accumulator only has "
                          f"{headroom}")
    return g
