"""Complex samples: the Python model, the gateware layout, and the codec."""

from dataclasses import dataclass, replace

from amaranth import signed
from amaranth.lib.data import StructLayout

from . import fixed
from .mode import ConfigError, Mode, as_mode


class CplxLayout(StructLayout):  # noqa: DOC602,DOC603
    """Layout of a complex sample travelling through gateware.

    Parameters
    ----------
    width : int
        Width in bits of each of the real and imaginary lanes, including
        the sign bit.

    Attributes
    ----------
    rst : Signal(1)
        Synchronous reset travelling with the sample.
    vld : Signal(1)
        The lanes carry a meaningful sample this cycle.
    ovf : Signal(1)
        Some stage that produced this sample lost information. Only
        meaningful when ``vld`` is asserted.
    re : Signal(signed(width))
        Real lane.
    im : Signal(signed(width))
        Imaginary lane.
    """

    def __init__(self, width):
        fixed.check_width(width)
        super().__init__({
            "rst": 1,
            "vld": 1,
            "ovf": 1,
            "re": signed(width),
            "im": signed(width),
        })


@dataclass(frozen=True)
class Cplx:
    """A complex sample with two lanes of the same width.

    Attributes
    ----------
    re : int
        Real lane.
    im : int
        Imaginary lane.
    width : int
        Width of both lanes in bits, including the sign bit.
    vld : bool
        Valid flag.
    rst : bool
        Reset flag.
    ovf : bool
        Overflow flag.
    """

    re: int
    im: int
    width: int
    vld: bool = True
    rst: bool = False
    ovf: bool = False

    def __post_init__(self):
        fixed.check_width(self.width)
        fixed.check_value(self.re, self.width, "real lane")
        fixed.check_value(self.im, self.width, "imaginary lane")

    def _apply_reset(self, mode):
        if not self.rst:
            return self
        if Mode.USE_RESET in mode:
            return replace(self, re=0, im=0, vld=False, ovf=False)
        if Mode.RESET_DONT_CARE in mode:
            return replace(self, vld=False, ovf=False)
        return self

    def resize(self, width, mode=None):
        """Resize both lanes to ``width`` bits.

        Growing sign-extends and passes the overflow flag through.
        Shrinking follows :func:`cplxarith.fixed.resize`.

        Returns
        -------
        Cplx
            The resized sample.
        """
        mode = as_mode(mode)
        fixed.check_width(width)

        if width >= self.width:
            out = replace(self, width=width)
        else:
            (re, re_ovf) = fixed.resize(self.re, width, mode)
            (im, im_ovf) = fixed.resize(self.im, width, mode)
            out = replace(self, re=re, im=im, width=width,
                          ovf=self.ovf or re_ovf or im_ovf)

        return out._apply_reset(mode)

    def _combine(self, other, re, im, width, mode):
        if width is None:
            width = max(self.width, other.width)
        fixed.check_width(width)
        mode = as_mode(mode)

        ovf = self.ovf or other.ovf
        # One extra bit holds any sum or difference, nothing to check.
        if width <= max(self.width, other.width):
            (re, re_ovf) = fixed.resize(re, width, mode)
            (im, im_ovf) = fixed.resize(im, width, mode)
            ovf = ovf or re_ovf or im_ovf

        out = Cplx(re, im, width,
                   vld=self.vld and other.vld,
                   rst=self.rst or other.rst,
                   ovf=ovf)
        return out._apply_reset(mode)

    def add(self, other, width=None, mode=None):
        """Add two samples lane by lane.

        Parameters
        ----------
        other : Cplx
            Right-hand operand, of any width.
        width : int, optional
            Output width; defaults to the wider operand's width.
        mode : Mode, str, or None
            Policy flags.

        Returns
        -------
        Cplx
            ``rst`` is the OR and ``vld`` the AND of both operands; ``ovf``
            ORs both operands' flags with any fresh overflow.
        """
        return self._combine(other, self.re + other.re, self.im + other.im,
                             width, mode)

    def sub(self, other, width=None, mode=None):
        """Subtract ``other`` lane by lane. See :meth:`add`."""
        return self._combine(other, self.re - other.re, self.im - other.im,
                             width, mode)

    def __add__(self, other):
        return self.add(other, mode=Mode.DETECT_OVERFLOW)

    def __sub__(self, other):
        return self.sub(other, mode=Mode.DETECT_OVERFLOW)

    def mul(self, other, mode=None):
        """Exact complex product.

        The result is ``self.width + other.width + 1`` bits wide, which
        holds every product; flags combine as in :meth:`add`.

        Returns
        -------
        Cplx
            The product, after the reset flags of ``mode``.
        """
        re = self.re * other.re - self.im * other.im
        im = self.re * other.im + self.im * other.re
        out = Cplx(re, im, self.width + other.width + 1,
                   vld=self.vld and other.vld,
                   rst=self.rst or other.rst,
                   ovf=self.ovf or other.ovf)
        return out._apply_reset(as_mode(mode))

    def __mul__(self, other):
        return self.mul(other)

    def shift_left(self, n, mode=None):
        """Multiply both lanes by ``2**n``, keeping the width."""
        mode = as_mode(mode)
        (re, re_ovf) = fixed.shift_left(self.re, n, self.width, mode)
        (im, im_ovf) = fixed.shift_left(self.im, n, self.width, mode)
        out = replace(self, re=re, im=im, ovf=self.ovf or re_ovf or im_ovf)
        return out._apply_reset(mode)

    def shift_right(self, n, mode=None):
        """Divide both lanes by ``2**n`` with rounding, keeping the width."""
        mode = as_mode(mode)
        out = replace(self, re=fixed.shift_right(self.re, n, mode),
                      im=fixed.shift_right(self.im, n, mode))
        return out._apply_reset(mode)

    def to_bits(self):
        """Pack the lanes into ``2*width`` bits, real lane in the low half.

        The control flags are not part of the vector.
        """
        mask = (1 << self.width) - 1
        return (self.re & mask) | ((self.im & mask) << self.width)

    @classmethod
    def from_bits(cls, bits, width, *, vld, rst):
        """Inverse of :meth:`to_bits`.

        Parameters
        ----------
        bits : int
            Non-negative vector of at most ``2*width`` bits.
        width : int
            Lane width.
        vld : bool
            Valid flag to attach.
        rst : bool
            Reset flag to attach.

        Returns
        -------
        Cplx
            The unpacked sample, with ``ovf`` clear.
        """
        fixed.check_width(width)
        if bits < 0 or bits >> (2 * width):
            raise ValueError(f"{bits:#x} is not a {2 * width}-bit vector")

        mask = (1 << width) - 1
        return cls(fixed.wrap(bits & mask, width),
                   fixed.wrap(bits >> width, width),
                   width, vld=bool(vld), rst=bool(rst))


def pack(samples):
    """Concatenate samples, element 0 in the lowest slice.

    Raises
    ------
    ConfigError
        If the samples do not all have the same lane width.
    """
    samples = list(samples)
    if not samples:
        return 0

    width = samples[0].width
    bits = 0
    for i, s in enumerate(samples):
        if s.width != width:
            raise ConfigError(f"sample {i} has lane width {s.width}, "
                              f"expected {width}")
        bits |= s.to_bits() << (2 * width * i)
    return bits


def unpack(bits, count, width, *, vld, rst):
    """Inverse of :func:`pack` for ``count`` samples of ``width`` bits."""
    fixed.check_width(width)
    slice_width = 2 * width
    if bits < 0 or bits >> (slice_width * count):
        raise ValueError(f"{bits:#x} is not a {slice_width * count}-bit "
                         "vector")

    mask = (1 << slice_width) - 1
    return [Cplx.from_bits((bits >> (slice_width * i)) & mask, width,
                           vld=vld, rst=rst)
            for i in range(count)]
