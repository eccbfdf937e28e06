"""Complex add, subtract and shift components."""

import logging
import warnings

from amaranth import Module
from amaranth.lib.enum import Enum, auto
from amaranth.lib.wiring import In, Out, Component

from . import hdl
from .cplx import CplxLayout
from .fixed import check_width
from .mode import ConfigError, ConfigWarning, as_mode


logger = logging.getLogger(__name__)


class Op(Enum):
    """Select the operation of a :class:`CplxAddSub`.

    Attributes
    ----------
    ADD : int
        ``outp = a + b``
    SUB : int
        ``outp = a - b``
    """

    ADD = auto()
    SUB = auto()


class Direction(Enum):
    """Select the direction of a :class:`CplxShift`.

    Attributes
    ----------
    LEFT : int
        Multiply by a power of two. May overflow.
    RIGHT : int
        Divide by a power of two with rounding. Never overflows.
    """

    LEFT = auto()
    RIGHT = auto()


class CplxAddSub(Component):  # noqa: DOC602,DOC603
    r"""Lane-wise complex adder/subtractor.

    * ``outp.rst`` is the OR of both input resets.
    * ``outp.vld`` is the AND of both input valids.
    * ``outp.ovf`` is the OR of both input overflow flags and, under
      :attr:`~cplxarith.mode.Mode.DETECT_OVERFLOW`, of any overflow in the
      output lanes.

    * Latency: 1 clock cycle when ``registered``, else combinational.

    Parameters
    ----------
    width : int
        Lane width of input ``a``.
    op : Op
        Add or subtract.
    b_width : int, optional
        Lane width of input ``b``. Defaults to ``width``.
    output_width : int, optional
        Lane width of ``outp``. Defaults to the wider input.
    mode : Mode, str, or None
        Policy flags. Rounding flags have no effect here.
    registered : bool
        Whether ``outp`` is registered.

    Attributes
    ----------
    a : In(CplxLayout(width))
        Left operand.
    b : In(CplxLayout(b_width))
        Right operand.
    outp : Out(CplxLayout(output_width))
        Result.
    """

    def __init__(self, width, *, op=Op.ADD, b_width=None, output_width=None,
                 mode=None, registered=True):
        self.width = check_width(width)
        self.b_width = check_width(width if b_width is None else b_width)
        self.output_width = check_width(max(self.width, self.b_width)
                                        if output_width is None
                                        else output_width)
        self.op = op
        self.mode = as_mode(mode)
        self.registered = registered

        if self.mode.has_rounding:
            warnings.warn(f"rounding flag {self.mode.rounding.name} has no "
                          "effect on an adder", ConfigWarning, stacklevel=2)

        logger.debug("CplxAddSub: %s, %d/%d -> %d bits, mode %r", op.name,
                     self.width, self.b_width, self.output_width,
                     self.mode.tokens)

        super().__init__({
            "a": In(CplxLayout(self.width)),
            "b": In(CplxLayout(self.b_width)),
            "outp": Out(CplxLayout(self.output_width))
        })

    @property
    def latency(self):
        return 1 if self.registered else 0

    def elaborate(self, platform):  # noqa: D102
        m = Module()
        domain = "sync" if self.registered else "comb"
        a = self.a
        b = self.b

        if self.op == Op.ADD:
            (re, re_ovf) = hdl.resize(a.re + b.re, self.output_width,
                                      self.mode)
            (im, im_ovf) = hdl.resize(a.im + b.im, self.output_width,
                                      self.mode)
        else:
            (re, re_ovf) = hdl.resize(a.re - b.re, self.output_width,
                                      self.mode)
            (im, im_ovf) = hdl.resize(a.im - b.im, self.output_width,
                                      self.mode)

        rst = a.rst | b.rst
        m.d[domain] += [
            self.outp.rst.eq(rst),
            self.outp.vld.eq(a.vld & b.vld),
            self.outp.ovf.eq(a.ovf | b.ovf | re_ovf | im_ovf),
            self.outp.re.eq(re),
            self.outp.im.eq(im),
        ]
        hdl.apply_reset(m, domain, self.outp, rst, self.mode)

        return m


class CplxShift(Component):  # noqa: DOC602,DOC603
    """Shift both lanes of a complex sample by a constant amount.

    Left shifts saturate or wrap (and flag overflow) like a resize; right
    shifts round with the rounding flag of ``mode`` and pass the overflow
    flag through. The lane width does not change.

    Parameters
    ----------
    width : int
        Lane width of input and output.
    n : int
        Shift amount, ``0 <= n < width``.
    direction : Direction
        Shift direction.
    mode : Mode, str, or None
        Policy flags.
    registered : bool
        Whether ``outp`` is registered.

    Attributes
    ----------
    inp : In(CplxLayout(width))
        Input sample.
    outp : Out(CplxLayout(width))
        Shifted sample.
    """

    def __init__(self, width, n, *, direction=Direction.LEFT, mode=None,
                 registered=True):
        self.width = check_width(width)
        if not 0 <= n < width:
            raise ConfigError(f"cannot shift a {width}-bit lane by {n}")

        self.n = n
        self.direction = direction
        self.mode = as_mode(mode)
        self.registered = registered

        if self.mode.has_rounding and (n == 0 or direction == Direction.LEFT):
            warnings.warn(f"rounding flag {self.mode.rounding.name} is "
                          "unreachable", ConfigWarning, stacklevel=2)

        logger.debug("CplxShift: %s by %d on %d bits, mode %r",
                     direction.name, n, width, self.mode.tokens)

        super().__init__({
            "inp": In(CplxLayout(self.width)),
            "outp": Out(CplxLayout(self.width))
        })

    @property
    def latency(self):
        return 1 if self.registered else 0

    def elaborate(self, platform):  # noqa: D102
        m = Module()
        domain = "sync" if self.registered else "comb"
        inp = self.inp

        if self.direction == Direction.LEFT:
            (re, re_ovf) = hdl.shift_left(inp.re, self.n, self.width,
                                          self.mode)
            (im, im_ovf) = hdl.shift_left(inp.im, self.n, self.width,
                                          self.mode)
            ovf = inp.ovf | re_ovf | im_ovf
        else:
            re = hdl.shift_right(inp.re, self.n, self.mode)
            im = hdl.shift_right(inp.im, self.n, self.mode)
            ovf = inp.ovf

        m.d[domain] += [
            self.outp.rst.eq(inp.rst),
            self.outp.vld.eq(inp.vld),
            self.outp.ovf.eq(ovf),
            self.outp.re.eq(re),
            self.outp.im.eq(im),
        ]
        hdl.apply_reset(m, domain, self.outp, inp.rst, self.mode)

        return m
