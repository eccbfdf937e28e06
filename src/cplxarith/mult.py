"""Complex multipliers: element-wise, sum of products, multiply-accumulate."""

import logging

from amaranth import Cat, Module, Signal, signed
from amaranth.lib.data import ArrayLayout
from amaranth.lib.wiring import In, Out, Component

from . import hdl
from .accu import SignedAccu
from .cplx import CplxLayout
from .fixed import check_width, log2ceil, round_bias
from .mode import ConfigError, Mode, as_mode
from .output import OutputLogic


logger = logging.getLogger(__name__)


class CplxMultAccu(Component):  # noqa: DOC602,DOC603
    r"""Behavioural complex multiply-accumulate.

    Computes :math:`\sum x \cdot y` over the samples between clears, then
    conditions the sum through an :class:`~cplxarith.output.OutputLogic`
    per lane.

    * Stage 1 registers the complex product, the combined flags
      (``vld`` AND, ``rst`` and ``ovf`` OR) and ``clr``.
    * Stage 2 is one :class:`~cplxarith.accu.SignedAccu` per lane; ``clr``
      follows the restart protocol of that class.
    * Stage 3 is the output logic with ``num_output_reg`` registers.

    * Latency: ``2 + num_output_reg`` clock cycles.
    * Throughput: one complex product per clock cycle.

    Parameters
    ----------
    input_width : int
        Lane width of ``x`` and ``y``.
    output_width : int
        Lane width of ``outp``.
    num_summand : int
        Maximum number of products accumulated between clears; ``0``
        means unspecified.
    acc_width : int, optional
        Accumulator width. Defaults to the product width plus the guard
        bits for ``num_summand``, plus one bit for a preloaded bias.
    shift_right : int
        Right shift applied to the accumulator before clipping.
    mode : Mode, str, or None
        Policy flags for reset, rounding, saturation and overflow
        detection.
    num_output_reg : int
        Number of output registers.
    bias_preload : bool
        Load the rounding bias into the accumulators at each restart
        instead of adding it in the output logic. Requires
        :attr:`~cplxarith.mode.Mode.ROUND_NEAREST`.

    Attributes
    ----------
    term_width : int
        Width of one complex product lane, ``2*input_width + 1``.
    x : In(CplxLayout(input_width))
        First factor.
    y : In(CplxLayout(input_width))
        Second factor.
    clr : In(1)
        Restart accumulation with the next valid product.
    outp : Out(CplxLayout(output_width))
        Conditioned accumulator.
    """

    def __init__(self, input_width, output_width, *, num_summand=0,
                 acc_width=None, shift_right=0, mode=None, num_output_reg=1,
                 bias_preload=False):
        self.input_width = check_width(input_width)
        self.output_width = check_width(output_width)
        self.mode = as_mode(mode)
        self.num_output_reg = num_output_reg

        # Only -2^(w-1) * -2^(w-1) + -2^(w-1) * -2^(w-1) needs the top bit.
        self.term_width = 2 * input_width + 1

        if acc_width is None:
            if not num_summand:
                raise ConfigError("either the accumulator width or the "
                                  "number of summands must be given")
            acc_width = self.term_width + log2ceil(num_summand)
            # The rounding bias can push the sum into one more bit.
            if bias_preload and shift_right:
                acc_width += 1

        if bias_preload:
            if self.mode.rounding is not Mode.ROUND_NEAREST:
                raise ConfigError("a preloaded rounding bias implements "
                                  "ROUND_NEAREST, but the mode selects "
                                  f"{self.mode.rounding.name}")
            bias = round_bias(shift_right)
        else:
            bias = 0

        self._accu = [SignedAccu(acc_width, self.term_width,
                                 num_summand=num_summand, bias=bias,
                                 mode=self.mode)
                      for _ in range(2)]
        used_width = self._accu[0].config.used_width
        self._out = [OutputLogic(acc_width, output_width,
                                 shift_right=shift_right, mode=self.mode,
                                 num_output_reg=num_output_reg,
                                 used_width=used_width,
                                 bias_preloaded=bias_preload)
                     for _ in range(2)]

        logger.debug("CplxMultAccu: %d-bit inputs, %d-bit accumulators "
                     "(%d used), %d-bit outputs, latency %d", input_width,
                     acc_width, used_width, output_width, self.latency)

        super().__init__({
            "x": In(CplxLayout(self.input_width)),
            "y": In(CplxLayout(self.input_width)),
            "clr": In(1),
            "outp": Out(CplxLayout(self.output_width))
        })

    @property
    def latency(self):
        return 2 + self.num_output_reg

    @property
    def accu_config(self):
        """Configuration (and cycle model) of each lane's accumulator."""
        return self._accu[0].config

    @property
    def output_config(self):
        """Configuration (and cycle model) of each lane's output logic."""
        return self._out[0].config

    def elaborate(self, platform):  # noqa: D102
        m = Module()
        x = self.x
        y = self.y

        (accu_re, accu_im) = self._accu
        (out_re, out_im) = self._out
        m.submodules.accu_re = accu_re
        m.submodules.accu_im = accu_im
        m.submodules.out_re = out_re
        m.submodules.out_im = out_im

        prod_re = Signal(signed(self.term_width))
        prod_im = Signal(signed(self.term_width))
        prod_vld = Signal()
        prod_rst = Signal()
        prod_ovf = Signal()
        prod_clr = Signal()

        m.d.sync += [
            prod_re.eq(x.re * y.re - x.im * y.im),
            prod_im.eq(x.re * y.im + x.im * y.re),
            prod_vld.eq(x.vld & y.vld),
            prod_rst.eq(x.rst | y.rst),
            prod_ovf.eq(x.ovf | y.ovf),
            prod_clr.eq(self.clr),
        ]

        for (accu, prod) in ((accu_re, prod_re), (accu_im, prod_im)):
            m.d.comb += [
                accu.term.eq(prod),
                accu.vld.eq(prod_vld),
                accu.clr.eq(prod_clr),
                accu.rst.eq(prod_rst),
                accu.ovf.eq(prod_ovf),
            ]

        for (out, accu) in ((out_re, accu_re), (out_im, accu_im)):
            m.d.comb += [
                out.inp.eq(accu.result),
                out.inp_vld.eq(accu.result_vld),
                out.inp_ovf.eq(accu.result_ovf),
            ]

        # The reset flag travels alongside the data.
        rst = prod_rst
        for i in range(1 + self.num_output_reg):
            rst_reg = Signal(name=f"rst{i}")
            m.d.sync += rst_reg.eq(rst)
            rst = rst_reg

        m.d.comb += [
            self.outp.re.eq(out_re.result),
            self.outp.im.eq(out_im.result),
            self.outp.vld.eq(out_re.result_vld),
            self.outp.ovf.eq(out_re.result_ovf | out_im.result_ovf),
            self.outp.rst.eq(rst),
        ]

        return m


class CplxMult(Component):  # noqa: DOC602,DOC603
    r"""Element-wise complex multiplier over a vector of samples.

    Element ``i`` of ``outp`` is :math:`x_i \cdot y_i`, conditioned
    through an :class:`~cplxarith.output.OutputLogic` per lane. With
    ``broadcast`` set, ``y`` has a single element that multiplies every
    element of ``x``.

    * Stage 1 registers the exact products and the combined flags
      (``vld`` AND, ``rst`` and ``ovf`` OR), then applies the reset flags
      of ``mode``.
    * Stage 2 is the output logic with ``num_output_reg`` registers.

    * Latency: ``1 + num_output_reg`` clock cycles.
    * Throughput: one vector per clock cycle.

    Parameters
    ----------
    input_width : int
        Lane width of ``x`` and ``y``.
    output_width : int
        Lane width of ``outp``.
    num_elements : int
        Number of samples per vector.
    broadcast : bool
        ``y`` is a single sample shared by all elements of ``x``.
    shift_right : int
        Right shift applied to each product before clipping.
    mode : Mode, str, or None
        Policy flags for reset, rounding, saturation and overflow
        detection.
    num_output_reg : int
        Number of output registers.

    Attributes
    ----------
    term_width : int
        Width of one product lane, ``2*input_width + 1``.
    x : In(ArrayLayout(CplxLayout(input_width), num_elements))
        First factors.
    y : In(ArrayLayout(CplxLayout(input_width), num_elements))
        Second factors; a single element if ``broadcast`` is set.
    outp : Out(ArrayLayout(CplxLayout(output_width), num_elements))
        Conditioned products.
    """

    def __init__(self, input_width, output_width, *, num_elements=1,
                 broadcast=False, shift_right=0, mode=None, num_output_reg=1):
        self.input_width = check_width(input_width)
        self.output_width = check_width(output_width)
        if num_elements < 1:
            raise ConfigError("need at least one element, not "
                              f"{num_elements}")
        self.num_elements = num_elements
        self.broadcast = broadcast
        self.mode = as_mode(mode)
        self.num_output_reg = num_output_reg
        self.term_width = 2 * input_width + 1

        self._out = [[OutputLogic(self.term_width, output_width,
                                  shift_right=shift_right, mode=self.mode,
                                  num_output_reg=num_output_reg)
                      for _ in range(2)]
                     for _ in range(num_elements)]

        logger.debug("CplxMult: %d x %d-bit inputs%s, %d-bit outputs, "
                     "latency %d", num_elements, input_width,
                     " (broadcast)" if broadcast else "", output_width,
                     self.latency)

        num_y = 1 if broadcast else num_elements
        super().__init__({
            "x": In(ArrayLayout(CplxLayout(self.input_width), num_elements)),
            "y": In(ArrayLayout(CplxLayout(self.input_width), num_y)),
            "outp": Out(ArrayLayout(CplxLayout(self.output_width),
                                    num_elements))
        })

    @property
    def latency(self):
        return 1 + self.num_output_reg

    @property
    def output_config(self):
        """Configuration (and cycle model) of each lane's output logic."""
        return self._out[0][0].config

    def condition(self, xs, ys):
        """Model of one input vector, without the register delay.

        Parameters
        ----------
        xs : list of Cplx
            ``num_elements`` first factors.
        ys : list of Cplx
            Second factors, one per element or a single one if
            ``broadcast`` is set.

        Returns
        -------
        list of Cplx
            What ``outp`` shows ``latency`` cycles later.
        """
        num_y = 1 if self.broadcast else self.num_elements
        if len(xs) != self.num_elements or len(ys) != num_y:
            raise ValueError(f"expected {self.num_elements} and {num_y} "
                             f"factors, got {len(xs)} and {len(ys)}")
        if self.broadcast:
            ys = ys * self.num_elements

        return [self.output_config.condition_cplx(x.mul(y, self.mode))
                for (x, y) in zip(xs, ys)]

    def elaborate(self, platform):  # noqa: D102
        m = Module()

        for i in range(self.num_elements):
            x = self.x[i]
            y = self.y[0 if self.broadcast else i]
            prod = Signal(CplxLayout(self.term_width), name=f"prod{i}")

            m.d.sync += [
                prod.re.eq(x.re * y.re - x.im * y.im),
                prod.im.eq(x.re * y.im + x.im * y.re),
                prod.vld.eq(x.vld & y.vld),
                prod.rst.eq(x.rst | y.rst),
                prod.ovf.eq(x.ovf | y.ovf),
            ]
            hdl.apply_reset(m, "sync", prod, x.rst | y.rst, self.mode)

            (out_re, out_im) = self._out[i]
            m.submodules[f"out_re{i}"] = out_re
            m.submodules[f"out_im{i}"] = out_im
            for (out, lane) in ((out_re, prod.re), (out_im, prod.im)):
                m.d.comb += [
                    out.inp.eq(lane),
                    out.inp_vld.eq(prod.vld),
                    out.inp_ovf.eq(prod.ovf),
                ]

            rst = prod.rst
            for j in range(self.num_output_reg):
                rst_reg = Signal(name=f"rst{i}_{j}")
                m.d.sync += rst_reg.eq(rst)
                rst = rst_reg

            outp = self.outp[i]
            m.d.comb += [
                outp.re.eq(out_re.result),
                outp.im.eq(out_im.result),
                outp.vld.eq(out_re.result_vld),
                outp.ovf.eq(out_re.result_ovf | out_im.result_ovf),
                outp.rst.eq(rst),
            ]

        return m


class CplxMultSum(Component):  # noqa: DOC602,DOC603
    r"""Sum of complex products computed in parallel.

    Computes :math:`\sum_i x_i \cdot y_i` over the ``num_summand`` elements
    of one input vector, then conditions the sum through an
    :class:`~cplxarith.output.OutputLogic` per lane.

    * Stage 1 registers the exact sum and the combined flags (``vld`` AND,
      ``rst`` and ``ovf`` OR over all elements), then applies the reset
      flags of ``mode``.
    * Stage 2 is the output logic with ``num_output_reg`` registers.

    * Latency: ``1 + num_output_reg`` clock cycles.
    * Throughput: one vector per clock cycle.

    Parameters
    ----------
    input_width : int
        Lane width of ``x`` and ``y``.
    output_width : int
        Lane width of ``outp``.
    num_summand : int
        Number of products summed per cycle.
    shift_right : int
        Right shift applied to the sum before clipping.
    mode : Mode, str, or None
        Policy flags for reset, rounding, saturation and overflow
        detection.
    num_output_reg : int
        Number of output registers.

    Attributes
    ----------
    term_width : int
        Width of one product lane, ``2*input_width + 1``.
    guard_bits : int
        Headroom for ``num_summand`` products.
    sum_width : int
        ``term_width + guard_bits``.
    x : In(ArrayLayout(CplxLayout(input_width), num_summand))
        First factors.
    y : In(ArrayLayout(CplxLayout(input_width), num_summand))
        Second factors.
    outp : Out(CplxLayout(output_width))
        Conditioned sum.
    """

    def __init__(self, input_width, output_width, num_summand, *,
                 shift_right=0, mode=None, num_output_reg=1):
        self.input_width = check_width(input_width)
        self.output_width = check_width(output_width)
        if num_summand < 1:
            raise ConfigError("need at least one summand, not "
                              f"{num_summand}")
        self.num_summand = num_summand
        self.mode = as_mode(mode)
        self.num_output_reg = num_output_reg

        self.term_width = 2 * input_width + 1
        self.guard_bits = log2ceil(num_summand)
        self.sum_width = self.term_width + self.guard_bits

        self._out = [OutputLogic(self.sum_width, output_width,
                                 shift_right=shift_right, mode=self.mode,
                                 num_output_reg=num_output_reg)
                     for _ in range(2)]

        logger.debug("CplxMultSum: %d products of %d-bit inputs, %d-bit "
                     "sum, %d-bit outputs, latency %d", num_summand,
                     input_width, self.sum_width, output_width, self.latency)

        layout = ArrayLayout(CplxLayout(self.input_width), num_summand)
        super().__init__({
            "x": In(layout),
            "y": In(layout),
            "outp": Out(CplxLayout(self.output_width))
        })

    @property
    def latency(self):
        return 1 + self.num_output_reg

    @property
    def output_config(self):
        """Configuration (and cycle model) of each lane's output logic."""
        return self._out[0].config

    def condition(self, xs, ys):
        """Model of one input vector, without the register delay.

        Returns
        -------
        Cplx
            What ``outp`` shows ``latency`` cycles later.
        """
        if len(xs) != self.num_summand or len(ys) != self.num_summand:
            raise ValueError(f"expected {self.num_summand} factors each, "
                             f"got {len(xs)} and {len(ys)}")

        total = None
        for (x, y) in zip(xs, ys):
            prod = x.mul(y)
            if total is None:
                total = prod
            else:
                total = total.add(prod, width=self.sum_width)
        total = total.resize(self.sum_width, self.mode)

        return self.output_config.condition_cplx(total)

    def elaborate(self, platform):  # noqa: D102
        m = Module()
        xs = [self.x[i] for i in range(self.num_summand)]
        ys = [self.y[i] for i in range(self.num_summand)]

        (out_re, out_im) = self._out
        m.submodules.out_re = out_re
        m.submodules.out_im = out_im

        acc = Signal(CplxLayout(self.sum_width))
        rst = Cat(*(x.rst | y.rst for (x, y) in zip(xs, ys))).any()

        m.d.sync += [
            acc.re.eq(sum(x.re * y.re - x.im * y.im
                          for (x, y) in zip(xs, ys))),
            acc.im.eq(sum(x.re * y.im + x.im * y.re
                          for (x, y) in zip(xs, ys))),
            acc.vld.eq(Cat(*(x.vld & y.vld for (x, y) in zip(xs, ys))).all()),
            acc.rst.eq(rst),
            acc.ovf.eq(Cat(*(x.ovf | y.ovf for (x, y) in zip(xs, ys))).any()),
        ]
        hdl.apply_reset(m, "sync", acc, rst, self.mode)

        for (out, lane) in ((out_re, acc.re), (out_im, acc.im)):
            m.d.comb += [
                out.inp.eq(lane),
                out.inp_vld.eq(acc.vld),
                out.inp_ovf.eq(acc.ovf),
            ]

        rst = acc.rst
        for i in range(self.num_output_reg):
            rst_reg = Signal(name=f"rst{i}")
            m.d.sync += rst_reg.eq(rst)
            rst = rst_reg

        m.d.comb += [
            self.outp.re.eq(out_re.result),
            self.outp.im.eq(out_im.result),
            self.outp.vld.eq(out_re.result_vld),
            self.outp.ovf.eq(out_re.result_ovf | out_im.result_ovf),
            self.outp.rst.eq(rst),
        ]

        return m
