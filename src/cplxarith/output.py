"""Output conditioning: shift, round, clip and flag accumulator results."""

import logging
import warnings
from collections import namedtuple
from dataclasses import dataclass, field

from amaranth import C, Module, Signal, signed
from amaranth.lib.wiring import In, Out, Component

from . import fixed, hdl
from .cplx import Cplx
from .mode import ConfigError, ConfigWarning, Mode, as_mode


logger = logging.getLogger(__name__)


OutputResult = namedtuple("OutputResult", ["value", "vld", "ovf"])


@dataclass(frozen=True)
class OutputConfig:
    """Validated configuration and cycle model of an output stage.

    The stage applies, in order:

    1. Drop the unused high sign bits above ``used_width``.
    2. Shift right by ``shift_right`` with the rounding flag of ``mode``
       (plain floor shift if the rounding bias was preloaded).
    3. Saturate to ``output_width`` under :attr:`Mode.SATURATE`, wrap
       otherwise.
    4. Under :attr:`Mode.DETECT_OVERFLOW`, ``ovf`` is the OR of the input's
       flag and clipping in step 3; otherwise it is always clear.
    5. Delay everything by ``num_output_reg`` registers.

    ``vld`` and ``ovf`` are never asserted for invalid data.

    Parameters
    ----------
    input_width : int
        Width of the input value.
    output_width : int
        Width of the output value.
    shift_right : int
        Right shift amount.
    mode : Mode, str, or None
        Policy flags.
    num_output_reg : int
        Number of output registers; ``0`` is combinational.
    used_width : int, optional
        Significant width of the input; defaults to ``input_width``.
    bias_preloaded : bool
        The input already contains :func:`~cplxarith.fixed.round_bias` of
        ``shift_right``, so rounding to nearest is a floor shift. Requires
        :attr:`Mode.ROUND_NEAREST`.
    """

    input_width: int
    output_width: int
    shift_right: int = 0
    mode: Mode = None
    num_output_reg: int = 1
    used_width: int = None
    bias_preloaded: bool = False
    rounding: Mode = field(init=False)

    def __post_init__(self):
        mode = as_mode(self.mode)
        object.__setattr__(self, "mode", mode)
        fixed.check_width(self.input_width)
        fixed.check_width(self.output_width)

        if self.used_width is None:
            object.__setattr__(self, "used_width", self.input_width)
        fixed.check_width(self.used_width)
        if self.used_width > self.input_width:
            raise ConfigError(f"used width {self.used_width} exceeds input "
                              f"width {self.input_width}")

        if self.shift_right < 0:
            raise ConfigError("shift amount must not be negative, not "
                              f"{self.shift_right}")
        if self.shift_right >= self.used_width:
            raise ConfigError(f"shifting {self.used_width} significant bits "
                              f"right by {self.shift_right} leaves nothing")
        if self.num_output_reg < 0:
            raise ConfigError("number of output registers must not be "
                              f"negative, not {self.num_output_reg}")

        if self.bias_preloaded:
            if mode.rounding is not Mode.ROUND_NEAREST:
                raise ConfigError("a preloaded rounding bias implements "
                                  "ROUND_NEAREST, but the mode selects "
                                  f"{mode.rounding.name}")
            if self.shift_right == 0:
                warnings.warn("rounding bias preloaded, but nothing is "
                              "shifted out", ConfigWarning, stacklevel=3)
            object.__setattr__(self, "rounding", Mode.ROUND_FLOOR)
        else:
            if mode.has_rounding and self.shift_right == 0:
                warnings.warn(f"rounding flag {mode.rounding.name} is "
                              "unreachable without a right shift",
                              ConfigWarning, stacklevel=3)
            object.__setattr__(self, "rounding", mode.rounding)

        # Rounding up can carry into one more bit.
        carry = self.rounding in (Mode.ROUND_NEAREST, Mode.ROUND_CEIL,
                                  Mode.ROUND_AWAY)
        grown = self.used_width - self.shift_right + carry
        if Mode.SATURATE in mode and grown <= self.output_width:
            warnings.warn(f"saturation is unreachable, {grown} significant "
                          f"bits always fit {self.output_width}",
                          ConfigWarning, stacklevel=3)

    @property
    def latency(self):
        return self.num_output_reg

    def condition(self, vld, value, ovf=False):
        """Combinational part of the stage (steps 1 to 4).

        Returns
        -------
        OutputResult
            Conditioned value and flags.
        """
        fixed.check_value(value, self.input_width)

        value = fixed.wrap(value, self.used_width)
        value = fixed.shift_right(value, self.shift_right, self.rounding)
        (value, clip) = fixed.resize(value, self.output_width,
                                     self.mode & (Mode.SATURATE |
                                                  Mode.DETECT_OVERFLOW))

        if Mode.DETECT_OVERFLOW in self.mode:
            ovf = bool(vld) and (bool(ovf) or clip)
        else:
            ovf = False

        return OutputResult(value, bool(vld), ovf)

    def condition_cplx(self, sample):
        """Apply :meth:`condition` to both lanes of ``sample``.

        Returns
        -------
        Cplx
            ``output_width`` lanes; ``ovf`` is the OR of both lanes' flags
            and ``rst`` passes through.
        """
        re = self.condition(sample.vld, sample.re, sample.ovf)
        im = self.condition(sample.vld, sample.im, sample.ovf)
        return Cplx(re.value, im.value, self.output_width, vld=re.vld,
                    rst=sample.rst, ovf=re.ovf or im.ovf)

    def reset_state(self):
        """Contents of the output registers after reset."""
        return (OutputResult(0, False, False),) * self.num_output_reg

    def tick(self, state, vld, value, ovf=False):
        """Advance the stage by one clock tick.

        Parameters
        ----------
        state : tuple of OutputResult
            Output registers, oldest last.
        vld : bool
            Input valid.
        value : int
            Input value.
        ovf : bool
            Input overflow flag.

        Returns
        -------
        tuple of (tuple, OutputResult)
            The new state and the registered outputs.
        """
        res = self.condition(vld, value, ovf)
        if not self.num_output_reg:
            return (state, res)

        state = (res,) + state[:-1]
        return (state, state[-1])


class OutputLogic(Component):  # noqa: DOC602,DOC603
    r"""Output stage of an accumulator: shift, round, clip, flag, delay.

    See :class:`OutputConfig` for the exact sequence of operations.

    * Latency: ``num_output_reg`` clock cycles.

    Parameters
    ----------
    input_width : int
        Width of ``inp``.
    output_width : int
        Width of ``result``.
    shift_right : int
        Right shift amount.
    mode : Mode, str, or None
        Policy flags.
    num_output_reg : int
        Number of output registers; ``0`` is combinational.
    used_width : int, optional
        Significant width of ``inp``.
    bias_preloaded : bool
        ``inp`` already contains the rounding bias.

    Attributes
    ----------
    config : OutputConfig
        Validated configuration; also usable as a cycle model.
    inp : In(signed(input_width))
        Value to condition, e.g. an accumulator result.
    inp_vld : In(1)
        ``inp`` is valid.
    inp_ovf : In(1)
        Overflow flag of ``inp``.
    result : Out(signed(output_width))
        Conditioned value.
    result_vld : Out(1)
        ``result`` is valid.
    result_ovf : Out(1)
        Overflow flag of ``result``.
    """

    def __init__(self, input_width, output_width, *, shift_right=0,
                 mode=None, num_output_reg=1, used_width=None,
                 bias_preloaded=False):
        self.config = OutputConfig(input_width, output_width, shift_right,
                                   mode, num_output_reg, used_width,
                                   bias_preloaded)

        logger.debug("OutputLogic: %d of %d bits >> %d (%s) -> %d bits, "
                     "%d registers", self.config.used_width, input_width,
                     shift_right, self.config.rounding.name, output_width,
                     num_output_reg)

        super().__init__({
            "inp": In(signed(input_width)),
            "inp_vld": In(1),
            "inp_ovf": In(1),
            "result": Out(signed(output_width)),
            "result_vld": Out(1),
            "result_ovf": Out(1),
        })

    @property
    def latency(self):
        return self.config.latency

    def elaborate(self, platform):  # noqa: D102
        m = Module()
        cfg = self.config

        value = self.inp[:cfg.used_width].as_signed()
        value = hdl.shift_right(value, cfg.shift_right, cfg.rounding)
        (value, clip) = hdl.resize(value, cfg.output_width, cfg.mode)

        data = Signal(signed(cfg.output_width))
        vld = Signal()
        ovf = Signal()

        m.d.comb += [
            data.eq(value),
            vld.eq(self.inp_vld),
        ]
        if Mode.DETECT_OVERFLOW in cfg.mode:
            m.d.comb += ovf.eq(self.inp_vld & (self.inp_ovf | clip))
        else:
            m.d.comb += ovf.eq(C(0, 1))

        for i in range(cfg.num_output_reg):
            data_reg = Signal.like(data, name=f"data{i}")
            vld_reg = Signal(name=f"vld{i}")
            ovf_reg = Signal(name=f"ovf{i}")

            m.d.sync += [
                data_reg.eq(data),
                vld_reg.eq(vld),
                ovf_reg.eq(ovf),
            ]

            (data, vld, ovf) = (data_reg, vld_reg, ovf_reg)

        m.d.comb += [
            self.result.eq(data),
            self.result_vld.eq(vld),
            self.result_ovf.eq(ovf),
        ]

        return m
