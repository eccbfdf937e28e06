"""Signed accumulator: clear/accumulate/hold protocol and guard-bit sizing."""

import logging
from collections import namedtuple
from dataclasses import dataclass, field, replace

from amaranth import Module, Signal, signed
from amaranth.lib.wiring import In, Out, Component

from . import fixed
from .mode import ConfigError, Mode, as_mode


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccuState:
    """Everything an accumulator keeps between clock ticks.

    Attributes
    ----------
    value : int
        Accumulator register.
    pending : bool
        A clear arrived without a valid term; the next valid term restarts
        accumulation.
    vld : bool
        Registered valid flag of the last tick.
    ovf : bool
        Sticky overflow flag of the terms accumulated since the last
        restart.
    """

    value: int = 0
    pending: bool = False
    vld: bool = False
    ovf: bool = False


AccuResult = namedtuple("AccuResult", ["value", "vld", "ovf"])


@dataclass(frozen=True)
class AccuConfig:
    """Validated configuration and cycle model of a signed accumulator.

    Construction fails with :class:`~cplxarith.mode.ConfigError` whenever
    ``num_summand`` valid cycles could wrap the accumulator; see
    :func:`cplxarith.fixed.guard_bits`. Each valid cycle adds one addend:
    the term, plus the chain input when there is one. A nonzero ``bias``
    widens ``used_width`` further if the worst-case sum plus bias needs it.

    Parameters
    ----------
    acc_width : int
        Accumulator register width.
    term_width : int
        Width of each accumulated term (typically a product).
    num_summand : int
        Maximum number of valid cycles between restarts. ``0`` means
        unspecified.
    chain_width : int
        Width of the chain input; ``0`` disables it.
    bias : int
        Constant loaded together with the first term of each accumulation.
    mode : Mode, str, or None
        Only the reset flags are used.

    Attributes
    ----------
    addend_width : int
        Width of what a valid cycle adds: ``term_width`` alone, or
        ``max(term_width, chain_width) + 1`` with a chain input.
    guard_bits : int
        Headroom bits above ``addend_width``.
    used_width : int
        ``addend_width + guard_bits``, plus the bits ``bias`` needs on top
        of that. The register never needs more bits.
    """

    acc_width: int
    term_width: int
    num_summand: int = 0
    chain_width: int = 0
    bias: int = 0
    mode: Mode = None
    addend_width: int = field(init=False)
    guard_bits: int = field(init=False)
    used_width: int = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "mode", as_mode(self.mode))

        if self.chain_width < 0:
            raise ConfigError("chain width must not be negative, not "
                              f"{self.chain_width}")
        if self.chain_width > self.acc_width:
            raise ConfigError(f"chain input of {self.chain_width} bits is "
                              f"wider than the {self.acc_width}-bit "
                              "accumulator")
        if not fixed.fits(self.bias, self.acc_width):
            raise ConfigError(f"bias {self.bias} does not fit the "
                              f"{self.acc_width}-bit accumulator")

        if self.chain_width:
            addend_width = max(self.term_width, self.chain_width) + 1
        else:
            addend_width = self.term_width
        g = fixed.guard_bits(self.acc_width, addend_width, self.num_summand)
        object.__setattr__(self, "addend_width", addend_width)
        object.__setattr__(self, "guard_bits", g)
        object.__setattr__(self, "used_width",
                           self._bias_width(addend_width + g))

    def _bias_width(self, width):
        # Without a summand count every bit is already in use.
        if not self.bias or not self.num_summand:
            return width

        n = self.num_summand
        hi = n * fixed.signed_max(self.addend_width) + self.bias
        lo = n * fixed.signed_min(self.addend_width) + self.bias
        while not (fixed.fits(hi, width) and fixed.fits(lo, width)):
            width += 1

        if width > self.acc_width:
            raise ConfigError(f"bias {self.bias} on top of {self.num_summand} "
                              f"summands needs {width} bits, the accumulator "
                              f"has {self.acc_width}")
        return width

    def tick(self, state, *, clr, vld, term, chainin=0, ovf=False,
             rst=False):
        """Advance the accumulator by one clock tick.

        Parameters
        ----------
        state : AccuState
            State before the tick.
        clr : bool
            Restart accumulation with the next valid term.
        vld : bool
            ``term`` (and ``chainin``) are valid this tick.
        term : int
            Term to accumulate, ``term_width`` bits.
        chainin : int
            Partial sum of an upstream accumulator, ``chain_width`` bits.
        ovf : bool
            Overflow flag of ``term``.
        rst : bool
            Synchronous reset, see :class:`~cplxarith.mode.Mode`.

        Returns
        -------
        tuple of (AccuState, AccuResult)
            The new state and the registered outputs.
        """
        fixed.check_value(term, self.term_width, "term")
        if chainin:
            if not self.chain_width:
                raise ValueError("accumulator has no chain input")
            fixed.check_value(chainin, self.chain_width, "chain input")

        if vld:
            addend = term + chainin
            if clr or state.pending:
                state = AccuState(
                    value=fixed.wrap(self.bias + addend, self.acc_width),
                    pending=False, vld=True, ovf=bool(ovf))
            else:
                state = AccuState(
                    value=fixed.wrap(state.value + addend, self.acc_width),
                    pending=False, vld=True, ovf=state.ovf or bool(ovf))
        else:
            state = replace(state, pending=state.pending or bool(clr),
                            vld=False)

        if rst:
            if Mode.USE_RESET in self.mode:
                state = AccuState()
            elif Mode.RESET_DONT_CARE in self.mode:
                state = replace(state, pending=False, vld=False, ovf=False)

        return (state, AccuResult(state.value, state.vld, state.ovf))

    def run(self, clr, vld, terms, chainin=None):
        """Drive :meth:`tick` from the reset state over whole sequences.

        ``terms`` entries of invalid cycles may be ``None``.

        Returns
        -------
        list of AccuResult
            One result per tick.
        """
        if chainin is None:
            chainin = [0] * len(terms)

        state = AccuState()
        results = []
        for (c, v, t, ch) in zip(clr, vld, terms, chainin):
            (state, res) = self.tick(state, clr=c, vld=v,
                                     term=0 if t is None else t,
                                     chainin=0 if ch is None else ch)
            results.append(res)
        return results


class SignedAccu(Component):  # noqa: DOC602,DOC603
    r"""Signed accumulator with restart-on-clear and optional chaining.

    Per clock cycle, depending on ``clr`` and ``vld``:

    * ``clr & ~vld``: remember the clear; the register holds.
    * ``clr & vld``: restart, ``result = bias + term + chainin``.
    * ``~clr & vld``: ``result += term + chainin``, or restart if a clear
      is pending.
    * ``~clr & ~vld``: hold.

    * Latency: 1 clock cycle.
    * Throughput: one term per clock cycle.

    Parameters
    ----------
    acc_width : int
        Accumulator register width.
    term_width : int
        Width of ``term``.
    num_summand : int
        Maximum number of valid cycles between restarts. ``0`` means
        unspecified (all bits above the addend width are headroom).
    chain_width : int
        Width of ``chainin``; ``0`` removes the port.
    bias : int
        Constant loaded with the first term after a clear, typically
        :func:`~cplxarith.fixed.round_bias`.
    mode : Mode, str, or None
        Reset behaviour of ``rst``.

    Attributes
    ----------
    config : AccuConfig
        Validated configuration; also usable as a cycle model.
    clr : In(1)
        Restart accumulation.
    vld : In(1)
        Input term is valid.
    rst : In(1)
        Synchronous reset.
    ovf : In(1)
        Overflow flag of the input term.
    term : In(signed(term_width))
        Term to accumulate.
    chainin : In(signed(chain_width))
        Partial sum from an upstream accumulator. Only present when
        ``chain_width`` is non-zero.
    result : Out(signed(acc_width))
        Accumulator register.
    result_vld : Out(1)
        ``result`` was updated by a valid term in the last cycle.
    result_ovf : Out(1)
        Sticky overflow of the accumulated terms.
    chainout : Out(signed(used_width))
        ``result`` without its unused sign bits, for a downstream
        accumulator's ``chainin``.

    Notes
    -----
    The register wraps at ``acc_width`` bits. Sizing the guard bits from
    ``num_summand`` at construction time is what rules out wrapping; there
    is no run-time overflow detection on the register itself.
    """

    def __init__(self, acc_width, term_width, *, num_summand=0,
                 chain_width=0, bias=0, mode=None):
        self.config = AccuConfig(acc_width, term_width, num_summand,
                                 chain_width, bias, mode)

        logger.debug("SignedAccu: %d-bit addends, %d guard bits, %d of %d "
                     "accumulator bits used", self.config.addend_width,
                     self.config.guard_bits, self.config.used_width,
                     acc_width)

        ports = {
            "clr": In(1),
            "vld": In(1),
            "rst": In(1),
            "ovf": In(1),
            "term": In(signed(term_width)),
            "result": Out(signed(acc_width)),
            "result_vld": Out(1),
            "result_ovf": Out(1),
            "chainout": Out(signed(self.config.used_width)),
        }
        if chain_width:
            ports["chainin"] = In(signed(chain_width))

        super().__init__(ports)

    @property
    def latency(self):
        return 1

    def elaborate(self, platform):  # noqa: D102
        m = Module()
        cfg = self.config
        pending = Signal()

        if cfg.chain_width:
            addend = self.term + self.chainin
        else:
            addend = self.term

        m.d.sync += self.result_vld.eq(self.vld)

        with m.If(self.vld):
            with m.If(self.clr | pending):
                m.d.sync += [
                    self.result.eq(addend + cfg.bias),
                    self.result_ovf.eq(self.ovf),
                    pending.eq(0),
                ]
            with m.Else():
                m.d.sync += [
                    self.result.eq(self.result + addend),
                    self.result_ovf.eq(self.result_ovf | self.ovf),
                ]
        with m.Elif(self.clr):
            m.d.sync += pending.eq(1)

        if Mode.USE_RESET in cfg.mode:
            with m.If(self.rst):
                m.d.sync += [
                    self.result.eq(0),
                    self.result_vld.eq(0),
                    self.result_ovf.eq(0),
                    pending.eq(0),
                ]
        elif Mode.RESET_DONT_CARE in cfg.mode:
            with m.If(self.rst):
                m.d.sync += [
                    self.result_vld.eq(0),
                    self.result_ovf.eq(0),
                    pending.eq(0),
                ]

        m.d.comb += self.chainout.eq(self.result)

        return m


def connect_chain(m, producer, consumer):
    """Feed ``producer``'s partial sum into ``consumer``'s chain input.

    Parameters
    ----------
    m : Module
        Module to add the connection to.
    producer : SignedAccu
        Upstream accumulator.
    consumer : SignedAccu
        Downstream accumulator.

    Raises
    ------
    ConfigError
        If ``consumer`` has no chain input, or its chain input is narrower
        than the bits ``producer`` can populate.
    """
    need = producer.config.used_width
    have = consumer.config.chain_width

    if not have:
        raise ConfigError("downstream accumulator has no chain input")
    if have < need:
        raise ConfigError(f"chain input of {have} bits cannot carry the "
                          f"{need}-bit partial sum of the upstream "
                          "accumulator")

    m.d.comb += consumer.chainin.eq(producer.chainout)
