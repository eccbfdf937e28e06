"""Numeric policy flags and configuration errors."""

import enum
from enum import auto


class ConfigError(ValueError):
    """A configuration which can never produce correct results.

    Raised when a component or model is constructed, never while it is
    running; a pipeline has no mid-stream recovery path.
    """


class ConfigWarning(UserWarning):
    """A legal configuration which wastes logic or has no effect."""


class Mode(enum.Flag):
    """Policy switches for resize, add/sub, shift and output stages.

    A mode is a set of flags; the empty set (``Mode(0)``) means wrap on
    overflow, round toward negative infinity (floor), and do not report
    overflow.

    Attributes
    ----------
    USE_RESET : Mode
        An asserted ``rst`` forces data, ``vld`` and ``ovf`` to zero.
    RESET_DONT_CARE : Mode
        An asserted ``rst`` clears ``vld`` and ``ovf`` but leaves data
        unconstrained. This only exists to relax downstream logic; data
        in a reset cycle must never be read as defined.
    DETECT_OVERFLOW : Mode
        Report values that do not fit the target width in ``ovf``.
    SATURATE : Mode
        Clamp out-of-range values to the target range instead of wrapping.
    ROUND_FLOOR : Mode
        Round right shifts toward negative infinity (plain truncation of
        two's complement bits). This is also the default.
    ROUND_NEAREST : Mode
        Round right shifts to nearest, ties toward positive infinity.
    ROUND_CEIL : Mode
        Round right shifts toward positive infinity.
    ROUND_TRUNCATE : Mode
        Round right shifts toward zero.
    ROUND_AWAY : Mode
        Round right shifts away from zero.
    """

    USE_RESET = auto()
    RESET_DONT_CARE = auto()
    DETECT_OVERFLOW = auto()
    SATURATE = auto()
    ROUND_FLOOR = auto()
    ROUND_NEAREST = auto()
    ROUND_CEIL = auto()
    ROUND_TRUNCATE = auto()
    ROUND_AWAY = auto()

    @classmethod
    def parse(cls, options):
        """Create a validated mode from option tokens.

        Parameters
        ----------
        options : Mode, str, iterable or None
            Either a :class:`Mode`, a string of token characters such as
            ``"ROS"``, or an iterable of tokens and/or flags. ``None`` and
            ``"-"`` are the empty mode.

        Returns
        -------
        Mode
            The combined flags.

        Raises
        ------
        ConfigError
            If a token is unknown or the flags conflict.
        """
        if options is None:
            mode = cls(0)
        elif isinstance(options, cls):
            mode = options
        else:
            mode = cls(0)
            for opt in options:
                if isinstance(opt, cls):
                    mode |= opt
                elif not isinstance(opt, str):
                    raise ConfigError(f"unknown mode option {opt!r}")
                elif opt in _TOKENS:
                    mode |= _TOKENS[opt]
                elif opt != "-" and not opt.isspace():
                    raise ConfigError(f"unknown mode option {opt!r}")

        return mode.check()

    def check(self):
        """Reject conflicting flag combinations.

        Returns
        -------
        Mode
            ``self``, unchanged.

        Raises
        ------
        ConfigError
            If more than one rounding flag is set, or both reset flags are.
        """
        rounding = [f for f in _ROUNDING if f in self]
        if len(rounding) > 1:
            names = ", ".join(f.name for f in rounding)
            raise ConfigError(f"conflicting rounding flags: {names}")

        if Mode.USE_RESET in self and Mode.RESET_DONT_CARE in self:
            raise ConfigError("USE_RESET and RESET_DONT_CARE are mutually "
                              "exclusive")

        return self

    @property
    def rounding(self):
        """The active rounding flag; ``ROUND_FLOOR`` when none is set."""
        for f in _ROUNDING:
            if f in self:
                return f
        return Mode.ROUND_FLOOR

    @property
    def has_rounding(self):
        """Whether any rounding flag was given explicitly."""
        return any(f in self for f in _ROUNDING)

    @property
    def tokens(self):
        """Token string equivalent of this mode, e.g. ``"OS"``."""
        return "".join(t for t, f in _TOKENS.items() if f in self)


_ROUNDING = (Mode.ROUND_FLOOR, Mode.ROUND_NEAREST, Mode.ROUND_CEIL,
             Mode.ROUND_TRUNCATE, Mode.ROUND_AWAY)

_TOKENS = {
    "R": Mode.USE_RESET,
    "X": Mode.RESET_DONT_CARE,
    "O": Mode.DETECT_OVERFLOW,
    "S": Mode.SATURATE,
    "D": Mode.ROUND_FLOOR,
    "N": Mode.ROUND_NEAREST,
    "U": Mode.ROUND_CEIL,
    "Z": Mode.ROUND_TRUNCATE,
    "I": Mode.ROUND_AWAY,
}


def as_mode(options):
    """Shorthand for :meth:`Mode.parse`."""
    return Mode.parse(options)
