import pytest

from cplxarith.mode import ConfigError, Mode, as_mode


@pytest.mark.parametrize("options,expected", [
    (None, Mode(0)),
    ("", Mode(0)),
    ("-", Mode(0)),
    ("O", Mode.DETECT_OVERFLOW),
    ("RS", Mode.USE_RESET | Mode.SATURATE),
    ("X-O-S-N", Mode.RESET_DONT_CARE | Mode.DETECT_OVERFLOW |
     Mode.SATURATE | Mode.ROUND_NEAREST),
    ("O S", Mode.DETECT_OVERFLOW | Mode.SATURATE),
    (["R", Mode.ROUND_AWAY], Mode.USE_RESET | Mode.ROUND_AWAY),
    (Mode.SATURATE, Mode.SATURATE),
], ids=["none", "empty", "dash", "o", "rs", "dashes", "space", "mixed",
        "flag"])
def test_parse(options, expected):
    assert Mode.parse(options) == expected
    assert as_mode(options) == expected


@pytest.mark.parametrize("options", ["Q", "ro", [1], ["RO"]])
def test_unknown_option(options):
    with pytest.raises(ConfigError):
        Mode.parse(options)


@pytest.mark.parametrize("options", ["NU", "DZ", "NI",
                                     [Mode.ROUND_FLOOR, Mode.ROUND_CEIL]])
def test_conflicting_rounding(options):
    with pytest.raises(ConfigError, match="rounding"):
        Mode.parse(options)


def test_conflicting_reset():
    with pytest.raises(ConfigError, match="exclusive"):
        Mode.parse("RX")

    with pytest.raises(ConfigError):
        (Mode.USE_RESET | Mode.RESET_DONT_CARE).check()


def test_rounding_default():
    assert Mode(0).rounding is Mode.ROUND_FLOOR
    assert not Mode(0).has_rounding

    assert Mode.parse("D").rounding is Mode.ROUND_FLOOR
    assert Mode.parse("D").has_rounding

    for (tok, flag) in (("N", Mode.ROUND_NEAREST), ("U", Mode.ROUND_CEIL),
                        ("Z", Mode.ROUND_TRUNCATE), ("I", Mode.ROUND_AWAY)):
        mode = Mode.parse("OS" + tok)
        assert mode.rounding is flag
        assert mode.has_rounding


def test_tokens():
    assert Mode(0).tokens == ""
    assert Mode.parse("SOR").tokens == "ROS"
    assert Mode.parse(Mode.parse("XON").tokens) == Mode.parse("XON")


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)
