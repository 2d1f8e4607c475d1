import pytest

from tekscope.channel import ScopeChannel, channel_name


@pytest.mark.parametrize(
    "channel, expected",
    [
        (ScopeChannel.CH1, "CH1"),
        (ScopeChannel.CH2, "CH2"),
        (ScopeChannel.CH3, "CH3"),
        (ScopeChannel.CH4, "CH4"),
    ],
)
def test_channel_name(channel, expected):
    assert channel_name(channel) == expected


def test_channel_values_match_instrument_numbering():
    assert [channel_name(number) for number in range(1, 5)] == ["CH1", "CH2", "CH3", "CH4"]


def test_channel_name_accepts_plain_int():
    assert channel_name(3) == "CH3"


@pytest.mark.parametrize("bad", [0, 5, -1, None, "x"])
def test_unknown_channel_falls_back_to_ch1(bad):
    assert channel_name(bad) == "CH1"


def test_str_uses_channel_name():
    assert str(ScopeChannel.CH4) == channel_name(ScopeChannel.CH4) == "CH4"