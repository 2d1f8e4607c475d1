import math

import pytest

from tekscope.strutil import hex_dump, parse_double, parse_int, split, trim, trim_right


def test_trim_right_removes_crlf_and_spaces():
    assert trim_right("  1.0E-3 \r\n") == "  1.0E-3"


def test_trim_both_sides():
    assert trim("\t RUN \r\n") == "RUN"


def test_trim_all_whitespace_is_empty():
    assert trim(" \r\n\t") == ""


def test_trim_keeps_inner_whitespace():
    assert trim(" a b ") == "a b"


def test_split_basic():
    assert split("a;b;c", ";") == ["a", "b", "c"]


def test_split_keeps_inner_empty_fields():
    assert split("a;;b", ";") == ["a", "", "b"]


def test_split_drops_trailing_empty_field():
    assert split("a;b;", ";") == ["a", "b"]


def test_split_empty_string():
    assert split("", ";") == []


def test_split_join_round_trip():
    text = "1;8;BIN;RI;MSB"
    assert ";".join(split(text, ";")) == text


def test_hex_dump_pinned():
    assert hex_dump(b"\x0a\xff") == "0A FF "


def test_hex_dump_round_trip():
    data = bytes(range(40))
    assert bytes.fromhex(hex_dump(data)) == data


def test_hex_dump_truncates():
    data = bytes(range(100))
    out = hex_dump(data, max_bytes=10)
    assert out.endswith("...")
    assert bytes.fromhex(out[:-3]) == data[:10]


def test_hex_dump_exact_length_not_truncated():
    data = bytes(range(64))
    assert not hex_dump(data).endswith("...")
    assert len(hex_dump(data)) == 3 * 64


def test_parse_int_prefix():
    assert parse_int("42abc") == 42


def test_parse_int_signed_with_leading_space():
    assert parse_int("  -7") == -7


@pytest.mark.parametrize("bad", ["", "abc", "  ", "-"])
def test_parse_int_rejects(bad):
    with pytest.raises(ValueError):
        parse_int(bad)


def test_parse_int_out_of_range():
    with pytest.raises(ValueError):
        parse_int("99999999999")


def test_parse_double_scientific():
    assert parse_double("1.5E-3 V") == pytest.approx(1.5e-3)


def test_parse_double_incomplete_exponent_uses_mantissa():
    assert parse_double("2e") == 2.0


def test_parse_double_inf_literal():
    assert parse_double("inf") == math.inf
    assert parse_double("-inf") == -math.inf


@pytest.mark.parametrize("bad", ["", "x1", "."])
def test_parse_double_rejects(bad):
    with pytest.raises(ValueError):
        parse_double(bad)


def test_parse_double_overflow():
    with pytest.raises(ValueError):
        parse_double("1e999")