"""Tests for frame building and parsing."""

import pytest

from midea_bridge_lib.protocol import (
    FRAME_ERROR,
    FRAME_REQUEST,
    FRAME_RESPONSE,
    FRAME_STATUS,
    REQUESTS,
    CommandDefinition,
    FrameCodec,
    SequenceCounter,
    build_payload,
    checksum,
    decode_frame,
    encode_frame,
    encode_push_frame,
    format_buffer,
    parse_boolean,
    parse_number,
    parse_temperature,
    round_half_up,
    twos_complement_checksum,
)


def test_encode_target_temperature_rounds_half_up():
    """24.6 becomes 25 and the checksum is the byte sum of everything before it."""
    definition = CommandDefinition(0x13, lambda p: [round_half_up(p["value"])])
    encoded = encode_frame(definition, {"value": 24.6}, sequence=7)
    assert encoded.sequence == 7
    assert encoded.buffer[:6] == bytes([0xAA, 0x55, 7, 0x13, 0x01, 25])
    assert encoded.buffer[6] == sum(encoded.buffer[:6]) & 0xFF == 51


def test_round_half_up_is_not_bankers_rounding():
    assert round_half_up(24.5) == 25
    assert round_half_up(23.5) == 24
    assert round_half_up(24.4) == 24


def test_decode_recovers_command_and_payload():
    encoded = encode_frame(CommandDefinition(0x16, [0x03, 0x10]), sequence=42)
    frame = decode_frame(encoded.buffer)
    assert frame.error is None
    assert frame.command == 0x16
    assert frame.payload == b"\x03\x10"
    assert frame.sequence == 42
    assert frame.type == FRAME_REQUEST
    assert frame.frame_length == len(encoded.buffer) == 8


def test_flipping_any_payload_byte_breaks_checksum():
    """Every single-byte corruption is detected and the whole frame length is still known."""
    encoded = encode_frame(CommandDefinition(0x30, [1, 2, 3, 4]), sequence=3).buffer
    for index in range(5, 9):
        corrupted = bytearray(encoded)
        corrupted[index] ^= 0x01
        frame = decode_frame(bytes(corrupted))
        assert frame.error == "Checksum mismatch"
        assert frame.frame_length == len(encoded)
        assert frame.sequence == 3


def test_short_buffer_needs_more_data():
    encoded = encode_frame(CommandDefinition(0x30, [1, 2, 3]), sequence=1).buffer
    assert decode_frame(b"") is None
    assert decode_frame(b"\xAA") is None
    assert decode_frame(encoded[:4]) is None
    assert decode_frame(encoded[:-1]) is None


def test_bad_start_byte_consumes_one_byte():
    frame = decode_frame(b"\x00\xAA\x55")
    assert frame.frame_length == 1
    assert frame.error == "Invalid frame header"


def test_response_flag_and_error_command():
    response = decode_frame(encode_frame(CommandDefinition(0x81, [1]), sequence=5).buffer)
    assert response.type == FRAME_RESPONSE
    error = decode_frame(encode_frame(CommandDefinition(0xFF, [0x05]), sequence=5).buffer)
    assert error.type == FRAME_ERROR
    assert error.payload == b"\x05"


def test_push_frame_layout_and_checksum():
    """Push frames: declared length + 1 bytes, two's complement checksum over the interior."""
    raw = encode_push_frame(0xAC, b"\x01\x02\x03")
    assert raw[0] == 0xAA
    assert raw[1] == 6
    assert len(raw) == raw[1] + 1
    assert raw[-1] == twos_complement_checksum(raw[1:-1])
    assert (sum(raw[1:]) & 0xFF) == 0

    frame = decode_frame(raw)
    assert frame.type == FRAME_STATUS
    assert frame.is_push
    assert frame.sequence is None
    assert frame.command == 0xAC
    assert frame.payload == b"\xAC\x01\x02\x03"


def test_push_frame_bad_checksum():
    raw = bytearray(encode_push_frame(0xAC, b"\x01\x02\x03"))
    raw[3] ^= 0xFF
    frame = decode_frame(bytes(raw))
    assert frame.error == "Checksum mismatch"
    assert frame.frame_length == len(raw)


def test_push_frame_with_tiny_length_is_a_header_error():
    frame = decode_frame(b"\xAA\x02\xAC\x00")
    assert frame.frame_length == 1
    assert frame.error is not None


def test_push_checksum_is_pluggable():
    raw = encode_push_frame(0xAC, b"\x10", push_checksum=checksum)
    assert decode_frame(raw, push_checksum=checksum).error is None
    assert decode_frame(raw).error == "Checksum mismatch"


def test_sequence_counter_skips_zero():
    counter = SequenceCounter(start=254)
    assert counter.next() == 255
    assert counter.next() == 1
    assert counter.next() == 2


def test_codec_owns_its_sequence():
    first, second = FrameCodec(), FrameCodec()
    assert first.encode(CommandDefinition(0x41)).sequence == 1
    assert first.encode(CommandDefinition(0x41)).sequence == 2
    assert second.encode(CommandDefinition(0x41)).sequence == 1


def test_invalid_sequence_rejected():
    with pytest.raises(ValueError):
        encode_frame(CommandDefinition(0x41), sequence=0)


def test_builder_results_are_masked_to_bytes():
    assert build_payload(CommandDefinition(0x12, lambda p: [0x1FF, -1])) == b"\xFF\xFF"


def test_oversized_payload_rejected():
    with pytest.raises(ValueError):
        build_payload(CommandDefinition(0x30, [0] * 256))


def test_format_buffer_truncates():
    assert format_buffer(b"") == "<empty>"
    assert format_buffer(b"\xAA\x55") == "aa 55"
    assert format_buffer(bytes(10), max_length=4) == "00 00 00 00 …(10 bytes total)"


def test_response_parsers():
    assert parse_boolean(b"\x01") is True
    assert parse_boolean(b"\x02") is False
    assert parse_boolean(b"") is False
    assert parse_number(b"\xFE") == -2
    assert parse_number(b"") == 0
    assert parse_temperature(b"\x31") == 24.5
    assert parse_temperature(b"") is None


def test_request_catalog():
    """Read-only sensors have no set command; set payloads follow each datapoint's encoding."""
    assert not REQUESTS["indoor_temperature"].writable
    assert not REQUESTS["outdoor_temperature"].writable
    assert REQUESTS["power"].query.command == 0x81
    assert build_payload(REQUESTS["sleep_mode"].query) == b"\x0A"

    assert build_payload(REQUESTS["power"].set, {"value": True}) == b"\x01"
    assert build_payload(REQUESTS["eco_mode"].set, {"value": False}) == b"\x00"
    assert build_payload(REQUESTS["mode"].set, {"value": 0x12}) == b"\x02"
    assert build_payload(REQUESTS["target_temperature"].set, {"value": 22.5}) == b"\x17"
