"""Helpers for the fixed-size parameter identifiers used by the parameter messages."""

PARAM_ID_LENGTH = 16


def decode_param_id(data: bytes) -> str:
    """Decode a 16-byte, NUL-padded parameter identifier into a string.

    Raises ValueError if the data is not exactly 16 bytes long or is not valid UTF-8.
    """
    raw = bytes(data)
    if len(raw) != PARAM_ID_LENGTH:
        raise ValueError(
            f"a parameter id is {PARAM_ID_LENGTH} bytes long, got {len(raw)}"
        )
    return raw.decode("utf-8").rstrip("\0")


def encode_param_id(name: str) -> bytes:
    """Encode a parameter name into a 16-byte, NUL-padded identifier.

    Raises ValueError if the encoded name does not fit into 16 bytes.
    """
    raw = name.encode("utf-8")
    if len(raw) > PARAM_ID_LENGTH:
        raise ValueError(
            f"parameter name {name!r} is longer than {PARAM_ID_LENGTH} bytes"
        )
    return raw.ljust(PARAM_ID_LENGTH, b"\0")