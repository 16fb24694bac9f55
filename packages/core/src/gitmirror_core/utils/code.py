# Bytes that count as text besides printable ASCII.
_TEXT_CONTROL_BYTES = {0x09, 0x0A, 0x0D}

# Above this share of non-printable bytes, content is treated as binary.
_BINARY_THRESHOLD = 0.3


def is_binary(data: bytes) -> bool:
    """Return True if data looks like binary content rather than text.

    Any NUL byte marks the data binary; otherwise it is binary when more than
    30% of its bytes fall outside printable ASCII. UTF-8 multi-byte sequences
    count as non-printable, so files that are mostly non-Latin text can be
    classified as binary.
    """
    if not data:
        return False
    if b"\x00" in data:
        return True
    non_printable = sum(1 for b in data if not (0x20 <= b <= 0x7E or b in _TEXT_CONTROL_BYTES))
    return non_printable / len(data) > _BINARY_THRESHOLD
