"""
Line adjustment and payload framing for the intake body.
"""

from typing import Iterable


def prepare_line(line: bytes, is_json: bool) -> bytes:
    """Adjust one encoded line so lines can be concatenated into a body.

    JSON lines lose their trailing newlines and gain a comma; plain-text
    lines are newline-terminated.
    """
    if is_json:
        return line.rstrip(b"\n") + b","
    if not line.endswith(b"\n"):
        return line + b"\n"
    return line


def build_payload(lines: Iterable[bytes], is_json: bool) -> bytes:
    """
    Serialize prepared lines into one request body.

    Args:
        lines: Lines already adjusted by prepare_line
        is_json: Wrap the body as a JSON array

    Returns:
        The body, or b"" when there is nothing to send
    """
    buf = b"".join(lines)
    if not buf:
        return b""
    if is_json:
        if buf.endswith(b","):
            buf = buf[:-1]
        buf = b"[" + buf + b"]"
    return buf
