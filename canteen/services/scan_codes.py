"""
Parsing of scanned barcode / QR payloads.

Scanners hand the API an opaque string. Three shapes are accepted:

  - a raw UUID ("3f2b...")                      -> an account or item id
  - a JSON envelope {"t": "student", "id": ...}  -> the id, checked against t
  - anything else                                -> an item barcode value

Rendering and decoding the images is the client's job; this module only
interprets the decoded text.
"""

import json
import uuid

from canteen.exceptions import InvalidInputError


def parse_scan_code(code: str, expected_kind: str | None = None) -> uuid.UUID | str:
    """
    Return the UUID a code refers to, or the stripped raw string when it is
    not a UUID (a barcode value).

    Raises:
        InvalidInputError: If the code is empty, or is an envelope for a
                           different kind than `expected_kind`.
    """
    raw = code.strip()
    if not raw:
        raise InvalidInputError("Empty scan code")

    if raw.startswith("{"):
        try:
            envelope = json.loads(raw)
        except ValueError:
            raise InvalidInputError("Unreadable scan code")
        if not isinstance(envelope, dict) or "id" not in envelope:
            raise InvalidInputError("Unreadable scan code")
        kind = envelope.get("t")
        if expected_kind and kind and kind != expected_kind:
            raise InvalidInputError(f"Code does not belong to a {expected_kind}")
        raw = str(envelope["id"]).strip()

    try:
        return uuid.UUID(raw)
    except ValueError:
        return raw
