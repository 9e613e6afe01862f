from __future__ import annotations

import base64
import uuid


def new_id() -> str:
    """Return a 22-character URL-safe Base64-encoded UUID4 without padding.

    Used for survey entities and BOM line items alike; ids are opaque and
    never parsed.
    """
    return base64.urlsafe_b64encode(uuid.uuid4().bytes)[:-2].decode("ascii")


def new_item_id(prefix: str = "item") -> str:
    """Return an equipment line-item id of the form ``<prefix>-<base64 uuid>``."""
    return f"{prefix}-{new_id()}"
