
from __future__ import annotations

from .b64d import b64d
from .b64e import b64e
from .compare import constant_time_compare

__all__ = ["b64e", "b64d", "constant_time_compare"]
