"""
Shared utility functions for ShiftSync.
"""

import math
from pathlib import Path
from typing import Any, Optional, Union

from platformdirs import user_data_dir

APP_NAME = "ShiftSync"


def get_data_path(relative_path: str) -> Path:
    """Get absolute path to writable data files (local store, logs)

    Resolves to the per-user data directory returned by
    ``platformdirs.user_data_dir`` so upgrades never touch runtime data.
    """
    base_path = Path(user_data_dir(APP_NAME))
    base_path.mkdir(parents=True, exist_ok=True)
    return base_path / relative_path


def to_int_optional(value: Union[str, int, None]) -> Optional[int]:
    """Convert string to int, return None if invalid"""
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def to_number(value: Any, default: float = 0) -> float:
    """Coerce a spreadsheet cell into a number.

    Booleans are not numbers here; numeric strings are. Anything else,
    including NaN and infinities, becomes ``default``.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else default
    if isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return default
        if not math.isfinite(number):
            return default
        return int(number) if number.is_integer() else number
    return default


def clean_endpoint_url(url: Optional[str]) -> Optional[str]:
    """Return a usable sync endpoint, or None when it is not configured.

    A spreadsheet editing link (``.../d/<id>/edit``) is what people paste by
    mistake instead of the deployed web app link; it is treated as missing.
    """
    if not url or not isinstance(url, str):
        return None
    clean = url.strip()
    if not clean:
        return None
    if '/edit' in clean or '/d/' in clean:
        return None
    if not clean.startswith(('http://', 'https://')):
        return None
    return clean
