"""
Splits a recipient set into bounded, ordered chunks for batch mints.
"""

import math
from typing import Any, Sequence

from .config import DEFAULT_CHUNK_SIZE, MAX_CHUNK_SIZE, MIN_CHUNK_SIZE
from .models import Chunk


def resolve_chunk_size(
    value: Any,
    default: int = DEFAULT_CHUNK_SIZE,
    minimum: int = MIN_CHUNK_SIZE,
    maximum: int = MAX_CHUNK_SIZE,
) -> int:
    """
    Turn operator input into an effective chunk size.

    Missing, non-numeric and zero values fall back to ``default``; the
    result is then clamped to ``[minimum, maximum]``.

    Args:
        value: Raw chunk size (int, float, numeric string or None)

    Returns:
        Effective chunk size
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = 0.0
    except OverflowError:
        number = math.inf if value > 0 else -math.inf

    if math.isnan(number) or number == 0:
        number = default

    if math.isinf(number):
        size = maximum if number > 0 else minimum
    else:
        # Fractions truncate toward zero
        size = int(number)

    return max(minimum, min(maximum, size))


def chunk(
    recipients: Sequence[str],
    size: Any,
    minimum: int = MIN_CHUNK_SIZE,
    maximum: int = MAX_CHUNK_SIZE,
) -> tuple[Chunk, ...]:
    """
    Split recipients into consecutive chunks of at most ``size``.

    ``size`` is passed through resolve_chunk_size first, within
    ``[minimum, maximum]``; a size already resolved against the same bounds
    is used unchanged. Concatenating the chunks reproduces ``recipients``
    exactly; no chunk is ever empty.

    Args:
        recipients: Ordered recipient addresses
        size: Requested chunk size
        minimum: Smallest allowed chunk size
        maximum: Largest allowed chunk size

    Returns:
        Tuple of chunks
    """
    effective = resolve_chunk_size(size, minimum=minimum, maximum=maximum)
    items = tuple(recipients)
    return tuple(
        items[start:start + effective]
        for start in range(0, len(items), effective)
    )
