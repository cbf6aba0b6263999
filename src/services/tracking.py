"""Public tracking identifiers for complaints.

A tracking identifier has the form ``ACMS-2026-4821``: a fixed prefix,
the four-digit year at generation time, and a four-digit number drawn
uniformly from ``[1000, 9999]``.  It is the only key an anonymous
submitter holds, so status lookup by tracking id needs no
authentication.

The identifier space is small (9000 per year).  Uniqueness is not a
property of :func:`generate_tracking_id`; the complaint store rejects
duplicates and the complaint service retries with a fresh draw.
"""

from __future__ import annotations

import math
import random
import re
from datetime import UTC, datetime
from functools import lru_cache
from typing import Final

DEFAULT_PREFIX: Final[str] = "ACMS"
SUFFIX_MIN: Final[int] = 1000
SUFFIX_MAX: Final[int] = 9999
SUFFIX_SPACE: Final[int] = SUFFIX_MAX - SUFFIX_MIN + 1

_system_rng: Final[random.SystemRandom] = random.SystemRandom()


def generate_tracking_id(
    *,
    prefix: str = DEFAULT_PREFIX,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> str:
    """Return a new tracking identifier such as ``ACMS-2026-4821``.

    Parameters
    ----------
    prefix:
        Literal prefix; ``ACMS`` unless configured otherwise.
    now:
        Clock reading to take the year from.  Defaults to the current
        UTC time.
    rng:
        Random source.  Defaults to a ``SystemRandom`` instance so that
        identifiers are not predictable from earlier ones.
    """
    year = (now or datetime.now(UTC)).year
    suffix = SUFFIX_MIN + (rng or _system_rng).randrange(SUFFIX_SPACE)
    return f"{prefix}-{year:04d}-{suffix}"


@lru_cache(maxsize=8)
def _pattern_for(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"{re.escape(prefix)}-[0-9]{{4}}-[0-9]{{4}}")


def is_well_formed(tracking_id: str, *, prefix: str = DEFAULT_PREFIX) -> bool:
    """Return ``True`` if *tracking_id* has the exact ``PREFIX-YYYY-NNNN`` shape.

    The check is case-sensitive, matching how lookups are performed, and
    accepts ASCII digits only.
    """
    return _pattern_for(prefix).fullmatch(tracking_id) is not None


def collision_probability(count: int) -> float:
    """Probability that *count* identifiers issued in one year share a suffix.

    Birthday bound over the 9000-value suffix space; roughly even odds
    after about a hundred submissions in a single year.
    """
    if count <= 1:
        return 0.0
    if count > SUFFIX_SPACE:
        return 1.0
    log_unique = sum(math.log1p(-i / SUFFIX_SPACE) for i in range(1, count))
    return 1.0 - math.exp(log_unique)
