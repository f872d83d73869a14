"""
expiry.py — decides whether a file has outlived the configured expiry window.

All values are seconds; ``last_modified`` and ``now`` are epoch timestamps.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Verdict:
    expired: bool
    remaining: Optional[float] = None   # None: never expires


EXPIRED = Verdict(expired=True)
NEVER   = Verdict(expired=False)


def evaluate(last_modified: float, now: float, expiry: float) -> Verdict:
    if expiry <= 0:
        # expiry disabled
        return NEVER

    elapsed = now - last_modified
    if elapsed >= expiry:
        return EXPIRED
    return Verdict(expired=False, remaining=expiry - elapsed)


def expires_at(last_modified: float, expiry: float) -> Optional[float]:
    if expiry <= 0:
        return None
    return last_modified + expiry
