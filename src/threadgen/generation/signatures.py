"""Signature block correction.

Drafted bodies sometimes sign off as the wrong participant. ``correct_signature``
rewrites the closing so it matches the actual sender. It is a text heuristic:
it looks for known signature blocks, participant names in the tail of the
body and common sign-off phrases, and does not parse the email.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.threadgen.domain.models import Character

SIGN_OFF_PHRASES = (
    "Best,",
    "Best regards,",
    "Regards,",
    "Thanks,",
    "Thank you,",
    "Sincerely,",
    "Cheers,",
    "Kind regards,",
    "Warm regards,",
    "All the best,",
    "Best wishes,",
    "Thanks!",
    "Thank you!",
    "Respectfully,",
    "Cordially,",
)

TAIL_FRACTION = 0.7
SHORT_BODY_LENGTH = 100


def _tail_start(body: str) -> int:
    return int(len(body) * TAIL_FRACTION) if len(body) > SHORT_BODY_LENGTH else 0


def _find_ci(text: str, needle: str, start: int = 0) -> int:
    return text.lower().find(needle.lower(), start)


def _find_last_sign_off(text: str) -> int:
    lowered = text.lower()
    return max((lowered.rfind(p.lower()) for p in SIGN_OFF_PHRASES), default=-1)


def _find_first_sign_off(text: str, start: int) -> int:
    hits = [i for i in (_find_ci(text, p, start) for p in SIGN_OFF_PHRASES) if i >= 0]
    return min(hits) if hits else -1


def _replace_with_signature(body: str, cut: int, signature: str) -> str:
    return body[:cut].rstrip() + "\n\n" + signature


def _replace_wrong_signature(
    body: str,
    sender: Character,
    participants: Sequence[Character],
    signature: str,
) -> str | None:
    for other in participants:
        if other is sender or other.id == sender.id:
            continue
        wrong = other.signature_block.strip()
        if not wrong:
            continue
        index = _find_ci(body, wrong)
        if index >= 0:
            return body[:index] + signature + body[index + len(wrong):]
    return None


def _replace_wrong_name(
    body: str,
    sender: Character,
    participants: Sequence[Character],
    signature: str,
) -> str | None:
    tail_start = _tail_start(body)
    tail = body[tail_start:]
    for other in participants:
        if other.id == sender.id or not other.full_name:
            continue
        name_index = _find_ci(tail, other.full_name)
        if name_index < 0:
            continue
        absolute = tail_start + name_index
        sign_off = _find_last_sign_off(body[:absolute])
        return _replace_with_signature(body, sign_off if sign_off >= 0 else absolute, signature)
    return None


def _append_missing_signature(body: str, sender: Character, signature: str) -> str | None:
    tail_start = _tail_start(body)
    tail = body[tail_start:]
    for name in (sender.full_name, sender.first_name):
        if name and _find_ci(tail, name) >= 0:
            return None
    sign_off = _find_first_sign_off(body, tail_start)
    if sign_off >= 0:
        return _replace_with_signature(body, sign_off, signature)
    return body.rstrip() + "\n\n" + signature


def correct_signature(
    body: str,
    sender: Character,
    participants: Sequence[Character],
) -> str:
    """Make the closing signature of ``body`` match ``sender``.

    In order:

    1. A body already containing the sender's signature is returned as is.
    2. Another participant's signature block is replaced in place.
    3. Another participant's full name in the tail (the last 30% of bodies
       longer than 100 characters) is cut at the last sign-off before it, or
       at the name, and the sender's signature appended.
    4. If the sender's name is absent from the tail, the body is cut at the
       first sign-off in the tail, or left whole, and the signature appended.

    Bodies of senders without a signature block are returned unchanged.
    """
    if not body or not body.strip() or not sender.signature_block.strip():
        return body

    signature = sender.signature_block.strip()
    if _find_ci(body, signature) >= 0:
        return body

    corrected = _replace_wrong_signature(body, sender, participants, signature)
    if corrected is None:
        corrected = _replace_wrong_name(body, sender, participants, signature)
    if corrected is None:
        corrected = _append_missing_signature(body, sender, signature)
    return body if corrected is None else corrected
