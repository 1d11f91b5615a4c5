from __future__ import annotations

import re
import secrets

ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
NAME_PREFIX_RE = re.compile(r"[^A-Z]")
NAME_PREFIX_LENGTH = 4
SLUG_PREFIX_RE = re.compile(r"[^A-Z0-9]")
SLUG_PREFIX_LENGTH = 8


def generate_referral_code(length: int = 6) -> str:
    """Generates a short uppercase referral code with low typo ambiguity."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def generate_member_referral_code(member_name: str | None, length: int = 6) -> str:
    """Prefixes the random part with up to four letters of the member's name, e.g. ``ANNA-7KQ2XZ``."""
    prefix = NAME_PREFIX_RE.sub("", (member_name or "").upper())[:NAME_PREFIX_LENGTH]
    code = generate_referral_code(length)
    return f"{prefix}-{code}" if prefix else code


def generate_invitation_code(product_slug: str, length: int = 8) -> str:
    """Product-scoped invitation code, e.g. ``NOTES-7KQ2XZ4M``."""
    prefix = SLUG_PREFIX_RE.sub("", product_slug.upper())[:SLUG_PREFIX_LENGTH]
    code = generate_referral_code(length)
    return f"{prefix}-{code}" if prefix else code
