from __future__ import annotations

import pytest

from invite_hub.core.referral_codes import (
    ALPHABET,
    generate_invitation_code,
    generate_member_referral_code,
    generate_referral_code,
)


def test_generate_referral_code_length_and_charset() -> None:
    code = generate_referral_code(8)
    assert len(code) == 8
    assert set(code).issubset(set(ALPHABET))


def test_generate_referral_code_rejects_non_positive_length() -> None:
    with pytest.raises(ValueError):
        generate_referral_code(0)


def test_generate_member_referral_code_uses_name_prefix() -> None:
    prefix, _, suffix = generate_member_referral_code("Anna-Lena Schmidt").partition("-")
    assert prefix == "ANNA"
    assert len(suffix) == 6
    assert set(suffix).issubset(set(ALPHABET))


def test_generate_member_referral_code_without_letters_has_no_prefix() -> None:
    code = generate_member_referral_code("42", length=5)
    assert len(code) == 5
    assert "-" not in code


def test_generate_invitation_code_prefixes_product_slug() -> None:
    prefix, _, suffix = generate_invitation_code("team-notes-pro").partition("-")
    assert prefix == "TEAMNOTE"
    assert len(suffix) == 8
    assert set(suffix).issubset(set(ALPHABET))
