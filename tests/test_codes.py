"""Tests for session code generation."""

import random

from biteswipe.domain.codes import (
    CODE_ALPHABET,
    CODE_LENGTH,
    SessionCodeGenerator,
    code_from_key,
)


def test_generated_codes_are_six_uppercase_alphanumerics() -> None:
    generator = SessionCodeGenerator(rng=random.Random(3))

    codes = [generator.generate() for _ in range(200)]

    for code in codes:
        assert len(code) == CODE_LENGTH
        assert set(code) <= set(CODE_ALPHABET)
        assert SessionCodeGenerator.is_valid(code)


def test_seeded_generators_repeat() -> None:
    first = SessionCodeGenerator(rng=random.Random(11)).generate()
    second = SessionCodeGenerator(rng=random.Random(11)).generate()

    assert first == second


def test_is_valid_rejects_malformed_codes() -> None:
    assert SessionCodeGenerator.is_valid("ABC123")
    assert not SessionCodeGenerator.is_valid("abc123")
    assert not SessionCodeGenerator.is_valid("ABC12")
    assert not SessionCodeGenerator.is_valid("ABC1234")
    assert not SessionCodeGenerator.is_valid("ABC-12")
    assert not SessionCodeGenerator.is_valid("")


def test_lookup_accepts_codes_derived_from_push_keys() -> None:
    assert SessionCodeGenerator.is_lookup_code("ABC123")
    assert SessionCodeGenerator.is_lookup_code(code_from_key("-N_ab9xyz"))
    assert not SessionCodeGenerator.is_lookup_code("ABC12")
    assert not SessionCodeGenerator.is_lookup_code("ABC 12")


def test_normalize_trims_and_uppercases() -> None:
    assert SessionCodeGenerator.normalize("  ab12cd ") == "AB12CD"


def test_code_from_key_uses_key_prefix() -> None:
    assert code_from_key("-Nabcdef123") == "-NABCD"
