"""Tests for the password generator."""

import string

import pytest

from passvault.core.errors import InvalidConfiguration
from passvault.core.generator import (AMBIGUOUS, LOWERCASE, NUMBERS, SYMBOLS, UPPERCASE,
                                      GeneratorOptions, generate_password)

ALL_CHARS = set(LOWERCASE + UPPERCASE + NUMBERS + SYMBOLS)


class TestGeneratePassword:
    def test_default_length(self):
        assert len(generate_password()) == 16

    @pytest.mark.parametrize("length", [1, 4, 8, 50, 200])
    def test_exact_length(self, length):
        assert len(generate_password(length)) == length

    def test_characters_come_from_pool(self):
        for _ in range(50):
            assert set(generate_password(32)) <= ALL_CHARS

    def test_exclude_ambiguous(self):
        options = GeneratorOptions(exclude_ambiguous=True)
        for _ in range(100):
            pwd = generate_password(50, options)
            assert not set(pwd) & set(AMBIGUOUS)

    def test_numbers_only(self):
        options = GeneratorOptions(include_uppercase=False, include_lowercase=False,
                                   include_symbols=False)
        assert set(generate_password(30, options)) <= set(string.digits)

    def test_lowercase_can_be_disabled(self):
        options = GeneratorOptions(include_lowercase=False)
        for _ in range(20):
            assert not set(generate_password(30, options)) & set(LOWERCASE)

    def test_disabled_classes_never_appear(self):
        options = GeneratorOptions(include_symbols=False, include_numbers=False)
        for _ in range(20):
            pwd = generate_password(40, options)
            assert not set(pwd) & set(SYMBOLS + NUMBERS)

    def test_every_class_present_with_high_probability(self):
        trials = 300
        complete = 0
        for _ in range(trials):
            pwd = generate_password(16)
            if (set(pwd) & set(LOWERCASE) and set(pwd) & set(UPPERCASE)
                    and set(pwd) & set(NUMBERS) and set(pwd) & set(SYMBOLS)):
                complete += 1
        assert complete / trials >= 0.98

    def test_short_length_still_exact_after_repair(self):
        for _ in range(50):
            assert len(generate_password(2)) == 2


class TestInvalidConfiguration:
    @pytest.mark.parametrize("length", [0, -1, -16])
    def test_non_positive_length(self, length):
        with pytest.raises(InvalidConfiguration):
            generate_password(length)

    @pytest.mark.parametrize("length", [True, 8.0, "8", None])
    def test_non_integer_length(self, length):
        with pytest.raises(InvalidConfiguration):
            generate_password(length)

    def test_all_classes_disabled(self):
        options = GeneratorOptions(include_uppercase=False, include_lowercase=False,
                                   include_numbers=False, include_symbols=False)
        with pytest.raises(InvalidConfiguration):
            generate_password(16, options)
