"""Tests for phone/email/name normalization helpers."""

import pytest

from backoffice.utils.normalization import (
    first_word,
    format_phone,
    normalize_email,
    normalize_name,
    normalize_phone,
    normalize_search_text,
)


@pytest.mark.parametrize("raw", [
    "+7 (926) 123-45-67",
    "8 926 123 45 67",
    "89261234567",
    "79261234567",
    "+7-926-123-45-67",
])
def test_russian_formats_normalize_to_same_value(raw):
    assert normalize_phone(raw) == "+79261234567"


@pytest.mark.parametrize("raw", [
    "+7 (926) 123-45-67",
    "8 926 123 45 67",
    "9261234567",
    "+44 20 7946 0958",
    "12",
])
def test_normalize_phone_is_idempotent(raw):
    once = normalize_phone(raw)
    assert normalize_phone(once) == once


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "+-()"])
def test_normalize_phone_without_digits_is_none(raw):
    assert normalize_phone(raw) is None


def test_ten_digit_numbers_are_not_given_a_country_code():
    assert normalize_phone("926 123 45 67") == "+9261234567"


def test_leading_eight_only_rewritten_for_eleven_digits():
    assert normalize_phone("8123") == "+8123"
    assert normalize_phone("812345678901") == "+812345678901"


def test_format_phone_russian_number():
    assert format_phone("89261234567") == "+7 (926) 123-45-67"
    assert format_phone("+7 926 123 45 67") == "+7 (926) 123-45-67"


def test_format_phone_other_numbers_fall_back():
    assert format_phone("+44 20 7946 0958") == "+442079460958"
    assert format_phone("n/a ") == "n/a"
    assert format_phone(None) == ""


def test_normalize_email():
    assert normalize_email("  Anna@Example.COM ") == "anna@example.com"
    assert normalize_email("   ") is None
    assert normalize_email(None) is None


def test_normalize_name_and_first_word():
    assert normalize_name("  Иванов   Петр ") == "Иванов Петр"
    assert normalize_name("  ") is None
    assert first_word("Иванов Петр") == "Иванов"
    assert first_word(None) == ""


def test_search_text_casefolds_cyrillic():
    assert normalize_search_text("ИВАНОВА  Мария") == "иванова мария"
    assert normalize_search_text("Ёлкина") == "ёлкина"
    assert normalize_search_text("Е\u0308лкина") == normalize_search_text("Ёлкина")
    assert normalize_search_text("Алёна") != normalize_search_text("Алена")
    assert normalize_search_text("Майя") != normalize_search_text("Маия")
    assert normalize_search_text("   ") is None
