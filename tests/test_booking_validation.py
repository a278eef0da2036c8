"""Unit tests for booking input validation."""
import pytest
from datetime import date

from domain.errors import InputInvalidError
from services.booking_validation import (
    capitalize_words,
    normalize_phone,
    normalize_time,
    parse_booking_date,
    parse_booking_time,
    phones_match,
    sanitize_name,
    validate_birth_date,
)


@pytest.mark.unit
class TestPhoneNormalization:
    """Test Brazilian phone number normalization."""

    @pytest.mark.parametrize("phone,expected", [
        ("5511987654321", "5511987654321"),
        ("+55 (11) 98765-4321", "5511987654321"),
        ("551133334444", "551133334444"),
        ("(11) 98765-4321", "5511987654321"),
        ("11 3333-4444", "551133334444"),
    ])
    def test_valid_numbers(self, phone, expected):
        """Test numbers with and without country code."""
        assert normalize_phone(phone) == expected

    def test_area_code_55_gets_country_code(self):
        """Test an 11-digit number whose area code is 55 still gets the country code."""
        assert normalize_phone("55987654321") == "5555987654321"

    @pytest.mark.parametrize("phone", ["987654321", "12345", "441234567890", "55119876543210"])
    def test_invalid_lengths(self, phone):
        """Test numbers of any other length are rejected."""
        with pytest.raises(InputInvalidError, match="area code"):
            normalize_phone(phone)

    def test_empty_phone(self):
        """Test a missing phone is rejected."""
        with pytest.raises(InputInvalidError, match="required"):
            normalize_phone("")

    def test_phones_match_across_formats(self):
        """Test formatting differences do not matter when comparing phones."""
        assert phones_match("(11) 98765-4321", "+55 11 98765 4321")
        assert not phones_match("(11) 98765-4321", "(11) 98765-4320")
        assert not phones_match("(11) 98765-4321", "123")


@pytest.mark.unit
class TestNameSanitization:
    """Test client name cleanup."""

    def test_capitalize_words(self):
        """Test each word starts upper-case and the rest is lower-case."""
        assert capitalize_words("mARIA da SILVA") == "Maria Da Silva"

    def test_sanitize_name(self):
        """Test invalid characters and extra whitespace are removed."""
        assert sanitize_name("  joão   <pereira>  ") == "João Pereira"

    def test_digits_only_rejected(self):
        """Test a name made of digits is rejected."""
        with pytest.raises(InputInvalidError):
            sanitize_name("12345")

    def test_empty_rejected(self):
        """Test nothing usable left is rejected."""
        with pytest.raises(InputInvalidError):
            sanitize_name("@#$")

    def test_long_name_cut_on_word(self):
        """Test long names are cut without splitting a word."""
        name = sanitize_name("ana " * 40, max_length=10)

        assert name == "Ana Ana"


@pytest.mark.unit
class TestDateTimeParsing:
    """Test booking date and time parsing."""

    def test_parse_date(self):
        """Test ISO dates are parsed."""
        assert parse_booking_date("2030-01-07") == date(2030, 1, 7)
        assert parse_booking_date(date(2030, 1, 7)) == date(2030, 1, 7)

    @pytest.mark.parametrize("value", ["07/01/2030", "2030-13-01", "tomorrow"])
    def test_invalid_date(self, value):
        """Test non-ISO or impossible dates are rejected."""
        with pytest.raises(InputInvalidError, match="Invalid date"):
            parse_booking_date(value)

    def test_parse_time(self):
        """Test HH:mm and H:mm are parsed to minutes."""
        assert parse_booking_time("09:30") == 570
        assert parse_booking_time("9:30") == 570

    @pytest.mark.parametrize("value", ["24:00", "25:00", "09:60", "nine", ""])
    def test_invalid_time(self, value):
        """Test times outside the day are rejected."""
        with pytest.raises(InputInvalidError, match="Invalid time"):
            parse_booking_time(value)

    def test_normalize_time(self):
        """Test times are zero-padded."""
        assert normalize_time("9:00") == "09:00"

    def test_birth_date_in_future_rejected(self):
        """Test a birth date after today is rejected."""
        with pytest.raises(InputInvalidError):
            validate_birth_date(date(2031, 1, 1), today=date(2030, 1, 7))

    def test_birth_date_accepted(self):
        """Test a plausible birth date is kept."""
        assert validate_birth_date(date(1990, 5, 17), today=date(2030, 1, 7)) == date(1990, 5, 17)
        assert validate_birth_date(None) is None
