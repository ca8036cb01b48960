"""
test_operators.py - Tests for the matching operators.
"""
import re

import pytest

from operators import (
    CreditCardMaskingOperator,
    DEFAULT_MASK_VALUE,
    EmailAddressMaskingOperator,
    IbanMaskingOperator,
    MaskingOperator,
    RegexMaskingOperator,
    build_operators,
    default_operators,
)
from rewriter import MatchSpan, Replacement, rewrite


def _apply(operator, text, mask_value=DEFAULT_MASK_VALUE):
    return rewrite(text, [operator.scan(text, mask_value)])


# ---------------------------------------------------------------------------
# Email addresses
# ---------------------------------------------------------------------------

def test_email_whole_value():
    operator = EmailAddressMaskingOperator()
    assert _apply(operator, "james.bond@universalexports.co.uk") == "***MASKED***"


def test_email_in_query_string_keeps_parameter_name():
    operator = EmailAddressMaskingOperator()
    text = "GET /api/users/?email=james.bond@universalexports.co.uk"
    assert _apply(operator, text) == "GET /api/users/?email=***MASKED***"


def test_email_url_encoded():
    operator = EmailAddressMaskingOperator()
    text = "/users?email=james.bond%40universalexports.co.uk&page=2"
    assert _apply(operator, text) == "/users?email=***MASKED***&page=2"


def test_email_multiple_addresses():
    operator = EmailAddressMaskingOperator()
    text = "from a.b@example.com to C.D+tag@Example.ORG"
    assert _apply(operator, text) == "from ***MASKED*** to ***MASKED***"


def test_email_span_offsets():
    operator = EmailAddressMaskingOperator()
    assert operator.scan("to: x@example.com", "**") == [
        Replacement(MatchSpan(4, 13), "**")
    ]


def test_email_skips_text_without_at_sign():
    operator = EmailAddressMaskingOperator()
    assert operator.scan("no address here", "**") == []
    assert operator.scan("user at example dot com", "**") == []


def test_email_custom_mask_value():
    operator = EmailAddressMaskingOperator()
    assert _apply(operator, "user@example.com", "**") == "**"


# ---------------------------------------------------------------------------
# IBAN
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("iban", [
    "GB82WEST12345698765432",
    "GB82 WEST 1234 5698 7654 32",
    "DE89370400440532013000",
    "NL91ABNA0417164300",
])
def test_iban_valid(iban):
    operator = IbanMaskingOperator()
    assert _apply(operator, f"pay to {iban} today") == "pay to ***MASKED*** today"


def test_iban_checksum_failure_is_not_masked():
    operator = IbanMaskingOperator()
    text = "pay to GB83WEST12345698765432 today"
    assert _apply(operator, text) == text


@pytest.mark.parametrize("text,expected", [
    ("Transfer to AT61 1904 3002 3457 3201 EUR 100", "Transfer to ***MASKED*** EUR 100"),
    ("Transfer to AT61 1904 3002 3457 3201 100", "Transfer to ***MASKED*** 100"),
    ("iban BE68 5390 0754 7034 2024 paid", "iban ***MASKED*** 2024 paid"),
    ("GB82 WEST 1234 5698 7654 32 EUR", "***MASKED*** EUR"),
    ("AT611904300234573201 EUR 100", "***MASKED*** EUR 100"),
])
def test_iban_followed_by_other_tokens(text, expected):
    assert _apply(IbanMaskingOperator(), text) == expected


def test_iban_lower_case():
    operator = IbanMaskingOperator()
    assert _apply(operator, "pay to gb82west12345698765432 today") == "pay to ***MASKED*** today"
    assert _apply(operator, "pay to gb82 west 1234 5698 7654 32") == "pay to ***MASKED***"


def test_iban_short_input_skipped():
    assert IbanMaskingOperator().scan("GB82", "**") == []


# ---------------------------------------------------------------------------
# Credit cards
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("number", [
    "4111111111111111",
    "4111 1111 1111 1111",
    "5500-0000-0000-0004",
    "378282246310005",
])
def test_credit_card_valid(number):
    operator = CreditCardMaskingOperator()
    assert _apply(operator, f"card {number} charged") == "card ***MASKED*** charged"


def test_credit_card_luhn_failure_is_not_masked():
    operator = CreditCardMaskingOperator()
    text = "card 4111111111111112 charged"
    assert _apply(operator, text) == text


def test_credit_card_inside_longer_number_is_not_masked():
    operator = CreditCardMaskingOperator()
    text = "order 41111111111111110000000"
    assert _apply(operator, text) == text


@pytest.mark.parametrize("text,expected", [
    ("card 4111111111111111 12:30", "card ***MASKED*** 12:30"),
    ("card 4111111111111111 123 exp 12/27", "card ***MASKED*** 123 exp 12/27"),
    ("card 4111 1111 1111 1111 12:30", "card ***MASKED*** 12:30"),
    ("paid 5500-0000-0000-0004 100 EUR", "paid ***MASKED*** 100 EUR"),
    ("cards 4111111111111111 4111111111111111", "cards ***MASKED*** ***MASKED***"),
])
def test_credit_card_followed_by_other_numbers(text, expected):
    assert _apply(CreditCardMaskingOperator(), text) == expected


def test_credit_card_kept_digits_after_shortened_match():
    operator = CreditCardMaskingOperator(keep_last_digits=4)
    assert _apply(operator, "card 4111111111111111 123") == "card ***MASKED***1111 123"


def test_credit_card_keep_last_digits():
    operator = CreditCardMaskingOperator(keep_last_digits=4)
    assert _apply(operator, "4111 1111 1111 1111") == "***MASKED***1111"


def test_credit_card_keep_last_digits_range():
    with pytest.raises(ValueError):
        CreditCardMaskingOperator(keep_last_digits=5)


# ---------------------------------------------------------------------------
# Pattern-driven base and hooks
# ---------------------------------------------------------------------------

def test_regex_operator_custom_pattern():
    operator = RegexMaskingOperator(r"token=\w+")
    assert _apply(operator, "auth token=abc123 ok", "**") == "auth ** ok"


def test_regex_operator_accepts_compiled_pattern():
    operator = RegexMaskingOperator(re.compile(r"secret", re.IGNORECASE))
    assert _apply(operator, "SECRET value", "**") == "** value"


def test_regex_operator_rejects_empty_matching_pattern():
    with pytest.raises(ValueError):
        RegexMaskingOperator(r"\d*")


def test_regex_operator_rejects_invalid_pattern():
    with pytest.raises(ValueError):
        RegexMaskingOperator(r"([a-z")


class _UpperCaseOperator(RegexMaskingOperator):
    """Matches case-insensitively by upper-casing the input first."""

    def preprocess_input(self, text):
        return text.upper()


def test_length_preserving_preprocess_keeps_spans():
    operator = _UpperCaseOperator(r"SECRET")
    assert _apply(operator, "a secret b", "**") == "a ** b"


class _StripDashesOperator(RegexMaskingOperator):
    def preprocess_input(self, text):
        return text.replace("-", "")


def test_length_changing_preprocess_replaces_whole_input():
    operator = _StripDashesOperator(r"\d{6}")
    assert operator.scan("id 12-34-56 end", "**") == [
        Replacement(MatchSpan(0, 15), "id ** end")
    ]


class _LastCharsOperator(RegexMaskingOperator):
    def should_mask_match(self, match):
        return not match.group().startswith("0")

    def preprocess_mask(self, mask_value, match):
        return mask_value + match.group()[-2:]


def test_match_and_mask_hooks():
    operator = _LastCharsOperator(r"\d{4}")
    assert _apply(operator, "1234 0567 8901", "#") == "#34 0567 #01"


class _BrokenOperator(RegexMaskingOperator):
    def should_mask_match(self, match):
        raise RuntimeError("boom")


def test_operator_failure_is_treated_as_no_match():
    operator = _BrokenOperator(r"\d+")
    assert operator.scan("123", "**") == []


def test_scan_ignores_empty_and_non_text_input():
    for operator in default_operators():
        assert operator.scan("", "**") == []
        assert operator.scan(None, "**") == []
        assert operator.scan(4111111111111111, "**") == []


def test_base_operator_requires_implementation():
    assert MaskingOperator().scan("anything", "**") == []


def test_masked_text_does_not_match_again():
    text = "mail james.bond@universalexports.co.uk card 4111111111111111 iban GB82WEST12345698765432"
    for operator in default_operators():
        once = _apply(operator, text)
        assert _apply(operator, once) == once


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def test_default_operator_order():
    assert [operator.name for operator in default_operators()] == ["email", "iban", "credit_card"]


def test_build_operators_by_name_and_pattern():
    operators = build_operators(["Credit_Card", "email"], [r"secret-\d+"])
    assert [type(operator) for operator in operators] == [
        CreditCardMaskingOperator,
        EmailAddressMaskingOperator,
        RegexMaskingOperator,
    ]


def test_build_operators_empty_list_disables_matching():
    assert build_operators([]) == ()


def test_build_operators_unknown_name():
    with pytest.raises(ValueError, match="Unknown operator"):
        build_operators(["phone"])
