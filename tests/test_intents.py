"""Tests for rule-based intent classification and free-text extraction."""

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from origination.extraction import extract_amount, extract_phone, extract_tenure, mentions_amount
from origination.intents import Rule, Vocabulary, all_of, classify, keywords, normalize, pattern
from origination.stages.identification import GREETING_VOCABULARY, GreetingIntent
from origination.stages.underwriting import UNDERWRITING_VOCABULARY, UnderwritingIntent
from origination.stages.verification import ADDRESS_VOCABULARY, IDENTITY_VOCABULARY, VerificationIntent


class TestClassifier:
    def test_normalize(self):
        assert normalize("  Hello\tTHERE \n") == "hello there"

    def test_first_matching_rule_wins(self):
        vocab = Vocabulary("t", (
            Rule("a", keywords("yes")),
            Rule("b", keywords("yes", "ok")),
        ), default="none")
        assert classify("Yes please", vocab) == "a"
        assert classify("ok", vocab) == "b"
        assert classify("hmm", vocab) == "none"

    def test_keywords_match_whole_words_only(self):
        match_no = keywords("no")
        assert match_no("no thanks")
        assert not match_no("i know")
        assert not match_no("nothing")

    def test_phrase_keywords(self):
        assert keywords("go ahead")("please go ahead now")

    def test_pattern_and_all_of(self):
        pred = all_of(pattern(r"disburs"), keywords("when"))
        assert pred("when is the disbursement")
        assert not pred("disbursement details")

    def test_vocabulary_tags(self):
        assert GREETING_VOCABULARY.tags == ["loan_interest", "other"]

    def test_same_word_differs_by_stage(self):
        assert classify("yes", IDENTITY_VOCABULARY) == VerificationIntent.CONFIRM
        assert classify("no, I moved", ADDRESS_VOCABULARY) == VerificationIntent.CHANGED
        assert classify("yes", UNDERWRITING_VOCABULARY) == UnderwritingIntent.ACCEPT

    def test_loan_interest(self):
        assert classify("I need a personal loan", GREETING_VOCABULARY) == GreetingIntent.LOAN_INTEREST
        assert classify("Hello there", GREETING_VOCABULARY) == GreetingIntent.OTHER

    def test_new_terms_beat_acceptance_in_underwriting(self):
        assert classify("yes but make it 48 months", UNDERWRITING_VOCABULARY) == UnderwritingIntent.MODIFY
        assert classify("check my status", UNDERWRITING_VOCABULARY) == UnderwritingIntent.STATUS


class TestPhoneExtraction:
    @pytest.mark.parametrize("text", [
        "9876543210",
        "my number is 98765 43210",
        "+91 9876543210",
        "+91-98765-43210",
    ])
    def test_recognized(self, text):
        assert extract_phone(text) == "9876543210"

    def test_missing(self):
        assert extract_phone("call me at home") is None
        assert extract_phone("12345") is None


class TestAmountExtraction:
    @pytest.mark.parametrize("text,expected", [
        ("5 lakhs", 500_000),
        ("I need ₹5,00,000", 500_000),
        ("2.5 lakh please", 250_000),
        ("50k", 50_000),
        ("Rs. 75000", 75_000),
        ("1 crore", 10_000_000),
    ])
    def test_qualified_amounts(self, text, expected):
        assert extract_amount(text) == expected

    def test_bare_number_needs_opt_in(self):
        assert extract_amount("500000") is None
        assert extract_amount("500000", allow_bare=True) == 500_000
        assert extract_amount("36", allow_bare=True, bare_minimum=10_000) is None

    def test_tenure_and_rate_are_not_amounts(self):
        assert extract_amount("48 months", allow_bare=True) is None
        assert extract_amount("10.5%", allow_bare=True) is None

    def test_mentions_amount(self):
        assert mentions_amount("can I get 3 lakhs")
        assert not mentions_amount("what are your rates")


class TestTenureExtraction:
    def test_months(self):
        assert extract_tenure("make it 48 months") == 48

    def test_years(self):
        assert extract_tenure("over 3 years") == 36

    def test_none(self):
        assert extract_tenure("5 lakhs") is None
