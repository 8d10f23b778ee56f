"""Tests for keyword priority classification."""

import pytest

from contact_intake.contacts.classifier import classify
from contact_intake.contacts.models import ContactPriority


class TestClassify:
    def test_urgent_keyword_in_subject(self):
        assert classify("URGENT: need movers asap", "...") == ContactPriority.URGENT

    def test_high_keyword(self):
        assert classify("Important inquiry", "...") == ContactPriority.HIGH

    def test_defaults_to_medium(self):
        assert classify("Quote request", "general question") == ContactPriority.MEDIUM

    def test_custom_default(self):
        assert classify("Quote request", "general question", default=ContactPriority.LOW) == ContactPriority.LOW

    @pytest.mark.parametrize("word", ["urgent", "Emergency", "ASAP", "immediately"])
    def test_urgent_keywords_in_message(self, word):
        assert classify("Moving quote", f"Please reply {word}.") == ContactPriority.URGENT

    @pytest.mark.parametrize("word", ["important", "PRIORITY", "soon"])
    def test_high_keywords_in_message(self, word):
        assert classify("Moving quote", f"This is {word} for us.") == ContactPriority.HIGH

    def test_urgent_wins_over_high(self):
        assert classify("Important", "we need this immediately") == ContactPriority.URGENT

    def test_substring_match(self):
        # "sooner" contains "soon"
        assert classify("Move date", "the sooner the better") == ContactPriority.HIGH

    def test_keyword_split_across_subject_and_message_does_not_match(self):
        assert classify("Need it as", "ap please") == ContactPriority.MEDIUM
