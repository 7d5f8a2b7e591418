"""Unit tests for modules.spark.services.classifier."""

import pytest

from modules.spark.services.classifier import categorize, detect_task


class TestDetectTask:
    @pytest.mark.parametrize(
        "text",
        ["todo: taxes", "Remind me at 5", "CALL mum", "buy milk", "Task for Friday"],
    )
    def test_task_keywords(self, text):
        assert detect_task(text) is True

    @pytest.mark.parametrize("text", ["", "Sunset over the bay", "Idea: a better kettle"])
    def test_plain_notes(self, text):
        assert detect_task(text) is False


class TestCategorize:
    def test_default_when_nothing_matches(self):
        assert categorize("Sunset over the bay") == ["general"]

    def test_custom_default(self):
        assert categorize("Sunset", default="inbox") == ["inbox"]

    def test_multiple_categories_in_declaration_order(self):
        assert categorize("Family todo after the work meeting") == ["work", "personal", "task"]

    def test_case_insensitive(self):
        assert categorize("PERSONAL budget") == ["personal"]
