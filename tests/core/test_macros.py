"""${logicalStartTime(...)} substitution in query text."""

import pytest

from batchline.core.errors import ValidationError
from batchline.core.macros import substitute_macros


@pytest.fixture
def new_year(to_millis) -> int:
    return to_millis(2016, 1, 1)


class TestSubstituteMacros:
    def test_default_pattern(self, new_year):
        assert substitute_macros("${logicalStartTime()}", new_year) == "2016-01-01T00-00-00"

    def test_pattern_and_offset(self, new_year):
        text = "WHERE day = '${logicalStartTime(yyyy-MM-dd,1d)}'"
        assert substitute_macros(text, new_year) == "WHERE day = '2015-12-31'"

    def test_time_zone(self, new_year):
        text = "${logicalStartTime(yyyy-MM-dd HH:mm,0s,America/New_York)}"
        assert substitute_macros(text, new_year) == "2015-12-31 19:00"

    def test_arguments_are_trimmed(self, new_year):
        assert substitute_macros("${logicalStartTime( yyyy , 2h )}", new_year) == "2015"

    def test_several_macros(self, new_year):
        text = "day >= '${logicalStartTime(yyyy-MM-dd,7d)}' AND day < '${logicalStartTime(yyyy-MM-dd)}'"
        assert substitute_macros(text, new_year) == "day >= '2015-12-25' AND day < '2016-01-01'"

    def test_text_without_macros_is_unchanged(self, new_year):
        text = "SELECT * FROM orders WHERE $CONDITIONS"
        assert substitute_macros(text, new_year) == text

    def test_none(self, new_year):
        assert substitute_macros(None, new_year) is None

    def test_too_many_arguments(self, new_year):
        with pytest.raises(ValidationError):
            substitute_macros("${logicalStartTime(yyyy,1d,UTC,extra)}", new_year)

    def test_invalid_offset(self, new_year):
        with pytest.raises(ValidationError):
            substitute_macros("${logicalStartTime(yyyy,yesterday)}", new_year)
