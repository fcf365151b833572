"""Unit tests for nomination_etl.normalize."""

import pytest

from nomination_etl.normalize import (
    SourceRecord,
    clean_field,
    parse_source_line,
    split_delimited_line,
)


# ---------------------------------------------------------------------------
# split_delimited_line
# ---------------------------------------------------------------------------

class TestSplitDelimitedLine:
    def test_plain_fields_keep_separator(self):
        assert split_delimited_line("1,a,b") == ["1", ",a", ",b"]

    def test_empty_middle_field(self):
        assert split_delimited_line("1,,b") == ["1", ",", ",b"]

    def test_quoted_field_with_comma_is_one_token(self):
        tokens = split_delimited_line('1,"a, b",c')
        assert tokens == ["1", ',"a, b"', ",c"]

    def test_escaped_quotes_stay_inside_token(self):
        tokens = split_delimited_line('1,"Party, ""The Best""",x')
        assert tokens[1] == ',"Party, ""The Best"""'
        assert tokens[2] == ",x"

    def test_unbalanced_quote_does_not_raise(self):
        tokens = split_delimited_line('1,"open,b,c')
        assert isinstance(tokens, list)
        assert tokens[0] == "1"


# ---------------------------------------------------------------------------
# clean_field
# ---------------------------------------------------------------------------

class TestCleanField:
    def test_strips_leading_comma(self):
        assert clean_field(",abc") == "abc"

    def test_first_field_has_no_comma(self):
        assert clean_field("abc") == "abc"

    def test_strips_quotes(self):
        assert clean_field(',"abc"') == "abc"

    def test_embedded_comma_and_escaped_quote(self):
        assert clean_field(',"Party, ""The Best"""') == 'Party, "The Best"'

    def test_trims_whitespace(self):
        assert clean_field(",  नेपाली काँग्रेस  ") == "नेपाली काँग्रेस"

    def test_empty_quoted_field(self):
        assert clean_field(',""') == ""

    def test_lone_separator(self):
        assert clean_field(",") == ""

    def test_only_one_leading_comma_removed(self):
        assert clean_field(",,x") == ",x"


# ---------------------------------------------------------------------------
# parse_source_line
# ---------------------------------------------------------------------------

class TestParseSourceLine:
    def test_typical_line(self):
        rec = parse_source_line("17,झापा,3,नेपाली काँग्रेस,राम शर्मा,45,पुरुष")
        assert rec == SourceRecord(
            district_name="झापा",
            constituency_number="3",
            party_name="नेपाली काँग्रेस",
            candidate_name="राम शर्मा",
        )

    def test_quoted_party_with_comma_and_quotes(self):
        rec = parse_source_line('1,इलाम,1,"Party, ""The Best""",Sita Rai')
        assert rec is not None
        assert rec.party_name == 'Party, "The Best"'
        assert rec.candidate_name == "Sita Rai"

    def test_crlf_line_ending(self):
        rec = parse_source_line("1,इलाम,2,Independent,Hari\r\n")
        assert rec is not None
        assert rec.candidate_name == "Hari"

    def test_exactly_five_tokens_is_enough(self):
        assert parse_source_line("1,a,2,p,n") is not None

    @pytest.mark.parametrize("line", ["", "   ", "\n", "\r\n"])
    def test_blank_lines_ignored(self, line):
        assert parse_source_line(line) is None

    @pytest.mark.parametrize("line", ["1,झापा", "1,झापा,3,party"])
    def test_short_lines_ignored(self, line):
        assert parse_source_line(line) is None

    def test_quoted_comma_does_not_inflate_field_count(self):
        # Four tokens only: the comma inside the quotes is not a separator.
        assert parse_source_line('1,"a,b",3,party') is None
