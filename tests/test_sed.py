from __future__ import annotations

import pytest

from textcore.core.errors import SubstitutionError, SubstitutionTimeoutError
from textcore.core.models import DiffLineType
from textcore.core.search.sed import SedCommand, SedCommandParser
from textcore.services.settings import SubstitutionSettings


@pytest.fixture
def parser() -> SedCommandParser:
    return SedCommandParser()


def parse(expression: str) -> SedCommand:
    ok, command = SedCommandParser.try_parse(expression)
    assert ok, expression
    return command


# =============================================================================
# Parsing
# =============================================================================

@pytest.mark.parametrize(("expression", "expected"), [
    ("s/a/b/", SedCommand("a", "b")),
    ("s/a/b/g", SedCommand("a", "b", global_replace=True)),
    ("s/a/b/gi", SedCommand("a", "b", global_replace=True, ignore_case=True)),
    ("s/a/b/xiz", SedCommand("a", "b", ignore_case=True)),
    ("s#/usr#/opt#", SedCommand("/usr", "/opt")),
    ("s|a\\|b|c|", SedCommand("a|b", "c")),
    ("s/a\\/b/c\\/d/", SedCommand("a/b", "c/d")),
    ("s/(\\d+)/<\\1>/", SedCommand("(\\d+)", "<\\1>")),
    ("s/x//g", SedCommand("x", "", global_replace=True)),
    ("s///", SedCommand("", "")),
])
def test_parse(expression, expected):
    assert parse(expression) == expected


@pytest.mark.parametrize("expression", [
    None,
    "",
    "s/a",
    "x/a/b/",
    "sxaxbx",
    "s1a1b1",
    "s/abc",
    "s/a/b",
    "s/a\\/b",
])
def test_parse_rejects(expression):
    assert SedCommandParser.try_parse(expression) == (False, None)


def test_command_str_and_flags():
    command = SedCommand("a", "b", global_replace=True, ignore_case=True)
    assert command.flags == "gi"
    assert str(command) == "s/a/b/gi"
    assert str(SedCommand("a", "b")) == "s/a/b/"


@pytest.mark.parametrize(("expression", "rendered"), [
    ("s|a/b|x|", "s|a/b|x|"),
    ("s|a\\|b|c|g", "s|a\\|b|c|g"),
    ("s/a\\/b/c/", "s/a\\/b/c/"),
    ("s#x#y#xi", "s#x#y#i"),
])
def test_command_str_keeps_delimiter(expression, rendered):
    command = parse(expression)

    assert str(command) == rendered
    assert parse(str(command)) == command


def test_command_str_escapes_default_delimiter():
    assert str(SedCommand("a/b", "/")) == "s/a\\/b/\\//"


# =============================================================================
# Execution
# =============================================================================

def test_global_replaces_every_match(parser):
    assert parser.execute(parse("s/a/b/g"), "aaa") == ("bbb", 3)


def test_without_global_replaces_first_match(parser):
    assert parser.execute(parse("s/a/b/"), "aaa") == ("baa", 1)


def test_no_match(parser):
    assert parser.execute(parse("s/z/y/g"), "aaa") == ("aaa", 0)


def test_ignore_case(parser):
    assert parser.execute(parse("s/hello/bye/gi"), "Hello HELLO hello") == ("bye bye bye", 3)
    assert parser.execute(parse("s/hello/bye/g"), "Hello HELLO hello") == ("Hello HELLO bye", 1)


def test_group_references(parser):
    command = parse("s/(\\w+)=(\\w+)/\\2=\\1/g")
    assert parser.execute(command, "a=1, b=2") == ("1=a, 2=b", 2)

    named = parse("s/(?P<word>\\w+)!/\\g<word>?/")
    assert parser.execute(named, "hey! you!") == ("hey? you!", 1)


def test_ranges_point_into_result(parser):
    result, count, ranges = parser.execute_with_ranges(parse("s/o/00/g"), "foo")

    assert (result, count) == ("f0000", 2)
    assert ranges == [(1, 2), (3, 2)]
    for start, length in ranges:
        assert result[start:start + length] == "00"


def test_empty_replacement_counts_but_has_no_range(parser):
    result, count, ranges = parser.execute_with_ranges(parse("s/x//g"), "axbxc")

    assert (result, count) == ("abc", 2)
    assert ranges == []


def test_empty_pattern_matches_between_characters(parser):
    assert parser.execute(parse("s//-/g"), "ab") == ("-a-b-", 3)


def test_invalid_pattern(parser):
    with pytest.raises(SubstitutionError):
        parser.execute(parse("s/(unclosed/x/"), "text")


def test_invalid_group_reference(parser):
    with pytest.raises(SubstitutionError):
        parser.execute(parse("s/a/\\3/"), "abc")


def test_timeout_is_reported(parser, monkeypatch):
    class SlowPattern:
        def finditer(self, text, timeout=None):
            raise TimeoutError("regex timed out")

    monkeypatch.setattr(parser, "_compile", lambda command: SlowPattern())

    with pytest.raises(SubstitutionTimeoutError):
        parser.execute(parse("s/a/b/"), "aaa")


def test_timeout_setting_is_passed_to_matcher(monkeypatch):
    seen = []

    class RecordingPattern:
        def finditer(self, text, timeout=None):
            seen.append(timeout)
            return iter(())

    parser = SedCommandParser(SubstitutionSettings(timeout_seconds=0.25))
    monkeypatch.setattr(parser, "_compile", lambda command: RecordingPattern())

    assert parser.execute(parse("s/a/b/"), "text") == ("text", 0)
    assert seen == [0.25]


def test_timeout_error_is_a_substitution_error():
    assert issubclass(SubstitutionTimeoutError, SubstitutionError)


def test_catastrophic_pattern_times_out():
    parser = SedCommandParser(SubstitutionSettings(timeout_seconds=0.3))

    with pytest.raises(SubstitutionTimeoutError):
        parser.execute(parse("s/(?:a|aa)+$/z/"), "a" * 5000 + "b")


# =============================================================================
# Preview
# =============================================================================

def test_preview(parser):
    preview = parser.preview(parse("s/cat/dog/g"), "a cat\nno match\ncat cat")

    assert preview.result == "a dog\nno match\ndog dog"
    assert preview.match_count == 3
    assert len(preview.ranges) == 3
    assert [line.line_type for line in preview.lines] == [
        DiffLineType.MODIFIED, DiffLineType.EQUAL, DiffLineType.MODIFIED,
    ]
    assert preview.changed_line_count == 2


def test_preview_with_added_lines(parser):
    preview = parser.preview(parse("s/,/\\n/g"), "a,b")

    assert preview.result == "a\nb"
    assert [line.line_type for line in preview.lines] == [
        DiffLineType.MODIFIED, DiffLineType.ADDED,
    ]
