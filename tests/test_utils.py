"""Tests for utility functions."""

import os
from datetime import datetime, timezone

from agentwatch.utils import (
    format_duration,
    is_within,
    isoformat_or_none,
    mtime_to_datetime,
    normalize_path,
    parse_timestamp,
    safe_get_nested,
    truncate_text,
)


class TestParseTimestamp:
    """Tests for parse_timestamp function."""

    def test_fractional_seconds_zulu(self):
        parsed = parse_timestamp('2025-01-15T10:30:00.123Z')
        assert parsed == datetime(2025, 1, 15, 10, 30, 0, 123000, tzinfo=timezone.utc)

    def test_whole_seconds(self):
        parsed = parse_timestamp('2025-01-15T10:30:00Z')
        assert parsed == datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_offset_is_kept(self):
        parsed = parse_timestamp('2025-01-15T12:30:00+02:00')
        assert parsed == datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_invalid_string(self):
        assert parse_timestamp('yesterday') is None
        assert parse_timestamp('') is None

    def test_non_string(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp(1736937000) is None


class TestTruncateText:
    """Tests for truncate_text function."""

    def test_short_text_unchanged(self):
        assert truncate_text('hello', limit=10) == 'hello'

    def test_exact_limit_unchanged(self):
        assert truncate_text('a' * 10, limit=10) == 'a' * 10

    def test_long_text_notes_omitted_count(self):
        result = truncate_text('a' * 15, limit=10)
        assert result.startswith('a' * 10)
        assert result.endswith('[... truncated 5 characters ...]')


class TestNormalizePath:
    """Tests for normalize_path function."""

    def test_trailing_slash(self):
        assert normalize_path('/Users/test/project/') == '/Users/test/project'

    def test_dot_segments(self):
        assert normalize_path('/Users/test/./other/../project') == '/Users/test/project'

    def test_expands_home(self):
        assert normalize_path('~/project') == os.path.join(os.path.expanduser('~'), 'project')


class TestIsWithin:
    """Tests for is_within function."""

    def test_same_path(self):
        assert is_within('/Users/test/project', '/Users/test/project')

    def test_subdirectory(self):
        assert is_within('/Users/test/project/src', '/Users/test/project')

    def test_shared_prefix_is_not_inside(self):
        assert not is_within('/Users/test/projectile', '/Users/test/project')

    def test_filesystem_root(self):
        assert is_within('/Users/test', '/')


class TestFormatDuration:
    """Tests for format_duration function."""

    def test_none(self):
        assert format_duration(None) is None

    def test_seconds(self):
        assert format_duration(42.9) == '42s'

    def test_minutes(self):
        assert format_duration(125) == '2m 5s'

    def test_hours(self):
        assert format_duration(3723) == '1h 2m 3s'


class TestDatetimeHelpers:
    """Tests for isoformat_or_none and mtime_to_datetime."""

    def test_isoformat_none(self):
        assert isoformat_or_none(None) is None

    def test_isoformat(self):
        value = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert isoformat_or_none(value) == '2025-01-15T10:30:00+00:00'

    def test_mtime_is_utc(self):
        assert mtime_to_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert mtime_to_datetime(None) is None


class TestSafeGetNested:
    """Tests for safe_get_nested function."""

    def test_nested_access(self):
        data = {'message': {'usage': {'input_tokens': 42}}}
        assert safe_get_nested(data, 'message', 'usage', 'input_tokens') == 42

    def test_missing_key_returns_default(self):
        data = {'message': {}}
        assert safe_get_nested(data, 'message', 'usage') is None
        assert safe_get_nested(data, 'message', 'usage', default={}) == {}

    def test_non_dict_intermediate(self):
        """A scalar in the middle of the path yields the default."""
        data = {'message': 'plain text'}
        assert safe_get_nested(data, 'message', 'content', default='x') == 'x'

    def test_empty_keys(self):
        data = {'key': 'value'}
        assert safe_get_nested(data) == data
