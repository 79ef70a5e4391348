from __future__ import annotations

import gc

import pytest

from textcore.core.errors import OffsetOutOfRangeError, SourceClosedError
from textcore.core.models import LineEnding
from textcore.services.mapped_source import LargeFileTextSource
from textcore.services.settings import SourceSettings
from textcore.services.text_source import BorrowedTextSource, TextSource


def expected_offsets(text: str) -> list[int]:
    return [0] + [i + 1 for i, char in enumerate(text) if char == "\n"]


def scan_deferred(path, batch_size, **kwargs) -> LargeFileTextSource:
    source = LargeFileTextSource(path, defer_scan=True, **kwargs)
    while not source.scan_next_batch(batch_size):
        pass
    return source


# =============================================================================
# Empty and tiny files
# =============================================================================

def test_zero_byte_file(write_bytes):
    with LargeFileTextSource(write_bytes(b"")) as source:
        assert source.length == 0
        assert len(source) == 0
        assert list(source.line_offsets) == [0]
        assert source.line_count == 1
        assert source.initial_line_feed_count == 0
        assert source.count_line_feeds(0, 0) == 0
        assert source.get_text(0, 0) == ""
        assert source.get_line(0) == ""
        assert source.is_fully_scanned
        assert source.scanned_bytes == 0
        assert source.scan_next_batch(1) is True
        assert source.encoding == "utf-8"
        assert source.detected_line_ending is LineEnding.LF


def test_bom_only_file(write_bytes):
    with LargeFileTextSource(write_bytes(b"\xef\xbb\xbf")) as source:
        assert source.length == 0
        assert source.is_fully_scanned
        assert source.scanned_bytes == 3
        assert source.chunk_count == 0


def test_small_file_defaults(write_text):
    text = "alpha\nbeta\ngamma"
    with LargeFileTextSource(write_text(text)) as source:
        assert isinstance(source, TextSource)
        assert source.length == len(text)
        assert source.get_text(0, source.length) == text
        assert source[6] == "b"
        assert list(source.line_offsets) == [0, 6, 11]
        assert source.initial_line_feed_count == 2
        assert source.get_line(2) == "gamma"
        assert source.chunk_count == 1
        assert source.scanned_bytes == source.file_size == len(text)


# =============================================================================
# Chunked access
# =============================================================================

def test_multibyte_characters_straddling_chunks(write_text, tiny_chunks, multibyte_text):
    path = write_text(multibyte_text)
    with LargeFileTextSource(path, settings=tiny_chunks) as source:
        assert source.chunk_count > 40
        assert source.length == len(multibyte_text)
        assert source.get_text(0, source.length) == multibyte_text
        assert list(source.line_offsets) == expected_offsets(multibyte_text)
        assert source.initial_line_feed_count == multibyte_text.count("\n")


def test_random_access_matches_text(write_text, tiny_chunks, multibyte_text):
    path = write_text(multibyte_text)
    with LargeFileTextSource(path, settings=tiny_chunks) as source:
        for index in (0, 1, 15, 16, 17, 100, len(multibyte_text) - 1):
            assert source[index] == multibyte_text[index]

        for start, length in [(0, 1), (5, 40), (13, 200), (300, 0), (len(multibyte_text) - 3, 3)]:
            assert source.get_text(start, length) == multibyte_text[start:start + length]
            assert source.count_line_feeds(start, length) == \
                multibyte_text.count("\n", start, start + length)


def test_line_lookup(write_text, tiny_chunks, multibyte_text):
    path = write_text(multibyte_text)
    lines = multibyte_text.split("\n")
    with LargeFileTextSource(path, settings=tiny_chunks) as source:
        assert source.line_count == len(lines)
        for index in (0, 1, 17, len(lines) - 2, len(lines) - 1):
            assert source.get_line(index) == lines[index]
        for offset in (0, 10, 250, len(multibyte_text)):
            assert source.line_index_of(offset) == multibyte_text[:offset].count("\n")
        with pytest.raises(OffsetOutOfRangeError):
            source.get_line(len(lines))
        with pytest.raises(OffsetOutOfRangeError):
            source.line_index_of(len(multibyte_text) + 1)


@pytest.mark.parametrize("chunk_size", [16, 17, 19])
def test_utf16_with_bom_and_odd_chunk_sizes(write_bytes, chunk_size):
    text = "hello\nwörld 中文\n" * 20
    path = write_bytes(b"\xff\xfe" + text.encode("utf-16-le"))
    settings = SourceSettings(chunk_size_bytes=chunk_size, cache_capacity=3)
    with LargeFileTextSource(path, settings=settings) as source:
        assert source.encoding == "utf-16-le"
        assert source.get_text(0, source.length) == text
        assert list(source.line_offsets) == expected_offsets(text)


def test_utf8_bom_is_not_part_of_text(write_bytes):
    with LargeFileTextSource(write_bytes(b"\xef\xbb\xbfabc\n")) as source:
        assert source.encoding == "utf-8-sig"
        assert source.length == 4
        assert source.get_text(0, 4) == "abc\n"


def test_gb18030_straddling_chunks(write_bytes):
    text = "中文测试，句子。\n" * 30
    path = write_bytes(text.encode("gb18030"))
    settings = SourceSettings(chunk_size_bytes=17, cache_capacity=2)
    with LargeFileTextSource(path, settings=settings) as source:
        assert source.encoding == "gb18030"
        assert source.get_text(0, source.length) == text


def test_explicit_encoding_overrides_detection(write_bytes):
    path = write_bytes("café".encode("cp1252"))
    with LargeFileTextSource(path, encoding="latin-1") as source:
        assert source.encoding == "latin-1"
        assert source.get_text(0, 4) == "café"


# =============================================================================
# Line endings
# =============================================================================

def test_crlf_is_never_split_when_normalizing(write_text):
    # Every CR falls on the last byte of a 16-byte chunk.
    text = "Z" + "0123456789abcd\r\n" * 10
    settings = SourceSettings(chunk_size_bytes=16, normalize_line_endings=True)
    with LargeFileTextSource(write_text(text), settings=settings) as source:
        normalized = text.replace("\r\n", "\n")
        assert source.get_text(0, source.length) == normalized
        assert source.initial_line_feed_count == 10
        assert list(source.line_offsets) == expected_offsets(normalized)


def test_crlf_kept_without_normalization(write_text):
    text = "Z" + "0123456789abcd\r\n" * 10
    settings = SourceSettings(chunk_size_bytes=16)
    with LargeFileTextSource(write_text(text), settings=settings) as source:
        assert source.get_text(0, source.length) == text
        assert source.initial_line_feed_count == 10


def test_normalize_argument_overrides_settings(write_text):
    path = write_text("a\rb\r\nc")
    with LargeFileTextSource(path, normalize_line_endings=True) as source:
        assert source.get_text(0, source.length) == "a\nb\nc"
        assert source.initial_line_feed_count == 2


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("a\r\nb\r\nc\n", LineEnding.CRLF),
        ("a\nb\nc\r\n", LineEnding.LF),
        ("a\rb\rc\n", LineEnding.CR),
        ("a\nb\r\n", LineEnding.LF),
        ("no breaks", LineEnding.LF),
    ],
)
def test_detected_line_ending(write_text, text, expected):
    with LargeFileTextSource(write_text(text)) as source:
        assert source.detected_line_ending is expected


def test_detected_line_ending_utf16(write_bytes):
    path = write_bytes(b"\xff\xfe" + "a\r\nb\r\n".encode("utf-16-le"))
    with LargeFileTextSource(path) as source:
        assert source.detected_line_ending is LineEnding.CRLF


# =============================================================================
# Deferred scanning
# =============================================================================

@pytest.mark.parametrize("batch_size", [1, 7, 10_000])
def test_deferred_scan_matches_eager(write_text, tiny_chunks, multibyte_text, batch_size):
    path = write_text(multibyte_text)
    with LargeFileTextSource(path, settings=tiny_chunks) as eager, \
            scan_deferred(path, batch_size, settings=tiny_chunks) as deferred:
        assert deferred.length == eager.length
        assert deferred.initial_line_feed_count == eager.initial_line_feed_count
        assert list(deferred.line_offsets) == list(eager.line_offsets)
        assert deferred.scanned_bytes == eager.scanned_bytes == eager.file_size


def test_deferred_scan_grows_monotonically(write_text, tiny_chunks, multibyte_text):
    path = write_text(multibyte_text)
    with LargeFileTextSource(path, defer_scan=True, settings=tiny_chunks) as source:
        assert source.length == 0
        assert list(source.line_offsets) == [0]
        assert not source.is_fully_scanned
        assert source.scanned_bytes == 0

        lengths = []
        scanned = []
        done = False
        while not done:
            done = source.scan_next_batch(3)
            lengths.append(source.length)
            scanned.append(source.scanned_bytes)

        assert lengths == sorted(lengths)
        assert scanned == sorted(scanned)
        assert scanned[-1] == source.file_size
        assert source.is_fully_scanned
        assert source.scan_next_batch(1) is True


def test_partially_scanned_source_serves_scanned_range(write_text, tiny_chunks, multibyte_text):
    path = write_text(multibyte_text)
    with LargeFileTextSource(path, defer_scan=True, settings=tiny_chunks) as source:
        source.scan_next_batch(4)
        length = source.length

        assert 0 < length < len(multibyte_text)
        assert source.get_text(0, length) == multibyte_text[:length]
        with pytest.raises(OffsetOutOfRangeError):
            source.get_text(0, length + 1)


def test_published_snapshot_is_not_affected_by_later_batches(write_text, tiny_chunks, multibyte_text):
    path = write_text(multibyte_text)
    with LargeFileTextSource(path, defer_scan=True, settings=tiny_chunks) as source:
        source.scan_next_batch(2)
        snapshot = source.line_offsets
        before = list(snapshot)

        source.scan_next_batch(50)

        assert list(snapshot) == before
        assert len(source.line_offsets) > len(snapshot)


def test_failed_batch_publishes_nothing(write_text, tiny_chunks, multibyte_text, monkeypatch):
    path = write_text(multibyte_text)
    with LargeFileTextSource(path, defer_scan=True, settings=tiny_chunks) as source:
        source.scan_next_batch(2)
        length = source.length
        offsets = list(source.line_offsets)
        scanned = source.scanned_bytes

        original = source._decode_next_chunk
        calls = []

        def flaky(index, start):
            calls.append(index)
            if len(calls) == 3:
                raise RuntimeError("disk went away")
            return original(index, start)

        monkeypatch.setattr(source, "_decode_next_chunk", flaky)
        with pytest.raises(RuntimeError):
            source.scan_next_batch(5)

        assert source.length == length
        assert list(source.line_offsets) == offsets
        assert source.scanned_bytes == scanned

        monkeypatch.undo()
        while not source.scan_next_batch(8):
            pass
        assert source.get_text(0, source.length) == multibyte_text
        assert list(source.line_offsets) == expected_offsets(multibyte_text)


def test_batch_size_must_be_positive(write_text):
    with LargeFileTextSource(write_text("abc"), defer_scan=True) as source:
        with pytest.raises(ValueError):
            source.scan_next_batch(0)


# =============================================================================
# Errors and lifetime
# =============================================================================

def test_missing_file_fails_before_mapping(tmp_path):
    with pytest.raises(FileNotFoundError):
        LargeFileTextSource(tmp_path / "missing.txt")


def test_directory_is_rejected(tmp_path):
    with pytest.raises(IsADirectoryError):
        LargeFileTextSource(tmp_path)


def test_chunk_size_lower_bound(write_text):
    with pytest.raises(ValueError):
        LargeFileTextSource(write_text("abc"), settings=SourceSettings(chunk_size_bytes=8))


def test_unknown_encoding_fails_at_construction(write_text):
    with pytest.raises(LookupError):
        LargeFileTextSource(write_text("abc"), encoding="no-such-codec")


@pytest.mark.parametrize(("start", "length"), [(-1, 1), (0, -1), (0, 4), (3, 1)])
def test_out_of_range_requests(write_text, start, length):
    with LargeFileTextSource(write_text("abc")) as source:
        with pytest.raises(OffsetOutOfRangeError):
            source.get_text(start, length)
        with pytest.raises(IndexError):
            source.count_line_feeds(start, length)


def test_out_of_range_index(write_text):
    with LargeFileTextSource(write_text("abc")) as source:
        with pytest.raises(IndexError):
            source[3]
        with pytest.raises(OffsetOutOfRangeError):
            source[-1]


def test_close_is_idempotent_and_final(write_text):
    source = LargeFileTextSource(write_text("abc\ndef"))
    source.close()
    source.close()

    assert source.closed
    for operation in (
        lambda: source.length,
        lambda: source[0],
        lambda: source.get_text(0, 1),
        lambda: source.count_line_feeds(0, 1),
        lambda: source.line_offsets,
        lambda: source.scan_next_batch(1),
    ):
        with pytest.raises(SourceClosedError):
            operation()


def test_context_manager_closes(write_text):
    with LargeFileTextSource(write_text("abc")) as source:
        pass
    assert source.closed
    with pytest.raises(ValueError):
        len(source)


def test_close_releases_file_handle(write_text):
    source = LargeFileTextSource(write_text("abc\ndef"))
    handle = source._file
    assert not handle.closed

    source.close()

    assert handle.closed
    assert source._file is None


def test_unclosed_source_warns(write_text):
    path = write_text("abc\ndef")

    with pytest.warns(ResourceWarning):
        source = LargeFileTextSource(path)
        del source
        gc.collect()


def test_metadata(write_text):
    path = write_text("abc")
    with LargeFileTextSource(path) as source:
        assert source.file_path == path.absolute()
        assert source.file_size == 3
        assert "3 chars" in repr(source)


def test_borrowed_view_of_large_source(write_text):
    with LargeFileTextSource(write_text("one\ntwo\n")) as source:
        borrowed = BorrowedTextSource(source)
        assert borrowed.get_text(4, 3) == "two"
        assert list(borrowed.line_offsets) == [0, 4, 8]
        assert borrowed.initial_line_feed_count == 2
        del borrowed
        assert not source.closed
