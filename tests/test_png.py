"""
PNG Chunk Decoder Tests - framing, vocabulary, CRC policy, resync.
"""

import io
import struct
import zlib

import pytest

from rasterframe_core.decoder import Signature
from rasterframe_core.errors import (
    CrcMismatch,
    DecoderStateError,
    InvalidChunk,
    InvalidSignature,
)
from rasterframe_core.protocol import PNG_SIGNATURE, ChunkKind, ColorType, is_ancillary_code
from rasterframe_decode.png import ChunkRecord, PngDecoder, State, chunk_crc, parse_image_header


def decode(data: bytes, **options):
    decoder = PngDecoder(io.BytesIO(data), **options)
    return decoder, list(decoder)


class TestFraming:

    def test_minimal_ihdr_iend(self, png, ihdr, chunk):
        data = png(ihdr(), chunk(b"IEND"))
        decoder, elements = decode(data)

        assert len(elements) == 3
        assert elements[0] == Signature(PNG_SIGNATURE)

        header = elements[1]
        assert header.index == 0
        assert header.kind is ChunkKind.IHDR
        assert header.length == 13
        assert header.offset == 16
        assert header.crc == data[29:33]

        trailer = elements[2]
        assert trailer.index == 1
        assert trailer.kind is ChunkKind.IEND
        assert trailer.length == 0
        assert trailer.offset == 41

        assert decoder.error is None
        assert decoder.state is State.TRAILER

    def test_no_reads_after_trailer(self, png, ihdr, chunk):
        data = png(ihdr(), chunk(b"IEND")) + b"trailing garbage"
        handle = io.BytesIO(data)
        decoder = PngDecoder(handle)
        assert len(list(decoder)) == 3
        pos = handle.tell()
        with pytest.raises(StopIteration):
            next(decoder)
        assert handle.tell() == pos == 45
        assert decoder.error is None

    def test_indices_are_sequential(self, split_png):
        _, elements = decode(split_png)
        records = elements[1:]
        assert [r.index for r in records] == list(range(len(records)))
        assert records[-1].kind is ChunkKind.IEND

    def test_zero_length_chunk_offset(self, png, ihdr, chunk):
        data = png(ihdr(), chunk(b"sRGB"), chunk(b"IEND"))
        _, elements = decode(data)
        srgb = elements[2]
        assert srgb.length == 0
        # length(4) + type(4) after the 33-byte signature+IHDR prefix
        assert srgb.offset == 33 + 8
        assert srgb.region.read(io.BytesIO(data)) == b""

    @pytest.mark.parametrize("verify_crc", [True, False])
    def test_chunk_past_end_of_source_fails(self, png, ihdr, verify_crc):
        data = png(ihdr()) + struct.pack(">I", 100) + b"IDAT" + bytes(10)
        decoder, elements = decode(data, verify_crc=verify_crc)
        assert len(elements) == 2
        assert isinstance(decoder.error, InvalidChunk)

    def test_truncated_length_field(self, png, ihdr):
        decoder, elements = decode(png(ihdr()) + b"\x00\x00")
        assert len(elements) == 2
        assert isinstance(decoder.error, InvalidChunk)

    def test_missing_trailer_fails_at_eof(self, png, ihdr):
        decoder, elements = decode(png(ihdr()))
        assert len(elements) == 2
        assert isinstance(decoder.error, InvalidChunk)

    def test_length_limit(self, png, ihdr):
        decoder, _ = decode(png(ihdr()) + struct.pack(">I", 2**31) + b"IDAT")
        assert isinstance(decoder.error, InvalidChunk)


class TestSignature:

    @pytest.mark.parametrize("data", [b"", b"\x89PNG", b"\x89PNG\r\n\x1a\x0a"[:7], b"GIF89a\x00\x00\x00\x00"])
    def test_bad_signature_stays_pending(self, data):
        decoder, elements = decode(data)
        assert elements == []
        assert isinstance(decoder.error, InvalidSignature)
        assert decoder.state is State.PENDING

    def test_operations_require_their_state(self, png, ihdr, chunk):
        decoder = PngDecoder(io.BytesIO(png(ihdr(), chunk(b"IEND"))))
        with pytest.raises(DecoderStateError):
            decoder.read_chunk()
        decoder.read_signature()
        with pytest.raises(DecoderStateError):
            decoder.read_signature()
        decoder.read_chunk()
        decoder.read_chunk()
        with pytest.raises(DecoderStateError):
            decoder.read_chunk()

    def test_unknown_policy_is_validated(self):
        with pytest.raises(ValueError):
            PngDecoder(io.BytesIO(b""), unknown_chunks="ignore")


class TestUnknownChunks:

    def test_unknown_ancillary_is_fatal_by_default(self, png, ihdr, chunk):
        decoder, elements = decode(png(ihdr(), chunk(b"prVt", b"x"), chunk(b"IEND")))
        assert len(elements) == 2
        assert isinstance(decoder.error, InvalidChunk)

    def test_skip_policy_steps_over_ancillary(self, png, ihdr, chunk):
        data = png(ihdr(), chunk(b"prVt", b"private"), chunk(b"IEND"))
        decoder = PngDecoder(io.BytesIO(data), unknown_chunks="skip")
        with pytest.warns(UserWarning, match="prVt"):
            elements = list(decoder)

        assert [e.kind for e in elements[1:]] == [ChunkKind.IHDR, ChunkKind.IEND]
        assert [e.index for e in elements[1:]] == [0, 1]
        assert decoder.skipped == [(b"prVt", 41, 7)]
        assert decoder.error is None

    def test_skip_policy_keeps_unknown_critical_fatal(self, png, ihdr, chunk):
        decoder, _ = decode(png(ihdr(), chunk(b"ABCD"), chunk(b"IEND")), unknown_chunks="skip")
        assert isinstance(decoder.error, InvalidChunk)

    def test_vocabulary_critical_split(self):
        critical = {kind for kind in ChunkKind if kind.is_critical}
        assert critical == {ChunkKind.IHDR, ChunkKind.PLTE, ChunkKind.IDAT, ChunkKind.IEND}
        assert all(kind.is_ancillary for kind in set(ChunkKind) - critical)
        assert is_ancillary_code(b"prVt")
        assert not is_ancillary_code(b"ABCD")

    def test_non_letter_type_code_is_fatal(self, png, ihdr, chunk):
        decoder, _ = decode(png(ihdr(), chunk(b"ab1d"), chunk(b"IEND")), unknown_chunks="skip")
        assert isinstance(decoder.error, InvalidChunk)


class TestCrc:

    def _corrupt_text(self, png, ihdr, chunk):
        text = chunk(b"tEXt", b"Title\x00x", crc=0xDEADBEEF)
        return png(ihdr(), text, chunk(b"IDAT", b"\x00"), chunk(b"IEND"))

    def test_mismatch_carries_recovery_hint(self, png, ihdr, chunk):
        data = self._corrupt_text(png, ihdr, chunk)
        decoder, elements = decode(data)

        assert len(elements) == 2
        err = decoder.error
        assert isinstance(err, CrcMismatch)
        assert err.kind is ChunkKind.tEXt
        assert err.offset == 41
        assert err.recover == 7 + 4
        assert err.crc_val == 0xDEADBEEF
        assert err.crc_sum == zlib.crc32(b"tEXtTitle\x00x") & 0xFFFFFFFF
        assert err.next_offset == 52

    def test_resync_continues_after_mismatch(self, png, ihdr, chunk):
        decoder = PngDecoder(io.BytesIO(self._corrupt_text(png, ihdr, chunk)))
        head = list(decoder)
        decoder.resync(decoder.error)
        tail = list(decoder)

        assert len(head) == 2
        assert [r.kind for r in tail] == [ChunkKind.IDAT, ChunkKind.IEND]
        assert [r.index for r in tail] == [2, 3]
        assert decoder.error is None
        assert decoder.state is State.TRAILER

    def test_resync_refuses_other_errors(self, png, ihdr, chunk):
        decoder, _ = decode(png(ihdr(), chunk(b"prVt"), chunk(b"IEND")))
        with pytest.raises(DecoderStateError):
            decoder.resync(decoder.error)

    def test_deferred_verification(self, png, ihdr, chunk):
        handle = io.BytesIO(self._corrupt_text(png, ihdr, chunk))
        decoder = PngDecoder(handle, verify_crc=False)
        records = [e for e in decoder if isinstance(e, ChunkRecord)]
        assert decoder.error is None
        assert len(records) == 4

        assert records[1].next_offset == records[2].offset - 8 == 52

        decoder.verify_record_crc(records[0])
        with pytest.raises(CrcMismatch) as exc:
            decoder.verify_record_crc(records[1])
        assert exc.value.kind is ChunkKind.tEXt
        assert exc.value.next_offset == records[1].next_offset
        decoder.verify_record_crc(records[2])
        decoder.verify_record_crc(records[3])

    def test_small_blocks_match_whole_payload(self, png, ihdr, chunk):
        payload = bytes(range(200))
        data = png(ihdr(), chunk(b"IDAT", payload), chunk(b"IEND"))
        decoder, elements = decode(data, block_size=7)
        assert decoder.error is None
        assert elements[2].crc_value == chunk_crc(b"IDAT", [payload])


class TestImageHeader:

    def _record(self, png, ihdr, chunk, **fields):
        data = png(ihdr(**fields), chunk(b"IEND"))
        return io.BytesIO(data), ChunkRecord(0, 13, ChunkKind.IHDR, data[29:33], 16)

    def test_valid_header(self, png, ihdr, chunk):
        handle, record = self._record(png, ihdr, chunk, width=5, height=3, bit_depth=16, color=6, interlace=1)
        header = parse_image_header(handle, record)
        assert (header.width, header.height) == (5, 3)
        assert header.color_type is ColorType.TRUECOLOUR_ALPHA
        assert header.samples == 4
        assert header.interlace_method == 1
        assert header.scanline_size == 1 + 5 * 4 * 2

    def test_sub_byte_scanline_size(self, png, ihdr, chunk):
        handle, record = self._record(png, ihdr, chunk, width=10, height=1, bit_depth=1, color=0)
        assert parse_image_header(handle, record).scanline_size == 1 + 2

    @pytest.mark.parametrize("fields", [
        {"width": 0},
        {"height": 2**31},
        {"bit_depth": 3},
        {"color": 1},
        {"color": 2, "bit_depth": 4},
        {"color": 3, "bit_depth": 16},
        {"compression": 1},
        {"filter_method": 1},
        {"interlace": 2},
    ])
    def test_field_ranges(self, png, ihdr, chunk, fields):
        handle, record = self._record(png, ihdr, chunk, **fields)
        with pytest.raises(InvalidChunk):
            parse_image_header(handle, record)

    @pytest.mark.parametrize("length", [3, 12, 14])
    def test_wrong_length(self, png, chunk, length):
        data = png(chunk(b"IHDR", bytes(length)), chunk(b"IEND"))
        handle = io.BytesIO(data)
        with pytest.raises(InvalidChunk):
            parse_image_header(handle, ChunkRecord(0, length, ChunkKind.IHDR, bytes(4), 16))

        decoder, elements = decode(data)
        assert elements == [Signature(PNG_SIGNATURE)]
        assert isinstance(decoder.error, InvalidChunk)
        assert decoder.image_header is None

    def test_decoder_keeps_image_header(self, png, ihdr, chunk):
        decoder, elements = decode(png(ihdr(width=7, height=3, color=0), chunk(b"IEND")))
        assert decoder.error is None
        assert len(elements) == 3
        header = decoder.image_header
        assert (header.width, header.height) == (7, 3)
        assert header.color_type is ColorType.GREYSCALE

    @pytest.mark.parametrize("fields", [{"width": 0}, {"bit_depth": 3}, {"interlace": 2}])
    def test_decoder_rejects_bad_fields(self, png, ihdr, chunk, fields):
        for verify_crc in (True, False):
            decoder, elements = decode(png(ihdr(**fields), chunk(b"IEND")), verify_crc=verify_crc)
            assert elements == [Signature(PNG_SIGNATURE)]
            assert isinstance(decoder.error, InvalidChunk)
            assert decoder.error.offset == 16

    def test_requires_ihdr_record(self, png, ihdr, chunk):
        data = png(ihdr(), chunk(b"IEND"))
        handle = io.BytesIO(data)
        trailer = list(PngDecoder(handle))[2]
        with pytest.raises(InvalidChunk):
            parse_image_header(handle, trailer)


def test_fresh_decoder_reproduces_sequence(split_png):
    handle = io.BytesIO(split_png)
    first = list(PngDecoder(handle))
    handle.seek(0)
    second = list(PngDecoder(handle))
    assert first == second
