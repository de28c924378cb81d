import io
from pathlib import Path
from warnings import warn

from rasterframe_core.errors import CrcMismatch, FramingError
from rasterframe_core.protocol import INTERLACE_NONE, UNKNOWN_CHUNKS_FATAL, ChunkKind
from rasterframe_core.regions import Region
from rasterframe_decode.netpbm import NetpbmDecoder
from rasterframe_decode.png import ChunkRecord, PngDecoder
from rasterframe_decode.streams import describe_element, inflate_data_stream, sniff_format
from .const import ERRORS


def _error(code: str, detail: str, offset: int | None = None) -> dict:
    entry = {"code": code, "message": ERRORS[code], "detail": detail}
    if offset is not None:
        entry["offset"] = offset
    return entry


def _framing_error(e: FramingError) -> dict:
    code = e.code if e.code in ERRORS else "E_OTHER"
    return _error(code, str(e), e.offset)


def _result(fmt, errors, elements) -> dict:
    return {
        "status": "FAIL" if errors else "PASS",
        "format": fmt,
        "error_count": len(errors),
        "errors": errors,
        "elements": elements,
    }


def verify_image(
    path: Path,
    verify_crc: bool = True,
    unknown_chunks: str = UNKNOWN_CHUNKS_FATAL,
    resync: bool = False,
    inflate: bool = False,
) -> dict:
    errors = []
    elements = []
    path = Path(path)

    try:
        fmt = sniff_format(path)
    except OSError as e:
        errors.append(_error("E_IO", str(e)))
        return _result(None, errors, elements)

    if fmt is None:
        errors.append(_error("E_FORMAT", f"{path.name} is neither PNG nor Netpbm", 0))
        return _result(None, errors, elements)

    try:
        with open(path, "rb") as f:
            if fmt == "png":
                _verify_png(f, errors, elements, verify_crc, unknown_chunks, resync, inflate)
            else:
                _verify_netpbm(f, errors, elements)
    except OSError as e:
        errors.append(_error("E_IO", str(e)))

    return _result(fmt, errors, elements)


def _verify_netpbm(f, errors: list, elements: list) -> None:
    decoder = NetpbmDecoder(f, allow_wide_samples=True)
    for element in decoder:
        elements.append(describe_element(element))
        if isinstance(element, Region):
            size = f.seek(0, io.SEEK_END)
            if element.end > size:
                errors.append(_error(
                    "E_IMAGE_DATA",
                    f"Raster needs {element.length} bytes from offset {element.offset}, source has {size - element.offset}",
                    element.offset,
                ))
    if decoder.error is not None:
        errors.append(_framing_error(decoder.error))


def _verify_png(f, errors, elements, verify_crc, unknown_chunks, resync, inflate) -> None:
    decoder = PngDecoder(f, verify_crc=verify_crc, unknown_chunks=unknown_chunks)
    records: list[ChunkRecord] = []
    dropped_first = None

    while True:
        for element in decoder:
            elements.append(describe_element(element))
            if isinstance(element, ChunkRecord):
                records.append(element)

        err = decoder.error
        if err is None:
            break
        errors.append(_framing_error(err))
        if not (resync and isinstance(err, CrcMismatch)):
            return
        if not records and dropped_first is None:
            dropped_first = err.kind
        warn(f"CRC mismatch in {err.kind.name} chunk at offset {err.offset}. Resyncing to offset {err.next_offset}.")
        decoder.resync(err)

    # A corrupt IHDR was already reported as E_CRC; its successor is not an ordering fault.
    if dropped_first is ChunkKind.IHDR:
        return
    if not records or records[0].kind is not ChunkKind.IHDR:
        errors.append(_error("E_CHUNK_ORDER", "Datastream does not start with IHDR", records[0].offset if records else None))
        return

    if not inflate or errors:
        return
    header = decoder.image_header

    try:
        data = inflate_data_stream(f, records)
    except FramingError as e:
        errors.append(_framing_error(e))
        return

    # Adam7 pass sizes depend on pass geometry; only the plain layout is checked.
    if header.interlace_method == INTERLACE_NONE:
        expected = header.scanline_size * header.height
        if len(data) != expected:
            errors.append(_error("E_STREAM_SIZE", f"Inflated {len(data)} bytes, IHDR implies {expected}"))
