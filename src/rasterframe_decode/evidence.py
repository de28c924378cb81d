"""Element evidence table: one parquet row per decoder element."""
from __future__ import annotations

import hashlib
import io
import json
from pathlib import Path
from typing import BinaryIO

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from rasterframe_core.decoder import Signature
from rasterframe_core.errors import InvalidImageData
from rasterframe_core.protocol import UNKNOWN_CHUNKS_FATAL
from rasterframe_core.regions import Region
from rasterframe_decode.netpbm import NetpbmDecoder, NetpbmHeader
from rasterframe_decode.png import ChunkRecord, PngDecoder
from rasterframe_decode.streams import describe_element, sniff_format

EVIDENCE_SCHEMA = pa.schema(
    [
        ("index", pa.int32()),
        ("element", pa.string()),
        ("kind", pa.string()),
        ("offset", pa.int64()),
        ("length", pa.int64()),
        ("status", pa.string()),
        ("content_hash", pa.string()),
    ]
)

CANONICAL_JSON_KW = {"sort_keys": True, "separators": (",", ":"), "ensure_ascii": False}


def _netpbm_rows(f: BinaryIO) -> tuple[list, list[dict]]:
    decoder = NetpbmDecoder(f, allow_wide_samples=True)
    elements = list(decoder)
    if decoder.error is not None:
        raise decoder.error

    signature, header, data = elements
    size = f.seek(0, io.SEEK_END)
    if data.end > size:
        raise InvalidImageData(f"Raster ends at {data.end}, source ends at {size}", offset=data.offset)

    magic = signature.value.decode("ascii")
    sig_len = len(signature.value)
    spans = [
        ("signature", magic, Region(0, sig_len)),
        ("header", header.tupltype.decode("ascii"), Region(sig_len, data.offset - sig_len)),
        ("data", "RASTER", data),
    ]
    return elements, [_row(i, name, kind, region, "VERIFIED", f) for i, (name, kind, region) in enumerate(spans)]


def _png_rows(f: BinaryIO, verify_crc: bool, unknown_chunks: str) -> tuple[list, list[dict]]:
    decoder = PngDecoder(f, verify_crc=verify_crc, unknown_chunks=unknown_chunks)
    elements = list(decoder)
    if decoder.error is not None:
        raise decoder.error

    chunk_status = "VERIFIED" if verify_crc else "UNCHECKED"
    rows = []
    for i, element in enumerate(elements):
        if isinstance(element, Signature):
            rows.append(_row(i, "signature", "PNG", Region(0, len(element.value)), "VERIFIED", f))
        else:
            rows.append(_row(i, "chunk", element.kind.name, element.region, chunk_status, f))
    return elements, rows


def _row(index: int, element: str, kind: str, region: Region, status: str, f: BinaryIO) -> dict:
    return {
        "index": index,
        "element": element,
        "kind": kind,
        "offset": int(region.offset),
        "length": int(region.length),
        "status": status,
        "content_hash": region.content_hash(f),
    }


def compile_image_evidence(
    image_path: Path,
    out_path: Path,
    verify_crc: bool = True,
    unknown_chunks: str = UNKNOWN_CHUNKS_FATAL,
) -> list[dict]:
    """Build evidence/elements.parquet and manifest.json for one image.

    Fails closed: any framing error is raised and nothing is written.
    """
    image_path = Path(image_path)
    out_path = Path(out_path)

    fmt = sniff_format(image_path)
    if fmt is None:
        raise ValueError(f"FATAL: {image_path.name} is neither PNG nor Netpbm")

    with open(image_path, "rb") as f:
        if fmt == "png":
            elements, rows = _png_rows(f, verify_crc, unknown_chunks)
        else:
            elements, rows = _netpbm_rows(f)

    source_hash = hashlib.sha256(image_path.read_bytes()).hexdigest()

    (out_path / "evidence").mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(rows)
    table = pa.Table.from_pandas(df, schema=EVIDENCE_SCHEMA, preserve_index=False)
    pq.write_table(table, out_path / "evidence/elements.parquet")

    manifest = {
        "spec": "1.0",
        "format": fmt,
        "source": image_path.name,
        "source_hash": source_hash,
        "element_count": len(rows),
        "elements": [describe_element(e) for e in elements],
        "files": ["evidence/elements.parquet"],
    }
    (out_path / "manifest.json").write_bytes(json.dumps(manifest, **CANONICAL_JSON_KW).encode("utf-8"))
    return rows
