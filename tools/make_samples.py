import struct, sys, zlib
from pathlib import Path

from rasterframe_core.protocol import (
    PNG_SIGNATURE,
    CHUNK_LENGTH_FMT,
    IHDR_FMT,
    PGM_BINARY_MAGIC,
    PPM_BINARY_MAGIC,
    PAM_MAGIC,
)

# --- CONFIGURATION ---
WIDTH = 16
HEIGHT = 8
IDAT_SPLIT = 3  # number of IDAT chunks the zlib stream is cut into


def rgb_pixels(width, height):
    """Deterministic gradient, 3 bytes per pixel."""
    out = bytearray()
    for y in range(height):
        for x in range(width):
            out += bytes(((x * 16) & 0xFF, (y * 32) & 0xFF, ((x + y) * 8) & 0xFF))
    return bytes(out)


def chunk(kind, payload):
    crc = zlib.crc32(kind + payload) & 0xFFFFFFFF
    return struct.pack(CHUNK_LENGTH_FMT, len(payload)) + kind + payload + struct.pack(">I", crc)


def write_png(path, width=WIDTH, height=HEIGHT):
    pixels = rgb_pixels(width, height)
    stride = width * 3
    # Filter type 0 (None) per scanline
    raw = b"".join(b"\x00" + pixels[y * stride:(y + 1) * stride] for y in range(height))
    stream = zlib.compress(raw, 9)

    step = max(1, -(-len(stream) // IDAT_SPLIT))
    parts = [stream[i:i + step] for i in range(0, len(stream), step)]

    blob = PNG_SIGNATURE
    blob += chunk(b"IHDR", struct.pack(IHDR_FMT, width, height, 8, 2, 0, 0, 0))
    blob += chunk(b"tEXt", b"Comment\x00rasterframe sample")
    for part in parts:
        blob += chunk(b"IDAT", part)
    blob += chunk(b"IEND", b"")
    path.write_bytes(blob)
    return stream


def write_ppm(path, width=WIDTH, height=HEIGHT):
    head = PPM_BINARY_MAGIC + f"\n{width} {height}\n255\n".encode("ascii")
    path.write_bytes(head + rgb_pixels(width, height))


def write_pgm(path, width=WIDTH, height=HEIGHT):
    gray = bytes((x * y) & 0xFF for y in range(height) for x in range(width))
    head = PGM_BINARY_MAGIC + f"\n# rasterframe sample\n{width} {height}\n255\n".encode("ascii")
    path.write_bytes(head + gray)


def write_pam(path, width=WIDTH, height=HEIGHT):
    rgba = bytearray()
    px = rgb_pixels(width, height)
    for i in range(0, len(px), 3):
        rgba += px[i:i + 3] + b"\xff"
    head = PAM_MAGIC + (
        f"\nWIDTH {width}\nHEIGHT {height}\nDEPTH 4\nMAXVAL 255\nTUPLTYPE RGB_ALPHA\nENDHDR\n"
    ).encode("ascii")
    path.write_bytes(head + bytes(rgba))


def generate_samples(out_dir):
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    write_png(out / "sample.png")
    write_ppm(out / "sample.ppm")
    write_pgm(out / "sample.pgm")
    write_pam(out / "sample.pam")
    print(f"GENERATED: {out}")
    return out


if __name__ == "__main__":
    generate_samples(sys.argv[1] if len(sys.argv) > 1 else "samples")
