import sys
from pathlib import Path

# Sample PNG layout: signature(8) + IHDR chunk(8 + 13 + 4) = 33, then the tEXt
# chunk header (8). Offset 41 is the first tEXt payload byte.
DEFAULT_OFFSET = 8 + 8 + 13 + 4 + 8

def main():
    if len(sys.argv) not in (2, 3):
        print("Usage: corrupt_one_byte.py <file> [offset]")
        raise SystemExit(2)

    p = Path(sys.argv[1])
    idx = int(sys.argv[2]) if len(sys.argv) == 3 else DEFAULT_OFFSET
    b = bytearray(p.read_bytes())
    if idx >= len(b):
        print(f"Offset {idx} is beyond end of file ({len(b)} bytes).")
        raise SystemExit(2)

    # Flip the lowest bit; the chunk CRC no longer matches.
    b[idx] ^= 0x01
    p.write_bytes(bytes(b))
    print(f"Corrupted 1 byte at offset {idx} in {p}")

if __name__ == "__main__":
    main()
