"""rasterframe - Image to evidence compiler."""
from __future__ import annotations

from pathlib import Path

import click

from rasterframe_core.protocol import UNKNOWN_CHUNKS_FATAL, UNKNOWN_CHUNKS_SKIP
from rasterframe_decode.evidence import compile_image_evidence


@click.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("out", type=click.Path(path_type=Path))
@click.option("--no-crc", is_flag=True, help="Record stored CRCs without checking them")
@click.option("--skip-unknown", is_flag=True, help="Step over unknown ancillary chunks instead of failing")
def main(image: Path, out: Path, no_crc: bool, skip_unknown: bool) -> None:
    """Compile an image's framing into an evidence table."""
    print(f"Compiling image: {image}")
    try:
        rows = compile_image_evidence(
            image,
            out,
            verify_crc=not no_crc,
            unknown_chunks=UNKNOWN_CHUNKS_SKIP if skip_unknown else UNKNOWN_CHUNKS_FATAL,
        )
    except (ValueError, OSError) as e:
        # Fail closed with a single-line reason, no stack trace.
        print(f"FATAL: {e}")
        raise SystemExit(1)

    print(f"PASS: Evidence generated at {out}")
    print(f"  Elements: {len(rows)}")
    print(f"  Payload bytes: {sum(r['length'] for r in rows if r['element'] in ('chunk', 'data'))}")


if __name__ == "__main__":
    main()
