import json
from pathlib import Path
import click
from rasterframe_core.protocol import UNKNOWN_CHUNKS_FATAL, UNKNOWN_CHUNKS_SKIP
from .logic import verify_image

@click.group()
def main():
    pass

@main.command("image")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--no-crc", is_flag=True, help="Record stored CRCs without checking them")
@click.option("--skip-unknown", is_flag=True, help="Step over unknown ancillary chunks instead of failing")
@click.option("--resync", is_flag=True, help="Continue past CRC mismatches using the chunk length")
@click.option("--inflate", is_flag=True, help="Inflate the IDAT stream and check its size against IHDR")
def image_cmd(path: Path, no_crc: bool, skip_unknown: bool, resync: bool, inflate: bool):
    result = verify_image(
        path,
        verify_crc=not no_crc,
        unknown_chunks=UNKNOWN_CHUNKS_SKIP if skip_unknown else UNKNOWN_CHUNKS_FATAL,
        resync=resync,
        inflate=inflate,
    )
    click.echo(json.dumps(result, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    if result["status"] != "PASS":
        raise SystemExit(1)

if __name__ == "__main__":
    main()
