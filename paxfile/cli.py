"""Command-line interface for paxfile."""

from __future__ import annotations

import argparse
import json
import logging
import sys

import numpy as np

from paxfile.config import load_config
from paxfile.context import ParseContext
from paxfile.errors import PaxError
from paxfile.io import preview_file, read_raster
from paxfile.metadata import MetadataValue, MetaType
from paxfile.pgm import write_pgm


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="paxfile",
        description="Inspect and convert PAX raster files.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase log detail (repeat for more)")
    parser.add_argument("-c", "--config", default=None,
                        help="Path to a YAML settings file")
    sub = parser.add_subparsers(dest="command")

    # --- info ---
    info_p = sub.add_parser("info", help="Show the header and metadata of a PAX file")
    info_p.add_argument("file", help="PAX file to read")
    info_p.add_argument("--json", dest="output_json", action="store_true",
                        help="Output results as JSON")

    # --- preview ---
    pv_p = sub.add_parser("preview", help="Read only the header, skipping metadata")
    pv_p.add_argument("file", help="PAX file to preview")
    pv_p.add_argument("--json", dest="output_json", action="store_true")

    # --- meta ---
    meta_p = sub.add_parser("meta", help="Print one metadata value")
    meta_p.add_argument("file", help="PAX file to read")
    meta_p.add_argument("name", help="Metadata name")

    # --- to-pgm ---
    pgm_p = sub.add_parser("to-pgm", help="Convert a UCHAR, CHAR or FLOAT raster to PGM")
    pgm_p.add_argument("file", help="PAX file to convert")
    pgm_p.add_argument("output", help="Output .pgm path")
    pgm_p.add_argument("--ascii", action="store_true",
                       help="Write ASCII P2 instead of binary P5")

    return parser


def _jsonable(value):
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


def _meta_to_dict(entry: MetadataValue) -> dict:
    return {
        "name": entry.name,
        "type": entry.meta_type.tag,
        "dims": list(entry.dims),
        "location": entry.location.name,
        "index": entry.index,
        "value": _jsonable(entry.value),
    }


def _verbosity(args) -> int:
    if args.settings is None:
        return args.verbose
    return max(args.verbose, args.settings.verbosity)


def _context(args) -> ParseContext:
    return ParseContext(verbosity=_verbosity(args))


def cmd_info(args) -> int:
    """Execute the ``info`` subcommand."""
    raster = read_raster(args.file, args.settings, _context(args))
    groups = raster.metadata.grouped_by_location()
    entries = [entry for group in groups for entry in group]

    if args.output_json:
        d = {"header": raster.header.to_dict(),
             "metadata": [_meta_to_dict(e) for e in entries]}
        print(json.dumps(d, indent=2))
        return 0

    h = raster.header
    print(f"Type:        {raster.type_name} ({int(h.type_id)})")
    print(f"Version:     {h.version}")
    print(f"Element:     {h.bytes_per_value} bytes x {h.values_per_element} values")
    print(f"Dimensions:  {h.sequential_count} sequential x {h.strided_count} strided")
    print(f"Data length: {h.data_length} bytes")
    for entry in entries:
        if entry.meta_type is MetaType.COMMENT:
            print(f"  # {entry.value}")
        elif entry.is_array:
            print(f"  [{entry.meta_type.tag}] {entry.name} {list(entry.dims)}")
        else:
            print(f"  [{entry.meta_type.tag}] {entry.name} = {entry.value}")
    return 0


def cmd_preview(args) -> int:
    """Execute the ``preview`` subcommand."""
    header = preview_file(args.file, args.settings, _context(args))
    if args.output_json:
        print(json.dumps(header.to_dict(), indent=2))
    else:
        for key, value in header.to_dict().items():
            print(f"{key}: {value}")
    return 0


def cmd_meta(args) -> int:
    """Execute the ``meta`` subcommand."""
    raster = read_raster(args.file, args.settings, _context(args))
    value = raster.get_metadata(args.name)
    print(json.dumps(_jsonable(value)) if isinstance(value, np.ndarray) else value)
    return 0


def cmd_to_pgm(args) -> int:
    """Execute the ``to-pgm`` subcommand."""
    raster = read_raster(args.file, args.settings, _context(args))
    written = write_pgm(args.output, raster, binary=not args.ascii)
    print(f"Wrote {written} bytes to {args.output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    dispatch = {
        "info": cmd_info,
        "preview": cmd_preview,
        "meta": cmd_meta,
        "to-pgm": cmd_to_pgm,
    }
    handler = dispatch.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    try:
        args.settings = load_config(args.config) if args.config else None
        verbosity = _verbosity(args)
        level = logging.WARNING if verbosity == 0 else logging.INFO if verbosity == 1 else logging.DEBUG
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
        return handler(args)
    except (PaxError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
