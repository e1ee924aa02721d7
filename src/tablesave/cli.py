from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import yaml

from . import __version__
from .channel import FileChannel, MemoryChannel
from .config import CodecConfig, load_config
from .errors import SchedulingInvariantError, TableSaveError
from .reader import load_script
from .saver import TableSaver, generate_script, read_transfer
from .table import Table, isomorphic

logger = logging.getLogger("tablesave.cli")


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="[%(levelname)s] %(name)s: %(message)s")


def load_document(path: str) -> Table:
    """Read a JSON or YAML document and convert it to a table graph.

    YAML anchors and aliases become shared tables.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except OSError as exc:
        raise TableSaveError(f"Unable to read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise TableSaveError(f"Invalid document {path}: {exc}") from exc
    if not isinstance(data, (dict, list)):
        raise TableSaveError(f"{path} must contain a mapping or a list, got {type(data).__name__}")
    try:
        return Table.from_python(data)
    except (KeyError, ValueError, TypeError) as exc:
        raise TableSaveError(f"{path} cannot be stored as a table: {exc}") from exc


def cmd_encode(args: argparse.Namespace, config: CodecConfig) -> int:
    graph = load_document(args.input)
    if args.output:
        channel = FileChannel(args.output)
        channel.clear()
        TableSaver(config, channel).save(graph, args.name)
        print(args.output)
    else:
        memory = MemoryChannel()
        TableSaver(config, memory).save(graph, args.name)
        sys.stdout.write("".join(memory.messages))
    return 0


def cmd_decode(args: argparse.Namespace, config: CodecConfig) -> int:
    saver = TableSaver(config, FileChannel(args.frames), output_dir=args.output_dir)
    path = saver.receive()
    print(path)
    return 0


def cmd_render(args: argparse.Namespace, config: CodecConfig) -> int:
    graph = load_document(args.input)
    sys.stdout.write(generate_script(graph, config=config))
    return 0


def cmd_verify(args: argparse.Namespace, config: CodecConfig) -> int:
    graph = load_document(args.input)
    channel = MemoryChannel()
    TableSaver(config, channel).save(graph, Path(args.input).name)
    transfer = read_transfer(channel, config.frame_tag)
    if not isomorphic(graph, transfer.graph):
        logger.error("Decoded graph differs from %s", args.input)
        return 1
    script = generate_script(transfer.graph, transfer.externals, config)
    reloaded = load_script(script)
    if not isinstance(reloaded, Table) or not isomorphic(graph, reloaded):
        logger.error("Generated script does not rebuild %s", args.input)
        return 1
    print(f"ok: {len(channel.messages)} messages, {len(script)} characters")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tablesave",
        description="Persist table graphs through a framed channel as rebuildable scripts",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-c", "--config", help="Path to a YAML codec config")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")
    sub = p.add_subparsers(dest="cmd")

    encode_p = sub.add_parser("encode", help="Encode a JSON/YAML document into frames")
    encode_p.add_argument("input", help="Document to encode")
    encode_p.add_argument("--name", required=True, help="Destination name carried with the graph")
    encode_p.add_argument("-o", "--output", help="Frame file to write (default: stdout)")
    encode_p.set_defaults(func=cmd_encode)

    decode_p = sub.add_parser("decode", help="Decode a frame file and write the script")
    decode_p.add_argument("frames", help="Frame file produced by 'encode'")
    decode_p.add_argument("--output-dir", type=Path, help="Directory for the generated script")
    decode_p.set_defaults(func=cmd_decode)

    render_p = sub.add_parser("render", help="Print the script for a JSON/YAML document")
    render_p.add_argument("input", help="Document to render")
    render_p.set_defaults(func=cmd_render)

    verify_p = sub.add_parser("verify", help="Round-trip a document and check the result")
    verify_p.add_argument("input", help="Document to verify")
    verify_p.set_defaults(func=cmd_verify)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2
    try:
        config = load_config(args.config)
        return args.func(args, config)
    except SchedulingInvariantError:
        logger.exception("Internal scheduling error")
        return 1
    except TableSaveError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
