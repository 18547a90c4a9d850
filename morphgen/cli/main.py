"""morphgen CLI - Command-line interface for companion code generation.

This module provides the main CLI entrypoint for morphgen, generating
``<stem>.morphy.dart`` part files for annotated Dart sources.
"""

import argparse
import hashlib
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from morphgen.core.config import get_max_workers, get_output_suffix, load_config
from morphgen.core.engine import GenerationEngine, GenerationResult
from morphgen.dart.manifest import load_options_manifest

logger = logging.getLogger(__name__)

HEADER = "// GENERATED CODE - DO NOT MODIFY BY HAND"
DIGEST_PREFIX = "// morphgen-digest: "


def render_part_file(source_path: Path, results: List[GenerationResult]) -> str:
    """Full text of the generated part file for one source, digest header included."""
    body = f"part of '{source_path.name}';\n\n"
    body += "\n".join(r.output for r in results if r.output is not None)
    digest = hashlib.sha256(body.encode("utf-8")).hexdigest()
    return f"{HEADER}\n{DIGEST_PREFIX}{digest}\n\n{body}"


def read_digest(path: Path) -> Optional[str]:
    """Digest recorded in an existing generated file, if any."""
    if not path.is_file():
        return None
    with open(path, "r", encoding="utf-8") as f:
        for _ in range(3):
            line = f.readline()
            if line.startswith(DIGEST_PREFIX):
                return line[len(DIGEST_PREFIX):].strip()
    return None


def write_if_changed(path: Path, text: str) -> bool:
    """Write ``text`` unless the file already carries the same digest.

    Returns:
        True if the file was written
    """
    digest = text.splitlines()[1][len(DIGEST_PREFIX):]
    if read_digest(path) == digest:
        logger.info(f"Unchanged: {path}")
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.info(f"Wrote {path}")
    return True


def main(argv: Optional[List[str]] = None):
    """Main CLI entrypoint for morphgen."""
    parser = argparse.ArgumentParser(
        prog="morphgen",
        description="morphgen - companion code generation for @Morphy declarations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate part files next to the sources
  morphgen generate lib/models/pet.dart lib/models/owner.dart

  # Write them to another directory, with option overrides
  morphgen generate lib/models/*.dart --out build/gen --options morphgen.yaml

  # Parallel generation, verbose
  morphgen generate lib/models/*.dart --jobs 4 -v

  # Fail if any generated file is out of date (CI)
  morphgen generate lib/models/*.dart --check

Note:
  Defaults come from morphgen.json (or $MORPHGEN_CONFIG), e.g.
  {"generation": {"max_workers": 4, "output_suffix": ".morphy.dart"}}.
"""
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Generate command
    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate part files for Dart sources"
    )
    generate_parser.add_argument(
        "inputs",
        nargs="+",
        help="Dart source files"
    )
    generate_parser.add_argument(
        "--out",
        help="Output directory (default: next to each source)"
    )
    generate_parser.add_argument(
        "--options",
        help="YAML options manifest overriding annotation parameters"
    )
    generate_parser.add_argument(
        "--suffix",
        help="Output file suffix (default: from morphgen.json or .morphy.dart)"
    )
    generate_parser.add_argument(
        "--jobs",
        type=int,
        default=None,
        help="Worker threads (default: from morphgen.json or 1)"
    )
    generate_parser.add_argument(
        "--check",
        action="store_true",
        help="Do not write; exit 1 if any output is out of date"
    )
    generate_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    # Demo command
    demo_parser = subparsers.add_parser(
        "demo",
        help="Run demo with the bundled sample sources"
    )
    demo_parser.add_argument(
        "--out",
        help="Output directory for generated files"
    )
    demo_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args(argv)

    # Setup logging
    if hasattr(args, 'verbose') and args.verbose:
        logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')

    # Handle commands
    if args.command == "generate":
        return cmd_generate(args)
    elif args.command == "demo":
        return cmd_demo(args)
    else:
        parser.print_help()
        return 1


def cmd_generate(args):
    """Handle generate command."""
    inputs = [Path(p) for p in args.inputs]
    missing = [p for p in inputs if not p.is_file()]
    if missing:
        for path in missing:
            print(f"Error: Input file not found: {path}", file=sys.stderr)
        return 1

    config = load_config()
    suffix = args.suffix or get_output_suffix(config)
    try:
        jobs = args.jobs if args.jobs is not None else get_max_workers(config)
        manifest = load_options_manifest(args.options) if args.options else None
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    engine = GenerationEngine(max_workers=max(1, jobs), config=config)
    for path in inputs:
        engine.register_source(
            path.read_text(encoding="utf-8"),
            str(path),
            options_by_name=manifest.declarations if manifest else None,
            default_options=manifest.defaults if manifest else None,
        )

    results = engine.generate_all()
    grouped: Dict[str, List[GenerationResult]] = engine.results_by_source(results)

    for issue in engine.registration_issues:
        print(str(issue), file=sys.stderr)
    for result in results:
        for issue in result.issues:
            print(str(issue), file=sys.stderr)

    written = 0
    stale = 0
    for path in inputs:
        group = grouped.get(str(path))
        if not group:
            continue
        out_dir = Path(args.out) if args.out else path.parent
        target = out_dir / (path.stem + suffix)
        text = render_part_file(path, group)
        if args.check:
            if read_digest(target) != text.splitlines()[1][len(DIGEST_PREFIX):]:
                print(f"Out of date: {target}")
                stale += 1
            continue
        if write_if_changed(target, text):
            written += 1
            print(f"Wrote {target}")

    failed = [r for r in results if not r.ok]
    print(
        f"{len(results)} declaration(s), {len(failed)} failed, "
        f"{len(engine.registration_issues)} registration issue(s), {written} file(s) written"
    )
    if failed or any(i.is_error for i in engine.registration_issues) or stale:
        return 1
    return 0


def cmd_demo(args):
    """Handle demo command."""
    print("Running morphgen demo with bundled sample sources...")
    print()

    from morphgen.dart.demo import demo_generate as run_demo

    results, _ = run_demo(output_dir=args.out, verbose=True)
    return 0 if all(r.ok for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
