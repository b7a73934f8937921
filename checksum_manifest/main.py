import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import config
from .core import ChecksumManifestApp
from .manifest.builder import OutputOptions
from .models import Algorithm
from .reconciler import VerifyOptions
from .reporting import RenderConfig, ReportRenderer
from .scanning.filesystem import FilterConfig


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Logs to stderr, and to log_file too when given."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="checksum-manifest",
        description="Build and verify checksum manifests for directory trees",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")

    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("build", help="Hash a directory tree and write its manifest")
    b.add_argument("root", type=Path, help="Directory to hash")
    b.add_argument("-a", "--algorithm", default=config.DEFAULT_ALGORITHM,
                   choices=[a.value for a in Algorithm], type=_algorithm_name,
                   help="Hash algorithm (default: %(default)s)")
    depth = b.add_mutually_exclusive_group()
    depth.add_argument("-r", "--recursive", action="store_true", help="Include subdirectories")
    depth.add_argument("-d", "--depth", type=_non_negative, default=None,
                       help="Include subdirectories down to this depth (implies --recursive)")
    b.add_argument("--hidden", action="store_true", help="Include hidden files and directories")
    b.add_argument("-i", "--include", action="append", default=[], metavar="GLOB",
                   help="Only hash files whose name matches GLOB (repeatable)")
    b.add_argument("-e", "--exclude", action="append", default=[], metavar="GLOB",
                   help="Never hash files whose name matches GLOB (repeatable)")
    fmt = b.add_mutually_exclusive_group()
    fmt.add_argument("--pretty", action="store_true", help="Indent the JSON manifest")
    fmt.add_argument("--simple", action="store_true",
                     help="Write the plain-text 'ALGORITHM  hash  path' format (cannot be verified)")
    b.add_argument("--no-output", action="store_true",
                   help="Print the manifest instead of writing it")
    b.add_argument("--progress", action="store_true", help="Show a progress bar")

    v = sub.add_parser("verify", help="Check a directory tree against its manifest")
    v.add_argument("root", type=Path, help="Directory to verify")
    v.add_argument("-m", "--manifest", type=Path, default=None,
                   help="Manifest file (default: look for <root-name>.<algorithm> in root)")
    v.add_argument("--ignore-missing", action="store_true", help="Do not fail on missing files")
    v.add_argument("-u", "--untracked", action="store_true", help="Report files not in the manifest")
    hidden = v.add_mutually_exclusive_group()
    hidden.add_argument("--hidden", dest="hidden", action="store_const", const=True, default=None,
                        help="Consider hidden files when looking for untracked files")
    hidden.add_argument("--no-hidden", dest="hidden", action="store_const", const=False,
                        help="Ignore hidden files when looking for untracked files")
    v.add_argument("--strict", action="store_true", help="Treat manifest schema warnings as errors")
    v.add_argument("-V", "--detail", action="store_true", help="Show per-file detail")
    v.add_argument("--progress", action="store_true", help="Show a progress bar")

    return p.parse_args(argv)


def _algorithm_name(text: str) -> str:
    try:
        return Algorithm.parse(text).value
    except ValueError:
        raise argparse.ArgumentTypeError(f"unknown algorithm: {text}")


def _non_negative(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError("depth must be >= 0")
    return value


def run_build(app: ChecksumManifestApp, args) -> int:
    filters = FilterConfig(
        recursive=args.recursive,
        max_depth=args.depth,
        include_hidden=args.hidden,
        include=args.include,
        exclude=args.exclude,
    )
    output = OutputOptions(pretty=args.pretty, simple=args.simple, no_output=args.no_output)
    result, code = app.build(args.root, Algorithm(args.algorithm), filters, output, progress=args.progress)
    if result is None:
        return code

    if args.no_output:
        sys.stdout.write(result.text)
    else:
        renderer = ReportRenderer(RenderConfig.detect(sys.stdout))
        print(renderer.render_manifest_summary(result))
    return code


def run_verify(app: ChecksumManifestApp, args) -> int:
    options = VerifyOptions(
        include_untracked=args.untracked,
        force_hidden=args.hidden,
        ignore_missing=args.ignore_missing,
        strict=args.strict,
        progress=args.progress,
    )
    summary, code = app.verify(args.root, args.manifest, options)
    if summary is None:
        return code

    render_config = RenderConfig.detect(sys.stdout, verbose=args.detail)
    print(ReportRenderer(render_config).render(summary, ignore_missing=args.ignore_missing))
    return code


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    app = ChecksumManifestApp()
    try:
        if args.command == "build":
            code = run_build(app, args)
        else:
            code = run_verify(app, args)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        code = config.EXIT_INTERRUPTED
    except Exception:
        logging.exception("Fatal error.")
        code = config.EXIT_RUNTIME_ERROR
    sys.exit(code)


if __name__ == "__main__":
    main()
