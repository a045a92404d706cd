# src/featuremanifest/cli.py

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from featuremanifest import log_utils
from featuremanifest.config import ManifestSettings, load_settings
from featuremanifest.exceptions import ConfigurationError, ManifestError
from featuremanifest.manifest import WebFeaturesData, load_manifest_file
from featuremanifest.pipeline import fetch_web_features_manifest


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser for the `featuremanifest` command.

    Returns:
        argparse.ArgumentParser: Parser with the fetch, parse and show subcommands.
    """
    parser = argparse.ArgumentParser(
        description="featuremanifest - Web features manifest downloader"
    )
    parser.add_argument(
        "--log-level",
        help="Log level for console output (DEBUG, INFO, WARNING, ERROR)",
    )
    subparsers = parser.add_subparsers(dest="command")

    fetch_parser = subparsers.add_parser(
        "fetch", help="Download and decode the manifest from the latest release"
    )
    fetch_parser.add_argument("--config", help="Path to a YAML configuration file")
    fetch_parser.add_argument("--owner", help="Repository owner")
    fetch_parser.add_argument("--repo", help="Repository name")
    fetch_parser.add_argument("--asset-name", help="Exact name of the manifest asset")
    fetch_parser.add_argument(
        "--timeout", type=float, help="Seconds allowed for the download"
    )
    fetch_parser.add_argument(
        "--output", "-o", help="Write the decoded manifest as JSON to this file"
    )

    parse_parser = subparsers.add_parser(
        "parse", help="Decode a manifest stored on disk (.json or .json.gz)"
    )
    parse_parser.add_argument("file", help="Manifest file")

    show_parser = subparsers.add_parser("show", help="List the tests of a web feature")
    show_parser.add_argument("feature", help="Web feature identifier")
    show_parser.add_argument(
        "--file", help="Read the manifest from this file instead of downloading it"
    )
    show_parser.add_argument("--config", help="Path to a YAML configuration file")

    return parser


def _resolve_settings(args: argparse.Namespace) -> ManifestSettings:
    settings = load_settings(getattr(args, "config", None))
    return settings.with_overrides(
        repo_owner=getattr(args, "owner", None),
        repo_name=getattr(args, "repo", None),
        asset_name=getattr(args, "asset_name", None),
    )


def _report(manifest: WebFeaturesData) -> None:
    log_utils.logger.info(
        f"Manifest contains {len(manifest)} features covering {manifest.test_count()} tests"
    )


def _write_output(manifest: WebFeaturesData, output: str) -> None:
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(manifest.to_json_dict(), f, indent=2)
        f.write("\n")
    log_utils.logger.info(f"Wrote decoded manifest to {path}")


async def _load(args: argparse.Namespace) -> WebFeaturesData:
    if getattr(args, "file", None):
        return await load_manifest_file(args.file)
    settings = _resolve_settings(args)
    return await fetch_web_features_manifest(
        settings, timeout=getattr(args, "timeout", None)
    )


def run(args: argparse.Namespace) -> int:
    """
    Execute the subcommand selected by `args`.

    Returns:
        int: Process exit code; 0 on success, 1 on manifest, configuration or file errors.
    """
    try:
        manifest = asyncio.run(_load(args))
    except ManifestError as e:
        stage = f" (while {e.stage})" if e.stage else ""
        log_utils.logger.error(f"Failed to load web features manifest{stage}: {e}")
        return 1
    except ConfigurationError as e:
        log_utils.logger.error(f"Configuration error: {e}")
        return 1
    except OSError as e:
        log_utils.logger.error(f"Failed to read manifest file: {e}")
        return 1

    if args.command == "show":
        tests = sorted(manifest.tests_for_feature(args.feature))
        if not tests:
            log_utils.logger.warning(f"No tests found for feature {args.feature}")
        for test in tests:
            print(test)
        return 0

    _report(manifest)
    if getattr(args, "output", None):
        try:
            _write_output(manifest, args.output)
        except OSError as e:
            log_utils.logger.error(f"Failed to write {args.output}: {e}")
            return 1
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the `featuremanifest` console script.

    Parses `argv` (or sys.argv), applies the requested log level and exits
    with the subcommand's status. Without a subcommand, help is printed.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        log_utils.set_log_level(args.log_level)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    sys.exit(run(args))


if __name__ == "__main__":
    main()
