"""
Main CLI Entry Point

Dye color analyzer: classify item colors against the catalog and manage
the scanned collection.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dye_analyzer.context import AppContext, build_context
from dye_analyzer.core.color_catalog import CatalogError
from dye_analyzer.data.catalog_loader import CatalogLoadError
from dye_analyzer.data.config_manager import DEFAULT_TOGGLES, SettingsError
from dye_analyzer.data.record_store import JsonRecordPersistence
from dye_analyzer.pipeline import Observation
from dye_analyzer.services.collection_service import CollectionError, export_text
from dye_analyzer.utils.color_space import is_valid_hex, normalize_hex


def setup_logging(debug: bool = False):
    level = logging.DEBUG if debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )

    logging.basicConfig(level=level, handlers=[handler], force=True)


def make_context(args, load_collection: bool = False) -> AppContext:
    persistence = JsonRecordPersistence(args.collection) if args.collection else None
    return build_context(
        catalog_file=args.catalog,
        settings_file=args.settings,
        persistence=persistence,
        load_collection=load_collection,
    )


def read_observations(path: Path) -> List[Observation]:
    """
    Read a JSON list of observations:
        [{"id": "...", "display_name": "...", "hex": "FF0000", "location": [1, 64, -3]}, ...]
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Observation file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of observations")
    return [Observation.from_dict(item) for item in data]


# ================================================================
# classify / pattern
# ================================================================


def cmd_classify(args):
    """Rank catalog colors for one hex"""
    if not is_valid_hex(args.hex):
        print(f"Error: Invalid hex code: {args.hex}")
        return 1
    hex_code = normalize_hex(args.hex)

    ctx = make_context(args)
    policy = ctx.policy()
    result = ctx.ranker.classify(hex_code, args.name, policy)

    if result is None:
        print(f"No matches found for #{hex_code}")
        return 0

    if args.json:
        payload = {
            "hex": hex_code,
            "tier": result.tier,
            "top3": [
                {
                    "name": c.name,
                    "hex": c.target_hex,
                    "delta_e": round(c.delta_e, 4),
                    "absolute_distance": c.absolute_distance,
                    "tier": c.tier,
                    "source": c.source.value,
                }
                for c in result.top3
            ],
            "pattern": ctx.detector.detect_pattern(hex_code) if policy.patterns_enabled else None,
            "word": ctx.detector.detect_word_match(hex_code) if policy.words_enabled else None,
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    print(f"\n#{hex_code}  (tier {result.tier})")
    print("\n{:<4} {:<32} {:<8} {:>8} {:>6} {:>5} {:<7}".format("#", "Match", "Hex", "ΔE", "Abs", "Tier", "Source"))
    print("-" * 76)
    for i, c in enumerate(result.top3, start=1):
        print(
            "{:<4} {:<32} {:<8} {:>8.2f} {:>6} {:>5} {:<7}".format(
                i, c.name[:32], c.target_hex, c.delta_e, c.absolute_distance, c.tier, c.source.value
            )
        )

    if policy.patterns_enabled:
        pattern = ctx.detector.detect_pattern(hex_code)
        if pattern:
            print(f"\nPattern: {pattern}")
    if policy.words_enabled:
        word = ctx.detector.detect_word_match(hex_code)
        if word:
            print(f"Word: {word}")
    print()
    return 0


def cmd_pattern(args):
    """Pattern and word detection only"""
    hex_code = normalize_hex(args.hex)
    ctx = make_context(args)
    print(f"Pattern: {ctx.detector.detect_pattern(hex_code) or 'none'}")
    print(f"Word: {ctx.detector.detect_word_match(hex_code) or 'none'}")
    return 0


# ================================================================
# custom / word / toggle
# ================================================================


def cmd_custom(args):
    ctx = make_context(args)

    if args.custom_command == "add":
        entry = ctx.add_custom_color(args.name, args.hex)
        print(f"Added custom color {entry.name} (#{entry.hex})")
    elif args.custom_command == "remove":
        entry = ctx.remove_custom_color(args.name)
        print(f"Removed custom color {entry.name} (#{entry.hex})")
    else:
        colors = ctx.catalog.custom_colors()
        if not colors:
            print("No custom colors.")
            return 0
        for name, hex_code in colors.items():
            print(f"  {name:<32} #{hex_code}")
        print(f"\nTotal: {len(colors)} custom colors\n")
    return 0


def cmd_word(args):
    ctx = make_context(args)

    if args.word_command == "add":
        pattern = ctx.add_word(args.word, args.pattern)
        print(f"Added word {args.word.upper()} ({pattern})")
    elif args.word_command == "remove":
        pattern = ctx.remove_word(args.word)
        print(f"Removed word {args.word.upper()} ({pattern})")
    else:
        words = ctx.config.word_list()
        if not words:
            print("No words.")
            return 0
        for word, pattern in words.items():
            print(f"  {word:<20} {pattern}")
        print(f"\nTotal: {len(words)} words\n")
    return 0


def cmd_toggle(args):
    ctx = make_context(args)
    state = ctx.toggle(args.option)
    print(f"{ctx.config.resolve_toggle(args.option)}: {'enabled' if state else 'disabled'}")
    return 0


# ================================================================
# scan / export
# ================================================================


def cmd_scan(args):
    """Ingest observations into the collection"""
    observations = read_observations(args.file)
    ctx = make_context(args, load_collection=True)
    try:
        ctx.collection.start_scan()
        added = ctx.collection.observe_all(observations)
        ctx.collection.stop_scan()
    finally:
        ctx.close()

    print(f"Scanned {len(observations)} items, added {len(added)} new records")
    print(f"Collection size: {len(ctx.store)}")
    return 0


def cmd_export(args):
    """Classify observations without storing them"""
    observations = read_observations(args.file)
    ctx = make_context(args)
    try:
        ctx.collection.start_export()
        ctx.collection.observe_all(observations)
        records = ctx.collection.stop_export()
    finally:
        ctx.close()

    text = export_text(records)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Exported {len(records)} pieces to {args.output}")
    else:
        print(text, end="")
    return 0


# ================================================================
# collection
# ================================================================


def cmd_collection(args):
    ctx = make_context(args, load_collection=True)
    try:
        return _dispatch_collection(ctx, args)
    finally:
        ctx.close()


def _dispatch_collection(ctx: AppContext, args) -> int:
    collection = ctx.collection

    if args.collection_command == "list":
        records = collection.records()
        if not records:
            print("Collection is empty.")
            return 0
        print("\n{:<28} {:<8} {:<32} {:>8} {:>5}".format("Name", "Hex", "Best Match", "ΔE", "Tier"))
        print("-" * 85)
        for record in sorted(records, key=lambda r: r.observed_at):
            best = record.best_match
            print(
                "{:<28} {:<8} {:<32} {:>8} {:>5}".format(
                    record.display_name[:28],
                    record.hex,
                    (best.name if best else "N/A")[:32],
                    f"{best.delta_e:.2f}" if best else "-",
                    best.tier if best else "-",
                )
            )
        print(f"\nTotal: {len(records)} records\n")

    elif args.collection_command == "stats":
        stats = collection.stats()
        print(f"\nTotal: {stats.total}")
        for kind, buckets in stats.buckets.items():
            print(f"  {kind:<7} T1<: {buckets['t0']:<5} T1: {buckets['t1']:<5} T2: {buckets['t2']}")
        print(f"  T3: {stats.tiers[3]}  Unmatched: {stats.unmatched}")
        print(f"  Dupes: {stats.dupes}  Words: {stats.words}  Patterns: {stats.patterns}\n")

    elif args.collection_command == "search":
        result = collection.search(args.hexes)
        if result.invalid:
            print(f"Invalid hex codes: {', '.join(result.invalid)}")
        if not result.valid:
            print("Error: No valid hex codes provided")
            return 1
        print(f"Searching for {len(result.valid)} hex code(s)")
        if not result.records:
            print("No pieces found!")
            return 0
        print(f"Found {len(result.records)} piece(s):")
        for record in result.records:
            where = f" at {record.location}" if record.location is not None else ""
            print(f"  {record.display_name} #{record.hex}{where}")
        if result.locations:
            print(f"Found in {len(result.locations)} location(s)")

    elif args.collection_command == "dupes":
        dupes = collection.dupes()
        if not dupes:
            print("No dupes.")
            return 0
        for hex_code, ids in sorted(dupes.items()):
            print(f"  #{hex_code}: {len(ids)} pieces")
        print(f"\nTotal: {len(dupes)} duplicated hex codes\n")

    elif args.collection_command == "rebuild":
        count = collection.rebuild(args.what)
        ctx.store.force_sync()
        print(f"Rebuilt {args.what} for {count} records")

    elif args.collection_command == "clear":
        if not args.yes:
            print("Refusing to clear without --yes")
            return 1
        size = len(ctx.store)
        collection.clear()
        print(f"Cleared {size} records")

    return 0


# ================================================================
# main
# ================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dye Color Analyzer", formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--catalog", type=Path, help="Catalog JSON (default: $DYE_ANALYZER_CATALOG)")
    parser.add_argument("--settings", type=Path, help="Settings JSON (default: $DYE_ANALYZER_SETTINGS)")
    parser.add_argument("--collection", type=Path, help="Collection JSON (default: $DYE_ANALYZER_COLLECTION)")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # ========== classify ==========
    classify_parser = subparsers.add_parser(
        "classify",
        help="Rank catalog colors for a hex",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dye-analyzer classify FF0000
  dye-analyzer classify "#1a2b3c" --name "Velvet Top Hat" --json
        """,
    )
    classify_parser.add_argument("hex", help="Hex code (with or without #)")
    classify_parser.add_argument("--name", help="Item name, used for piece filters")
    classify_parser.add_argument("--json", action="store_true", help="Print JSON")

    pattern_parser = subparsers.add_parser("pattern", help="Detect hex patterns and words")
    pattern_parser.add_argument("hex", help="Hex code")

    # ========== custom ==========
    custom_parser = subparsers.add_parser("custom", help="Custom color management")
    custom_sub = custom_parser.add_subparsers(dest="custom_command", help="Custom color command")
    custom_add = custom_sub.add_parser("add", help="Add or replace a custom color")
    custom_add.add_argument("name", help="Color name")
    custom_add.add_argument("hex", help="Hex code")
    custom_remove = custom_sub.add_parser("remove", help="Remove a custom color")
    custom_remove.add_argument("name", help="Color name")
    custom_sub.add_parser("list", help="List custom colors")

    # ========== word ==========
    word_parser = subparsers.add_parser("word", help="Word list management")
    word_sub = word_parser.add_subparsers(dest="word_command", help="Word command")
    word_add = word_sub.add_parser("add", help="Add or replace a word pattern")
    word_add.add_argument("word", help="Word label")
    word_add.add_argument("pattern", help="1-6 chars of 0-9, A-F, X (wildcard)")
    word_remove = word_sub.add_parser("remove", help="Remove a word")
    word_remove.add_argument("word", help="Word label")
    word_sub.add_parser("list", help="List words")

    toggle_parser = subparsers.add_parser("toggle", help="Flip a setting")
    toggle_parser.add_argument("option", help=f"One of: {', '.join(DEFAULT_TOGGLES)} (or short alias)")

    # ========== scan / export ==========
    scan_parser = subparsers.add_parser("scan", help="Add observations to the collection")
    scan_parser.add_argument("file", type=Path, help="JSON list of observations")

    export_parser = subparsers.add_parser("export", help="Classify observations without storing them")
    export_parser.add_argument("file", type=Path, help="JSON list of observations")
    export_parser.add_argument("--output", type=Path, help="Write export text to a file")

    # ========== collection ==========
    collection_parser = subparsers.add_parser("collection", help="Collection commands")
    collection_sub = collection_parser.add_subparsers(dest="collection_command", help="Collection command")
    collection_sub.add_parser("list", help="List records")
    collection_sub.add_parser("stats", help="Tier / dupe / word / pattern counts")
    search_parser = collection_sub.add_parser("search", help="Find records by hex")
    search_parser.add_argument("hexes", nargs="+", help="Hex codes")
    collection_sub.add_parser("dupes", help="Hex codes held by more than one record")
    rebuild_parser = collection_sub.add_parser("rebuild", help="Re-run analysis over stored records")
    rebuild_parser.add_argument(
        "--what", choices=["words", "patterns", "matches", "analysis"], default="analysis", help="Rebuild pass"
    )
    clear_parser = collection_sub.add_parser("clear", help="Delete every record")
    clear_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.debug)
    logger = logging.getLogger(__name__)

    if not args.command:
        parser.print_help()
        return 0

    # custom / word default to list
    if args.command == "custom" and not args.custom_command:
        args.custom_command = "list"
    if args.command == "word" and not args.word_command:
        args.word_command = "list"
    if args.command == "collection" and not args.collection_command:
        parser.print_help()
        return 0

    handlers = {
        "classify": cmd_classify,
        "pattern": cmd_pattern,
        "custom": cmd_custom,
        "word": cmd_word,
        "toggle": cmd_toggle,
        "scan": cmd_scan,
        "export": cmd_export,
        "collection": cmd_collection,
    }

    try:
        return handlers[args.command](args)

    except (CatalogError, SettingsError, CollectionError, CatalogLoadError) as e:
        print(f"Error: {e}")
        return 1

    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Input error: {e}")
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
