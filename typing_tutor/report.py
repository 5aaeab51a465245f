# ABOUTME: Lifetime progress summary and weakest-key report
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .recorder import SessionRecord
from .storage import ProgressStore
from .utils import ConfigManager, setup_logging


def summarize_sessions(records: Sequence[SessionRecord]) -> Dict[str, Any]:
    """Aggregate totals and averages over completed sessions."""
    if not records:
        return {
            "total_sessions": 0,
            "total_characters": 0,
            "average_wpm": 0,
            "average_accuracy": 0.0,
            "best_wpm": 0,
            "total_active_minutes": 0.0,
        }

    wpms = np.array([r.wpm for r in records], dtype=float)
    accuracies = np.array([r.accuracy for r in records], dtype=float)
    return {
        "total_sessions": len(records),
        "total_characters": int(sum(r.total_characters for r in records)),
        "average_wpm": int(np.floor(wpms.mean() + 0.5)),
        "average_accuracy": float(np.round(accuracies.mean(), 1)),
        "best_wpm": int(wpms.max()),
        "total_active_minutes": float(sum(r.duration_ms for r in records) / 60000),
    }


def _display_key(key: str) -> str:
    return key.replace(" ", "␣")


def build_report(store: ProgressStore, config: ConfigManager) -> Dict[str, Any]:
    aggregate = store.load_aggregate()
    limit = config.get("analytics.weakest_limit", 10)
    return {
        "summary": summarize_sessions(store.load_sessions()),
        "weakest_characters": aggregate.weakest_characters(
            config.get("analytics.min_character_samples", 5), limit
        ),
        "weakest_bigrams": aggregate.weakest_bigrams(
            config.get("analytics.min_bigram_samples", 3), limit
        ),
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the progress report."""
    import argparse

    parser = argparse.ArgumentParser(description="Typing tutor progress report")
    parser.add_argument(
        "--config", default="config.yaml", help="Configuration file path"
    )
    parser.add_argument("--data-dir", help="Directory holding progress.json")
    parser.add_argument("--export-csv", help="Write session history to this CSV file")
    args = parser.parse_args(argv)

    config = ConfigManager(args.config)
    setup_logging(
        config.get("output.log_level", "INFO"), config.get("output.log_file", "typing_tutor.log")
    )
    store = ProgressStore(args.data_dir or config.get("output.data_directory", "./data"))
    report = build_report(store, config)
    summary = report["summary"]

    if summary["total_sessions"] == 0:
        print("No completed sessions yet.")
        return 0

    print("\n=== Your Progress ===")
    print(f"Sessions: {summary['total_sessions']}")
    print(f"Characters typed: {summary['total_characters']:,}")
    print(f"Avg WPM: {summary['average_wpm']}")
    print(f"Avg Accuracy: {summary['average_accuracy']:.1f}%")
    print(f"Best WPM: {summary['best_wpm']}")

    if report["weakest_characters"]:
        print("\n=== Characters to focus on ===")
        for entry in report["weakest_characters"]:
            print(f"  {_display_key(entry['char'])}  {entry['accuracy']:.0f}% ({entry['total']} tries)")

    if report["weakest_bigrams"]:
        print("\n=== Bigrams to focus on ===")
        for entry in report["weakest_bigrams"]:
            print(
                f"  {_display_key(entry['bigram'])}  {entry['accuracy']:.0f}% ({entry['total']} tries)"
            )

    if args.export_csv:
        path = store.export_sessions_csv(args.export_csv)
        print(f"\nCSV: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
