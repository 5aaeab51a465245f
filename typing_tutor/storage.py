# ABOUTME: JSON persistence for session history, lifetime accuracy and paused sessions
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import pandas as pd

from .analytics import AccuracyAccumulator
from .recorder import SessionRecord
from .session import PausedSessionSnapshot


class PersistenceSink(Protocol):
    """Where the engine hands finished sessions and paused snapshots."""

    def save_session(self, record: SessionRecord) -> Any: ...

    def load_aggregate(self) -> AccuracyAccumulator: ...

    def save_snapshot(self, snapshot: PausedSessionSnapshot) -> None: ...

    def take_snapshot(self) -> Optional[PausedSessionSnapshot]: ...


def _empty_progress() -> Dict[str, Any]:
    return {
        "sessions": [],
        "aggregate_character_accuracy": {},
        "aggregate_bigram_accuracy": {},
        "paused_session": None,
    }


class ProgressStore:
    """User progress kept in a single ``progress.json`` file."""

    filename = "progress.json"

    def __init__(self, data_dir: Union[str, Path] = "./data"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.data_dir / self.filename

    def load_progress(self) -> Dict[str, Any]:
        """Load progress, merged over the empty document."""
        progress = _empty_progress()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                stored = json.load(f)
        except FileNotFoundError:
            return progress
        except (json.JSONDecodeError, OSError) as e:
            logging.error(f"Error loading {self.path}: {e}")
            return progress
        if not isinstance(stored, dict):
            logging.error(f"Ignoring malformed progress file {self.path}")
            return progress
        progress.update(stored)
        return progress

    def save_progress(self, progress: Dict[str, Any]) -> None:
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(progress, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)

    def save_session(self, record: SessionRecord) -> Dict[str, Any]:
        """Append a completed session and sum its stats into the lifetime aggregate."""
        progress = self.load_progress()
        if any(session.get("id") == record.id for session in progress["sessions"]):
            logging.warning(f"Session {record.id} already saved; not merging it twice")
            return progress

        aggregate = self._aggregate_from(progress)
        aggregate.merge(record.accumulator())
        stored = aggregate.to_dict()

        progress["sessions"].append(record.to_dict())
        progress["aggregate_character_accuracy"] = stored["characters"]
        progress["aggregate_bigram_accuracy"] = stored["bigrams"]
        self.save_progress(progress)
        logging.info(f"Saved session {record.id} to {self.path}")
        return progress

    def _aggregate_from(self, progress: Dict[str, Any]) -> AccuracyAccumulator:
        return AccuracyAccumulator.from_dict(
            {
                "characters": progress.get("aggregate_character_accuracy") or {},
                "bigrams": progress.get("aggregate_bigram_accuracy") or {},
            }
        )

    def load_aggregate(self) -> AccuracyAccumulator:
        return self._aggregate_from(self.load_progress())

    def load_sessions(self) -> List[SessionRecord]:
        records = []
        for item in self.load_progress()["sessions"]:
            try:
                records.append(SessionRecord.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logging.error(f"Skipping unreadable session entry: {e}")
        return records

    def save_snapshot(self, snapshot: PausedSessionSnapshot) -> None:
        progress = self.load_progress()
        progress["paused_session"] = snapshot.to_dict()
        self.save_progress(progress)
        logging.info(f"Saved paused session at {snapshot.cursor}/{len(snapshot.target_text)}")

    def take_snapshot(self) -> Optional[PausedSessionSnapshot]:
        """Return the stored paused session and discard it."""
        progress = self.load_progress()
        data = progress.get("paused_session")
        if not data:
            return None
        progress["paused_session"] = None
        self.save_progress(progress)
        try:
            return PausedSessionSnapshot.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"Discarding unreadable paused session: {e}")
            return None

    def export_progress(self) -> str:
        """Export progress as JSON for backup."""
        return json.dumps(self.load_progress(), indent=2, ensure_ascii=False)

    def import_progress(self, json_text: str) -> Dict[str, Any]:
        """Replace progress with a JSON backup."""
        try:
            data = json.loads(json_text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid progress backup: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("sessions", []), list):
            raise ValueError("Progress backup must be an object with a sessions list")

        progress = _empty_progress()
        progress.update(data)
        # Validate before overwriting anything on disk
        self._aggregate_from(progress)
        for item in progress["sessions"]:
            SessionRecord.from_dict(item)
        self.save_progress(progress)
        logging.info(f"Imported {len(progress['sessions'])} sessions")
        return progress

    def clear_progress(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logging.info(f"Cleared progress at {self.path}")

    def export_sessions_csv(self, filename: Union[str, Path]) -> Path:
        """Export session history to CSV format."""
        data = [
            {
                "id": record.id,
                "timestamp": datetime.fromtimestamp(record.timestamp / 1000),
                "total_characters": record.total_characters,
                "correct_characters": record.correct_characters,
                "duration_seconds": record.duration_ms / 1000,
                "wpm": record.wpm,
                "accuracy": record.accuracy,
                "text_content": record.text_content,
            }
            for record in self.load_sessions()
        ]
        df = pd.DataFrame(
            data,
            columns=[
                "id",
                "timestamp",
                "total_characters",
                "correct_characters",
                "duration_seconds",
                "wpm",
                "accuracy",
                "text_content",
            ],
        )
        path = Path(filename)
        df.to_csv(path, index=False)
        logging.info(f"Exported {len(df)} sessions to {path}")
        return path
