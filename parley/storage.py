"""JSON file storage for conversation transcripts.

Transcripts are stored as flat JSON files under a configurable base
directory:

    {base}/
      transcripts/
        {slug}.json           ← one Transcript per finished conversation

Only JSON-friendly dialog moves and topics (strings, ints) survive a
save/load cycle.
"""

from __future__ import annotations

import logging
from pathlib import Path

from parley.conversation import Conversation
from parley.models import Transcript

logger = logging.getLogger(__name__)


class TranscriptStorage:
    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._root = self._base / "transcripts"
        self._root.mkdir(parents=True, exist_ok=True)

    def _transcript_file(self, slug: str) -> Path:
        if not slug or "/" in slug or "\\" in slug or slug.startswith("."):
            raise ValueError(f"Invalid transcript slug: {slug!r}")
        return self._root / f"{slug}.json"

    def save_transcript(self, slug: str, conversation: Conversation) -> Transcript:
        """Write the conversation's history, replacing any earlier save under slug."""
        transcript = conversation.transcript()
        path = self._transcript_file(slug)
        path.write_text(transcript.model_dump_json(indent=2))
        logger.info("transcript saved slug=%s moves=%d", slug, len(transcript.history))
        return transcript

    def get_transcript(self, slug: str) -> Transcript | None:
        path = self._transcript_file(slug)
        if not path.exists():
            return None
        return Transcript.model_validate_json(path.read_text())

    def list_transcripts(self) -> list[str]:
        return sorted(path.stem for path in self._root.glob("*.json"))
