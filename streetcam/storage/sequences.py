"""
Capture sequence reconstruction.

Images arrive page by page in no particular order.  Each carries a
sequence id and its position in that sequence, so a Sequence maps position
to record.  Positions not loaded yet are simply absent and are skipped when
building line geometry; export walks the positions in ascending order.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..ingest.catalog_client import ImageRecord

log = logging.getLogger(__name__)


@dataclass
class Sequence:
    """One capture track."""
    sequence_id: str
    images: Dict[int, ImageRecord] = field(default_factory=dict)
    rotation: float = 0.0   # degrees, presentation only

    def set(self, record: ImageRecord) -> None:
        self.images[record.sequence_index] = record

    def get(self, index: int) -> Optional[ImageRecord]:
        return self.images.get(index)

    def records(self) -> List[ImageRecord]:
        """Loaded records in index order."""
        return [self.images[i] for i in sorted(self.images)]

    def coordinates(self) -> List[tuple]:
        return [r.loc for r in self.records()]


class SequenceAssembler:
    """Maps sequence id → Sequence."""

    def __init__(self) -> None:
        self._sequences: Dict[str, Sequence] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sequences)

    def __contains__(self, sequence_id: str) -> bool:
        return sequence_id in self._sequences

    def add(self, record: ImageRecord) -> Sequence:
        with self._lock:
            seq = self._sequences.get(record.sequence_id)
            if seq is None:
                seq = Sequence(sequence_id=record.sequence_id)
                self._sequences[record.sequence_id] = seq
            seq.set(record)
        return seq

    def add_all(self, records: Iterable[ImageRecord]) -> None:
        for r in records:
            self.add(r)

    def get(self, sequence_id: str) -> Optional[Sequence]:
        return self._sequences.get(sequence_id)

    def line_strings(self, sequence_ids: Iterable[str]) -> List[dict]:
        """One GeoJSON LineString per known sequence, gaps dropped.

        Unknown ids are skipped.  Output follows the order of *sequence_ids*.
        """
        lines = []
        with self._lock:
            for sid in sequence_ids:
                seq = self._sequences.get(sid)
                if seq is None:
                    continue
                lines.append({
                    "type": "LineString",
                    "coordinates": seq.coordinates(),
                    "properties": {"key": sid},
                })
        return lines

    def image_keys(self, sequence_id: str) -> List[str]:
        """Keys of every loaded image in a sequence (for sibling highlighting)."""
        seq = self._sequences.get(sequence_id)
        if seq is None:
            return []
        return [r.key for r in seq.records()]

    def step(self, record: ImageRecord, offset: int) -> Optional[ImageRecord]:
        """The image *offset* positions away from *record* in its sequence.

        Returns None when that slot is outside the sequence or not loaded.
        """
        seq = self._sequences.get(record.sequence_id)
        if seq is None:
            return None
        return seq.get(record.sequence_index + offset)

    def rotate(self, sequence_id: str, degrees: float) -> Optional[float]:
        """Add *degrees* to a sequence's display rotation; returns the new value."""
        seq = self._sequences.get(sequence_id)
        if seq is None:
            return None
        seq.rotation += degrees
        return seq.rotation
