"""
Structured note log for prescriptions.

Notes are stored as ordered :class:`PrescriptionNote` rows.  The legacy
single-blob form, one ``[timestamp] (author) text`` entry per line, is
only produced or consumed at the API boundary.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Iterable, List, Optional

from django.conf import settings
from django.db.models import Max
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from prescriptions.models import Prescription, PrescriptionNote

UNKNOWN_AUTHOR = 'unknown'
NOTE_LINE_RE = re.compile(r'^\[(.+?)\]\s+\((.+?)\)\s+(.+)$', re.DOTALL)


def system_author() -> str:
    return getattr(settings, 'PHARMACY_SYSTEM_AUTHOR', 'system')


@dataclass
class NoteEntry:
    created_at: str
    author_id: str
    note: str

    def as_dict(self) -> dict:
        return {'createdAt': self.created_at, 'authorId': self.author_id, 'note': self.note}


def format_entry(entry: NoteEntry) -> str:
    return f"[{entry.created_at}] ({entry.author_id}) {entry.note}"


def _one_line(text: str) -> str:
    return ' '.join(part.strip() for part in (text or '').splitlines() if part.strip())


def render_notes(entries: Iterable[NoteEntry]) -> str:
    """Render entries as the legacy blob, one entry per line."""
    lines = []
    for e in entries:
        e = NoteEntry(e.created_at, e.author_id, _one_line(e.note))
        # legacy lines without a timestamp are echoed verbatim
        lines.append(format_entry(e) if e.created_at else e.note)
    return '\n'.join(lines)


def parse_notes(blob: Optional[str]) -> List[NoteEntry]:
    """Split a note blob into entries.

    Blank lines are skipped.  Lines that do not follow the
    ``[timestamp] (author) text`` layout are kept verbatim with an
    empty timestamp and the ``unknown`` author marker.
    """
    if not blob:
        return []
    entries = []
    for line in blob.split('\n'):
        if not line.strip():
            continue
        m = NOTE_LINE_RE.match(line)
        if not m:
            entries.append(NoteEntry(created_at='', author_id=UNKNOWN_AUTHOR, note=line))
            continue
        entries.append(NoteEntry(created_at=m.group(1).strip(), author_id=m.group(2).strip(), note=m.group(3)))
    return entries


def _iso(dt: Optional[datetime]) -> str:
    return dt.isoformat() if dt else ''


def to_entry(note: PrescriptionNote) -> NoteEntry:
    return NoteEntry(created_at=_iso(note.created_at), author_id=note.author_id, note=note.text)


def entries_for(prescription: Prescription) -> List[NoteEntry]:
    return [to_entry(n) for n in prescription.note_entries.all()]


def append_note(prescription: Prescription, text: str, author_id: Optional[str]=None) -> PrescriptionNote:
    """Append one entry at the end of the prescription's log.

    The text is stored as given; :func:`render_notes` folds line breaks
    when the blob is produced.
    """
    last = prescription.note_entries.aggregate(m=Max('position'))['m']
    return PrescriptionNote.objects.create(
        prescription=prescription,
        author_id=(author_id or system_author()),
        text=text or '',
        created_at=timezone.now(),
        position=0 if last is None else last + 1,
    )


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        dt = parse_datetime(value)
    except ValueError:
        return None
    if dt is not None and timezone.is_naive(dt):
        dt = timezone.make_aware(dt, dt_timezone.utc)
    return dt


def replace_notes(prescription: Prescription, blob: Optional[str]) -> List[PrescriptionNote]:
    """Replace the whole log with the entries parsed from ``blob``."""
    prescription.note_entries.all().delete()
    rows = []
    for pos, entry in enumerate(parse_notes(blob)):
        created = _parse_timestamp(entry.created_at) if entry.created_at else None
        if entry.created_at and created is None:
            # unparseable timestamp: keep the original line as text
            rows.append(PrescriptionNote(prescription=prescription, author_id=UNKNOWN_AUTHOR,
                                         text=format_entry(entry), created_at=None, position=pos))
            continue
        rows.append(PrescriptionNote(prescription=prescription, author_id=entry.author_id,
                                     text=entry.note, created_at=created, position=pos))
    return PrescriptionNote.objects.bulk_create(rows)
