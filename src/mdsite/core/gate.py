"""Incremental build gate and the separate front-matter stamp step"""

from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Optional, Union

from mdsite.core.export import write_atomic
from mdsite.core.extract.frontmatter import render_front_matter, unquote
from mdsite.core.models import SourceDocument
from mdsite.errors import ContentFormatError


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
LAST_MODIFIED_KEY = "lastmodified"
STAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def as_utc(value: Union[date, datetime]) -> datetime:
    """Normalize a date or naive datetime to an aware UTC datetime."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse a front-matter timestamp ('YYYY-MM-DD HH:MM:SS', ISO-8601, or a bare date)."""
    text = unquote(value)
    try:
        return as_utc(datetime.strptime(text, STAMP_FORMAT))
    except ValueError:
        pass
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError as e:
        raise ContentFormatError(f"Invalid {LAST_MODIFIED_KEY} timestamp: {value!r}") from e


def declared_last_modified(front_matter: dict[str, str]) -> Optional[datetime]:
    value = front_matter.get(LAST_MODIFIED_KEY)
    return parse_timestamp(value) if value else None


def needs_rebuild(
    source_last_write: datetime,
    output_last_write: Optional[datetime],
    output_exists: bool,
    declared_last_modified: Optional[datetime] = None,
    publish_date: Optional[Union[date, datetime]] = None,
    ) -> bool:
    """True when output is missing or older than the newest of source, declared, and publish times."""
    if not output_exists:
        return True
    newest = max(
        as_utc(t) for t in (source_last_write, declared_last_modified, publish_date) if t is not None
    )
    return as_utc(output_last_write or EPOCH) < newest


def needs_stamp(source_last_write: datetime, declared: Optional[datetime]) -> bool:
    """A rebuilt source gets a fresh stamp when its declared time is missing or older than the file."""
    return declared is None or declared < as_utc(source_last_write)


def stamp(doc: SourceDocument, now: datetime) -> str:
    """Return doc's text with `lastmodified` set to now; does not touch the file."""
    data = dict(doc.front_matter)
    data[LAST_MODIFIED_KEY] = f'"{as_utc(now).strftime(STAMP_FORMAT)}"'
    return render_front_matter(data, doc.body)


def write_stamp(doc: SourceDocument, now: datetime) -> Path:
    """Rewrite doc's source file in place with a fresh `lastmodified`."""
    write_atomic(doc.path, stamp(doc, now))
    return doc.path
