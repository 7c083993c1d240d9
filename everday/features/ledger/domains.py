"""
everday/features/ledger/domains.py

Registry of the feature domains a guest can write to.

Each domain knows its record type, the authoritative table it migrates into,
the key the merge upserts on, and which field (if any) splits it into
plan-gate buckets.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from everday.core.errors import ValidationError
from everday.models.habit import HabitLogRecord, HabitRecord
from everday.models.journal import JournalEntry
from everday.models.note import NoteRecord
from everday.models.plan import Profile
from everday.models.reading import MovieItem, ReadingListItem
from everday.models.source_dump import SourceDump
from everday.models.todo import TodoRecord


HABITS = "habits"
HABIT_LOGS = "habitLogs"
NOTES = "notes"
TODOS = "todos"
READING_LIST = "readingList"
MOVIE_ITEMS = "movieItems"
JOURNAL_ENTRIES = "journalEntries"
SOURCE_DUMPS = "sourceDumps"

# Bucket used by domains that are not split into columns/sections
ALL_BUCKET = "all"


@dataclass(frozen=True)
class GuestDomain:
    name: str
    table: str
    model: Type[BaseModel]
    owned: bool = True
    conflict_key: Tuple[str, ...] = ("id",)
    bucket_field: Optional[str] = None
    default_bucket: str = ALL_BUCKET
    prepend: bool = False


DOMAINS: Dict[str, GuestDomain] = {
    HABITS: GuestDomain(HABITS, "habits", HabitRecord),
    HABIT_LOGS: GuestDomain(
        HABIT_LOGS,
        "habit_logs",
        HabitLogRecord,
        owned=False,
        conflict_key=("habit_id", "log_date"),
    ),
    NOTES: GuestDomain(NOTES, "notes", NoteRecord, prepend=True),
    TODOS: GuestDomain(TODOS, "todos", TodoRecord, bucket_field="type", default_bucket="task"),
    READING_LIST: GuestDomain(
        READING_LIST, "reading_list_items", ReadingListItem,
        bucket_field="status", default_bucket="want_to_read",
    ),
    MOVIE_ITEMS: GuestDomain(
        MOVIE_ITEMS, "movie_items", MovieItem,
        bucket_field="status", default_bucket="to_watch", prepend=True,
    ),
    JOURNAL_ENTRIES: GuestDomain(JOURNAL_ENTRIES, "journal_entries", JournalEntry),
    SOURCE_DUMPS: GuestDomain(SOURCE_DUMPS, "source_dumps", SourceDump, prepend=True),
}

DOMAIN_NAMES: Tuple[str, ...] = tuple(DOMAINS)

# Parents before children: logs reference habits
MIGRATION_ORDER: Tuple[str, ...] = (
    HABITS,
    HABIT_LOGS,
    NOTES,
    TODOS,
    READING_LIST,
    MOVIE_ITEMS,
    JOURNAL_ENTRIES,
    SOURCE_DUMPS,
)

TABLE_MODELS: Dict[str, Type[BaseModel]] = {d.table: d.model for d in DOMAINS.values()}
TABLE_MODELS["profiles"] = Profile


def get_domain(name: str) -> GuestDomain:
    try:
        return DOMAINS[name]
    except KeyError:
        raise ValidationError(f"Unknown domain: {name}") from None


def empty_value(name: str):
    return {} if name == HABIT_LOGS else []


def bucket_of(domain: GuestDomain, record: Mapping[str, Any]) -> str:
    if not domain.bucket_field:
        return ALL_BUCKET
    value = record.get(domain.bucket_field)
    if value is None:
        return domain.default_bucket
    return getattr(value, "value", value)


def _dump(model: Type[BaseModel], raw: Any, name: str) -> Dict[str, Any]:
    try:
        return model.model_validate(raw).model_dump(mode="json")
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {name} record: {exc.errors()[0]['msg']}") from exc


def validate_record(name: str, raw: Any) -> Dict[str, Any]:
    """One record of a list domain, validated and dumped to plain data."""
    return _dump(get_domain(name).model, raw, name)


def normalize_value(name: str, value: Any):
    """
    Validate a domain value and return its plain-data form.

    The result only contains JSON-safe types so the whole ledger can be
    mirrored to session storage as text.
    """
    domain = get_domain(name)
    if name == HABIT_LOGS:
        if not isinstance(value, Mapping):
            raise ValidationError("habitLogs must map habit id to dated logs")
        normalized: Dict[str, Dict[str, Any]] = {}
        for habit_id, by_date in value.items():
            if not isinstance(by_date, Mapping):
                raise ValidationError("habitLogs entries must map ISO dates to logs")
            days: Dict[str, Any] = {}
            for day, log in by_date.items():
                raw = dict(log) if isinstance(log, Mapping) else log.model_dump()
                raw.setdefault("habit_id", habit_id)
                raw.setdefault("log_date", day)
                dumped = _dump(domain.model, raw, name)
                if dumped["habit_id"] != str(habit_id) or dumped["log_date"] != str(day):
                    raise ValidationError(f"Log keyed {habit_id}/{day} does not match its contents")
                days[dumped["log_date"]] = dumped
            if days:
                normalized[str(habit_id)] = days
        return normalized

    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        raise ValidationError(f"{name} must be a sequence of records")
    records = [_dump(domain.model, item, name) for item in value]
    seen = set()
    for record in records:
        if record["id"] in seen:
            raise ValidationError(f"Duplicate {name} id {record['id']}")
        seen.add(record["id"])
    return records


def flatten_habit_logs(value: Mapping[str, Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [log for by_date in value.values() for log in by_date.values()]
