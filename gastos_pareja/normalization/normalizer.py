"""
Entry Normalizer

Coerces arbitrary or legacy input objects into the canonical Entry schema.

DESIGN DECISION: normalize() is total. Whatever comes in (a form submission,
an item from a years-old JSON backup, a half-filled spreadsheet row) a
structurally valid Entry comes out, with defaults for every missing or
invalid field. Rejecting bad user input is the validator's job and happens
before normalization on the creation path only.

This is also the one place where legacy shapes are upgraded:
- paidBy ("yo" / "pareja" / ...) becomes profile
- entries without nature keep it absent and classify by type
- entries without scope/account/direction get the personal defaults
"""

from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any, Optional, TypeVar

from gastos_pareja.dates import parse_iso_date, today_local, utc_timestamp
from gastos_pareja.models.configuration import Configuration
from gastos_pareja.models.entry import (
    ACCOUNT_BALANCE,
    ACCOUNT_PERSONAL,
    ENTRY_SCHEMA_VERSION,
    LEGACY_SPLIT,
    OTHER_CATEGORY,
    Direction,
    Entry,
    EntryType,
    Nature,
    Scope,
    is_valid_account,
    new_entry_id,
)
from gastos_pareja.money import coerce_amount


E = TypeVar("E", bound=Enum)


def _pick(data: Mapping, *keys: str) -> Any:
    """First non-None value among camelCase/snake_case spellings."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _clean_str(value: Any) -> str:
    if not value:
        return ""
    return str(value).strip()


def _enum_or_none(enum_cls: type[E], value: Any) -> Optional[E]:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return None
    return None


class EntryNormalizer:
    """
    Normalizes raw entry-like objects against a configuration.

    With a configuration, categories are checked against its allow-lists
    (when strict) and paidBy aliases come from its profiles. Without one,
    any non-empty category is accepted and the sample profiles resolve
    legacy aliases.
    """

    def __init__(
        self,
        config: Optional[Configuration] = None,
        today: Optional[Callable[[], str]] = None,
        now: Optional[Callable[[], str]] = None,
    ):
        """
        Args:
            config: Ledger configuration; None disables category allow-lists.
            today: Returns the caller's local date (YYYY-MM-DD).
            now: Returns the creation timestamp for entries lacking one.
        """
        self._config = config
        self._profiles = config or Configuration.default()
        self._today = today or today_local
        self._now = now or utc_timestamp

    @property
    def config(self) -> Optional[Configuration]:
        return self._config

    def normalize(self, raw: object) -> Entry:
        """Return a structurally valid Entry for any input. Never raises."""
        data: Mapping = raw if isinstance(raw, Mapping) else {}

        profile = self._resolve_profile(data)
        nature = _enum_or_none(Nature, data.get("nature"))
        raw_direction = _enum_or_none(Direction, data.get("direction"))
        entry_type = _enum_or_none(EntryType, data.get("type"))
        if entry_type is None:
            entry_type = self._type_from_nature(nature, raw_direction)

        direction = self._resolve_direction(nature, entry_type, raw_direction)

        scope = _enum_or_none(Scope, data.get("scope")) or Scope.PERSONAL
        impact_key = _clean_str(_pick(data, "impactKey", "impact_key"))
        if scope == Scope.SHARED and not impact_key:
            impact_key = OTHER_CATEGORY

        account = _clean_str(data.get("account"))
        if not is_valid_account(account):
            account = ACCOUNT_BALANCE if scope == Scope.SHARED else ACCOUNT_PERSONAL

        date = parse_iso_date(data.get("date")) or self._today()

        split = None
        if entry_type == EntryType.EXPENSE:
            split = _clean_str(data.get("split")) or LEGACY_SPLIT

        entry_id = _clean_str(data.get("id")) or new_entry_id()
        created_at = _clean_str(_pick(data, "createdAt", "created_at")) or self._now()

        return Entry(
            id=entry_id,
            type=entry_type,
            nature=nature,
            amount=coerce_amount(data.get("amount")),
            category=self._resolve_category(data.get("category"), entry_type, nature, profile),
            profile=profile,
            date=date,
            note=_clean_str(data.get("note")),
            split=split,
            scope=scope,
            account=account,
            direction=direction,
            impact_key=impact_key,
            fixed_id=_clean_str(_pick(data, "fixedId", "fixed_id")),
            created_at=created_at,
            schema_version=ENTRY_SCHEMA_VERSION,
        )

    def normalize_many(self, items: Iterable[object]) -> list[Entry]:
        return [self.normalize(item) for item in items]

    def _resolve_profile(self, data: Mapping) -> str:
        profile = _clean_str(data.get("profile"))
        if profile:
            return profile
        # Legacy: paidBy -> profile
        return (
            self._profiles.resolve_profile_alias(_pick(data, "paidBy", "paid_by"))
            or self._profiles.default_profile
        )

    @staticmethod
    def _type_from_nature(
        nature: Optional[Nature],
        direction: Optional[Direction],
    ) -> EntryType:
        if nature == Nature.INCOME:
            return EntryType.INCOME
        if nature == Nature.SAVING and direction == Direction.IN:
            return EntryType.INCOME
        return EntryType.EXPENSE

    @staticmethod
    def _resolve_direction(
        nature: Optional[Nature],
        entry_type: EntryType,
        direction: Optional[Direction],
    ) -> Direction:
        if nature == Nature.INCOME:
            return Direction.IN
        if direction is not None:
            return direction
        if nature is None and entry_type == EntryType.INCOME:
            return Direction.IN
        return Direction.OUT

    def _resolve_category(
        self,
        value: Any,
        entry_type: EntryType,
        nature: Optional[Nature],
        profile: str,
    ) -> str:
        category = _clean_str(value)
        allowed = None
        if self._config is not None:
            allowed = self._config.categories_for(nature or entry_type, profile)
        if allowed is None:
            return category or OTHER_CATEGORY
        return category if category in allowed else OTHER_CATEGORY


def normalize_entry(raw: object, config: Optional[Configuration] = None) -> Entry:
    """Normalize a single raw entry. See EntryNormalizer."""
    return EntryNormalizer(config).normalize(raw)
