"""
Fixed-Charge Generator

Materializes recurring fixed-charge definitions into dated entries for a
target month.

IDEMPOTENCE: a definition never generates a second entry for the same month.
Each candidate is reduced to a composite key

    (scope-qualified profile, date, fixedId, amount, category, nature,
     account, direction)

and skipped when an entry with the same key already exists that month, or
was produced earlier in the same call. Shared entries are qualified as
"shared" rather than by profile, since any profile may have generated them.
"""

from collections.abc import Callable, Iterable
from typing import Optional

import structlog

from gastos_pareja.dates import month_key, month_start, utc_timestamp
from gastos_pareja.models.configuration import (
    APPLIES_TO_BOTH,
    Configuration,
    FixedChargeDefinition,
)
from gastos_pareja.models.entry import (
    LEGACY_SPLIT,
    OTHER_CATEGORY,
    Direction,
    Entry,
    EntryType,
    Nature,
    Scope,
)

logger = structlog.get_logger(__name__)

FixedKey = tuple[str, str, str, int, str, Optional[str], str, str]


def fixed_key(entry: Entry) -> FixedKey:
    owner = "shared" if entry.scope == Scope.SHARED else f"personal:{entry.profile}"
    return (
        owner,
        entry.date,
        entry.fixed_id,
        entry.amount,
        entry.category,
        entry.nature.value if entry.nature else None,
        entry.account,
        entry.direction.value,
    )


def target_profiles(definition: FixedChargeDefinition, config: Configuration) -> list[str]:
    """Profiles that receive an entry for this definition."""
    if definition.scope == Scope.SHARED:
        # One entry; shared scope already makes it visible to everyone
        if definition.applies_to == APPLIES_TO_BOTH:
            return [config.default_profile]
        return [definition.applies_to]
    if definition.applies_to == APPLIES_TO_BOTH:
        return list(config.profile_ids)
    return [definition.applies_to]


def build_fixed_entry(
    definition: FixedChargeDefinition,
    profile: str,
    month: str,
    created_at: str,
) -> Entry:
    impact_key = definition.impact_key
    if definition.scope == Scope.SHARED and not impact_key:
        impact_key = OTHER_CATEGORY
    return Entry(
        type=EntryType.EXPENSE,
        nature=Nature.FIXED,
        amount=definition.amount,
        category=definition.category or OTHER_CATEGORY,
        profile=profile,
        date=month_start(month),
        note=definition.name,
        split=LEGACY_SPLIT,
        scope=definition.scope,
        account=definition.resolved_account,
        direction=Direction.OUT,
        impact_key=impact_key,
        fixed_id=definition.id,
        created_at=created_at,
    )


def generate_for_month(
    month: str,
    fixed_defs: Iterable[FixedChargeDefinition],
    existing_entries: Iterable[Entry],
    config: Configuration,
    now: Optional[Callable[[], str]] = None,
) -> list[Entry]:
    """
    Return the fixed-charge entries still missing for ``month``.

    An empty list means everything was already generated; callers treat it
    as a no-op.
    """
    clock = now or utc_timestamp
    seen = {
        fixed_key(e) for e in existing_entries
        if e.fixed_id and month_key(e.date) == month
    }

    created = []
    for definition in fixed_defs:
        if definition.amount <= 0:
            logger.warning(
                "fixed_charge_skipped",
                fixed_id=definition.id,
                reason="non_positive_amount",
                amount=definition.amount,
            )
            continue
        if not definition.applies_in(month):
            continue

        for profile in target_profiles(definition, config):
            entry = build_fixed_entry(definition, profile, month, clock())
            key = fixed_key(entry)
            if key in seen:
                continue
            seen.add(key)
            created.append(entry)

    return created
