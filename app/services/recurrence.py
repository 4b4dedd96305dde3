# filename: app/services/recurrence.py
"""
Recurring-transaction catch-up generation.

For one owner, RecurrenceEngine.reconcile() walks every active recurring
template, materializes each occurrence that fell due since the template's
checkpoint (up to and including `as_of`), and advances the checkpoint.

Rules:
- Occurrences are computed from the template's own date plus k * step months
  (step = 1, 3 or 12), with month-end clamping, so the day-of-month never drifts.
- A candidate day that already has the occurrence (a row of the series, or any
  recurring row with the same kind, amount, category and description, including
  rows staged earlier in the same call) counts as skipped.
- Paused templates are left untouched.
- A failure on one template is logged and does not stop the others;
  that template keeps its old checkpoint and is retried on the next call.

Public API:
    RecurrenceEngine(store).reconcile(owner_id, as_of=None)
        -> ReconcileResult(generated_count, skipped_count)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from app.config import RECURRING_MAX_OCCURRENCES
from app.errors import InvalidOwner, StoreUnavailable
from app.services.dates import add_months, day_window, months_between, utc_naive
from app.services.transaction_store import (
    OccurrenceDraft,
    RecurringTemplate,
    TransactionStore,
)

LOGGER = logging.getLogger("finance_tracker.recurrence")

FREQUENCY_MONTHS = {"monthly": 1, "quarterly": 3, "yearly": 12}

_OWNER_ID_RE = re.compile(r"[A-Za-z0-9_\-]{1,64}")

_OccurrenceKey = Tuple[str, Decimal, Optional[str], Optional[str], date]


def _occurrence_key(template: RecurringTemplate, when: datetime) -> _OccurrenceKey:
    return (template.kind, template.amount, template.category, template.description, when.date())


def validate_owner_id(owner_id) -> str:
    if not isinstance(owner_id, str) or not _OWNER_ID_RE.fullmatch(owner_id):
        raise InvalidOwner(f"Invalid owner id: {owner_id!r}")
    return owner_id


@dataclass
class ReconcileResult:
    generated_count: int = 0
    skipped_count: int = 0


@dataclass
class _TemplatePlan:
    template_id: int
    checkpoint: datetime
    occurrences: List[OccurrenceDraft] = field(default_factory=list)
    skipped: int = 0
    # Templates whose staged rows this plan counted as already present
    depends_on: Set[int] = field(default_factory=set)


class RecurrenceEngine:
    def __init__(self, store: TransactionStore, max_occurrences: int = RECURRING_MAX_OCCURRENCES):
        self._store = store
        self._max_occurrences = max_occurrences

    def reconcile(self, owner_id: str, as_of: Optional[datetime] = None) -> ReconcileResult:
        """
        Bring all active recurring templates of `owner_id` up to date as of `as_of`
        (default: now, UTC). Returns counts of confirmed generated and skipped occurrences.

        Raises InvalidOwner before touching the store, and StoreUnavailable only when
        the templates themselves cannot be loaded.
        """
        owner_id = validate_owner_id(owner_id)
        as_of = utc_naive(as_of)

        plans: List[_TemplatePlan] = []
        # Occurrences staged so far in this call, mapped to the staging template
        staged: Dict[_OccurrenceKey, int] = {}
        for template in self._store.find_recurring_templates(owner_id):
            if template.recurring_paused:
                LOGGER.debug("Template %s is paused, skipping", template.id)
                continue
            try:
                plan = self._stage(owner_id, template, as_of, staged)
            except (StoreUnavailable, ValueError, TypeError):
                LOGGER.exception(
                    "Failed to stage recurring template %s for owner %s; left for next call",
                    template.id,
                    owner_id,
                )
                continue
            if plan is not None:
                plans.append(plan)
                for o in plan.occurrences:
                    staged[_occurrence_key(template, o.date)] = template.id

        result = ReconcileResult()
        for plan in self._apply(plans):
            result.generated_count += len(plan.occurrences)
            result.skipped_count += plan.skipped

        LOGGER.info(
            "Reconciled recurring transactions for owner %s as of %s: %d generated, %d skipped",
            owner_id,
            as_of.isoformat(),
            result.generated_count,
            result.skipped_count,
        )
        return result

    def _stage(
        self,
        owner_id: str,
        template: RecurringTemplate,
        as_of: datetime,
        staged: Dict[_OccurrenceKey, int],
    ) -> Optional[_TemplatePlan]:
        """Compute the template's due occurrences. None when nothing is due."""
        step = FREQUENCY_MONTHS[template.frequency]
        anchor = template.date
        checkpoint = template.last_generated or anchor

        # First occurrence index whose month lies after the checkpoint's month
        k = max(0, months_between(anchor, checkpoint) // step) + 1
        candidate = add_months(anchor, k * step)

        cursor = checkpoint
        occurrences: List[OccurrenceDraft] = []
        skipped = 0
        processed = 0
        depends_on: Set[int] = set()

        while candidate <= as_of:
            if processed >= self._max_occurrences:
                LOGGER.warning(
                    "Template %s hit the cap of %d occurrences per call; stopping at %s",
                    template.id,
                    self._max_occurrences,
                    cursor.isoformat(),
                )
                break

            key = _occurrence_key(template, candidate)
            day_start, day_end = day_window(candidate)
            if key in staged:
                skipped += 1
                depends_on.add(staged[key])
            elif self._store.exists_occurrence(owner_id, template, day_start, day_end):
                skipped += 1
            else:
                occurrences.append(
                    OccurrenceDraft(
                        owner_id=owner_id,
                        series_id=template.id,
                        kind=template.kind,
                        amount=template.amount,
                        category=template.category,
                        description=template.description,
                        vendor=template.vendor,
                        date=candidate,
                        frequency=template.frequency,
                    )
                )

            cursor = candidate
            processed += 1
            k += 1
            candidate = add_months(anchor, k * step)

        if cursor == checkpoint:
            return None
        return _TemplatePlan(
            template_id=template.id,
            checkpoint=cursor,
            occurrences=occurrences,
            skipped=skipped,
            depends_on=depends_on,
        )

    def _apply(self, plans: List[_TemplatePlan]) -> List[_TemplatePlan]:
        """Persist staged rows, then checkpoints. Returns the plans whose rows were written."""
        if not plans:
            return []

        staged = [o for plan in plans for o in plan.occurrences]
        try:
            self._store.insert_many(staged)
        except StoreUnavailable:
            LOGGER.warning(
                "Batch insert of %d occurrences failed; applying %d templates one by one",
                len(staged),
                len(plans),
            )
            return self._apply_each(plans)

        try:
            self._store.update_checkpoints([(p.template_id, p.checkpoint) for p in plans])
        except StoreUnavailable:
            LOGGER.warning("Batch checkpoint update failed; retrying %d templates one by one", len(plans))
            for plan in plans:
                self._update_checkpoint(plan)
        return plans

    def _apply_each(self, plans: List[_TemplatePlan]) -> List[_TemplatePlan]:
        """
        Apply plans one at a time, in staging order. A plan that skipped rows
        staged by a failed plan is held back too, so its checkpoint cannot pass
        an occurrence that was never written.
        """
        applied: List[_TemplatePlan] = []
        failed: Set[int] = set()
        for plan in plans:
            if plan.depends_on & failed:
                LOGGER.warning(
                    "Template %s relied on occurrences of failed templates %s; checkpoint left unchanged",
                    plan.template_id,
                    sorted(plan.depends_on & failed),
                )
                failed.add(plan.template_id)
            elif self._apply_one(plan):
                applied.append(plan)
            else:
                failed.add(plan.template_id)
        return applied

    def _apply_one(self, plan: _TemplatePlan) -> bool:
        try:
            self._store.insert_many(plan.occurrences)
        except StoreUnavailable:
            LOGGER.exception(
                "Failed to insert %d occurrences for template %s; checkpoint left unchanged",
                len(plan.occurrences),
                plan.template_id,
            )
            return False
        self._update_checkpoint(plan)
        return True

    def _update_checkpoint(self, plan: _TemplatePlan) -> None:
        try:
            self._store.update_checkpoints([(plan.template_id, plan.checkpoint)])
        except StoreUnavailable:
            # Rows are in place; the next call sees them as duplicates
            LOGGER.exception("Failed to advance checkpoint for template %s", plan.template_id)
