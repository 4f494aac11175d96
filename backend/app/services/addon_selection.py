"""In-memory add-on selection for a tenant being onboarded.

Removing or unselecting an add-on discards branch configuration the user may
have spent time on, so both go through a two-phase intent: ``request_*``
records what is about to happen, ``confirm`` applies it, ``cancel`` drops it.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from app.models.add_on import PricingScope
from app.schemas.onboarding import BranchSelection, SelectedAddon
from app.schemas.plan import PlanAddOnOutput

logger = logging.getLogger(__name__)


class AddonSelectionError(ValueError):
    """A selection change was rejected; the store is unchanged."""


class ConfirmationAction(str, Enum):
    REMOVE = "remove"
    UNSELECT = "unselect"


_CONFIRMATION_COPY: dict[ConfirmationAction, tuple[str, str]] = {
    ConfirmationAction.REMOVE: (
        "Remove add-on",
        "Remove {name} from your plan? Its branch configuration will be discarded.",
    ),
    ConfirmationAction.UNSELECT: (
        "Discard add-on selection",
        "Leave without saving {name}? The add-on will be unselected.",
    ),
}


@dataclass(frozen=True)
class PendingConfirmation:
    addon_id: UUID
    addon_name: str
    action: ConfirmationAction

    @property
    def title(self) -> str:
        return _CONFIRMATION_COPY[self.action][0]

    @property
    def body(self) -> str:
        return _CONFIRMATION_COPY[self.action][1].format(name=self.addon_name)


class AddonSelectionStore:
    """Add-ons attached to the in-progress tenant, keyed by add-on id.

    Insertion order is display order; replacing a selection keeps its
    position. ``revision`` increases on every change to the selection set or,
    through ``mark_changed``, to a pricing input held elsewhere; a payment
    snapshot compares it to detect that it went stale.
    """

    def __init__(self, selections: Iterable[SelectedAddon] = ()):
        self._selections: dict[UUID, SelectedAddon] = {s.addon_id: s for s in selections}
        self._pending: PendingConfirmation | None = None
        self._revision = 0

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def pending(self) -> PendingConfirmation | None:
        return self._pending

    @property
    def selections(self) -> list[SelectedAddon]:
        return list(self._selections.values())

    def get(self, addon_id: UUID) -> SelectedAddon | None:
        return self._selections.get(addon_id)

    def is_selected(self, addon_id: UUID) -> bool:
        """True when the add-on is present and satisfies its branch invariant."""
        selection = self._selections.get(addon_id)
        return selection is not None and selection.is_valid_selection

    def configure(
        self,
        addon: PlanAddOnOutput,
        branch_selections: Sequence[BranchSelection] = (),
    ) -> SelectedAddon:
        """Insert or replace the selection for ``addon``.

        Raises:
            AddonSelectionError: A branch-scoped add-on has no branch selected,
                or the same branch index appears twice.
        """
        branches: tuple[BranchSelection, ...] = ()
        if addon.pricing_scope == PricingScope.BRANCH:
            indexes = [b.branch_index for b in branch_selections]
            if len(indexes) != len(set(indexes)):
                raise AddonSelectionError(f"Duplicate branch entries for {addon.name}")
            if not any(b.is_selected for b in branch_selections):
                raise AddonSelectionError(
                    f"Select at least one branch for {addon.name}"
                )
            branches = tuple(branch_selections)

        selection = SelectedAddon(
            addon_id=addon.id,
            addon_name=addon.name,
            addon_price_cents=addon.price_cents,
            pricing_scope=addon.pricing_scope,
            is_included=addon.is_included,
            branches=branches,
        )
        self._selections[addon.id] = selection
        self._revision += 1
        return selection

    def include_bundled(self, addons: Iterable[PlanAddOnOutput], branch_names: Sequence[str]) -> None:
        """Attach every included add-on that is not already selected.

        Branch-scoped bundled add-ons are enabled on every branch.
        """
        for addon in addons:
            if not addon.is_included or addon.id in self._selections:
                continue
            branches = [
                BranchSelection(branch_index=i, branch_name=name, is_selected=True)
                for i, name in enumerate(branch_names)
            ]
            self.configure(addon, branches)

    def request_removal(self, addon_id: UUID) -> PendingConfirmation:
        """Propose discarding an add-on entirely (e.g. from the summary view)."""
        return self._request(addon_id, ConfirmationAction.REMOVE)

    def request_unselect(self, addon_id: UUID) -> PendingConfirmation:
        """Propose unselecting an add-on when leaving its configuration without saving."""
        return self._request(addon_id, ConfirmationAction.UNSELECT)

    def _request(self, addon_id: UUID, action: ConfirmationAction) -> PendingConfirmation:
        selection = self._selections.get(addon_id)
        if selection is None:
            raise AddonSelectionError(f"Add-on {addon_id} is not selected")
        if selection.is_included:
            raise AddonSelectionError(
                f"{selection.addon_name} is included with the plan and cannot be removed"
            )
        # A new request replaces any earlier one.
        self._pending = PendingConfirmation(
            addon_id=addon_id,
            addon_name=selection.addon_name,
            action=action,
        )
        return self._pending

    def confirm(self) -> SelectedAddon | None:
        """Apply the pending intent. Returns the discarded selection, if any."""
        pending = self._pending
        if pending is None:
            return None
        self._pending = None
        removed = self._selections.pop(pending.addon_id, None)
        if removed is not None:
            self._revision += 1
            logger.info("Add-on %s discarded (%s)", pending.addon_name, pending.action.value)
        return removed

    def mark_changed(self) -> None:
        """Record a change to a pricing input held outside the store (plan, cycle, branch count)."""
        self._revision += 1

    def cancel(self) -> None:
        self._pending = None

    def clear(self) -> None:
        """Drop every selection, e.g. when a different plan is chosen."""
        self._pending = None
        if self._selections:
            self._selections.clear()
            self._revision += 1
