"""SpecialistRegistry: validated catalog of specialists keyed by (domain, tier)."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from tierwise.core.exceptions import ConfigError, UnknownDomainError
from tierwise.models.specialist import HandoffCriterion, SpecialistDescriptor, Tier
from tierwise.orchestration.protocols import ISpecialist

logger = logging.getLogger(__name__)


class SpecialistRegistry:
    """Immutable catalog of specialists.

    All wiring is checked here, at construction time, so that a
    misconfigured catalog fails fast instead of surfacing mid-request:

    - specialist ids and (domain, tier) slots are unique;
    - every prerequisite tier is below the specialist's own tier and is
      registered for the specialist's domain;
    - every handoff target resolves to a registered specialist of the
      declared tier, strictly above the source tier. Because tiers strictly
      increase along every handoff edge, the escalation graph is acyclic.

    With ``strict_targets=False`` an unregistered target is only logged, for
    partial deployments; matching it at request time ends the chain as
    escalation-unavailable.
    """

    def __init__(
        self,
        specialists: Iterable[ISpecialist],
        *,
        default_domain: Optional[str] = None,
        strict_targets: bool = True,
    ) -> None:
        self._by_id: dict[str, ISpecialist] = {}
        self._by_slot: dict[tuple[str, Tier], ISpecialist] = {}
        self._default_domain = default_domain
        self._strict_targets = strict_targets

        for specialist in specialists:
            self._add(specialist)

        if not self._by_id:
            raise ConfigError("Registry requires at least one specialist")

        for specialist in self._by_id.values():
            self._validate_prerequisites(specialist.descriptor)
            self._validate_criteria(specialist.descriptor)

        if default_domain is not None and (default_domain, Tier.TIER_1) not in self._by_slot:
            raise ConfigError(f"Default domain {default_domain!r} has no TIER_1 specialist")

        logger.info(
            "Registry ready: %d specialists across %d domains, tiers %s",
            len(self._by_id),
            len(self.domains()),
            [t.name for t in self.tiers()],
        )

    # ---- construction helpers ----

    def _add(self, specialist: ISpecialist) -> None:
        if not isinstance(specialist, ISpecialist):
            raise ConfigError(f"{specialist!r} does not satisfy the specialist contract")
        desc = specialist.descriptor
        if desc.id in self._by_id:
            raise ConfigError(f"Duplicate specialist id {desc.id!r}")
        slot = (desc.domain, desc.tier)
        if slot in self._by_slot:
            raise ConfigError(
                f"Both {self._by_slot[slot].descriptor.id!r} and {desc.id!r} "
                f"claim domain={desc.domain!r} tier={desc.tier.name}"
            )
        self._by_id[desc.id] = specialist
        self._by_slot[slot] = specialist

    def _validate_prerequisites(self, desc: SpecialistDescriptor) -> None:
        for tier in desc.prerequisites:
            if tier >= desc.tier:
                raise ConfigError(
                    f"{desc.id!r} ({desc.tier.name}) lists prerequisite {tier.name}; "
                    "prerequisites must be lower tiers (a same-or-higher tier forms a cycle)"
                )
            if (desc.domain, tier) not in self._by_slot:
                raise ConfigError(
                    f"{desc.id!r} requires a {tier.name} consultation but no {tier.name} "
                    f"specialist is registered for domain {desc.domain!r}"
                )

    def _validate_criteria(self, desc: SpecialistDescriptor) -> None:
        for criterion in desc.handoff_criteria:
            if criterion.target_tier <= desc.tier:
                raise ConfigError(
                    f"{desc.id!r} criterion {criterion.condition!r} hands off to "
                    f"{criterion.target_label!r} at {criterion.target_tier.name}; handoffs must "
                    "climb tiers (a same-or-lower target forms a cycle)"
                )
            target = self._find_target(desc, criterion)
            if target is None and not self._strict_targets:
                logger.warning(
                    "%s criterion %r targets unregistered %s; it will end chains as "
                    "escalation-unavailable",
                    desc.id, criterion.condition, criterion.target_label,
                )
                continue
            if target is None:
                raise ConfigError(
                    f"{desc.id!r} criterion {criterion.condition!r} targets unknown "
                    f"specialist {criterion.target_label!r}"
                )
            target_desc = target.descriptor
            if target_desc.tier != criterion.target_tier:
                raise ConfigError(
                    f"{desc.id!r} criterion {criterion.condition!r} declares "
                    f"{criterion.target_tier.name} but {target_desc.id!r} is {target_desc.tier.name}"
                )

    def _find_target(
        self, source: SpecialistDescriptor, criterion: HandoffCriterion
    ) -> Optional[ISpecialist]:
        if criterion.target_specialist_id is not None:
            return self._by_id.get(criterion.target_specialist_id)
        return self._by_slot.get((source.domain, criterion.target_tier))

    # ---- lookups ----

    def entry(self, domain: str) -> ISpecialist:
        """Return the TIER_1 specialist that starts a chain for ``domain``."""
        specialist = self._by_slot.get((domain, Tier.TIER_1))
        if specialist is not None:
            return specialist
        if self._default_domain is not None:
            logger.debug("No entry for domain %r, falling back to %r", domain, self._default_domain)
            return self._by_slot[(self._default_domain, Tier.TIER_1)]
        raise UnknownDomainError(domain)

    def get(self, specialist_id: str) -> Optional[ISpecialist]:
        return self._by_id.get(specialist_id)

    def lookup(self, domain: str, tier: Tier) -> Optional[ISpecialist]:
        return self._by_slot.get((domain, tier))

    def resolve_target(
        self, source: SpecialistDescriptor, criterion: HandoffCriterion
    ) -> Optional[ISpecialist]:
        """Resolve a criterion's target, or None if it is not registered."""
        target = self._find_target(source, criterion)
        if target is None or target.descriptor.tier != criterion.target_tier:
            return None
        return target

    def tiers(self) -> list[Tier]:
        return sorted({tier for _, tier in self._by_slot})

    def domains(self) -> list[str]:
        return sorted({domain for domain, _ in self._by_slot})

    def descriptors(self) -> list[SpecialistDescriptor]:
        return sorted(
            (s.descriptor for s in self._by_id.values()), key=lambda d: (d.domain, d.tier)
        )

    @property
    def default_domain(self) -> Optional[str]:
        return self._default_domain

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, specialist_id: object) -> bool:
        return specialist_id in self._by_id
