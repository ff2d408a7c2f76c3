"""Catalog loading: turns a JSON catalog document into specialists and routing."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from tierwise.core.config import EngineConfig
from tierwise.core.exceptions import ConfigError
from tierwise.models.catalog import CatalogDefinition
from tierwise.orchestration.escalation import EscalationEngine
from tierwise.orchestration.registry import SpecialistRegistry
from tierwise.specialists.classifier import KeywordDomainClassifier
from tierwise.specialists.keyword import KeywordSpecialist

logger = logging.getLogger(__name__)

REFERENCE_CATALOG = Path(__file__).with_name("reference_catalog.json")


@dataclass(frozen=True)
class Catalog:
    """Loaded catalog: specialist strategies plus the routing classifier."""

    specialists: list[KeywordSpecialist]
    classifier: KeywordDomainClassifier
    default_domain: Optional[str] = None
    source: str = field(default="", compare=False)


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Load and validate a catalog document (the packaged reference by default)."""
    catalog_path = Path(path) if path is not None else REFERENCE_CATALOG
    try:
        raw = json.loads(catalog_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read catalog {catalog_path}: {exc}") from exc

    try:
        definition = CatalogDefinition.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid catalog {catalog_path}: {exc}") from exc

    routing = definition.routing
    catalog = Catalog(
        specialists=[KeywordSpecialist(d) for d in definition.specialists],
        classifier=KeywordDomainClassifier(routing.patterns, routing.default_domain),
        default_domain=routing.default_domain,
        source=str(catalog_path),
    )
    logger.info("Loaded %d specialist definitions from %s", len(catalog.specialists), catalog_path)
    return catalog


def build_registry(
    catalog: Catalog,
    *,
    default_domain: Optional[str] = None,
    strict_targets: bool = True,
) -> SpecialistRegistry:
    """Build a validated registry; ``default_domain`` overrides the catalog's."""
    return SpecialistRegistry(
        catalog.specialists,
        default_domain=default_domain or catalog.default_domain,
        strict_targets=strict_targets,
    )


def create_engine(config: Optional[EngineConfig] = None) -> EscalationEngine:
    """Wire catalog, registry and classifier into an engine from settings."""
    config = config or EngineConfig()
    catalog = load_catalog(config.catalog_path)
    registry = build_registry(
        catalog, default_domain=config.default_domain, strict_targets=config.strict_targets
    )
    return EscalationEngine(
        registry,
        catalog.classifier,
        stage_timeout=config.stage_timeout_seconds,
        max_concurrency=config.max_concurrency,
    )
