"""Type aliases used across the Tierwise platform."""

from __future__ import annotations

from typing import Any, Callable

# Injected routing classifier: task -> domain name.
DomainClassifier = Callable[[Any], str]
