"""Keyword-pattern domain classifier used to pick a chain's entry domain."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from tierwise.models.task import Task


class KeywordDomainClassifier:
    """Maps a task to the domain whose patterns hit most often in its text.

    Ties keep pattern declaration order. A task that matches nothing maps to
    ``default_domain``, or to ``"general"`` when no default is configured.
    """

    GENERAL = "general"

    def __init__(
        self, patterns: Mapping[str, Sequence[str]], default_domain: Optional[str] = None
    ) -> None:
        self._patterns = {domain: [p.lower() for p in words] for domain, words in patterns.items()}
        self._default = default_domain or self.GENERAL

    @property
    def domains(self) -> list[str]:
        return list(self._patterns)

    def scores(self, task: Task) -> dict[str, int]:
        text = task.text
        return {domain: sum(w in text for w in words) for domain, words in self._patterns.items()}

    def __call__(self, task: Task) -> str:
        best, best_score = self._default, 0
        for domain, score in self.scores(task).items():
            if score > best_score:
                best, best_score = domain, score
        return best
