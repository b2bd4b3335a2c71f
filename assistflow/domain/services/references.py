"""
Human-readable request references.

    EN-ASS + <3-char application code> + <4-digit yearly sequence> + -<year>
    e.g. EN-ASSGDC0007-2026

The sequence counts the application's requests created this year. When the
computed reference is already taken, ``-01`` .. ``-05`` suffixes are tried.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Collection
from datetime import datetime
from typing import Protocol

import structlog
from assistflow.domain.errors import InvalidPayloadError, ReferenceGenerationError
from assistflow.domain.models import utcnow

logger = structlog.get_logger()

DEFAULT_APPLICATION_CODE = "GEN"
SEQUENCE_LENGTH = 4


class ReferenceSource(Protocol):
    async def application_name(self, application_id: int | None) -> str | None: ...

    async def count_for_application(self, application_id: int | None, year: int) -> int: ...

    async def reference_exists(self, reference: str) -> bool: ...


class ReferenceGenerator:
    def __init__(
        self,
        prefix: str = "EN-ASS",
        max_attempts: int = 5,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.prefix = prefix
        self.max_attempts = max_attempts
        self.clock = clock

    @staticmethod
    def application_code(name: str | None) -> str:
        """Three-character code: a lone word's leading characters, or initials."""
        words = (name or "").split()
        if not words:
            return DEFAULT_APPLICATION_CODE
        if len(words) == 1:
            code = re.sub(r"[^a-zA-Z0-9]", "", words[0]).upper()
        else:
            code = "".join(word[0] for word in words).upper()
        return code[:3].ljust(3, "X")

    async def generate(
        self,
        source: ReferenceSource,
        application_id: int | None,
        taken: Collection[str] = (),
    ) -> str:
        """Next free reference. Candidates in ``taken`` count as already used."""
        name = await source.application_name(application_id)
        if application_id is not None and name is None:
            raise InvalidPayloadError("create", "application_id", "does not name an application")

        year = self.clock().year
        sequence = await source.count_for_application(application_id, year) + 1
        base = f"{self.prefix}{self.application_code(name)}{sequence:0{SEQUENCE_LENGTH}d}-{year}"
        if base not in taken and not await source.reference_exists(base):
            return base

        for attempt in range(1, self.max_attempts + 1):
            candidate = f"{base}-{attempt:02d}"
            if candidate not in taken and not await source.reference_exists(candidate):
                await logger.ainfo("reference_suffixed", reference=candidate)
                return candidate

        raise ReferenceGenerationError(
            f"Could not generate a unique reference after {self.max_attempts} attempts"
        )
