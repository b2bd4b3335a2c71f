"""Unit tests for reference generation."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from assistflow.domain.errors import InvalidPayloadError, ReferenceGenerationError
from assistflow.domain.services.references import ReferenceGenerator


class FakeSource:
    def __init__(self, applications: dict[int, str] | None = None, count: int = 0) -> None:
        self.applications = applications or {}
        self.count = count
        self.taken: set[str] = set()
        self.counted: list[tuple[int | None, int]] = []

    async def application_name(self, application_id: int | None) -> str | None:
        if application_id is None:
            return None
        return self.applications.get(application_id)

    async def count_for_application(self, application_id: int | None, year: int) -> int:
        self.counted.append((application_id, year))
        return self.count

    async def reference_exists(self, reference: str) -> bool:
        return reference in self.taken


def generator() -> ReferenceGenerator:
    return ReferenceGenerator(clock=lambda: datetime(2026, 3, 2, tzinfo=UTC))


class TestApplicationCode:
    @pytest.mark.parametrize(
        ("name", "code"),
        [
            (None, "GEN"),
            ("", "GEN"),
            ("Gestion Des Congés", "GDC"),
            ("sirh", "SIR"),
            ("e-Courrier", "ECO"),
            ("RH", "RHX"),
            ("Portail Agent", "PAX"),
            ("gestion du parc informatique", "GDP"),
        ],
    )
    def test_codes(self, name: str | None, code: str) -> None:
        assert ReferenceGenerator.application_code(name) == code


class TestGenerate:
    async def test_first_reference_without_application(self) -> None:
        source = FakeSource()

        reference = await generator().generate(source, None)

        assert reference == "EN-ASSGEN0001-2026"
        assert source.counted == [(None, 2026)]

    async def test_sequence_follows_yearly_count(self) -> None:
        source = FakeSource({7: "Gestion Des Congés"}, count=6)

        assert await generator().generate(source, 7) == "EN-ASSGDC0007-2026"

    async def test_custom_prefix(self) -> None:
        source = FakeSource()
        refs = ReferenceGenerator(prefix="DA-", clock=lambda: datetime(2027, 1, 1, tzinfo=UTC))

        assert await refs.generate(source, None) == "DA-GEN0001-2027"

    async def test_suffix_when_taken(self) -> None:
        source = FakeSource()
        source.taken = {"EN-ASSGEN0001-2026", "EN-ASSGEN0001-2026-01"}

        assert await generator().generate(source, None) == "EN-ASSGEN0001-2026-02"

    async def test_skips_references_rejected_by_the_caller(self) -> None:
        source = FakeSource()
        source.taken = {"EN-ASSGEN0001-2026-01"}

        reference = await generator().generate(source, None, taken={"EN-ASSGEN0001-2026"})

        assert reference == "EN-ASSGEN0001-2026-02"

    async def test_gives_up_after_max_attempts(self) -> None:
        source = FakeSource()
        source.taken = {"EN-ASSGEN0001-2026"} | {f"EN-ASSGEN0001-2026-{n:02d}" for n in range(1, 6)}

        with pytest.raises(ReferenceGenerationError):
            await generator().generate(source, None)

    async def test_unknown_application(self) -> None:
        with pytest.raises(InvalidPayloadError) as exc_info:
            await generator().generate(FakeSource(), 42)

        assert exc_info.value.field == "application_id"
