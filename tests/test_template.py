from __future__ import annotations

import pytest
from pydantic import ValidationError

from rpa_planner.domain.errors import NegativeDurationError
from rpa_planner.domain.models import PhaseType
from rpa_planner.scheduling.template import (
    SAM_TEMPLATE,
    ActivityTemplate,
    ParticipationType,
    PhaseDurations,
    PhaseTemplate,
    default_phase_durations,
    generate_scaled_template,
    generate_structure,
    scale_phase_activities,
    total_default_duration,
)


def _phase(*durations: int) -> PhaseTemplate:
    return PhaseTemplate(
        name="Connect",
        type=PhaseType.CONNECT,
        order=2,
        activities=tuple(
            ActivityTemplate(f"2.{i}", f"act {i}", d, ParticipationType.SEIDOR) for i, d in enumerate(durations, start=1)
        ),
    )


def test_sam_template_phase_totals() -> None:
    totals = {p.type: p.total_duration for p in SAM_TEMPLATE}

    assert totals == {
        PhaseType.PREPARE: 6,
        PhaseType.CONNECT: 14,
        PhaseType.REALIZE: 20,
        PhaseType.RUN: 15,
    }
    assert total_default_duration() == 55


def test_default_durations_match_template() -> None:
    durations = default_phase_durations()
    assert (durations.prepare, durations.connect, durations.realize, durations.run) == (6, 14, 20, 15)


def test_scaling_hits_target_exactly() -> None:
    scaled = scale_phase_activities(_phase(0, 5, 4, 3, 1), 20)

    assert [a.default_duration for a in scaled] == [0, 7, 6, 5, 2]
    assert sum(a.default_duration for a in scaled) == 20


def test_scaling_keeps_headers_at_zero_and_others_at_least_one() -> None:
    scaled = scale_phase_activities(_phase(0, 10, 1, 1), 4)

    assert scaled[0].default_duration == 0
    assert all(a.default_duration >= 1 for a in scaled[1:])
    assert sum(a.default_duration for a in scaled) == 4


def test_scaling_to_default_is_identity() -> None:
    scaled = generate_scaled_template(default_phase_durations())
    for original, new in zip(SAM_TEMPLATE, scaled):
        assert [a.default_duration for a in new.activities] == [a.default_duration for a in original.activities]


def test_doubling_realize() -> None:
    durations = PhaseDurations(prepare=6, connect=14, realize=40, run=15)
    realize = next(p for p in generate_scaled_template(durations) if p.type == PhaseType.REALIZE)

    assert [a.default_duration for a in realize.activities] == [0, 20, 4, 0, 6, 4, 4, 2]


def test_negative_target_raises() -> None:
    with pytest.raises(NegativeDurationError):
        scale_phase_activities(_phase(1, 2), -1)


def test_phase_durations_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        PhaseDurations(prepare=0, connect=14, realize=20, run=15)


def test_generate_structure_numbers_activities_per_phase() -> None:
    phases = generate_structure("P-1")

    assert [p.type for p in phases] == [PhaseType.PREPARE, PhaseType.CONNECT, PhaseType.REALIZE, PhaseType.RUN]
    assert all(p.project_id == "P-1" for p in phases)
    assert [a.order for a in phases[0].activities] == [1, 2, 3, 4]
    assert ParticipationType.CLIENTE.label == "Participación activa Cliente"
