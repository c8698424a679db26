from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Sequence

from pydantic import BaseModel, Field

from rpa_planner.common.rounding import round_half_up_int
from rpa_planner.domain.errors import require_non_negative
from rpa_planner.domain.models import PhaseType


logger = logging.getLogger(__name__)


class ParticipationType(str, Enum):
    PREVIO_KICKOFF = "PREVIO_KICKOFF"
    CLIENTE = "CLIENTE"
    SEIDOR = "SEIDOR"
    RECUPERADOS = "RECUPERADOS"
    FIN_PROYECTO = "FIN_PROYECTO"

    @property
    def label(self) -> str:
        return _PARTICIPATION_LABELS[self]


_PARTICIPATION_LABELS: dict[ParticipationType, str] = {
    ParticipationType.PREVIO_KICKOFF: "Previo al Kick Off",
    ParticipationType.CLIENTE: "Participación activa Cliente",
    ParticipationType.SEIDOR: "Seidor",
    ParticipationType.RECUPERADOS: "Días Recuperados",
    ParticipationType.FIN_PROYECTO: "Fin del proyecto",
}


@dataclass(frozen=True)
class ActivityTemplate:
    code: str
    name: str
    default_duration: int  # working days; 0 marks a header row
    participation_type: ParticipationType


@dataclass(frozen=True)
class PhaseTemplate:
    name: str
    type: PhaseType
    order: int
    activities: tuple[ActivityTemplate, ...]

    @property
    def total_duration(self) -> int:
        return sum(a.default_duration for a in self.activities)


class PhaseDurations(BaseModel):
    """Target length of each SAM phase, in working days."""

    prepare: int = Field(..., ge=1)
    connect: int = Field(..., ge=1)
    realize: int = Field(..., ge=1)
    run: int = Field(..., ge=1)

    def for_phase(self, phase_type: PhaseType) -> int:
        return int(getattr(self, phase_type.value.lower()))


def _a(code: str, name: str, days: int, participation: ParticipationType) -> ActivityTemplate:
    return ActivityTemplate(code=code, name=name, default_duration=days, participation_type=participation)


_P = ParticipationType

# SAM (SMART AGILE Methodology): the fixed plan every project starts from.
SAM_TEMPLATE: tuple[PhaseTemplate, ...] = (
    PhaseTemplate(
        name="Prepare",
        type=PhaseType.PREPARE,
        order=1,
        activities=(
            _a("1.1", "Aseguramiento de Ambientes, Credenciales y Requerimientos Técnicos", 3, _P.PREVIO_KICKOFF),
            _a("1.1.1", "Identificación de Stakeholders y Riesgos del Proyecto", 1, _P.PREVIO_KICKOFF),
            _a("1.1.2", "Preparación del KickOff", 1, _P.PREVIO_KICKOFF),
            _a("1.1.3", "Presentación del KickOff", 1, _P.CLIENTE),
        ),
    ),
    PhaseTemplate(
        name="Connect",
        type=PhaseType.CONNECT,
        order=2,
        activities=(
            _a("2.1", "Levantamiento", 0, _P.SEIDOR),
            _a("2.1.1", "Entendimiento detallado del AS IS", 2, _P.CLIENTE),
            _a("2.1.2", "Generación de video detallado del proceso + Consultas", 2, _P.CLIENTE),
            _a("2.2", "Diseño Funcional", 0, _P.SEIDOR),
            _a("2.2.1", "Definición del TO BE", 2, _P.SEIDOR),
            _a("2.2.2", "Elaboración del PDD", 3, _P.SEIDOR),
            _a("2.2.3", "Reunión de revisión del PDD", 1, _P.CLIENTE),
            _a("2.2.4", "Aprobación del PDD", 1, _P.CLIENTE),
            _a("2.3", "Diseño Solución", 0, _P.SEIDOR),
            _a("2.3.1", "Definición de pruebas integrales", 1, _P.SEIDOR),
            _a("2.3.2", "Generación de Producto Backlog", 1, _P.SEIDOR),
            _a("2.3.3", "Sprint Planning", 1, _P.SEIDOR),
        ),
    ),
    PhaseTemplate(
        name="Realize",
        type=PhaseType.REALIZE,
        order=3,
        activities=(
            _a("3", "Desarrollo", 0, _P.SEIDOR),
            _a("3.1.1", "Construcción + Testing en Desarrollo", 10, _P.SEIDOR),
            _a("3.1.2", "Playbacks", 2, _P.CLIENTE),
            _a("3.2", "Pruebas Integrales - UAT", 0, _P.SEIDOR),
            _a("3.2.1", "Pruebas UAT (atendidas y desatendidas)", 3, _P.CLIENTE),
            _a("3.2.2", "Ajustes de pruebas integrales", 2, _P.SEIDOR),
            _a("3.2.4", "Elaboración de Manual de Usuario", 2, _P.SEIDOR),
            _a("3.2.5", "Capacitación Funcional a Usuarios", 1, _P.CLIENTE),
        ),
    ),
    PhaseTemplate(
        name="Run",
        type=PhaseType.RUN,
        order=4,
        activities=(
            _a("5.1", "GO LIVE", 0, _P.SEIDOR),
            _a("5.1.1", "Elaboración de documentación: DSD y PDD actualizado y Documentos para pase", 2, _P.SEIDOR),
            _a("5.1.2", "Pase a Producción - Fin de Proyecto", 1, _P.FIN_PROYECTO),
            _a("5.2", "HyperCare - Garantía hasta 1 semana luego del GO Live", 0, _P.SEIDOR),
            _a("5.2.1", "Estabilización en PRD", 5, _P.SEIDOR),
            _a("5.2.2", "Marcha blanca", 5, _P.SEIDOR),
            _a("5.2.3", "Entrega de Documentación", 1, _P.SEIDOR),
            _a("5.2.4", "Capacitación Técnica", 1, _P.CLIENTE),
        ),
    ),
)


@dataclass(frozen=True)
class GeneratedActivity:
    template: ActivityTemplate
    order: int


@dataclass(frozen=True)
class GeneratedPhase:
    project_id: str
    name: str
    type: PhaseType
    order: int
    activities: tuple[GeneratedActivity, ...]


def generate_structure(
    project_id: str,
    template: Sequence[PhaseTemplate] = SAM_TEMPLATE,
) -> list[GeneratedPhase]:
    """Instantiate the template for a project; dates are assigned later."""
    return [
        GeneratedPhase(
            project_id=project_id,
            name=phase.name,
            type=phase.type,
            order=phase.order,
            activities=tuple(
                GeneratedActivity(template=a, order=i + 1) for i, a in enumerate(phase.activities)
            ),
        )
        for phase in template
    ]


def total_default_duration(template: Sequence[PhaseTemplate] = SAM_TEMPLATE) -> int:
    return sum(phase.total_duration for phase in template)


def default_phase_durations(template: Sequence[PhaseTemplate] = SAM_TEMPLATE) -> PhaseDurations:
    totals = {t.value.lower(): 0 for t in PhaseType}
    for phase in template:
        totals[phase.type.value.lower()] = phase.total_duration
    return PhaseDurations.model_construct(**totals)


def scale_phase_activities(phase: PhaseTemplate, target_duration: int) -> list[ActivityTemplate]:
    """Rescale a phase's activities so their durations sum to ``target_duration``.

    Each non-header activity becomes ``round(d * target / total)``, at least 1.
    The rounding drift is then charged to the longest activity, unless that
    would push it below one day, in which case the drift is left in place.
    """
    require_non_negative("target_duration", target_duration)
    original = phase.total_duration

    if original == 0 or target_duration == 0:
        return [
            replace(a, default_duration=max(1, a.default_duration)) if a.default_duration > 0 else a
            for a in phase.activities
        ]

    factor = target_duration / original
    scaled = [
        replace(a, default_duration=max(1, round_half_up_int(a.default_duration * factor)))
        if a.default_duration > 0
        else a
        for a in phase.activities
    ]

    diff = target_duration - sum(a.default_duration for a in scaled)
    if diff != 0:
        largest: int | None = None
        for i, a in enumerate(scaled):
            if a.default_duration > 0 and (largest is None or a.default_duration > scaled[largest].default_duration):
                largest = i
        if largest is not None and scaled[largest].default_duration + diff >= 1:
            scaled[largest] = replace(
                scaled[largest],
                default_duration=scaled[largest].default_duration + diff,
            )
        else:
            logger.warning(
                "Phase %s: cannot absorb %+d day(s) of rounding drift toward target %d",
                phase.name,
                diff,
                target_duration,
            )
    return scaled


def generate_scaled_template(
    custom_durations: PhaseDurations,
    template: Sequence[PhaseTemplate] = SAM_TEMPLATE,
) -> list[PhaseTemplate]:
    return [
        replace(
            phase,
            activities=tuple(scale_phase_activities(phase, custom_durations.for_phase(phase.type))),
        )
        for phase in template
    ]
