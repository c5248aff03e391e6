from typing import Dict, Optional, Union

from consultation_slots.config import settings
from consultation_slots.errors import UnknownConsultationKind
from consultation_slots.models import ConsultationKind


def resolve_kind(
    kind: Union[ConsultationKind, str],
    kinds: Optional[Dict[str, ConsultationKind]] = None
) -> ConsultationKind:
    """
    Look up a consultation kind by key (case-insensitive).

    ConsultationKind instances pass through unchanged, so callers can
    evaluate ad hoc kinds that are not in the registry.

    Raises:
        UnknownConsultationKind: key not in the registry
    """
    if isinstance(kind, ConsultationKind):
        return kind

    registry = settings.consultation_kinds if kinds is None else kinds
    key = (kind or "").strip().lower()
    if key not in registry:
        raise UnknownConsultationKind(kind)
    return registry[key]
