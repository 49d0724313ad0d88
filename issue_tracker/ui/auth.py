from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True, slots=True)
class AuthProfile:
    """Identidad con la que la interfaz llama a la API."""

    label: str
    username: str
    token: str | None = None

    @property
    def can_edit(self) -> bool:
        """Sin token la API rechaza altas, cambios y notas."""

        return bool(self.token)


ANONYMOUS = AuthProfile("Usuario anónimo (solo lectura)", "anonymous")

_PROFILES: tuple[AuthProfile, ...] = (
    ANONYMOUS,
    AuthProfile("Supervisor de planta", "supervisor", "supervisor-token"),
    AuthProfile("Operario", "operario", "operator-token"),
)


def preset_profiles() -> Iterable[AuthProfile]:
    return _PROFILES


def resolve_token(token: str | None) -> AuthProfile | None:
    """Perfil asociado a un token; sin token se usa el perfil anónimo."""

    if not token:
        return ANONYMOUS
    return next((profile for profile in _PROFILES if profile.token == token), None)
