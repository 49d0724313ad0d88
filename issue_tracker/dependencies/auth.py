from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from issue_tracker.issues.models import Actor

TOKEN_ACTOR_MAP: dict[str, Actor] = {
    "supervisor-token": Actor(id="0b7e6a52-5c39-4d0f-9a57-31f5d2c8e001", email="supervisor@planta.example"),
    "operator-token": Actor(id="0b7e6a52-5c39-4d0f-9a57-31f5d2c8e002", email="operario@planta.example"),
}

bearer_scheme = HTTPBearer(auto_error=False)


def resolve_actor_from_token(token: str | None) -> Actor | None:
    """Return the actor behind a bearer token, or ``None`` for anonymous access."""

    if not token:
        return None

    actor = TOKEN_ACTOR_MAP.get(token)
    if actor is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return actor


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> Actor | None:
    """Very small authentication stub.

    Static tokens map to known actors. Anonymous requests are allowed to read;
    mutations receive ``None`` and are rejected by the issue store.
    """

    cached = getattr(request.state, "actor", None)
    if isinstance(cached, Actor):
        return cached

    token = credentials.credentials if credentials is not None else None
    actor = resolve_actor_from_token(token)
    request.state.actor = actor
    return actor


CurrentActor = Annotated[Actor | None, Depends(get_current_actor)]
