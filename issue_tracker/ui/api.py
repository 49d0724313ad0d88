from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import httpx

NO_CONTENT = 204


class APIError(RuntimeError):
    """Fallo devuelto por la API de problemas, con el código HTTP si lo hay."""

    def __init__(self, message: str, *, status_code: int | None = None, response: httpx.Response | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is None:
            return message
        return f"[{self.status_code}] {message}"


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or "Error desconocido del servidor"

    detail = body.get("detail") if isinstance(body, Mapping) else None
    if isinstance(detail, str):
        return detail
    # FastAPI devuelve una lista de errores de validación.
    if isinstance(detail, list) and detail and isinstance(detail[0], Mapping):
        return str(detail[0].get("msg", "Datos inválidos"))
    return "Se produjo un error durante la operación"


def _decode(response: httpx.Response) -> Any:
    if response.status_code == NO_CONTENT or not response.content:
        return None
    if "application/json" in response.headers.get("Content-Type", ""):
        return response.json()
    return response.text


@dataclass(slots=True)
class IssueTrackerAPIClient:
    """Cliente síncrono del servicio FastAPI de problemas."""

    base_url: str
    token: str | None = None
    timeout: float = 10.0
    default_headers: dict[str, str] = field(default_factory=lambda: {"Accept": "application/json"})

    def _headers(self) -> dict[str, str]:
        headers = dict(self.default_headers)
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = httpx.request(
                method, self._url(path), headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except httpx.HTTPError as exc:  # pragma: no cover - los fallos de red se prueban a mano
            raise APIError(f"No se pudo contactar con la API: {exc}") from exc

        if response.is_error:
            raise APIError(_error_detail(response), status_code=response.status_code, response=response)
        return _decode(response)

    def ping(self) -> Mapping[str, Any]:
        return self._request("GET", "/ping")

    def list_work_orders(self, *, location: str | None = None) -> list[Mapping[str, Any]]:
        params = {"location": location} if location else None
        data = self._request("GET", "/work-orders", params=params)
        return list(data or [])

    def list_issues(self, work_order_ids: Sequence[str]) -> Mapping[str, Any]:
        if not work_order_ids:
            return {"issues": [], "loading": False}
        params = [("work_order_id", work_order_id) for work_order_id in work_order_ids]
        return self._request("GET", "/issues", params=params)

    def create_issue(
        self,
        *,
        work_order_id: str,
        title: str,
        priority: str,
        stage: str | None = None,
        notes: str | None = None,
    ) -> Mapping[str, Any]:
        payload: dict[str, Any] = {
            "work_order_id": work_order_id,
            "title": title,
            "priority": priority,
            "stage": stage,
            "notes": notes,
        }
        return self._request("POST", "/issues", json=payload)

    def update_issue(self, issue_id: str, changes: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """Envía una actualización parcial; ``None`` si solo cambió la demora o las notas."""

        return self._request("PATCH", f"/issues/{issue_id}", json=dict(changes))

    def add_issue_note(self, issue_id: str, *, content: str) -> Mapping[str, Any]:
        return self._request("POST", f"/issues/{issue_id}/notes", json={"content": content})
