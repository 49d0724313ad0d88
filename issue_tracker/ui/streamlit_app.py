from __future__ import annotations

import os
from datetime import date
from typing import Any, Callable, Sequence

import streamlit as st

from issue_tracker.issues.models import Issue, WorkOrder
from issue_tracker.issues.presentation import (
    FILTER_LABELS,
    LOCATIONS,
    PRIORITY_LABELS,
    SORT_LABELS,
    delay_label,
    format_date,
    latest_note_preview,
    priority_badge,
    status_badge,
    visible_issues,
    work_order_label,
    work_orders_at,
)
from issue_tracker.issues.state import IssuePriority, IssueStatus
from issue_tracker.ui.api import APIError, IssueTrackerAPIClient
from issue_tracker.ui.auth import AuthProfile, preset_profiles, resolve_token
from issue_tracker.ui.utils import build_delay_payload, parse_issue, parse_work_order

DEFAULT_BASE_URL = os.getenv("ISSUE_TRACKER_API_BASE_URL", "http://localhost:8000")


def _get_auth_profile() -> AuthProfile:
    profile = st.session_state.get("auth_profile")
    if isinstance(profile, AuthProfile):
        return profile
    fallback = resolve_token(None)
    if fallback is None:  # pragma: no cover - error de configuración
        raise RuntimeError("No se encontró el perfil por defecto")
    st.session_state["auth_profile"] = fallback
    return fallback


def _set_auth_profile(profile: AuthProfile) -> None:
    st.session_state["auth_profile"] = profile
    st.session_state.pop("issues", None)


def _get_base_url() -> str:
    base_url = st.session_state.get("base_url")
    if not base_url:
        base_url = DEFAULT_BASE_URL
        st.session_state["base_url"] = base_url
    return str(base_url)


def _build_client() -> IssueTrackerAPIClient:
    profile = _get_auth_profile()
    return IssueTrackerAPIClient(base_url=_get_base_url(), token=profile.token)


def _handle_api_call(
    callback: Callable[[], object], success_message: str | None = None
) -> tuple[bool, object | None]:
    try:
        result = callback()
    except APIError as exc:
        st.error(str(exc))
        return False, None
    else:
        if success_message:
            st.success(success_message)
        return True, result


def _render_sidebar() -> str:
    st.sidebar.header("Conexión")
    _get_base_url()
    st.sidebar.text_input("URL base de la API", key="base_url")

    st.sidebar.header("Autenticación")
    options = list(preset_profiles())
    labels = [profile.label for profile in options]
    selected_label = st.sidebar.selectbox(
        "Perfiles", options=labels, index=labels.index(_get_auth_profile().label)
    )
    if st.sidebar.button("Usar perfil"):
        profile = next(item for item in options if item.label == selected_label)
        _set_auth_profile(profile)
        st.sidebar.success(f"Sesión iniciada como {profile.username}")

    active_profile = _get_auth_profile()
    st.sidebar.markdown("---")
    st.sidebar.markdown(f"**Usuario activo:** {active_profile.username}")
    if not active_profile.can_edit:
        st.sidebar.caption("Sin token: solo lectura")

    st.sidebar.header("Planta")
    return st.sidebar.radio("Ubicación", options=list(LOCATIONS), key="location")


def _load_work_orders(client: IssueTrackerAPIClient, location: str) -> list[WorkOrder]:
    success, payload = _handle_api_call(lambda: client.list_work_orders(location=location))
    if not success or not isinstance(payload, list):
        return []
    return work_orders_at([parse_work_order(item) for item in payload], location)


def _refresh_issues(client: IssueTrackerAPIClient, work_orders: Sequence[WorkOrder]) -> None:
    success, payload = _handle_api_call(lambda: client.list_issues([item.id for item in work_orders]))
    issues: list[Issue] = []
    if success and isinstance(payload, dict):
        issues = [parse_issue(item) for item in payload.get("issues", [])]
    st.session_state["issues"] = issues


def _badge(color: str, icon: str, label: str) -> str:
    return f":{color}[{icon} {label}]"


def _render_new_issue_form(client: IssueTrackerAPIClient, work_orders: Sequence[WorkOrder]) -> None:
    with st.expander("Nuevo Problema", icon=":material/add:"):
        if not work_orders:
            st.caption("No hay órdenes de trabajo en esta ubicación")
            return
        with st.form("new_issue_form", clear_on_submit=True):
            work_order = st.selectbox(
                "Orden de trabajo",
                options=list(work_orders),
                format_func=lambda item: f"{item.ot} - {item.client}",
            )
            title = st.text_input("Título")
            priority = st.selectbox(
                "Prioridad",
                options=list(IssuePriority),
                index=1,
                format_func=lambda item: PRIORITY_LABELS[item],
            )
            stage = st.text_input("Etapa (opcional)")
            notes = st.text_area("Notas iniciales")
            submitted = st.form_submit_button("Crear")

    if submitted:
        if not title.strip():
            st.error("El título es obligatorio")
            return
        success, _ = _handle_api_call(
            lambda: client.create_issue(
                work_order_id=work_order.id,
                title=title.strip(),
                priority=priority.value,
                stage=stage.strip() or None,
                notes=notes,
            ),
            "Problema creado",
        )
        if success:
            _refresh_issues(client, work_orders)


def _render_issue_row(issue: Issue, work_orders: Sequence[WorkOrder]) -> None:
    with st.container(border=True):
        title_col, badge_col = st.columns([3, 2])
        title_col.markdown(f"#### {issue.title}")
        context = work_order_label(issue.work_order_id, work_orders)
        if issue.stage:
            context += f" • Etapa: {issue.stage}"
        title_col.caption(context)

        badges: list[str] = []
        if issue.delay is not None:
            badges.append(_badge("orange", ":material/schedule:", delay_label(issue.delay)))
        priority = priority_badge(issue.priority)
        badges.append(_badge(priority.color, priority.icon, priority.label))
        status = status_badge(issue.status)
        badges.append(_badge(status.color, status.icon, status.label))
        badge_col.markdown(" ".join(badges))

        preview = latest_note_preview(issue)
        if preview is not None:
            content, author = preview
            st.markdown(f"{content} · **{author}**" if author else content)

        created_col, updated_col, action_col = st.columns([2, 2, 1])
        created_col.caption(f"Creado el {format_date(issue.created_at)}")
        updated_col.caption(f"Última actualización: {format_date(issue.updated_at)}")
        if action_col.button("Detalles", key=f"open_{issue.id}"):
            st.session_state["selected_issue_id"] = issue.id


def _render_issue_details(
    client: IssueTrackerAPIClient, issue: Issue, work_orders: Sequence[WorkOrder]
) -> None:
    st.markdown("---")
    header_col, close_col = st.columns([5, 1])
    header_col.subheader(issue.title)
    header_col.caption(work_order_label(issue.work_order_id, work_orders))
    if close_col.button("Cerrar", key="close_details"):
        st.session_state.pop("selected_issue_id", None)
        st.rerun()

    with st.form(f"edit_issue_{issue.id}"):
        priority = st.selectbox(
            "Prioridad",
            options=list(IssuePriority),
            index=list(IssuePriority).index(issue.priority),
            format_func=lambda item: PRIORITY_LABELS[item],
        )
        stage = st.text_input("Etapa", value=issue.stage or "")
        save_fields = st.form_submit_button("Guardar cambios")
    if save_fields:
        changes: dict[str, Any] = {}
        if priority != issue.priority:
            changes["priority"] = priority.value
        if (stage.strip() or None) != issue.stage:
            changes["stage"] = stage.strip() or None
        if not changes:
            st.info("No hay cambios que guardar")
        else:
            _apply_update(client, issue, changes, work_orders, "Problema actualizado")

    if issue.priority.allows_delay:
        _render_delay_editor(client, issue, work_orders)
    else:
        st.caption("Las demoras solo se registran en problemas de prioridad alta o crítica")

    if issue.status == IssueStatus.RESOLVED:
        if st.button("Reabrir problema", key=f"reopen_{issue.id}"):
            _apply_update(client, issue, {"status": IssueStatus.OPEN.value}, work_orders, "Problema reabierto")
    else:
        confirm = st.checkbox("Confirmo que el problema está resuelto", key=f"confirm_{issue.id}")
        if st.button("Marcar como resuelto", key=f"resolve_{issue.id}", disabled=not confirm):
            if _apply_update(
                client, issue, {"status": IssueStatus.RESOLVED.value}, work_orders, "Problema resuelto"
            ):
                st.session_state.pop("selected_issue_id", None)
                st.rerun()

    _render_notes(client, issue, work_orders)


def _render_delay_editor(
    client: IssueTrackerAPIClient, issue: Issue, work_orders: Sequence[WorkOrder]
) -> None:
    st.markdown("#### Demora")
    current = issue.delay
    if current is not None:
        st.write(f"{format_date(current.start_date)} → "
                 f"{format_date(current.end_date) if current.end_date else 'en curso'} ({delay_label(current)})")
    with st.form(f"delay_{issue.id}"):
        start = st.date_input("Inicio", value=current.start_date if current else date.today())
        has_end = st.checkbox("Demora finalizada", value=bool(current and current.end_date))
        end = st.date_input("Fin", value=(current.end_date if current and current.end_date else date.today()))
        save_delay = st.form_submit_button("Guardar demora")
        remove_delay = st.form_submit_button("Eliminar demora", disabled=current is None)

    if save_delay:
        try:
            delay = build_delay_payload(start, end if has_end else None)
        except ValueError as exc:
            st.error(str(exc))
        else:
            _apply_update(client, issue, {"delay": delay}, work_orders, "Demora guardada")
    if remove_delay:
        _apply_update(client, issue, {"delay": None}, work_orders, "Demora eliminada")


def _render_notes(client: IssueTrackerAPIClient, issue: Issue, work_orders: Sequence[WorkOrder]) -> None:
    st.markdown("#### Notas")
    if not issue.issue_notes:
        st.caption("Todavía no hay notas")
    for note in issue.issue_notes:
        author = note.user_email or note.created_by
        st.markdown(f"**{author}** ({format_date(note.created_at)}): {note.content}")

    with st.form(f"add_note_{issue.id}", clear_on_submit=True):
        content = st.text_area("Nueva nota", height=100)
        submitted = st.form_submit_button("Agregar nota")
    if submitted:
        if not content.strip():
            st.warning("La nota no puede estar vacía")
            return
        success, _ = _handle_api_call(lambda: client.add_issue_note(issue.id, content=content), "Nota agregada")
        if success:
            _refresh_issues(client, work_orders)
            st.rerun()


def _apply_update(
    client: IssueTrackerAPIClient,
    issue: Issue,
    changes: dict[str, Any],
    work_orders: Sequence[WorkOrder],
    success_message: str,
) -> bool:
    success, _ = _handle_api_call(lambda: client.update_issue(issue.id, changes), success_message)
    if success:
        _refresh_issues(client, work_orders)
    return success


def main() -> None:
    st.set_page_config(page_title="Problemas Reportados", layout="wide")
    location = _render_sidebar()
    client = _build_client()

    work_orders = _load_work_orders(client, location)
    if st.session_state.get("issues_location") != location or "issues" not in st.session_state:
        st.session_state["issues_location"] = location
        _refresh_issues(client, work_orders)

    header_col, refresh_col = st.columns([5, 1])
    header_col.title("Problemas Reportados")
    if refresh_col.button("Actualizar"):
        _refresh_issues(client, work_orders)

    if _get_auth_profile().can_edit:
        _render_new_issue_form(client, work_orders)

    filter_col, sort_col = st.columns(2)
    issue_filter = filter_col.radio(
        "Estado",
        options=list(FILTER_LABELS),
        format_func=lambda key: FILTER_LABELS[key],
        horizontal=True,
        key="issue_filter",
    )
    sort_by = sort_col.selectbox(
        "Ordenar por",
        options=list(SORT_LABELS),
        format_func=lambda key: SORT_LABELS[key],
        key="issue_sort",
    )

    issues: list[Issue] = st.session_state.get("issues", [])
    shown = visible_issues(issues, issue_filter, sort_by)
    if not shown:
        st.info("No hay problemas reportados")
    for issue in shown:
        _render_issue_row(issue, work_orders)

    selected_id = st.session_state.get("selected_issue_id")
    selected = next((issue for issue in issues if issue.id == selected_id), None)
    if selected is not None:
        if _get_auth_profile().can_edit:
            _render_issue_details(client, selected, work_orders)
        else:
            st.warning("Inicie sesión con un token para editar problemas")


if __name__ == "__main__":
    main()
