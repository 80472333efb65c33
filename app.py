"""
Cage Service Sheets - Streamlit entry point.

Run with:
    streamlit run app.py
"""

from __future__ import annotations
import base64
from dataclasses import replace

import streamlit as st

from cage_core.errors import ErrorContext, safe_execute
from cage_core.forms import CALL_TYPES, ASSESSMENT_TYPES, get_form_type
from cage_core.logging import setup_logging
from cage_core.reports import StreamlitDelivery
from cage_core.services import get_services
from cage_core.state.session import (
    apply_profile,
    current_technician,
    get_form_session,
    init_state,
    sign_in,
    sign_out,
)
from cage_core.ui.notices import show_save_outcome, show_submission

st.set_page_config(
    page_title="Cage Service Sheets",
    page_icon="🛠️",
    layout="centered",
)

init_state()
services = get_services()
setup_logging(level=services.config.log_level)
services.pipeline.delivery = StreamlitDelivery()


def _to_data_url(uploaded) -> str | None:
    if uploaded is None:
        return None
    encoded = base64.b64encode(uploaded.getvalue()).decode("ascii")
    return f"data:{uploaded.type or 'image/png'};base64,{encoded}"


def _key(session, name: str) -> str:
    # Widgets reset whenever the session switches to another record
    return f"{session.form_type.key}_{name}_{id(session.record)}"


def _image_input(session, field_name: str, label: str) -> None:
    uploaded = st.file_uploader(label, type=["png", "jpg", "jpeg"], key=_key(session, field_name))
    if uploaded is not None:
        session.update_field(field_name, _to_data_url(uploaded))
    if session.record.get(field_name):
        st.image(session.record[field_name], width=220)


# ============================================================================
# CONNECTION BANNER
# ============================================================================
services.connection.check_if_due()
status = services.connection.get_status_display()
status_label = status["status"].replace("_", " ").title()
if not services.connection.is_online:
    reason = f" ({status['error']})" if status["error"] else ""
    st.warning(f"{status_label}{reason}: reports are saved on this device.")


# ============================================================================
# LOGIN
# ============================================================================
def render_login() -> None:
    st.title("Cage Service Sheets")

    if not st.session_state["_restore_attempted"]:
        st.session_state["_restore_attempted"] = True
        restored = safe_execute(services.directory.restore_last_user, default=None)
        if restored is not None:
            sign_in(services, restored)
            st.rerun()

    technicians, offline = services.directory.list_technicians()
    if offline:
        st.caption("Technician list loaded from this device.")

    login_tab, create_tab = st.tabs(["Sign in", "New technician"])

    with login_tab:
        if not technicians:
            st.info("No technicians yet. Create a profile to get started.")
        else:
            names = {f"{t.name} ({t.vehicle_number})": t for t in technicians}
            choice = st.selectbox("Technician", list(names))
            pin = st.text_input("PIN", type="password", max_chars=6)
            if st.button("Enter", type="primary"):
                technician = names[choice]
                if services.directory.verify_pin(technician, pin):
                    sign_in(services, technician)
                    st.rerun()
                else:
                    st.error("Incorrect PIN")

    with create_tab:
        with st.form("create_technician"):
            name = st.text_input("Full name")
            vehicle = st.text_input("Vehicle number")
            new_pin = st.text_input("Create PIN (4-6 digits)", type="password", max_chars=6)
            if st.form_submit_button("Create profile"):
                result = services.directory.create(name, vehicle, new_pin)
                if not result:
                    st.error(result.error)
                else:
                    if result.metadata.get("offline"):
                        st.warning("Connection issue: profile saved to this device only.")
                    sign_in(services, result.data)
                    st.rerun()


# ============================================================================
# FORMS
# ============================================================================
def render_service_fields(session) -> None:
    record = session.record
    call_type = st.radio(
        "Call type", CALL_TYPES,
        key=_key(session, "callType"),
        index=CALL_TYPES.index(record["callType"]) if record.get("callType") in CALL_TYPES else None,
        horizontal=True,
    )
    col1, col2 = st.columns(2)
    with col1:
        shop = st.text_input("Shop name", record.get("shopName", ""), key=_key(session, "shopName"))
        system = st.text_input("System type", record.get("systemType", ""), key=_key(session, "systemType"))
        terminal = st.text_input("Terminal #", record.get("terminalNumber", ""), key=_key(session, "terminalNumber"))
        arrival = st.text_input("Arrival time", record.get("arrivalTime", ""), key=_key(session, "arrivalTime"))
    with col2:
        date = st.text_input("Date", record.get("date", ""), key=_key(session, "date"))
        vehicle = st.text_input("Vehicle #", record.get("vehicleNumber", ""), key=_key(session, "vehicleNumber"))
        tech = st.text_input("Tech name", record.get("techName", ""), key=_key(session, "techName"))
        departure = st.text_input("Departure time", record.get("departureTime", ""), key=_key(session, "departureTime"))

    session.update_fields(
        callType=call_type, shopName=shop, systemType=system, terminalNumber=terminal,
        arrivalTime=arrival, date=date, vehicleNumber=vehicle, techName=tech,
        departureTime=departure,
        faultReported=st.text_area("Fault reported", record.get("faultReported", ""), key=_key(session, "faultReported")),
        faultEncountered=st.text_area("Fault encountered", record.get("faultEncountered", ""), key=_key(session, "faultEncountered")),
        repairsMade=st.text_area("Repairs made", record.get("repairsMade", ""), key=_key(session, "repairsMade")),
        partsUsed=st.text_area("Parts used", record.get("partsUsed", ""), key=_key(session, "partsUsed")),
        otherComments=st.text_area("Other comments", record.get("otherComments", ""), key=_key(session, "otherComments")),
    )
    assessment = st.radio(
        "Agent assessment", ASSESSMENT_TYPES,
        key=_key(session, "agentAssessment"),
        index=ASSESSMENT_TYPES.index(record["agentAssessment"])
        if record.get("agentAssessment") in ASSESSMENT_TYPES else None,
        horizontal=True,
    )
    session.update_field("agentAssessment", assessment)
    _image_input(session, "receiptImage", "Receipt photo")


def render_pm_fields(session) -> None:
    record = session.record
    col1, col2 = st.columns(2)
    with col1:
        agent = st.text_input("Agent name", record.get("agentName", ""), key=_key(session, "agentName"))
        arrival = st.text_input("Arrival time", record.get("arrivalTime", ""), key=_key(session, "arrivalTime"))
        system = st.text_input("System type", record.get("systemType", ""), key=_key(session, "systemType"))
    with col2:
        date = st.text_input("Date", record.get("date", ""), key=_key(session, "date"))
        departure = st.text_input("Departure time", record.get("departureTime", ""), key=_key(session, "departureTime"))
    session.update_fields(
        agentName=agent, arrivalTime=arrival, systemType=system, date=date,
        departureTime=departure,
    )

    st.subheader("Checklist")
    checks = list(record.get("checks") or [])
    for index, item in enumerate(session.form_type.checklist):
        ticked = st.checkbox(item, value=index < len(checks) and checks[index], key=_key(session, f"check_{index}"))
        if ticked != (index < len(checks) and checks[index]):
            session.toggle_check(index)

    session.update_fields(
        partsUsed=st.text_area("Parts used", record.get("partsUsed", ""), key=_key(session, "partsUsed")),
        comments=st.text_area("Comments", record.get("comments", ""), key=_key(session, "comments")),
    )


def render_history(session) -> None:
    if st.button("Refresh", key=f"{session.form_type.key}_refresh_history"):
        session.refresh_history()
    entries = session.history()
    if not entries:
        st.caption("No saved reports yet.")
        return

    st.dataframe(
        session.history_aggregator.to_dataframe(entries),
        hide_index=True,
        use_container_width=True,
    )
    for entry in entries:
        title = session.form_type.title(entry.data) or "Untitled"
        col1, col2, col3 = st.columns([4, 1, 1])
        col1.write(f"**{title}** · {entry.data.get('date', '')} · {entry.source}")
        if col2.button("Open", key=f"{session.form_type.key}_open_{entry.id}"):
            session.load(entry)
            st.rerun()
        if col3.button("Delete", key=f"{session.form_type.key}_delete_{entry.id}"):
            with ErrorContext("Deleting report") as action:
                session.delete(entry.id)
            if not action.failed:
                st.rerun()


def render_form(form_key: str) -> None:
    form_type = get_form_type(form_key)
    session = get_form_session(services, form_key)

    if form_key == "service":
        render_service_fields(session)
    else:
        render_pm_fields(session)

    st.subheader("Signatures")
    for field_name, caption, _date_field in form_type.signature_blocks:
        _image_input(session, field_name, f"{caption} signature")

    col1, col2, col3 = st.columns(3)
    if col1.button("Save", key=f"{form_key}_save"):
        show_save_outcome(session.save())

    if col2.button("Submit", key=f"{form_key}_submit", type="primary"):
        with ErrorContext(f"Submitting {form_type.label}") as action:
            submission = services.pipeline.submit(session)
        if not action.failed:
            show_submission(submission)

    if col3.button("New draft", key=f"{form_key}_new"):
        session.new_draft()
        st.rerun()

    with st.expander("History"):
        render_history(session)


# ============================================================================
# SETTINGS
# ============================================================================
def render_settings(technician) -> None:
    with st.sidebar:
        st.header(technician.name)
        st.caption(f"Vehicle {technician.vehicle_number} · {status_label}")
        with st.form("profile"):
            name = st.text_input("Name", technician.name)
            vehicle = st.text_input("Vehicle number", technician.vehicle_number)
            pin = st.text_input("Change login PIN", technician.pin, type="password", max_chars=6)
            if st.form_submit_button("Save profile"):
                updated = replace(technician, name=name, vehicle_number=vehicle.upper(), pin=pin)
                with ErrorContext("Updating profile"):
                    result = services.directory.update_profile(updated)
                    if not result:
                        st.error(result.error)
                    else:
                        apply_profile(updated)
                        if result.metadata.get("offline"):
                            st.warning("Profile updated on this device only.")

        if st.button("Log out"):
            sign_out(services)
            st.rerun()
        if st.button("Delete account"):
            with ErrorContext("Deleting account") as action:
                services.directory.delete_account(technician)
                sign_out(services)
            if not action.failed:
                st.rerun()

        work_offline = st.toggle("Work offline", value=services.connection.forced_offline)
        if work_offline != services.connection.forced_offline:
            if work_offline:
                services.connection.force_offline()
            else:
                services.connection.clear_forced_offline()
            st.rerun()


technician = current_technician()
if technician is None:
    render_login()
else:
    render_settings(technician)
    service_tab, pm_tab = st.tabs(["Service Call", "PM Checklist"])
    with service_tab:
        render_form("service")
    with pm_tab:
        render_form("pm")
