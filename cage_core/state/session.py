import streamlit as st

from cage_core.forms.technician import Technician

# Central registry for session-state keys used across the app.
SESSION_DEFAULTS = {
    "technician": None,
    "form_sessions": {},
    "last_submission": None,
    "debug_mode": False,
    "_restore_attempted": False,
}


def init_state():
    """Initialize session state with defaults."""
    for k, v in SESSION_DEFAULTS.items():
        if k not in st.session_state:
            st.session_state[k] = v.copy() if isinstance(v, dict) else v


def current_technician():
    return st.session_state.get("technician")


def get_form_session(services, form_key):
    """The FormSession for a form type, opened on first use and kept across reruns."""
    sessions = st.session_state["form_sessions"]
    session = sessions.get(form_key)
    if session is None:
        session = services.open_session(form_key, current_technician())
        sessions[form_key] = session
    return session


def sign_in(services, technician: Technician):
    """Remember the technician and reset every open form to a fresh draft."""
    st.session_state["technician"] = technician
    services.directory.remember_last_user(technician)
    for session in st.session_state["form_sessions"].values():
        session.sign_in(technician)


def apply_profile(technician: Technician):
    st.session_state["technician"] = technician
    for session in st.session_state["form_sessions"].values():
        session.apply_profile(technician)


def sign_out(services):
    """Log out: forget the last user and reset every form session."""
    services.directory.forget_last_user()
    for session in st.session_state["form_sessions"].values():
        session.logout()
    st.session_state["technician"] = None
    st.session_state["last_submission"] = None
