"""Streamlit console for the hostel portal (student and admin pages)."""

from __future__ import annotations

import time
from typing import Callable

import pandas as pd
import streamlit as st

from hostel_portal.domain.constraints import UploadCandidate, UploadValidationError
from hostel_portal.domain.models import StepState, VerificationState
from hostel_portal.portal import Portal, create_portal
from hostel_portal.repository.api_repository import ApiError, AuthenticationRequiredError
from hostel_portal.services.allocation_service import (
    AllocationReportError,
    AllocationStartNotAllowedError,
    ControllerState,
)
from hostel_portal.services.auth_service import ROLE_ADMIN, AuthenticationError
from hostel_portal.services.document_service import (
    DocumentLockedError,
    SubmissionNotReadyError,
)
from hostel_portal.services.registration_service import (
    DEPARTMENTS,
    EMERGENCY_CONTACT_RELATIONS,
    LEVELS,
    PREFERRED_BLOCKS,
    RegistrationForm,
    RegistrationValidationError,
)
from hostel_portal.services.report_service import (
    REPORT_PERIODS,
    ReportFilters,
    ReportUnavailableError,
    allocation_frame,
    frame_to_csv,
    registrations_frame,
    report_frame,
)
from hostel_portal.services.room_service import ROOM_CAPACITY_CHOICES, RoomForm, RoomValidationError
from hostel_portal.services.verification_service import DOCUMENT_TITLES, document_state, review_state


st.set_page_config(
    page_title="Hostel Portal",
    page_icon="🏠",
    layout="wide",
)

_STEP_ICONS = {
    StepState.COMPLETED: "✅",
    StepState.CURRENT: "🔵",
    StepState.REJECTED: "❌",
    StepState.PENDING: "⚪",
}
_STATE_ICONS = {
    VerificationState.VERIFIED: "✅",
    VerificationState.REJECTED: "❌",
    VerificationState.PENDING: "⏳",
}


def get_portal() -> Portal:
    """One wired client per browser session."""
    if "portal" not in st.session_state:
        st.session_state["portal"] = create_portal()
    return st.session_state["portal"]


# ==========================================
# Login
# ==========================================
def render_login(portal: Portal) -> None:
    st.title("🏠 Hostel Portal")
    student_tab, admin_tab = st.tabs(["Student", "Administrator"])

    with student_tab:
        with st.form("student-login"):
            matric_number = st.text_input("Matric Number")
            email = st.text_input("Email")
            if st.form_submit_button("Log in", type="primary"):
                _attempt_login(lambda: portal.auth.login_student(matric_number, email))

    with admin_tab:
        with st.form("admin-login"):
            email = st.text_input("Admin Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Log in", type="primary"):
                _attempt_login(lambda: portal.auth.login_admin(email, password))


def _attempt_login(login: Callable[[], object]) -> None:
    try:
        login()
    except (AuthenticationError, ApiError) as exc:
        st.error(str(exc))
        return
    st.rerun()


# ==========================================
# Student pages
# ==========================================
def render_status_page(portal: Portal) -> None:
    st.header("📋 Application Status")
    page = portal.registration.get_status_page()
    view = page.view

    col1, col2 = st.columns(2)
    col1.metric("Status", view.label)
    col2.metric("Progress", f"{view.progress}%")
    st.progress(view.progress)

    for step in view.steps:
        with st.container(border=True):
            st.markdown(f"{_STEP_ICONS[step.state]} **{step.title}**")
            st.caption(step.description)
            if step.completed_at:
                st.caption(f"Completed {step.completed_at:%d %b %Y %H:%M}")
            if step.rejection_reason:
                st.error(step.rejection_reason)

    if page.record.room_id:
        st.success(f"Room allocated: {page.record.room_id}")


def render_registration_page(portal: Portal) -> None:
    st.header("📝 Hostel Registration")
    state = portal.registration.load_form()
    form = state.form
    if not state.editable:
        st.info(f"Your registration is {state.status.value.lower().replace('_', ' ')} and cannot be edited.")

    with st.form("registration"):
        col1, col2 = st.columns(2)
        with col1:
            matric_number = st.text_input("Matric Number", form.matric_number)
            first_name = st.text_input("First Name", form.first_name)
            last_name = st.text_input("Last Name", form.last_name)
            email = st.text_input("Email", form.email)
            phone = st.text_input("Phone", form.phone)
            department = st.selectbox(
                "Department",
                DEPARTMENTS,
                index=DEPARTMENTS.index(form.department) if form.department in DEPARTMENTS else 0,
            )
        with col2:
            level = st.selectbox("Level", LEVELS, index=LEVELS.index(form.level) if form.level in LEVELS else 0)
            preferred_block = st.selectbox(
                "Preferred Block",
                ("",) + PREFERRED_BLOCKS,
                index=(PREFERRED_BLOCKS.index(form.preferred_block) + 1)
                if form.preferred_block in PREFERRED_BLOCKS
                else 0,
            )
            emergency_contact_name = st.text_input("Emergency Contact Name", form.emergency_contact_name)
            emergency_contact_phone = st.text_input("Emergency Contact Phone", form.emergency_contact_phone)
            emergency_contact_relation = st.selectbox(
                "Relationship",
                ("",) + EMERGENCY_CONTACT_RELATIONS,
                index=(EMERGENCY_CONTACT_RELATIONS.index(form.emergency_contact_relation) + 1)
                if form.emergency_contact_relation in EMERGENCY_CONTACT_RELATIONS
                else 0,
            )
        special_requests = st.text_area("Special Requests", form.special_requests)

        if st.form_submit_button("Submit Registration", type="primary", disabled=not state.editable):
            submitted = RegistrationForm(
                matric_number=matric_number,
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone=phone,
                department=department,
                level=level,
                preferred_block=preferred_block,
                special_requests=special_requests,
                emergency_contact_name=emergency_contact_name,
                emergency_contact_phone=emergency_contact_phone,
                emergency_contact_relation=emergency_contact_relation,
            )
            try:
                portal.registration.save_form(submitted, current_status=state.status)
            except RegistrationValidationError as exc:
                for message in exc.errors.values():
                    st.error(message)
                return
            st.success("Registration saved.")


def render_documents_page(portal: Portal) -> None:
    st.header("📎 Upload Documents")
    tracker = portal.documents
    tracker.load()

    if tracker.all_verified:
        st.success("All documents have been successfully verified!")
    elif tracker.submitted:
        st.info(
            "All documents have been submitted successfully for verification! "
            "You will be notified once the review process is complete."
        )

    for state in tracker.categories:
        spec = state.spec
        with st.container(border=True):
            st.subheader(f"{_STATE_ICONS[state.verification_state]} {spec.title}")
            st.caption(
                f"{spec.description} | Accepted formats: {', '.join(spec.accepted_formats)} "
                f"| Max size: {spec.max_size_mb:g}MB | Max files: {spec.max_files}"
            )
            for item in state.files:
                col1, col2, col3 = st.columns([4, 1, 1])
                col1.write(f"{item.file_name} ({item.verification_state.value})")
                if item.verification_state is VerificationState.REJECTED and item.rejection_reason:
                    col1.error(item.rejection_reason)
                artifact = tracker.download(item.id) if col2.button("Fetch", key=f"fetch-{item.id}") else None
                if artifact is not None:
                    col2.download_button("Save", artifact.content, artifact.filename, artifact.content_type)
                if tracker.allow_editing and item.verification_state is not VerificationState.VERIFIED:
                    if col3.button("Remove", key=f"remove-{item.id}"):
                        _run_document_action(lambda: tracker.remove(spec.id, item.id))

            if tracker.allow_editing:
                uploads = st.file_uploader(
                    f"Add {spec.title}",
                    type=[fmt.lstrip(".") for fmt in spec.accepted_formats],
                    accept_multiple_files=spec.max_files > 1,
                    key=f"upload-{spec.id}",
                )
                if uploads and not isinstance(uploads, list):
                    uploads = [uploads]
                if uploads and st.button("Upload", key=f"do-upload-{spec.id}"):
                    candidates = [
                        UploadCandidate(item.name, item.getvalue(), item.type or "application/octet-stream")
                        for item in uploads
                    ]
                    _run_document_action(lambda: tracker.upload(spec.id, candidates))

    if tracker.all_verified:
        return
    col1, col2 = st.columns(2)
    if tracker.allow_editing:
        if col1.button("Submit All Documents", type="primary", disabled=not tracker.all_required_uploaded):
            _run_document_action(tracker.submit)
    elif col2.button("Edit Documents"):
        tracker.edit()
        st.rerun()


def _run_document_action(action: Callable[[], object]) -> None:
    try:
        action()
    except (UploadValidationError, DocumentLockedError, SubmissionNotReadyError) as exc:
        st.error(str(exc))
        return
    except AuthenticationRequiredError:
        raise
    except ApiError as exc:
        st.error(exc.message)
        return
    st.rerun()


def render_notifications_page(portal: Portal) -> None:
    service = portal.notifications
    service.load()
    st.header(f"🔔 Notifications ({service.unread_count} unread)")

    col1, col2, col3 = st.columns([3, 2, 1])
    query = col1.text_input("Search")
    notification_type = col2.selectbox("Type", ["all"] + service.types())
    if col3.button("Mark all read", disabled=service.unread_count == 0):
        service.mark_all_read()
        st.rerun()

    all_tab, unread_tab, important_tab = st.tabs(
        ["All", f"Unread ({service.unread_count})", f"Important ({service.important_count})"]
    )
    matches = service.search(query, notification_type)
    with all_tab:
        today, earlier = service.group_by_day(matches)
        for title, group in (("Today", today), ("Earlier", earlier)):
            if group:
                st.subheader(title)
                _render_notifications(service, group, prefix=title)
    with unread_tab:
        _render_notifications(service, [item for item in matches if not item.is_read], prefix="unread")
    with important_tab:
        important_ids = {item.id for item in service.important()}
        _render_notifications(service, [item for item in matches if item.id in important_ids], prefix="important")


def _render_notifications(service, notifications, prefix: str) -> None:
    if not notifications:
        st.caption("No notifications")
        return
    for item in notifications:
        with st.container(border=True):
            marker = "" if item.is_read else "🆕 "
            st.markdown(f"{marker}**{item.title}** · {item.priority}")
            st.write(item.message)
            st.caption(f"{item.created_at:%d %b %Y %H:%M}")
            col1, col2 = st.columns(2)
            if not item.is_read and col1.button("Mark read", key=f"{prefix}-read-{item.id}"):
                service.mark_read(item.id)
                st.rerun()
            if col2.button("Delete", key=f"{prefix}-delete-{item.id}"):
                service.delete(item.id)
                st.rerun()


def render_profile_page(portal: Portal) -> None:
    st.header("👤 Profile")
    profile = portal.registration.get_profile()
    with st.form("profile"):
        first_name = st.text_input("First Name", profile.first_name)
        last_name = st.text_input("Last Name", profile.last_name)
        email = st.text_input("Email", profile.email)
        phone = st.text_input("Phone", profile.phone)
        st.text_input("Matric Number", profile.matric_number, disabled=True)
        if st.form_submit_button("Save", type="primary"):
            portal.registration.update_profile(
                {"firstname": first_name, "lastname": last_name, "email": email, "phone": phone}
            )
            st.success("Profile updated.")


# ==========================================
# Admin pages
# ==========================================
def render_allocation_page(portal: Portal) -> None:
    st.header("⚖️ Trigger Allocation")
    controller = portal.allocation
    if not st.session_state.get("allocation-loaded"):
        with st.spinner("Loading allocation state..."):
            controller.load()
        st.session_state["allocation-loaded"] = True

    snapshot = controller.snapshot()
    if snapshot.last_error:
        st.error(snapshot.last_error)

    check = snapshot.pre_check
    if check is not None:
        col1, col2, col3 = st.columns(3)
        col1.metric("Approved Students", check.approved_students)
        col2.metric("Available Spaces", check.available_spaces)
        col3.metric("Can Allocate All", "Yes" if check.can_allocate_all else "No")
        for warning in check.warnings:
            st.warning(warning)
        if check.block_availability:
            st.dataframe(
                pd.DataFrame(
                    [
                        {
                            "Block": item.block,
                            "Available Spaces": item.available_spaces,
                            "Estimated Students": item.estimated_students,
                        }
                        for item in check.block_availability
                    ]
                ),
                use_container_width=True,
            )

    if st.button("Start Allocation", type="primary", disabled=not snapshot.can_start):
        try:
            controller.start()
        except (AllocationStartNotAllowedError, ApiError) as exc:
            st.error(str(exc))
        else:
            st.rerun()
    if snapshot.start_disabled_reason and snapshot.state is not ControllerState.RUNNING:
        st.caption(snapshot.start_disabled_reason)

    if snapshot.state is ControllerState.RUNNING:
        st.subheader("Allocation in progress")
        st.progress(snapshot.job.progress, text=snapshot.job.current_step or None)
        time.sleep(portal.settings.allocation_poll_interval_seconds)
        st.rerun()

    result = snapshot.last_result
    if result is not None:
        st.subheader(f"Last Result ({result.status.value})")
        col1, col2, col3 = st.columns(3)
        col1.metric("Allocated", result.students_allocated)
        col2.metric("Unallocated", result.students_unallocated)
        col3.metric("Total", result.total_students)
        for error in result.errors:
            st.error(error)
        if result.conflicts:
            st.write("### Conflicts")
            st.dataframe(
                pd.DataFrame(
                    [{"Student": item.student_name, "Issue": item.issue} for item in result.conflicts]
                ),
                use_container_width=True,
            )
        frame = allocation_frame(result)
        if not frame.empty:
            st.write("### Allocations")
            st.dataframe(frame, use_container_width=True)

        col1, col2 = st.columns(2)
        for column, fmt in ((col1, "csv"), (col2, "pdf")):
            if column.button(f"Fetch {fmt.upper()} report"):
                try:
                    artifact = controller.download_report(fmt)
                except AllocationReportError as exc:
                    st.error(str(exc))
                else:
                    column.download_button(
                        f"Save {artifact.filename}", artifact.content, artifact.filename, artifact.content_type
                    )


def render_verification_page(portal: Portal) -> None:
    st.header("🔎 Verify Documents")
    service = portal.verification
    service.load()
    counts = service.counts()

    col1, col2, col3 = st.columns(3)
    state_filter = col1.selectbox(
        "Status",
        ["all", "pending", "verified", "rejected"],
        format_func=lambda value: f"{value.title()} ({counts[value]})",
    )
    level_filter = col2.selectbox("Level", ["all", "100", "200", "300", "400"])
    search = col3.text_input("Search name or matric number")

    reviews = service.filter(
        state=None if state_filter == "all" else VerificationState(state_filter),
        level=None if level_filter == "all" else level_filter,
        search=search,
    )
    if not reviews:
        st.info("No documents match the current filter or search criteria.")

    for review in reviews:
        overall = review_state(review)
        with st.expander(f"{_STATE_ICONS[overall]} {review.full_name} · {review.matric_number} · {review.level} Level"):
            for key, verified in review.documents.items():
                col1, col2, col3 = st.columns([3, 1, 1])
                col1.write(f"{DOCUMENT_TITLES.get(key, key)}: {document_state(verified).value}")
                if col2.button("Verify", key=f"verify-{review.student_id}-{key}"):
                    service.verify(review.student_id, key, VerificationState.VERIFIED)
                    st.rerun()
                if col3.button("Reject", key=f"reject-{review.student_id}-{key}"):
                    service.verify(review.student_id, key, VerificationState.REJECTED)
                    st.rerun()
            if overall is VerificationState.PENDING:
                col1, col2 = st.columns(2)
                if col1.button("Verify all", key=f"verify-all-{review.student_id}"):
                    service.verify_all(review.student_id, VerificationState.VERIFIED)
                    st.rerun()
                if col2.button("Reject all", key=f"reject-all-{review.student_id}"):
                    service.verify_all(review.student_id, VerificationState.REJECTED)
                    st.rerun()


def render_rooms_page(portal: Portal) -> None:
    st.header("🏢 Manage Rooms")
    service = portal.rooms
    service.load()
    summary = service.summary()

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Rooms", summary.total_rooms)
    col2.metric("Capacity", summary.total_capacity)
    col3.metric("Occupied", summary.occupied_capacity)
    col4.metric("Occupancy", f"{summary.occupancy_rate:.1f}%")

    block_names = sorted({room.block for room in service.rooms} | {block.name for block in service.blocks})
    with st.expander("Add room"):
        with st.form("add-room"):
            block = st.selectbox("Block", block_names) if block_names else st.text_input("Block")
            room_number = st.text_input("Room Number")
            capacity = st.selectbox("Capacity", ROOM_CAPACITY_CHOICES, index=len(ROOM_CAPACITY_CHOICES) - 1)
            if st.form_submit_button("Add Room", type="primary"):
                try:
                    service.create_room(RoomForm(block=block or "", room_number=room_number, capacity=capacity))
                except (RoomValidationError, ApiError) as exc:
                    st.error(str(exc))
                else:
                    st.rerun()

    selected_block = st.selectbox("Filter by block", ["all"] + block_names)
    rooms = service.rooms_in_block(selected_block)
    st.dataframe(
        pd.DataFrame(
            [
                {
                    "Room": f"Block {room.block} - {room.room_number}",
                    "Capacity": room.capacity,
                    "Occupied": room.occupied_capacity,
                    "Available": room.available_capacity,
                    "Status": room.status.value,
                }
                for room in rooms
            ]
        ),
        use_container_width=True,
    )

    for room in rooms:
        with st.expander(f"Edit Block {room.block} - {room.room_number}"):
            with st.form(f"edit-{room.id}"):
                form = service.form_for(room)
                room_number = st.text_input("Room Number", form.room_number)
                capacity = st.number_input("Capacity", min_value=1, value=form.capacity)
                save = st.form_submit_button("Save Changes")
                delete = st.form_submit_button("Delete Room")
            try:
                if save:
                    service.update_room(room.id, RoomForm(room.block, room_number, int(capacity)))
                    st.rerun()
                if delete:
                    service.delete_room(room.id)
                    st.rerun()
            except (RoomValidationError, ApiError) as exc:
                st.error(str(exc))


def render_reports_page(portal: Portal) -> None:
    st.header("📊 Reports")
    col1, col2, col3 = st.columns(3)
    period = col1.selectbox("Period", REPORT_PERIODS, index=1)
    level = col2.selectbox("Level", ["all", "100", "200", "300", "400"])
    block = col3.selectbox("Block", ["all", "A", "B", "C", "D"])
    start_date = end_date = None
    if period == "custom":
        start_date = st.date_input("From")
        end_date = st.date_input("To")

    try:
        filters = ReportFilters(period=period, level=level, block=block, start_date=start_date, end_date=end_date)
        with st.spinner("Loading report..."):
            report = portal.reports.get_report(filters)
    except (ValueError, ReportUnavailableError) as exc:
        st.error(str(exc))
        return

    for title, rows in (
        ("Room Occupancy", report.room_occupancy),
        ("Registration Trends", report.registration_trends),
        ("Level Distribution", report.level_distribution),
        ("Allocation Summary", report.allocation_summary),
        ("Monthly Registrations", report.monthly_registrations),
    ):
        if rows:
            st.write(f"### {title}")
            st.dataframe(report_frame(rows), use_container_width=True)

    col1, col2 = st.columns(2)
    for column, fmt in ((col1, "csv"), (col2, "pdf")):
        if column.button(f"Export {fmt.upper()}"):
            try:
                artifact = portal.reports.export_report(filters, fmt)
            except ReportUnavailableError as exc:
                st.error(str(exc))
            else:
                column.download_button(
                    f"Save {artifact.filename}", artifact.content, artifact.filename, artifact.content_type
                )


def render_registrations_page(portal: Portal) -> None:
    st.header("🗂️ Registrations")
    col1, col2, col3 = st.columns(3)
    search = col1.text_input("Search")
    status = col2.selectbox("Status", ["submitted", "all", "unregistered", "not-submitted"])
    level = col3.selectbox("Level", ["all", "100", "200", "300", "400"])

    summaries = portal.reports.list_registrations(search=search, status=status, level=level)
    frame = registrations_frame(summaries)
    st.dataframe(frame, use_container_width=True)
    st.download_button("Export CSV", frame_to_csv(frame), "registrations.csv", "text/csv")


# ==========================================
# Main App Router
# ==========================================
STUDENT_PAGES = {
    "Application Status": render_status_page,
    "Hostel Registration": render_registration_page,
    "Upload Documents": render_documents_page,
    "Notifications": render_notifications_page,
    "Profile": render_profile_page,
}
ADMIN_PAGES = {
    "Trigger Allocation": render_allocation_page,
    "Verify Documents": render_verification_page,
    "Manage Rooms": render_rooms_page,
    "Reports": render_reports_page,
    "Registrations": render_registrations_page,
}


def main() -> None:
    portal = get_portal()
    identity = portal.auth.identity
    if identity is None:
        render_login(portal)
        return

    pages = ADMIN_PAGES if identity.role == ROLE_ADMIN else STUDENT_PAGES
    st.sidebar.title(portal.settings.app_name)
    st.sidebar.markdown("---")
    page = st.sidebar.radio("Navigation", list(pages))
    if page != "Trigger Allocation" and st.session_state.get("allocation-loaded"):
        portal.allocation.stop()
        st.session_state["allocation-loaded"] = False

    st.sidebar.markdown("---")
    st.sidebar.caption(f"Signed in as {identity.role}")
    if st.sidebar.button("Log out"):
        portal.allocation.stop()
        portal.auth.logout()
        st.session_state.clear()
        st.rerun()

    try:
        pages[page](portal)
    except AuthenticationRequiredError:
        portal.auth.logout()
        st.warning("Your session has expired. Please log in again.")
        if st.button("Back to login"):
            st.rerun()
    except ApiError as exc:
        st.error(exc.message)
        if st.button("Retry"):
            st.rerun()


if __name__ == "__main__":
    main()
