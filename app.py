"""
app.py
Streamlit School Van Fees app (one account per driver).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from datetime import date

import pandas as pd
import streamlit as st

import auth
import billing
import db
import notify
import utils
from config import settings
from store import FeeStore

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

st.set_page_config(page_title=settings.business_name, layout="wide")


def init_once():
    db.init_db()


def require_login():
    if "user_id" not in st.session_state:
        st.session_state.user_id = None
    if "email" not in st.session_state:
        st.session_state.email = None


def logout():
    for key in ("user_id", "email", "store", "remind_queue", "active_school_id"):
        st.session_state.pop(key, None)
    st.success("Logged out.")


def get_store() -> FeeStore:
    """
    One FeeStore per session. Billing runs when data is loaded: on login and
    again after midnight, never on plain reruns.
    """
    store = st.session_state.get("store")
    if store is None or store.owner_id != st.session_state.user_id:
        store = FeeStore(st.session_state.user_id)
        st.session_state.store = store
    if store.needs_reload():
        try:
            billed = store.load()
        except billing.BillingError as exc:
            st.error(f"Billing could not run: {exc}")
        else:
            if billed:
                st.toast(f"Monthly fees added for {len(billed)} student(s).")
    return store


def money(amount) -> str:
    return f"{settings.currency}{utils.format_money(amount)}"


def login_screen():
    st.title(f"🚐 {settings.business_name}")

    tab_login, tab_signup = st.tabs(["Login", "Create account"])
    with tab_login:
        email = st.text_input("Email", key="login_email")
        password = st.text_input("Password", type="password", key="login_password")
        if st.button("Login", type="primary"):
            user_id = auth.login(email, password)
            if user_id:
                logger.info("account %s logged in", user_id)
                st.session_state.user_id = user_id
                st.session_state.email = email.strip().lower()
                st.rerun()
            else:
                st.error("Invalid email or password.")

    with tab_signup:
        email = st.text_input("Email", key="signup_email")
        p1 = st.text_input("Password", type="password", key="signup_p1")
        p2 = st.text_input("Confirm password", type="password", key="signup_p2")
        if st.button("Create account"):
            if p1 != p2:
                st.error("Passwords do not match.")
                return
            try:
                auth.sign_up(email, p1)
            except auth.AuthError as exc:
                st.error(str(exc))
            else:
                st.success("Account created. You can log in now.")


# ---------- Reminders ----------

def reminder_queue_panel():
    queue: notify.ReminderQueue | None = st.session_state.get("remind_queue")
    if not queue:
        return
    current = queue.current
    st.info(f"Sending reminders ({len(queue)} left): **{current.name}**")
    c1, c2, c3 = st.columns(3)
    with c1:
        st.link_button(
            "Open WhatsApp 🟢",
            notify.whatsapp_link(current.parent_phone, notify.reminder_message(), settings.country_code),
        )
    with c2:
        if st.button("Next"):
            queue.skip()
            st.rerun()
    with c3:
        if st.button("Stop"):
            st.session_state.remind_queue = None
            st.rerun()


def start_reminders(students):
    if not students:
        st.warning("No students to message!")
        return
    st.session_state.remind_queue = notify.ReminderQueue(list(students), settings.country_code)
    st.rerun()


# ---------- Pages ----------

def dashboard_page(store: FeeStore):
    st.header("📊 Dashboard")

    totals = billing.totals(store.students)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Schools", len(store.schools))
    c2.metric("Students", len(store.students))
    c3.metric("Collected", money(totals["paid"]))
    c4.metric("Pending", money(totals["pending"]))

    st.divider()

    due = store.due_today()
    if due:
        st.subheader(f"🚨 Month Ended! ({len(due)})")
        st.dataframe(utils.students_frame(due, store.school_names()), use_container_width=True, hide_index=True)
        if st.button("🟢 Remind All"):
            start_reminders(due)
    else:
        st.caption("No billing cycles ended today.")

    reminder_queue_panel()


def schools_page(store: FeeStore):
    st.header("🏫 Schools")

    name = st.text_input("New school name")
    if st.button("Add school", type="primary"):
        try:
            store.add_school(name)
        except ValueError as exc:
            st.error(str(exc))
        else:
            st.success("School added.")
            st.rerun()

    st.divider()

    if not store.schools:
        st.info("No schools yet. Add one above.")
        return

    for school in store.schools:
        count = len(store.students_for(school.id))
        c1, c2, c3 = st.columns([3, 1, 1])
        c1.write(f"**{school.name}** ({count} students)")
        with c2:
            if st.button("Open", key=f"open_{school.id}"):
                st.session_state.active_school_id = school.id
                st.session_state.page = "Students"
                st.rerun()
        with c3:
            confirm = st.checkbox("Confirm", key=f"del_school_confirm_{school.id}")
            if st.button("Delete", key=f"del_school_{school.id}", disabled=not confirm):
                store.delete_school(school.id)
                st.success("School and its students deleted.")
                st.rerun()


def student_form(store: FeeStore, school_id: int):
    st.subheader("➕ Add Student")
    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Student name")
        parent_phone = st.text_input("Parent phone")
    with col2:
        total_fees = st.text_input("Monthly fee", value="")
        admission_date = st.date_input("Admission date", value=date.today()).isoformat()

    if st.button("Save student", type="primary"):
        try:
            store.add_student(school_id, name, parent_phone, total_fees, admission_date)
        except ValueError as exc:
            st.error(str(exc))
        else:
            st.success("Student added.")
            st.rerun()


def students_page(store: FeeStore):
    st.header("👥 Students")

    if not store.schools:
        st.info("No schools yet. Add a school first.")
        return

    options = {f"{s.name} - ID {s.id}": s.id for s in store.schools}
    active_id = st.session_state.get("active_school_id")
    labels = list(options.keys())
    index = list(options.values()).index(active_id) if active_id in options.values() else 0
    school_id = options[st.selectbox("School", labels, index=index)]
    st.session_state.active_school_id = school_id

    search = st.text_input("🔍 Search students...")
    students = store.students_for(school_id, search)

    if st.button("🟢 WhatsApp All"):
        unpaid = store.unpaid(school_id)
        if not unpaid:
            st.success("All fees are paid!")
        else:
            start_reminders(unpaid)
    reminder_queue_panel()

    if not students:
        st.caption("No students in this school.")
    else:
        st.dataframe(utils.students_frame(students, store.school_names()), use_container_width=True, hide_index=True)

        labels = {f"{s.name} ({s.parent_phone}) - ID {s.id}": s.id for s in students}
        chosen = st.selectbox("Select student", ["(none)"] + list(labels.keys()))
        if chosen != "(none)":
            student = store.student(labels[chosen])
            c1, c2, c3 = st.columns(3)
            with c1:
                st.link_button(
                    "WhatsApp Reminder",
                    notify.whatsapp_link(student.parent_phone, notify.reminder_message(), settings.country_code),
                )
            with c2:
                if st.button("Record payment"):
                    st.session_state.payment_student_id = student.id
                    st.session_state.page = "Payments"
                    st.rerun()
            with c3:
                confirm = st.checkbox("Confirm delete", key="del_student_confirm")
                if st.button("Delete", disabled=not confirm):
                    store.delete_student(student.id)
                    st.success("Student deleted.")
                    st.rerun()

    st.divider()
    student_form(store, school_id)


def payments_page(store: FeeStore):
    st.header("💳 Payments")

    if not store.students:
        st.info("No students yet. Add a student first.")
        return

    names = store.school_names()
    options = {f"{s.name} ({names.get(s.school_id, '?')}) - ID {s.id}": s.id for s in store.students}
    default_id = st.session_state.get("payment_student_id")
    labels = list(options.keys())
    index = list(options.values()).index(default_id) if default_id in options.values() else 0
    student_id = options[st.selectbox("Student", labels, index=index)]
    st.session_state.payment_student_id = student_id
    student = store.student(student_id)

    c1, c2, c3 = st.columns(3)
    c1.metric("Monthly fee", money(student.total_fees))
    c2.metric("Paid", money(student.paid_fees))
    c3.metric("Pending", money(student.pending_fees))

    st.subheader("Add payment")
    col1, col2 = st.columns(2)
    with col1:
        amount = st.text_input("Amount", value=utils.format_money(student.pending_fees) if student.pending_fees > 0 else "")
    with col2:
        pay_date = st.date_input("Date", value=store.today)

    if st.button("Record payment", type="primary"):
        try:
            student = store.record_payment(student_id, amount, pay_date)
        except billing.InvalidAmountError:
            st.error("Amount must be a number greater than 0.")
        else:
            st.session_state.last_receipt = (student.id, student.payment_history[0])
            st.success("Payment recorded.")
            st.rerun()

    receipt = st.session_state.get("last_receipt")
    if receipt and receipt[0] == student_id:
        entry = receipt[1]
        msg = notify.payment_confirmation_message(entry.amount, entry.date, settings.currency)
        st.caption("Send receipt to parent:")
        r1, r2, r3 = st.columns(3)
        with r1:
            st.link_button("WhatsApp", notify.whatsapp_link(student.parent_phone, msg, settings.country_code))
        with r2:
            st.link_button("SMS", notify.sms_link(student.parent_phone, msg))
        with r3:
            st.link_button("Fee update SMS", notify.sms_link(student.parent_phone, notify.fee_update_message(student)))

    st.divider()

    st.subheader("Payment history")
    df = utils.payments_frame([student])
    if df.empty:
        st.caption("No payments for this student yet.")
    else:
        st.dataframe(df, use_container_width=True, hide_index=True)


def reports_page(store: FeeStore):
    st.header("🧾 Reports")

    st.subheader("Export students to CSV")
    if store.students:
        st.download_button(
            "Download students.csv",
            data=utils.students_to_csv_bytes(store.students, store.school_names()),
            file_name="students.csv",
            mime="text/csv",
        )
    else:
        st.caption("No students to export.")

    st.divider()

    st.subheader("Export payments to CSV")
    payments = utils.payments_frame(store.students)
    if not payments.empty:
        st.download_button(
            "Download payments.csv",
            data=utils.payments_to_csv_bytes(store.students),
            file_name="payments.csv",
            mime="text/csv",
        )
    else:
        st.caption("No payments to export.")

    st.divider()

    st.subheader("Collections by month")
    st.dataframe(utils.collections_by_month(store.students), use_container_width=True, hide_index=True)

    st.subheader("Pending by school")
    rows = [
        {"school": s.name, "pending": float(billing.totals(store.students_for(s.id))["pending"])}
        for s in store.schools
    ]
    st.dataframe(pd.DataFrame(rows, columns=["school", "pending"]), use_container_width=True, hide_index=True)


def settings_page():
    st.header("⚙️ Settings")

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        if p1 != p2:
            st.error("Passwords do not match.")
            return
        try:
            auth.change_password(st.session_state.user_id, p1)
        except auth.AuthError as exc:
            st.error(str(exc))
        else:
            st.success("Password updated.")


def main_app():
    store = get_store()

    st.sidebar.title(f"🚐 {settings.business_name}")
    st.sidebar.caption(f"Logged in as: {st.session_state.email}")

    pages = ["Dashboard", "Schools", "Students", "Payments", "Reports", "Settings"]
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    if st.session_state.page == "Dashboard":
        dashboard_page(store)
    elif st.session_state.page == "Schools":
        schools_page(store)
    elif st.session_state.page == "Students":
        students_page(store)
    elif st.session_state.page == "Payments":
        payments_page(store)
    elif st.session_state.page == "Reports":
        reports_page(store)
    elif st.session_state.page == "Settings":
        settings_page()


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.user_id:
        login_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
