"""
Streamlit Frontend for Recurring Income

The screens a user sees for salary, freelance and other repeating
income.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. The user always sees when income will be added next
3. Clear error messages in simple language
4. Every automatic entry is visible after the pass that made it

The UI never does date math itself; it asks IncomeScheduleService.
Reconciliation runs once when the app opens, and again on demand.
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import streamlit as st

from recurring_income.models.income import (
    WEEKDAY_NAMES,
    Frequency,
    IncomeSource,
    IncomeSourceDraft,
)
from recurring_income.orchestrator import IncomeScheduleService, create_app_components
from recurring_income.schedule.frequency import days_in_month
from recurring_income.validation import ConfigurationError


# Page configuration
st.set_page_config(
    page_title="Recurring Income",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


FREQUENCY_LABELS = {
    Frequency.WEEKLY: "Weekly",
    Frequency.BIWEEKLY: "Every 2 weeks",
    Frequency.MONTHLY: "Monthly",
    Frequency.CUSTOM: "Custom days of the month",
    Frequency.MANUAL: "Manual (I add it myself)",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components()
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def main():
    """Main application entry point."""
    service, _ = get_components()

    # Activation: reconcile once per session
    if "activation_report" not in st.session_state:
        try:
            st.session_state.activation_report = run_async(service.run_reconciliation())
        except Exception as e:
            st.session_state.activation_report = None
            st.error(f"Could not add scheduled income: {e}")

    st.sidebar.title("💸 Recurring Income")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📋 Income Sources", "➕ Add / Edit", "📈 This Month", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How it works:**
        1. Add your salary or other regular income
        2. Choose how often it arrives
        3. It is added to your records on the right day

        Missed days are caught up the next time you open the app.
        """
    )

    if page == "📋 Income Sources":
        render_sources_page(service)
    elif page == "➕ Add / Edit":
        render_edit_page(service)
    elif page == "📈 This Month":
        render_projection_page(service)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_report(report):
    """Show the result of a reconciliation pass."""
    if report is None:
        return
    if report.posted_count:
        st.success(f"✅ Added {report.posted_count} income entries")
    for failure in report.failures:
        name = failure.source_name or str(failure.source_id)
        if failure.retryable:
            st.warning(f"⚠️ {name}: {failure.reason}. We'll try again next time.")
        else:
            st.error(f"❌ {name}: {failure.reason}. Please edit this income source.")


def render_sources_page(service: IncomeScheduleService):
    """Render the income sources list."""
    st.title("📋 Income Sources")

    render_report(st.session_state.get("activation_report"))

    if st.button("🔄 Run reconciliation", type="primary"):
        with st.spinner("Adding due income..."):
            try:
                report = run_async(service.run_reconciliation())
                st.session_state.activation_report = report
                render_report(report)
                if not report.posted_count and not report.failures:
                    st.info("Everything is up to date.")
            except Exception as e:
                st.error(f"Error: {str(e)}")

    st.markdown("---")

    sources = run_async(service.list_sources())
    if not sources:
        st.info(
            "📋 Your income sources will appear here. "
            "Use the 'Add / Edit' page to add your first one."
        )
        return

    today = date.today()
    for source in sources:
        col1, col2, col3 = st.columns([3, 2, 2])
        with col1:
            st.markdown(f"**{source.name}**")
            st.caption(service.describe_frequency(source))
        with col2:
            st.markdown(f"{source.amount:,.2f}")
            if not source.is_active:
                st.caption("Paused")
        with col3:
            next_date = service.preview_next_occurrence(source, today)
            if next_date:
                st.markdown(f"Next: {next_date.strftime('%d %b %Y')}")
            elif source.frequency == Frequency.MANUAL or not source.auto_add:
                st.caption("Added manually")
        if st.button("🗑️ Delete", key=f"delete_{source.id}"):
            run_async(service.delete_source(source.id))
            st.rerun()


def _draft_from_form(
    existing: IncomeSource,
    name: str,
    amount: float,
    frequency: Frequency,
    day_of_week: int,
    day_of_month: int,
    custom_text: str,
    start_date: date,
    auto_add: bool,
    is_active: bool,
) -> IncomeSourceDraft:
    return IncomeSourceDraft(
        source_id=existing.id if existing else None,
        name=name,
        amount=Decimal(str(amount)) if amount else None,
        frequency=frequency,
        day_of_week=day_of_week if frequency == Frequency.WEEKLY else None,
        day_of_month=day_of_month if frequency == Frequency.MONTHLY else None,
        custom_dates_input=custom_text if frequency == Frequency.CUSTOM else None,
        start_date=start_date,
        auto_add=auto_add,
        is_active=is_active,
    )


def render_edit_page(service: IncomeScheduleService):
    """Render the add / edit form."""
    st.title("➕ Add or Edit Income")

    sources = run_async(service.list_sources())
    options = [None] + sources
    existing = st.selectbox(
        "Income source",
        options=options,
        format_func=lambda s: "New income source" if s is None else s.name,
    )
    draft = IncomeSourceDraft.from_source(existing) if existing else IncomeSourceDraft()

    col1, col2 = st.columns(2)

    with col1:
        name = st.text_input("Name *", value=draft.name, help="e.g. Salary")
        amount = st.number_input(
            "Amount *",
            min_value=0.0,
            value=float(draft.amount) if draft.amount else 0.0,
            step=100.0,
        )
        frequencies = list(Frequency)
        frequency = st.selectbox(
            "How often? *",
            options=frequencies,
            index=frequencies.index(draft.frequency) if draft.frequency else 2,
            format_func=lambda f: FREQUENCY_LABELS[f],
        )

    with col2:
        start_date = st.date_input("Starting from *", value=draft.start_date or date.today())
        day_of_week = draft.day_of_week if draft.day_of_week is not None else 1
        day_of_month = draft.day_of_month or 1
        custom_text = draft.custom_dates_input or ""

        if frequency == Frequency.WEEKLY:
            day_of_week = st.selectbox(
                "Day of the week *",
                options=list(range(7)),
                index=day_of_week,
                format_func=lambda d: WEEKDAY_NAMES[d],
            )
        elif frequency == Frequency.MONTHLY:
            day_of_month = st.number_input(
                "Day of the month *",
                min_value=1,
                max_value=31,
                value=day_of_month,
                help="Days after the 28th move to the last day in shorter months",
            )
        elif frequency == Frequency.CUSTOM:
            custom_text = st.text_input(
                "Days of the month *",
                value=custom_text,
                help="Separate days with commas, e.g. 15, 30",
            )

        auto_add = st.checkbox("Add automatically", value=draft.auto_add)
        is_active = st.checkbox("Active", value=draft.is_active)

    form_draft = _draft_from_form(
        existing, name, amount, frequency, day_of_week, day_of_month,
        custom_text, start_date, auto_add, is_active,
    )
    validation, message = service.validate_draft(form_draft)

    if validation.issues:
        if validation.is_valid:
            st.info(message)
        else:
            st.warning(message)

    if st.button("💾 Save", type="primary", disabled=not validation.is_valid):
        try:
            saved = run_async(service.save_draft(form_draft))
            st.success(f"✅ Saved {saved.name}")
            next_date = service.preview_next_occurrence(saved)
            if next_date:
                st.info(f"Next: {next_date.strftime('%d %b %Y')}")
        except ConfigurationError as e:
            st.error(f"❌ {e}")
        except Exception as e:
            st.error(f"Error saving: {str(e)}")


def render_projection_page(service: IncomeScheduleService):
    """Render expected income for the current month."""
    today = date.today()
    month_start = today.replace(day=1)
    month_end = month_start + timedelta(days=days_in_month(today.year, today.month) - 1)

    st.title(f"📈 {today.strftime('%B %Y')}")

    projection = run_async(service.project_income(month_start, month_end))

    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown("Received")
        st.markdown(
            f"<div class='big-number'>{projection.recorded_total:,.2f}</div>",
            unsafe_allow_html=True,
        )
    with col2:
        st.markdown("Still expected")
        st.markdown(
            f"<div class='big-number'>{projection.projected_total:,.2f}</div>",
            unsafe_allow_html=True,
        )
    with col3:
        st.markdown("Total")
        st.markdown(
            f"<div class='big-number'>{projection.total:,.2f}</div>",
            unsafe_allow_html=True,
        )

    if projection.projected:
        st.markdown("---")
        st.markdown("### Coming up")
        for item in projection.projected:
            st.markdown(
                f"- {item.occurrence_date.strftime('%d %b')}: "
                f"**{item.source_name}** {item.amount:,.2f}"
            )


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    from recurring_income.config import get_settings, validate_all_settings

    status = validate_all_settings()

    sections = [
        ("Scheduler", "scheduler"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if not get_settings().app.use_google_sheets:
        st.info("Income sources are kept in memory. Set USE_GOOGLE_SHEETS=true to keep them.")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
