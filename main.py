"""
EzLaunch Admin - inventory onboarding dashboard
"""

import logging

import streamlit as st
import pandas as pd
from streamlit import column_config as cc

from config import (
    APP_TITLE, PAGE_LAYOUT, INITIAL_SIDEBAR_STATE, PAGES, LOG_LEVEL, LOG_FORMAT,
    ANALYTICS_WINDOW_OPTIONS, DEFAULT_ANALYTICS_WINDOW, TOP_UNFOUND_LIMIT,
    RECENT_ACTIVITY_LIMIT, TEAM_TARGET_SCANS, POWER_USER_THRESHOLD, LEADERBOARD_SIZE,
    PRODUCT_FORM_FIELDS, CSV_TEMPLATE_FILENAME,
)
from utils import (
    ScreenGuard, create_download_buttons, format_timestamp, format_completion_rate,
    get_window_bounds,
)
from auth import AuthManager, SessionContext
from data_loader import (
    DataGateway, GatewayError, ProductManager, ScanLogManager,
    category_manager, unit_manager, create_supabase_client,
)
from data_processor import (
    build_log_frame, build_product_frame, validate_product_form, clean_product_values,
)
from analytics import (
    ScanAnalyzer, UserActivityAnalyzer, registered_users, build_recent_activity, local_today,
)
from csv_import import import_products, build_template_csv, decode_upload
from ui_components import ProductFilter, ChartRenderer, render_product_grid, render_stat_cards

logger = logging.getLogger(__name__)

SESSION_CONTEXT_KEY = "session_context"
SESSION_CLIENT_KEY = "supabase_client"
SESSION_UNSUBSCRIBE_KEY = "session_unsubscribe"
SESSION_IDENTITY_KEY = "session_identity"


def configure_logging():
    """Console logging for the whole app."""
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)


def setup_page():
    """Configure Streamlit page settings."""
    st.set_page_config(
        page_title=APP_TITLE,
        layout=PAGE_LAYOUT,
        initial_sidebar_state=INITIAL_SIDEBAR_STATE,
    )


def get_session_context() -> SessionContext:
    """Return this browser session's SessionContext, creating it on first use."""
    if SESSION_CONTEXT_KEY not in st.session_state:
        client = create_supabase_client()
        context = SessionContext(client.auth)

        st.session_state[SESSION_CLIENT_KEY] = client
        st.session_state[SESSION_CONTEXT_KEY] = context
        st.session_state[SESSION_IDENTITY_KEY] = context.identity or None
        st.session_state[SESSION_UNSUBSCRIBE_KEY] = context.subscribe(on_session_change)

    return st.session_state[SESSION_CONTEXT_KEY]


def on_session_change(session):
    """Drop per-screen state whenever the signed-in user changes."""
    user = getattr(session, "user", None)
    identity = getattr(user, "email", None)
    if session is not None and identity == st.session_state.get(SESSION_IDENTITY_KEY):
        return

    st.session_state[SESSION_IDENTITY_KEY] = identity
    ScreenGuard(st.session_state).leave()
    for key in ["product_search", "product_category"]:
        st.session_state.pop(key, None)

    if session is None:
        teardown_session_context()


def teardown_session_context():
    """Unregister the session observer and forget the session's client."""
    unsubscribe = st.session_state.pop(SESSION_UNSUBSCRIBE_KEY, None)
    if unsubscribe is not None:
        unsubscribe()
    context = st.session_state.pop(SESSION_CONTEXT_KEY, None)
    if context is not None:
        context.close()
    st.session_state.pop(SESSION_CLIENT_KEY, None)
    st.session_state.pop(SESSION_IDENTITY_KEY, None)


def still_current(token, guard: ScreenGuard, session_context: SessionContext) -> bool:
    """Results are applied only to the screen and session that requested them.

    The session is read first: applying a pending auth event runs the session
    observers, which may invalidate the token.
    """
    signed_in = session_context.get_current_session() is not None
    return signed_in and guard.is_current(token)


def render_navigation() -> str:
    with st.sidebar:
        st.title(APP_TITLE)
        return st.radio("Navigate", PAGES, key="nav_page", label_visibility="collapsed")


def render_dashboard_page(gateway: DataGateway, session_context: SessionContext, guard: ScreenGuard):
    """Render the overview dashboard."""
    token = guard.begin("Dashboard")

    header, refresh = st.columns([4, 1])
    with header:
        st.header("Dashboard Overview")
        st.caption("Real-time tracking of your inventory onboarding")
    with refresh:
        if st.button("Refresh", key="dashboard_refresh"):
            st.rerun()

    products = ProductManager(gateway)
    scan_logs = ScanLogManager(gateway)

    with st.spinner("Loading dashboard..."):
        try:
            product_count = products.count_products()
            logs = build_log_frame(scan_logs.list_logs())
            recent = build_log_frame(scan_logs.recent_logs(RECENT_ACTIVITY_LIMIT))
        except GatewayError as e:
            st.error(e.message)
            return

    if not still_current(token, guard, session_context):
        return

    today = local_today()
    analyzer = ScanAnalyzer(logs)

    render_stat_cards([
        ("Total Products", f"{product_count:,}", "Live"),
        ("Registered Users", str(registered_users(logs)), "Active"),
        ("Today's Scans", str(analyzer.todays_scans(today)), "Today"),
        ("Completion Rate", format_completion_rate(analyzer.completion_rate(), len(logs)), "Overall"),
    ])

    st.divider()

    chart_col, activity_col = st.columns([2, 1])
    with chart_col:
        weekly = analyzer.weekday_counts(today)
        st.plotly_chart(ChartRenderer.create_weekly_area_chart(weekly), use_container_width=True)

    with activity_col:
        st.subheader("Recent Activity")
        activity = build_recent_activity(recent)
        if not activity:
            st.info("No recent activity")
        for item in activity:
            icon = {"found": "✅", "not_found": "⚠️"}.get(item["status"], "📦")
            st.markdown(f"{icon} **{item['user']}** · {item['action']}  \n"
                        f"`{item['target']}` · {item['time']}")


def render_product_form(form_key: str, categories, units, initial=None):
    """Render an add/edit product form; returns cleaned values on a valid submit."""
    initial = initial or {}

    def option_index(options, value):
        return options.index(value) if value in options else 0

    def number(value):
        return 0.0 if value is None or pd.isna(value) else max(float(value), 0.0)

    category_options = [""] + list(categories)
    unit_options = [""] + list(units)

    with st.form(form_key, clear_on_submit=not initial):
        col1, col2 = st.columns(2)
        with col1:
            item_name = st.text_input(PRODUCT_FORM_FIELDS["item_name"], value=initial.get("item_name", ""))
            category = st.selectbox(PRODUCT_FORM_FIELDS["category"], category_options,
                                    index=option_index(category_options, initial.get("category")),
                                    format_func=lambda c: c or "Select Category")
            hsn_code = st.text_input(PRODUCT_FORM_FIELDS["hsn_code"], value=initial.get("hsn_code", ""))
            mrp = st.number_input(PRODUCT_FORM_FIELDS["mrp"], min_value=0.0,
                                  value=number(initial.get("mrp")), step=1.0)
        with col2:
            barcode = st.text_input(PRODUCT_FORM_FIELDS["barcode"], value=initial.get("barcode", ""))
            unit = st.selectbox(PRODUCT_FORM_FIELDS["unit"], unit_options,
                                index=option_index(unit_options, initial.get("unit")),
                                format_func=lambda u: u or "Select Unit")
            tax_rate = st.number_input(PRODUCT_FORM_FIELDS["tax_rate"], min_value=0.0,
                                       value=number(initial.get("tax_rate")), step=1.0)

        submitted = st.form_submit_button("Update Product" if initial else "Save Product")

    if not submitted:
        return None

    values = {
        "item_name": item_name, "barcode": barcode, "category": category,
        "hsn_code": hsn_code, "unit": unit, "mrp": mrp, "tax_rate": tax_rate,
    }
    missing = validate_product_form(values)
    if missing:
        st.error(f"Required: {', '.join(missing)}")
        return None

    return clean_product_values(values)


def render_bulk_upload(products: ProductManager):
    """CSV bulk upload with a downloadable template."""
    st.caption("Upload a CSV with columns: barcode, item_name, category, unit, mrp, tax_rate, hsn_code")

    uploaded = st.file_uploader("CSV file", type=["csv"], key="bulk_upload_file")
    if uploaded is not None and st.button("Import Products", key="bulk_upload_btn"):
        text = decode_upload(uploaded.getvalue())
        try:
            result = import_products(products, text)
        except GatewayError as e:
            st.error(e.message)
        else:
            if result.imported:
                st.success(f"Successfully uploaded {result.imported} products")
            else:
                st.warning("No rows with both a barcode and an item name were found.")

    st.download_button(
        label="Download CSV Template",
        data=build_template_csv().encode("utf-8"),
        file_name=CSV_TEMPLATE_FILENAME,
        mime="text/csv",
        key="bulk_template_csv",
    )


def render_products_page(gateway: DataGateway, session_context: SessionContext, guard: ScreenGuard):
    """Render the product catalog with add, edit, delete and bulk import."""
    token = guard.begin("Product Master")
    st.header("Product Master")
    st.caption("Manage your global product catalog")

    products = ProductManager(gateway)
    with st.spinner("Loading products..."):
        try:
            catalog = build_product_frame(products.list_products())
            categories = category_manager(gateway).list_names()
            units = unit_manager(gateway).list_names()
        except GatewayError as e:
            st.error(e.message)
            return

    if not still_current(token, guard, session_context):
        return

    with st.expander("➕ Add Product"):
        values = render_product_form("add_product_form", categories, units)
        if values is not None:
            try:
                products.create_product(values)
            except GatewayError as e:
                st.error(e.message)
            else:
                st.rerun()

    with st.expander("📤 Bulk Upload"):
        render_bulk_upload(products)

    filtered = ProductFilter(catalog, categories).render()
    st.caption(f"{len(filtered)} of {len(catalog)} products")

    if filtered.empty:
        st.info("No products match your filters.")
        return

    selected = render_product_grid(filtered)
    if selected is not None:
        st.subheader(f"Edit: {selected['item_name']}")
        values = render_product_form(f"edit_product_form_{selected['id']}", categories, units, initial=selected)
        if values is not None:
            try:
                products.update_product(selected["id"], values)
            except GatewayError as e:
                st.error(e.message)
            else:
                st.rerun()

        confirm = st.checkbox("I want to delete this product", key=f"confirm_delete_{selected['id']}")
        if st.button("Delete Product", key=f"delete_{selected['id']}", disabled=not confirm):
            try:
                products.delete_product(selected["id"])
            except GatewayError as e:
                st.error(e.message)
            else:
                st.rerun()

    st.markdown("**Export Options:**")
    export = filtered.drop(columns=["created_at"], errors="ignore")
    create_download_buttons(export, "products", "products_export")


def render_users_page(gateway: DataGateway, session_context: SessionContext, guard: ScreenGuard):
    """Render per-user scan rollups and the team leaderboard."""
    token = guard.begin("Users")
    st.header("Mobile App Users")
    st.caption("Manage field staff and track their onboarding performance")

    with st.spinner("Loading users..."):
        try:
            logs = build_log_frame(ScanLogManager(gateway).list_logs())
        except GatewayError as e:
            st.error(e.message)
            return

    if not still_current(token, guard, session_context):
        return

    analyzer = UserActivityAnalyzer(logs)
    rollup = analyzer.rollup()
    power_users = set(analyzer.power_users(POWER_USER_THRESHOLD))

    list_col, stats_col = st.columns([2, 1])

    with list_col:
        search = st.text_input("Search users", key="user_search", placeholder="Search users...")
        view = rollup
        if search.strip():
            term = search.strip().lower()
            view = rollup[rollup["email"].str.lower().str.contains(term, regex=False)]

        if view.empty:
            st.info("No activity recorded yet")
        else:
            display = view.assign(
                power_user=view["email"].isin(power_users),
                last_seen=view["last_seen"].apply(format_timestamp),
            )
            st.dataframe(
                display,
                use_container_width=True,
                hide_index=True,
                column_config={
                    "display_name": cc.TextColumn("Name"),
                    "email": cc.TextColumn("Email"),
                    "total_scans": cc.NumberColumn("Scans Completed", format="%d"),
                    "last_seen": cc.TextColumn("Last Activity"),
                    "power_user": cc.CheckboxColumn("Power User"),
                },
            )

    with stats_col:
        stats = analyzer.team_stats(TEAM_TARGET_SCANS)
        st.subheader("Team Performance")
        c1, c2 = st.columns(2)
        c1.metric("Active Staff", stats["active_staff"])
        c2.metric("Avg Scans/Person", stats["avg_scans"])
        st.caption(f"Team Target Progress ({stats['total_scans']}/{TEAM_TARGET_SCANS})")
        st.progress(stats["progress"] / 100.0, text=f"Current: {stats['progress']}%")

        st.subheader("Leaderboard")
        leaders = analyzer.leaderboard(LEADERBOARD_SIZE)
        if leaders.empty:
            st.caption("No scans yet")
        for rank, row in enumerate(leaders.itertuples(index=False), start=1):
            st.markdown(f"**{rank}. {row.display_name}** · {row.total_scans:,} scans")


def render_analytics_page(gateway: DataGateway, session_context: SessionContext, guard: ScreenGuard):
    """Render windowed scan trends, category breakdown and unfound barcodes."""
    token = guard.begin("Analytics")
    st.header("Advanced Analytics")
    st.caption("Insights and performance tracking based on real data")

    window = st.radio(
        "Window",
        ANALYTICS_WINDOW_OPTIONS,
        index=ANALYTICS_WINDOW_OPTIONS.index(DEFAULT_ANALYTICS_WINDOW),
        format_func=lambda d: f"Last {d} Days",
        horizontal=True,
        key="analytics_window",
    )

    today = local_today()
    since, _ = get_window_bounds(window, today)

    with st.spinner("Loading analytics..."):
        try:
            logs = build_log_frame(ScanLogManager(gateway).list_logs(since=since))
            catalog = build_product_frame(ProductManager(gateway).list_products())
        except GatewayError as e:
            st.error(e.message)
            return

    if not still_current(token, guard, session_context):
        return

    analyzer = ScanAnalyzer(logs, catalog)

    trend = analyzer.trend_buckets(window, today)
    st.plotly_chart(ChartRenderer.create_trend_chart(trend, window), use_container_width=True)

    pie_col, unfound_col = st.columns(2)
    with pie_col:
        breakdown = analyzer.category_breakdown()
        if breakdown.empty:
            st.info("No scans in this window")
        else:
            st.plotly_chart(ChartRenderer.create_category_pie(breakdown), use_container_width=True)

    with unfound_col:
        st.subheader("Top Unfound Barcodes")
        unfound = analyzer.top_unfound(TOP_UNFOUND_LIMIT)
        if unfound.empty:
            st.info("No failed scans in this window")
        else:
            st.dataframe(unfound, use_container_width=True, hide_index=True)


def render_master_list(title: str, manager, singular: str, placeholder: str):
    """List, add and delete entries of a name-only table."""
    st.subheader(title)

    try:
        entries = manager.list_entries()
    except GatewayError as e:
        st.error(e.message)
        return

    with st.form(f"add_{manager.table}", clear_on_submit=True):
        name = st.text_input(f"New {singular} name", placeholder=placeholder)
        if st.form_submit_button(f"Add {singular}"):
            try:
                manager.add(name)
            except ValueError:
                st.error(f"Enter a {singular.lower()} name")
            except GatewayError as e:
                st.error(e.message)
            else:
                st.rerun()

    if not entries:
        st.caption(f"No {title.lower()} yet")

    for entry in entries:
        name_col, delete_col = st.columns([4, 1])
        name_col.write(entry.get("name", ""))
        if delete_col.button("🗑️", key=f"del_{manager.table}_{entry['id']}", help=f"Delete this {singular.lower()}"):
            try:
                manager.delete(entry["id"])
            except GatewayError as e:
                st.error(e.message)
            else:
                st.rerun()


def render_settings_page(gateway: DataGateway, session_context: SessionContext, guard: ScreenGuard):
    """Render category and unit management."""
    guard.begin("Settings")
    st.header("System Settings")
    st.caption("Configure global parameters and master data")

    cat_col, unit_col = st.columns(2)
    with cat_col:
        render_master_list("Categories", category_manager(gateway), "Category", "e.g. Groceries")
    with unit_col:
        render_master_list("Units", unit_manager(gateway), "Unit", "e.g., Kg, Ut, Pkt")


PAGE_RENDERERS = {
    "Dashboard": render_dashboard_page,
    "Product Master": render_products_page,
    "Users": render_users_page,
    "Analytics": render_analytics_page,
    "Settings": render_settings_page,
}


def main():
    """Main application entry point."""
    configure_logging()
    setup_page()

    # Authentication
    try:
        session_context = get_session_context()
    except ValueError as e:
        st.error(str(e))
        st.stop()

    auth_manager = AuthManager(session_context)
    auth_manager.require_login()

    gateway = DataGateway(st.session_state[SESSION_CLIENT_KEY])
    guard = ScreenGuard(st.session_state)

    page = render_navigation()
    auth_manager.render_sign_out()

    PAGE_RENDERERS[page](gateway, session_context, guard)


if __name__ == "__main__":
    main()
