"""
OnuStatusMap - Dashboard Application

Dash/Plotly map of ONUs colored by status, with lines from each ONU to its
splitter box (ODB), status summary cards, recent LOS / Power Fail events
and the remaining hourly SmartOLT quota.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import dash
from dash import ALL, ctx, dcc, html, Input, Output, State
from dash.exceptions import PreventUpdate
import dash_bootstrap_components as dbc  # type: ignore[import-untyped]
import plotly.graph_objects as go

from onu_map.api.errors import OnuMapError
from onu_map.dashboard.data_provider import describe_error
from onu_map.models.onu import OnuFilters, OnuStatus, STATUS_COLORS


logger = logging.getLogger(__name__)


class OnuMapDashboard:
    """
    NOC map of ONU status.

    Features:
    - Filter bar (OLT, board, port, zone)
    - Summary cards per normalized status
    - Map with status-colored ONU markers, ODB markers and ODB-to-ONU lines
    - ONU detail panel on marker click
    - Recent LOS / Power Fail transitions
    - Remaining hourly quota badges
    """

    # Auto refresh every 5 minutes; cached data is served between refreshes
    REFRESH_INTERVAL_MS = 300000

    # Map center when no ONU has a location
    DEFAULT_CENTER = {"lat": -7.5489, "lon": 110.8277}
    DEFAULT_ZOOM = 13
    # Zoom used when an event is clicked to locate its ONU
    FOCUS_ZOOM = 16

    ODB_COLOR = "#17a2b8"

    def __init__(
        self,
        app_name: str = "ONU Status Map",
        data_provider: Optional[Any] = None
    ):
        """
        Initialize the dashboard.

        Args:
            app_name: Application name for title
            data_provider: DashboardDataProvider for live data
        """
        self.app_name = app_name
        self.data_provider = data_provider

        self.app = dash.Dash(
            __name__,
            external_stylesheets=[dbc.themes.DARKLY],
            title=app_name,
            suppress_callback_exceptions=True
        )

        self.app.layout = self._build_layout()
        self._register_callbacks()

        logger.info(f"[OK] Dashboard initialized: {app_name}")

    @property
    def server(self):
        """Flask server behind the Dash app (for WSGI and JSON routes)."""
        return self.app.server

    def _build_layout(self) -> dbc.Container:
        """
        Build the dashboard layout.

        Returns:
            Dash Bootstrap Container with all components
        """
        status_options = [{"label": status.value, "value": status.value} for status in OnuStatus]

        return dbc.Container([
            dcc.Store(id="map-data", data={"groups": []}),
            dcc.Store(id="map-focus", data=None),

            # Header
            dbc.Row([
                dbc.Col([
                    html.H1(self.app_name, className="text-primary"),
                    html.P("ONU status by location and splitter box", className="text-muted")
                ], width=7),
                dbc.Col([
                    html.Div(id="quota-badges", className="text-end mb-2"),
                    html.Div(id="last-updated", className="text-end text-muted"),
                    dcc.Interval(id="refresh-interval", interval=self.REFRESH_INTERVAL_MS, n_intervals=0),
                    dcc.Interval(id="olt-load-interval", interval=1000, n_intervals=0, max_intervals=1)
                ], width=5)
            ], className="mb-3 mt-3"),

            # Filter bar
            dbc.Row([
                dbc.Col(dcc.Dropdown(id="olt-filter", options=[], placeholder="All OLTs", className="text-dark"), width=3),
                dbc.Col(dbc.Input(id="board-filter", placeholder="Board", type="text"), width=2),
                dbc.Col(dbc.Input(id="port-filter", placeholder="Port", type="text"), width=2),
                dbc.Col(dbc.Input(id="zone-filter", placeholder="Zone", type="text"), width=2),
                dbc.Col(dbc.Button("Apply Filters", id="apply-filters-btn", color="primary"), width=2),
                dbc.Col(dbc.Button("Refresh", id="refresh-btn", color="secondary"), width=1)
            ], className="mb-3"),

            dbc.Alert(id="error-alert", color="danger", is_open=False, dismissable=True),

            # Summary cards
            dbc.Row([
                dbc.Col(self._build_status_card("total-onus", "Total ONUs", "0"), width=2),
                dbc.Col(self._build_status_card("online-onus", "Online", "0", OnuStatus.ONLINE), width=2),
                dbc.Col(self._build_status_card("los-onus", "LOS", "0", OnuStatus.LOS), width=2),
                dbc.Col(self._build_status_card("power-fail-onus", "Power Fail", "0", OnuStatus.POWER_FAIL), width=2),
                dbc.Col(self._build_status_card("offline-onus", "Offline", "0", OnuStatus.OFFLINE), width=2),
                dbc.Col(self._build_status_card("located-onus", "With Location", "0"), width=2)
            ], className="mb-3"),

            dbc.Row([
                # Map
                dbc.Col([
                    dbc.Card([
                        dbc.CardHeader([
                            dbc.Checklist(
                                id="status-visibility",
                                options=status_options,
                                value=[status.value for status in OnuStatus],
                                inline=True,
                                className="d-inline"
                            ),
                            dbc.Switch(id="show-lines", label="ODB lines", value=True, className="d-inline-block float-end")
                        ]),
                        dbc.CardBody([
                            dcc.Loading(dcc.Graph(id="onu-map", style={"height": "650px"}))
                        ])
                    ])
                ], width=8),

                # Side panel
                dbc.Col([
                    dbc.Card([
                        dbc.CardHeader("ONU Details"),
                        dbc.CardBody(id="onu-detail", children=html.P("Click an ONU on the map", className="text-muted"))
                    ], className="mb-3"),
                    dbc.Card([
                        dbc.CardHeader("Recent Events"),
                        dbc.CardBody(id="events-list")
                    ])
                ], width=4)
            ])
        ], fluid=True)

    def _build_status_card(
        self,
        card_id: str,
        title: str,
        value: str,
        status: Optional[OnuStatus] = None
    ) -> dbc.Card:
        """Build a status overview card."""
        color = STATUS_COLORS[status] if status else "#adb5bd"

        return dbc.Card([
            dbc.CardBody([
                html.H4(id=card_id, children=value, style={"color": color}),
                html.P(title, className="text-muted mb-0")
            ])
        ], className="text-center")

    def _register_callbacks(self):
        """Register all dashboard callbacks."""

        @self.app.callback(
            Output("olt-filter", "options"),
            [Input("olt-load-interval", "n_intervals")]
        )
        def load_olt_options(n_intervals):
            """Populate the OLT dropdown once after page load."""
            if not self.data_provider:
                return []
            return self.data_provider.get_olt_options()

        @self.app.callback(
            [
                Output("map-data", "data"),
                Output("last-updated", "children"),
                Output("total-onus", "children"),
                Output("online-onus", "children"),
                Output("los-onus", "children"),
                Output("power-fail-onus", "children"),
                Output("offline-onus", "children"),
                Output("located-onus", "children"),
                Output("quota-badges", "children"),
                Output("events-list", "children"),
                Output("error-alert", "children"),
                Output("error-alert", "is_open")
            ],
            [
                Input("refresh-interval", "n_intervals"),
                Input("apply-filters-btn", "n_clicks"),
                Input("refresh-btn", "n_clicks")
            ],
            [
                State("olt-filter", "value"),
                State("board-filter", "value"),
                State("port-filter", "value"),
                State("zone-filter", "value")
            ]
        )
        def update_dashboard(n_intervals, apply_clicks, refresh_clicks, olt_id, board, port, zone):
            """Fetch map data for the current filters and update summary widgets."""
            timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

            if not self.data_provider:
                data: Dict[str, Any] = {"groups": [], "statistics": None, "quota": {}, "error": "No data provider configured"}
                history: Dict[str, List[dict]] = {"recent_los": [], "recent_power_fail": []}
            else:
                filters = OnuFilters(olt_id=olt_id, board=board, port=port, zone=zone)
                data = self.data_provider.get_map_data(filters)
                history = self.data_provider.get_history()

            stats = data.get("statistics") or {}
            error = data.get("error")

            return [
                {"groups": data.get("groups", [])},
                f"Last updated: {timestamp}",
                str(stats.get("total", 0)),
                str(stats.get("online", 0)),
                str(stats.get("los", 0)),
                str(stats.get("power_fail", 0)),
                str(stats.get("offline", 0)),
                str(stats.get("with_location", 0)),
                self._build_quota_badges(data.get("quota", {})),
                self._build_events_list(history),
                error,
                bool(error)
            ]

        @self.app.callback(
            Output("map-focus", "data"),
            [Input({"type": "event-item", "index": ALL, "onu": ALL}, "n_clicks")],
            [State("map-data", "data")],
            prevent_initial_call=True
        )
        def focus_on_event(n_clicks, map_data):
            """Center the map on the ONU of a clicked event."""
            # Re-rendering the list fires with n_clicks 0
            if not ctx.triggered_id or not ctx.triggered or not ctx.triggered[0].get("value"):
                raise PreventUpdate

            focus = self.focus_for_onu(
                (map_data or {}).get("groups", []),
                ctx.triggered_id.get("onu"),
                ctx.triggered[0]["value"]
            )
            if focus is None:
                raise PreventUpdate
            return focus

        @self.app.callback(
            Output("onu-map", "figure"),
            [
                Input("map-data", "data"),
                Input("status-visibility", "value"),
                Input("show-lines", "value"),
                Input("map-focus", "data")
            ]
        )
        def update_map(map_data, visible_statuses, show_lines, focus):
            """Redraw the map; visibility toggles never trigger upstream calls."""
            groups = (map_data or {}).get("groups", [])
            return self.build_map_figure(groups, visible_statuses or [], bool(show_lines), focus)

        @self.app.callback(
            Output("onu-detail", "children"),
            [
                Input("onu-map", "clickData"),
                Input("map-focus", "data")
            ]
        )
        def show_onu_detail(click_data, focus):
            """Load fresh details for the clicked or focused ONU."""
            if not self.data_provider:
                raise PreventUpdate

            if ctx.triggered_id == "map-focus":
                external_id = (focus or {}).get("external_id")
            else:
                point = (click_data or {}).get("points", [{}])[0]
                external_id = point.get("customdata")
                if isinstance(external_id, (list, tuple)):
                    external_id = external_id[0] if external_id else None
            if not external_id:
                raise PreventUpdate

            try:
                onu = self.data_provider.get_onu(str(external_id))
            except OnuMapError as error:
                return dbc.Alert(describe_error(error), color="warning")
            return self._build_onu_detail(onu)

    # ==================== Figures & Components ====================

    def build_map_figure(
        self,
        groups: Sequence[Dict[str, Any]],
        visible_statuses: Sequence[str],
        show_lines: bool = True,
        focus: Optional[Dict[str, Any]] = None
    ) -> go.Figure:
        """
        Build the ONU map.

        Args:
            groups: ODB groups as returned by DashboardDataProvider.get_odb_groups
            visible_statuses: Status values whose ONUs are drawn
            show_lines: Draw a line from each ONU to its ODB centroid
            focus: Output of focus_for_onu; centers and zooms on that ONU

        Returns:
            Plotly figure with map traces
        """
        visible = set(visible_statuses)
        markers: Dict[str, Dict[str, list]] = {
            status.value: {"lat": [], "lon": [], "ids": [], "text": []} for status in OnuStatus
        }
        lines: Dict[str, Dict[str, list]] = {
            status.value: {"lat": [], "lon": []} for status in OnuStatus
        }
        odb_lat: List[float] = []
        odb_lon: List[float] = []
        odb_text: List[str] = []

        for group in groups:
            centroid = group.get("odb_coordinates")
            if centroid:
                odb_lat.append(centroid["latitude"])
                odb_lon.append(centroid["longitude"])
                odb_text.append(f"<b>{group.get('odb_name')}</b><br>Total ONUs: {group.get('onu_count', 0)}")

            for onu in group.get("onus", []):
                status = onu.get("status", OnuStatus.OFFLINE.value)
                if status not in visible or onu.get("latitude") is None or onu.get("longitude") is None:
                    continue

                bucket = markers.setdefault(status, {"lat": [], "lon": [], "ids": [], "text": []})
                bucket["lat"].append(onu["latitude"])
                bucket["lon"].append(onu["longitude"])
                bucket["ids"].append(onu.get("unique_external_id"))
                bucket["text"].append(self._onu_hover_text(onu))

                if show_lines and centroid:
                    # None breaks the line between segments
                    segment = lines.setdefault(status, {"lat": [], "lon": []})
                    segment["lat"].extend([centroid["latitude"], onu["latitude"], None])
                    segment["lon"].extend([centroid["longitude"], onu["longitude"], None])

        fig = go.Figure()

        for status in OnuStatus:
            segment = lines[status.value]
            if segment["lat"]:
                fig.add_trace(go.Scattermap(
                    lat=segment["lat"],
                    lon=segment["lon"],
                    mode="lines",
                    line=dict(width=2, color=STATUS_COLORS[status]),
                    opacity=0.6,
                    hoverinfo="skip",
                    showlegend=False
                ))

        if odb_lat:
            fig.add_trace(go.Scattermap(
                lat=odb_lat,
                lon=odb_lon,
                mode="markers",
                marker=dict(size=14, color=self.ODB_COLOR),
                name="ODB",
                text=odb_text,
                hovertemplate="%{text}<extra></extra>"
            ))

        for status in OnuStatus:
            bucket = markers[status.value]
            if not bucket["lat"]:
                continue
            fig.add_trace(go.Scattermap(
                lat=bucket["lat"],
                lon=bucket["lon"],
                mode="markers",
                marker=dict(size=10, color=STATUS_COLORS[status]),
                name=f"{status.value} ({len(bucket['lat'])})",
                customdata=bucket["ids"],
                text=bucket["text"],
                hovertemplate="%{text}<extra></extra>"
            ))

        all_lat = [lat for bucket in markers.values() for lat in bucket["lat"]]
        all_lon = [lon for bucket in markers.values() for lon in bucket["lon"]]
        zoom = self.DEFAULT_ZOOM
        uirevision = "onu-map"
        if focus:
            center = {"lat": focus["lat"], "lon": focus["lon"]}
            zoom = self.FOCUS_ZOOM
            # A new revision per click so a panned map still jumps to the ONU
            uirevision = f"focus:{focus.get('external_id')}:{focus.get('clicks')}"
        elif all_lat:
            center = {"lat": sum(all_lat) / len(all_lat), "lon": sum(all_lon) / len(all_lon)}
        else:
            center = dict(self.DEFAULT_CENTER)

        fig.update_layout(
            template="plotly_dark",
            map=dict(style="open-street-map", center=center, zoom=zoom),
            margin=dict(l=0, r=0, t=0, b=0),
            legend=dict(orientation="h", yanchor="bottom", y=0.01, xanchor="left", x=0.01),
            uirevision=uirevision
        )

        return fig

    @staticmethod
    def focus_for_onu(
        groups: Sequence[Dict[str, Any]],
        external_id: Optional[str],
        clicks: int = 1
    ) -> Optional[Dict[str, Any]]:
        """Map focus for one ONU, or None when it is not on the map."""
        if not external_id:
            return None
        for group in groups:
            for onu in group.get("onus", []):
                if onu.get("unique_external_id") != external_id:
                    continue
                if onu.get("latitude") is None or onu.get("longitude") is None:
                    return None
                return {
                    "external_id": external_id,
                    "lat": onu["latitude"],
                    "lon": onu["longitude"],
                    "clicks": clicks
                }
        return None

    @staticmethod
    def _onu_hover_text(onu: Dict[str, Any]) -> str:
        pon = f"{onu.get('board')}/{onu.get('port')}/{onu.get('onu')}"
        return (
            f"<b>{onu.get('name') or onu.get('unique_external_id')}</b><br>"
            f"Status: {onu.get('status')}<br>"
            f"ODB: {onu.get('odb_name') or 'N/A'}<br>"
            f"OLT: {onu.get('olt_name') or 'N/A'}<br>"
            f"PON: {pon}<br>"
            f"Zone: {onu.get('zone_name') or 'N/A'}"
        )

    def _build_onu_detail(self, onu: Dict[str, Any]) -> html.Div:
        """Detail panel for one ONU."""
        rows = [
            ("External ID", onu.get("unique_external_id")),
            ("Serial", onu.get("sn")),
            ("OLT", onu.get("olt_name")),
            ("PON", f"{onu.get('board')}/{onu.get('port')}/{onu.get('onu')}"),
            ("ODB", onu.get("odb_name")),
            ("Zone", onu.get("zone_name")),
            ("Raw status", onu.get("raw_status"))
        ]
        signal = onu.get("signal") or {}
        for key, value in signal.items():
            rows.append((key.replace("_", " ").capitalize(), value))

        color = onu.get("status_color") or STATUS_COLORS[OnuStatus.OFFLINE]
        return html.Div([
            html.H5(onu.get("name") or onu.get("unique_external_id")),
            dbc.Badge(onu.get("status"), style={"backgroundColor": color}, className="mb-2"),
            html.Table(
                [html.Tr([html.Td(label, className="text-muted pe-3"), html.Td(str(value or "N/A"))]) for label, value in rows],
                className="small"
            )
        ])

    def _build_events_list(self, history: Dict[str, List[dict]]) -> html.Div:
        """Build the recent LOS / Power Fail list."""
        sections = [
            ("los", "LOS", history.get("recent_los", []), "danger"),
            ("power-fail", "Power Fail", history.get("recent_power_fail", []), "warning")
        ]

        children: List[Any] = []
        for key, title, events, color in sections:
            children.append(html.H6(f"{title} ({len(events)})", className="mt-2"))
            if not events:
                children.append(html.P("No recent events", className="text-muted small"))
                continue
            for position, event in enumerate(events[:10]):
                alert = dbc.Alert([
                    html.Strong(f"{event.get('name')} "),
                    f"({event.get('odb_name')}) {event.get('old_status')} -> {event.get('new_status')} ",
                    html.Small(self._format_timestamp(event.get("timestamp")), className="text-muted")
                ], color=color, className="mb-1 py-1 small")

                external_id = event.get("unique_external_id")
                if not external_id:
                    children.append(alert)
                    continue
                # Same ONU can appear more than once, so the index keeps ids unique
                children.append(html.Div(
                    alert,
                    id={"type": "event-item", "index": f"{key}-{position}", "onu": external_id},
                    n_clicks=0,
                    title="Show on map",
                    style={"cursor": "pointer"}
                ))

        return html.Div(children)

    @staticmethod
    def _format_timestamp(value: Optional[str]) -> str:
        if not value:
            return ""
        try:
            return datetime.fromisoformat(value).strftime("%H:%M:%S")
        except ValueError:
            return value

    def _build_quota_badges(self, quota: Dict[str, Any]) -> List[Any]:
        """Remaining hourly calls per restricted endpoint class."""
        badges = []
        for label, key in (("GPS", "gps"), ("Details", "details")):
            remaining = quota.get(f"{key}_remaining")
            limit = quota.get(f"{key}_limit")
            if remaining is None or limit is None:
                continue
            color = "success" if remaining > 1 else "warning" if remaining == 1 else "danger"
            badges.append(dbc.Badge(f"{label}: {remaining}/{limit} per hour", color=color, className="ms-2"))
        return badges

    def run(self, host: str = "127.0.0.1", port: int = 8050, debug: bool = False):
        """
        Run the dashboard server.

        Args:
            host: Host address to bind
            port: Port number
            debug: Enable debug mode
        """
        logger.info(f"[...] Starting dashboard on http://{host}:{port}")
        self.app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
