import dash
from dash import dcc, html, callback, Input, Output, State
import dash_bootstrap_components as dbc
import dash_ag_grid as dag

import dash_wrappers as dw
from report_formatting import fmt_pct_clean, fmt_signed_pct, fmt_dollar_clean
from components.ai_brief import (
    fallback_committee_report,
    generate_committee_report,
    generate_with_fallback,
)

layout = html.Div([
    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Saved Periods", className="card-title p-2"),
            html.Div("Save periods from the Performance page. Select a row to remove it.",
                     className="text-muted small px-2 mb-2"),
            html.Div(id='report-periods-empty'),
            dag.AgGrid(
                id="report-periods-grid",
                rowData=[],
                columnDefs=[
                    {"field": "Period", "checkboxSelection": True},
                    {"field": "Beginning MV", "type": "rightAligned"},
                    {"field": "Ending MV", "type": "rightAligned"},
                    {"field": "Period Return", "type": "rightAligned"},
                    {"field": "Annualized", "type": "rightAligned"},
                    {"field": "Assets", "type": "rightAligned"},
                    {"field": "Cashflows", "type": "rightAligned"},
                ],
                getRowId="params.data.id",
                defaultColDef={"flex": 1, "minWidth": 100, "resizable": True},
                dashGridOptions={"domLayout": "autoHeight", "rowSelection": "single"}
            ),
            html.Div([
                dbc.Button("Remove Selected", id="btn-remove-period", color="danger", size="sm"),
            ], className="p-2"),
        ]), width=12, className="mb-4"),
    ]),

    dbc.Row([
        dbc.Col(dbc.Card([
            dcc.Graph(id='report-period-chart')
        ]), width=12, className="mb-4"),
    ]),

    dbc.Row([
        dbc.Col(dbc.Card([
            dbc.CardHeader([
                "Investment Committee Report",
                dbc.Button("Generate Report", id="btn-committee-report", size="sm", color="primary",
                           className="float-end"),
            ]),
            dbc.CardBody(dcc.Loading(dcc.Markdown(id='committee-report')))
        ], className="shadow-sm border-primary"), width=12, className="mb-4"),
    ]),
])

# 1. Periods table + chart
@callback(
    [Output('report-periods-grid', 'rowData'),
     Output('report-periods-grid', 'className'),
     Output('report-periods-empty', 'children'),
     Output('report-period-chart', 'figure')],
    [Input('periods-store', 'data'),
     Input('theme-store', 'data')]
)
def update_periods(periods_data, theme):
    grid_class = "ag-theme-alpine-dark" if theme == "dark" else "ag-theme-alpine"
    periods = dw.periods_from_store(periods_data)
    if not periods:
        return [], grid_class, html.Div("No saved periods yet.", className="text-muted p-3"), {}

    rows = [{
        "id": p.id,
        "Period": p.label,
        "Beginning MV": fmt_dollar_clean(p.performance.portfolio.beginning_value),
        "Ending MV": fmt_dollar_clean(p.performance.portfolio.ending_value),
        "Period Return": fmt_signed_pct(p.performance.portfolio.period_return),
        "Annualized": fmt_pct_clean(p.performance.portfolio.annualized_return),
        "Assets": len(p.assets),
        "Cashflows": len(p.cashflows),
    } for p in periods]

    return rows, grid_class, "", dw.get_period_returns_chart(periods, theme=theme)

# 2. Remove period
@callback(
    Output('periods-store', 'data', allow_duplicate=True),
    [Input('btn-remove-period', 'n_clicks')],
    [State('report-periods-grid', 'selectedRows'),
     State('periods-store', 'data')],
    prevent_initial_call=True
)
def remove_selected_period(n, selected, periods_data):
    if not selected:
        return dash.no_update
    periods = dw.remove_period(dw.periods_from_store(periods_data), selected[0]["id"])
    return dw.periods_to_store(periods)

# 3. Committee report (AI with template fallback)
@callback(
    Output('committee-report', 'children'),
    [Input('btn-committee-report', 'n_clicks')],
    [State('periods-store', 'data')],
    prevent_initial_call=True
)
def build_committee_report(n, periods_data):
    periods = dw.periods_from_store(periods_data)
    fallback = fallback_committee_report(periods)
    if not periods:
        return fallback

    text, source = generate_with_fallback(generate_committee_report, fallback, periods)
    if source == "template":
        text += "\n\n*AI report unavailable; showing template summary.*"
    return text
