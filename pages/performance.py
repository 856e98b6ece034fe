import dash
from dash import dcc, html, callback, Input, Output, State
import dash_bootstrap_components as dbc
import dash_ag_grid as dag
import pandas as pd

import dash_wrappers as dw
from data_loader import decode_upload, parse_assets_csv, parse_cashflows_csv
from financial_math import PerformanceCalculationError, compute_cashflow_weights
from portfolio_engine import compute_portfolio_returns
from report_formatting import fmt_pct_clean, fmt_signed_pct, fmt_dollar_clean, fmt_number_clean
from components.ai_brief import (
    fallback_performance_summary,
    generate_performance_commentary,
    generate_with_fallback,
)
from pages.overview import create_kpi_card

UPLOAD_STYLE = {
    'width': '100%', 'height': '60px', 'lineHeight': '60px',
    'borderWidth': '1px', 'borderStyle': 'dashed',
    'borderRadius': '5px', 'textAlign': 'center', 'marginBottom': '10px'
}

layout = html.Div([
    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Evaluation Period", className="card-title p-2"),
            html.Div([
                dbc.Label("Start Date"),
                dcc.DatePickerSingle(id="perf-start-date", display_format="YYYY-MM-DD",
                                     className="mb-2 d-block"),
                dbc.Label("End Date"),
                dcc.DatePickerSingle(id="perf-end-date", display_format="YYYY-MM-DD",
                                     className="mb-3 d-block"),
                dbc.Button("Calculate Returns", id="btn-run-performance", color="primary",
                           className="me-2"),
                dbc.Button("Save Period", id="btn-save-period", color="secondary"),
                html.Div(id="perf-run-status", className="mt-2"),
            ], className="p-3")
        ]), width=12, lg=4, className="mb-4"),

        dbc.Col(dbc.Card([
            html.H5("Data Upload", className="card-title p-2"),
            html.Div([
                html.Label("Assets CSV (Asset Class, Beginning MV, Ending MV)"),
                dcc.Upload(
                    id='upload-assets',
                    children=html.Div(['Drag and Drop or ', html.A('Select File')]),
                    style=UPLOAD_STYLE,
                    multiple=False
                ),
                html.Label("Cashflows CSV (Date, Type, Amount, Asset Class)"),
                dcc.Upload(
                    id='upload-cashflows',
                    children=html.Div(['Drag and Drop or ', html.A('Select File')]),
                    style=UPLOAD_STYLE,
                    multiple=False
                ),
                html.Div(id='upload-status', className="text-muted small")
            ], className="p-3")
        ]), width=12, lg=8, className="mb-4"),
    ]),

    dbc.Row([
        dbc.Col(html.Div(id='perf-kpi-row'), width=12),
    ], className="mb-4"),

    html.Div(id='perf-issues-container'),

    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Asset Class Returns (Modified Dietz)", className="card-title p-2"),
            dcc.Loading(html.Div(id='perf-results-container'))
        ]), width=12, lg=7, className="mb-4"),
        dbc.Col(dbc.Card([
            dcc.Graph(id='perf-contribution-chart')
        ]), width=12, lg=5, className="mb-4"),
    ]),

    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Adjusted Cashflows", className="card-title p-2"),
            html.Div("Weight = share of the period each flow was invested: (End - Flow Date) / (End - Start).",
                     className="text-muted small px-2 mb-2"),
            dcc.Loading(html.Div(id='perf-cashflows-container'))
        ]), width=12, className="mb-4"),
    ]),

    dbc.Row([
        dbc.Col(dbc.Card([
            dbc.CardHeader([
                "Performance Commentary",
                dbc.Button("Generate Commentary", id="btn-perf-commentary", size="sm",
                           color="primary", className="float-end"),
            ]),
            dbc.CardBody(dcc.Loading(dcc.Markdown(id='perf-commentary')))
        ], className="shadow-sm border-primary"), width=12, className="mb-4"),
    ]),
])

# 1. Uploads -> session stores
@callback(
    [Output('assets-store', 'data'),
     Output('cashflows-store', 'data'),
     Output('upload-status', 'children')],
    [Input('upload-assets', 'contents'),
     Input('upload-cashflows', 'contents')],
    [State('upload-assets', 'filename'),
     State('upload-cashflows', 'filename'),
     State('assets-store', 'data'),
     State('cashflows-store', 'data')],
    prevent_initial_call=True
)
def load_uploads(a_content, c_content, a_name, c_name, assets_data, cashflows_data):
    triggered = dash.callback_context.triggered_id
    msg = []

    if triggered == 'upload-assets' and a_content:
        assets, errors = parse_assets_csv(decode_upload(a_content))
        if errors:
            msg.extend(errors)
        else:
            assets_data = dw.assets_to_store(assets)
            msg.append(f"Loaded {len(assets)} assets from {a_name}")

    if triggered == 'upload-cashflows' and c_content:
        cashflows, errors = parse_cashflows_csv(decode_upload(c_content))
        cashflows_data = dw.cashflows_to_store(cashflows)
        msg.append(f"Loaded {len(cashflows)} cashflows from {c_name}")
        msg.extend(errors)

    return assets_data, cashflows_data, html.Ul([html.Li(m) for m in msg]) if msg else ""

# 2. Run Modified Dietz
@callback(
    [Output('performance-store', 'data'),
     Output('period-store', 'data'),
     Output('perf-run-status', 'children')],
    [Input('btn-run-performance', 'n_clicks')],
    [State('perf-start-date', 'date'),
     State('perf-end-date', 'date'),
     State('assets-store', 'data'),
     State('cashflows-store', 'data')],
    prevent_initial_call=True
)
def run_performance(n, start, end, assets_data, cashflows_data):
    if not start or not end:
        return dash.no_update, dash.no_update, dbc.Alert("Select a start and end date.", color="warning")

    assets = dw.assets_from_store(assets_data)
    if not assets:
        return dash.no_update, dash.no_update, dbc.Alert("Upload an assets file first.", color="warning")

    try:
        result = compute_portfolio_returns(
            assets, dw.cashflows_from_store(cashflows_data), pd.Timestamp(start), pd.Timestamp(end)
        )
    except PerformanceCalculationError as e:
        return None, dash.no_update, dbc.Alert(f"Error: {e}", color="danger")

    period = {"start": start, "end": end}
    return dw.performance_to_store(result), period, dbc.Alert("Calculation complete.", color="success", duration=4000)

# 3. Results display
@callback(
    [Output('perf-kpi-row', 'children'),
     Output('perf-results-container', 'children'),
     Output('perf-contribution-chart', 'figure'),
     Output('perf-issues-container', 'children'),
     Output('perf-cashflows-container', 'children')],
    [Input('performance-store', 'data'),
     Input('cashflows-store', 'data'),
     Input('period-store', 'data'),
     Input('theme-store', 'data')]
)
def update_results(perf_data, cashflows_data, period, theme):
    grid_class = "ag-theme-alpine-dark" if theme == "dark" else "ag-theme-alpine"

    # Adjusted cashflows only need a period
    cf_content = html.Div("Select a period and upload cashflows to see time weights.", className="text-muted p-3")
    if period and cashflows_data:
        weighted = compute_cashflow_weights(
            dw.cashflows_from_store(cashflows_data), period["start"], period["end"]
        )
        if weighted:
            cf_content = dag.AgGrid(
                id="perf-cashflows-grid",
                rowData=[{
                    "Date": w.date.strftime("%Y-%m-%d"),
                    "Asset Class": w.asset_class,
                    "Details": w.details,
                    "Amount": fmt_number_clean(w.amount),
                    "Weight": f"{w.weight:.4f}",
                    "Weighted Amount": fmt_number_clean(w.weighted_amount),
                } for w in weighted],
                columnDefs=[
                    {"field": "Date"},
                    {"field": "Asset Class"},
                    {"field": "Details"},
                    {"field": "Amount", "type": "rightAligned"},
                    {"field": "Weight", "type": "rightAligned"},
                    {"field": "Weighted Amount", "type": "rightAligned"},
                ],
                defaultColDef={"flex": 1, "minWidth": 100, "sortable": True, "resizable": True},
                className=grid_class,
                dashGridOptions={"domLayout": "autoHeight"}
            )

    result = dw.performance_from_store(perf_data)
    if result is None:
        empty = html.Div("No results yet.", className="text-muted p-3")
        return "", empty, {}, "", cf_content

    p = result.portfolio
    kpis = dbc.Row([
        dbc.Col(create_kpi_card("Beginning MV", fmt_dollar_clean(p.beginning_value)), width=3),
        dbc.Col(create_kpi_card("Ending MV", fmt_dollar_clean(p.ending_value)), width=3),
        dbc.Col(create_kpi_card("Period Return", fmt_signed_pct(p.period_return),
                                is_positive=p.period_return >= 0), width=3),
        dbc.Col(create_kpi_card("Annualized Return", fmt_pct_clean(p.annualized_return)), width=3),
    ], className="g-2")

    rows = [{
        "Asset Class": a.name,
        "Beginning MV": fmt_dollar_clean(a.beginning_value),
        "Ending MV": fmt_dollar_clean(a.ending_value),
        "Weight": fmt_pct_clean(a.weight),
        "Period Return": fmt_signed_pct(a.period_return),
        "Annualized": fmt_pct_clean(a.annualized_return),
        "Contribution": fmt_signed_pct(a.contribution),
    } for a in result.asset_results]
    rows.append({
        "Asset Class": "Total Portfolio",
        "Beginning MV": fmt_dollar_clean(p.beginning_value),
        "Ending MV": fmt_dollar_clean(p.ending_value),
        "Weight": fmt_pct_clean(1.0),
        "Period Return": fmt_signed_pct(p.period_return),
        "Annualized": fmt_pct_clean(p.annualized_return),
        "Contribution": fmt_signed_pct(sum(a.contribution for a in result.asset_results)),
    })

    signed_style = {"styleConditions": [
        {"condition": "params.value.includes('+')", "style": {"color": "#9BBB59"}},
        {"condition": "params.value.includes('-')", "style": {"color": "#C0504D"}}
    ]}
    grid = dag.AgGrid(
        id="perf-results-grid",
        rowData=rows,
        columnDefs=[
            {"field": "Asset Class"},
            {"field": "Beginning MV", "type": "rightAligned"},
            {"field": "Ending MV", "type": "rightAligned"},
            {"field": "Weight", "type": "rightAligned"},
            {"field": "Period Return", "type": "rightAligned", "cellStyle": signed_style},
            {"field": "Annualized", "type": "rightAligned"},
            {"field": "Contribution", "type": "rightAligned", "cellStyle": signed_style},
        ],
        defaultColDef={"flex": 1, "minWidth": 100, "resizable": True},
        className=grid_class,
        dashGridOptions={"domLayout": "autoHeight"}
    )

    issues = ""
    if result.issues:
        issues = dbc.Alert([
            html.Strong("Some assets could not be measured and were carried at 0%:"),
            html.Ul([html.Li(i) for i in result.issues], className="mb-0")
        ], color="warning", className="mb-4")

    return kpis, grid, dw.get_contribution_chart(result, theme=theme), issues, cf_content

# 4. Save period snapshot
@callback(
    [Output('periods-store', 'data'),
     Output('perf-run-status', 'children', allow_duplicate=True)],
    [Input('btn-save-period', 'n_clicks')],
    [State('periods-store', 'data'),
     State('period-store', 'data'),
     State('assets-store', 'data'),
     State('cashflows-store', 'data'),
     State('performance-store', 'data')],
    prevent_initial_call=True
)
def save_period(n, periods_data, period, assets_data, cashflows_data, perf_data):
    result = dw.performance_from_store(perf_data)
    if result is None or not period:
        return dash.no_update, dbc.Alert("Calculate returns before saving a period.", color="warning")

    snapshot = dw.make_period_snapshot(
        period["start"], period["end"],
        dw.assets_from_store(assets_data),
        dw.cashflows_from_store(cashflows_data),
        result,
    )
    periods = dw.save_period_snapshot(dw.periods_from_store(periods_data), snapshot)
    return dw.periods_to_store(periods), dbc.Alert(f"Saved period {snapshot.label}.", color="info", duration=4000)

# 5. Commentary (AI with template fallback)
@callback(
    Output('perf-commentary', 'children'),
    [Input('btn-perf-commentary', 'n_clicks'),
     Input('performance-store', 'data')]
)
def update_commentary(n, perf_data):
    result = dw.performance_from_store(perf_data)
    if result is None:
        return "Run a calculation to generate commentary."

    fallback = fallback_performance_summary(result)
    if dash.callback_context.triggered_id != 'btn-perf-commentary':
        return fallback

    text, source = generate_with_fallback(generate_performance_commentary, fallback, result)
    if source == "template":
        text += "\n\n*AI commentary unavailable; showing template summary.*"
    return text
