import dash
from dash import dcc, html, callback, Input, Output, State
import dash_bootstrap_components as dbc
import dash_ag_grid as dag

import dash_wrappers as dw
from attribution_engine import brinson_fachler, weights_are_normalized
from portfolio_engine import performance_to_attribution_input
from report_formatting import fmt_pct_clean, fmt_signed_pct
from components.ai_brief import (
    generate_executive_summary,
    generate_recommendations,
    generate_with_fallback,
)
from config import DEFAULT_ATTRIBUTION_ROWS
from pages.overview import create_kpi_card

PCT_COLUMN = {"editable": True, "type": "rightAligned", "cellDataType": "number",
              "valueFormatter": {"function": "params.value == null ? '' : d3.format('.2f')(params.value) + '%'"}}

layout = html.Div([
    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Attribution Inputs", className="card-title p-2"),
            html.Div("Weights and returns in percent. Edit cells directly; rows with a blank name are ignored.",
                     className="text-muted small px-2 mb-2"),
            dag.AgGrid(
                id="attribution-input-grid",
                rowData=dw.attribution_rows_from_inputs(DEFAULT_ATTRIBUTION_ROWS),
                columnDefs=[
                    {"field": "name", "headerName": "Asset Class", "editable": True},
                    {"field": "portfolio_weight", "headerName": "Portfolio Weight", **PCT_COLUMN},
                    {"field": "portfolio_return", "headerName": "Portfolio Return", **PCT_COLUMN},
                    {"field": "benchmark_weight", "headerName": "Benchmark Weight", **PCT_COLUMN},
                    {"field": "benchmark_return", "headerName": "Benchmark Return", **PCT_COLUMN},
                ],
                defaultColDef={"flex": 1, "minWidth": 110, "resizable": True},
                dashGridOptions={"domLayout": "autoHeight", "singleClickEdit": True},
            ),
            html.Div([
                dbc.Button("Add Row", id="btn-attr-add-row", color="secondary", size="sm", className="me-2"),
                dbc.Button("Import From Performance", id="btn-attr-import", color="secondary", size="sm",
                           className="me-2"),
                dbc.Button("Run Attribution", id="btn-run-attribution", color="primary", size="sm"),
            ], className="p-2"),
            html.Div(id="attribution-status", className="px-2 pb-2"),
        ]), width=12, className="mb-4"),
    ]),

    dbc.Row([
        dbc.Col(html.Div(id='attribution-kpi-row'), width=12),
    ], className="mb-4"),

    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Brinson-Fachler Attribution", className="card-title p-2"),
            dcc.Loading(html.Div(id='attribution-results-container'))
        ]), width=12, lg=7, className="mb-4"),
        dbc.Col(dbc.Card([
            dcc.Graph(id='attribution-chart')
        ]), width=12, lg=5, className="mb-4"),
    ]),

    dbc.Row([
        dbc.Col(dbc.Card([
            dbc.CardHeader([
                "Executive Summary",
                dbc.Button("Generate", id="btn-attr-summary", size="sm", color="primary",
                           className="float-end"),
            ]),
            dbc.CardBody(dcc.Loading(dcc.Markdown(id='attribution-summary')))
        ], className="shadow-sm border-primary"), width=12, lg=6, className="mb-4"),
        dbc.Col(dbc.Card([
            dbc.CardHeader([
                "Recommendations",
                dbc.Button("Generate", id="btn-attr-recommendations", size="sm", color="primary",
                           className="float-end"),
            ]),
            dbc.CardBody(dcc.Loading(dcc.Markdown(id='attribution-recommendations')))
        ], className="shadow-sm border-primary"), width=12, lg=6, className="mb-4"),
    ]),
])

# 1. Grid editing helpers
@callback(
    [Output('attribution-input-grid', 'rowData'),
     Output('attribution-status', 'children', allow_duplicate=True)],
    [Input('btn-attr-add-row', 'n_clicks'),
     Input('btn-attr-import', 'n_clicks')],
    [State('attribution-input-grid', 'rowData'),
     State('performance-store', 'data')],
    prevent_initial_call=True
)
def edit_inputs(add_clicks, import_clicks, rows, perf_data):
    triggered = dash.callback_context.triggered_id
    rows = list(rows or [])

    if triggered == 'btn-attr-add-row':
        rows.append({"name": "", "portfolio_weight": 0, "portfolio_return": 0,
                     "benchmark_weight": 0, "benchmark_return": 0})
        return rows, dash.no_update

    result = dw.performance_from_store(perf_data)
    if result is None:
        return dash.no_update, dbc.Alert("Run a Performance calculation first.", color="warning")

    # Benchmark legs survive an import for rows whose names match
    imported = performance_to_attribution_input(result, dw.benchmark_legs_from_rows(rows))
    return dw.attribution_rows_from_inputs(imported), dbc.Alert(
        f"Imported {len(imported)} asset classes from performance results.", color="info", duration=4000
    )

# 2. Run attribution
@callback(
    [Output('attribution-store', 'data'),
     Output('attribution-status', 'children')],
    [Input('btn-run-attribution', 'n_clicks')],
    [State('attribution-input-grid', 'rowData')],
    prevent_initial_call=True
)
def run_attribution(n, rows):
    inputs = dw.attribution_inputs_from_rows(rows)
    if not inputs:
        return None, dbc.Alert("Enter at least one asset class.", color="warning")

    result = brinson_fachler(inputs)
    status = ""
    if not weights_are_normalized(result):
        status = dbc.Alert(
            f"Weights do not sum to 100% (portfolio {fmt_pct_clean(result.total_portfolio_weight)}, "
            f"benchmark {fmt_pct_clean(result.total_benchmark_weight)}). Effects are computed as entered.",
            color="warning"
        )
    return dw.attribution_to_store(result), status

# 3. Results display
@callback(
    [Output('attribution-kpi-row', 'children'),
     Output('attribution-results-container', 'children'),
     Output('attribution-chart', 'figure')],
    [Input('attribution-store', 'data'),
     Input('theme-store', 'data')]
)
def update_results(attr_data, theme):
    result = dw.attribution_from_store(attr_data)
    if result is None or not result.attribution:
        return "", html.Div("Run an attribution to see results.", className="text-muted p-3"), {}

    t = result.totals
    kpis = dbc.Row([
        dbc.Col(create_kpi_card("Portfolio Return", fmt_pct_clean(result.portfolio_return)), width=3),
        dbc.Col(create_kpi_card("Benchmark Return", fmt_pct_clean(result.benchmark_return)), width=3),
        dbc.Col(create_kpi_card("Active Return", fmt_signed_pct(t.active_return),
                                is_positive=t.active_return >= 0), width=3),
        dbc.Col(create_kpi_card("Allocation / Selection",
                                f"{fmt_signed_pct(t.allocation)} / {fmt_signed_pct(t.selection)}",
                                f"Interaction {fmt_signed_pct(t.interaction)}"), width=3),
    ], className="g-2")

    rows = [{
        "Asset Class": a.name,
        "Allocation": fmt_signed_pct(a.allocation),
        "Selection": fmt_signed_pct(a.selection),
        "Interaction": fmt_signed_pct(a.interaction),
        "Total Effect": fmt_signed_pct(a.total),
    } for a in result.attribution]
    rows.append({
        "Asset Class": "Total",
        "Allocation": fmt_signed_pct(t.allocation),
        "Selection": fmt_signed_pct(t.selection),
        "Interaction": fmt_signed_pct(t.interaction),
        "Total Effect": fmt_signed_pct(t.allocation + t.selection + t.interaction),
    })

    signed_style = {"styleConditions": [
        {"condition": "params.value.includes('+')", "style": {"color": "#9BBB59"}},
        {"condition": "params.value.includes('-')", "style": {"color": "#C0504D"}}
    ]}
    grid = dag.AgGrid(
        id="attribution-results-grid",
        rowData=rows,
        columnDefs=[{"field": "Asset Class"}] + [
            {"field": f, "type": "rightAligned", "cellStyle": signed_style}
            for f in ["Allocation", "Selection", "Interaction", "Total Effect"]
        ],
        defaultColDef={"flex": 1, "minWidth": 100, "resizable": True},
        className="ag-theme-alpine-dark" if theme == "dark" else "ag-theme-alpine",
        dashGridOptions={"domLayout": "autoHeight"}
    )
    return kpis, grid, dw.get_attribution_chart(result, theme=theme)

# 4. Narrative (AI with template fallback)
@callback(
    [Output('attribution-summary', 'children'),
     Output('attribution-recommendations', 'children')],
    [Input('btn-attr-summary', 'n_clicks'),
     Input('btn-attr-recommendations', 'n_clicks'),
     Input('attribution-store', 'data')]
)
def update_narrative(n_summary, n_recs, attr_data):
    result = dw.attribution_from_store(attr_data)
    if result is None:
        msg = "Run an attribution to generate commentary."
        return msg, msg

    triggered = dash.callback_context.triggered_id
    if triggered == 'btn-attr-summary':
        text, _ = generate_with_fallback(generate_executive_summary, result.insight, result)
        return text, dash.no_update
    if triggered == 'btn-attr-recommendations':
        text, _ = generate_with_fallback(generate_recommendations, result.insight, result)
        return dash.no_update, text

    return result.insight, "Click Generate for AI recommendations."
