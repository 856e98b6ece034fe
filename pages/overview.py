import dash
from dash import dcc, html, callback, Input, Output
import dash_bootstrap_components as dbc
import dash_wrappers as dw
from report_formatting import fmt_pct_clean, fmt_signed_pct, fmt_dollar_clean

def create_kpi_card(title, value, subtext=None, is_positive=None):
    """
    Bloomberg-style KPI card with professional styling.
    """
    subtext_arrow = ""
    subtext_color = "#6c757d"  # Gray default
    main_arrow_span = None

    if is_positive is not None:
        if is_positive:
            color = "#28a745"  # Green
            symbol = "▲"
        else:
            color = "#dc3545"  # Red
            symbol = "▼"

        if subtext:
            subtext_arrow = f"{symbol} "
            subtext_color = color

        main_arrow_span = html.Span(
            f"{symbol} ",
            style={
                'color': color,
                'fontSize': '1.2rem',
                'marginRight': '4px',
                'verticalAlign': 'middle'
            }
        )

    h2_content = [main_arrow_span, value] if main_arrow_span else value

    card_content = [
        html.Div(title, className="text-muted small mb-1", style={'fontSize': '0.75rem', 'fontWeight': '500'}),
        html.H4(h2_content, className="mb-1", style={'fontWeight': '600', 'fontSize': '1.4rem'}),
    ]

    # Force a placeholder if subtext is missing to maintain height
    subtext_display = f"{subtext_arrow}{subtext}" if subtext else " "

    card_content.append(
        html.Div(
            subtext_display,
            style={
                'fontSize': '0.8rem',
                'fontWeight': '500',
                'color': subtext_color if subtext else 'transparent'
            }
        )
    )

    return dbc.Card(
        dbc.CardBody(card_content, className="p-2"),
        className="shadow-sm",
        style={
            'borderLeft': f'4px solid {subtext_color if is_positive is not None else "#4C6A92"}',
            'height': '100%'
        }
    )

layout = html.Div([
    dbc.Row([
        dbc.Col(html.Div(id='overview-kpi-row'), width=12),
    ], className="mb-4"),

    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Contribution to Return", className="card-title p-2"),
            dcc.Graph(id='overview-contribution-chart')
        ]), width=12, lg=7, className="mb-4"),
        dbc.Col(dbc.Card([
            dbc.CardHeader("Attribution Insight"),
            dbc.CardBody(dcc.Markdown(id='overview-insight'))
        ], className="shadow-sm border-primary"), width=12, lg=5, className="mb-4"),
    ]),
])

@callback(
    [Output('overview-kpi-row', 'children'),
     Output('overview-contribution-chart', 'figure'),
     Output('overview-insight', 'children')],
    [Input('performance-store', 'data'),
     Input('attribution-store', 'data'),
     Input('theme-store', 'data')]
)
def update_overview(perf_data, attribution_data, theme):
    result = dw.performance_from_store(perf_data)
    insight = (attribution_data or {}).get("insight") or "Run an attribution analysis to see insights."

    if result is None:
        msg = html.Div("Upload assets and run the Performance calculation to populate the dashboard.",
                       className="text-muted p-3")
        return msg, {}, insight

    p = result.portfolio
    pl = p.ending_value - p.beginning_value
    kpis = dbc.Row([
        dbc.Col(create_kpi_card("Beginning MV", fmt_dollar_clean(p.beginning_value)), width=3),
        dbc.Col(create_kpi_card("Ending MV", fmt_dollar_clean(p.ending_value),
                                fmt_dollar_clean(pl), pl >= 0), width=3),
        dbc.Col(create_kpi_card("Period Return (Modified Dietz)", fmt_signed_pct(p.period_return),
                                is_positive=p.period_return >= 0), width=3),
        dbc.Col(create_kpi_card("Annualized (ACT/365)", fmt_pct_clean(p.annualized_return)), width=3),
    ], className="g-2")

    return kpis, dw.get_contribution_chart(result, theme=theme), insight
