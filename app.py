import dash
from dash import dcc, html, Input, Output, State
import dash_bootstrap_components as dbc

# Import Pages
from pages import overview, performance, attribution, report

# Initialize App
app = dash.Dash(
    __name__,
    external_stylesheets=[dbc.themes.CYBORG],
    suppress_callback_exceptions=True,
    title="Portfolio Performance & Attribution"
)

# Sidebar Component
sidebar = html.Div(
    [
        html.H3("DELVEX", className="display-6"),
        html.P("Performance & Attribution", className="lead"),
        html.Hr(),

        dbc.Nav(
            [
                dbc.NavLink("Overview", href="/", active="exact"),
                dbc.NavLink("Performance", href="/performance", active="exact"),
                dbc.NavLink("Attribution", href="/attribution", active="exact"),
                dbc.NavLink("Committee Report", href="/report", active="exact"),
            ],
            vertical=True,
            pills=True,
        ),

        html.Hr(),

        # Controls
        html.Div([
            dbc.Label("Theme"),
            dbc.Switch(id="theme-switch", label="Dark Mode", value=True, className="mb-2"),
        ]),
    ],
    id="sidebar",
    className="sidebar",
)

# Content Container
content = html.Div(id="page-content", className="content")

# Main Layout
app.layout = html.Div(
    [
        dcc.Location(id="url"),

        # Session state; results live here, not on the server
        dcc.Store(id="theme-store", data="dark"),
        dcc.Store(id="period-store", storage_type="session"),
        dcc.Store(id="assets-store", storage_type="session"),
        dcc.Store(id="cashflows-store", storage_type="session"),
        dcc.Store(id="performance-store", storage_type="session"),
        dcc.Store(id="attribution-store", storage_type="session"),
        dcc.Store(id="periods-store", storage_type="session"),

        # Toggle Button
        html.Button(
            "☰",
            id="btn-sidebar-toggle",
            className="btn btn-secondary",
            style={
                "position": "fixed",
                "top": "10px",
                "left": "10px",
                "zIndex": 1100,
                "borderRadius": "50%",
                "width": "40px",
                "height": "40px",
                "display": "flex",
                "alignItems": "center",
                "justifyContent": "center",
                "fontSize": "1.2rem",
                "paddingBottom": "4px"
            }
        ),

        sidebar,
        content,
    ],
    id="main-container",
    **{"data-theme": "dark"}
)

# Validation Layout (Required for multi-page apps with global callbacks)
app.validation_layout = html.Div([
    app.layout,
    overview.layout,
    performance.layout,
    attribution.layout,
    report.layout,
])

# ============================================================
# CALLBACKS
# ============================================================

# 1. Router
@app.callback(Output("page-content", "children"), [Input("url", "pathname")])
def render_page_content(pathname):
    if pathname == "/":
        return overview.layout
    elif pathname == "/performance":
        return performance.layout
    elif pathname == "/attribution":
        return attribution.layout
    elif pathname == "/report":
        return report.layout
    return dbc.Container(
        [
            html.H1("404: Not found", className="text-danger"),
            html.Hr(),
            html.P(f"The pathname {pathname} was not recognised..."),
        ],
        className="py-3"
    )

# 2. Theme
@app.callback(
    [Output("theme-store", "data"),
     Output("main-container", "data-theme")],
    [Input("theme-switch", "value")]
)
def update_theme(is_dark):
    theme = "dark" if is_dark else "light"
    return theme, theme

# 3. Sidebar Toggle Logic
@app.callback(
    [Output("sidebar", "className"),
     Output("page-content", "className")],
    [Input("btn-sidebar-toggle", "n_clicks")],
    [State("sidebar", "className"),
     State("page-content", "className")]
)
def toggle_sidebar(n, sidebar_class, content_class):
    if n:
        if "hidden" in sidebar_class:
            return sidebar_class.replace(" hidden", ""), content_class.replace(" expanded", "")
        else:
            return sidebar_class + " hidden", content_class + " expanded"
    return sidebar_class, content_class

if __name__ == "__main__":
    app.run(debug=True)
