import os

from dotenv import load_dotenv

# ============================================================
# API KEYS (SECURE LOAD)
# ============================================================

# 1. Load the .env file immediately
load_dotenv()

# 2. Read from Environment (now populated by .env)
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "").strip()

# 3. Placeholder keys from .env templates count as missing
if ANTHROPIC_API_KEY == "your_api_key_here":
    ANTHROPIC_API_KEY = ""

# 4. Safety Check
if not ANTHROPIC_API_KEY:
    print("⚠️ WARNING: ANTHROPIC_API_KEY not found. AI commentary will use template text.")

# ============================================================
# AI NARRATIVE SETTINGS
# ============================================================
ANTHROPIC_API_URL = os.environ.get("ANTHROPIC_API_URL", "https://api.anthropic.com/v1/messages")
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_MODEL = os.environ.get("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
AI_MAX_TOKENS = int(os.environ.get("AI_MAX_TOKENS", "2048"))
AI_REQUEST_TIMEOUT = float(os.environ.get("AI_REQUEST_TIMEOUT", "60"))

# Backoff between attempts (seconds); one more attempt than delays
AI_RETRY_DELAYS = (1, 2, 4, 8, 16)

# ============================================================
# ATTRIBUTION DEFAULTS (decimals)
# ============================================================
DEFAULT_ATTRIBUTION_ROWS = [
    {"name": "Equities", "portfolio_weight": 0.60, "portfolio_return": 0.12,
     "benchmark_weight": 0.50, "benchmark_return": 0.10},
    {"name": "Fixed Income", "portfolio_weight": 0.30, "portfolio_return": 0.04,
     "benchmark_weight": 0.40, "benchmark_return": 0.05},
    {"name": "Cash", "portfolio_weight": 0.10, "portfolio_return": 0.01,
     "benchmark_weight": 0.10, "benchmark_return": 0.01},
]

# ============================================================
# GLOBAL COLOR PALETTE
# ============================================================
GLOBAL_PALETTE = [
    "#4C6A92",  # steel blue
    "#8C9CB1",  # soft gray-blue
    "#C0504D",  # muted red
    "#D79E9C",  # soft red-gray
    "#9BBB59",  # olive green
    "#C5D6A4",  # light olive
    "#8064A2",  # muted purple
    "#B1A0C7",  # lavender gray
    "#4F81BD",  # corporate blue
    "#A5B5CF",  # cool gray-blue
    "#F2C200",  # muted gold (accent)
    "#D6B656",  # soft gold-gray
]
