"""
Configuration management for the Agile Finance Metrics Engine.

This module centralizes all configuration settings including database
connection, API server parameters, and computation defaults.
"""

import os
from typing import List


# ==============================================================================
# DATABASE CONFIGURATION
# ==============================================================================

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///finance.db")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"


# ==============================================================================
# API CONFIGURATION
# ==============================================================================

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))


# ==============================================================================
# COMPUTATION CONFIGURATION
# ==============================================================================

# Profit shares and budget allocations must sum to 100% within this tolerance
SHARE_TOTAL_TOLERANCE = 0.01

# Split policy: half of revenue to salaries, half shared equally
SALARY_POOL_RATIO = 0.5
DEFAULT_MONTHLY_SALARY = 3000.0
HOURS_PER_MONTH = 160

# Rolling window used by period views
DEFAULT_MONTHS_BACK = 12

# Trend analysis
DEFAULT_FORECAST_PERIODS = 3
MOVING_AVERAGE_WINDOW = 3
ANOMALY_Z_THRESHOLD = 2.0

# Named funds for budget allocation
BUDGET_FUNDS: List[str] = [
    "technology",
    "growth",
    "team",
    "marketing",
    "emergency",
    "investments",
]


# ==============================================================================
# LOGGING CONFIGURATION
# ==============================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
