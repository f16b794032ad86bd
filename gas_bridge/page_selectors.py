# File: gas_bridge/page_selectors.py
import re

# Frame names created at runtime by the Apps Script sandbox.
LOGIN_FRAME_PATH = ("sandboxFrame", "userHtmlFrame")
BLANK_FRAME_URL = "about:blank"

LOGIN_EMAIL = 'input[type="email"]'
LOGIN_PASSWORD = 'input[type="password"]'
LOGIN_SUBMIT = "#loginBtn"
LOGIN_ERROR = "#login-error"
LOGIN_ERROR_DEFAULT_TEXT = "Email atau password salah."

DASHBOARD_TABLE_BODY = "#dashboardTableBody"

# "Memuat data", "Memuat data.", ... "Memuat data..." in any case.
LOADING_PLACEHOLDER = re.compile(r"^memuat data\.{0,3}$", re.IGNORECASE)

USER_FIELD = re.compile(r"user\s*[:\-]\s*(.+)", re.IGNORECASE)
PERIODE_FIELD = re.compile(r"periode\s*[:\-]\s*(.+)", re.IGNORECASE)
TOTAL_TRANSAKSI_FIELD = re.compile(r"total\s*transaksi\s*[:\-]\s*([0-9.,]+)", re.IGNORECASE)
