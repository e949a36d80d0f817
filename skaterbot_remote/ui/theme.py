"""
Dark theme for the remote.

Usage:
    from skaterbot_remote.ui.theme import apply_dark_theme, status_style
    apply_dark_theme(app)
    header.setStyleSheet(status_style("ready"))

The status header mirrors the robot's link state with a coloured strip:
green when a device is ready, amber when Bluetooth is on but nothing is
connected, red when Bluetooth is unavailable.
"""
from __future__ import annotations

from PySide6.QtWidgets import QApplication

# ===================== PALETTE ==========================================
BASE_BG = "#0B0F14"
PANEL_BG = "#0E141E"
INPUT_BG = "#121823"
ACCENT = "#34F5C5"
ACCENT_HOVER = "#6CFFD9"
ACCENT_PRESSED = "#17C29E"
FOCUS = "#8B5CF6"
TEXT = "#D6E6EC"
TEXT_MUTED = "#9BB1BA"

STATUS_COLOURS = {
    "ready": "#1E9E5A",
    "available": "#C9A227",
    "unavailable": "#B03A3A",
}

# Pad colours, shared with the joystick widget
PAD_RING = "#263241"
PAD_FILL = "#121823"
PAD_HANDLE = ACCENT
PAD_HANDLE_ACTIVE = ACCENT_HOVER


def status_style(status: str) -> str:
    colour = STATUS_COLOURS.get(status, STATUS_COLOURS["unavailable"])
    return (
        f"background-color: {colour}; color: {BASE_BG}; font-weight: bold;"
        " padding: 6px 10px; border-radius: 6px;"
    )


def apply_dark_theme(app: QApplication) -> None:
    """Apply the stylesheet to the whole application."""
    qss = f"""
    QWidget {{
        background-color: {BASE_BG};
        color: {TEXT};
        font-family: 'Segoe UI', 'Roboto', Arial, sans-serif;
        selection-background-color: #1F2A44;
        selection-color: #E7F9FF;
    }}

    QGroupBox {{
        border: 1px solid {ACCENT};
        border-radius: 8px;
        margin: 12px 0;
        background-color: {PANEL_BG};
        padding: 6px 8px;
    }}
    QGroupBox::title {{
        subcontrol-origin: margin;
        left: 12px;
        top: -4px;
        padding: 0 8px;
        color: {FOCUS};
        background-color: {BASE_BG};
    }}

    QLineEdit, QTextEdit, QPlainTextEdit, QListWidget {{
        background-color: {INPUT_BG};
        border: 1px solid {ACCENT};
        border-radius: 6px;
        padding: 4px 6px;
        color: {TEXT};
    }}
    QLineEdit:focus, QTextEdit:focus, QPlainTextEdit:focus, QListWidget:focus {{
        border: 1px solid {FOCUS};
    }}

    QPushButton {{
        border: 1px solid {ACCENT};
        border-radius: 6px;
        background-color: rgba(52, 245, 197, 0.06);
        padding: 4px 10px;
    }}
    QPushButton:hover {{
        border-color: {ACCENT_HOVER};
        background-color: rgba(108, 255, 217, 0.10);
    }}
    QPushButton:pressed {{
        border-color: {ACCENT_PRESSED};
        background-color: rgba(23, 194, 158, 0.14);
    }}
    QPushButton:disabled {{
        color: rgba(231, 249, 255, 0.35);
        border-color: rgba(52, 245, 197, 0.25);
    }}

    QProgressBar {{
        background: {PANEL_BG};
        border: 1px solid {ACCENT};
        border-radius: 6px;
        color: {TEXT_MUTED};
        text-align: center;
    }}
    QProgressBar::chunk {{ background: {ACCENT}; }}

    QScrollBar:vertical {{ width: 12px; background: {BASE_BG}; margin: 2px; border: none; }}
    QScrollBar::handle:vertical {{ background: {ACCENT}; min-height: 24px; border-radius: 6px; }}
    """
    app.setStyleSheet(qss)


__all__ = ["apply_dark_theme", "status_style", "STATUS_COLOURS"]
