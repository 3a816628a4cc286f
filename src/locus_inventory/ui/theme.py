from __future__ import annotations

# Core surfaces
VS_BG = "#1E1E1E"
VS_SURFACE = "#252526"
VS_SURFACE_ALT = "#2D2D30"
VS_CARD = "#2F2F33"

# Borders and outlines
VS_BORDER = "#3C3C3C"
VS_DIVIDER = "#2F2F2F"

# Accent colors
VS_ACCENT = "#0E639C"
VS_ACCENT_HOVER = "#1177BB"
VS_DANGER = "#A1260D"
VS_DANGER_HOVER = "#C72E0F"

# Text colors
VS_TEXT = "#F3F3F3"
VS_TEXT_MUTED = "#9DA5B4"

# Status colors
VS_SUCCESS = "#6A9955"
VS_WARNING = "#F48771"
VS_INFO = "#3794FF"

# Scanner preview border per state
SCAN_BORDER_IDLE = VS_BORDER
SCAN_BORDER_ACTIVE = VS_INFO
SCAN_BORDER_ACCEPTED = VS_SUCCESS
SCAN_BORDER_FAILED = VS_WARNING

# Calibration badges
CALIBRATION_COLORS = {
    "expired": VS_WARNING,
    "valid": VS_SUCCESS,
    "na": VS_TEXT_MUTED,
}
