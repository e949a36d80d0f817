"""PySide6 widgets for the remote."""

from .device_dialog import DevicePickerDialog
from .joystick_widget import JoystickPad
from .main_window import ControlWindow
from .theme import apply_dark_theme

__all__ = ["ControlWindow", "DevicePickerDialog", "JoystickPad", "apply_dark_theme"]
