"""
main_window.py
==============

Main control screen.  From top to bottom:

* a status strip showing Bluetooth / link state, with *Connect* (opens
  the device picker) and *Disconnect*;
* the drive pad, or in tuning mode the eight PID/speed fields and a
  *Save* button;
* the *Adjust Settings* / *Run Mode* toggle;
* the device log, which follows the newest text from the robot.

Every session failure is shown as a modal "Problem" box.
"""

from __future__ import annotations

from typing import Dict, Optional

from PySide6.QtCore import Slot
from PySide6.QtGui import QTextCursor
from PySide6.QtWidgets import (
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QStackedWidget,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from ..errors import SessionError, ValidationError
from ..serial_link import PowerState
from ..session import SessionController, SessionState
from ..tuning import TuningChannel, TuningParameter
from . import theme
from .device_dialog import DevicePickerDialog
from .joystick_widget import JoystickPad

RUN_PAGE = 0
TUNING_PAGE = 1


class ControlWindow(QMainWindow):
    def __init__(
        self,
        session: SessionController,
        tuning: TuningChannel,
        pad: JoystickPad,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.setWindowTitle("SkaterBot Remote")
        self.session = session
        self.tuning = tuning
        self.pad = pad
        self.picker: Optional[DevicePickerDialog] = None

        self._build_ui()

        session.state_changed.connect(self._on_state)
        session.power_state_changed.connect(lambda _p: self._refresh_header())
        session.scrollback_changed.connect(self._show_scrollback)
        session.failure.connect(self._on_failure)

        self._on_state(session.state)

    # ---- UI construction ----
    def _build_ui(self) -> None:
        central = QWidget()
        outer = QVBoxLayout(central)

        top = QHBoxLayout()
        self.status_lbl = QLabel()
        self.connect_btn = QPushButton("Connect")
        self.disconnect_btn = QPushButton("Disconnect")
        top.addWidget(self.status_lbl, 1)
        top.addWidget(self.connect_btn)
        top.addWidget(self.disconnect_btn)
        outer.addLayout(top)

        self.pages = QStackedWidget()
        drive = QGroupBox("Drive")
        drive_l = QVBoxLayout(drive)
        drive_l.addWidget(self.pad)
        self.pages.addWidget(drive)
        self.pages.addWidget(self._build_tuning_panel())
        outer.addWidget(self.pages, 3)

        self.toggle_btn = QPushButton("Adjust Settings")
        outer.addWidget(self.toggle_btn)

        outer.addWidget(QLabel("Device Log:"))
        self.console = QTextEdit()
        self.console.setReadOnly(True)
        outer.addWidget(self.console, 2)
        self.setCentralWidget(central)

        self.connect_btn.clicked.connect(self.open_device_picker)
        self.disconnect_btn.clicked.connect(self.session.disconnect_session)
        self.toggle_btn.clicked.connect(self.session.toggle_tuning)

    def _build_tuning_panel(self) -> QGroupBox:
        group = QGroupBox("Tuning")
        grid = QGridLayout(group)
        self.tuning_fields: Dict[TuningParameter, QLineEdit] = {}
        for row, parameter in enumerate(TuningParameter):
            grid.addWidget(QLabel(parameter.label), row, 0)
            field = QLineEdit()
            field.setPlaceholderText(parameter.prefix)
            field.editingFinished.connect(lambda p=parameter: self._submit(p))
            grid.addWidget(field, row, 1)
            self.tuning_fields[parameter] = field
        self.save_btn = QPushButton("Save")
        self.save_btn.clicked.connect(self.tuning.save)
        grid.addWidget(self.save_btn, len(self.tuning_fields), 0, 1, 2)
        return group

    # ---- actions ----
    def open_device_picker(self) -> None:
        dlg = DevicePickerDialog(self.session, self)
        self.picker = dlg
        try:
            if dlg.start():
                dlg.exec()
        finally:
            self.picker = None
            dlg.deleteLater()

    def _submit(self, parameter: TuningParameter) -> None:
        field = self.tuning_fields[parameter]
        text = field.text()
        if not text:
            return
        try:
            self.tuning.submit(parameter, text)
        except ValidationError as exc:
            self._on_failure(exc)
        finally:
            field.clear()

    # ---- session -> widgets ----
    @Slot(object)
    def _on_state(self, state: SessionState) -> None:
        self.pages.setCurrentIndex(TUNING_PAGE if state is SessionState.TUNING else RUN_PAGE)
        self.toggle_btn.setText("Run Mode" if state is SessionState.TUNING else "Adjust Settings")
        self.disconnect_btn.setEnabled(self.session.is_linked)
        self._refresh_header()

    def _refresh_header(self) -> None:
        if self.session.is_linked:
            device = self.session.selected_device
            self.status_lbl.setText(f"Connected: {device.name if device else 'device'}")
            self.status_lbl.setStyleSheet(theme.status_style("ready"))
            self.connect_btn.setEnabled(False)
        elif self.session.power_state is not PowerState.POWERED_OFF:
            self.status_lbl.setText("Not connected")
            self.status_lbl.setStyleSheet(theme.status_style("available"))
            self.connect_btn.setEnabled(True)
        else:
            self.status_lbl.setText("Bluetooth off")
            self.status_lbl.setStyleSheet(theme.status_style("unavailable"))
            self.connect_btn.setEnabled(False)

    @Slot(str)
    def _show_scrollback(self, text: str) -> None:
        self.console.setPlainText(text)
        self.console.moveCursor(QTextCursor.End)
        self.console.ensureCursorVisible()

    @Slot(object)
    def _on_failure(self, error: SessionError) -> None:
        parent = self.picker if self.picker is not None and self.picker.isVisible() else self
        QMessageBox.warning(parent, error.title, error.message)

    # ---- lifetime ----
    def showEvent(self, event) -> None:  # type: ignore[override]
        super().showEvent(event)
        self.session.start()

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self.session.shutdown()
        super().closeEvent(event)


__all__ = ["ControlWindow"]
