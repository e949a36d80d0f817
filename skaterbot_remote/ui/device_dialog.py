"""
device_dialog.py
================

Modal device picker.  Opening the dialog starts a scan; devices appear
as they are discovered, weakest signal first.  Selecting one connects
to it.  The dialog closes by itself once the device is ready, or when
Bluetooth is switched off while it is open.  Connection failures leave
the dialog open with *Rescan* enabled.

All behaviour lives in :class:`~skaterbot_remote.session.SessionController`;
this class only mirrors its signals into widgets.
"""

from __future__ import annotations

from typing import List, Optional

from PySide6.QtCore import Qt, Slot
from PySide6.QtWidgets import (
    QDialog,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QProgressBar,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..session import DiscoveredDevice, SessionController, SessionState


class DevicePickerDialog(QDialog):
    def __init__(self, session: SessionController, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.setWindowTitle("Devices")
        self.setMinimumSize(360, 420)

        layout = QVBoxLayout(self)
        self.status_lbl = QLabel("Devices")
        layout.addWidget(self.status_lbl)
        self.device_list = QListWidget()
        layout.addWidget(self.device_list, 1)
        self.busy = QProgressBar()
        self.busy.setRange(0, 0)  # indeterminate
        self.busy.setTextVisible(False)
        self.busy.hide()
        layout.addWidget(self.busy)

        btn_row = QHBoxLayout()
        self.rescan_btn = QPushButton("Rescan")
        self.rescan_btn.setEnabled(False)
        self.cancel_btn = QPushButton("Cancel")
        btn_row.addWidget(self.rescan_btn)
        btn_row.addStretch(1)
        btn_row.addWidget(self.cancel_btn)
        layout.addLayout(btn_row)

        self.rescan_btn.clicked.connect(self._rescan)
        self.cancel_btn.clicked.connect(self.reject)
        self.device_list.itemActivated.connect(self._select)
        self.device_list.itemClicked.connect(self._select)

        session.devices_changed.connect(self._show_devices)
        session.state_changed.connect(self._on_state)
        session.scan_settled_changed.connect(self._on_scan_settled)
        session.device_ready.connect(self.accept)
        session.picker_dismissed.connect(self.reject)

    def start(self) -> bool:
        """Kick off the first scan.  False if the scan was refused."""
        started = self.session.start_scan()
        self._on_state(self.session.state)
        return started

    # ---- session -> widgets ----
    @Slot(list)
    def _show_devices(self, devices: List[DiscoveredDevice]) -> None:
        self.device_list.clear()
        for device in devices:
            item = QListWidgetItem(device.name)
            item.setData(Qt.UserRole, device.id)
            item.setToolTip(f"{device.id}  ({device.signal_strength:.0f} dBm)")
            self.device_list.addItem(item)

    @Slot(object)
    def _on_state(self, state: SessionState) -> None:
        scanning = state is SessionState.SCANNING
        connecting = state is SessionState.CONNECTING
        if scanning and not self.session.scan_settled:
            self.status_lbl.setText("Scanning")
        elif connecting:
            self.status_lbl.setText("Connecting")
        else:
            self.status_lbl.setText("Devices")
        self.busy.setVisible(connecting or (scanning and not self.session.scan_settled))
        self.device_list.setEnabled(scanning)
        self.rescan_btn.setEnabled(state is SessionState.IDLE or (scanning and self.session.scan_settled))

    @Slot(bool)
    def _on_scan_settled(self, _settled: bool) -> None:
        self._on_state(self.session.state)

    # ---- widgets -> session ----
    def _select(self, item: QListWidgetItem) -> None:
        if self.session.state is not SessionState.SCANNING:
            return
        self.session.select_device(item.data(Qt.UserRole))

    def _rescan(self) -> None:
        self.session.start_scan()

    def reject(self) -> None:  # type: ignore[override]
        self.session.cancel_scan()
        super().reject()

    def done(self, result: int) -> None:  # type: ignore[override]
        # Signals are per-dialog; drop them so a closed picker stops listening.
        for signal, slot in (
            (self.session.devices_changed, self._show_devices),
            (self.session.state_changed, self._on_state),
            (self.session.scan_settled_changed, self._on_scan_settled),
            (self.session.device_ready, self.accept),
            (self.session.picker_dismissed, self.reject),
        ):
            try:
                signal.disconnect(slot)
            except (RuntimeError, TypeError):
                pass
        super().done(result)


__all__ = ["DevicePickerDialog"]
