"""
ble_link.py
===========

BLE "serial" transport built on bleak.

The robot carries an HM-10 style module: one GATT characteristic that
accepts writes (bytes to the robot) and sends notifications (text from
the robot).  bleak is asyncio based, so this link owns a private event
loop running in a daemon thread and hands coroutines to it with
``asyncio.run_coroutine_threadsafe``.  Results travel back to the GUI
thread through the Qt signals declared on
:class:`~skaterbot_remote.serial_link.SerialLink`.

Power state
-----------
bleak has no portable "adapter powered" query.  The link starts in
``PowerState.UNKNOWN`` and learns the real state from the first scan:
``BleakBluetoothNotAvailableError`` means the radio is off, which is
reported through ``power_state_changed``.  While off, a watcher retries a
short scan every few seconds and reports ``POWERED_ON`` once the adapter
answers again.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Dict, Optional

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakBluetoothNotAvailableError, BleakError
from PySide6.QtCore import QObject

from .config import HM10_CHAR_UUID, HM10_SERVICE_UUID
from .errors import SerialLinkError
from .serial_link import Peer, PowerState, SerialLink

LOG = logging.getLogger("skaterbot.ble")

ADAPTER_RETRY_S = 3.0


class BleSerialLink(SerialLink):
    def __init__(
        self,
        service_uuid: str = HM10_SERVICE_UUID,
        char_uuid: str = HM10_CHAR_UUID,
        *,
        filter_service: bool = True,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._service_uuid = service_uuid
        self._char_uuid = char_uuid
        self._filter_service = filter_service

        self._scanner: Optional[BleakScanner] = None
        self._client: Optional[BleakClient] = None
        self._devices: Dict[str, BLEDevice] = {}
        self._peer_id: Optional[str] = None
        self._ready = False
        self._manual_disconnect = False
        self._power = PowerState.UNKNOWN
        self._watching = False
        self._closed = False

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="BleLoop", daemon=True)
        self._thread.start()

    # ---- asyncio plumbing ----
    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            self._loop.close()

    def _submit(self, coro: Coroutine[Any, Any, Any], *, what: str) -> concurrent.futures.Future:
        fut = asyncio.run_coroutine_threadsafe(coro, self._loop)

        def done(f: concurrent.futures.Future) -> None:
            if f.cancelled():
                return
            exc = f.exception()
            if exc is not None:
                LOG.warning("%s failed: %s", what, exc)

        fut.add_done_callback(done)
        return fut

    # ---- state ----
    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def connected_peer_id(self) -> Optional[str]:
        return self._peer_id if self._ready else None

    @property
    def power_state(self) -> PowerState:
        return self._power

    def _set_power(self, power: PowerState) -> None:
        if power is self._power:
            return
        self._power = power
        self.power_state_changed.emit()
        if power is PowerState.POWERED_OFF and not self._watching:
            self._watching = True
            self._loop.create_task(self._watch_adapter())

    async def _watch_adapter(self) -> None:
        try:
            while not self._closed:
                await asyncio.sleep(ADAPTER_RETRY_S)
                scanner = BleakScanner()
                try:
                    await scanner.start()
                    await scanner.stop()
                except BleakBluetoothNotAvailableError:
                    continue
                except BleakError as exc:
                    LOG.debug("adapter check: %s", exc)
                    continue
                LOG.info("bluetooth adapter is back")
                self._set_power(PowerState.POWERED_ON)
                return
        finally:
            self._watching = False

    # ---- scanning ----
    def start_scan(self) -> None:
        self._submit(self._scan(), what="scan")

    def stop_scan(self) -> None:
        self._submit(self._stop_scanner(), what="stop scan")

    async def _scan(self) -> None:
        await self._stop_scanner()
        uuids = [self._service_uuid] if self._filter_service else None
        scanner = BleakScanner(detection_callback=self._on_detection, service_uuids=uuids)
        try:
            await scanner.start()
        except BleakBluetoothNotAvailableError as exc:
            LOG.warning("bluetooth not available: %s", exc)
            self._set_power(PowerState.POWERED_OFF)
            return
        self._scanner = scanner
        self._set_power(PowerState.POWERED_ON)
        LOG.info("scanning for %s", self._service_uuid if uuids else "any device")

    async def _stop_scanner(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except BleakError as exc:
            LOG.debug("stop scan: %s", exc)

    def _on_detection(self, device: BLEDevice, adv: AdvertisementData) -> None:
        self._devices[device.address] = device
        name = device.name or adv.local_name or "Unknown"
        self.discovered.emit(Peer(id=device.address, name=name), float(adv.rssi))

    # ---- connection ----
    def connect_peer(self, peer_id: str) -> None:
        self._manual_disconnect = False
        self._submit(self._connect(peer_id), what=f"connect {peer_id}")

    async def _connect(self, peer_id: str) -> None:
        await self._stop_scanner()
        target = self._devices.get(peer_id, peer_id)
        client = BleakClient(target, disconnected_callback=self._on_client_disconnected)
        self._client = client
        try:
            await client.connect()
            await client.start_notify(self._char_uuid, self._on_notify)
        except (BleakError, asyncio.TimeoutError, OSError) as exc:
            if self._client is client:
                self._client = None
            await self._drop(client)
            if not self._manual_disconnect:
                self.failed_to_connect.emit(peer_id, str(exc))
            return

        if self._manual_disconnect or self._client is not client:
            # disconnect_peer() was called while we were connecting.
            await self._drop(client)
            return

        self._peer_id = peer_id
        self._ready = True
        LOG.info("connected to %s", peer_id)
        self.ready.emit()

    async def _drop(self, client: BleakClient) -> None:
        if not client.is_connected:
            return
        try:
            await client.disconnect()
        except BleakError as exc:
            LOG.debug("disconnect: %s", exc)

    def _on_client_disconnected(self, client: BleakClient) -> None:
        current = client is self._client
        was_ready = self._ready and current
        peer = self._peer_id or ""
        if current:
            self._client = None
            self._ready = False
            self._peer_id = None
        if was_ready and not self._manual_disconnect:
            LOG.warning("lost connection to %s", peer)
            self.disconnected.emit(peer, "connection lost")

    def disconnect_peer(self) -> None:
        self._manual_disconnect = True
        self._ready = False
        self._peer_id = None
        self._submit(self._disconnect(), what="disconnect")

    async def _disconnect(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        if client.is_connected:
            try:
                await client.stop_notify(self._char_uuid)
            except BleakError as exc:
                LOG.debug("stop notify: %s", exc)
        await self._drop(client)

    # ---- data ----
    def send(self, data: bytes) -> None:
        client = self._client
        if not self._ready or client is None:
            raise SerialLinkError("BLE link not ready")
        self._submit(self._write(client, bytes(data)), what="write")

    async def _write(self, client: BleakClient, data: bytes) -> None:
        await client.write_gatt_char(self._char_uuid, data, response=False)
        LOG.debug("TX %s", data.hex(" "))

    def _on_notify(self, _sender: Any, data: bytearray) -> None:
        self.message_received.emit(bytes(data).decode("utf-8", errors="ignore"))

    # ---- teardown ----
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._manual_disconnect = True
        self._ready = False
        fut = self._submit(self._shutdown(), what="shutdown")
        try:
            fut.result(timeout=3.0)
        except concurrent.futures.TimeoutError:
            LOG.warning("BLE shutdown timed out")
        except Exception as exc:
            LOG.debug("BLE shutdown: %s", exc)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=2.0)

    async def _shutdown(self) -> None:
        await self._stop_scanner()
        await self._disconnect()


__all__ = ["BleSerialLink"]
