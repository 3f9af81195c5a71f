from __future__ import annotations

import random
import threading
import time
from datetime import datetime, timezone

import pytest

from wsnutils.core.errors import EnumerationError
from wsnutils.core.identity import IdentityResolver
from wsnutils.core.model import DeviceEvent, DeviceHandle, EventKind, MacAddress
from wsnutils.core.observer import DeviceObserver
from wsnutils.core.reference_map import ReferenceMap

USB0 = DeviceHandle(type="telosb", port="/dev/ttyUSB0")
USB1 = DeviceHandle(type="isense", port="/dev/ttyUSB1")


class ScriptedDriver:
    """Enumerator and MAC reader replaying a list of snapshots."""

    def __init__(self, snapshots: list[set[DeviceHandle] | Exception]) -> None:
        self.snapshots = list(snapshots)
        self.mac_reads: list[DeviceHandle] = []

    def list_devices(self) -> set[DeviceHandle]:
        current = self.snapshots.pop(0)
        if isinstance(current, Exception):
            raise current
        return set(current)

    def read_mac(self, device_type, port, configuration=None, reference=None):
        self.mac_reads.append(DeviceHandle(type=device_type, port=port))
        return MacAddress(abs(hash(port)) % (1 << 48), 64)


def _observer(driver: ScriptedDriver, reference_map: ReferenceMap | None = None) -> DeviceObserver:
    fixed = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return DeviceObserver(driver, IdentityResolver(driver, reference_map), clock=lambda: fixed)


def test_connect_then_disconnect_emits_one_event_each() -> None:
    driver = ScriptedDriver([set(), {USB0}, set()])
    observer = _observer(driver)
    received: list[DeviceEvent] = []
    observer.add_listener(received.append)

    assert observer.poll() == []
    observer.poll()
    observer.poll()

    assert [e.kind for e in received] == [EventKind.CONNECTED, EventKind.DISCONNECTED]
    assert all(e.info is not None and e.info.handle == USB0 for e in received)
    assert observer.snapshot == {}


def test_disconnect_carries_info_from_connection_time() -> None:
    mac = MacAddress.from_hex("0004A30000112233")

    class Driver(ScriptedDriver):
        def read_mac(self, device_type, port, configuration=None, reference=None):
            self.mac_reads.append(DeviceHandle(type=device_type, port=port))
            return mac

    driver = Driver([{USB0}, set()])
    observer = _observer(driver, ReferenceMap({"a": mac}))

    connected = observer.poll()
    disconnected = observer.poll()
    assert connected[0].info.reference == "a"
    assert disconnected[0].info == connected[0].info
    assert len(driver.mac_reads) == 1


def test_known_handles_are_not_resolved_again() -> None:
    driver = ScriptedDriver([{USB0}, {USB0}, {USB0, USB1}, {USB0, USB1}])
    observer = _observer(driver)
    for _ in range(4):
        observer.poll()
    assert driver.mac_reads == [USB0, USB1]


def test_enumeration_error_keeps_snapshot() -> None:
    driver = ScriptedDriver([{USB0}, EnumerationError("usb bus busy"), {USB0}, set()])
    observer = _observer(driver)

    observer.poll()
    before = observer.snapshot
    failed = observer.poll()
    assert [e.kind for e in failed] == [EventKind.ENUMERATION_ERROR]
    assert failed[0].info is None
    assert "usb bus busy" in failed[0].error
    assert observer.snapshot == before

    assert observer.poll() == []
    assert [e.kind for e in observer.poll()] == [EventKind.DISCONNECTED]


def test_failing_listener_does_not_stop_others() -> None:
    driver = ScriptedDriver([{USB0}])
    observer = _observer(driver)
    received: list[DeviceEvent] = []

    def broken(event: DeviceEvent) -> None:
        raise RuntimeError("listener bug")

    observer.add_listener(broken)
    observer.add_listener(received.append)

    events = observer.poll()
    assert received == events
    assert USB0 in observer.snapshot


def test_listeners_called_in_registration_order() -> None:
    driver = ScriptedDriver([{USB0}])
    observer = _observer(driver)
    calls: list[str] = []
    observer.add_listener(lambda event: calls.append("first"))
    observer.add_listener(lambda event: calls.append("second"))
    observer.poll()
    assert calls == ["first", "second"]


def test_snapshot_is_a_detached_copy() -> None:
    driver = ScriptedDriver([{USB0}])
    observer = _observer(driver)
    observer.poll()
    snapshot = observer.snapshot
    with pytest.raises(TypeError):
        snapshot[USB1] = None  # type: ignore[index]
    assert USB1 not in observer.snapshot


@pytest.mark.parametrize("seed", range(5))
def test_events_reconstruct_every_snapshot(seed: int) -> None:
    rng = random.Random(seed)
    pool = [DeviceHandle(type="telosb", port=f"/dev/ttyUSB{i}") for i in range(6)]
    snapshots = [set(rng.sample(pool, rng.randint(0, len(pool)))) for _ in range(30)]
    driver = ScriptedDriver(snapshots)
    observer = _observer(driver)

    believed: set[DeviceHandle] = set()
    for expected in snapshots:
        for event in observer.poll():
            if event.kind is EventKind.CONNECTED:
                assert event.info.handle not in believed
                believed.add(event.info.handle)
            else:
                believed.remove(event.info.handle)
        assert believed == expected
        assert set(observer.snapshot) == expected


def test_run_stops_when_event_is_set() -> None:
    stop = threading.Event()
    driver = ScriptedDriver([{USB0}] + [{USB0}] * 1000)
    observer = _observer(driver)
    cycles: list[DeviceEvent] = []

    def on_event(event: DeviceEvent) -> None:
        cycles.append(event)
        stop.set()

    observer.add_listener(on_event)
    worker = threading.Thread(target=observer.run, args=(stop, 0.01))
    worker.start()
    worker.join(5)
    assert not worker.is_alive()
    assert [e.kind for e in cycles] == [EventKind.CONNECTED]


def test_get_events_runs_one_cycle() -> None:
    driver = ScriptedDriver([{USB0, USB1}])
    observer = _observer(driver)
    events = observer.get_events()
    assert [e.info.port for e in events] == ["/dev/ttyUSB0", "/dev/ttyUSB1"]


def test_unexpected_read_error_still_completes_the_cycle() -> None:
    class GarbledDriver(ScriptedDriver):
        def read_mac(self, device_type, port, configuration=None, reference=None):
            self.mac_reads.append(DeviceHandle(type=device_type, port=port))
            if port == USB1.port:
                raise ValueError("garbled MAC response")
            return MacAddress.from_hex("0004A30000112233")

    driver = GarbledDriver([{USB0, USB1}, {USB0, USB1}])
    observer = _observer(driver)

    events = observer.poll()
    assert [(e.kind, e.info.port) for e in events] == [
        (EventKind.CONNECTED, USB0.port),
        (EventKind.CONNECTED, USB1.port),
    ]
    assert events[1].info.mac is None
    assert observer.poll() == []
    assert sorted(h.port for h in driver.mac_reads) == [USB0.port, USB1.port]


def test_concurrent_polls_do_not_overlap() -> None:
    class SlowEnumerator:
        def __init__(self) -> None:
            self.active = 0
            self.max_active = 0
            self.calls = 0
            self._lock = threading.Lock()

        def list_devices(self) -> set[DeviceHandle]:
            with self._lock:
                self.active += 1
                self.calls += 1
                self.max_active = max(self.max_active, self.active)
            time.sleep(0.1)
            with self._lock:
                self.active -= 1
            return set()

    enumerator = SlowEnumerator()
    observer = DeviceObserver(enumerator, IdentityResolver(ScriptedDriver([])))
    workers = [threading.Thread(target=observer.poll) for _ in range(2)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(5)

    assert enumerator.calls == 2
    assert enumerator.max_active == 1
