from __future__ import annotations

import pytest

from services.relay_service.core.hub import RelayHub
from services.relay_service.core.liveness import LivenessSupervisor

from conftest import FakeClock, join, wire

INTERVAL = 15.0


@pytest.mark.asyncio
@pytest.mark.parametrize("silent_at", [0.5, 7.0, 14.5])
async def test_silent_peer_is_dropped_within_two_intervals(hub: RelayHub, silent_at: float) -> None:
    clock = FakeClock(0.0)
    supervisor = LivenessSupervisor(hub, interval_s=INTERVAL, clock=clock)
    car, car_sock = await join(hub, "esp32", clock=clock)

    assert await supervisor.sweep() == []
    assert len(car_sock.of_type("ping")) == 1

    # answers the first probe, then goes quiet
    clock.t = silent_at
    await hub.handle_raw(car, wire("pong", {}, source="esp32"))

    clock.t = INTERVAL
    assert await supervisor.sweep() == []
    assert car in hub.connections

    clock.t = 2 * INTERVAL
    assert await supervisor.sweep() == [car]
    assert INTERVAL <= clock.t - silent_at < 2 * INTERVAL
    assert car not in hub.connections
    assert hub.registry.count("esp32") == 0
    assert car_sock.closed_with == 1001


@pytest.mark.asyncio
async def test_responsive_peer_survives_many_ticks(hub: RelayHub) -> None:
    clock = FakeClock(0.0)
    supervisor = LivenessSupervisor(hub, interval_s=INTERVAL, clock=clock)
    dash, dash_sock = await join(hub, "dashboard", clock=clock)

    for tick in range(6):
        clock.t = tick * INTERVAL
        assert await supervisor.sweep() == []
        clock.t += 1.0
        await hub.handle_raw(dash, wire("pong", {}))

    assert dash in hub.connections
    assert len(dash_sock.of_type("ping")) == 6
    assert supervisor.terminated == 0


@pytest.mark.asyncio
async def test_unanswered_probe_gets_one_tick_of_grace(hub: RelayHub) -> None:
    clock = FakeClock(0.0)
    supervisor = LivenessSupervisor(hub, interval_s=INTERVAL, clock=clock)
    car, _ = await join(hub, "esp32", clock=clock)

    await supervisor.sweep()
    clock.t = 1.0
    await hub.handle_raw(car, wire("pong", {}, source="esp32"))

    clock.t = INTERVAL
    assert await supervisor.sweep() == []
    assert not car.alive
    assert car in hub.connections

    clock.t = 2 * INTERVAL
    assert await supervisor.sweep() == [car]
    assert supervisor.terminated == 1


@pytest.mark.asyncio
async def test_listen_only_dashboard_survives_many_ticks(hub: RelayHub) -> None:
    clock = FakeClock(0.0)
    supervisor = LivenessSupervisor(hub, interval_s=INTERVAL, clock=clock)
    dash, dash_sock = await join(hub, "dashboard", clock=clock)

    for tick in range(10):
        clock.t = tick * INTERVAL
        assert await supervisor.sweep() == []

    assert dash in hub.connections
    assert dash.alive
    assert not dash.answers_probes
    assert len(dash_sock.of_type("ping")) == 10
    assert dash_sock.closed_with is None
    assert supervisor.terminated == 0


@pytest.mark.asyncio
async def test_closed_socket_is_reaped_on_next_tick(hub: RelayHub) -> None:
    clock = FakeClock(0.0)
    supervisor = LivenessSupervisor(hub, interval_s=INTERVAL, clock=clock)
    dash, _ = await join(hub, "dashboard", clock=clock)
    car, car_sock = await join(hub, "esp32", clock=clock)

    car_sock.fail_send = True
    assert await supervisor.sweep() == []
    assert not car.is_open

    clock.t = INTERVAL
    assert await supervisor.sweep() == [car]
    assert hub.connections == [dash]
    assert hub.registry.count("esp32") == 0


@pytest.mark.asyncio
async def test_any_inbound_frame_counts_as_life(hub: RelayHub) -> None:
    clock = FakeClock(0.0)
    supervisor = LivenessSupervisor(hub, interval_s=INTERVAL, clock=clock)
    car, _ = await join(hub, "esp32", clock=clock)

    await supervisor.sweep()
    clock.t = 1.0
    await hub.handle_raw(car, wire("pong", {}, source="esp32"))

    clock.t = INTERVAL
    await supervisor.sweep()
    assert not car.alive
    clock.t = INTERVAL + 3.0
    await hub.handle_raw(car, "garbage")
    assert car.alive

    clock.t = 2 * INTERVAL
    assert await supervisor.sweep() == []


@pytest.mark.asyncio
async def test_eviction_pushes_status_to_dashboards(hub: RelayHub) -> None:
    clock = FakeClock(0.0)
    supervisor = LivenessSupervisor(hub, interval_s=INTERVAL, clock=clock)
    dash, dash_sock = await join(hub, "dashboard", clock=clock)
    car, _ = await join(hub, "esp32", clock=clock)

    await supervisor.sweep()
    clock.t = 1.0
    await hub.handle_raw(car, wire("pong", {}, source="esp32"))
    clock.t = INTERVAL
    assert await supervisor.sweep() == []
    clock.t = 2 * INTERVAL
    assert await supervisor.sweep() == [car]

    assert dash in hub.connections
    assert dash_sock.of_type("status")[-1]["data"] == {"esp32Connected": False, "reactClients": 1}
