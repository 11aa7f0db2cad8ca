import asyncio
import json
import os
import signal
import subprocess
import sys
import time
from typing import Dict

import requests
from websockets.asyncio.client import connect

from libs.config import get_setting

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PORT = int(get_setting("relay.port", 8080))
HTTP = f"http://127.0.0.1:{PORT}"
WS = f"ws://127.0.0.1:{PORT}{get_setting('relay.ws_path', '/ws')}"


def _wait_health(url: str, timeout_s: int = 15) -> None:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        try:
            r = requests.get(url, timeout=1)
            if r.status_code == 200:
                return
        except requests.RequestException:
            pass
        time.sleep(0.3)
    raise RuntimeError(f"service not ready: {url}")


def _envelope(source: str, typ: str, data: Dict) -> str:
    return json.dumps({"type": typ, "source": source, "ts": int(time.time() * 1000), "data": data})


async def _recv_until(ws, typ: str, timeout_s: float = 3.0) -> Dict:
    while True:
        msg = json.loads(await asyncio.wait_for(ws.recv(), timeout_s))
        if msg.get("type") == typ:
            return msg


async def _drive(route_id: str) -> None:
    async with connect(WS) as vehicle, connect(WS) as dash:
        await vehicle.send(_envelope("esp32", "hello", {"role": "esp32", "deviceId": "demo-car"}))
        await dash.send(_envelope("ui", "hello", {"role": "dashboard"}))
        print("status:", (await _recv_until(dash, "status"))["data"])

        await dash.send(_envelope("ui", "autoDrive", {
            "routeId": route_id,
            "speed": 160,
            "path": [{"x": 0, "y": 0}, {"x": 3, "y": 4, "heading": 90}],
        }))
        print("vehicle got:", (await _recv_until(vehicle, "autoDrive"))["data"])

        await vehicle.send(_envelope("esp32", "telemetry", {
            "speedLeft": 160, "speedRight": 158, "posX": 1.5, "posY": 2.0, "heading": 88.0,
            "gyro": {"x": 0.1, "y": 0.0, "z": 1.2}, "accel": {"x": 0.0, "y": 0.1, "z": 9.8},
        }))
        print("dashboard got telemetry:", (await _recv_until(dash, "telemetry"))["data"])

        await vehicle.send(_envelope("esp32", "pothole", {"severity": "high", "value": 2.4, "posX": 2.0, "posY": 2.5}))
        await _recv_until(dash, "pothole")
        await vehicle.send(_envelope("esp32", "routeComplete", {}))
        print("route complete:", (await _recv_until(dash, "routeComplete"))["data"])


def main() -> None:
    env = os.environ.copy()
    env["PYTHONPATH"] = ROOT + (os.pathsep + env["PYTHONPATH"] if env.get("PYTHONPATH") else "")
    runner = subprocess.Popen([sys.executable, "scripts/run_all.py"], cwd=ROOT, env=env)

    try:
        _wait_health(f"{HTTP}/health")

        r1 = requests.post(f"{HTTP}/api/routes", json={
            "name": "demo loop",
            "description": "square around the lab",
            "path": [{"x": 0, "y": 0}, {"x": 3, "y": 4}],
        }, timeout=5)
        route = r1.json()
        print("route created status=", r1.status_code, route)

        asyncio.run(_drive(route["id"]))
        time.sleep(0.5)

        r2 = requests.get(f"{HTTP}/api/routes/{route['id']}/stats", timeout=5)
        print("route stats:", json.dumps(r2.json(), ensure_ascii=False))
        r3 = requests.get(f"{HTTP}/api/status", timeout=5)
        print("relay status:", json.dumps(r3.json(), ensure_ascii=False))
    finally:
        try:
            runner.send_signal(signal.SIGINT)
            runner.wait(timeout=8)
        except subprocess.TimeoutExpired:
            runner.terminate()
            runner.wait(timeout=5)


if __name__ == "__main__":
    main()
