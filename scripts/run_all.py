import os
import subprocess
import sys
import time

from libs.config import get_setting

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

HEARTBEAT_S = float(get_setting("relay.heartbeat_interval_s", 15))

SERVICES = [
    ("relay_service", "services.relay_service.app:app", int(get_setting("relay.port", os.getenv("RELAY_SERVICE_PORT", "8080")))),
]


def main():
    procs = []
    env = os.environ.copy()
    # services/ and libs/ must be importable from the child interpreter
    env["PYTHONPATH"] = ROOT + (os.pathsep + env["PYTHONPATH"] if env.get("PYTHONPATH") else "")

    for name, app, port in SERVICES:
        cmd = [
            sys.executable, "-m", "uvicorn", app,
            "--host", str(get_setting("relay.host", "0.0.0.0")),
            "--port", str(port),
            # transport-level ping/pong on the same cadence as the relay heartbeat
            "--ws-ping-interval", str(HEARTBEAT_S),
            "--ws-ping-timeout", str(HEARTBEAT_S),
        ]
        print(f"Starting {name} on :{port} ...")
        procs.append(subprocess.Popen(cmd, cwd=ROOT, env=env))

    print("\nAll services started. Press Ctrl+C to stop.\n")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping...")
        for p in procs:
            p.terminate()
        for p in procs:
            try:
                p.wait(timeout=10)
            except subprocess.TimeoutExpired:
                p.kill()


if __name__ == "__main__":
    main()
