# tests/fixtures/fake_server.py: Stand-in for a managed server.
# Binds the port from $HTTP_SERVER_PORT, publishes its pid to
# $WATCHDOG_SERVER_PID_FILE and idles until SIGTERM. FAKE_SERVER_MODE selects
# misbehaviour, several may be combined with commas: 'crash' exits at once,
# 'silent' never publishes a pid, 'nolisten' publishes a pid without binding
# and 'stubborn' ignores SIGTERM.

import os
import signal
import socket
import sys
import time
from pathlib import Path


def main():
    port = int(os.environ["HTTP_SERVER_PORT"])
    pid_file = Path(os.environ["WATCHDOG_SERVER_PID_FILE"])
    modes = set(os.environ.get("FAKE_SERVER_MODE", "serve").split(","))

    if "crash" in modes:
        print("fake server crashing", flush=True)
        sys.exit(3)

    if "stubborn" in modes:
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
    else:
        signal.signal(signal.SIGTERM, lambda *_: sys.exit(0))

    sock = None
    if "nolisten" not in modes:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("127.0.0.1", port))
        sock.listen(16)

    print(f"fake server listening on {port}", flush=True)

    if "silent" not in modes:
        tmp = pid_file.with_name(pid_file.name + ".tmp")
        tmp.write_text(str(os.getpid()))
        os.replace(tmp, pid_file)

    if sock is not None:
        sock.settimeout(0.05)

    try:
        while True:
            if sock is None:
                time.sleep(0.05)
                continue
            try:
                conn, _ = sock.accept()
            except socket.timeout:
                continue
            conn.close()
    finally:
        if sock is not None:
            sock.close()


if __name__ == "__main__":
    main()
