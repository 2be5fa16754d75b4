# run_rightsize_server.py
import argparse
import logging
import os
import time
from pathlib import Path

import uvicorn

from rightsize_sim.config import setup_logging
from rightsize_sim.sim.service import SchedulingService
from rightsize_sim.snapshot.collector import collect_into_service
from rightsize_sim.snapshot.io import save_inventory_file

log = logging.getLogger("launcher")


def capture_inventory(context: str | None) -> Path:
    """
    Снимает инвентарь с кластера и сохраняет его в inventories/.
    Возвращает путь к файлу.
    """
    log.info("Capturing cluster inventory on startup...")
    service = collect_into_service(SchedulingService(), context)

    root_dir = Path(__file__).resolve().parent
    inventories_dir = root_dir / "inventories"
    inventories_dir.mkdir(parents=True, exist_ok=True)

    file_path = inventories_dir / f"k8s-{int(time.time())}.json"
    save_inventory_file(service, file_path)
    log.info(f"Inventory saved to: {file_path}")
    return file_path


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rightsize Sim Server Launcher")

    parser.add_argument(
        "--capture",
        action="store_true",
        help="Capture the live cluster inventory on startup and serve it",
    )
    parser.add_argument("--context", default=None, help="kubeconfig context for --capture")
    parser.add_argument("--inventory", default=None, help="JSON inventory file to load on startup")

    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")

    args = parser.parse_args()
    setup_logging()

    inventory = args.inventory
    if args.capture:
        inventory = str(capture_inventory(args.context))

    # сервер читает путь из окружения при старте (и после reload)
    if inventory:
        os.environ["INVENTORY_PATH"] = inventory

    uvicorn.run(
        "rightsize_sim.api.server:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
    )
