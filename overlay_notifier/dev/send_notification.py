from __future__ import annotations

import logging
import sys
import time
from typing import List, Optional

from overlay_notifier.bootstrap import build_app_system


def _arg(argv: List[str], name: str, default: Optional[str] = None) -> Optional[str]:
    if name in argv:
        i = argv.index(name)
        if i + 1 < len(argv):
            return argv[i + 1]
    return default


def main(argv: Optional[List[str]] = None) -> int:
    """
    Send one notification through a configured device and wait for delivery.

    Usage:
        python -m overlay_notifier.dev.send_notification --config config.yaml \\
            --title "Front door" --body "Motion detected" [--device NAME] [--image URL]
    """
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    wiring = build_app_system(config_path=_arg(argv, "--config"))

    device = _arg(argv, "--device") or next(iter(wiring.notifiers))
    notifier = wiring.notifiers.get(device)
    if notifier is None:
        print(f"Unknown device {device!r}; configured: {', '.join(wiring.notifiers)}")
        wiring.stop()
        return 2

    notifier.send_notification(
        _arg(argv, "--title", "Test notification") or "",
        {"body": _arg(argv, "--body", "Sent from overlay-notifier")},
        media=_arg(argv, "--image"),
    )

    # one tick is enough for the first item; allow for the request timeout
    deadline = time.monotonic() + notifier.config.request_timeout_s + 2 * notifier.config.tick_interval_s
    while notifier.queue_depth and time.monotonic() < deadline:
        time.sleep(0.1)

    wiring.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
