from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from overlay_notifier.core.config.yaml_config import AppConfig, DeviceConfig, load_app_config
from overlay_notifier.notification.http_deliverer import HttpDeliverer
from overlay_notifier.services.dispatcher import OverlayNotifier


@dataclass(frozen=True)
class AppWiring:
    """Everything a host needs: the parsed config and one dispatcher per device."""
    config: AppConfig
    notifiers: Dict[str, OverlayNotifier]

    def start(self) -> None:
        for notifier in self.notifiers.values():
            notifier.start()

    def stop(self) -> None:
        for notifier in self.notifiers.values():
            notifier.stop()


def build_notifier(device: DeviceConfig) -> OverlayNotifier:
    return OverlayNotifier(
        config=device.notifier,
        deliverer=HttpDeliverer(),
        name=device.name,
    )


def build_app_system(config_path: Optional[str] = None, start: bool = True) -> AppWiring:
    cfg = load_app_config(config_path)

    # Dispatchers share nothing: separate queue, loop and settings per device.
    notifiers = {device.name: build_notifier(device) for device in cfg.devices}

    wiring = AppWiring(config=cfg, notifiers=notifiers)
    if start:
        wiring.start()
    return wiring
