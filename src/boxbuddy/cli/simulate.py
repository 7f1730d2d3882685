"""Deterministic simulator CLI that fast-forwards a lockbox on virtual time."""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Optional, Sequence

from boxbuddy.cli._helpers import add_common_args, configure_logging, load_cli_config
from boxbuddy.config.loader import Config
from boxbuddy.feedback.status import ConsoleStatusReporter, LoggingNotifier
from boxbuddy.feedback.webhook import WebhookNotifier
from boxbuddy.lockbox.clock import ManualClock
from boxbuddy.lockbox.controller import LockboxController
from boxbuddy.lockbox.ledger import MS_PER_HOUR
from boxbuddy.lockbox.snapshot import Snapshot, SnapshotError, load_snapshot, save_snapshot
from boxbuddy.lockbox.state_machine import Notifier
from boxbuddy.lockbox.types import DeviceVariant, LockboxError

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="boxbuddy-sim",
        description="Fast-forward a simulated lockbox through telemetry ticks, code expiry and deliveries.",
    )
    add_common_args(parser)
    parser.add_argument(
        "--snapshot",
        help="JSON snapshot to load (if present) and write back after the run",
    )
    parser.add_argument(
        "--variant",
        choices=[variant.value for variant in DeviceVariant],
        help="Add a new device of this variant and select it",
    )
    parser.add_argument(
        "--hours",
        type=float,
        default=1.0,
        help="Virtual hours to simulate (default: %(default)s)",
    )
    parser.add_argument(
        "--battery",
        type=float,
        help="Override the selected device's battery percentage before the run",
    )
    parser.add_argument(
        "--door-open",
        action="store_true",
        help="Leave the selected device's door open during the run",
    )
    parser.add_argument(
        "--issue",
        type=float,
        metavar="TTL_HOURS",
        help="Issue an access code with this lifetime before the run",
    )
    parser.add_argument(
        "--note",
        default="",
        help="Note attached to the issued code",
    )
    parser.add_argument(
        "--deliver",
        action="store_true",
        help="Redeem the issued code right away (simulated courier drop-off)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    config = load_cli_config(args.config)
    LOGGER.info("Config loaded (version=%s)", config.config_version)

    snapshot_path = _resolve_snapshot_path(args.snapshot, config)
    try:
        snapshot = load_snapshot(snapshot_path) if snapshot_path and snapshot_path.exists() else None
    except SnapshotError as exc:
        LOGGER.error("Failed to load snapshot: %s", exc)
        return 2

    app = SimulatorApp(config, args, snapshot=snapshot)
    try:
        app.run()
    except LockboxError as exc:
        LOGGER.error("Simulation aborted: %s", exc)
        return 1
    if snapshot_path is not None:
        save_snapshot(snapshot_path, app.controller.to_snapshot())
        LOGGER.info("Snapshot saved to %s", snapshot_path)
    return 0


class SimulatorApp:
    """Drives a controller on a ManualClock for the requested virtual span."""

    def __init__(
        self,
        config: Config,
        args: argparse.Namespace,
        *,
        snapshot: Optional[Snapshot] = None,
        reporter: Optional[ConsoleStatusReporter] = None,
        start_ms: Optional[int] = None,
    ) -> None:
        self._config = config
        self._args = args
        self._clock = ManualClock(start_ms if start_ms is not None else int(time.time() * 1000))
        self._reporter = reporter or ConsoleStatusReporter()
        self.controller = LockboxController(
            config,
            clock=self._clock,
            notifier=_build_notifier(config),
            snapshot=snapshot,
            callback=self._reporter.handle_event,
        )

    def run(self) -> None:
        controller = self.controller
        if self._args.variant:
            device = controller.add_device(self._args.variant)
        else:
            device = controller.selected_device()
        if device is None:
            raise SystemExit("No device available; pass --variant to add one")
        if self._args.battery is not None:
            controller.set_battery(device.id, self._args.battery)
        if self._args.door_open:
            controller.set_door_open(device.id, True)

        controller.start()
        if self._args.issue is not None:
            code = controller.issue_code(device.id, self._args.issue, self._args.note)
            LOGGER.info("Issued %s (%s)", code.code, controller.share_text(code.id))
            if self._args.deliver:
                controller.redeem_code(code.id)

        span_ms = int(max(0.0, self._args.hours) * MS_PER_HOUR)
        LOGGER.info("Simulating %.2fh of virtual time on %s", self._args.hours, device.name)
        self._clock.advance(span_ms)
        controller.stop()

        self._reporter.render_devices(controller.devices(), selected_id=device.id)
        self._reporter.render_codes(
            controller.list_active_codes(device.id),
            controller.list_completed_codes(device.id),
        )
        self._reporter.render_audit(controller.get_audit_log())


def _build_notifier(config: Config) -> Notifier:
    if config.webhook.enabled:
        return WebhookNotifier(config.webhook)
    return LoggingNotifier()


def _resolve_snapshot_path(value: Optional[str], config: Config) -> Optional[Path]:
    if value:
        return Path(value)
    return config.snapshot.path


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
