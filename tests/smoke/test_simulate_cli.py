from __future__ import annotations

import argparse
import io
import json
from pathlib import Path

from boxbuddy.cli.simulate import SimulatorApp, build_parser, main
from boxbuddy.config.loader import DEFAULT_CONFIG
from boxbuddy.feedback.status import ConsoleStatusReporter
from boxbuddy.lockbox.types import AuditKind


def _args(*argv: str) -> argparse.Namespace:
    return build_parser().parse_args(list(argv))


def test_simulator_delivers_and_renders(tmp_path: Path) -> None:
    output = io.StringIO()
    app = SimulatorApp(
        DEFAULT_CONFIG,
        _args("--variant", "standard", "--issue", "2", "--note", "DHL", "--deliver", "--hours", "0.5"),
        reporter=ConsoleStatusReporter(output=output),
        start_ms=1_700_000_000_000,
    )

    app.run()

    controller = app.controller
    device = controller.selected_device()
    assert device.name == "Porch Box"
    assert device.status.locked is True
    assert any(entry.kind is AuditKind.DELIVERY for entry in controller.get_audit_log())
    rendered = output.getvalue()
    assert "Porch Box" in rendered
    assert "Completed / expired (1)" in rendered


def test_main_writes_snapshot(tmp_path: Path) -> None:
    snapshot_path = tmp_path / "boxbuddy.json"

    exit_code = main(["--snapshot", str(snapshot_path), "--hours", "0.1", "--issue", "1"])

    assert exit_code == 0
    data = json.loads(snapshot_path.read_text(encoding="utf-8"))
    assert data["devices"][0]["name"] == "Hallway Box"
    assert len(data["codes"]) == 1

    assert main(["--snapshot", str(snapshot_path), "--hours", "2"]) == 0
    data = json.loads(snapshot_path.read_text(encoding="utf-8"))
    assert data["codes"][0]["expired"] is True


def test_main_rejects_broken_snapshot(tmp_path: Path) -> None:
    snapshot_path = tmp_path / "broken.json"
    snapshot_path.write_text("[]", encoding="utf-8")

    assert main(["--snapshot", str(snapshot_path)]) == 2
