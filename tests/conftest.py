"""Pytest configuration and fixtures for tfharness tests."""

import json
import os
import signal
import sys
from pathlib import Path
from typing import Any, Callable, Generator

import pytest

from tfharness.core.config import HarnessConfig

pytest_plugins = ["pytester"]

FAKE_TERRAFORM_SOURCE = '''
import json
import os
import sys
import time
from pathlib import Path

args = sys.argv[1:]
workdir = Path.cwd()
if args and args[0].startswith("-chdir="):
    workdir = Path(args[0].split("=", 1)[1])
    args = args[1:]
command = args[0] if args else ""

log_path = os.environ.get("FAKE_TF_LOG")
if log_path:
    with open(log_path, "a") as log:
        log.write(json.dumps({
            "argv": sys.argv[1:],
            "command": command,
            "cwd": os.getcwd(),
            "cache": os.environ.get("TF_PLUGIN_CACHE_DIR"),
        }) + "\\n")

print(f"fake terraform {command}", flush=True)

delay = os.environ.get("FAKE_TF_SLEEP_" + command.upper())
if delay:
    time.sleep(float(delay))

if os.environ.get("FAKE_TF_FAIL") == command:
    print(f"Error: {command} failed", file=sys.stderr, flush=True)
    sys.exit(1)

state_path = workdir / "terraform.tfstate"
marker = workdir / "provisioned.txt"


def write_state(resources, serial):
    state_path.write_text(json.dumps({
        "version": 4,
        "terraform_version": "0.0.0-fake",
        "serial": serial,
        "resources": resources,
        "outputs": {},
    }))


if command == "init":
    if not (workdir / "plan.tf").exists():
        print("Error: No configuration files", file=sys.stderr)
        sys.exit(1)
    print("Terraform has been successfully initialized!")
elif command == "apply":
    if os.environ.get("FAKE_TF_MALFORMED_STATE"):
        state_path.write_text("{not json")
    else:
        marker.write_text("provisioned")
        write_state([{
            "mode": "managed",
            "type": "local_file",
            "name": "example",
            "instances": [{"attributes": {"filename": str(marker), "content": "provisioned"}}],
        }], 1)
    print("Apply complete! Resources: 1 added, 0 changed, 0 destroyed.")
elif command == "refresh":
    current = json.loads(state_path.read_text())
    write_state(current["resources"], current["serial"] + 1)
elif command == "destroy":
    if marker.exists():
        marker.unlink()
    serial = json.loads(state_path.read_text())["serial"] + 1 if state_path.exists() else 1
    write_state([], serial)
    print("Destroy complete! Resources: 1 destroyed.")
else:
    print(f"Error: unknown command {command}", file=sys.stderr)
    sys.exit(1)
'''

PLAN_SOURCE = '''resource "local_file" "example" {
  filename = "${path.module}/provisioned.txt"
  content  = "provisioned"
}
'''


@pytest.fixture(autouse=True)
def clean_harness_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove harness environment overrides inherited from the developer shell."""
    for var in (
        "TFTEST_TERRAFORM",
        "NO_CLEANUP",
        "TFHARNESS_CONFIG",
        "TFHARNESS_DEBUG",
        "FAKE_TF_FAIL",
        "FAKE_TF_MALFORMED_STATE",
        "FAKE_TF_SLEEP_APPLY",
        "FAKE_TF_SLEEP_DESTROY",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def fake_terraform(tmp_path: Path) -> Path:
    """Write an executable stand-in for terraform.

    Returns
    -------
    Path
        Path to the fake executable
    """
    script = tmp_path / "bin" / "terraform"
    script.parent.mkdir()
    script.write_text(f"#!{sys.executable}\n{FAKE_TERRAFORM_SOURCE}")
    script.chmod(0o755)
    return script


@pytest.fixture
def terraform_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Path the fake terraform appends one JSON line per invocation to."""
    log_path = tmp_path / "terraform-invocations.jsonl"
    monkeypatch.setenv("FAKE_TF_LOG", str(log_path))
    return log_path


@pytest.fixture
def invocations(terraform_log: Path) -> Callable[[], list[dict[str, Any]]]:
    """Read back the fake terraform invocation log."""

    def _read() -> list[dict[str, Any]]:
        if not terraform_log.exists():
            return []
        return [json.loads(line) for line in terraform_log.read_text().splitlines()]

    return _read


@pytest.fixture
def harness_config(fake_terraform: Path, tmp_path: Path) -> HarnessConfig:
    """HarnessConfig pointing at the fake terraform and a private plugin cache."""
    return HarnessConfig(
        terraform_path=str(fake_terraform),
        plugin_cache_dir=tmp_path / "plugin_cache",
        cancel_grace_seconds=5.0,
    )


@pytest.fixture
def plan_file(tmp_path: Path) -> Path:
    """A plan definition provisioning a single local file."""
    path = tmp_path / "local-file.tf"
    path.write_text(PLAN_SOURCE)
    return path


@pytest.fixture
def workdir_factory(tmp_path: Path) -> Callable[[], Path]:
    """Create numbered working directories under tmp_path."""
    created: list[Path] = []

    def _make() -> Path:
        path = tmp_path / f"workdir-{len(created)}"
        path.mkdir()
        created.append(path)
        return path

    return _make


@pytest.fixture
def restore_signal_handlers() -> Generator[None, None, None]:
    """Restore SIGINT/SIGTERM handlers changed by a test."""
    saved = {signum: signal.getsignal(signum) for signum in (signal.SIGINT, signal.SIGTERM)}

    yield

    for signum, handler in saved.items():
        signal.signal(signum, handler)


@pytest.fixture
def terraform_on_path(fake_terraform: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Expose the fake terraform as the only terraform on PATH."""
    monkeypatch.setenv("PATH", f"{fake_terraform.parent}{os.pathsep}{os.environ.get('PATH', '')}")
    return fake_terraform
