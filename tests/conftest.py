"""
Provisioner-iPXE Testing Framework - Global Test Configuration
Pytest fixtures for the state store, seed sessions and boot server
"""

import tempfile
from pathlib import Path

import pytest

from provisioner.config import ProvisionerConfig
from provisioner.services.directives import BootTarget
from provisioner.services.provisioning import ProvisioningController
from provisioner.services.session_builder import SessionBuilder
from provisioner.services.template_resolver import TemplateResolver
from provisioner.state_store import JsonFileStateStore

DEFAULT_USER_DATA = """#cloud-config
autoinstall:
  version: 1
  identity:
    hostname: node-__MAC_ADDRESS__
    username: ubuntu
  late-commands:
    - curtin in-target -- curl -s "http://10.10.1.1/?action=callback&mac=__MAC_ADDRESS__&status=DONE"
"""


@pytest.fixture(scope='function')
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture(scope='function')
def state_file(temp_dir):
    return temp_dir / "state.json"


@pytest.fixture(scope='function')
def config_dir(temp_dir):
    """Template root with a default template holding only user-data."""
    root = temp_dir / "autoinstall_configs"
    default = root / "default"
    default.mkdir(parents=True)
    (default / "user-data").write_text(DEFAULT_USER_DATA, encoding="utf-8")
    return root


@pytest.fixture(scope='function')
def session_dir(temp_dir):
    return temp_dir / "sessions"


@pytest.fixture(scope='function')
def store(state_file):
    return JsonFileStateStore(state_file, lock_timeout=10.0)


@pytest.fixture(scope='function')
def builder(session_dir):
    return SessionBuilder(session_dir)


@pytest.fixture(scope='function')
def boot_target():
    return BootTarget(
        iso_base_url="http://10.10.1.1/provisioning/ubuntu24.04",
        iso_name="ubuntu-24.04.2-live-server-amd64.iso",
        seed_base_url="http://10.10.1.1/sessions",
        kernel_extra_params="modprobe.blacklist=nvme",
    )


@pytest.fixture(scope='function')
def controller(store, config_dir, builder, boot_target):
    return ProvisioningController(
        store=store,
        resolver=TemplateResolver(config_dir),
        builder=builder,
        target=boot_target,
    )


@pytest.fixture(scope='function')
def provisioner_config(state_file, config_dir, session_dir):
    """Provide test configuration."""
    return ProvisionerConfig(
        server_ip="10.10.1.1",
        state_file=str(state_file),
        config_dir=str(config_dir),
        session_dir=str(session_dir),
        lock_timeout=10.0,
        serve_sessions=True,
        metrics_enabled=False,
    )


@pytest.fixture(scope='function')
def sample_macs():
    """Distinct MAC addresses for concurrency tests."""
    return [f"52:54:00:00:00:{i:02x}" for i in range(24)]
