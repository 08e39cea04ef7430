"""Unit tests for boot request orchestration.

Tests:
- Local boot for finished machines without side effects
- Install flow for new, installing and unknown statuses
- Idempotent session rebuilds across template changes
- Degraded directives for configuration and resource failures
- Unreadable template tree reported as an error directive
- Persistence inconsistency after a successful build
"""

from pathlib import Path

from provisioner.services.directives import BootError, Install, LocalBoot
from provisioner.services.provisioning import ProvisioningController
from provisioner.services.session_builder import EMPTY_VENDOR_DATA, SessionBuilder
from provisioner.services.template_resolver import TemplateResolver
from provisioner.state_store import JsonFileStateStore

TEST_MAC = "00:1a:2b:3c:4d:5e"


class FailingWriteStore(JsonFileStateStore):
    """State store whose writes always fail."""

    def __init__(self, path):
        super().__init__(path)
        self.write_attempts = []

    def set_status(self, mac, status):
        self.write_attempts.append((mac, status))
        return False


class TestDoneMachines:
    """Tests for machines that finished installing."""

    def test_done_yields_local_boot(self, controller, store):
        """Test DONE machines boot from local disk."""
        store.set_status(TEST_MAC, "DONE")

        directive = controller.handle_boot(TEST_MAC)

        assert directive == LocalBoot(mac=TEST_MAC)
        assert directive.kind == "local"

    def test_done_has_no_side_effects(self, controller, store, state_file, session_dir):
        """Test DONE never touches the session directory or state."""
        store.set_status(TEST_MAC, "DONE")
        before = state_file.read_bytes()

        for _ in range(3):
            assert isinstance(controller.handle_boot(TEST_MAC), LocalBoot)

        assert state_file.read_bytes() == before
        assert not (session_dir / TEST_MAC).exists()

    def test_done_keeps_existing_session(self, controller, store, session_dir):
        """Test an old session is left alone once DONE."""
        controller.handle_boot(TEST_MAC)
        marker = session_dir / TEST_MAC / "user-data"
        content = marker.read_bytes()
        store.set_status(TEST_MAC, "DONE")

        controller.handle_boot(TEST_MAC)

        assert marker.read_bytes() == content

    def test_lowercase_done_is_not_done(self, controller, store):
        """Test only the exact DONE token short-circuits."""
        store.set_status(TEST_MAC, "done")
        assert isinstance(controller.handle_boot(TEST_MAC), Install)


class TestInstallFlow:
    """Tests for machines that still need installing."""

    def test_new_machine_gets_install(self, controller, store, session_dir):
        """Test a never-seen MAC is prepared and marked INSTALLING."""
        directive = controller.handle_boot(TEST_MAC)

        assert isinstance(directive, Install)
        assert store.get_status(TEST_MAC) == "INSTALLING"

        session = session_dir / TEST_MAC
        assert sorted(p.name for p in session.iterdir()) == ["user-data", "vendor-data"]
        user_data = (session / "user-data").read_text(encoding="utf-8")
        assert "__MAC_ADDRESS__" not in user_data
        assert TEST_MAC in user_data
        assert (session / "vendor-data").read_text(encoding="utf-8") == EMPTY_VENDOR_DATA

    def test_install_directive_points_at_session(self, controller):
        """Test the directive references the fresh session and media."""
        directive = controller.handle_boot(TEST_MAC)

        assert directive.seed_url == f"http://10.10.1.1/sessions/{TEST_MAC}/"
        assert directive.kernel_url == "http://10.10.1.1/provisioning/ubuntu24.04/casper/vmlinuz"
        assert directive.initrd_url == "http://10.10.1.1/provisioning/ubuntu24.04/casper/initrd"
        assert directive.kernel_params == (
            "modprobe.blacklist=nvme autoinstall ip=dhcp "
            "url=http://10.10.1.1/provisioning/ubuntu24.04/ubuntu-24.04.2-live-server-amd64.iso "
            f"ds=nocloud;seedfrom=http://10.10.1.1/sessions/{TEST_MAC}/"
        )

    def test_upper_case_mac_is_normalized(self, controller, store, session_dir):
        """Test the session and record use the lower-case MAC."""
        directive = controller.handle_boot(TEST_MAC.upper())

        assert directive.mac == TEST_MAC
        assert (session_dir / TEST_MAC).is_dir()
        assert store.get_status(TEST_MAC) == "INSTALLING"

    def test_installing_machine_is_rebuilt(self, controller, store):
        """Test a re-booting INSTALLING machine gets a fresh session."""
        store.set_status(TEST_MAC, "INSTALLING")
        assert isinstance(controller.handle_boot(TEST_MAC), Install)
        assert store.get_status(TEST_MAC) == "INSTALLING"

    def test_other_status_is_treated_as_not_done(self, controller, store):
        """Test arbitrary callback tokens lead to a reinstall."""
        store.set_status(TEST_MAC, "FAILED")

        assert isinstance(controller.handle_boot(TEST_MAC), Install)
        assert store.get_status(TEST_MAC) == "INSTALLING"

    def test_rebuild_drops_stale_artifacts(self, controller, config_dir, session_dir):
        """Test a second build only reflects the current template."""
        specific = config_dir / TEST_MAC
        specific.mkdir()
        (specific / "user-data").write_text("#cloud-config\n# host __MAC_ADDRESS__\n", encoding="utf-8")
        (specific / "meta-data").write_text("instance-id: node-1\n", encoding="utf-8")
        (specific / "vendor-data").write_text("#cloud-config\npackages: [vim]\n", encoding="utf-8")

        controller.handle_boot(TEST_MAC)
        session = session_dir / TEST_MAC
        assert sorted(p.name for p in session.iterdir()) == ["meta-data", "user-data", "vendor-data"]

        for child in specific.iterdir():
            child.unlink()
        specific.rmdir()

        controller.handle_boot(TEST_MAC)
        assert sorted(p.name for p in session.iterdir()) == ["user-data", "vendor-data"]
        assert (session / "vendor-data").read_text(encoding="utf-8") == EMPTY_VENDOR_DATA

    def test_repeated_boots_are_idempotent(self, controller, session_dir):
        """Test the same template yields the same session every time."""
        controller.handle_boot(TEST_MAC)
        first = {p.name: p.read_bytes() for p in (session_dir / TEST_MAC).iterdir()}

        controller.handle_boot(TEST_MAC)
        second = {p.name: p.read_bytes() for p in (session_dir / TEST_MAC).iterdir()}

        assert first == second


class TestFailures:
    """Tests for degraded boot directives."""

    def test_missing_templates_yield_error(self, store, temp_dir, builder, boot_target):
        """Test no template source gives an error directive and no state change."""
        controller = ProvisioningController(
            store=store,
            resolver=TemplateResolver(temp_dir / "nowhere"),
            builder=builder,
            target=boot_target,
        )

        directive = controller.handle_boot(TEST_MAC)

        assert isinstance(directive, BootError)
        assert directive.kind == "error"
        assert TEST_MAC in directive.reason
        assert store.get_record(TEST_MAC) is None

    def test_unreadable_template_tree_yields_error(self, controller, store, config_dir, monkeypatch):
        """Test a permission failure while resolving gives an error directive."""
        original = Path.is_dir

        def denied(self):
            if config_dir in self.parents:
                raise PermissionError(13, "Permission denied", str(self))
            return original(self)

        monkeypatch.setattr(Path, "is_dir", denied)

        directive = controller.handle_boot(TEST_MAC)

        assert isinstance(directive, BootError)
        assert TEST_MAC in directive.reason
        assert store.get_record(TEST_MAC) is None

    def test_build_failure_yields_error(self, store, config_dir, temp_dir, boot_target):
        """Test an uncreatable session directory gives an error directive."""
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        controller = ProvisioningController(
            store=store,
            resolver=TemplateResolver(config_dir),
            builder=SessionBuilder(blocker / "sessions"),
            target=boot_target,
        )

        directive = controller.handle_boot(TEST_MAC)

        assert isinstance(directive, BootError)
        assert store.get_record(TEST_MAC) is None

    def test_build_failure_keeps_previous_status(self, store, config_dir, temp_dir, boot_target):
        """Test a failed build does not overwrite the stored status."""
        store.set_status(TEST_MAC, "FAILED")
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        controller = ProvisioningController(
            store=store,
            resolver=TemplateResolver(config_dir),
            builder=SessionBuilder(blocker / "sessions"),
            target=boot_target,
        )

        controller.handle_boot(TEST_MAC)

        assert store.get_status(TEST_MAC) == "FAILED"

    def test_state_write_failure_still_installs(self, state_file, config_dir, builder, boot_target, session_dir):
        """Test a failed INSTALLING write does not block the install."""
        store = FailingWriteStore(state_file)
        controller = ProvisioningController(
            store=store,
            resolver=TemplateResolver(config_dir),
            builder=builder,
            target=boot_target,
        )

        directive = controller.handle_boot(TEST_MAC)

        assert isinstance(directive, Install)
        assert store.write_attempts == [(TEST_MAC, "INSTALLING")]
        assert (session_dir / TEST_MAC / "user-data").exists()

    def test_controller_only_writes_installing(self, state_file, config_dir, builder, boot_target):
        """Test the boot path never writes any other status."""
        store = FailingWriteStore(state_file)
        controller = ProvisioningController(
            store=store,
            resolver=TemplateResolver(config_dir),
            builder=builder,
            target=boot_target,
        )

        for _ in range(3):
            controller.handle_boot(TEST_MAC)

        assert {status for _, status in store.write_attempts} == {"INSTALLING"}
