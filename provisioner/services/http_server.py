"""
HTTP boot server for iPXE scripts, completion callbacks and seed sessions.

The core runs synchronously in a worker thread per request; every boot
request for a valid MAC is answered with a valid iPXE script.
"""

import asyncio
from typing import Optional

import structlog
from quart import Quart, request, Response, jsonify, send_from_directory
from hypercorn.config import Config
from hypercorn.asyncio import serve

from provisioner.config import ProvisionerConfig
from provisioner.errors import ValidationError
from provisioner.mac import is_valid_mac, normalize_mac
from provisioner.services.callback import CallbackHandler
from provisioner.services.directives import BootError, BootTarget
from provisioner.services.ipxe_handler import IPXEHandler
from provisioner.services.provisioning import ProvisioningController
from provisioner.services.session_builder import SEED_ARTIFACTS, SessionBuilder
from provisioner.services.template_resolver import TemplateResolver
from provisioner.state_store import JsonFileStateStore, StateStore
from provisioner.status import STATUS_NEW

logger = structlog.get_logger()


class HTTPBootServer:
    """HTTP server for boot scripts and installer callbacks."""

    def __init__(self, config: ProvisionerConfig, store: Optional[StateStore] = None):
        self.config = config
        self.store = store or JsonFileStateStore(
            config.state_path, lock_timeout=config.lock_timeout
        )
        self.builder = SessionBuilder(
            config.session_path,
            placeholder=config.mac_placeholder,
            strict=config.strict_artifacts,
        )
        self.controller = ProvisioningController(
            store=self.store,
            resolver=TemplateResolver(config.config_path, config.default_template),
            builder=self.builder,
            target=BootTarget(
                iso_base_url=config.get_iso_base_url(),
                iso_name=config.iso_name,
                seed_base_url=config.get_seed_base_url(),
                kernel_extra_params=config.kernel_extra_params,
            ),
        )
        self.callbacks = CallbackHandler(self.store)
        self.ipxe_handler = IPXEHandler()
        self.app = Quart(__name__)

        # Register routes
        self._register_routes()

    async def boot(self, raw_mac: Optional[str]) -> Response:
        """Answer one boot request with an iPXE script."""
        mac = normalize_mac(raw_mac or "")
        if not is_valid_mac(mac):
            logger.warning("boot_request_rejected", mac=raw_mac, client_ip=request.remote_addr)
            return Response("Invalid or missing MAC address.", mimetype="text/plain", status=400)

        logger.info("ipxe_script_request", mac=mac, client_ip=request.remote_addr)

        try:
            directive = await asyncio.to_thread(self.controller.handle_boot, mac)
            return Response(self.ipxe_handler.render(directive), mimetype="text/plain")
        except Exception as e:
            logger.error("ipxe_script_generation_error", mac=mac, error=str(e))
            script = self.ipxe_handler.render(
                BootError(mac=mac, reason=f"Could not prepare installation session for {mac}.")
            )
            return Response(script, mimetype="text/plain", status=500)

    async def callback(self, raw_mac: Optional[str], raw_status: Optional[str]) -> Response:
        """Record the status reported by an installed machine."""
        status = (raw_status or "").strip().upper()
        result = await asyncio.to_thread(self.callbacks.handle_callback, raw_mac, status)

        if result.ok:
            return Response(
                f"OK: Status for {result.mac} updated to {result.status}.",
                mimetype="text/plain",
            )
        if isinstance(result.error, ValidationError):
            return Response(
                "ERROR: MAC and status parameters are required.",
                mimetype="text/plain",
                status=400,
            )
        return Response(
            f"ERROR: Failed to update status for {result.mac}.",
            mimetype="text/plain",
            status=500,
        )

    def _register_routes(self):
        """Register HTTP routes."""

        @self.app.route("/health")
        async def health():
            """Health check endpoint."""
            return jsonify({"status": "healthy", "service": "provisioner-ipxe"})

        @self.app.route("/")
        async def index():
            """Single entry point: ``?action=boot|callback`` (default boot)."""
            action = request.args.get("action", "boot")
            if action == "callback":
                return await self.callback(request.args.get("mac"), request.args.get("status"))
            return await self.boot(request.args.get("mac"))

        @self.app.route("/boot")
        async def boot_script():
            return await self.boot(request.args.get("mac"))

        @self.app.route("/ipxe/<mac>.ipxe")
        async def ipxe_script(mac: str):
            return await self.boot(mac)

        @self.app.route("/callback", methods=["GET", "POST"])
        async def installer_callback():
            """
            Receive completion reports from installed machines.

            Accepts query parameters, or a form/JSON body on POST.
            """
            mac = request.args.get("mac")
            status = request.args.get("status")
            if request.method == "POST":
                data = await request.get_json(silent=True) or await request.form
                mac = mac or data.get("mac")
                status = status or data.get("status")
            return await self.callback(mac, status)

        @self.app.route("/machines")
        async def list_machines():
            """Lifecycle records for every known machine."""
            records = await asyncio.to_thread(self.store.list_records)
            return jsonify({mac: record.to_dict() for mac, record in sorted(records.items())})

        @self.app.route("/machines/<mac>")
        async def get_machine(mac: str):
            mac = normalize_mac(mac)
            if not is_valid_mac(mac):
                return jsonify({"error": "Invalid MAC address"}), 400
            record = await asyncio.to_thread(self.store.get_record, mac)
            if record is None:
                return jsonify({"mac": mac, "status": STATUS_NEW, "updated_at": None})
            return jsonify({"mac": mac, **record.to_dict()})

        if self.config.serve_sessions:

            @self.app.route("/sessions/<mac>/<artifact>")
            async def session_artifact(mac: str, artifact: str):
                """Serve seed artifacts to the installer's nocloud datasource."""
                mac = normalize_mac(mac)
                if not is_valid_mac(mac) or artifact not in SEED_ARTIFACTS:
                    return Response("Not found", status=404)
                logger.info("seed_artifact_request", mac=mac, artifact=artifact)
                return await send_from_directory(
                    self.builder.session_path(mac), artifact, mimetype="text/plain"
                )

    async def start(self):
        """Start HTTP server."""
        config = Config()
        config.bind = [f"{self.config.http_host}:{self.config.http_port}"]
        config.accesslog = "-"
        config.errorlog = "-"

        logger.info("http_server_starting", port=self.config.http_port)

        try:
            await serve(self.app, config)
        except Exception as e:
            logger.error("http_server_error", error=str(e))
            raise

    async def stop(self):
        """Stop HTTP server."""
        logger.info("http_server_stopped")
