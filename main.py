"""
Wi-Fi positioning server main program.

Receives access-point scans from devices, estimates device positions from
the known-AP registry and answers each request. Every estimation is written
to the audit log after the engine returns.
"""

import sys
import time
import signal
import logging
import argparse
from typing import Optional, Dict

import config
from network_server import RequestServer
from wps_core.io import CsvAuditLog, build_estimation_records, build_scan_records
from wps_core.localization import (
    DegenerateGeometry,
    EstimationConfig,
    EstimationError,
    EstimationStrategy,
    InsufficientKnownAnchors,
    InvalidInput,
    KnownAnchorRegistry,
    MultilateratorConfig,
    NonFiniteSolution,
    SignalModelConfig,
    create_virtual_registry,
)
from wps_core.metrics import get_metrics
from wps_core.proto import parse_observations

logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)

# Status codes per outcome (HTTP semantics)
STATUS_OK = 200
STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_UNPROCESSABLE = 422
STATUS_SERVER_ERROR = 500


def build_estimation_config(
    signal_cfg: Optional[Dict] = None,
    estimation_cfg: Optional[Dict] = None,
) -> EstimationConfig:
    """Translate the config dicts into an EstimationConfig."""
    signal_cfg = signal_cfg or config.SIGNAL_MODEL_CONFIG
    estimation_cfg = estimation_cfg or config.ESTIMATION_CONFIG

    return EstimationConfig(
        signal_config=SignalModelConfig(
            reference_power_dbm=signal_cfg["reference_power_dbm"],
            path_loss_exponent=signal_cfg["path_loss_exponent"],
        ),
        solver_config=MultilateratorConfig(
            min_anchors=estimation_cfg["min_anchors"],
            accuracy_m=estimation_cfg["trilateration_accuracy_m"],
            degeneracy_tolerance=estimation_cfg["degeneracy_tolerance"],
        ),
        single_anchor_accuracy_m=estimation_cfg["single_anchor_accuracy_m"],
    )


def load_registry(registry_path: Optional[str] = None, virtual: bool = False) -> KnownAnchorRegistry:
    """Load the registry from a JSON file, the virtual layout, or config."""
    if virtual:
        registry = create_virtual_registry(config.VIRTUAL_REGISTRY_CONFIG)
        logger.info(f"Using {len(registry)} virtual anchors")
        return registry

    if registry_path:
        return KnownAnchorRegistry.from_json_file(registry_path)

    registry = KnownAnchorRegistry.from_dict(config.KNOWN_AP_REGISTRY)
    logger.info(f"Using {len(registry)} known anchors from config")
    return registry


def _response(status: int, body: Dict) -> Dict:
    return {"status": status, "body": body}


class WifiLocationServer:
    """Wi-Fi positioning server."""

    def __init__(
        self,
        registry: KnownAnchorRegistry,
        estimation_config: Optional[EstimationConfig] = None,
        audit_log: Optional[CsvAuditLog] = None,
        host: str = config.SERVER_CONFIG["host"],
        port: int = config.SERVER_CONFIG["port"],
    ):
        """
        Args:
            registry: Known anchors, loaded once by the caller
            estimation_config: Engine configuration (defaults if None)
            audit_log: Audit log writer; None disables audit logging
            host: Listen address
            port: Listen port
        """
        self.running = False
        self.registry = registry
        self.strategy = EstimationStrategy(registry, estimation_config)
        self.audit_log = audit_log
        self.metrics = get_metrics()

        self.request_server = RequestServer(
            host=host,
            port=port,
            request_handler=self.handle_request,
            backlog=config.SERVER_CONFIG["max_connections"],
            max_message_bytes=config.SERVER_CONFIG["max_message_bytes"],
        )

        self._handlers = {
            "get_location": self._handle_get_location,
            "save_scan": self._handle_save_scan,
            "health": self._handle_health,
        }

        logger.info("Wi-Fi positioning server initialized")

    def handle_request(self, message: Dict) -> Dict:
        """
        Answer one request.

        Args:
            message: {"type": ..., ...}

        Returns:
            {"status": int, "body": dict}
        """
        self.metrics.increment('requests_in')

        if not isinstance(message, dict):
            self.metrics.increment_drop('parse_error')
            return _response(STATUS_BAD_REQUEST, {"error": "request must be an object"})

        msg_type = message.get("type", "")
        logger.debug(f"Request type: {msg_type}")

        handler = self._handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            self.metrics.increment_drop('unknown_request')
            return _response(STATUS_BAD_REQUEST, {"error": f"unknown request type {msg_type!r}"})

        try:
            response = handler(message)
        except Exception as e:
            logger.exception(f"Request {msg_type} failed: {e}")
            return _response(STATUS_SERVER_ERROR, {"error": str(e)})

        self.metrics.increment('requests_answered')
        return response

    def _parse(self, message: Dict):
        try:
            return parse_observations(message.get("wifiAccessPoints")), None
        except ValueError as e:
            self.metrics.increment_drop('parse_error')
            return None, _response(STATUS_BAD_REQUEST, {"error": str(e)})

    def _handle_get_location(self, message: Dict) -> Dict:
        observations, error = self._parse(message)
        if error is not None:
            return error

        try:
            result = self.strategy.estimate(observations)
        except InvalidInput as e:
            return _response(STATUS_BAD_REQUEST, {"error": str(e)})
        except InsufficientKnownAnchors as e:
            return _response(STATUS_NOT_FOUND, {
                "error": "Not enough known APs",
                "source": e.source.value,
                "knownAPs": e.num_known,
            })
        except (DegenerateGeometry, NonFiniteSolution) as e:
            return _response(STATUS_UNPROCESSABLE, {"error": str(e), "source": e.source.value})
        except EstimationError as e:
            return _response(STATUS_SERVER_ERROR, {"error": str(e)})

        self._write_audit(build_estimation_records(result))
        return _response(STATUS_OK, result.to_dict())

    def _handle_save_scan(self, message: Dict) -> Dict:
        observations, error = self._parse(message)
        if error is not None:
            return error

        if not observations:
            self.metrics.increment_drop('invalid_input')
            return _response(STATUS_BAD_REQUEST, {"error": "wifiAccessPoints required"})

        self._write_audit(build_scan_records(observations))
        self.metrics.increment('scans_saved')
        return _response(STATUS_OK, {"message": "Scan saved successfully"})

    def _handle_health(self, message: Dict) -> Dict:
        return _response(STATUS_OK, {"status": "ok"})

    def _write_audit(self, records):
        if self.audit_log is None:
            return
        try:
            self.audit_log.append(records)
        except OSError as e:
            # The estimate is still returned to the client
            self.metrics.increment_drop('audit_log_failed')
            logger.error(f"Audit log write failed: {e}")

    def _signal_handler(self, signum, frame):
        logger.info(f"Received signal {signum}, stopping...")
        self.running = False

    def start(self) -> bool:
        """Start the request server; returns False if it cannot listen."""
        logger.info("Wi-Fi positioning server starting...")
        if not self.request_server.start():
            logger.error("Failed to start request server")
            return False
        self.running = True
        return True

    def run_forever(self):
        """Block until SIGINT/SIGTERM, then stop."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        try:
            while self.running:
                time.sleep(0.5)
        finally:
            self.stop()

    def stop(self):
        """Stop the server and log final statistics."""
        self.running = False
        self.request_server.stop()
        self.metrics.log_summary()
        logger.info("Wi-Fi positioning server stopped")


def main():
    parser = argparse.ArgumentParser(description='Wi-Fi positioning server')
    parser.add_argument('--host', '-H', type=str, default=None,
                        help='listen address')
    parser.add_argument('--port', '-p', type=int, default=None,
                        help='listen port')
    parser.add_argument('--registry', '-r', type=str, default=None,
                        help='JSON file of known access points')
    parser.add_argument('--virtual', action='store_true',
                        help='use the virtual anchor layout from config')
    parser.add_argument('--audit-log', '-a', type=str, default=None,
                        help='CSV audit log path')
    parser.add_argument('--no-audit', action='store_true',
                        help='disable audit logging')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='enable debug logging')

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.host:
        config.SERVER_CONFIG["host"] = args.host
    if args.port:
        config.SERVER_CONFIG["port"] = args.port
    if args.audit_log:
        config.AUDIT_LOG_CONFIG["path"] = args.audit_log
    if args.no_audit:
        config.AUDIT_LOG_CONFIG["enabled"] = False

    try:
        registry = load_registry(
            args.registry or config.REGISTRY_CONFIG["registry_path"],
            virtual=args.virtual,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load registry: {e}")
        return 1

    audit_log = None
    if config.AUDIT_LOG_CONFIG["enabled"]:
        audit_log = CsvAuditLog(config.AUDIT_LOG_CONFIG["path"])

    server = WifiLocationServer(
        registry,
        estimation_config=build_estimation_config(),
        audit_log=audit_log,
        host=config.SERVER_CONFIG["host"],
        port=config.SERVER_CONFIG["port"],
    )
    if not server.start():
        return 1

    server.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
