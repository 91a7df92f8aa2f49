import argparse
import os
import signal
import sys
import threading

from sprinkler_bridge.__version__ import __version__ as version
from sprinkler_bridge.config.config_loader import load_bridge_config
from sprinkler_bridge.core.irrigation_controller import IrrigationController
from sprinkler_bridge.device.device_client import DeviceClient
from sprinkler_bridge.exceptions import ConfigurationError, DeviceError
from sprinkler_bridge.interface.bridge_cli import BridgeCLI
from sprinkler_bridge.network.command_handler import CommandHandler
from sprinkler_bridge.network.mqtt_client import MQTTBridge
from sprinkler_bridge.utils.logger import BASE_DIR, enable_console_logging, get_logger


# === Configuration ===
CONFIG_ENV_VAR = "SPRINKLER_BRIDGE_CONFIG"
DEFAULT_CONFIG_PATH = os.path.join(BASE_DIR, "runtime", "config", "bridge_config.json")

# === Constants ===
REFRESH_INTERVAL = 0.5  # Dashboard refresh interval in seconds

logger = get_logger("main")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="sprinkler-bridge", description="OpenSprinkler to MQTT accessory bridge.")
    parser.add_argument("-c", "--config", default=os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH),
                        help="path to the JSON configuration file")
    parser.add_argument("--no-dashboard", action="store_true",
                        help="run headless and log warnings to the console instead of showing the dashboard")
    parser.add_argument("--version", action="version", version=f"%(prog)s {version}")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Start the bridge and block until interrupted."""
    args = parse_args(argv)
    if args.no_dashboard:
        enable_console_logging()

    logger.info("Initializing OpenSprinkler bridge...")
    logger.info(f"Version: {version}")

    try:
        config = load_bridge_config(args.config)
    except ConfigurationError as e:
        logger.critical(f"Failed to load configuration: {e}")
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    client = DeviceClient(config.host, config.password.hashed(), timeout=config.request_timeout)
    try:
        if not client.check_support():
            logger.warning("Controller firmware is older than supported, some features may not work.")
        device_info = client.get_info(fallback_identifier=config.device_id)
    except (ConfigurationError, DeviceError) as e:
        logger.critical(f"Failed to identify the controller: {e}")
        print(f"Startup error: {e}", file=sys.stderr)
        return 1

    controller = IrrigationController(config, client, device_info)

    mqtt_bridge = None
    if config.mqtt.enabled:
        try:
            mqtt_bridge = MQTTBridge(config.mqtt, device_info.device_identifier)
            mqtt_bridge.set_handler(CommandHandler(controller, mqtt_bridge).handle)
            controller.add_listener(mqtt_bridge)
            mqtt_bridge.start()
        except Exception as e:
            logger.error(f"Failed to initialize network components: {e}")
            return 1

    stop_event = threading.Event()
    cli = None if args.no_dashboard else BridgeCLI(controller, refresh_interval=REFRESH_INTERVAL)

    def shutdown_handler(signum, frame):
        logger.info(f"Received signal {signum}, performing clean shutdown...")
        stop_event.set()
        if cli is not None:
            cli.stop()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    controller.start()
    try:
        if cli is not None:
            cli.run()
        else:
            stop_event.wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Exiting OpenSprinkler bridge...")
    finally:
        controller.stop()
        if mqtt_bridge is not None:
            mqtt_bridge.stop()
            mqtt_bridge.join(timeout=5.0)

    logger.info("OpenSprinkler bridge stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
