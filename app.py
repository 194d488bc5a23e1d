"""Entry point for cncpad

Reads game controllers, translates their input into jog moves and machine
operations, and drives a CNC machine through a CNCjs server.
"""
import argparse
import logging
import sys
import threading

from actions import Actions
from core.config import ConfigError, load_options, read_cncrc_secret
from core.loop import EventLoop
from devices.gamepad import GamepadReader
from devices.normalizer import InputNormalizer
from gcode.dialects import DIALECTS, new_gcode_sender
from transport.connector import CncjsConnector, SimulatedConnector
from transport.dispatcher import DirectiveDispatcher

LOG = logging.getLogger("cncpad")

# option names that the command line may override
CLI_OPTIONS = ("port", "baudrate", "controller_type", "secret", "socket_address", "socket_port",
               "access_token_lifetime", "z_probe_thickness")

MODULE_LOGGERS = {
    "actions": "cncpad.actions",
    "gamepad": "cncpad.gamepad",
    "normalizer": "cncpad.normalizer",
    "gcode": "cncpad.gcode",
    "connector": "cncpad.connector",
    "dispatcher": "cncpad.dispatcher",
    "loop": "cncpad.loop",
    "config": "cncpad.config",
}


def build_parser():
    parser = argparse.ArgumentParser(prog="cncpad", description="cncpad: game controller pendant for CNCjs")
    parser.add_argument("action", nargs="?", default="run", choices=["run", "simulate"],
                        help="'simulate' logs every directive instead of connecting to CNCjs")
    # defaults are None so that only explicit values override the option files
    parser.add_argument("-p", "--port", help="serial port the machine is attached to (default: /dev/ttyUSB0)")
    parser.add_argument("-b", "--baudrate", type=int, help="serial baud rate (default: 115200)")
    parser.add_argument("-t", "--controller-type", dest="controller_type",
                        help=f"controller firmware: {', '.join(sorted(DIALECTS))} (default: grbl)")
    parser.add_argument("-s", "--secret", help="CNCjs secret (default: read from ~/.cncrc)")
    parser.add_argument("--socket-address", dest="socket_address", help="CNCjs host (default: localhost)")
    parser.add_argument("--socket-port", dest="socket_port", type=int, help="CNCjs port (default: 8000)")
    parser.add_argument("--access-token-lifetime", dest="access_token_lifetime",
                        help="access token lifetime such as 30d or 12h (default: 30d)")
    parser.add_argument("-z", "--z-probe-thickness", dest="z_probe_thickness", type=float,
                        help="touch plate thickness in mm (default: 20)")
    parser.add_argument("--config", help="YAML option file read after /etc/cncpad.yaml and ~/.cncpad.yaml")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="more output; -vv also traces every controller event")
    parser.add_argument("--log-level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (default: INFO)")
    parser.add_argument("--log-format", default="%(asctime)s %(levelname)s:%(name)s:%(message)s",
                        help="Logging format string")
    parser.add_argument("--debug-modules", nargs="*", default=[],
                        help=f"Modules to set to DEBUG level ({', '.join(MODULE_LOGGERS)})")
    return parser


def setup_logging(args):
    level = args.log_level or ("DEBUG" if args.verbose >= 1 else "INFO")
    logging.basicConfig(level=getattr(logging, level), format=args.log_format)
    for module in args.debug_modules:
        logging.getLogger(MODULE_LOGGERS.get(module, f"cncpad.{module}")).setLevel(logging.DEBUG)
    if args.verbose < 2 and not args.log_level:
        # per-event chatter only at -vv
        logging.getLogger("cncpad.normalizer").setLevel(logging.INFO)
        logging.getLogger("cncpad.reader").setLevel(logging.INFO)
    # the socket.io and engine.io clients are noisy at INFO
    logging.getLogger("socketio").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)


def build_pendant(options, loop):
    """Wire normalizer, connector, dispatcher, g-code sender and engine together."""
    normalizer = InputNormalizer(options.controller_mappings)
    if options.simulate:
        connector = SimulatedConnector(options, loop)
    else:
        connector = CncjsConnector(options, loop)
    dispatcher = DirectiveDispatcher(connector, options.port)
    sender = new_gcode_sender(options.controller_type, dispatcher, options.z_probe_thickness)
    actions = Actions(sender, loop, jog=options.jog, actions_map=options.actions_map)
    connector.attach_to(normalizer)
    actions.subscribe(normalizer)
    return normalizer, connector, actions


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args)

    cli = {name: getattr(args, name) for name in CLI_OPTIONS}
    cli["verbose"] = args.verbose or None
    simulate = args.action == "simulate"
    try:
        options = load_options(cli, config_path=args.config, simulate=simulate)
        if not simulate and not options.secret:
            options.secret = read_cncrc_secret()
        loop = EventLoop()
        normalizer, connector, actions = build_pendant(options, loop)
    except ConfigError as e:
        LOG.error("%s", e)
        sys.exit(1)

    LOG.info("cncpad %s: %s on %s at %s baud", "simulating" if simulate else "running",
             options.controller_type, options.port, options.baudrate)

    reader = GamepadReader()
    # everything the reader produces is handled on the loop thread
    reader.subscribe(lambda ev: loop.post(normalizer.feed, ev))

    stop_event = threading.Event()
    try:
        actions.start()
        loop.start()
        reader.start()
        LOG.info("cncpad running - press Ctrl+C to stop")
        while not stop_event.is_set():
            stop_event.wait(0.5)
    except KeyboardInterrupt:
        LOG.info("shutdown requested")
    finally:
        reader.stop()
        connector.disconnect_server()
        loop.stop()


if __name__ == "__main__":
    main()
