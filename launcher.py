import logging
from argparse import ArgumentParser, Namespace
from signal import signal, SIGINT
from threading import Event

from backdrop.fluid import FluidConfig
from backdrop.fluid.FluidWindow import FluidWindow


if __name__ == '__main__':
    defaults = FluidConfig()

    parser: ArgumentParser = ArgumentParser()
    parser.add_argument('-W',   '--width',      type=int,   default=1280,   help='window width')
    parser.add_argument('-H',   '--height',     type=int,   default=720,    help='window height')
    parser.add_argument('-sim', '--sim',        type=int,   default=defaults.sim_resolution,
                        help=defaults.help_text('sim_resolution'))
    parser.add_argument('-dye', '--dye',        type=int,   default=defaults.dye_resolution,
                        help=defaults.help_text('dye_resolution'))
    parser.add_argument('-fps', '--fps',        type=float, default=None,   help='frame rate cap, v-sync when omitted')
    parser.add_argument('-p',   '--paused',     action='store_true',        help=defaults.help_text('paused'))
    parser.add_argument('-lp',  '--low-power',  action='store_true',        help='use a 512 dye resolution')
    parser.add_argument('-hr',  '--hot-reload', action='store_true',        help='recompile shaders when their files change')
    parser.add_argument('-l',   '--log-level',  type=str,   default='INFO', help='logging level')

    args: Namespace = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format='%(asctime)s %(levelname)s %(message)s')

    config = FluidConfig(sim_resolution=args.sim, dye_resolution=args.dye, paused=args.paused)
    for info in config.info().values():
        logging.debug(f"{info['label']}: {info['value']}")

    window = FluidWindow(args.width, args.height, config, fps=args.fps,
                         hot_reload=args.hot_reload, low_power=args.low_power)

    shutdown_event = Event()
    window.add_exit_callback(shutdown_event.set)

    def signal_handler_exit(sig, frame) -> None:
        logging.info("Received interrupt signal, shutting down...")
        shutdown_event.set()
        window.stop()

    signal(SIGINT, signal_handler_exit)

    window.start()
    while not shutdown_event.is_set():
        shutdown_event.wait(0.01)
    window.stop()
