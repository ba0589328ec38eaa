"""
Run the Izhikevich network and stream it to a history consumer.

The simulation runs on its own thread; a consumer thread pairs each step's
reference voltage and spike vector into a ring buffer; at the end the
buffered window is summarised and saved as a raster + voltage figure.

Usage:
  python run_simulation.py 1000                      # 1000 steps, host backend
  python run_simulation.py 5000 --comp-type gpu      # accelerator backend
  python run_simulation.py --live                    # run until the window closes
  python run_simulation.py 2000 --ne 400 --ni 100 --policy drop_oldest
"""

import argparse
import logging
import sys
import threading

from analysis.plotting import live_view, plot_history
from analysis.spike_analysis import summarize
from engine.config import (BACKEND_ACCELERATOR, BACKEND_HOST, DEFAULT_BUFFER_SIZE,
                           DEFAULT_CHANNEL_CAPACITY, DEFAULT_EXCITATORY,
                           DEFAULT_INHIBITORY, DEFAULT_WORKERS, DEVICES, POLICIES,
                           POLICY_BLOCK, SimulationConfig)
from engine.errors import BackendUnavailableError, ConfigurationError
from engine.simulation import build_simulation
from streaming.consumer import HistoryConsumer


logger = logging.getLogger('run_simulation')

COMP_TYPES = {'cpu': BACKEND_HOST, 'gpu': BACKEND_ACCELERATOR}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Izhikevich spiking network with live streaming')
    parser.add_argument('steps', type=int, nargs='?', default=None,
                        help='Steps to simulate (default: until interrupted '
                             'or the live window closes)')
    parser.add_argument('--comp-type', type=str.lower, default='cpu',
                        choices=sorted(COMP_TYPES),
                        help='cpu = host thread pool, gpu = accelerator kernel')
    parser.add_argument('--ne', type=int, default=DEFAULT_EXCITATORY,
                        help='Number of excitatory neurons to create')
    parser.add_argument('--ni', type=int, default=DEFAULT_INHIBITORY,
                        help='Number of inhibitory neurons to create')
    parser.add_argument('--buffer-size', type=int, default=DEFAULT_BUFFER_SIZE,
                        help='Steps kept in the history buffer')
    parser.add_argument('--out', type=str, default='out.png',
                        help='Figure file written at the end of the run')
    parser.add_argument('--no-spikes', action='store_true',
                        help='Skip drawing the spike raster')
    parser.add_argument('--live', action='store_true',
                        help='Show a live matplotlib window')
    parser.add_argument('--policy', type=str, default=POLICY_BLOCK, choices=POLICIES,
                        help='What publishing does when the consumer lags')
    parser.add_argument('--capacity', type=int, default=DEFAULT_CHANNEL_CAPACITY,
                        help='Channel capacity (steps)')
    parser.add_argument('--workers', type=int, default=DEFAULT_WORKERS,
                        help='Host backend worker threads')
    parser.add_argument('--device', type=str, default='auto', choices=DEVICES,
                        help='Accelerator device')
    parser.add_argument('--fallback-to-host', action='store_true',
                        help='Use the host backend if no accelerator is available')
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    return parser.parse_args(argv)


def _build(config, fallback):
    try:
        return build_simulation(config)
    except BackendUnavailableError as exc:
        if not fallback or config.backend == BACKEND_HOST:
            raise
        logger.warning("Accelerator unavailable (%s); falling back to host backend", exc)
        config.backend = BACKEND_HOST
        return build_simulation(config)


def _wait(thread, stop_event):
    """Join `thread`, turning Ctrl-C into a clean stop."""
    try:
        while thread.is_alive():
            thread.join(0.5)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping simulation")
        stop_event.set()
        thread.join()


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logger.info("%s", vars(args))

    config = SimulationConfig(
        n_excitatory=args.ne,
        n_inhibitory=args.ni,
        buffer_size=args.buffer_size,
        backend=COMP_TYPES[args.comp_type],
        workers=args.workers,
        device=args.device,
        channel_capacity=args.capacity,
        policy=args.policy,
        seed=args.seed,
        steps=args.steps,
    )

    try:
        sim = _build(config, args.fallback_to_host)
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    except BackendUnavailableError as exc:
        print(f"Backend unavailable: {exc}", file=sys.stderr)
        return 1

    print("=" * 60)
    print("Izhikevich Network")
    print("=" * 60)
    print(f"Neurons:       {config.n_excitatory} excitatory + "
          f"{config.n_inhibitory} inhibitory")
    print(f"Backend:       {sim.backend.name}")
    print(f"Steps:         {config.steps if config.steps is not None else 'unbounded'}")
    print(f"Buffer:        {config.buffer_size} steps")
    print(f"Channels:      capacity {config.channel_capacity}, policy {config.policy}")
    print("=" * 60)

    consumer = HistoryConsumer(sim.channels, config.buffer_size, config.n_neurons)
    consumer.start()
    stop_event = threading.Event()
    sim_thread = sim.start(config.steps, stop_event)

    try:
        if args.live:
            live_view(consumer, config.buffer_size, config.n_neurons,
                      show_spikes=not args.no_spikes,
                      reference_neuron=config.reference_neuron)
            stop_event.set()
        _wait(sim_thread, stop_event)
        consumer.join(timeout=5.0)
    finally:
        consumer.stop(timeout=1.0)
        sim.close()

    spikes, voltages = consumer.snapshot()
    stats = summarize(spikes, voltages)
    print(f"\nSteps simulated:  {sim.steps_done}")
    print(f"Window:           {stats['n_steps']} steps, {stats['total_spikes']} spikes")
    print(f"Mean rate:        {stats['mean_rate_hz']:.2f} Hz")
    print(f"Dominant rhythm:  {stats['dominant_freq_hz']:.1f} Hz")
    print(f"Participation:    {stats['participation']:.2f}")
    for phase, ms in sim.timing_summary().items():
        print(f"  {phase:<14} {ms:8.3f} ms/step")
    if sim.channels.dropped:
        print(f"Dropped steps:    {sim.channels.dropped}")

    if args.out:
        plot_history(spikes, voltages, capacity=config.buffer_size, save_path=args.out,
                     show_spikes=not args.no_spikes,
                     reference_neuron=config.reference_neuron)
        print(f"Figure saved to {args.out}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
