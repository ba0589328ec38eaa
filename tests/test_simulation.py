"""
Tests for the simulation loop and the streaming pipeline end to end.
"""
import logging
import sys
import os
import threading

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from engine.config import SimulationConfig
from engine.errors import ConfigurationError
from engine.history import HistoryBuffer
from engine.simulation import PHASES, build_simulation
from streaming.channel import StepChannels
from streaming.consumer import HistoryConsumer


def small_config(**overrides):
    params = dict(n_excitatory=40, n_inhibitory=10, buffer_size=32, workers=2, seed=0)
    params.update(overrides)
    return SimulationConfig(**params)


class TestConfiguration:

    def test_zero_neurons(self):
        with pytest.raises(ConfigurationError):
            build_simulation(small_config(n_excitatory=0, n_inhibitory=0))

    def test_zero_buffer(self):
        with pytest.raises(ConfigurationError):
            build_simulation(small_config(buffer_size=0))

    @pytest.mark.parametrize('overrides', [
        {'policy': 'newest'},
        {'backend': 'fpga'},
        {'channel_capacity': 0},
        {'reference_neuron': 50},
        {'n_excitatory': -1},
        {'workers': 0},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ConfigurationError):
            small_config(**overrides).validate()

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            small_config(buffer_size=0).validate()

    def test_valid_returns_self(self):
        config = small_config()
        assert config.validate() is config
        assert config.n_neurons == 50


class TestPipeline:

    def test_consumer_sees_every_step(self):
        sim = build_simulation(small_config())
        consumer = HistoryConsumer(sim.channels, buffer_size=32, n_neurons=50)
        consumer.start()
        try:
            assert sim.run(50) == 50
        finally:
            sim.close()
        consumer.join(5.0)

        assert consumer.received == 50
        c_spikes, c_voltages = consumer.snapshot()
        s_spikes, s_voltages = sim.history.snapshot()
        np.testing.assert_array_equal(c_spikes, s_spikes)
        np.testing.assert_array_equal(c_voltages, s_voltages)

    def test_threaded_run(self):
        sim = build_simulation(small_config())
        consumer = HistoryConsumer(sim.channels, 32, 50)
        consumer.start()
        sim.start(n_steps=40)
        sim.join(10.0)
        consumer.join(5.0)
        sim.close()
        assert sim.steps_done == 40
        assert consumer.received == 40

    def test_consumer_gone_is_logged_once(self, caplog):
        sim = build_simulation(small_config())
        sim.channels.close_receiver()
        with caplog.at_level(logging.WARNING, logger='engine.simulation'):
            done = sim.run(10)
        sim.close()

        assert done == 10
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        # Once, not once per step
        assert len(warnings) == 1

    def test_consumer_stops_midway(self):
        sim = build_simulation(small_config())
        consumer = HistoryConsumer(sim.channels, 32, 50)
        consumer.start()
        for _ in range(5):
            sim.step()
        consumer.stop(timeout=5.0)
        assert sim.run(20) == 20
        sim.close()
        assert sim.steps_done == 25

    def test_drop_oldest_without_consumer(self):
        sim = build_simulation(small_config(policy='drop_oldest'))
        sim.run(20)
        sim.close()

        assert sim.channels.dropped == 19
        latest_spikes, latest_voltage = sim.history.latest()
        voltage, spikes = sim.channels.drain_latest()
        assert voltage == pytest.approx(latest_voltage)
        np.testing.assert_array_equal(spikes, latest_spikes)

    def test_channels_closed_after_run(self):
        sim = build_simulation(small_config(policy='drop_oldest'))
        sim.run(3)
        sim.close()
        assert sim.channels.closed


class TestLoop:

    def test_stop_event_set_before_start(self):
        sim = build_simulation(small_config(policy='drop_oldest'))
        stop = threading.Event()
        stop.set()
        assert sim.run(stop_event=stop) == 0
        sim.close()

    def test_stop_event_ends_unbounded_run(self):
        sim = build_simulation(small_config(policy='drop_oldest'))
        stop = threading.Event()
        sim.start(stop_event=stop)
        threading.Timer(0.2, stop.set).start()
        sim.join(10.0)
        sim.close()
        assert sim.steps_done > 0

    def test_time_index_wraps(self):
        sim = build_simulation(small_config(buffer_size=8, policy='drop_oldest'))
        sim.run(13)
        sim.close()
        assert sim.t == 13 % 8
        assert len(sim.history) == 8

    def test_seed_reproducible(self):
        runs = []
        for _ in range(2):
            sim = build_simulation(small_config(policy='drop_oldest'))
            sim.run(30)
            sim.close()
            runs.append(sim.history.snapshot())
        np.testing.assert_array_equal(runs[0][0], runs[1][0])
        np.testing.assert_array_equal(runs[0][1], runs[1][1])

    def test_timing_summary(self):
        sim = build_simulation(small_config(policy='drop_oldest'))
        sim.run(5)
        sim.close()
        summary = sim.timing_summary()
        assert set(PHASES) <= set(summary)
        assert all(value >= 0.0 for value in summary.values())

    def test_history_capacity_must_match(self):
        sim = build_simulation(small_config(policy='drop_oldest'))
        from engine.simulation import Simulation
        with pytest.raises(ValueError):
            Simulation(sim.backend, sim.stimulus, history=HistoryBuffer(5, 50))
        sim.close()

    def test_explicit_channels_used(self):
        channels = StepChannels(4, 'drop_oldest')
        sim = build_simulation(small_config(), channels=channels)
        sim.run(2)
        sim.close()
        assert sim.channels is channels
        assert len(channels.voltage) == 2
        assert len(channels.spikes) == 2
