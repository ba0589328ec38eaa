"""
Tests for the command-line runner.
"""
import sys
import os

import matplotlib
matplotlib.use('Agg')
import torch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import run_simulation


def small_args(tmp_path, *extra):
    return ['20', '--ne', '8', '--ni', '2', '--buffer-size', '16', '--workers', '2',
            '--seed', '1', '--out', str(tmp_path / 'out.png'), *extra]


class TestMain:

    def test_host_run_writes_figure(self, tmp_path, capsys):
        assert run_simulation.main(small_args(tmp_path)) == 0
        assert (tmp_path / 'out.png').exists()
        assert 'Steps simulated:  20' in capsys.readouterr().out

    def test_drop_oldest(self, tmp_path):
        assert run_simulation.main(small_args(tmp_path, '--policy', 'drop_oldest',
                                              '--capacity', '4', '--no-spikes')) == 0

    def test_invalid_configuration(self, tmp_path, capsys):
        args = ['5', '--ne', '0', '--ni', '0', '--out', str(tmp_path / 'x.png')]
        assert run_simulation.main(args) == 2
        assert 'Invalid configuration' in capsys.readouterr().err

    def test_missing_accelerator(self, tmp_path, monkeypatch):
        monkeypatch.setattr(torch.cuda, 'is_available', lambda: False)
        args = small_args(tmp_path, '--comp-type', 'gpu', '--device', 'cuda')
        assert run_simulation.main(args) == 1

    def test_fallback_to_host(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(torch.cuda, 'is_available', lambda: False)
        args = small_args(tmp_path, '--comp-type', 'gpu', '--device', 'cuda',
                          '--fallback-to-host')
        assert run_simulation.main(args) == 0
        assert 'Backend:       host' in capsys.readouterr().out

    def test_comp_type_case_insensitive(self):
        args = run_simulation.parse_args(['10', '--comp-type', 'GPU'])
        assert run_simulation.COMP_TYPES[args.comp_type] == 'accelerator'
