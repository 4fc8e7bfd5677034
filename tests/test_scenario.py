"""Tests for plantsim.scenario — scripted action replay."""

import runpy
import sys
from pathlib import Path

import pytest
import yaml

from plantsim.config import GardenConfig, LedgerSection
from plantsim.events import Died, Harvested
from plantsim.scenario import (
    ActionOutcome,
    load_scenario,
    parse_scenario,
    run_scenario,
)
from plantsim.snapshots import HistoryRecorder
from plantsim.types import Stage

BASIC = Path(__file__).parent.parent / "configs" / "scenarios" / "basic.yaml"
SCRIPT = Path(__file__).parent.parent / "scripts" / "run_scenario.py"


class TestParseScenario:
    def test_actions_and_args(self):
        sc = parse_scenario({'actions': [
            {'t': 0, 'op': 'seed', 'owner': 'alice', 'payment': 10},
            {'t': 5, 'op': 'refresh_all'},
        ]})
        assert [a.op for a in sc.actions] == ['seed', 'refresh_all']
        assert sc.actions[0].args == {'owner': 'alice', 'payment': 10}
        assert sc.config_overrides == {}

    def test_unknown_op(self):
        with pytest.raises(ValueError, match="op"):
            parse_scenario({'actions': [{'t': 0, 'op': 'prune', 'id': 1}]})

    def test_missing_argument(self):
        with pytest.raises(ValueError, match="caller"):
            parse_scenario({'actions': [{'t': 0, 'op': 'water', 'id': 1}]})

    def test_time_must_not_decrease(self):
        with pytest.raises(ValueError, match="earlier"):
            parse_scenario({'actions': [
                {'t': 10, 'op': 'refresh_all'},
                {'t': 5, 'op': 'refresh_all'},
            ]})

    def test_empty(self):
        assert parse_scenario({}).actions == []

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_scenario(tmp_path / "nope.yaml")


class TestRunScenario:
    def test_errors_recorded_not_raised(self):
        sc = parse_scenario({'actions': [
            {'t': 0, 'op': 'seed', 'owner': 'alice', 'payment': 1},
            {'t': 0, 'op': 'seed', 'owner': 'alice', 'payment': 10},
            {'t': 10, 'op': 'water', 'id': 1, 'caller': 'bob'},
            {'t': 20, 'op': 'sweep', 'caller': 'alice'},
        ]})
        result = run_scenario(sc)
        assert result.outcomes == [
            ActionOutcome(0, 'seed', False, error='InsufficientPayment'),
            ActionOutcome(0, 'seed', True, result=1),
            ActionOutcome(10, 'water', False, error='NotOwner'),
            ActionOutcome(20, 'sweep', False, error='NotAdmin'),
        ]
        assert result.n_failed == 3

    def test_config_overrides(self):
        sc = parse_scenario({
            'config': {'lifecycle': {'stage_duration': 10}},
            'actions': [
                {'t': 0, 'op': 'seed', 'owner': 'alice', 'payment': 10},
                {'t': 30, 'op': 'snapshot', 'id': 1},
            ],
        })
        result = run_scenario(sc)
        assert result.outcomes[1].result.stage == Stage.SEED   # not persisted
        assert result.manager.config.lifecycle.stage_duration == 10
        assert result.summary.stage_counts[Stage.SEED] == 1

    def test_overrides_layer_on_given_config(self):
        sc = parse_scenario({
            'config': {'lifecycle': {'reward': 12}},
            'actions': [
                {'t': 0, 'op': 'seed', 'owner': 'alice', 'payment': 10},
                {'t': 180, 'op': 'harvest', 'id': 1, 'caller': 'alice'},
            ],
        })
        base = GardenConfig(ledger=LedgerSection(initial_balance=50))
        result = run_scenario(sc, config=base)
        assert result.outcomes[1].result == 12
        assert result.summary.balance == 50 + 10 - 12

    def test_recorder_offered_each_action(self):
        sc = parse_scenario({'actions': [
            {'t': 0, 'op': 'seed', 'owner': 'alice', 'payment': 10},
            {'t': 60, 'op': 'refresh', 'id': 1},
            {'t': 90, 'op': 'refresh', 'id': 1},
        ]})
        rec = HistoryRecorder(enabled=True, interval=60)
        run_scenario(sc, recorder=rec)
        assert rec.times() == [0, 60]

    def test_recording_from_config(self):
        sc = parse_scenario({
            'config': {'recording': {'enabled': True, 'interval': 60}},
            'actions': [
                {'t': 0, 'op': 'seed', 'owner': 'alice', 'payment': 10},
                {'t': 60, 'op': 'refresh', 'id': 1},
                {'t': 90, 'op': 'refresh', 'id': 1},
            ],
        })
        result = run_scenario(sc)
        assert result.recorder.times() == [0, 60]
        assert result.recorder.snapshots[60].stage[0] == Stage.SPROUT

    def test_recording_off_by_default(self):
        sc = parse_scenario({'actions': [
            {'t': 0, 'op': 'seed', 'owner': 'alice', 'payment': 10},
        ]})
        result = run_scenario(sc)
        assert not result.recorder.enabled
        assert result.recorder.times() == []

    def test_explicit_recorder_wins(self):
        sc = parse_scenario({
            'config': {'recording': {'enabled': True, 'interval': 60}},
            'actions': [{'t': 30, 'op': 'refresh_all'}],
        })
        rec = HistoryRecorder(enabled=True, interval=30)
        result = run_scenario(sc, recorder=rec)
        assert result.recorder is rec
        assert rec.times() == [30]


class TestBasicScenarioFile:
    def test_shipped_scenario(self):
        if not BASIC.exists():
            pytest.skip("basic scenario not present")
        result = run_scenario(load_scenario(BASIC))
        by_op = [(o.op, o.ok, o.error) for o in result.outcomes]
        assert by_op == [
            ('seed', True, None),
            ('seed', True, None),
            ('snapshot', True, None),
            ('refresh_all', True, None),
            ('water', True, None),
            ('harvest', True, None),
            ('harvest', False, 'EntityNotFound'),
            ('refresh', True, None),
            ('water', False, 'NotAlive'),
            ('sweep', True, None),
        ]
        assert result.outcomes[2].result.resource_level == 98
        assert result.outcomes[5].result == 15
        assert result.outcomes[-1].result == 5
        assert [type(e) for e in result.events].count(Died) == 1
        assert [type(e) for e in result.events].count(Harvested) == 1
        assert result.summary.balance == 0


# ── command line ─────────────────────────────────────────────────────

def _run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", [str(SCRIPT), *argv])
    runpy.run_path(str(SCRIPT), run_name="__main__")


class TestCommandLine:
    def test_records_from_config_file(self, tmp_path, monkeypatch, capsys):
        out = tmp_path / "history.npz"
        base = tmp_path / "base.yaml"
        base.write_text(yaml.safe_dump({
            'recording': {'enabled': True, 'interval': 60, 'output': str(out)},
        }))
        _run_cli(monkeypatch, str(BASIC), "--config", str(base))

        assert HistoryRecorder.load(out).times() == [0, 60, 120, 180]
        assert "4 snapshots" in capsys.readouterr().out

    def test_flags_override_config(self, tmp_path, monkeypatch):
        out = tmp_path / "flag.npz"
        _run_cli(monkeypatch, str(BASIC), "--record", str(out), "--interval", "1000")
        assert HistoryRecorder.load(out).times() == [0, 2000]

    def test_no_recording_by_default(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        _run_cli(monkeypatch, str(BASIC))
        assert not (tmp_path / "results").exists()
        assert "balance 0" in capsys.readouterr().out
