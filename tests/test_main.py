import argparse
import asyncio
import json

import main
import pipeline
from models.run import IngestResult, IngestStats


class SlowPipeline:
    def __init__(self, config, db, delay=0.0):
        self.delay = delay

    async def run_once(self):
        await asyncio.sleep(self.delay)
        return IngestResult(run_id="r1", success=True, stats=IngestStats(fetched=2).to_dict())


def _run_args(**overrides):
    args = {"continuous": False, "interval": None}
    args.update(overrides)
    return argparse.Namespace(**args)


def test_run_prints_result(config, monkeypatch, capsys):
    monkeypatch.setattr(pipeline, "IngestPipeline", SlowPipeline)
    assert main.cmd_run(_run_args(), config) == 0
    assert json.loads(capsys.readouterr().out)["run_id"] == "r1"


def test_run_stops_at_run_timeout(config, monkeypatch, capsys):
    monkeypatch.setattr(pipeline, "IngestPipeline", lambda config, db: SlowPipeline(config, db, delay=1.0))
    config.run_timeout_seconds = 0.01
    assert main.cmd_run(_run_args(), config) == 1
    assert capsys.readouterr().out == ""


def test_run_without_database(config):
    config.db_path = None
    assert main.cmd_run(_run_args(), config) == 1
