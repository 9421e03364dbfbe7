import json
import random

from scripts.fill_sample_history import generate_sample_records, main
from tests.conftest import FIXED_NOW


def test_generated_records_are_consistent():
    records = generate_sample_records(14, now=FIXED_NOW, rng=random.Random(7))

    assert len(records) == 14
    assert records[0].id == "2026-10-18"
    assert records[-1].id == "2026-10-05"
    assert len({r.id for r in records}) == 14
    for record in records:
        assert 2 * 3600 <= record.total_monitored_seconds <= 8 * 3600
        assert record.total_monitored_seconds == record.good_posture_seconds + record.bad_posture_seconds
        assert record.alert_count >= 0
        assert 0 <= record.score <= 100


def test_seed_makes_data_repeatable():
    first = generate_sample_records(5, now=FIXED_NOW, rng=random.Random(1))
    second = generate_sample_records(5, now=FIXED_NOW, rng=random.Random(1))
    assert [r.score for r in first] == [r.score for r in second]


def test_main_fills_and_clears(tmp_path, capsys):
    path = tmp_path / "store.json"

    assert main(["--days", "10", "--file", str(path), "--seed", "3"]) == 0
    assert len(json.loads(path.read_text())["postureHistory"]) == 10
    assert "10 days" in capsys.readouterr().out

    assert main(["--clear", "--file", str(path)]) == 0
    assert "postureHistory" not in json.loads(path.read_text())
