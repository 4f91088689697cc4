import json
from pathlib import Path

from stockledger.main import app


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_ledger_errors_are_documented_on_deductions():
    responses = app.openapi()["paths"]["/stock/deductions"]["post"]["responses"]
    assert {"409", "503"} <= set(responses)
