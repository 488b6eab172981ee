import json

import pytest

from backtester.main import build_payload, get_config, run


def test_build_single_strategy_payload():
    args = get_config([
        "--pair", "SOL/USDC", "--period", "7d", "--investment", "500",
        "--strategy", "concentrated", "--range-min", "49", "--range-max", "52", "--strict-range",
    ])

    payload = build_payload(args)

    assert payload == {
        "tokenPair": "SOL/USDC",
        "timePeriod": "7d",
        "investmentAmount": 500.0,
        "initialRange": {"min_price": 49.0, "max_price": 52.0},
        "strategyKind": "concentrated",
        "strictRange": True,
    }


def test_build_comparison_payload():
    args = get_config(["--compare", "--threshold", "0.1"])
    payload = build_payload(args)
    assert "strategyKind" not in payload
    assert payload["rebalanceThreshold"] == 0.1


def test_range_bounds_come_in_pairs():
    with pytest.raises(SystemExit):
        get_config(["--range-min", "49"])


@pytest.mark.asyncio
async def test_sample_comparison(capsys):
    exit_code = await run(get_config(["--sample", "--compare"]))

    assert exit_code == 0
    out = capsys.readouterr().out
    body = json.loads(out[out.index("{\n"):])
    assert len(body["data"]["entries"]) == 3
