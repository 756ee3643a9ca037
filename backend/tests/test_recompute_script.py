"""Command-line ledger recomputation."""

from __future__ import annotations

from datetime import date

from scripts.recompute_ledger import _from_csv


def test_prints_ledger_for_trades_csv(tmp_path, capsys):
    trades = tmp_path / "trades.csv"
    trades.write_text(
        "date,ticker,side,qty,price,fees,notes\n"
        "2024-01-15,AAPL,BUY,10,100,0,\n"
        "2024-01-16,AAPL,SELL,5,110,0,\n"
        "bad,AAPL,BUY,1,1,0,\n",
        encoding="utf-8",
    )

    code = _from_csv(trades, date(2024, 1, 18), 365)

    captured = capsys.readouterr()
    lines = captured.out.splitlines()
    assert code == 0
    assert lines[0].startswith("date,openingDebit")
    assert [line.split(",")[0] for line in lines[1:]] == ["2024-01-15", "2024-01-16", "2024-01-17", "2024-01-18"]
    assert "row 3.date" in captured.err


def test_empty_csv_fails(tmp_path, capsys):
    trades = tmp_path / "trades.csv"
    trades.write_text("date,ticker,side,qty,price\n", encoding="utf-8")
    assert _from_csv(trades, date(2024, 1, 18), None) == 1
    assert "No valid trades" in capsys.readouterr().err
