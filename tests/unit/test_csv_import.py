"""MetaTrader CSV 行映射测试"""
from datetime import datetime

import pytest

from tradejournal.services.csv_import_service import map_csv_row, parse_csv_text, parse_datetime

SAMPLE_CSV = "\ufeff" + """Ticket ID,Open Time,Open Price,Close Time,Close Price,Profit,Lots,Commission,Swap,Symbol,Type,SL,TP,Pips,Reason,Volume
1001,2024.03.04 09:15:00,1.0850,2024.03.04 11:00:00,1.0870,20.0,0.1,-0.7,0,EURUSD,Buy,1.0830,1.0890,20,0,0.1
1002,2024.03.05 14:00:00,1.2650,,,,0.2,0,0,GBPUSD,Sell,,,,,
"""


def test_parse_csv_text_strips_bom_and_headers():
    rows = parse_csv_text(SAMPLE_CSV)
    assert len(rows) == 2
    assert rows[0]["Ticket ID"] == "1001"
    assert rows[1]["Symbol"] == "GBPUSD"


def test_closed_row_mapping():
    row = parse_csv_text(SAMPLE_CSV)[0]
    data = map_csv_row(row, account_id=7)
    assert data["account_id"] == 7
    assert data["ticket_id"] == "1001"
    assert data["open_time"] == datetime(2024, 3, 4, 9, 15)
    assert data["close_time"] == datetime(2024, 3, 4, 11, 0)
    assert data["profit"] == 20.0
    assert data["commission"] == -0.7
    assert data["stop_loss"] == 1.083
    assert data["reason"] == 0
    assert data["is_open"] is False


def test_missing_close_time_means_open_trade():
    row = parse_csv_text(SAMPLE_CSV)[1]
    data = map_csv_row(row)
    assert data["close_time"] is None
    assert data["is_open"] is True
    assert data["close_price"] is None
    assert data["profit"] == 0.0
    assert data["stop_loss"] is None
    assert data["type"] == "Sell"

    live = map_csv_row({"Open Time": "2024.03.04 09:00", "Close Price": "1.0870", "Symbol": "EURUSD"})
    assert live["is_open"] is True
    assert live["close_price"] is None


def test_missing_ticket_and_symbol_get_defaults():
    data = map_csv_row({"Open Time": "2024-03-04 09:00"})
    assert data["ticket_id"]
    assert data["symbol"] == "UNKNOWN"
    assert data["type"] == "Buy"
    assert data["lots"] == 0.0


def test_bad_numbers_fall_back_to_defaults():
    data = map_csv_row({"Open Time": "2024.03.04 09:00", "Profit": "n/a", "Lots": "inf", "SL": "abc"})
    assert data["profit"] == 0.0
    assert data["lots"] == 0.0
    assert data["stop_loss"] is None


def test_bad_open_time_raises():
    with pytest.raises(ValueError):
        map_csv_row({"Open Time": "not a date", "Symbol": "EURUSD"})
    with pytest.raises(ValueError):
        map_csv_row({"Open Time": "", "Symbol": "EURUSD"})


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2024.03.04 09:15:30", datetime(2024, 3, 4, 9, 15, 30)),
        ("2024-03-04 09:15", datetime(2024, 3, 4, 9, 15)),
        ("03/04/2024 09:15", datetime(2024, 3, 4, 9, 15)),
        ("2024-03-04T10:15:00+01:00", datetime(2024, 3, 4, 9, 15)),
        ("2024-03-04T09:15:00Z", datetime(2024, 3, 4, 9, 15)),
    ],
)
def test_parse_datetime_formats(text, expected):
    assert parse_datetime(text) == expected
