from datadeck.utils.time import from_ms, iso_date, now_ms

def test_now_ms_is_epoch_millis():
    ts = now_ms()
    assert isinstance(ts, int)
    assert ts > 1_600_000_000_000

def test_from_ms_is_tz_aware():
    dt = from_ms(1704153600000)
    assert dt.tzinfo is not None
    assert (dt.year, dt.month, dt.day, dt.hour) == (2024, 1, 2, 0)

def test_iso_date_respects_timezone():
    # 2024-01-02 00:00 UTC is still Jan 1st in New York
    assert iso_date(1704153600000) == "2024-01-02"
    assert iso_date(1704153600000, "America/New_York") == "2024-01-01"
