from s3wagon.common.formatting import format_duration, format_rate, format_size


def test_format_size():
    assert format_size(0) == "0 B"
    assert format_size(1023) == "1023 B"
    assert format_size(1536) == "1.5 KiB"
    assert format_size(100 * 1024 * 1024) == "100.0 MiB"
    assert format_size(3 * 1024**4) == "3.0 TiB"


def test_format_rate():
    assert format_rate(1000, 2048) == "2.0 KiB/s"
    assert format_rate(0, 512) == "500.0 KiB/s"


def test_format_duration():
    assert format_duration(250) == "250ms"
    assert format_duration(1500) == "1.5s"
    assert format_duration(90_000) == "1.5m"
    assert format_duration(2 * 60 * 60 * 1000) == "2.0h"
