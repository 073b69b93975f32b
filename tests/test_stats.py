import threading

from tcpping.stats import RoundTripRecord, StatisticsAggregator, StatsReport

BASE = 1_700_000_000_000


def rec(message_id, a_to_b, b_to_a, start=BASE):
    return RoundTripRecord(message_id, start, start + a_to_b, start + a_to_b + b_to_a)


def test_record_derived_latencies():
    r = rec(1, 3, 4)
    assert (r.rtt, r.a_to_b, r.b_to_a) == (7, 3, 4)


def test_flush_averages_are_truncated():
    agg = StatisticsAggregator()
    # rtts 10, 11, 12, 12 -> mean 11.25
    for i, (ab, ba) in enumerate([(4, 6), (5, 6), (6, 6), (7, 5)], start=1):
        agg.record(rec(i, ab, ba))

    report = agg.flush()

    assert report.window_count == 4
    assert report.avg_rtt == 11
    assert report.avg_a_to_b == 5    # 22 / 4
    assert report.avg_b_to_a == 5    # 23 / 4
    assert report.max_rtt == 12


def test_negative_segments_truncate_toward_zero():
    agg = StatisticsAggregator()
    # catcher clock behind: A->B negative
    agg.record(rec(1, -3, 10))
    agg.record(rec(2, -4, 10))

    report = agg.flush()

    assert report.avg_a_to_b == -3   # -7 / 2 = -3.5
    assert report.avg_b_to_a == 10
    assert report.avg_rtt == 6       # (7 + 6) / 2


def test_running_max_spans_windows():
    agg = StatisticsAggregator()
    agg.record(rec(1, 20, 20))
    assert agg.flush().max_rtt == 40

    agg.record(rec(2, 1, 1))
    second = agg.flush()
    assert second.avg_rtt == 2
    assert second.max_rtt == 40

    agg.record(rec(3, 30, 30))
    assert agg.flush().max_rtt == 60


def test_empty_flush_leaves_running_max_alone():
    agg = StatisticsAggregator()
    empty = agg.flush()
    assert empty.window_count == 0
    assert empty.max_rtt is None
    assert empty.avg_rtt is None

    agg.record(rec(1, 2, 3))
    agg.flush()
    again = agg.flush()

    assert again.window_count == 0
    assert again.max_rtt == 5
    assert agg.max_rtt == 5


def test_flush_clears_window_and_keeps_history():
    agg = StatisticsAggregator()
    agg.record(rec(1, 1, 1))
    agg.record(rec(2, 1, 1))
    assert agg.pending() == 2

    agg.flush()

    assert agg.pending() == 0
    assert [r.message_id for r in agg.history] == [1, 2]


def test_report_includes_messages_sent():
    sent = [0]
    agg = StatisticsAggregator(message_counter=lambda: sent[0])
    sent[0] = 17
    assert agg.flush().messages_sent == 17


def test_describe_lines():
    report = StatsReport(window_count=2, messages_sent=5, max_rtt=9, avg_rtt=7,
                         avg_a_to_b=3, avg_b_to_a=4)
    lines = report.describe()
    assert "Total number of messages sent so far: 5" in lines
    assert "Number of messages received in the previous second: 2" in lines
    assert lines[-1] == "Max RTT: 9 ms, Avg RTT: 7 ms, Avg A->B: 3 ms, Avg B->A: 4 ms"

    assert len(StatsReport(window_count=0, messages_sent=5).describe()) == 3


def test_records_added_during_flushes_are_not_lost():
    agg = StatisticsAggregator()
    total = 2000
    counted = []

    def producer():
        for i in range(1, total + 1):
            agg.record(rec(i, 1, 1))

    thread = threading.Thread(target=producer)
    thread.start()
    while thread.is_alive():
        counted.append(agg.flush().window_count)
    thread.join()
    counted.append(agg.flush().window_count)

    assert sum(counted) == total
    assert len(agg.history) == total
