from mail_relay.prometheus import MailMetrics


def test_mail_metrics_counters():
    metrics = MailMetrics()

    metrics.inc_sent()
    metrics.inc_sent()
    metrics.inc_error()
    metrics.inc_invalid()
    metrics.inc_rate_limited()
    metrics.inc_batches()

    output = metrics.generate_latest()
    assert b"mailrelay_sent_total 2.0" in output
    assert b"mailrelay_errors_total 1.0" in output
    assert b"mailrelay_invalid_items_total 1.0" in output
    assert b"mailrelay_rate_limited_total 1.0" in output
    assert b"mailrelay_batches_total 1.0" in output


def test_each_instance_has_its_own_registry():
    first = MailMetrics()
    second = MailMetrics()
    first.inc_sent()
    assert b"mailrelay_sent_total 0.0" in second.generate_latest()
