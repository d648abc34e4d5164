from mailersend_relay.metrics import RelayMetrics


def test_relay_metrics_counters():
    metrics = RelayMetrics()

    metrics.inc_received()
    metrics.inc_relayed()
    metrics.inc_attachments(2)
    metrics.inc_attachments(0)
    metrics.inc_rejected("delivery")
    metrics.inc_rejected("")

    output = metrics.generate_latest()
    assert b"msr_received_total 1.0" in output
    assert b"msr_attachments_total 2.0" in output
    assert b'msr_rejected_total{stage="delivery"} 1.0' in output
    assert b'msr_rejected_total{stage="unknown"} 1.0' in output


def test_separate_registries():
    first = RelayMetrics()
    second = RelayMetrics()

    first.inc_relayed()

    assert first.registry.get_sample_value("msr_relayed_total") == 1
    assert second.registry.get_sample_value("msr_relayed_total") == 0
