"""
Tests for CloudWatch metrics utilities module.

Tests cover metric emission, batch chunking, and error handling. The
CloudWatch client is the MagicMock installed by the conftest fixture.
"""

from shared.metrics import NAMESPACE, emit_batch_metrics, emit_metric


class TestEmitMetric:
    """Tests for emit_metric function."""

    def test_emits_simple_metric(self, cloudwatch):
        """Should emit a count metric of 1 by default."""
        emit_metric("PipelineRuns")

        kwargs = cloudwatch.put_metric_data.call_args.kwargs
        assert kwargs["Namespace"] == NAMESPACE
        datum = kwargs["MetricData"][0]
        assert datum["MetricName"] == "PipelineRuns"
        assert datum["Value"] == 1.0
        assert datum["Unit"] == "Count"
        assert "Dimensions" not in datum

    def test_emits_dimensions(self, cloudwatch):
        emit_metric("PipelineRuns", dimensions={"Platform": "npm", "Partial": "false"})

        datum = cloudwatch.put_metric_data.call_args.kwargs["MetricData"][0]
        assert datum["Dimensions"] == [
            {"Name": "Platform", "Value": "npm"},
            {"Name": "Partial", "Value": "false"},
        ]

    def test_failure_does_not_raise(self, cloudwatch):
        """Metrics are best-effort."""
        cloudwatch.put_metric_data.side_effect = RuntimeError("throttled")

        emit_metric("PipelineRuns")


class TestEmitBatchMetrics:
    """Tests for emit_batch_metrics function."""

    def test_single_call_for_small_batch(self, cloudwatch):
        emit_batch_metrics([
            {"metric_name": "ScheduledRefreshed", "value": 3},
            {"metric_name": "ScheduledErrors", "value": 0},
        ])

        assert cloudwatch.put_metric_data.call_count == 1
        data = cloudwatch.put_metric_data.call_args.kwargs["MetricData"]
        assert [d["MetricName"] for d in data] == ["ScheduledRefreshed", "ScheduledErrors"]

    def test_chunks_of_twenty(self, cloudwatch):
        emit_batch_metrics([{"metric_name": f"M{i}"} for i in range(45)])

        sizes = [len(call.kwargs["MetricData"]) for call in cloudwatch.put_metric_data.call_args_list]
        assert sizes == [20, 20, 5]

    def test_failure_does_not_raise(self, cloudwatch):
        cloudwatch.put_metric_data.side_effect = RuntimeError("throttled")

        emit_batch_metrics([{"metric_name": "QueueMessagesFailed", "value": 1}])
