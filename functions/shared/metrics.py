"""
CloudWatch Metrics Helper

Provides utilities for emitting custom metrics to CloudWatch.
Metrics are best-effort: a failed put never fails the caller.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .aws_clients import get_cloudwatch

logger = logging.getLogger(__name__)

NAMESPACE = os.environ.get("CLOUDWATCH_NAMESPACE", "UsedBy")


def emit_metric(
    metric_name: str,
    value: float = 1.0,
    unit: str = "Count",
    dimensions: Optional[Dict[str, str]] = None,
) -> None:
    """
    Emit a custom metric to CloudWatch.

    Example:
        emit_metric("PipelineRuns", dimensions={"Platform": "npm", "Partial": "false"})
        emit_metric("ScheduledRefreshed", 3)
    """
    try:
        metric_data = {
            "MetricName": metric_name,
            "Value": value,
            "Unit": unit,
            "Timestamp": datetime.now(timezone.utc),
        }

        if dimensions:
            metric_data["Dimensions"] = [
                {"Name": k, "Value": v} for k, v in dimensions.items()
            ]

        get_cloudwatch().put_metric_data(
            Namespace=NAMESPACE,
            MetricData=[metric_data],
        )

        logger.debug(
            f"Emitted metric: {metric_name}={value} {unit}",
            extra={"dimensions": dimensions},
        )

    except Exception as e:
        # Don't fail the Lambda if metrics fail
        logger.warning(f"Failed to emit metric {metric_name}: {e}")


def emit_batch_metrics(metrics: list[Dict[str, Any]]) -> None:
    """
    Emit multiple metrics in as few API calls as possible.

    Args:
        metrics: List of metric dictionaries with keys:
            - metric_name (str)
            - value (float)
            - unit (str, optional)
            - dimensions (dict, optional)
    """
    try:
        metric_data = []

        for metric in metrics:
            data = {
                "MetricName": metric["metric_name"],
                "Value": metric.get("value", 1.0),
                "Unit": metric.get("unit", "Count"),
                "Timestamp": datetime.now(timezone.utc),
            }

            dimensions = metric.get("dimensions")
            if dimensions:
                data["Dimensions"] = [
                    {"Name": k, "Value": v} for k, v in dimensions.items()
                ]

            metric_data.append(data)

        # CloudWatch allows up to 20 metrics per request
        for i in range(0, len(metric_data), 20):
            get_cloudwatch().put_metric_data(
                Namespace=NAMESPACE,
                MetricData=metric_data[i : i + 20],
            )

        logger.debug(f"Emitted {len(metric_data)} metrics in batch")

    except Exception as e:
        logger.warning(f"Failed to emit batch metrics: {e}")
