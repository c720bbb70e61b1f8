from __future__ import annotations

import argparse
from typing import Optional

import boto3


def _alarm_name(prefix: str, name: str, queue_name: Optional[str]) -> str:
    if queue_name:
        return f"{prefix}-{queue_name}-{name}"
    return f"{prefix}-{name}"


def _dimensions(queue_name: Optional[str]) -> list[dict]:
    if not queue_name:
        return []
    return [{"Name": "queue_name", "Value": queue_name}]


def _alarm_actions(topic_arn: Optional[str]) -> list[str]:
    if not topic_arn:
        return []
    return [topic_arn]


def main() -> None:
    parser = argparse.ArgumentParser(description="Create CloudWatch alarms for the queue lifecycle worker")
    parser.add_argument("--alarm-prefix", default="queue-lifecycle", help="Alarm name prefix")
    parser.add_argument(
        "--namespace",
        default="QueueLifecycle",
        help="CloudWatch namespace for custom metrics",
    )
    parser.add_argument("--sns-topic-arn", help="SNS topic ARN for alarm actions")
    parser.add_argument("--queue-name", help="Optional source queue for per-queue failure alarms")
    parser.add_argument(
        "--failure-threshold",
        type=int,
        default=5,
        help="Failed messages per period before alarming",
    )
    parser.add_argument("--failure-period", type=int, default=300, help="Period in seconds for failure alarm")
    parser.add_argument("--dlq-name", help="Dead-letter queue name for DLQ depth alarm")
    parser.add_argument("--dlq-depth-threshold", type=int, default=1, help="DLQ depth that triggers the alarm")
    parser.add_argument("--dlq-depth-period", type=int, default=300, help="Period in seconds for DLQ depth alarm")
    parser.add_argument(
        "--worker-error-threshold",
        type=int,
        default=5,
        help="Worker error count threshold",
    )
    parser.add_argument(
        "--worker-error-period",
        type=int,
        default=300,
        help="Period in seconds for worker error alarm",
    )

    args = parser.parse_args()

    cloudwatch = boto3.client("cloudwatch")
    alarm_actions = _alarm_actions(args.sns_topic_arn)

    cloudwatch.put_metric_alarm(
        AlarmName=_alarm_name(args.alarm_prefix, "message-failures", args.queue_name),
        AlarmDescription="Triggers when processed messages keep failing into the DLQ.",
        Namespace=args.namespace,
        MetricName="MessageFailed",
        Dimensions=_dimensions(args.queue_name),
        Statistic="Sum",
        Period=args.failure_period,
        EvaluationPeriods=1,
        Threshold=args.failure_threshold,
        ComparisonOperator="GreaterThanOrEqualToThreshold",
        TreatMissingData="notBreaching",
        AlarmActions=alarm_actions,
        OKActions=alarm_actions,
    )

    if args.dlq_name:
        cloudwatch.put_metric_alarm(
            AlarmName=_alarm_name(args.alarm_prefix, "dlq-depth", args.dlq_name),
            AlarmDescription="Triggers when messages accumulate in the dead-letter queue.",
            Namespace="AWS/SQS",
            MetricName="ApproximateNumberOfMessagesVisible",
            Dimensions=[{"Name": "QueueName", "Value": args.dlq_name}],
            Statistic="Maximum",
            Period=args.dlq_depth_period,
            EvaluationPeriods=1,
            Threshold=args.dlq_depth_threshold,
            ComparisonOperator="GreaterThanOrEqualToThreshold",
            TreatMissingData="notBreaching",
            AlarmActions=alarm_actions,
            OKActions=alarm_actions,
        )

    cloudwatch.put_metric_alarm(
        AlarmName=_alarm_name(args.alarm_prefix, "worker-error-rate", None),
        AlarmDescription="Triggers on elevated receive, delete or visibility errors.",
        Namespace=args.namespace,
        MetricName="WorkerError",
        Dimensions=[],
        Statistic="Sum",
        Period=args.worker_error_period,
        EvaluationPeriods=1,
        Threshold=args.worker_error_threshold,
        ComparisonOperator="GreaterThanOrEqualToThreshold",
        TreatMissingData="notBreaching",
        AlarmActions=alarm_actions,
        OKActions=alarm_actions,
    )


if __name__ == "__main__":
    main()
