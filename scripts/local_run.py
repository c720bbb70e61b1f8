#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import threading

from queue_lifecycle.app.config.loader import load_consumer_config
from queue_lifecycle.app.models.config import ConsumerConfig
from queue_lifecycle.scripts.worker import QueueWorker, build_controller

OPERATIONS = ["list", "send", "count", "drain", "mark-read", "retry", "process", "poll"]


def parse_attributes(values: list[str]) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for value in values:
        if "=" not in value:
            raise ValueError("attribute must be name=value")
        name, attribute = value.split("=", 1)
        mapping[name] = attribute
    return mapping


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one queue lifecycle operation")
    parser.add_argument("operation", choices=OPERATIONS)
    parser.add_argument("--queue", help="Source queue name")
    parser.add_argument("--dlq", help="Dead-letter queue name")
    parser.add_argument("--config", help="Path to consumer config YAML")
    parser.add_argument("--endpoint-url", help="Queue service endpoint, e.g. a local emulator")
    parser.add_argument("--region", help="Queue service region")
    parser.add_argument("--body", help="Message body for send")
    parser.add_argument(
        "--attribute",
        action="append",
        default=[],
        help="Message attribute for send (name=value)",
    )
    parser.add_argument("--poll-seconds", type=float, default=60.0, help="How long to poll before stopping")
    args = parser.parse_args()

    config = load_consumer_config(args.config) if args.config else ConsumerConfig()
    overrides = {key: value for key, value in {"region": args.region, "endpoint_url": args.endpoint_url}.items() if value}
    if overrides:
        config = config.model_copy(update=overrides)
    controller = build_controller(config)

    if args.operation == "list":
        print(json.dumps(controller.list_queues()))
        return
    if not args.queue:
        raise ValueError("--queue is required")
    if args.operation in {"retry", "process"} and not args.dlq:
        raise ValueError("--dlq is required")

    if args.operation == "send":
        if not args.body:
            raise ValueError("--body is required")
        print(controller.send_message(args.queue, args.body, parse_attributes(args.attribute) or None))
    elif args.operation == "count":
        print(controller.get_message_count(args.queue))
    elif args.operation == "drain":
        result = controller.receive_once(args.queue)
        if not result.queue_valid:
            raise SystemExit(f"Queue {args.queue} is not valid")
        print(json.dumps([message.body for message in result.messages]))
    elif args.operation == "mark-read":
        print(controller.mark_as_read(args.queue).describe())
    elif args.operation == "retry":
        print(controller.retry_and_redirect(args.queue, args.dlq).describe())
    elif args.operation == "process":
        print(controller.process_and_handle_failures(args.queue, args.dlq).describe())
    else:
        worker = QueueWorker(controller, queue_name=args.queue, dlq_name=args.dlq)
        worker.start()
        threading.Event().wait(args.poll_seconds)
        worker.stop()
        print(f"handled {worker.handled} message(s)")


if __name__ == "__main__":
    main()
