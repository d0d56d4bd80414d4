from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import TextIO

from botocore.exceptions import BotoCoreError, ClientError

from .adapter import InvocationAdapter, LambdaAdapter, create_lambda_client
from .charts import render_report_chart
from .config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_DELAY_MS,
    DEFAULT_MEMORY_STEPS,
    DEFAULT_REPEATS,
    RunConfiguration,
    load_payload,
    parse_int_list,
)
from .errors import ConfigurationError, MemsweepError
from .events import (
    EventBus,
    FinishEvent,
    InvokeEvent,
    ResultEvent,
    StartEvent,
    StepEvent,
    SweepEvent,
    WarmupEvent,
)
from .report import format_report, write_report
from .stats import DEFAULT_PERCENTILES
from .sweep import RunReport, SweepController

LOGGER = logging.getLogger("memsweep")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    env = os.environ
    parser = argparse.ArgumentParser(
        description="Sweep a Lambda function across memory sizes and report latency"
    )
    parser.add_argument(
        "--function-name",
        default=env.get("MEMSWEEP_FUNCTION_NAME"),
        help="Name or ARN of the function under test",
    )
    parser.add_argument(
        "--region", default=env.get("AWS_REGION"), help="AWS region of the function"
    )
    parser.add_argument(
        "--steps",
        default=env.get("MEMSWEEP_STEPS", ",".join(map(str, DEFAULT_MEMORY_STEPS))),
        help="Comma-separated memory sizes (MB) to sweep, in order",
    )
    parser.add_argument(
        "--repeats",
        type=int,
        default=int(env.get("MEMSWEEP_REPEATS", DEFAULT_REPEATS)),
        help="Timed invocations per memory size",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=int(env.get("MEMSWEEP_CONCURRENCY", DEFAULT_CONCURRENCY)),
        help="Maximum invocations in flight at once",
    )
    parser.add_argument(
        "--warmup",
        action=argparse.BooleanOptionalAction,
        default=env.get("MEMSWEEP_WARMUP", "").lower() in {"1", "true", "yes"},
        help="Send one discarded invocation before each cycle (concurrency 1 only)",
    )
    parser.add_argument(
        "--delay",
        type=int,
        default=int(env.get("MEMSWEEP_DELAY_MS", DEFAULT_DELAY_MS)),
        help="Milliseconds to wait before each invocation when concurrency is 1",
    )
    parser.add_argument(
        "--payload",
        default=env.get("MEMSWEEP_PAYLOAD"),
        help="JSON payload sent with every invocation",
    )
    parser.add_argument(
        "--payload-file",
        default=env.get("MEMSWEEP_PAYLOAD_FILE"),
        help="File holding the JSON payload",
    )
    parser.add_argument(
        "--percentiles",
        default=env.get("MEMSWEEP_PERCENTILES", ",".join(map(str, DEFAULT_PERCENTILES))),
        help="Comma-separated percentile ranks to report",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=float(env.get("MEMSWEEP_READ_TIMEOUT", "0")) or None,
        help="Seconds to wait for an invocation response before failing",
    )
    parser.add_argument(
        "--output-dir",
        default=env.get("MEMSWEEP_OUTPUT_DIR"),
        help="Directory to store the CSV/JSON report and chart",
    )
    parser.add_argument(
        "--chart",
        action="store_true",
        help="Render a latency chart into the output directory",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the planned sweep without invoking anything",
    )
    parser.add_argument(
        "--log-level",
        default=env.get("MEMSWEEP_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    parser.add_argument(
        "--log-file",
        default=env.get("MEMSWEEP_LOG_FILE"),
        help="Optional file receiving a copy of the log",
    )
    return parser.parse_args(argv)


def build_configuration(args: argparse.Namespace) -> RunConfiguration:
    if not args.function_name:
        raise ConfigurationError("a function name is required (--function-name)")
    return RunConfiguration(
        function_name=args.function_name,
        memory_steps=parse_int_list(args.steps, "memory step"),
        repeats=args.repeats,
        concurrency=args.concurrency,
        warmup=args.warmup,
        delay_ms=args.delay,
        payload=load_payload(args.payload, args.payload_file),
        percentiles=parse_int_list(args.percentiles, "percentile"),
    )


def setup_logging(level: str, log_file: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="w", encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logging.getLogger().addHandler(handler)


class ProgressPrinter:
    """Writes a line per sweep event, invocations as a live dot stream."""

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        self._stream = stream

    def __call__(self, event: SweepEvent) -> None:
        if isinstance(event, StartEvent):
            self._line(f"original memory: {event.original_memory} MB")
        elif isinstance(event, StepEvent):
            self._line(f"{event.memory} MB ", newline=False)
        elif isinstance(event, WarmupEvent):
            self._write("w")
        elif isinstance(event, InvokeEvent):
            self._write("." if event.duration is not None else "?")
        elif isinstance(event, ResultEvent):
            report = event.report
            self._line(f" min={report.min}ms avg={report.avg}ms max={report.max}ms")
        elif isinstance(event, FinishEvent):
            self._line("memory restored")

    def _line(self, text: str, newline: bool = True) -> None:
        self._write(text + ("\n" if newline else ""))

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()


def execute(
    config: RunConfiguration,
    adapter: InvocationAdapter,
    output_dir: Path | None = None,
    chart: bool = False,
    progress: TextIO | None = sys.stderr,
) -> int:
    events = EventBus()
    if progress is not None:
        events.subscribe(ProgressPrinter(progress))

    controller = SweepController(adapter, events=events)
    exit_code = 0
    try:
        report: RunReport = controller.run(config)
    except MemsweepError as exc:
        LOGGER.error("Sweep of %s failed: %s", config.function_name, exc)
        report = exc.partial_report or {}
        exit_code = 1

    print(format_report(report))

    if output_dir is not None and report:
        write_report(report, output_dir, label=_artifact_label(config))
        if chart:
            render_report_chart(
                report,
                output_dir / f"{_artifact_label(config)}.png",
                title=f"{config.function_name} latency by memory size",
            )
    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        config = build_configuration(args)
    except ConfigurationError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    LOGGER.info("Sweep plan: %s", config.describe())
    if args.dry_run:
        _print_plan(config)
        return 0

    output_dir = Path(args.output_dir) if args.output_dir else None
    try:
        adapter = LambdaAdapter(create_lambda_client(args.region, args.read_timeout))
        return execute(config, adapter, output_dir=output_dir, chart=args.chart)
    except (BotoCoreError, ClientError) as exc:
        LOGGER.error("AWS request failed: %s", exc)
        return 1


def _artifact_label(config: RunConfiguration) -> str:
    name = config.function_name.rsplit(":", 1)[-1]
    return f"{name}__memory-sweep"


def _print_plan(config: RunConfiguration) -> None:
    print(f"Function: {config.function_name}")
    for memory in config.memory_steps:
        warmup = " + warmup" if config.warmup and config.serialized else ""
        print(
            f"  - {memory} MB: {config.repeats} invocation(s){warmup}, "
            f"concurrency={config.concurrency}, delay={config.delay_ms}ms"
        )
    print(f"Percentiles: {json.dumps(list(config.percentiles))}")


if __name__ == "__main__":
    sys.exit(main())
