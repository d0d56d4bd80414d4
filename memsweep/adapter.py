from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from .errors import ConfigurationUpdateError, InvocationError
from .stats import round_half_up

LOGGER = logging.getLogger("memsweep.adapter")

REPORT_PATTERN = re.compile(
    r"REPORT RequestId: (?P<request_id>[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})"
    r"\s+Duration: (?P<duration>[0-9.]+) ms"
    r"\s+Billed Duration: (?P<billed>\d+) ms"
    r"\s+Memory Size: (?P<memory>\d+) MB"
    r"\s+Max Memory Used: (?P<max_memory>\d+) MB"
)


class InvocationAdapter(ABC):
    """Transport to the remote unit under test.

    The sweep only ever reads and writes the memory size and performs single
    invocations; timeouts and retries are the adapter's business.
    """

    @abstractmethod
    def get_configuration(self, function_name: str) -> int:
        """Return the memory size currently allocated to the function."""

    @abstractmethod
    def set_configuration(self, function_name: str, memory: int) -> None:
        """Allocate ``memory`` to the function, raising ConfigurationUpdateError on rejection."""

    @abstractmethod
    def invoke(self, function_name: str, payload: Any) -> int | None:
        """Invoke once and return the reported duration in ms, or None if unavailable.

        Transport or remote failures raise InvocationError.
        """


def parse_report_duration(log: str) -> int | None:
    match = REPORT_PATTERN.search(log)
    if match is None:
        return None
    return round_half_up(float(match.group("duration")))


def decode_tail_log(log_result: str | None) -> str:
    if not log_result:
        return ""
    try:
        return base64.b64decode(log_result).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        LOGGER.warning("Discarding undecodable invocation log")
        return ""


def create_lambda_client(region: str | None = None, read_timeout: float | None = None):
    config = Config(read_timeout=read_timeout) if read_timeout else None
    return boto3.client("lambda", region_name=region, config=config)


class LambdaAdapter(InvocationAdapter):
    """Invocation adapter backed by the AWS Lambda API."""

    def __init__(self, client, wait_for_update: bool = True) -> None:
        self._client = client
        self._wait_for_update = wait_for_update

    def get_configuration(self, function_name: str) -> int:
        response = self._client.get_function_configuration(FunctionName=function_name)
        return int(response["MemorySize"])

    def set_configuration(self, function_name: str, memory: int) -> None:
        LOGGER.debug("Updating %s to %d MB", function_name, memory)
        try:
            self._client.update_function_configuration(
                FunctionName=function_name,
                MemorySize=memory,
            )
            if self._wait_for_update:
                self._client.get_waiter("function_updated").wait(FunctionName=function_name)
        except (ClientError, BotoCoreError, WaiterError) as exc:
            raise ConfigurationUpdateError(
                f"failed to set memory of {function_name} to {memory} MB: {exc}"
            ) from exc

    def invoke(self, function_name: str, payload: Any) -> int | None:
        try:
            response = self._client.invoke(
                FunctionName=function_name,
                Payload=json.dumps(payload).encode("utf-8"),
                LogType="Tail",
            )
        except (ClientError, BotoCoreError) as exc:
            raise InvocationError(f"invocation of {function_name} failed: {exc}") from exc

        function_error = response.get("FunctionError")
        if function_error:
            raise InvocationError(f"{function_name} returned {function_error} error")

        duration = parse_report_duration(decode_tail_log(response.get("LogResult")))
        if duration is None:
            LOGGER.debug("No REPORT line in tail log of %s", function_name)
        return duration


__all__ = [
    "InvocationAdapter",
    "LambdaAdapter",
    "REPORT_PATTERN",
    "create_lambda_client",
    "decode_tail_log",
    "parse_report_duration",
]
