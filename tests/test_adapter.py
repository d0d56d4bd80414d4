import base64
import json
from unittest import mock

import pytest
from botocore.exceptions import ClientError, WaiterError

from memsweep.adapter import LambdaAdapter, decode_tail_log, parse_report_duration
from memsweep.errors import ConfigurationUpdateError, InvocationError

REQUEST_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"
REPORT_LINE = (
    f"REPORT RequestId: {REQUEST_ID}\tDuration: 123.50 ms\tBilled Duration: 124 ms\t"
    "Memory Size: 256 MB\tMax Memory Used: 71 MB\t\n"
)


def tail(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "ResourceConflictException", "Message": "busy"}}, operation)


class TestParseReport:
    def test_duration_rounded_half_up(self) -> None:
        log = f"START RequestId: {REQUEST_ID}\nEND RequestId: {REQUEST_ID}\n{REPORT_LINE}"
        assert parse_report_duration(log) == 124

    def test_report_with_init_duration(self) -> None:
        log = REPORT_LINE.rstrip("\t\n") + "\tInit Duration: 180.22 ms\t\n"
        assert parse_report_duration(log) == 124

    def test_missing_report(self) -> None:
        assert parse_report_duration("hello world") is None

    def test_decode_tail_log(self) -> None:
        assert decode_tail_log(tail("abc")) == "abc"
        assert decode_tail_log(None) == ""
        assert decode_tail_log("!!!") == ""


class TestLambdaAdapter:
    def test_get_configuration(self) -> None:
        client = mock.Mock()
        client.get_function_configuration.return_value = {"MemorySize": 512}
        assert LambdaAdapter(client).get_configuration("fn") == 512
        client.get_function_configuration.assert_called_once_with(FunctionName="fn")

    def test_set_configuration_waits_for_update(self) -> None:
        client = mock.Mock()
        LambdaAdapter(client).set_configuration("fn", 1024)
        client.update_function_configuration.assert_called_once_with(
            FunctionName="fn", MemorySize=1024
        )
        client.get_waiter.assert_called_once_with("function_updated")
        client.get_waiter.return_value.wait.assert_called_once_with(FunctionName="fn")

    def test_set_configuration_rejected(self) -> None:
        client = mock.Mock()
        client.update_function_configuration.side_effect = client_error("UpdateFunctionConfiguration")
        with pytest.raises(ConfigurationUpdateError, match="1024"):
            LambdaAdapter(client).set_configuration("fn", 1024)

    def test_set_configuration_waiter_failure(self) -> None:
        client = mock.Mock()
        client.get_waiter.return_value.wait.side_effect = WaiterError(
            name="FunctionUpdated", reason="Max attempts exceeded", last_response={}
        )
        with pytest.raises(ConfigurationUpdateError):
            LambdaAdapter(client).set_configuration("fn", 2048)

    def test_invoke_returns_reported_duration(self) -> None:
        client = mock.Mock()
        client.invoke.return_value = {"StatusCode": 200, "LogResult": tail(REPORT_LINE)}

        assert LambdaAdapter(client).invoke("fn", {"index": 1}) == 124
        client.invoke.assert_called_once_with(
            FunctionName="fn",
            Payload=json.dumps({"index": 1}).encode("utf-8"),
            LogType="Tail",
        )

    def test_invoke_without_report(self) -> None:
        client = mock.Mock()
        client.invoke.return_value = {"StatusCode": 200, "LogResult": tail("no timing")}
        assert LambdaAdapter(client).invoke("fn", None) is None

    def test_invoke_transport_error(self) -> None:
        client = mock.Mock()
        client.invoke.side_effect = client_error("Invoke")
        with pytest.raises(InvocationError):
            LambdaAdapter(client).invoke("fn", None)

    def test_invoke_function_error(self) -> None:
        client = mock.Mock()
        client.invoke.return_value = {
            "StatusCode": 200,
            "FunctionError": "Unhandled",
            "LogResult": tail(REPORT_LINE),
        }
        with pytest.raises(InvocationError, match="Unhandled"):
            LambdaAdapter(client).invoke("fn", None)
