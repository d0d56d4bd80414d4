import json

import pytest

from memsweep.config import (
    ConstantPayload,
    IndexedPayload,
    PayloadProvider,
    RunConfiguration,
    as_payload_provider,
    load_payload,
    parse_int_list,
)
from memsweep.errors import ConfigurationError


class TestRunConfiguration:
    def test_defaults(self) -> None:
        config = RunConfiguration("fn")
        assert config.memory_steps == (128, 256, 512, 1024, 1536, 2048, 3008)
        assert config.percentiles == (50, 66, 75, 80, 90, 95, 98, 99)
        assert config.serialized
        assert config.payload.resolve(3) is None

    def test_steps_normalised_to_tuple(self) -> None:
        assert RunConfiguration("fn", memory_steps=[512, 128]).memory_steps == (512, 128)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"repeats": 0},
            {"concurrency": 0},
            {"delay_ms": -1},
            {"memory_steps": (128, 0)},
            {"percentiles": (50, 50)},
            {"percentiles": (150,)},
            {"function_name": ""},
        ],
    )
    def test_invalid_values(self, kwargs) -> None:
        kwargs.setdefault("function_name", "fn")
        with pytest.raises(ConfigurationError):
            RunConfiguration(**kwargs)

    def test_callable_payload_becomes_indexed(self) -> None:
        config = RunConfiguration("fn", payload=lambda i: {"n": i * 2})
        assert isinstance(config.payload, IndexedPayload)
        assert config.payload.resolve(4) == {"n": 8}

    def test_describe(self) -> None:
        text = RunConfiguration("fn", memory_steps=(128,), repeats=5).describe()
        assert "steps=[128]" in text and "repeats=5" in text


def test_as_payload_provider_constant() -> None:
    provider = as_payload_provider({"a": 1})
    assert provider == ConstantPayload({"a": 1})
    assert provider.resolve(0) == provider.resolve(9) == {"a": 1}


@pytest.mark.parametrize(
    "raw,expected", [("128, 256,512", (128, 256, 512)), ("", ()), ("64,", (64,))]
)
def test_parse_int_list(raw: str, expected: tuple[int, ...]) -> None:
    assert parse_int_list(raw, "step") == expected


def test_parse_int_list_rejects_garbage() -> None:
    with pytest.raises(ConfigurationError, match="'abc'"):
        parse_int_list("128,abc", "step")


class TestLoadPayload:
    def test_inline(self) -> None:
        assert load_payload('{"k": [1, 2]}', None).value == {"k": [1, 2]}

    def test_file(self, tmp_path) -> None:
        path = tmp_path / "payload.json"
        path.write_text(json.dumps({"from": "file"}), encoding="utf-8")
        assert load_payload(None, str(path)).value == {"from": "file"}

    def test_missing_is_null(self) -> None:
        assert load_payload(None, None).value is None

    def test_invalid_json(self) -> None:
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_payload("{oops", None)

    def test_both_sources_rejected(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError):
            load_payload("{}", str(tmp_path / "x.json"))


def test_payload_provider_is_abstract() -> None:
    with pytest.raises(TypeError):
        PayloadProvider()
