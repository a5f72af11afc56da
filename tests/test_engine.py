import threading

import pytest


torch = pytest.importorskip("torch", reason="torch not installed")


from fakes import EOS_ID, FakeTokenizer, RecordingSink, ScriptedProvider, letters
from logtrains.engine import Engine
from logtrains.engines.base import Device, GenerationSpec
from logtrains.errors import ConfigError, TokenizationError


GEN = GenerationSpec(max_context=64, generation_reserve=16, system_preserve=8)


def test_explain_streams_and_reports():
    provider = ScriptedProvider(letters("fix") + [EOS_ID])
    engine = Engine(FakeTokenizer(), provider, Device.CPU, GEN)
    sink = RecordingSink()

    output = engine.explain("disk full", sink, template="{{LOG_TEXT}}")

    assert sink.tokens == ["f", "i", "x"]
    assert output.text == "fix"
    assert output.generated_tokens == 3
    assert output.prompt_tokens == output.input_tokens == len("disk full") + 1
    assert output.stop_signal == "eos"
    assert output.truncated is False
    assert provider.calls[0] == (FakeTokenizer().encode("disk full"), 0)


def test_long_log_is_truncated_before_prefill():
    provider = ScriptedProvider([EOS_ID])
    engine = Engine(FakeTokenizer(), provider, Device.CPU, GEN)

    output = engine.explain("x" * 200, RecordingSink(), template="{{LOG_TEXT}}")

    assert output.truncated is True
    assert output.prompt_tokens == 201
    assert output.input_tokens == GEN.input_budget
    assert len(provider.calls[0][0]) == GEN.input_budget


def test_invalid_generation_spec_is_rejected_at_construction():
    bad = GenerationSpec(max_context=64, generation_reserve=16, system_preserve=48)
    with pytest.raises(ConfigError):
        Engine(FakeTokenizer(), ScriptedProvider([]), Device.CPU, bad)


class _BrokenTokenizer(FakeTokenizer):
    def encode(self, text):
        raise UnicodeError("bad bytes")


def test_tokenizer_failure_is_wrapped():
    engine = Engine(_BrokenTokenizer(), ScriptedProvider([]), Device.CPU, GEN)
    with pytest.raises(TokenizationError):
        engine.explain("anything", RecordingSink())


def test_device_is_fixed_for_engine_lifetime():
    engine = Engine(FakeTokenizer(), ScriptedProvider([EOS_ID]), Device.MPS, GEN)
    engine.explain("a", RecordingSink())
    assert engine.device is Device.MPS
    with pytest.raises(AttributeError):
        engine.device = Device.CPU


def test_second_concurrent_generation_is_refused():
    started = threading.Event()
    release = threading.Event()
    errors = []

    class _SlowSink(RecordingSink):
        def __call__(self, text):
            started.set()
            release.wait(timeout=5)
            super().__call__(text)

    engine = Engine(FakeTokenizer(), ScriptedProvider(letters("a") + [EOS_ID]), Device.CPU, GEN)
    worker = threading.Thread(target=lambda: engine.explain("a", _SlowSink()))
    worker.start()
    started.wait(timeout=5)
    try:
        engine.explain("b", RecordingSink())
    except RuntimeError as exc:
        errors.append(exc)
    finally:
        release.set()
        worker.join(timeout=5)
    assert len(errors) == 1


def test_unload_releases_provider():
    provider = ScriptedProvider([])
    Engine(FakeTokenizer(), provider, Device.CPU, GEN).unload()
    assert provider.unloaded is True
