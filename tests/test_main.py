import io
import logging
import signal

import pytest

from logtrains import main as cli
from logtrains.config import RootConfig
from logtrains.engines.base import Device, GenerationOutput
from logtrains.errors import InferenceError, SinkError


def test_read_input_from_file(tmp_path):
    path = tmp_path / "build.log"
    path.write_text("error: linker failed\n", encoding="utf-8")
    assert cli.read_input(str(path)) == "error: linker failed\n"


def test_read_input_from_stdin():
    assert cli.read_input(None, stdin=io.StringIO("piped")) == "piped"


def test_empty_input_exits_before_loading(tmp_path, monkeypatch):
    path = tmp_path / "empty.log"
    path.write_text("   \n", encoding="utf-8")

    def _no_load(*args, **kwargs):
        raise AssertionError("model must not load")

    monkeypatch.setattr(cli.Engine, "load", _no_load)
    args = cli.parse_args([str(path), "--config", str(tmp_path / "absent.yaml")])
    assert cli.run(args) == cli.EXIT_USAGE


def test_unknown_preset_is_a_usage_error(tmp_path):
    args = cli.parse_args(["--config", str(tmp_path / "absent.yaml"), "--model", "nope"])
    assert cli.run(args) == cli.EXIT_USAGE


def test_overrides_replace_file_values():
    cfg = RootConfig()
    cfg.app.model = "preset"
    cfg.app.tokenizer_fallbacks = ["org/base"]
    args = cli.parse_args(["--model-repo", "org/other-GGUF", "--model-file", "w.gguf", "--device", "cpu", "--offline"])
    cfg = cli.apply_overrides(cfg, args)
    assert cfg.app.model is None
    assert cfg.app.model_repo == "org/other-GGUF"
    assert cfg.app.model_file == "w.gguf"
    assert cfg.app.tokenizer_fallbacks is None
    assert cfg.app.device == "cpu"
    assert cfg.app.offline_mode is True


class _ClosedStream(io.StringIO):
    def write(self, text):
        raise BrokenPipeError("closed")


def test_stdout_sink_counts_and_wraps_errors():
    out = io.StringIO()
    sink = cli.StdoutSink(out)
    sink("a")
    sink("b")
    assert out.getvalue() == "ab"
    assert sink.emitted == 2
    with pytest.raises(SinkError):
        cli.StdoutSink(_ClosedStream())("x")




class _FakeEngine:
    device = Device.CPU

    def __init__(self, explain):
        self._explain = explain
        self.unloaded = False

    def explain(self, log_text, sink, template, cancel):
        return self._explain(sink, cancel)

    def unload(self):
        self.unloaded = True


def _output(stop_signal="eos", generated=2):
    return GenerationOutput(
        text="ok",
        prompt_tokens=10,
        input_tokens=10,
        generated_tokens=generated,
        decode_time_s=0.5,
        stop_signal=stop_signal,
        truncated=False,
    )


def _run_with(tmp_path, monkeypatch, explain, *extra):
    log = tmp_path / "build.log"
    log.write_text("error: linker failed\n", encoding="utf-8")
    engine = _FakeEngine(explain)
    monkeypatch.setattr(cli.Engine, "load", lambda *args, **kwargs: engine)
    args = cli.parse_args([str(log), "--config", str(tmp_path / "absent.yaml"), *extra])
    return cli.run(args), engine


def test_failure_mid_generation_keeps_streamed_text(tmp_path, monkeypatch, capsys, caplog):
    def _explain(sink, cancel):
        sink("Disk ")
        sink("full")
        raise InferenceError("forward pass failed")

    with caplog.at_level(logging.ERROR, logger="logtrains"):
        code, engine = _run_with(tmp_path, monkeypatch, _explain)

    assert code == cli.EXIT_GENERATION
    assert "Disk full" in capsys.readouterr().out
    assert "Inference failed after 2 tokens" in caplog.text
    assert engine.unloaded is True


def test_interrupt_cancels_generation(tmp_path, monkeypatch):
    handler_before = signal.getsignal(signal.SIGINT)

    def _explain(sink, cancel):
        sink("partial")
        signal.raise_signal(signal.SIGINT)
        assert cancel.is_set()
        return _output(stop_signal="cancelled", generated=1)

    code, engine = _run_with(tmp_path, monkeypatch, _explain)

    assert code == cli.EXIT_INTERRUPTED
    assert engine.unloaded is True
    assert signal.getsignal(signal.SIGINT) is handler_before


def test_successful_run_with_stats(tmp_path, monkeypatch, capsys):
    def _explain(sink, cancel):
        sink("ok")
        return _output()

    code, _ = _run_with(tmp_path, monkeypatch, _explain, "--stats")

    captured = capsys.readouterr()
    assert code == 0
    assert "=== Explanation ===" in captured.out
    assert "ok" in captured.out
    assert "generated_tokens=2" in captured.err
    assert "tokens_per_s=4.00" in captured.err
    assert "vram_peak=n/a" in captured.err
