"""LogTrains command-line entrypoint."""
from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from typing import TextIO

from .config import RootConfig, default_config_path, load_root_config
from .decoder import StopSignal
from .devices import parse_preference
from .engine import Engine
from .errors import AssetResolutionError, ConfigError, LogTrainsError, SinkError
from .metrics.instrumentation import Instrumentation
from .prompts import load_template
from .registry import ModelRegistry

logger = logging.getLogger("logtrains")

EXIT_USAGE = 1
EXIT_ASSETS = 2
EXIT_GENERATION = 3
EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="logtrains",
        description="Explain captured log output with a local language model.",
    )
    parser.add_argument("file", nargs="?", metavar="FILE", help="log file to read (stdin when omitted)")
    parser.add_argument("--config", help=f"config file (default: {default_config_path()})")
    parser.add_argument("--model", help="model preset key from the config file")
    parser.add_argument("--model-repo", help="model repository id on the Hugging Face Hub")
    parser.add_argument("--model-file", help="GGUF weight file inside the model repository")
    parser.add_argument("--update-model", action="store_true", help="re-download model files")
    parser.add_argument("--template", help="prompt template file containing {{LOG_TEXT}}")
    parser.add_argument("--device", choices=["auto", "cuda", "mps", "cpu"])
    parser.add_argument("--offline", action="store_true", help="only use locally cached files")
    parser.add_argument("--stats", action="store_true", help="print token and memory statistics")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def apply_overrides(cfg: RootConfig, args: argparse.Namespace) -> RootConfig:
    if args.model:
        cfg.app.model = args.model
    if args.model_repo:
        cfg.app.model = None
        cfg.app.model_repo = args.model_repo
        # Fallbacks configured for another repo do not apply.
        cfg.app.tokenizer_fallbacks = None
    if args.model_file:
        cfg.app.model_file = args.model_file
    if args.template:
        cfg.app.prompt_template = args.template
    if args.device:
        cfg.app.device = args.device
    if args.offline:
        cfg.app.offline_mode = True
    return cfg


def ensure_offline(offline_mode: bool) -> None:
    if offline_mode:
        os.environ.setdefault("HF_HUB_OFFLINE", "1")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def read_input(path: str | None, stdin: TextIO | None = None) -> str:
    if path:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            return handle.read()
    stdin = stdin or sys.stdin
    if stdin.isatty():
        print("Listening on stdin... (Ctrl+D to finish)", file=sys.stderr)
    return stdin.read()


class StdoutSink:
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout
        self.emitted = 0

    def __call__(self, text: str) -> None:
        try:
            self._stream.write(text)
            self._stream.flush()
        except OSError as exc:
            raise SinkError(f"cannot write to output: {exc}") from exc
        self.emitted += 1


def run(args: argparse.Namespace) -> int:
    try:
        cfg = apply_overrides(load_root_config(args.config), args)
        gen = cfg.generation_defaults.to_spec()
        model = ModelRegistry(cfg.models).resolve(cfg.app)
        preference = parse_preference(cfg.app.device)
        template = load_template(cfg.app.prompt_template) if cfg.app.prompt_template else None
    except (ConfigError, KeyError, ValueError, OSError) as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_USAGE

    try:
        log_text = read_input(args.file)
    except OSError as exc:
        logger.error("Failed to read input: %s", exc)
        return EXIT_USAGE
    if not log_text.strip():
        logger.error("No input provided. Pipe logs or provide a filename.")
        return EXIT_USAGE

    ensure_offline(cfg.app.offline_mode)
    logger.info("Initializing %s (first run downloads the model)", model.repo_id)
    try:
        engine = Engine.load(
            model.to_asset_spec(),
            gen,
            preference=preference,
            force_download=args.update_model,
        )
    except AssetResolutionError as exc:
        logger.error("Failed to load model: %s", exc)
        logger.error("Check your internet connection or model name.")
        return EXIT_ASSETS
    except LogTrainsError as exc:
        logger.error("Failed to load model: %s", exc)
        return EXIT_ASSETS

    sink = StdoutSink()
    cancel = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    print("=== Explanation ===", flush=True)
    try:
        if args.stats:
            instr = Instrumentation(cfg.app.sampling_interval_ms, engine.device, cfg.app.gpu_index)
            measured = instr.measure_generate(lambda: engine.explain(log_text, sink, template, cancel))
            output = measured.output
        else:
            measured = None
            output = engine.explain(log_text, sink, template, cancel)
    except LogTrainsError as exc:
        print()
        logger.error("Inference failed after %d tokens: %s", sink.emitted, exc)
        return EXIT_GENERATION
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        engine.unload()

    print("\n===================", flush=True)
    if output.stop_signal == StopSignal.CANCELLED.value:
        logger.warning("Interrupted after %d tokens", sink.emitted)
        return EXIT_INTERRUPTED
    if output.truncated:
        logger.info("Log was truncated from %d to %d tokens", output.prompt_tokens, output.input_tokens)
    if measured is not None:
        print(measured.summary(), file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.verbose)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
