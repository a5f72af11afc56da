"""Compute device selection."""
from __future__ import annotations

import logging
from typing import Callable, Mapping, Sequence

from .engines.base import Device

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCE: tuple[Device, ...] = (Device.CUDA, Device.MPS, Device.CPU)

Probe = Callable[[], bool]


def _cuda_available() -> bool:
    import torch

    return torch.cuda.is_available()


def _mps_available() -> bool:
    import torch

    backend = getattr(torch.backends, "mps", None)
    return backend is not None and backend.is_available()


def _init_device(device: Device) -> None:
    import torch

    # Allocate a scalar so a broken driver fails here rather than mid-load.
    torch.zeros(1, device=device.to_torch())


DEFAULT_PROBES: dict[Device, Probe] = {
    Device.CUDA: _cuda_available,
    Device.MPS: _mps_available,
}


def parse_preference(value: str | None) -> tuple[Device, ...]:
    if value is None or value == "auto":
        return DEFAULT_PREFERENCE
    try:
        pinned = Device(value)
    except ValueError:
        choices = ", ".join(["auto"] + [d.value for d in Device])
        raise ValueError(f"Unknown device {value!r}. Available: {choices}") from None
    if pinned is Device.CPU:
        return (Device.CPU,)
    return (pinned, Device.CPU)


def select_device(
    preference: Sequence[Device] = DEFAULT_PREFERENCE,
    probes: Mapping[Device, Probe] | None = None,
    init: Callable[[Device], None] | None = None,
    log: logging.Logger | None = None,
) -> Device:
    """Return the first usable device in preference order.

    A detected accelerator that fails to initialize is reported at INFO
    level and skipped. CPU needs no probe and always succeeds.
    """
    log = log or logger
    probes = DEFAULT_PROBES if probes is None else probes
    init = init or _init_device

    for device in preference:
        if device is Device.CPU:
            break
        probe = probes.get(device)
        if probe is None or not probe():
            continue
        try:
            init(device)
        except Exception as exc:  # noqa: BLE001
            log.info("%s device unavailable (%s), falling back", device.value, exc)
            continue
        log.info("Using device: %s", device.value)
        return device

    log.info("Using device: %s", Device.CPU.value)
    return Device.CPU
