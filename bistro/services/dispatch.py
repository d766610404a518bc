"""Send formatted receipts to a printer.

Printing is best-effort: ``PrintDispatcher.dispatch`` makes one attempt,
logs what went wrong and returns ``False`` instead of raising, so the order
or bill that triggered the print is never rolled back because of paper.

Target addresses:
  tcp://10.0.0.5:9100   ESC/POS over the network (python-escpos)
  10.0.0.5              same, default port 9100
  http://host/agent     JSON instruction stream POSTed to a local print agent
  console://            rendered into the log (dev)
"""
import logging
from dataclasses import dataclass
from typing import Callable, Sequence
from urllib.parse import urlsplit

import httpx

from bistro.errors import PrintError, PrintTargetUnconfigured, PrintTransportError
from bistro.services.receipt import (
    RECEIPT_WIDTH, Align, Bold, Cut, NewLine, PrintInstruction, RuleLine, Text, TextSize,
    instruction_to_dict, render_text,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9100


@dataclass(frozen=True)
class PrintTarget:
    address: str | None
    station: str = "KITCHEN"


class PrintDriver:
    """One open connection to a printer. Subclasses implement the primitives."""

    width = RECEIPT_WIDTH

    def apply(self, instr: PrintInstruction) -> None:
        if isinstance(instr, Align):
            self.align(instr.mode)
        elif isinstance(instr, TextSize):
            self.text_size(instr.width, instr.height)
        elif isinstance(instr, Bold):
            self.bold(instr.on)
        elif isinstance(instr, Text):
            self.println(instr.value)
        elif isinstance(instr, NewLine):
            self.println("")
        elif isinstance(instr, RuleLine):
            self.println("-" * self.width)
        elif isinstance(instr, Cut):
            self.cut()
        else:
            raise PrintTransportError(f"unsupported instruction {instr!r}")

    def align(self, mode: str) -> None: ...
    def text_size(self, width: int, height: int) -> None: ...
    def bold(self, on: bool) -> None: ...
    def println(self, text: str) -> None: ...
    def cut(self) -> None: ...

    def execute(self) -> None:
        """Flush anything buffered to the device."""

    def close(self) -> None:
        pass


class EscposDriver(PrintDriver):
    def __init__(self, host: str, port: int = DEFAULT_PORT, timeout: float = 3.0, width: int = RECEIPT_WIDTH):
        from escpos.printer import Network

        self.width = width
        self._p = Network(host, port=port, timeout=timeout)
        try:
            self._p.open()
        except Exception as exc:
            raise PrintTransportError(f"printer {host}:{port} unreachable: {exc}") from exc

    def _io(self, fn, *args, **kw):
        try:
            fn(*args, **kw)
        except Exception as exc:
            raise PrintTransportError(str(exc)) from exc

    def align(self, mode):
        self._io(self._p.set, align=mode)

    def text_size(self, width, height):
        if width == 0 and height == 0:
            self._io(self._p.set, normal_textsize=True)
        else:
            self._io(self._p.set, custom_size=True, width=width + 1, height=height + 1)

    def bold(self, on):
        self._io(self._p.set, bold=on)

    def println(self, text):
        self._io(self._p.text, text + "\n")

    def cut(self):
        self._io(self._p.cut)

    def close(self):
        self._p.close()


class AgentDriver(PrintDriver):
    """Buffers the stream and POSTs it to an HTTP print agent on execute()."""

    def __init__(self, url: str, station: str, timeout: float = 3.0, width: int = RECEIPT_WIDTH):
        self.url = url
        self.station = station
        self.width = width
        self._client = httpx.Client(timeout=timeout)
        self._buf: list[dict] = []

    def apply(self, instr):
        self._buf.append(instruction_to_dict(instr))

    def execute(self):
        payload = {"type": self.station, "width": self.width, "instructions": self._buf}
        try:
            r = self._client.post(self.url, json=payload)
            r.raise_for_status()
        except httpx.HTTPError as exc:
            raise PrintTransportError(f"print agent {self.url}: {exc}") from exc

    def close(self):
        self._client.close()


class ConsoleDriver(PrintDriver):
    def __init__(self, station: str, width: int = RECEIPT_WIDTH):
        self.station = station
        self.width = width
        self._buf: list[PrintInstruction] = []

    def apply(self, instr):
        self._buf.append(instr)

    def execute(self):
        logger.info("%s print\n%s", self.station, render_text(self._buf, self.width))


def open_driver(target: PrintTarget, timeout: float = 3.0, width: int = RECEIPT_WIDTH) -> PrintDriver:
    address = (target.address or "").strip()
    if "://" not in address:
        address = f"tcp://{address}"
    parts = urlsplit(address)

    if parts.scheme in ("http", "https"):
        return AgentDriver(address, target.station, timeout=timeout, width=width)
    if parts.scheme == "console":
        return ConsoleDriver(target.station, width=width)
    if parts.scheme == "tcp":
        if not parts.hostname:
            raise PrintTargetUnconfigured(f"no host in printer address {target.address!r}")
        return EscposDriver(parts.hostname, parts.port or DEFAULT_PORT, timeout=timeout, width=width)
    raise PrintTransportError(f"unsupported printer scheme {parts.scheme!r}")


DriverFactory = Callable[..., PrintDriver]


class PrintDispatcher:
    def __init__(self, driver_factory: DriverFactory = open_driver, timeout: float = 3.0,
                 width: int = RECEIPT_WIDTH):
        self.driver_factory = driver_factory
        self.timeout = timeout
        self.width = width

    def dispatch(self, instructions: Sequence[PrintInstruction], target: PrintTarget | None) -> bool:
        if target is None or not (target.address or "").strip():
            station = target.station if target else "?"
            logger.warning("print skipped: %s", PrintTargetUnconfigured(f"no printer configured for {station}"))
            return False

        driver = None
        try:
            driver = self.driver_factory(target, timeout=self.timeout, width=self.width)
            for instr in instructions:
                driver.apply(instr)
            driver.execute()
        except PrintError as exc:
            logger.warning("%s print to %s failed: %s", target.station, target.address, exc)
            return False
        except Exception as exc:
            logger.warning("%s print to %s failed: %s", target.station, target.address,
                           PrintTransportError(repr(exc)))
            return False
        finally:
            if driver is not None:
                try:
                    driver.close()
                except Exception:
                    logger.debug("closing %s printer failed", target.station, exc_info=True)

        logger.info("%s print sent to %s", target.station, target.address)
        return True
