"""Encoding of metrics in the Prometheus text exposition format."""

from __future__ import annotations

import io
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol, Union

CONTENT_TYPE = "text/plain; version=0.0.4"

Number = Union[int, float]


class InstructionHistogram(Protocol):
    """What :meth:`MetricsEncoder.encode_instruction_histogram` needs from a histogram."""

    name: str
    help: str
    sum: float

    def buckets(self) -> Iterable[tuple[float, float]]: ...


@dataclass
class HttpResponse:
    """A minimal HTTP response: status, headers and body."""

    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""


def _format_number(value: Number) -> str:
    """Format a number the way the exposition format expects: no exponent, no '.0'."""
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, int):
        return str(value)
    v = float(value)
    if math.isnan(v):
        return "NaN"
    if math.isinf(v):
        return "inf" if v > 0 else "-inf"
    if v.is_integer():
        if v == 0 and math.copysign(1.0, v) < 0:
            return "-0"
        return str(int(v))
    return format(Decimal(repr(v)), "f")


class MetricsEncoder:
    """Writes metrics, each stamped with a timestamp in milliseconds."""

    def __init__(self, now_millis: int):
        self.now_millis = now_millis
        self._out = io.StringIO()

    def _line(self, text: str) -> None:
        self._out.write(text)
        self._out.write("\n")

    def _encode_header(self, name: str, help: str, typ: str) -> None:
        self._line(f"# HELP {name} {help}")
        self._line(f"# TYPE {name} {typ}")

    def _encode_single_value(self, typ: str, name: str, value: Number, help: str) -> None:
        self._encode_header(name, help, typ)
        self._line(f"{name} {_format_number(value)} {self.now_millis}")

    def encode_gauge(self, name: str, value: float, help: str) -> None:
        """Encode the metadata and value of a gauge."""
        self._encode_single_value("gauge", name, float(value), help)

    def encode_counter(self, name: str, value: int, help: str) -> None:
        """Encode the metadata and value of a counter."""
        self._encode_single_value("counter", name, int(value), help)

    def encode_histogram(
        self,
        name: str,
        buckets: Iterable[tuple[float, float]],
        total_sum: float,
        help: str,
    ) -> None:
        """Encode a histogram from (upper bound, count in bucket) pairs.

        Bucket counts are not cumulative on input; they are accumulated here.
        """
        self._encode_header(name, help, "histogram")
        total = 0.0
        saw_infinity = False
        for bucket, count in buckets:
            total += float(count)
            if bucket == math.inf:
                saw_infinity = True
                label = "+Inf"
            else:
                label = _format_number(float(bucket))
            self._line(
                f'{name}_bucket{{le="{label}"}} {_format_number(total)} {self.now_millis}'
            )
        if not saw_infinity:
            self._line(
                f'{name}_bucket{{le="+Inf"}} {_format_number(total)} {self.now_millis}'
            )
        self._line(f"{name}_sum {_format_number(float(total_sum))} {self.now_millis}")
        self._line(f"{name}_count {_format_number(total)} {self.now_millis}")

    def encode_instruction_histogram(self, histogram: InstructionHistogram) -> None:
        """Encode a histogram object exposing name, help, sum and buckets()."""
        self.encode_histogram(histogram.name, histogram.buckets(), histogram.sum, histogram.help)

    def getvalue(self) -> bytes:
        """Return everything encoded so far as UTF-8 bytes."""
        return self._out.getvalue().encode("utf-8")


def metrics_response(encoder: MetricsEncoder) -> HttpResponse:
    """Wrap the encoded metrics in an HTTP response; encoding failures give a 500."""
    try:
        body = encoder.getvalue()
    except (OSError, UnicodeError) as err:
        return HttpResponse(
            status_code=500,
            headers=[],
            body=f"Failed to encode metrics: {err}".encode("utf-8", "replace"),
        )
    return HttpResponse(
        status_code=200,
        headers=[
            ("Content-Type", CONTENT_TYPE),
            ("Content-Length", str(len(body))),
        ],
        body=body,
    )