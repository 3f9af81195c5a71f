"""WiseML trace writer.

The document root and the trace element are written on construction and
closed on shutdown, so the output is well formed even when no message was
ever written.
"""

from __future__ import annotations

from datetime import datetime
from typing import TextIO
from xml.sax.saxutils import escape, quoteattr

from wsnutils.writers.base import Writer

WISEML_NAMESPACE = "http://wisebed.eu/ns/wiseml/1.0"


class WiseMLWriter(Writer):
    def __init__(
        self,
        destination: TextIO,
        node_id: str,
        write_header_and_footer: bool = True,
        trace_id: str = "1",
    ) -> None:
        super().__init__(destination)
        self.node_id = node_id
        self.write_header_and_footer = write_header_and_footer
        if write_header_and_footer:
            destination.write('<?xml version="1.0" encoding="UTF-8"?>\n')
            destination.write(f'<wiseml version="1.0" xmlns={quoteattr(WISEML_NAMESPACE)}>\n')
        destination.write(f"  <trace id={quoteattr(trace_id)}>\n")

    def _write(self, payload: bytes, timestamp: datetime) -> None:
        self.destination.write(
            f"    <timestamp>{escape(timestamp.isoformat())}</timestamp>\n"
            f"    <node id={quoteattr(self.node_id)}>\n"
            f"      <data>{payload.hex().upper()}</data>\n"
            f"    </node>\n"
        )

    def _finish(self) -> None:
        self.destination.write("  </trace>\n")
        if self.write_header_and_footer:
            self.destination.write("</wiseml>\n")
