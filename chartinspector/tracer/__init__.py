"""Request tracing for chart renders.

Submodules:
    paths        -- decode_path: REST path -> ResourceReference | None.
    accumulator  -- ResourceAccumulator: lock-guarded ordered list.
    transport    -- TracingTransport: httpx transport wrapper.
"""

from chartinspector.tracer.accumulator import ResourceAccumulator
from chartinspector.tracer.paths import decode_path
from chartinspector.tracer.transport import TracingTransport

__all__ = ["ResourceAccumulator", "TracingTransport", "decode_path"]
