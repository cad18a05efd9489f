"""
Composition - Pipeline and conditional combinators over execution units

ARCHITECTURE:
    pipe(a, b)  : a.stdout ──PipeChannel──→ b.stdin      (two threads)
                  b.predecessor = a, returns b
    and_(a, b)  : new unit, body = a.body ; b.body       (one thread)
                  b.body skipped if a.body raised
    or_(a, b)   : new unit, body = try a.body except → b.body  (one thread)

RESPONSIBILITIES:
- Allocate the bounded channel for pipe() and bind both ends
- Keep pipelines a simple left-to-right chain (no fan-in, fan-out, cycles)
- Build composite units sharing a's input and b's output

NOT RESPONSIBLE FOR:
- Starting or joining units (ExecutionUnit.start / sh)
- Exception reporting (ExecutionUnit.run, once per unit)

STREAM BINDINGS OF A COMPOSITE:
    input       ← first unit's input (ownership transferred)
    output/err  ← second unit's output (ownership transferred)
    predecessor ← first unit's predecessor
While the composite runs, both constituent bodies use the composite's
bindings, so redirecting or piping the composite affects both.
Streams a skipped constituent still owns are released when the composite
body ends.
"""
import io
import logging

from .constants import BUFFER_SIZE
from .exceptions import StateError
from .execution_unit import ExecutionUnit
from .pipe_channel import PipeChannel

logger = logging.getLogger('Composition')


def pipe(producer: ExecutionUnit, consumer: ExecutionUnit, capacity: int = BUFFER_SIZE) -> ExecutionUnit:
    """
    Connect producer's output to consumer's input through a bounded channel

    Args:
        producer: Unit writing
        consumer: Unit reading
        capacity: Channel size in bytes

    Returns:
        consumer, so that a.pipe(b).pipe(c) keeps returning the tail

    Raises:
        StateError: if the link would break the simple-chain shape, or a unit
            already started
    """
    if producer is consumer:
        raise StateError(f"Cannot pipe {producer.name} into itself")
    if producer.started or consumer.started:
        raise StateError("Cannot pipe units that already started")
    if consumer.predecessor is not None:
        raise StateError(f"{consumer.name} already reads from {consumer.predecessor.name}")
    if producer.successor is not None:
        raise StateError(f"{producer.name} already writes to {producer.successor.name}")

    upstream = producer.predecessor
    while upstream is not None:
        if upstream is consumer:
            raise StateError(f"Piping {producer.name} into {consumer.name} would create a cycle")
        upstream = upstream.predecessor

    channel = PipeChannel(capacity)
    producer.set_stdout(io.BufferedWriter(channel.writer()), owned=True)
    consumer.set_stdin(io.BufferedReader(channel.reader()), owned=True)
    consumer.predecessor = producer
    producer.successor = consumer

    logger.debug(f"Piped {producer.name} | {consumer.name} (capacity {capacity})")
    return consumer


def and_(first: ExecutionUnit, second: ExecutionUnit) -> ExecutionUnit:
    """
    Run first, then second only if first succeeded. Like '&&'.

    Returns:
        New composite unit
    """

    def body(unit: ExecutionUnit) -> None:
        first.run_body(streams_from=unit)
        second.run_body(streams_from=unit)

    return _composite(first, second, body, '&&')


def or_(first: ExecutionUnit, second: ExecutionUnit) -> ExecutionUnit:
    """
    Run first; run second only if first failed. Like '||'.

    Returns:
        New composite unit
    """

    def body(unit: ExecutionUnit) -> None:
        try:
            first.run_body(streams_from=unit)
        except Exception as e:
            unit.logger.warning(f"{first.name} failed ({type(e).__name__}: {e}), running {second.name}")
            second.run_body(streams_from=unit)

    return _composite(first, second, body, '||')


def _composite(first: ExecutionUnit, second: ExecutionUnit, body, operator: str) -> ExecutionUnit:
    if first is second:
        raise StateError(f"Cannot combine {first.name} with itself")
    if first.started or second.started:
        raise StateError("Cannot combine units that already started")
    if second.predecessor is not None:
        raise StateError(f"{second.name} reads from a pipeline and cannot follow '{operator}'")
    if first.successor is not None:
        raise StateError(f"{first.name} writes to {first.successor.name} and cannot precede '{operator}'")

    def run_both(unit: ExecutionUnit) -> None:
        try:
            body(unit)
        finally:
            # A skipped constituent still owns its streams
            first._release_streams()
            second._release_streams()

    composite = ExecutionUnit(
        run_both,
        name=f"({first.name} {operator} {second.name})",
        context=first.context,
        logger=first.logger,
    )
    composite._take_input_from(first)
    composite._take_output_from(second)

    composite.predecessor = first.predecessor
    if first.predecessor is not None:
        first.predecessor.successor = composite
        first.predecessor = None
    if second.successor is not None:
        second.successor.predecessor = composite
        composite.successor = second.successor
        second.successor = None

    logger.debug(f"Built composite {composite.name}")
    return composite
