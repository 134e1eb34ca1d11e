"""Event records carried by the perf data stream and their decoding."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Union

from .qdatastream import DataStreamReader, StreamError


class EventType(enum.IntEnum):
    """Type tag that starts every event payload."""

    THREAD_START = 0
    THREAD_END = 1
    COMMAND = 2
    LOCATION_DEFINITION = 3
    SYMBOL_DEFINITION = 4
    STRING_DEFINITION = 5
    LOST_DEFINITION = 6
    FEATURES_DEFINITION = 7
    ERROR = 8
    PROGRESS = 9
    TRACE_POINT_FORMAT = 10
    ATTRIBUTES_DEFINITION = 11
    CONTEXT_SWITCH_DEFINITION = 12
    SAMPLE = 13
    TRACE_POINT_SAMPLE = 14


class ErrorCode(enum.IntEnum):
    """Error categories reported by the stream producer."""

    BROKEN_DATA_FILE = 1
    MISSING_ELF_FILE = 2
    INVALID_KALLSYMS = 3


@dataclass
class Record:
    """Common header of events tied to a thread at a point in time."""

    pid: int = 0
    tid: int = 0
    time: int = 0
    cpu: int = 0

    @staticmethod
    def _read_record_fields(reader: DataStreamReader) -> dict:
        return {
            "pid": reader.read_uint32(),
            "tid": reader.read_uint32(),
            "time": reader.read_uint64(),
            "cpu": reader.read_uint32(),
        }

    @classmethod
    def read(cls, reader: DataStreamReader):
        return cls(**cls._read_record_fields(reader))


@dataclass
class Command(Record):
    """A thread was given a command name (string id)."""

    comm: int = -1

    @classmethod
    def read(cls, reader: DataStreamReader) -> "Command":
        fields = cls._read_record_fields(reader)
        return cls(**fields, comm=reader.read_int32())


@dataclass
class ThreadStart(Record):
    """A thread started."""


@dataclass
class ThreadEnd(Record):
    """A thread ended."""


@dataclass
class LostDefinition(Record):
    """A chunk of events was lost while recording."""


@dataclass
class Location:
    """A code address with its optional source position."""

    address: int = 0
    file: int = -1
    pid: int = 0
    line: int = 0
    column: int = 0
    parent_location_id: int = 0

    @classmethod
    def read(cls, reader: DataStreamReader) -> "Location":
        return cls(
            address=reader.read_uint64(),
            file=reader.read_int32(),
            pid=reader.read_uint32(),
            line=reader.read_int32(),
            column=reader.read_int32(),
            parent_location_id=reader.read_int32(),
        )


@dataclass
class LocationDefinition:
    id: int = 0
    location: Location = field(default_factory=Location)

    @classmethod
    def read(cls, reader: DataStreamReader) -> "LocationDefinition":
        return cls(id=reader.read_int32(), location=Location.read(reader))


@dataclass
class Symbol:
    """A symbol given by string ids for its name, binary and path."""

    name: int = -1
    binary: int = -1
    path: int = -1
    is_kernel: bool = False

    @classmethod
    def read(cls, reader: DataStreamReader) -> "Symbol":
        return cls(
            name=reader.read_int32(),
            binary=reader.read_int32(),
            path=reader.read_int32(),
            is_kernel=reader.read_bool(),
        )


@dataclass
class SymbolDefinition:
    id: int = 0
    symbol: Symbol = field(default_factory=Symbol)

    @classmethod
    def read(cls, reader: DataStreamReader) -> "SymbolDefinition":
        return cls(id=reader.read_int32(), symbol=Symbol.read(reader))


@dataclass
class AttributesDefinition:
    """Describes an event attribute (a cost type) used by samples."""

    id: int = 0
    type: int = 0
    config: int = 0
    name: int = -1
    uses_frequency: bool = False
    frequency_or_period: int = 0

    @classmethod
    def read(cls, reader: DataStreamReader) -> "AttributesDefinition":
        return cls(
            id=reader.read_int32(),
            type=reader.read_uint32(),
            config=reader.read_uint64(),
            name=reader.read_int32(),
            uses_frequency=reader.read_bool(),
            frequency_or_period=reader.read_uint64(),
        )


@dataclass
class SampleCost:
    attribute_id: int = 0
    cost: int = 0

    @classmethod
    def read(cls, reader: DataStreamReader) -> "SampleCost":
        return cls(attribute_id=reader.read_int32(), cost=reader.read_uint64())


@dataclass
class Sample(Record):
    """A sampled call stack with its costs; ``tracepoint`` marks tracepoint samples."""

    frames: List[int] = field(default_factory=list)
    guessed_frames: int = 0
    costs: List[SampleCost] = field(default_factory=list)
    tracepoint: bool = False

    @classmethod
    def read(cls, reader: DataStreamReader) -> "Sample":
        fields = cls._read_record_fields(reader)
        return cls(
            **fields,
            frames=reader.read_list(DataStreamReader.read_int32),
            guessed_frames=reader.read_uint8(),
            costs=reader.read_list(SampleCost.read),
        )


@dataclass
class ContextSwitchDefinition(Record):
    switch_out: bool = False

    @classmethod
    def read(cls, reader: DataStreamReader) -> "ContextSwitchDefinition":
        fields = cls._read_record_fields(reader)
        return cls(**fields, switch_out=reader.read_bool())


@dataclass
class StringDefinition:
    id: int = 0
    string: bytes = b""

    @classmethod
    def read(cls, reader: DataStreamReader) -> "StringDefinition":
        return cls(id=reader.read_int32(), string=reader.read_bytes())


@dataclass
class BuildId:
    pid: int = 0
    id: bytes = b""
    file_name: bytes = b""

    @classmethod
    def read(cls, reader: DataStreamReader) -> "BuildId":
        return cls(
            pid=reader.read_uint32(),
            id=reader.read_bytes(),
            file_name=reader.read_bytes(),
        )


@dataclass
class NumaNode:
    node_id: int = 0
    mem_total: int = 0
    mem_free: int = 0
    topology: bytes = b""

    @classmethod
    def read(cls, reader: DataStreamReader) -> "NumaNode":
        return cls(
            node_id=reader.read_uint32(),
            mem_total=reader.read_uint64(),
            mem_free=reader.read_uint64(),
            topology=reader.read_bytes(),
        )


@dataclass
class Pmu:
    type: int = 0
    name: bytes = b""

    @classmethod
    def read(cls, reader: DataStreamReader) -> "Pmu":
        return cls(type=reader.read_uint32(), name=reader.read_bytes())


@dataclass
class GroupDesc:
    name: bytes = b""
    leader_index: int = 0
    num_members: int = 0

    @classmethod
    def read(cls, reader: DataStreamReader) -> "GroupDesc":
        return cls(
            name=reader.read_bytes(),
            leader_index=reader.read_uint32(),
            num_members=reader.read_uint32(),
        )


@dataclass
class FeaturesDefinition:
    """System information recorded in the perf data header."""

    host_name: bytes = b""
    os_release: bytes = b""
    version: bytes = b""
    arch: bytes = b""
    nr_cpus_online: int = 0
    nr_cpus_available: int = 0
    cpu_desc: bytes = b""
    cpu_id: bytes = b""
    total_mem: int = 0  # in kilobytes
    cmdline: List[bytes] = field(default_factory=list)
    build_ids: List[BuildId] = field(default_factory=list)
    sibling_cores: List[bytes] = field(default_factory=list)
    sibling_threads: List[bytes] = field(default_factory=list)
    numa_topology: List[NumaNode] = field(default_factory=list)
    pmu_mappings: List[Pmu] = field(default_factory=list)
    group_descs: List[GroupDesc] = field(default_factory=list)

    @classmethod
    def read(cls, reader: DataStreamReader) -> "FeaturesDefinition":
        read_bytes = DataStreamReader.read_bytes
        return cls(
            host_name=reader.read_bytes(),
            os_release=reader.read_bytes(),
            version=reader.read_bytes(),
            arch=reader.read_bytes(),
            nr_cpus_online=reader.read_uint32(),
            nr_cpus_available=reader.read_uint32(),
            cpu_desc=reader.read_bytes(),
            cpu_id=reader.read_bytes(),
            total_mem=reader.read_uint64(),
            cmdline=reader.read_list(read_bytes),
            build_ids=reader.read_list(BuildId.read),
            sibling_cores=reader.read_list(read_bytes),
            sibling_threads=reader.read_list(read_bytes),
            numa_topology=reader.read_list(NumaNode.read),
            pmu_mappings=reader.read_list(Pmu.read),
            group_descs=reader.read_list(GroupDesc.read),
        )


@dataclass
class ErrorEvent:
    """An error reported by the producer; unknown codes are kept as ints."""

    code: Union[ErrorCode, int] = ErrorCode.BROKEN_DATA_FILE
    message: str = ""

    @classmethod
    def read(cls, reader: DataStreamReader) -> "ErrorEvent":
        raw = reader.read_int32()
        try:
            code: Union[ErrorCode, int] = ErrorCode(raw)
        except ValueError:
            code = raw
        return cls(code=code, message=reader.read_string())


@dataclass
class Progress:
    percent: float = 0.0

    @classmethod
    def read(cls, reader: DataStreamReader) -> "Progress":
        return cls(percent=reader.read_float())


@dataclass
class TracePointFormat:
    """Tracepoint format description; its contents are not decoded."""

    @classmethod
    def read(cls, reader: DataStreamReader) -> "TracePointFormat":
        return cls()


def _read_tracepoint_sample(reader: DataStreamReader) -> Sample:
    sample = Sample.read(reader)
    sample.tracepoint = True
    return sample


_DECODERS: Dict[EventType, Callable[[DataStreamReader], object]] = {
    EventType.THREAD_START: ThreadStart.read,
    EventType.THREAD_END: ThreadEnd.read,
    EventType.COMMAND: Command.read,
    EventType.LOCATION_DEFINITION: LocationDefinition.read,
    EventType.SYMBOL_DEFINITION: SymbolDefinition.read,
    EventType.STRING_DEFINITION: StringDefinition.read,
    EventType.LOST_DEFINITION: LostDefinition.read,
    EventType.FEATURES_DEFINITION: FeaturesDefinition.read,
    EventType.ERROR: ErrorEvent.read,
    EventType.PROGRESS: Progress.read,
    EventType.TRACE_POINT_FORMAT: TracePointFormat.read,
    EventType.ATTRIBUTES_DEFINITION: AttributesDefinition.read,
    EventType.CONTEXT_SWITCH_DEFINITION: ContextSwitchDefinition.read,
    EventType.SAMPLE: Sample.read,
    EventType.TRACE_POINT_SAMPLE: _read_tracepoint_sample,
}

# Events whose payload may carry data beyond what is decoded.
_PARTIALLY_DECODED = frozenset({EventType.TRACE_POINT_FORMAT, EventType.TRACE_POINT_SAMPLE})


def decode_event(payload, version):
    """Decode one event payload; raises StreamError if it is malformed."""
    reader = DataStreamReader(payload, version)
    raw_type = reader.read_int8()
    try:
        event_type = EventType(raw_type)
    except ValueError:
        raise StreamError(f"invalid event type {raw_type}") from None

    event = _DECODERS[event_type](reader)

    if event_type not in _PARTIALLY_DECODED and not reader.at_end():
        raise StreamError(
            f"did not consume all bytes for event of type {raw_type}: "
            f"{reader.position} of {len(payload)}"
        )
    return event