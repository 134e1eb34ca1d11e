"""Aggregation of decoded perf stream events into per-thread and per-CPU data."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from .events import (
    AttributesDefinition,
    Command,
    ContextSwitchDefinition,
    ErrorEvent,
    FeaturesDefinition,
    LocationDefinition,
    LostDefinition,
    Progress,
    Record,
    Sample,
    StringDefinition,
    SymbolDefinition,
    ThreadEnd,
    ThreadStart,
    TracePointFormat,
)

#: Largest representable timestamp; marks a time range without a known end.
MAX_TIME = 2**64 - 1

SCHED_SWITCH_LABEL = "sched:sched_switch"
OFF_CPU_TIME_LABEL = "off-CPU Time"


class CostUnit(enum.Enum):
    UNKNOWN = enum.auto()
    TIME = enum.auto()


@dataclass
class CostSummary:
    """Totals for one cost type."""

    label: str
    sample_count: int = 0
    total_period: int = 0
    unit: CostUnit = CostUnit.UNKNOWN


@dataclass
class TimeRange:
    start: int = 0
    end: int = 0

    def delta(self) -> int:
        return self.end - self.start


@dataclass
class Event:
    time: int = 0
    cost: int = 0
    type: int = -1
    stack_id: int = -1
    cpu_id: int = 0


class ThreadState(enum.Enum):
    ON_CPU = enum.auto()
    OFF_CPU = enum.auto()


@dataclass
class ThreadEvents:
    pid: int = 0
    tid: int = 0
    time: TimeRange = field(default_factory=lambda: TimeRange(0, MAX_TIME))
    name: str = ""
    events: List[Event] = field(default_factory=list)
    last_switch_time: int = 0
    off_cpu_time: int = 0
    state: ThreadState = ThreadState.ON_CPU


@dataclass
class CpuEvents:
    cpu_id: int = 0
    events: List[Event] = field(default_factory=list)


@dataclass
class Summary:
    application_running_time: int = 0
    thread_count: int = 0
    process_count: int = 0
    command: str = ""
    host_name: str = ""
    linux_kernel_version: str = ""
    perf_version: str = ""
    cpu_description: str = ""
    cpu_id: str = ""
    cpu_architecture: str = ""
    cpus_online: int = 0
    cpus_available: int = 0
    cpu_sibling_cores: str = ""
    cpu_sibling_threads: str = ""
    total_memory_in_kib: int = 0
    sample_count: int = 0
    lost_chunks: int = 0
    on_cpu_time: int = 0
    off_cpu_time: int = 0
    costs: List[CostSummary] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class _LocationEntry(NamedTuple):
    parent_location_id: int
    address: int
    location: str


class _SymbolEntry(NamedTuple):
    symbol: str = ""
    binary: str = ""
    path: str = ""


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


class Analysis:
    """Collects the events of one perf stream into summary and timeline data."""

    def __init__(self):
        self.summary = Summary()
        self.application_time = TimeRange()
        self.threads: List[ThreadEvents] = []
        self.cpus: List[CpuEvents] = []
        self.stacks: List[Tuple[int, ...]] = []
        self.total_costs: List[CostSummary] = []
        self.off_cpu_time_cost_id = -1
        self.strings: List[str] = []
        self.attributes: Dict[int, AttributesDefinition] = {}
        self.locations: List[_LocationEntry] = []
        self.symbols: List[_SymbolEntry] = []
        self.progress = 0.0
        self._commands: Dict[int, Dict[int, str]] = {}
        self._unique_threads: Set[int] = set()
        self._unique_processes: Set[int] = set()
        self._stack_ids: Dict[Tuple[int, ...], int] = {}
        self._attribute_ids_to_cost_ids: Dict[int, int] = {}
        self._attribute_names_to_cost_ids: Dict[int, int] = {}
        self._reported_missing_debug_info: Set[int] = set()
        self._encountered_errors: Set[str] = set()
        self._sched_switch_cost_id = -1

    # -- lookups ---------------------------------------------------------

    def _string(self, string_id: int) -> str:
        if 0 <= string_id < len(self.strings):
            return self.strings[string_id]
        return ""

    def find_thread(self, pid, tid) -> Optional[ThreadEvents]:
        """Return the most recently added thread with this pid and tid."""
        for thread in reversed(self.threads):
            if thread.pid == pid and thread.tid == tid:
                return thread
        return None

    def _cost_id(self, attribute_id: int) -> int:
        return self._attribute_ids_to_cost_ids.get(attribute_id, -1)

    # -- dispatch --------------------------------------------------------

    def handle(self, event) -> None:
        """Account for one decoded event."""
        if isinstance(event, Sample):
            self._add_record(event)
            self._add_sample(event)
        elif isinstance(event, ThreadStart):
            self._add_record(event)
            self._add_thread(event).time.start = event.time
        elif isinstance(event, ThreadEnd):
            self._add_record(event)
            thread = self.find_thread(event.pid, event.tid)
            if thread is not None:
                thread.time.end = event.time
        elif isinstance(event, Command):
            self._add_record(event)
            self._add_command(event)
        elif isinstance(event, ContextSwitchDefinition):
            self._add_record(event)
            self._add_context_switch(event)
        elif isinstance(event, LostDefinition):
            self._add_record(event)
            self.summary.lost_chunks += 1
        elif isinstance(event, LocationDefinition):
            self._add_location(event)
        elif isinstance(event, SymbolDefinition):
            self._add_symbol(event)
        elif isinstance(event, AttributesDefinition):
            self._add_attributes(event)
        elif isinstance(event, StringDefinition):
            self.strings.append(_decode(event.string))
        elif isinstance(event, FeaturesDefinition):
            self._set_features(event)
        elif isinstance(event, ErrorEvent):
            if event.message not in self._encountered_errors:
                self._encountered_errors.add(event.message)
                self.summary.errors.append(event.message)
        elif isinstance(event, Progress):
            self.progress = event.percent
        elif isinstance(event, TracePointFormat):
            pass
        else:
            raise TypeError(f"unsupported event {event!r}")

    # -- handlers --------------------------------------------------------

    def _add_record(self, record: Record) -> None:
        self._unique_processes.add(record.pid)
        self._unique_threads.add(record.tid)
        app = self.application_time
        if record.time < app.start or app.start == 0:
            app.start = record.time
        if record.time > app.end or app.end == 0:
            app.end = record.time

    def _add_thread(self, record: Record) -> ThreadEvents:
        # a thread seen for the first time was probably alive when recording started
        thread = ThreadEvents(
            pid=record.pid,
            tid=record.tid,
            time=TimeRange(self.application_time.start, MAX_TIME),
            name=self._commands.get(record.pid, {}).get(record.tid, ""),
        )
        self.threads.append(thread)
        return thread

    def _add_command(self, command: Command) -> None:
        comm = self._string(command.comm)
        thread = self.find_thread(command.pid, command.tid)
        if thread is not None:
            thread.name = comm
        self._commands.setdefault(command.pid, {})[command.tid] = comm

    def _add_cost_type(self, label: str, unit: CostUnit) -> int:
        cost_id = len(self.summary.costs)
        if label == SCHED_SWITCH_LABEL:
            self._sched_switch_cost_id = cost_id
        self.summary.costs.append(CostSummary(label, 0, 0, unit))
        return cost_id

    def _add_attributes(self, attributes: AttributesDefinition) -> None:
        cost_id = self._attribute_names_to_cost_ids.get(attributes.name)
        if cost_id is None:
            cost_id = self._add_cost_type(self._string(attributes.name), CostUnit.UNKNOWN)
            self._attribute_names_to_cost_ids[attributes.name] = cost_id
        self._attribute_ids_to_cost_ids[attributes.id] = cost_id
        self.attributes[attributes.id] = attributes

    def _add_location(self, definition: LocationDefinition) -> None:
        location = definition.location
        text = ""
        if location.file != -1:
            text = self._string(location.file)
            if location.line != -1:
                text += f":{location.line}"
        self.locations.append(_LocationEntry(location.parent_location_id, location.address, text))
        self.symbols.append(_SymbolEntry())

    def _add_symbol(self, definition: SymbolDefinition) -> None:
        symbol = definition.symbol
        name = self._string(symbol.name)
        binary = self._string(symbol.binary)
        path = self._string(symbol.path)
        if definition.id >= len(self.symbols):
            self.symbols.extend(_SymbolEntry() for _ in range(definition.id + 1 - len(self.symbols)))
        self.symbols[definition.id] = _SymbolEntry(name, binary, path)
        if not name and binary and symbol.binary not in self._reported_missing_debug_info:
            self._reported_missing_debug_info.add(symbol.binary)
            self.summary.errors.append(f'Module "{binary}" is missing (some) debug symbols.')

    def _intern_stack(self, frames: Iterable[int]) -> int:
        key = tuple(frames)
        stack_id = self._stack_ids.get(key)
        if stack_id is None:
            stack_id = len(self.stacks)
            self._stack_ids[key] = stack_id
            self.stacks.append(key)
        return stack_id

    def _effective_cost(self, attribute_id: int, cost: int) -> int:
        if cost:
            return cost
        attribute = self.attributes.get(attribute_id, AttributesDefinition())
        return 0 if attribute.uses_frequency else attribute.frequency_or_period

    def _add_sample(self, sample: Sample) -> None:
        thread = self.find_thread(sample.pid, sample.tid) or self._add_thread(sample)
        if len(self.cpus) <= sample.cpu:
            self.cpus.extend(CpuEvents() for _ in range(sample.cpu + 1 - len(self.cpus)))
        cpu = self.cpus[sample.cpu]

        self.summary.sample_count += 1
        for sample_cost in sample.costs:
            cost = self._effective_cost(sample_cost.attribute_id, sample_cost.cost)
            cost_type = self._cost_id(sample_cost.attribute_id)
            event = Event(
                time=sample.time,
                cost=cost,
                type=cost_type,
                stack_id=self._intern_stack(sample.frames),
                cpu_id=sample.cpu,
            )
            thread.events.append(event)
            cpu.events.append(event)
            if cost_type >= 0:
                totals = self.summary.costs[cost_type]
                totals.sample_count += 1
                totals.total_period += cost

    def _add_context_switch(self, switch: ContextSwitchDefinition) -> None:
        thread = self.find_thread(switch.pid, switch.tid)
        if thread is None:
            return

        if not switch.switch_out and thread.state is ThreadState.OFF_CPU:
            switch_time = switch.time - thread.last_switch_time
            thread.off_cpu_time += switch_time

            if self.off_cpu_time_cost_id == -1:
                self.off_cpu_time_cost_id = self._add_cost_type(OFF_CPU_TIME_LABEL, CostUnit.TIME)
            totals = self.summary.costs[self.off_cpu_time_cost_id]
            totals.sample_count += 1
            totals.total_period += switch_time

            stack_id = -1
            if self._sched_switch_cost_id != -1:
                stack_id = next(
                    (e.stack_id for e in reversed(thread.events) if e.type == self._sched_switch_cost_id),
                    -1,
                )

            thread.events.append(
                Event(
                    time=thread.last_switch_time,
                    cost=switch_time,
                    type=self.off_cpu_time_cost_id,
                    stack_id=stack_id,
                    cpu_id=switch.cpu,
                )
            )

        thread.last_switch_time = switch.time
        thread.state = ThreadState.OFF_CPU if switch.switch_out else ThreadState.ON_CPU

    def _set_features(self, features: FeaturesDefinition) -> None:
        # the first argument is the perf binary, possibly with a path
        summary = self.summary
        summary.command = "perf " + _decode(b" ".join(features.cmdline[1:]))
        summary.host_name = _decode(features.host_name)
        summary.linux_kernel_version = _decode(features.os_release)
        summary.perf_version = _decode(features.version)
        summary.cpu_description = _decode(features.cpu_desc)
        summary.cpu_id = _decode(features.cpu_id)
        summary.cpu_architecture = _decode(features.arch)
        summary.cpus_online = features.nr_cpus_online
        summary.cpus_available = features.nr_cpus_available
        summary.cpu_sibling_cores = "[" + _decode(b"], [".join(features.sibling_cores)) + "]"
        summary.cpu_sibling_threads = "[" + _decode(b"], [".join(features.sibling_threads)) + "]"
        summary.total_memory_in_kib = features.total_mem

        wanted = features.nr_cpus_available
        if len(self.cpus) > wanted:
            del self.cpus[wanted:]
        else:
            self.cpus.extend(CpuEvents() for _ in range(wanted - len(self.cpus)))

    # -- completion ------------------------------------------------------

    def finalize(self) -> None:
        """Compute derived values once all events have been handled."""
        summary = self.summary
        app = self.application_time
        summary.application_running_time = app.delta()
        summary.thread_count = len(self._unique_threads)
        summary.process_count = len(self._unique_processes)

        for thread in self.threads:
            thread.time.start = max(thread.time.start, app.start)
            thread.time.end = min(thread.time.end, app.end)
            if not thread.name:
                thread.name = f"#{thread.tid}"
            # switched out before perf detached: count the remaining off-CPU time
            if thread.state is ThreadState.OFF_CPU:
                thread.off_cpu_time += thread.time.end - thread.last_switch_time
            if thread.off_cpu_time > 0:
                summary.off_cpu_time += thread.off_cpu_time
                summary.on_cpu_time += thread.time.delta() - thread.off_cpu_time

        for cpu_id, cpu in enumerate(self.cpus):
            cpu.cpu_id = cpu_id

        self.total_costs = summary.costs


def analyze(events) -> Analysis:
    """Handle every event of an iterable and return the finalized analysis."""
    analysis = Analysis()
    for event in events:
        analysis.handle(event)
    analysis.finalize()
    return analysis