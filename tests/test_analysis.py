import pytest

from hotperf.analysis import (
    Analysis,
    CostUnit,
    ThreadState,
    TimeRange,
    analyze,
)
from hotperf.events import (
    AttributesDefinition,
    Command,
    ContextSwitchDefinition,
    ErrorEvent,
    FeaturesDefinition,
    Location,
    LocationDefinition,
    LostDefinition,
    Sample,
    SampleCost,
    StringDefinition,
    Symbol,
    SymbolDefinition,
    ThreadEnd,
    ThreadStart,
)


def _strings(*texts):
    return [StringDefinition(id=i, string=t.encode()) for i, t in enumerate(texts)]


def _cycles_setup():
    return _strings("cycles") + [
        AttributesDefinition(id=0, name=0, uses_frequency=False, frequency_or_period=1000)
    ]


def test_time_range_delta():
    assert TimeRange(10, 25).delta() == TimeRange(0, 15).delta()
    assert TimeRange(5, 5).delta() == 0


def test_attributes_create_cost_types_once_per_name():
    events = _strings("cycles") + [
        AttributesDefinition(id=0, name=0),
        AttributesDefinition(id=1, name=0),
    ]
    result = analyze(events)
    assert [c.label for c in result.summary.costs] == ["cycles"]
    assert result.summary.costs[0].unit is CostUnit.UNKNOWN


def test_zero_cost_sample_uses_attribute_period():
    events = _cycles_setup() + [
        Sample(pid=1, tid=1, time=100, cpu=0, frames=[0], costs=[SampleCost(0, 0)]),
        Sample(pid=1, tid=1, time=200, cpu=0, frames=[0], costs=[SampleCost(0, 7)]),
    ]
    result = analyze(events)
    costs = [e.cost for e in result.threads[0].events]
    assert costs == [1000, 7]
    assert result.summary.costs[0].total_period == sum(costs)
    assert result.summary.costs[0].sample_count == 2
    assert result.summary.sample_count == 2


def test_stacks_are_interned_and_cpus_grow():
    events = _cycles_setup() + [
        Sample(pid=1, tid=1, time=100, cpu=2, frames=[3, 4], costs=[SampleCost(0, 1)]),
        Sample(pid=1, tid=1, time=110, cpu=0, frames=[3, 4], costs=[SampleCost(0, 1)]),
        Sample(pid=1, tid=1, time=120, cpu=0, frames=[5], costs=[SampleCost(0, 1)]),
    ]
    result = analyze(events)
    assert result.stacks == [(3, 4), (5,)]
    assert [e.stack_id for e in result.threads[0].events] == [0, 0, 1]
    assert [cpu.cpu_id for cpu in result.cpus] == [0, 1, 2]
    assert len(result.cpus[0].events) == 2
    assert result.cpus[1].events == []


def test_command_names_threads_now_and_later():
    events = _strings("worker", "main") + [
        ThreadStart(pid=1, tid=1, time=10),
        Command(pid=1, tid=1, time=11, comm=1),
        Command(pid=1, tid=2, time=12, comm=0),
        ThreadStart(pid=1, tid=2, time=13),
        ThreadEnd(pid=1, tid=2, time=20),
    ]
    result = analyze(events)
    assert [t.name for t in result.threads] == ["main", "worker"]
    assert result.threads[1].time.start == 13
    assert result.threads[1].time.end == 20


def test_finalize_names_and_clamps_threads():
    events = _cycles_setup() + [
        Sample(pid=9, tid=42, time=100, cpu=0, frames=[], costs=[SampleCost(0, 1)]),
        Sample(pid=9, tid=42, time=300, cpu=0, frames=[], costs=[SampleCost(0, 1)]),
    ]
    result = analyze(events)
    thread = result.threads[0]
    assert thread.name == "#42"
    assert thread.time.start == result.application_time.start == 100
    assert thread.time.end == result.application_time.end == 300
    assert result.summary.application_running_time == result.application_time.delta()
    assert result.summary.thread_count == 1
    assert result.summary.process_count == 1


def test_context_switch_records_off_cpu_time():
    events = _strings("sched:sched_switch") + [
        AttributesDefinition(id=0, name=0, frequency_or_period=1),
        Sample(pid=1, tid=1, time=100, cpu=0, frames=[7, 8], costs=[SampleCost(0, 1)]),
        ContextSwitchDefinition(pid=1, tid=1, time=110, cpu=0, switch_out=True),
        ContextSwitchDefinition(pid=1, tid=1, time=150, cpu=1, switch_out=False),
        Sample(pid=1, tid=1, time=200, cpu=0, frames=[7], costs=[SampleCost(0, 1)]),
    ]
    result = analyze(events)
    off_id = result.off_cpu_time_cost_id
    off_cost = result.summary.costs[off_id]
    assert off_cost.label == "off-CPU Time"
    assert off_cost.unit is CostUnit.TIME

    thread = result.threads[0]
    off_events = [e for e in thread.events if e.type == off_id]
    assert len(off_events) == 1
    event = off_events[0]
    assert event.time == 110
    assert event.cpu_id == 1
    assert result.stacks[event.stack_id] == (7, 8)
    assert event.cost == thread.off_cpu_time == off_cost.total_period
    assert thread.state is ThreadState.ON_CPU
    assert result.summary.off_cpu_time == thread.off_cpu_time
    assert result.summary.on_cpu_time + result.summary.off_cpu_time == thread.time.delta()
    # off-CPU events are not placed on the CPU timeline
    assert all(e.type != off_id for cpu in result.cpus for e in cpu.events)


def test_thread_switched_out_at_end_counts_remaining_time():
    events = _cycles_setup() + [
        Sample(pid=1, tid=1, time=100, cpu=0, frames=[], costs=[SampleCost(0, 1)]),
        ContextSwitchDefinition(pid=1, tid=1, time=120, cpu=0, switch_out=True),
        LostDefinition(pid=1, tid=1, time=180, cpu=0),
    ]
    result = analyze(events)
    thread = result.threads[0]
    assert thread.state is ThreadState.OFF_CPU
    assert thread.off_cpu_time == result.application_time.end - 120
    assert result.summary.lost_chunks == 1


def test_context_switch_for_unknown_thread_is_ignored():
    result = analyze([ContextSwitchDefinition(pid=5, tid=5, time=1, switch_out=True)])
    assert result.threads == []
    assert result.off_cpu_time_cost_id == -1


def test_locations_and_missing_debug_symbols():
    events = _strings("main.c", "libfoo.so", "/usr/lib/libfoo.so") + [
        LocationDefinition(id=0, location=Location(address=0x10, file=0, line=12)),
        LocationDefinition(id=1, location=Location(address=0x20, file=0, line=-1)),
        LocationDefinition(id=2, location=Location(address=0x30, file=-1, line=3)),
        SymbolDefinition(id=0, symbol=Symbol(name=-1, binary=1, path=2)),
        SymbolDefinition(id=1, symbol=Symbol(name=-1, binary=1, path=2)),
    ]
    result = analyze(events)
    assert [loc.location for loc in result.locations] == ["main.c:12", "main.c", ""]
    assert result.symbols[0].binary == "libfoo.so"
    assert result.symbols[2].symbol == ""
    assert result.summary.errors == ['Module "libfoo.so" is missing (some) debug symbols.']


def test_errors_are_deduplicated():
    events = [ErrorEvent(message="broken"), ErrorEvent(message="broken"), ErrorEvent(message="other")]
    assert analyze(events).summary.errors == ["broken", "other"]


def test_features_fill_summary_and_size_cpus():
    features = FeaturesDefinition(
        host_name=b"host",
        os_release=b"5.0",
        version=b"4.19",
        arch=b"x86_64",
        nr_cpus_online=2,
        nr_cpus_available=4,
        cpu_desc=b"desc",
        cpu_id=b"id",
        total_mem=1024,
        cmdline=[b"/usr/bin/perf", b"record", b"-g"],
        sibling_cores=[b"0-1", b"2-3"],
        sibling_threads=[b"0", b"1"],
    )
    result = analyze([features])
    summary = result.summary
    assert summary.command == "perf record -g"
    assert summary.host_name == "host"
    assert summary.cpu_architecture == "x86_64"
    assert summary.cpu_sibling_cores == "[0-1], [2-3]"
    assert summary.cpu_sibling_threads == "[0], [1]"
    assert summary.total_memory_in_kib == 1024
    assert [cpu.cpu_id for cpu in result.cpus] == [0, 1, 2, 3]


def test_unknown_event_type_raises():
    analysis = Analysis()
    with pytest.raises(TypeError):
        analysis.handle(object())


def test_find_thread():
    analysis = Analysis()
    analysis.handle(ThreadStart(pid=3, tid=4, time=1))
    found = analysis.find_thread(3, 4)
    assert found is analysis.threads[0]
    assert analysis.find_thread(3, 5) is None