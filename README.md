# hotperf

Tools for working with Linux `perf` profiles:

- decode single event payloads of the perf data stream (Qt-serialised,
  big-endian records),
- fold the decoded events into per-thread and per-CPU timelines, cost totals
  and a run summary,
- build and check the argument lists for the stream producer and for
  `perf record`.

The package only works with data and files. It never runs `perf` or any other
program; that is up to the caller.

## Installing

```
pip install .
```

## Decoding events

`hotperf.events.decode_event(payload, version)` decodes one event payload. The
first byte is the `EventType` tag. The result is one of these dataclasses:

- `Sample`, `ThreadStart`, `ThreadEnd`, `Command`, `ContextSwitchDefinition`,
  `LostDefinition`
- `LocationDefinition`, `SymbolDefinition`, `StringDefinition`,
  `AttributesDefinition`, `FeaturesDefinition`
- `ErrorEvent`, `Progress`, `TracePointFormat`

For tracepoint samples the result is a `Sample` with `tracepoint=True`.
Tracepoint samples and tracepoint formats may carry data that is not decoded.
For every other event, bytes left over after decoding are an error.

A malformed payload raises `hotperf.qdatastream.StreamError`. This covers an
unknown type tag, a read past the end and leftover bytes.

`hotperf.qdatastream.DataStreamReader` is the underlying reader. It reads
integers, booleans, floats, length-prefixed byte arrays, UTF-16 strings and
counted lists. The `version` argument selects:

- from 12 on, floats are read with double precision;
- from 22 on, extended 64-bit sizes are accepted.

## Analysis

```python
from hotperf.events import decode_event
from hotperf.analysis import analyze

# payloads: the event payloads of one stream, in order; version: its data stream version
analysis = analyze(decode_event(p, version) for p in payloads)

summary = analysis.summary
print(summary.command, summary.sample_count, summary.thread_count)
for thread in analysis.threads:
    print(thread.tid, thread.name, len(thread.events))
```

`hotperf.analysis.Analysis` takes one event at a time through `handle()`.
Call `finalize()` once all events are in; `analyze()` does both for an
iterable. The analysis records:

- the application time range,
- the threads, with names from `Command` events, or `#<tid>` when unnamed,
- off-CPU time taken from context switches, reported as an `off-CPU Time` cost
  type,
- the events of each CPU,
- the interned call stacks,
- the cost types and their totals,
- lost chunks,
- the system information from the features event,
- deduplicated errors, including modules that are missing debug symbols.

`find_thread(pid, tid)` returns the most recently added matching thread.

## Producer invocation

`hotperf.invocation` covers the setup and the results of a stream producer
run:

- `check_input_file` checks the input file and raises `InputFileError`.
- `build_parser_args` builds the command-line arguments, with
  `--max-frames 1024`. Empty optional values are left out.
- `exit_code_message` turns an exit code into a readable message. It uses
  `ParserExitCode` and returns `None` for success.

## Recording

`hotperf.record` builds `perf record` argument lists:

- `perf_record_command(output_path, perf_options, record_options)` builds the
  full argument list.
- `launch_record_options` launches an executable and resolves it on `PATH`.
- `pid_record_options` attaches to PIDs.
- `system_record_options` records the whole system with `--all-cpus`.

It also has these helpers:

- `check_output_folder` checks the output folder.
- `find_sudo_util` and `sudo_options` find `kdesudo` or `kdesu` and build its
  options.
- `can_trace` and `can_profile_off_cpu` check tracepoint access and
  `perf_event_paranoid`.
- `off_cpu_profiling_options` returns the off-CPU profiling options.
- `help_supports` tells whether a `perf record --help` text mentions an
  option.
- `is_perf_installed` checks for `perf` on `PATH`.
- `current_username` returns the current user's login name.

Problems are raised as `RecordingError`.

## What it does not do

The package does not split a raw byte stream into event payloads. That means
reading the `QPERFSTREAM` magic and the data stream version, then
size-prefixed events, possibly across chunk boundaries. The caller has to do
this and pass each payload to `decode_event`.

There is no command-line tool and no user interface.

The analysis builds no bottom-up, top-down or caller/callee trees, and it does
not filter results.