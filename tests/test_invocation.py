import pytest

from hotperf.invocation import (
    InputFileError,
    ParserExitCode,
    build_parser_args,
    check_input_file,
    exit_code_message,
)


def test_check_input_file_accepts_regular_file(tmp_path):
    data = tmp_path / "perf.data"
    data.write_bytes(b"data")
    assert check_input_file(data) == data
    assert check_input_file(str(data)) == data


def test_check_input_file_missing(tmp_path):
    missing = tmp_path / "nope.data"
    with pytest.raises(InputFileError) as info:
        check_input_file(str(missing))
    assert str(info.value) == f"File '{missing}' does not exist."


def test_check_input_file_directory(tmp_path):
    with pytest.raises(InputFileError) as info:
        check_input_file(str(tmp_path))
    assert str(info.value) == f"'{tmp_path}' is not a file."


def test_build_parser_args_minimal():
    args = build_parser_args("perf.data", "", "", "", "", "", "")
    assert args == ["--input", "perf.data", "--max-frames", "1024"]


def test_build_parser_args_all_options_in_order():
    args = build_parser_args("in.data", "/sys", "/k", "/dbg", "/extra", "/app", "x86_64")
    assert args == [
        "--input", "in.data", "--max-frames", "1024",
        "--sysroot", "/sys",
        "--kallsyms", "/k",
        "--debug", "/dbg",
        "--extra", "/extra",
        "--app", "/app",
        "--arch", "x86_64",
    ]


def test_build_parser_args_skips_only_empty():
    args = build_parser_args("in.data", "", "/k", "", "", "", "arm")
    assert args[4:] == ["--kallsyms", "/k", "--arch", "arm"]


def test_exit_code_success_has_no_message():
    assert exit_code_message(0) is None
    assert exit_code_message(ParserExitCode.NO_ERROR) is None


@pytest.mark.parametrize(
    "code, reason",
    [
        (1, "TCP socket error"),
        (2, "file could not be opened"),
        (3, "invalid perf data file"),
        (4, "invalid perf data file"),
        (5, "invalid perf data file"),
        (6, "invalid perf data file"),
        (7, "invalid option"),
    ],
)
def test_exit_code_known_reasons(code, reason):
    assert exit_code_message(code) == (
        f"The hotspot-perfparser binary exited with code {code} ({reason})."
    )


def test_exit_code_unknown():
    assert exit_code_message(42) == "The hotspot-perfparser binary exited with code 42."


def test_exit_code_enum_values():
    assert ParserExitCode(5) is ParserExitCode.DATA_ERROR
    assert ParserExitCode.INVALID_OPTION == 7