import io
import os
import shutil
import subprocess
import sys

import pytest

from minish.builtins import ExitRequested
from minish.commands import SimpleCommand
from minish.env import Environment, ShellState
from minish.executor import Shell, main


@pytest.fixture
def shell(tmp_path):
    environ = Environment.from_strings(
        [f"PATH={os.environ.get('PATH', '/bin:/usr/bin')}", f"HOME={tmp_path}"]
    )
    return Shell(
        ShellState(environ=environ),
        out=io.StringIO(),
        stdin=subprocess.DEVNULL,
        err=io.StringIO(),
    )


def test_echo_builtin_writes_to_out(shell):
    status = shell.run_line("echo hello world")
    assert shell.out.getvalue() == "hello world\n"
    assert status == 0


def test_semicolons_run_in_order(shell):
    shell.run_line("echo a ; echo b")
    assert shell.out.getvalue() == "a\nb\n"


def test_syntax_error_sets_status_and_is_sticky(shell):
    status = shell.run_line("echo >")
    assert status == 258
    assert "bash: syntax error nearunexpected token `newline'" in shell.out.getvalue()
    shell.out.seek(0)
    shell.out.truncate()
    shell.run_line("echo $?")
    assert shell.out.getvalue() == "258\n"


def test_unterminated_quote_ends_shell(shell):
    with pytest.raises(ExitRequested) as info:
        shell.run_line("echo 'abc")
    assert info.value.status == 255
    assert "Multi line detected..!!!" in shell.out.getvalue()


def test_export_then_expand(shell):
    shell.run_line("export FOO=bar")
    shell.run_line("echo $FOO")
    assert shell.out.getvalue() == "bar\n"
    assert shell.state.environ.get("FOO") == "bar"


def test_assignment_command_stores_lowercased_local(shell):
    shell.run_line("FOO=bar")
    assert shell.state.variables.get("foo") == "bar"


def test_redirected_builtin_writes_file(shell, tmp_path):
    target = tmp_path / "out.txt"
    status = shell.run_line(f"echo hi > {target}")
    assert target.read_text() == "hi\n"
    assert shell.out.getvalue() == ""
    assert status == 0


def test_redirected_builtin_runs_on_a_copy(shell, tmp_path):
    target = tmp_path / "out.txt"
    shell.run_line(f"export ZED=q > {target}")
    assert shell.state.environ.get("ZED") is None


def test_append_redirection_keeps_content(shell, tmp_path):
    target = tmp_path / "log.txt"
    shell.run_line(f"echo one > {target}")
    shell.run_line(f"echo two >> {target}")
    assert target.read_text() == "one\ntwo\n"


def test_external_command_with_input_redirection(shell, tmp_path):
    source = tmp_path / "in.txt"
    source.write_text("line one\nline two\n")
    status = shell.run_line(f"cat < {source}")
    assert shell.out.getvalue() == source.read_text()
    assert status == 0


def test_pipeline_of_external_commands(shell, tmp_path):
    source = tmp_path / "data.txt"
    source.write_text("alpha\nbeta\n")
    shell.run_line(f"cat {source} | cat")
    assert shell.out.getvalue() == source.read_text()


def test_builtin_feeds_pipeline(shell):
    shell.run_line("echo hello | cat")
    assert shell.out.getvalue() == "hello\n"


def test_exit_inside_pipeline_does_not_end_shell(shell):
    status = shell.run_line("exit | echo still")
    assert shell.out.getvalue() == "still\n"
    assert status == 0


def test_exit_builtin_raises(shell):
    with pytest.raises(ExitRequested) as info:
        shell.run_line("exit")
    assert info.value.status == 0


def test_false_sets_status(shell):
    assert shell.run_line("false") == 1
    assert shell.state.status == 1


def test_unknown_command_reports(shell):
    status = shell.run_line("nosuchcommandxyz")
    assert "bash: nosuchcommandxyz: command not found" in shell.out.getvalue()
    assert status == 1


def test_run_pipeline_with_prepared_commands(shell):
    cat = shutil.which("cat")
    status = shell.run_pipeline(
        [SimpleCommand(["echo", "piped"]), SimpleCommand([cat])]
    )
    assert shell.out.getvalue() == "piped\n"
    assert status == 0


def test_run_pipeline_of_nothing_keeps_status(shell):
    shell.state.status = 7
    assert shell.run_pipeline([]) == 7


def test_repl_stops_at_exit(shell):
    status = shell.repl(io.StringIO("echo a\nexit\necho b\n"))
    assert status == 0
    assert shell.out.getvalue() == "a\n"


def test_repl_returns_last_status_at_end_of_input(shell):
    status = shell.repl(io.StringIO("false\n"))
    assert status == shell.state.status
    assert status == 1


def test_repl_writes_prompt(shell):
    shell.prompt = "> "
    shell.repl(io.StringIO("echo x\n"))
    assert shell.out.getvalue() == "> x\n> "


def test_main_reads_standard_input(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("echo from-main\n"))
    status = main([])
    captured = capsys.readouterr()
    assert captured.out == "from-main\n"
    assert status == 0