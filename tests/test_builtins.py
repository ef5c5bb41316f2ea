import io
import os

import pytest

from minish.builtins import (
    ExitRequested,
    cd,
    echo,
    env,
    export,
    is_builtin,
    is_identifier,
    pwd,
    run_builtin,
    show_variables,
    unset,
)
from minish.env import Environment, ShellState


def make_state(environ=(), variables=(), status=0):
    return ShellState(
        environ=Environment(environ), variables=Environment(variables), status=status
    )


@pytest.mark.parametrize(
    "name", ["echo", "cd", "pwd", "export", "unset", "env", "exit", "var"]
)
def test_is_builtin_accepts_shell_commands(name):
    assert is_builtin(name) is True


@pytest.mark.parametrize("name", ["ls", "ECHO", "", "echoo"])
def test_is_builtin_rejects_others(name):
    assert is_builtin(name) is False


@pytest.mark.parametrize(
    "text,expected", [("abc", True), ("ABc", True), ("", True), ("a1", False), ("a_b", False)]
)
def test_is_identifier(text, expected):
    assert is_identifier(text) is expected


def test_echo_no_args_prints_newline():
    state = make_state(status=5)
    out = io.StringIO()
    assert echo(state, ["echo"], out) == 0
    assert out.getvalue() == "\n"


def test_echo_joins_words():
    state = make_state()
    out = io.StringIO()
    echo(state, ["echo", "hello", "world"], out)
    assert out.getvalue() == "hello world\n"


def test_echo_n_suppresses_newline():
    state = make_state(status=3)
    out = io.StringIO()
    assert echo(state, ["echo", "-n", "a", "b"], out) == 0
    assert out.getvalue() == "a b"
    assert state.status == 0


def test_echo_n_alone_prints_nothing_and_keeps_status():
    state = make_state(status=7)
    out = io.StringIO()
    assert echo(state, ["echo", "-n"], out) == 7
    assert out.getvalue() == ""


def test_pwd_prints_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    state = make_state(status=4)
    out = io.StringIO()
    assert pwd(state, out) == 0
    assert out.getvalue() == os.getcwd() + "\n"


def test_cd_without_home_fails(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    state = make_state()
    out = io.StringIO()
    assert cd(state, "somewhere", out) == 1
    assert out.getvalue() == "bash: cd: HOME not set\n"
    assert os.getcwd() == str(tmp_path.resolve()) or os.path.samefile(os.getcwd(), tmp_path)


def test_cd_no_target_goes_home(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    home = tmp_path / "home"
    home.mkdir()
    state = make_state(environ=[("HOME", str(home))], status=9)
    out = io.StringIO()
    assert cd(state, None, out) == 0
    assert os.path.samefile(os.getcwd(), home)


def test_cd_tilde_slash_expands_home(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    sub = tmp_path / "sub"
    sub.mkdir()
    state = make_state(environ=[("HOME", str(tmp_path))], status=3)
    out = io.StringIO()
    assert cd(state, "~/sub", out) == 0
    assert out.getvalue() == ""
    assert os.path.samefile(os.getcwd(), sub)


def test_cd_missing_directory_reports(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    missing = str(tmp_path / "nope")
    state = make_state(environ=[("HOME", str(tmp_path))])
    out = io.StringIO()
    assert cd(state, missing, out) == 1
    assert out.getvalue() == f"cd: {missing}: No such file or directory\n"


def test_env_lists_entries():
    state = make_state(environ=[("A", "1"), ("B", "2")], status=2)
    out = io.StringIO()
    assert env(state, out) == 0
    assert out.getvalue() == "A=1\nB=2\n"


def test_env_empty_keeps_status():
    state = make_state(status=6)
    out = io.StringIO()
    assert env(state, out) == 6
    assert out.getvalue() == ""


def test_export_without_args_declares():
    state = make_state(environ=[("A", "1")])
    out = io.StringIO()
    export(state, ["export"], out)
    assert out.getvalue() == "declare -x A=1\n"


def test_export_sets_variable():
    state = make_state(environ=[("A", "1")])
    out = io.StringIO()
    export(state, ["export", "NEW=value"], out)
    assert state.environ.get("NEW") == "value"
    assert out.getvalue() == ""


def test_export_replaces_existing():
    state = make_state(environ=[("A", "1")])
    export(state, ["export", "A=2"], io.StringIO())
    assert state.environ.to_strings() == ["A=2"]


def test_export_leading_equals_is_error():
    state = make_state()
    out = io.StringIO()
    assert export(state, ["export", "=x"], out) == 1
    assert out.getvalue() == "bash: export: `=': not a valid identifier\n"


def test_export_invalid_identifier_reported_and_stops():
    state = make_state()
    out = io.StringIO()
    export(state, ["export", "a1", "B=c"], out)
    assert out.getvalue() == "bash: export: `a1': not a valid identifier\n"
    assert "B" not in state.environ


def test_export_valid_name_without_value_is_silent():
    state = make_state()
    out = io.StringIO()
    export(state, ["export", "NAME"], out)
    assert out.getvalue() == ""
    assert len(state.environ) == 0


def test_unset_removes_exported():
    state = make_state(environ=[("A", "1"), ("B", "2")])
    unset(state, ["unset", "B"], io.StringIO())
    assert state.environ.to_strings() == ["A=1"]


def test_unset_falls_back_to_variables():
    state = make_state(environ=[("A", "1")], variables=[("X", "9")])
    unset(state, ["unset", "X"], io.StringIO())
    assert len(state.variables) == 0
    assert state.environ.to_strings() == ["A=1"]


def test_unset_with_equals_is_error():
    state = make_state(environ=[("A", "1")])
    out = io.StringIO()
    assert unset(state, ["unset", "A=1"], out) == 1
    assert out.getvalue() == "bash: unset: `A=1': not a valid identifier\n"
    assert "A" in state.environ


def test_show_variables_lists_locals():
    state = make_state(variables=[("X", "9")])
    out = io.StringIO()
    show_variables(state, out)
    assert out.getvalue() == "X=9\n"


def test_run_builtin_exit_raises():
    with pytest.raises(ExitRequested) as info:
        run_builtin(make_state(), ["exit"], io.StringIO())
    assert info.value.status == 0


def test_run_builtin_dispatches_echo():
    out = io.StringIO()
    assert run_builtin(make_state(), ["echo", "hi"], out) == 0
    assert out.getvalue() == "hi\n"


def test_run_builtin_dispatches_var():
    out = io.StringIO()
    run_builtin(make_state(variables=[("K", "v")]), ["var"], out)
    assert out.getvalue() == "K=v\n"


def test_run_builtin_unknown_raises():
    with pytest.raises(ValueError):
        run_builtin(make_state(), ["ls"], io.StringIO())


def test_run_builtin_empty_raises():
    with pytest.raises(ValueError):
        run_builtin(make_state(), [], io.StringIO())