import io
import os

import pytest

from mshell.builtins import (
    cd,
    echo,
    env,
    exit_shell,
    export,
    export_listing,
    is_builtin,
    is_echo_n_flag,
    is_valid_export_name,
    is_valid_unset_name,
    parse_exit_status,
    pwd,
    run_builtin,
    sorted_environment,
    unset,
)
from mshell.environment import Environment
from mshell.state import Command, Shell, ShellExit, Token, TokenType


def make_shell(*lines):
    return Shell(environment=Environment(lines))


def test_is_builtin():
    assert is_builtin("cd")
    assert is_builtin("export")
    assert not is_builtin("ls")
    assert not is_builtin(None)


@pytest.mark.parametrize(
    "arg, expected",
    [("-n", True), ("-nnn", True), ("-", False), ("-na", False), ("n", False), ("", False)],
)
def test_is_echo_n_flag(arg, expected):
    assert is_echo_n_flag(arg) is expected


def test_echo_plain_and_flags():
    shell = make_shell("A=1")
    shell.exit_value = 5
    out = io.StringIO()
    assert echo(shell, ["echo", "hi", "there"], out) == 0
    assert out.getvalue() == "hi there\n"
    assert shell.exit_value == 0

    out = io.StringIO()
    echo(shell, ["echo", "-n", "-nn", "hi", "-n"], out)
    assert out.getvalue() == "hi -n"


def test_echo_no_args_prints_newline():
    out = io.StringIO()
    echo(make_shell(), ["echo"], out)
    assert out.getvalue() == "\n"


def test_cd_updates_pwd_and_oldpwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "sub"
    target.mkdir()
    shell = make_shell("PWD=/old", "HOME=/nowhere")
    err = io.StringIO()
    assert cd(shell, ["cd", str(target)], err) == 0
    assert shell.environment.get("OLDPWD") == "/old"
    assert shell.environment.get("PWD") == os.getcwd()
    assert os.path.samefile(os.getcwd(), target)
    assert err.getvalue() == ""


def test_cd_missing_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    shell = make_shell("PWD=/old")
    err = io.StringIO()
    missing = str(tmp_path / "missing")
    assert cd(shell, ["cd", missing], err) == 1
    assert err.getvalue() == f"mshell: cd: {missing}: No such file or directory\n"
    assert shell.exit_value == 1
    assert shell.environment.get("PWD") == "/old"


def test_cd_too_many_arguments():
    shell = make_shell("PWD=/old")
    err = io.StringIO()
    assert cd(shell, ["cd", "a", "b"], err) == 1
    assert "too many arguments" in err.getvalue()
    assert shell.exit_value == 1


def test_cd_home(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    home = tmp_path / "home"
    home.mkdir()
    shell = make_shell(f"HOME={home}", "PWD=/old")
    assert cd(shell, ["cd"], io.StringIO()) == 0
    assert os.path.samefile(os.getcwd(), home)
    assert shell.environment.get("PWD") == os.getcwd()


def test_cd_home_not_set():
    shell = make_shell("PWD=/old")
    err = io.StringIO()
    assert cd(shell, ["cd"], err) == 1
    assert err.getvalue() == "mshell: cd: HOME not set\n"


def test_pwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    shell = make_shell()
    shell.exit_value = 3
    out = io.StringIO()
    assert pwd(shell, out, io.StringIO()) == 0
    assert out.getvalue() == os.getcwd() + "\n"
    assert shell.exit_value == 0


def test_env_prints_only_assigned():
    shell = make_shell("A=1", "B", "C=")
    out = io.StringIO()
    assert env(shell, out) == 0
    assert out.getvalue() == "A=1\nC=\n"


def test_env_empty_returns_one():
    shell = make_shell()
    shell.exit_value = 7
    out = io.StringIO()
    assert env(shell, out) == 1
    assert out.getvalue() == ""
    assert shell.exit_value == 7


def test_sorted_environment_is_ordered():
    lines = ["b=1", "A=2", "_x=3", "a=0"]
    result = sorted_environment(lines)
    assert sorted(result) == result
    assert set(result) == set(lines)
    assert result[0] == "A=2"


def test_export_listing_format():
    out = io.StringIO()
    export_listing(Environment(["B=2", "A=1", "C"]), out)
    assert out.getvalue() == 'declare -x A="1"\ndeclare -x B="2"\ndeclare -x C\n'


@pytest.mark.parametrize(
    "word, expected",
    [("A=1", True), ("_b", True), ("a1=x y", True), ("1a", False), ("", False), ("a-b=1", False), ("=1", False)],
)
def test_is_valid_export_name(word, expected):
    assert is_valid_export_name(word) is expected


def test_export_sets_and_replaces():
    shell = make_shell("A=1")
    assert export(shell, ["export", "B=2", "A=3", "C"], io.StringIO(), io.StringIO()) == 0
    assert shell.environment.to_list() == ["A=3", "B=2", "C"]
    assert shell.exit_value == 0


def test_export_invalid_stops():
    shell = make_shell("A=1")
    err = io.StringIO()
    assert export(shell, ["export", "1x=2", "B=2"], io.StringIO(), err) == 1
    assert err.getvalue() == "mshell: export: '1x=2': invalid identifier\n"
    assert shell.environment.to_list() == ["A=1"]
    assert shell.exit_value == 1


def test_export_without_args_lists():
    shell = make_shell("Z=1", "A=2")
    out = io.StringIO()
    export(shell, ["export"], out, io.StringIO())
    assert out.getvalue() == 'declare -x A="2"\ndeclare -x Z="1"\n'


def test_is_valid_unset_name():
    out = io.StringIO()
    assert is_valid_unset_name("PATH", out)
    assert out.getvalue() == ""
    assert not is_valid_unset_name("A=1", out)
    assert out.getvalue() == "mshell: unset: `A=1': not a valid identifier\n"
    assert not is_valid_unset_name("", io.StringIO())


def test_unset_removes_entries():
    shell = make_shell("A=1", "AB=2", "B", "C=3")
    out = io.StringIO()
    assert unset(shell, ["unset", "A", "B", "missing", "9x"], out) == 0
    assert shell.environment.to_list() == ["AB=2", "C=3"]
    assert "9x" in out.getvalue()
    assert shell.exit_value == 0


@pytest.mark.parametrize("text", ["0", "42", "255", "  7  "])
def test_parse_exit_status_in_range(text):
    assert parse_exit_status(text) == int(text)


def test_parse_exit_status_wraps():
    assert parse_exit_status("256") == 0
    assert parse_exit_status("-1") == 255
    assert 0 <= parse_exit_status("123456789") <= 255


@pytest.mark.parametrize("text", ["abc", "12a", " -5", "99999999999999999999"])
def test_parse_exit_status_rejects(text):
    with pytest.raises(ValueError):
        parse_exit_status(text)


def test_exit_without_argument_keeps_value():
    shell = make_shell("A=1")
    shell.exit_value = 4
    out = io.StringIO()
    with pytest.raises(ShellExit) as caught:
        exit_shell(shell, ["exit"], out, io.StringIO())
    assert caught.value.code == 4
    assert out.getvalue() == "exit\n"


def test_exit_with_status():
    shell = make_shell()
    with pytest.raises(ShellExit) as caught:
        exit_shell(shell, ["exit", "42"], io.StringIO(), io.StringIO())
    assert caught.value.code == 42


def test_exit_numeric_argument_required():
    shell = make_shell()
    err = io.StringIO()
    with pytest.raises(ShellExit) as caught:
        exit_shell(shell, ["exit", "abc"], io.StringIO(), err)
    assert caught.value.code == 2
    assert err.getvalue() == "exit\nmshell: exit: abc: numeric argument required\n"


def test_exit_too_many_arguments_does_not_exit():
    shell = make_shell()
    err = io.StringIO()
    assert exit_shell(shell, ["exit", "1", "2"], io.StringIO(), err) == 1
    assert shell.exit_value == 1
    assert err.getvalue() == "mshell: exit: too many arguments\n"


def test_exit_in_pipeline_is_silent():
    shell = make_shell()
    shell.tokens = [Token("a", 0, TokenType.CMD), Token("|", 1, TokenType.PIPE)]
    shell.exit_value = 3
    out = io.StringIO()
    with pytest.raises(ShellExit) as caught:
        exit_shell(shell, ["exit"], out, io.StringIO())
    assert caught.value.code == 3
    assert out.getvalue() == ""


def test_run_builtin_writes_to_outfile(tmp_path):
    target = tmp_path / "out.txt"
    fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
    try:
        shell = make_shell("A=1")
        command = Command(cmd="echo", args=["echo", "hello"], outfile=fd)
        assert run_builtin(shell, command, io.StringIO(), io.StringIO()) == 0
    finally:
        os.close(fd)
    assert target.read_text() == "hello\n"


def test_run_builtin_dispatches_to_stream():
    shell = make_shell("A=1")
    out = io.StringIO()
    run_builtin(shell, Command(cmd="export", args=["export", "B=2"]), out, io.StringIO())
    run_builtin(shell, Command(cmd="env", args=["env"]), out, io.StringIO())
    assert out.getvalue() == "A=1\nB=2\n"


def test_run_builtin_skips_failed_redirection():
    shell = make_shell("A=1")
    shell.exit_value = 1
    out = io.StringIO()
    command = Command(cmd="echo", args=["echo", "x"], infile=-2)
    assert run_builtin(shell, command, out, io.StringIO()) == 1
    assert out.getvalue() == ""