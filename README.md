# mshell

`mshell` is the core of a small POSIX-style shell. It keeps the shell's
environment as an ordered list of `NAME=value` lines, implements the usual
builtins (`echo`, `cd`, `pwd`, `env`, `export`, `unset`, `exit`), reads
here-document text and runs external commands on their own or joined by
pipes.

## Modules

- `mshell.state`: `Shell`, the state of one session (its `environment`,
  current `line`, `exit_value`, `tokens` and `commands`); `Token` and
  `TokenType` for the words of a line; `Command` for a simple command with its
  arguments and redirected descriptors; and `ShellExit`, raised when the
  session is asked to end. `Shell.pipe_in_tokens()` tells whether the current
  line holds a pipe, and `Shell.exit()` ends the session by raising
  `ShellExit` with the last exit value.
- `mshell.environment`: `Environment` and `EnvEntry`, the ordered environment
  that the builtins and child processes work from.
- `mshell.builtins`: the builtin commands (`echo`, `cd`, `pwd`, `env`,
  `export`, `unset`, `exit_shell`) and the helpers behind them:
  `is_builtin`, `is_echo_n_flag`, `is_valid_export_name`,
  `is_valid_unset_name`, `sorted_environment`, `export_listing` and
  `parse_exit_status`. `run_builtin` dispatches a `Command` to the right
  builtin.
- `mshell.executor`: running a line. `launch_line` runs the commands held by a
  `Shell`, calling a builtin directly or starting a program with
  `run_command`; `run_pipeline` connects several commands with pipes;
  `read_heredoc` collects here-document lines up to their delimiter;
  `find_command_path` searches a `PATH` value for an executable;
  `has_path_variable` tells whether an environment assigns `PATH`; and
  `wait_status_to_exit_value` turns a raw wait status into `$?`.

## The environment

```python
from mshell.environment import Environment

env = Environment.from_mapping({"HOME": "/home/user", "PATH": "/usr/bin:/bin"})
env.get("HOME")             # "/home/user"
env.update("PATH=/bin")     # replaces the existing entry in place
env.update("EDITOR=vi")     # appended at the end
env.to_list()               # ["HOME=/home/user", "PATH=/bin", "EDITOR=vi"]
env.to_dict()               # assigned variables only, name -> value
```

Entries keep the order in which they were added, and that is the order `env`
prints them in. A line without `=` is kept as a declared but unassigned
variable: `get` returns `None` for it and `to_dict` leaves it out.
`update` on an empty environment changes nothing; use `add` to append
unconditionally. `export` with no arguments lists the entries sorted, each as
`declare -x NAME="value"` (or `declare -x NAME` when unassigned).

## Builtins

The builtins write to the streams they are given (standard output and
standard error by default) and set `Shell.exit_value`:

- `echo` accepts any number of leading `-n`, `-nn`, ... flags to suppress the
  trailing newline (`is_echo_n_flag("-nnn")` is true, `is_echo_n_flag("-n-")`
  is not).
- `cd` with no argument goes to `$HOME`, updates `PWD` and `OLDPWD`, and
  reports an unset `HOME`, a missing directory, a permission problem or too
  many arguments with exit value 1.
- `pwd` prints the working directory.
- `export` and `unset` check that each name starts with a letter or `_` and
  holds only letters, digits and `_`. `export` stops at the first invalid
  name with exit value 1; `unset` reports invalid names, ignores unknown ones
  and always sets exit value 0.
- `exit_shell` takes an optional numeric status, reduced to the range 0 to
  255 by `parse_exit_status`; a non-numeric or overlong argument ends the
  session with status 2, and more than one argument is refused with status 1
  without ending it. Ending the session raises `ShellExit` carrying the final
  status.

`run_builtin` skips a command whose redirection failed and sends the
builtin's output to the command's `outfile` descriptor when it has one.

## Running commands

`run_command` refuses to start a program when the shell's environment does
not assign `PATH` (exit value 127). Otherwise it tries the command name as
given if it is executable, then looks it up along the process's own `PATH`,
and starts it with the shell's assigned variables as its environment. A
program that cannot be found gives exit value 127; a program killed by a
signal gives 128 plus the signal number, except that SIGPIPE counts as 0.

In `run_pipeline` every stage runs concurrently and the last stage gives the
exit value. Builtins inside a pipeline run on a copy of the shell, so they
never change the session's environment or exit value.

## What this package does not do

`mshell` has no command-line program and no interactive prompt loop. It does
not split a typed line into tokens, expand `$` variables or check syntax:
callers fill `Shell.tokens` and `Shell.commands` themselves. It does not open
redirection files either; a `Command` carries already-open descriptors in
`infile` and `outfile`. `read_heredoc` returns the document's text and leaves
feeding it to a command to the caller. Signal handling for an interactive
terminal is not provided.

## Running the tests

```
pip install -e ".[test]"
pytest
```