# minish

A small interactive command shell. It reads command lines, splits them
into tokens, removes quotes and expands variables, and runs the result
as a sequence of pipelines with input and output redirections.

## Installing

```
pip install .
```

## Running

```
minish
```

This reads command lines from standard input until end of input or
`exit`. When standard input is a terminal, the prompt `minishell$ ` is
shown. SIGQUIT is ignored by the shell itself; Ctrl-C at the prompt
starts a fresh line.

## What the shell understands

- Commands separated by `;`, each possibly a pipeline joined with `|`.
  The status of a pipeline is that of its last stage.
- Redirections: `< file`, `> file` (truncate) and `>> file` (append).
  Output files are created with mode 0644. When several redirections of
  the same direction are given, the last one wins.
- Single quotes keep their contents literally; double quotes allow
  `$NAME` expansion and the escapes `\\`, `\"` and `\$`. A backslash
  outside quotes escapes the character after it, including the
  operators `|`, `;`, `<` and `>`.
- `$NAME` expands from the environment first, then from shell
  variables, and to nothing when neither has it; `$?` gives the last
  exit status, `$0` gives `./minishell`, and a lone `$` stays as it is.
- The command word is lower-cased before it is run. A command word of
  the form `NAME=value` sets a shell variable instead (so its name is
  lower-cased too).
- Built-in commands:
  - `echo` (a first argument `-n` drops the trailing newline),
  - `cd` (no argument or a leading `~` means `$HOME`),
  - `pwd`, `env`,
  - `export NAME=value ...` (with no arguments lists the environment as
    `declare -x NAME=value`),
  - `unset NAME` (removes the first variable whose name starts with
    `NAME`, looking in the environment before shell variables),
  - `var` (lists shell variables),
  - `exit` (leaves with status 0).
- Other commands are looked up on `PATH` and started as child
  processes. An unknown command sets status 1; with no `PATH` at all
  the status is 127.
- Syntax errors such as a redirection with no file or `| |` are
  reported with status 258.
- A quote left open ends the shell with the message
  `Multi line detected..!!!` and status 255.

Variables are expanded for the whole line before any of it runs, so
`export A=1; echo $A` prints the value `A` had before the line.

## Using it from Python

```python
import io

from minish.env import Environment, ShellState
from minish.executor import Shell

out = io.StringIO()
state = ShellState(environ=Environment.from_strings(["HOME=/tmp", "PATH=/usr/bin:/bin"]))
shell = Shell(state, out=out)
shell.run_line("export GREETING=hello")
shell.run_line("echo $GREETING world")
print(out.getvalue())   # hello world
```

`Shell.run_line` returns the new status; `Shell.repl(stream)` runs every
line of a stream and returns the final status, or the status passed to
`exit`.

The pieces are usable on their own as well:

```python
from minish.lexer import tokenize, check_syntax, format_tokens

tokens = check_syntax(tokenize("ls -l | wc -l > count.txt"))
print(format_tokens(tokens))
```

- `minish.lexer` — `tokenize`, `check_syntax` (raises
  `ShellSyntaxError`), `format_tokens`, and the `Token` and `Kind` types.
- `minish.expand` — `expand_word`, `expand_tokens` and `expand_dollar`;
  an open quote raises `UnterminatedQuoteError`.
- `minish.env` — `Environment`, an ordered name/value table, and
  `ShellState`, holding the environment, shell variables and status.
- `minish.builtins` — the built-in commands, `run_builtin` and
  `is_builtin`; `exit` raises `ExitRequested`.
- `minish.commands` — `split_sequences`, `split_pipeline`,
  `resolve_path` and `build_command`, which turns a pipeline segment
  into a `SimpleCommand` with its `Redirection`s or raises
  `CommandError`.
- `minish.executor` — `Shell`, including `run_tokens` and
  `run_pipeline`, and the `main` entry point.

## What it does not do

There is no line editing or history, no here-documents, no `&&`, `||`
or background jobs, no globbing, and no script files or `-c` option:
the shell only reads lines from standard input.

## Running the tests

```
pip install .[test]
pytest
```