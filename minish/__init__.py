"""A small interactive command shell with pipes, redirections, quoting and variable expansion."""

__version__ = "0.1.0"