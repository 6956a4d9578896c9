"""Built-in CLI sub-commands for orglogin.

This package groups the Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~orglogin.commands.login` -- web login and connection-URL import.
* :mod:`~orglogin.commands.org` -- list and display stored orgs.
* :mod:`~orglogin.commands.alias` -- manage org aliases.
* :mod:`~orglogin.commands.config` -- view and modify global settings.

Each module exports a :class:`typer.Typer` sub-application that
:func:`orglogin.app.main` mounts on the root app.
"""
