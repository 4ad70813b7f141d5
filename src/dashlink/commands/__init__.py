"""Built-in CLI sub-commands for dashlink.

* :mod:`~dashlink.commands.connection` -- ``check`` and ``watch``, the
  diagnosis cascade and the reconnect loop.
* :mod:`~dashlink.commands.data` -- ``fetch``, ``dashboard`` and ``plugin``.
* :mod:`~dashlink.commands.cache` -- inspect and maintain the response cache.
* :mod:`~dashlink.commands.config` -- view and modify global settings.

:mod:`~dashlink.commands.runtime` holds the helpers every command uses to
turn the Typer context into a resolved config and live collaborators.
"""
