"""Git hook integration.

- :func:`init_repository` -- create ``.doch/`` with a default config and the
  ``post-commit``, ``post-merge`` and ``pre-push`` hook scripts, optionally
  installing them into ``.git/hooks``.

The hook scripts call the ``doch`` CLI and branch on its exit code:
``doch drift`` records status after commits and merges, ``doch check`` is
the last statement of the blocking ``pre-push`` hook.
"""

from doch.hooks.installer import HOOK_SCRIPTS, init_repository, is_initialized

__all__ = ["HOOK_SCRIPTS", "init_repository", "is_initialized"]
