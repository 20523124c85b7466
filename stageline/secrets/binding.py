"""
Stageline Secrets - Scoped credential binding.

Binds resolved credentials into a run environment for the duration of a
``with`` block and removes them on every exit path.
"""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING

from loguru import logger

from stageline.secrets.store import SecretStore

if TYPE_CHECKING:
    from stageline.pipeline.models import CredentialBinding

_UNSET = object()


@contextmanager
def bind_credentials(
    env: MutableMapping[str, str],
    bindings: Sequence[CredentialBinding],
    store: SecretStore,
) -> Iterator[list[str]]:
    """
    Inject credentials into ``env`` for the enclosed block.

    All bindings are resolved before anything is injected, so a missing
    credential leaves ``env`` untouched. Variables shadowed by a binding get
    their previous value back on exit.

    Args:
        env: Mutable run environment.
        bindings: Credential bindings declared by the block.
        store: Store to resolve credential ids from.

    Yields:
        Password values bound in this block (for output masking).

    Raises:
        CredentialResolutionFailure: If a credential id cannot be resolved.
    """
    resolved = [(binding, store.resolve(binding.id)) for binding in bindings]

    saved: dict[str, object] = {}
    secrets: list[str] = []
    try:
        for binding, credential in resolved:
            for var, value in (
                (binding.username_var, credential.username),
                (binding.password_var, credential.password),
            ):
                if var not in saved:
                    saved[var] = env.get(var, _UNSET)
                env[var] = value
            secrets.append(credential.password)
            logger.debug(
                f"🔐 Bound credential '{binding.id}' to "
                f"{binding.username_var}/{binding.password_var}"
            )
        yield secrets
    finally:
        for var, previous in saved.items():
            if previous is _UNSET:
                env.pop(var, None)
            else:
                env[var] = previous
        if saved:
            logger.debug(f"🔐 Unbound {len(saved)} credential variable(s)")
