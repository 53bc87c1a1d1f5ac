"""Static catalog of known relays with name/alias resolution."""

import logging
import re
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from relaywatch.constants import DEFAULT_RELAYS, RELAY_ALIASES
from relaywatch.exceptions import InvalidInputError
from relaywatch.models import RelayIdentity


def canonical_relay_key(name: str) -> str:
    """Lowercase a relay name and fold spaces, underscores and brackets into dashes.

    ``"Bloxroute (Max Profit)"``, ``"bloxroute_max_profit"`` and
    ``"bloxroute-max-profit"`` all map to the same key.
    """
    return re.sub(r'[\s_()]+', '-', name.strip().lower()).strip('-')


class RelayRegistry:
    """Immutable lookup table of relay identities.

    Built once from configuration at start-up; lookups never mutate it, so
    it can be shared freely between concurrent queries.
    """

    def __init__(
        self,
        relays: Union[Mapping[str, str], Iterable[RelayIdentity]],
        aliases: Optional[Mapping[str, Iterable[str]]] = None
    ):
        """Initialize the registry.

        Args:
            relays: Mapping of relay name to endpoint URL, or relay identities
            aliases: Mapping of alias to the relay names it expands to
        """
        self.logger = logging.getLogger(__name__)

        if isinstance(relays, Mapping):
            identities = []
            for name, url in relays.items():
                try:
                    identities.append(RelayIdentity.from_url(canonical_relay_key(name), url))
                except ValidationError as e:
                    reason = e.errors()[0]['msg']
                    raise InvalidInputError(f"Invalid endpoint for relay {name!r}: {reason}") from e
        else:
            identities = [
                relay.model_copy(update={'name': canonical_relay_key(relay.name)})
                for relay in relays
            ]

        by_name: Dict[str, RelayIdentity] = {}
        for relay in identities:
            if relay.name in by_name:
                raise InvalidInputError(f"Duplicate relay name: {relay.name}")
            by_name[relay.name] = relay
        self._relays = MappingProxyType(by_name)

        expanded: Dict[str, Tuple[str, ...]] = {}
        for alias, targets in (aliases or {}).items():
            names = tuple(canonical_relay_key(t) for t in targets)
            # Aliases pointing at relays outside this catalog are dropped
            known = tuple(n for n in names if n in by_name)
            if known:
                expanded[canonical_relay_key(alias)] = known
            else:
                self.logger.debug(f"Ignoring alias {alias!r}: no known relay among {list(names)}")
        self._aliases = MappingProxyType(expanded)

    @classmethod
    def default(cls) -> 'RelayRegistry':
        """Registry of the built-in mainnet relays."""
        return cls(DEFAULT_RELAYS, RELAY_ALIASES)

    @property
    def names(self) -> List[str]:
        return list(self._relays.keys())

    @property
    def relays(self) -> List[RelayIdentity]:
        return list(self._relays.values())

    @property
    def aliases(self) -> Mapping[str, Tuple[str, ...]]:
        return self._aliases

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        key = canonical_relay_key(name)
        return key in self._relays or key in self._aliases

    def __len__(self) -> int:
        return len(self._relays)

    def __iter__(self):
        return iter(self._relays.values())

    def get(self, name: str) -> RelayIdentity:
        """Resolve a single relay name (not a multi-relay alias).

        Raises:
            InvalidInputError: If the name is unknown or names a group
        """
        relays = self.resolve(name)
        if len(relays) != 1:
            raise InvalidInputError(
                f"Relay alias {name!r} refers to several relays: "
                f"{', '.join(r.name for r in relays)}"
            )
        return relays[0]

    def resolve(self, names: Union[None, str, Iterable[str]] = None) -> Tuple[RelayIdentity, ...]:
        """Resolve relay names and aliases to identities.

        Args:
            names: A name, an iterable of names/aliases, or None for every relay.
                Comma-separated strings are split.

        Returns:
            Unique identities in first-seen order

        Raises:
            InvalidInputError: If any name is unknown or nothing was requested
        """
        if names is None:
            return tuple(self._relays.values())
        if isinstance(names, str):
            names = names.split(',')

        resolved: Dict[str, RelayIdentity] = {}
        for raw in names:
            key = canonical_relay_key(raw)
            if not key:
                continue
            if key in self._relays:
                targets: Tuple[str, ...] = (key,)
            elif key in self._aliases:
                targets = self._aliases[key]
            else:
                raise InvalidInputError(
                    f"Relay {raw!r} not found in list of relays "
                    f"(known: {', '.join(self._relays)})"
                )
            for target in targets:
                resolved.setdefault(target, self._relays[target])

        if not resolved:
            raise InvalidInputError("At least one relay is required")
        return tuple(resolved.values())
