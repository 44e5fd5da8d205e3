"""Pluggy hook specifications for registry notifications.

Every state change emits exactly one hook call (batches emit one call per
record plus a completion call). The registry ignores return values; a
failing hook only adds a warning to the result.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("namereg")


class NameregHookSpec:
    """Hook specifications for the namereg notification sink."""

    @hookspec
    def post_register(
        self,
        name: str,
        tld: str,
        owner: str,
        resolution_target: str,
        registered_at: int,
        expires_at: int,
        fee: int,
    ) -> None:
        """Called after a name is registered (or re-registered after expiry)."""

    @hookspec
    def post_renew(
        self,
        name: str,
        tld: str,
        owner: str,
        expires_at: int,
        years: int,
        fee: int,
    ) -> None:
        """Called after a renewal extends a record."""

    @hookspec
    def post_target_update(
        self,
        name: str,
        tld: str,
        previous_target: str,
        resolution_target: str,
    ) -> None:
        """Called after a record's resolution target changes."""

    @hookspec
    def post_batch_register(
        self,
        owner: str,
        names: list[str],
        total_fee: int,
    ) -> None:
        """Called once after a batch registration commits."""

    @hookspec
    def post_fee_change(self, bucket: str, previous: int, amount: int) -> None:
        """Called after a fee bucket price changes."""

    @hookspec
    def post_tld_change(self, tld: str, supported: bool) -> None:
        """Called after a suffix is added or removed."""

    @hookspec
    def post_settings_change(self, key: str, previous: str | None, value: str) -> None:
        """Called after the treasury or fee asset changes."""

    @hookspec
    def describe_plugin(self) -> dict[str, Any] | None:
        """Return ``{"name": ..., "version": ...}`` for plugin listings."""
