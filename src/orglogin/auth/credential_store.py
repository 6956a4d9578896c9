"""Persistent credential store keyed by username.

Layout on disk:

* ``<data_dir>/orgs/<username>.json`` -- one :class:`~orglogin.models.CredentialRecord`
  per authenticated username, ``0o600``.
* ``<config_dir>/alias.json`` -- the :class:`~orglogin.models.AliasTable`.
* ``<config_dir>/config.json`` -- the default-org pointers (``target_org``
  and ``target_dev_hub`` in :class:`~orglogin.models.GlobalConfig`).

Every file is written atomically via :func:`~orglogin.config.atomic_write`
(temp file in the same directory, fsync, ``os.replace``), so concurrent
readers never observe a half-written record.  Concurrent writers of the same
file resolve as last-writer-wins.

Callers only ever get copies: :meth:`CredentialStore.get_fields` returns a
fresh model decorated with alias and default flags, never a handle into the
store.

See Also:
    :class:`~orglogin.auth.login.LoginOrchestrator` -- the main writer.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import httpx
from pydantic import ValidationError

from orglogin.config import (
    get_config_dir,
    get_data_dir,
    load_global_config,
    save_global_config,
    write_json,
)
from orglogin.exceptions import ConfigError, NotFoundError
from orglogin.models import AliasTable, CredentialRecord
from orglogin.output import debug

_SCRATCH_ORG_QUERY = "SELECT Id FROM ScratchOrgInfo WHERE ScratchOrg='{org_id}'"


def _records_dir() -> Path:
    """Return the org records directory, creating it if needed."""
    path = get_data_dir() / "orgs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _alias_path() -> Path:
    return get_config_dir() / "alias.json"


def _check_username(username: str) -> str:
    if not username or "/" in username or "\\" in username or username.startswith("."):
        raise ConfigError(f"Invalid username for credential storage: {username!r}")
    return username


class CredentialStore:
    """Read/write org credentials, aliases and default-org pointers.

    Args:
        api_version: REST API version used by
            :meth:`identify_possible_scratch_orgs`.  Defaults to the one in
            the global config.

    Example::

        store = CredentialStore()
        store.save(record)
        store.set_alias(record.username, "myorg")
        store.set_default(record.username, as_default_username=True)
        fields = store.get_fields(record.username)
        assert fields.alias == "myorg" and fields.is_default_username
    """

    def __init__(self, api_version: Optional[str] = None) -> None:
        self._api_version = api_version

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def record_path(self, username: str) -> Path:
        """The file a username's record is stored in."""
        return _records_dir() / f"{_check_username(username)}.json"

    def save(self, record: CredentialRecord) -> None:
        """Persist *record* atomically with ``0o600`` permissions.

        Saving the same username again overwrites the previous record.  The
        alias and default decorations are not written.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        write_json(self.record_path(record.username), record.to_stored(), mode=0o600)
        debug(f"Saved credentials for {record.username}")

    def load(self, username: str) -> Optional[CredentialRecord]:
        """Load the undecorated record for *username*.

        Returns:
            The stored record, or ``None`` if it does not exist or cannot be
            parsed.
        """
        path = self.record_path(username)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CredentialRecord.model_validate(data)
        except (json.JSONDecodeError, ValidationError, OSError) as exc:
            debug(f"Ignoring unreadable credential file {path}: {exc}")
            return None

    def exists(self, username: str) -> bool:
        return self.load(username) is not None

    def list_usernames(self) -> list[str]:
        """Usernames with a stored record, sorted."""
        return sorted(p.stem for p in _records_dir().glob("*.json") if p.is_file())

    def list_records(self) -> list[CredentialRecord]:
        """Every readable record, decorated.  Corrupt files are skipped."""
        records = []
        for username in self.list_usernames():
            record = self.load(username)
            if record is not None:
                records.append(self._decorate(record))
        return records

    def get_fields(self, username: str) -> CredentialRecord:
        """Return a decorated copy of the record for *username*.

        Raises:
            NotFoundError: If no readable record exists.
        """
        record = self.load(username)
        if record is None:
            raise NotFoundError(f"No authorization information found for {username}.")
        return self._decorate(record)

    def resolve_username(self, name_or_alias: str) -> str:
        """Map an alias to its username; usernames pass through unchanged."""
        return self.load_aliases().orgs.get(name_or_alias, name_or_alias)

    def _decorate(self, record: CredentialRecord) -> CredentialRecord:
        aliases = self.load_aliases().aliases_for(record.username)
        config = load_global_config()
        return record.model_copy(
            update={
                "alias": aliases[-1] if aliases else None,
                "is_default_username": config.target_org == record.username,
                "is_default_dev_hub_username": config.target_dev_hub == record.username,
            }
        )

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    def load_aliases(self) -> AliasTable:
        """Load the alias table; a missing file is an empty table.

        Raises:
            ConfigError: If the file exists but is not a valid alias table.
        """
        path = _alias_path()
        if not path.is_file():
            return AliasTable()
        try:
            return AliasTable.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ConfigError(f"Invalid alias file at {path}: {exc}") from exc

    def _save_aliases(self, table: AliasTable) -> None:
        write_json(_alias_path(), table.model_dump(mode="json"))

    def set_alias(self, username: str, alias: str) -> None:
        """Point *alias* at *username*, replacing any previous target."""
        table = self.load_aliases()
        previous = table.orgs.pop(alias, None)
        table.orgs[alias] = username
        self._save_aliases(table)
        if previous and previous != username:
            debug(f"Alias {alias} moved from {previous} to {username}")

    def unset_alias(self, alias: str) -> Optional[str]:
        """Remove *alias*.  Returns the username it pointed to, if any."""
        table = self.load_aliases()
        username = table.orgs.pop(alias, None)
        if username is not None:
            self._save_aliases(table)
        return username

    # ------------------------------------------------------------------
    # Default pointers
    # ------------------------------------------------------------------

    def set_default(
        self,
        username: str,
        as_default_username: bool = False,
        as_default_dev_hub: bool = False,
    ) -> None:
        """Make *username* the default org and/or default dev hub.

        Each pointer is a single config field, so the previous holder loses
        the flag in the same write.  Becoming the default dev hub also marks
        the record as a dev hub, which makes it a candidate for
        :meth:`identify_possible_scratch_orgs`.
        """
        if not (as_default_username or as_default_dev_hub):
            return
        config = load_global_config()
        if as_default_username:
            config.target_org = username
        if as_default_dev_hub:
            config.target_dev_hub = username
            record = self.load(username)
            if record is not None and not record.is_dev_hub:
                self.save(record.model_copy(update={"is_dev_hub": True}))
        save_global_config(config)

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    def identify_possible_scratch_orgs(
        self,
        record: CredentialRecord,
        http: Optional[httpx.Client] = None,
    ) -> CredentialRecord:
        """Best-effort check whether *record* is a scratch org of a known dev hub.

        Each locally stored dev hub is asked whether it has a
        ``ScratchOrgInfo`` row for the record's org id.  On the first hit the
        record is marked ``is_scratch_org`` with its ``dev_hub_username`` and
        saved.  Failures are reported at debug level and never raised.

        Returns:
            The (possibly updated) record.
        """
        dev_hubs = []
        for username in self.list_usernames():
            if username == record.username:
                continue
            candidate = self.load(username)
            if candidate is not None and candidate.is_dev_hub:
                dev_hubs.append(candidate)
        if not dev_hubs:
            return record

        api_version = self._api_version or load_global_config().api_version
        query = _SCRATCH_ORG_QUERY.format(org_id=record.org_id[:15])
        client = http or httpx.Client(timeout=30.0)
        try:
            for hub in dev_hubs:
                try:
                    response = client.get(
                        f"{hub.instance_url.rstrip('/')}/services/data/v{api_version}/query",
                        params={"q": query},
                        headers={"Authorization": f"Bearer {hub.access_token}"},
                    )
                    response.raise_for_status()
                    total = response.json().get("totalSize", 0)
                except (httpx.HTTPError, ValueError, AttributeError) as exc:
                    debug(f"Scratch org lookup against {hub.username} failed: {exc}")
                    continue
                if total:
                    updated = record.model_copy(
                        update={"is_scratch_org": True, "dev_hub_username": hub.username}
                    )
                    try:
                        self.save(updated)
                    except OSError as exc:
                        debug(f"Could not save scratch org details for {record.username}: {exc}")
                        return record
                    return updated
        finally:
            if http is None:
                client.close()
        return record
