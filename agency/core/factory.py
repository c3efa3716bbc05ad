"""
Factories that build groups and organizations from configuration.

Two configuration shapes are supported:
- Inline: an organization lists its groups, each group lists its units
- Catalog: units, groups and organizations are declared side by side and
  reference each other by id (groups may be registered under an alias)

Units in configuration name a ``handler``: a function registered on the
group factory that becomes the body of a FunctionUnit.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, ValidationError

from .capabilities import CapabilityRegistry
from .errors import ConfigurationError
from .group import Group
from .models import (
    Catalog,
    GroupConfig,
    GroupReference,
    OrganizationConfig,
    UnitConfig,
)
from .organization import Organization
from .units import FunctionUnit, Unit

logger = logging.getLogger(__name__)

_CATALOG_KEYS = ("organizations", "agency", "agencies")


def _validate(model: type[BaseModel], data: Any, what: str) -> Any:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid {what} configuration: {exc}") from exc


class GroupFactory:
    """Builds units and groups from configuration."""

    def __init__(
        self,
        handlers: Optional[Dict[str, Callable]] = None,
        capabilities: Optional[CapabilityRegistry] = None,
        entry_timeout: Optional[float] = None,
    ):
        self.handlers: Dict[str, Callable] = dict(handlers or {})
        self.capabilities = capabilities or CapabilityRegistry()
        self.entry_timeout = entry_timeout

    def register_handler(self, name: str, func: Callable) -> None:
        """Register a function that unit configurations can name as their handler."""
        if not callable(func):
            raise ConfigurationError(f"Handler {name!r} must be callable")
        self.handlers[name] = func

    def create_unit(self, unit_id: str, config: Union[UnitConfig, Dict[str, Any]]) -> Unit:
        config = _validate(UnitConfig, config, f"unit {unit_id!r}")
        func = self.handlers.get(config.handler)
        if func is None:
            raise ConfigurationError(
                f"Handler {config.handler!r} for unit {unit_id!r} is not registered."
            )
        return FunctionUnit(
            name=config.name or unit_id,
            func=func,
            role=config.role,
            description=config.description,
            capabilities=self.capabilities.resolve(config.capabilities),
        )

    def create_group(self, config: Union[GroupConfig, Dict[str, Any]], group_id: str = "") -> Group:
        """Create a group whose units are declared inline."""
        config = _validate(GroupConfig, config, f"group {group_id!r}")
        units = {
            unit_id: self.create_unit(unit_id, unit_config)
            for unit_id, unit_config in config.units.items()
        }
        return Group(
            name=config.name or group_id or "Unnamed Group",
            description=config.description,
            units=units,
            jobs=config.jobs,
            workflow=config.workflow,
            entry_timeout=self.entry_timeout,
        )

    def create_group_from_catalog(
        self, catalog: Union[Catalog, Dict[str, Any]], group_id: str
    ) -> Group:
        """Create a catalog group, building the units it references by id."""
        catalog = _validate(Catalog, catalog, "catalog")
        group_config = catalog.groups.get(group_id)
        if group_config is None:
            raise ConfigurationError(f"Group configuration not found for id: {group_id}")

        units: Dict[str, Unit] = {}
        for unit_id in group_config.units:
            unit_config = catalog.units.get(unit_id)
            if unit_config is None:
                logger.warning("Unit configuration not found for id: %s", unit_id)
                continue
            units[unit_id] = self.create_unit(unit_id, unit_config)

        group = Group(
            name=group_config.name or group_id,
            description=group_config.description,
            units=units,
            jobs=group_config.jobs,
            workflow=group_config.workflow,
            entry_timeout=self.entry_timeout,
        )
        logger.info(
            "Created group %s: units=%s jobs=%s",
            group.name,
            list(group.units),
            list(group.jobs),
        )
        return group


class OrganizationFactory:
    """Builds organizations from inline or catalog configuration."""

    def __init__(self, group_factory: Optional[GroupFactory] = None):
        self.group_factory = group_factory or GroupFactory()

    def create_organization(
        self, config: Union[OrganizationConfig, Dict[str, Any]]
    ) -> Organization:
        config = _validate(OrganizationConfig, config, "organization")
        groups = {
            group_name: self.group_factory.create_group(group_config, group_name)
            for group_name, group_config in config.groups.items()
        }
        return Organization(
            name=config.name or "Unnamed Organization",
            description=config.description,
            groups=groups,
            workflows=config.workflows,
            entry_timeout=self.group_factory.entry_timeout,
        )

    def create_organization_from_catalog(
        self, catalog: Union[Catalog, Dict[str, Any]], organization_id: str
    ) -> Organization:
        """
        Create a catalog organization.

        Group references are either a group id or ``{"id": ..., "alias": ...}``;
        references to missing groups are logged and skipped.
        """
        catalog = _validate(Catalog, catalog, "catalog")
        org_config = catalog.organizations.get(organization_id)
        if org_config is None:
            raise ConfigurationError(
                f"Organization configuration not found for id: {organization_id}"
            )

        groups: Dict[str, Group] = {}
        for reference in org_config.groups:
            if isinstance(reference, GroupReference):
                group_id, group_name = reference.id, reference.alias or reference.id
            else:
                group_id = group_name = reference
            if group_id not in catalog.groups:
                logger.warning("Group configuration not found for id: %s", group_id)
                continue
            groups[group_name] = self.group_factory.create_group_from_catalog(
                catalog, group_id
            )

        organization = Organization(
            name=org_config.name or organization_id,
            description=org_config.description,
            groups=groups,
            workflows=org_config.workflows,
            entry_timeout=self.group_factory.entry_timeout,
        )
        logger.info(
            "Created organization %s: groups=%s workflows=%s",
            organization.name,
            list(organization.groups),
            list(organization.workflows),
        )
        return organization

    def load_from_file(
        self, path: Union[str, Path], organization_id: Optional[str] = None
    ) -> Organization:
        """
        Load an organization from a JSON file in either configuration shape.

        For a catalog file, ``organization_id`` selects the organization; it
        may be omitted when the catalog declares exactly one.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot load configuration from {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {path} must be a JSON object")

        if not any(key in data for key in _CATALOG_KEYS):
            return self.create_organization(data)

        catalog = _validate(Catalog, data, "catalog")
        if organization_id is None:
            if len(catalog.organizations) != 1:
                raise ConfigurationError(
                    f"{path} declares {len(catalog.organizations)} organizations; "
                    "an organization id is required."
                )
            organization_id = next(iter(catalog.organizations))
        return self.create_organization_from_catalog(catalog, organization_id)
