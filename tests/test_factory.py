import asyncio
import json

import pytest

from agency.core.capabilities import CapabilityRegistry
from agency.core.errors import ConfigurationError
from agency.core.factory import GroupFactory, OrganizationFactory
from agency.core.units import FunctionUnit


def upper(input, context):
    return input.upper()


async def tagged(input, context, unit):
    return {"text": input, "tags": await unit.use("tag", input)}


@pytest.fixture
def factory():
    capabilities = CapabilityRegistry()
    capabilities.add(lambda text: ["t:" + text], name="tag", description="Tag a text.")
    return OrganizationFactory(
        GroupFactory(handlers={"upper": upper, "tagged": tagged}, capabilities=capabilities)
    )


INLINE = {
    "name": "inlineOrg",
    "description": "Built from an inline configuration.",
    "teams": {
        "shouters": {
            "agents": {
                "loud": {"role": "Shouter", "handler": "upper"},
                "tagger": {"role": "Tagger", "handler": "tagged", "tools": ["tag", "unknown"]},
            },
            "jobs": {
                "shout": {"agentName": "loud"},
                "tag": {
                    "agentName": "tagger",
                    "inputMapping": {"x": "results.shout"},
                    "outputKey": "tags",
                },
            },
            "workflow": ["shout", "tag"],
        }
    },
    "workflows": {
        "go": {"steps": [{"name": "only", "teamName": "shouters", "outputKey": "tag"}]}
    },
}


CATALOG = {
    "units": {
        "loud": {"role": "Shouter", "handler": "upper"},
    },
    "groups": {
        "shouters": {
            "name": "Shouters",
            "units": ["loud", "ghost"],
            "jobs": {"shout": {"unitName": "loud"}},
            "workflow": ["shout"],
        }
    },
    "organizations": {
        "catalogOrg": {
            "groups": ["shouters", {"id": "shouters", "alias": "backup"}, "missing"],
            "workflows": {
                "go": {
                    "steps": [
                        {"name": "first", "groupName": "shouters", "jobName": "shout"},
                        {
                            "name": "second",
                            "groupName": "backup",
                            "jobName": "shout",
                            "inputMapping": {"text": "results.first"},
                        },
                    ]
                }
            },
        }
    },
}


def test_create_unit_wraps_handler(factory):
    unit = factory.group_factory.create_unit("loud", {"role": "Shouter", "handler": "upper"})

    assert isinstance(unit, FunctionUnit)
    assert unit.name == "loud"
    assert asyncio.run(unit.run("hi", {})) == "HI"


def test_unknown_handler_is_a_configuration_error(factory):
    with pytest.raises(ConfigurationError):
        factory.group_factory.create_unit("x", {"role": "Any", "handler": "nope"})
    with pytest.raises(ConfigurationError):
        factory.group_factory.create_unit("x", {"handler": "upper"})


def test_register_handler(factory):
    factory.group_factory.register_handler("echo", lambda input, context: input)

    unit = factory.group_factory.create_unit("e", {"role": "Echo", "handler": "echo"})

    assert asyncio.run(unit.run("same", {})) == "same"
    with pytest.raises(ConfigurationError):
        factory.group_factory.register_handler("bad", "not callable")


def test_inline_organization(factory):
    organization = factory.create_organization(INLINE)

    assert organization.name == "inlineOrg"
    group = organization.groups["shouters"]
    assert group.units["tagger"].capability_names() == ["tag"]

    results = asyncio.run(organization.run("go", {"text": "hi"}))

    assert results == {"only": ["t:HI"]}


def test_catalog_organization_with_alias_and_missing_refs(factory):
    organization = factory.create_organization_from_catalog(CATALOG, "catalogOrg")

    assert set(organization.groups) == {"shouters", "backup"}
    assert organization.groups["backup"].name == "Shouters"
    assert list(organization.groups["shouters"].units) == ["loud"]

    results = asyncio.run(organization.run("go", {"text": "hi"}))

    assert results == {"first": "HI", "second": "HI"}


def test_catalog_unknown_ids(factory):
    with pytest.raises(ConfigurationError):
        factory.create_organization_from_catalog(CATALOG, "nope")
    with pytest.raises(ConfigurationError):
        factory.group_factory.create_group_from_catalog(CATALOG, "nope")


def test_invalid_inline_config(factory):
    with pytest.raises(ConfigurationError):
        factory.create_organization(
            {"groups": {"g": {"jobs": {"j": {"unitName": "u", "inputMapping": {"a": "bad.path"}}}}}}
        )


def test_load_inline_file(factory, tmp_path):
    path = tmp_path / "org.json"
    path.write_text(json.dumps(INLINE))

    organization = factory.load_from_file(path)

    assert organization.name == "inlineOrg"


def test_load_catalog_file_with_single_organization(factory, tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(CATALOG))

    organization = factory.load_from_file(str(path))

    assert organization.name == "catalogOrg"


def test_load_catalog_file_requires_id_when_ambiguous(factory, tmp_path):
    catalog = json.loads(json.dumps(CATALOG))
    catalog["agencies"] = {
        **catalog.pop("organizations"),
        "other": {"groups": ["shouters"]},
    }
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(catalog))

    with pytest.raises(ConfigurationError):
        factory.load_from_file(path)
    assert factory.load_from_file(path, "other").name == "other"


def test_load_bad_files(factory, tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    listing = tmp_path / "list.json"
    listing.write_text("[]")

    with pytest.raises(ConfigurationError):
        factory.load_from_file(broken)
    with pytest.raises(ConfigurationError):
        factory.load_from_file(listing)
    with pytest.raises(ConfigurationError):
        factory.load_from_file(tmp_path / "missing.json")
