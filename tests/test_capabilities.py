import asyncio

import pytest

from agency.core.capabilities import CapabilityRegistry
from agency.core.errors import ConfigurationError
from agency.core.units import FunctionUnit


@pytest.fixture
def registry():
    registry = CapabilityRegistry()

    @registry.register(name="add")
    def add(a, b=1):
        """Add two numbers."""
        return a + b

    async def shout(text):
        return text.upper()

    registry.add(shout, description="Upper-case a text.")
    return registry


def test_register_derives_schema_from_signature(registry):
    listed = {c["name"]: c for c in registry.list_capabilities()}

    assert listed["add"]["description"] == "Add two numbers."
    schema = listed["add"]["input_schema"]
    assert schema["a"]["required"] is True
    assert schema["b"]["required"] is False
    assert schema["b"]["default"] == 1
    assert listed["shout"]["description"] == "Upper-case a text."


def test_explicit_schema_is_kept():
    registry = CapabilityRegistry()
    registry.add(lambda q: q, name="search", description="Search.", input_schema={"q": "text"})

    assert registry.list_capabilities()[0]["input_schema"] == {"q": "text"}


def test_capability_needs_a_description():
    registry = CapabilityRegistry()

    with pytest.raises(ConfigurationError):
        registry.add(lambda x: x, name="anonymous")
    assert not registry.has("anonymous")


def test_invoke_sync_and_async(registry):
    assert asyncio.run(registry.invoke("add", 2, b=3)) == 5
    assert asyncio.run(registry.invoke("shout", "hi")) == "HI"


def test_invoke_unknown_capability(registry):
    with pytest.raises(KeyError):
        asyncio.run(registry.invoke("missing"))


def test_resolve_skips_unknown_names(registry, caplog):
    resolved = registry.resolve(["add", "missing"])

    assert list(resolved) == ["add"]
    assert "missing" in caplog.text


def test_unit_uses_its_capabilities(registry):
    async def handler(input, context, unit):
        total = await unit.use("add", int(input), b=context["step"])
        return await unit.use("shout", f"total {total}")

    unit = FunctionUnit("calc", handler, role="Calculator", capabilities=registry.resolve(["add", "shout"]))

    assert asyncio.run(unit.run("4", {"step": 2})) == "TOTAL 6"
    assert unit.describe()["capabilities"] == ["add", "shout"]


def test_unit_without_capability_raises(registry):
    async def handler(input, context, unit):
        return await unit.use("shout", input)

    unit = FunctionUnit("plain", handler)

    with pytest.raises(KeyError):
        asyncio.run(unit.run("x", {}))


def test_function_unit_description_defaults_to_docstring():
    def summarize(input, context):
        """Summarize the input."""
        return input[:10]

    unit = FunctionUnit("summarizer", summarize, role="Writer")

    assert unit.description == "Summarize the input."
    assert repr(unit) == "FunctionUnit(name='summarizer', role='Writer')"
