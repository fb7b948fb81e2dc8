"""Tests for ToolSpec and ToolRegistry.

Covers:
- ToolSpec creation and immutability
- ToolRegistry read-only filtering
- ToolRegistry list_tools, tool_count, call_tool
- Error translation in call_tool (SyncError, ValueError, unexpected)
"""

import asyncio
import unittest

import mcp.types as types

from git_doc_sync.core.errors import InvalidStateError
from git_doc_sync.mcp.tools import ALL_SPECS
from git_doc_sync.mcp.tools.registry import ToolRegistry, ToolSpec


def _make_spec(name: str, mutating: bool = False, handler=None) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if handler is None:

        async def handler(context, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        mutating=mutating,
        handler=handler,
    )


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestToolSpec(unittest.TestCase):
    def test_creation(self):
        spec = _make_spec("git_status")
        self.assertEqual(spec.tool.name, "git_status")
        self.assertFalse(spec.mutating)

    def test_frozen(self):
        spec = _make_spec("git_status")
        with self.assertRaises(AttributeError):
            spec.mutating = True


class TestToolRegistry(unittest.TestCase):
    def setUp(self):
        self.specs = [
            _make_spec("reader"),
            _make_spec("writer", mutating=True),
        ]

    def test_all_tools_by_default(self):
        registry = ToolRegistry(self.specs)
        self.assertEqual(registry.tool_count(), 2)
        self.assertEqual(
            [t.name for t in registry.list_tools()], ["reader", "writer"]
        )

    def test_read_only_hides_mutating(self):
        registry = ToolRegistry(self.specs, read_only=True)
        self.assertEqual([t.name for t in registry.list_tools()], ["reader"])

    def test_call_dispatches(self):
        registry = ToolRegistry(self.specs)
        result = asyncio.run(registry.call_tool("reader", None, None))
        self.assertEqual(_text(result), "ok:reader")

    def test_unknown_tool_raises(self):
        registry = ToolRegistry(self.specs)
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("nope", {}, None))

    def test_filtered_tool_raises(self):
        registry = ToolRegistry(self.specs, read_only=True)
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("writer", {}, None))

    def test_handler_receives_empty_dict_for_none(self):
        seen = []

        async def handler(context, args):
            seen.append(args)
            return types.CallToolResult(content=[])

        registry = ToolRegistry([_make_spec("t", handler=handler)])
        asyncio.run(registry.call_tool("t", None, "ctx"))
        self.assertEqual(seen, [{}])


class TestCallToolErrorTranslation(unittest.TestCase):
    def _call(self, exc: Exception) -> types.CallToolResult:
        async def handler(context, args):
            raise exc

        registry = ToolRegistry([_make_spec("t", handler=handler)])
        return asyncio.run(registry.call_tool("t", {}, None))

    def test_sync_error(self):
        result = self._call(InvalidStateError("resolution in progress"))
        self.assertTrue(result.isError)
        self.assertIn("Error (invalid_state): resolution in progress", _text(result))
        self.assertIn("conflict_finalize", _text(result))

    def test_value_error(self):
        result = self._call(ValueError("section_id is required"))
        self.assertIn("Error (validation_error)", _text(result))

    def test_unexpected_error(self):
        result = self._call(RuntimeError("boom"))
        self.assertIn("Error (server_error): boom", _text(result))


class TestAllSpecs(unittest.TestCase):
    def test_names_unique(self):
        names = [s.tool.name for s in ALL_SPECS]
        self.assertEqual(len(names), len(set(names)))

    def test_read_only_set(self):
        registry = ToolRegistry(ALL_SPECS, read_only=True)
        self.assertEqual(
            sorted(t.name for t in registry.list_tools()),
            [
                "conflict_show",
                "git_branches",
                "git_diff",
                "git_status",
                "merge_service_test",
            ],
        )

    def test_annotations_match_mutating_flag(self):
        for spec in ALL_SPECS:
            with self.subTest(tool=spec.tool.name):
                self.assertEqual(
                    spec.tool.annotations.readOnlyHint, not spec.mutating
                )
