import pytest

from mcp_autowire.decorators import HANDLER_METADATA_ATTR, get_handler_metadata, mcp_prompt, mcp_resource, mcp_tool
from mcp_autowire.types import (
    FixedResourceOptions,
    HandlerKind,
    PromptArgumentSpec,
    PromptOptions,
    TemplateResourceOptions,
    ToolOptions,
)
from mcp_autowire.utilities.uri_template import UriTemplate


class TestDecorators:
    def test_tool_records_definition(self):
        class Handlers:
            @mcp_tool(name="add", description="Add two numbers", params_schema={"a": int, "b": int})
            def add(self, a: int, b: int) -> int:
                return a + b

        metadata = get_handler_metadata(HandlerKind.TOOL, Handlers.add)
        assert metadata is not None
        assert metadata.method_name == "add"
        assert metadata.options == ToolOptions(
            name="add", description="Add two numbers", params_schema={"a": int, "b": int}
        )

    def test_decorator_returns_function_unchanged(self):
        def handler() -> str:
            return "ok"

        decorated = mcp_tool(name="handler")(handler)
        assert decorated is handler
        assert decorated() == "ok"

    def test_prebuilt_options(self):
        options = PromptOptions(name="greet", arguments=[PromptArgumentSpec(name="who", required=True)])

        @mcp_prompt(options)
        def greet(who: str) -> str:
            return f"Hello {who}"

        metadata = get_handler_metadata(HandlerKind.PROMPT, greet)
        assert metadata is not None
        assert metadata.options is options

    def test_fixed_and_template_resources(self):
        @mcp_resource(name="config", uri="config://app", mime_type="application/json")
        def config() -> str:
            return "{}"

        @mcp_resource(name="user", uri_template="users://{user_id}")
        def user(user_id: str) -> str:
            return user_id

        fixed = get_handler_metadata(HandlerKind.RESOURCE, config)
        template = get_handler_metadata(HandlerKind.RESOURCE, user)
        assert fixed is not None and isinstance(fixed.options, FixedResourceOptions)
        assert fixed.options.uri == "config://app"
        assert template is not None and isinstance(template.options, TemplateResourceOptions)
        assert template.options.uri_template == "users://{user_id}"

    def test_resource_accepts_compiled_template(self):
        compiled = UriTemplate("files://{path}")

        @mcp_resource(name="file", uri_template=compiled)
        def file(path: str) -> str:
            return path

        metadata = get_handler_metadata(HandlerKind.RESOURCE, file)
        assert metadata is not None
        assert metadata.options.uri_template is compiled

    def test_resource_rejects_uri_and_template(self):
        with pytest.raises(TypeError, match="mutually exclusive"):
            mcp_resource(name="both", uri="a://b", uri_template="a://{b}")

    def test_multiple_kinds_on_one_method(self):
        @mcp_tool(name="echo")
        @mcp_prompt(name="echo")
        def echo(text: str) -> str:
            return text

        assert get_handler_metadata(HandlerKind.TOOL, echo) is not None
        assert get_handler_metadata(HandlerKind.PROMPT, echo) is not None
        assert get_handler_metadata(HandlerKind.RESOURCE, echo) is None
        assert set(getattr(echo, HANDLER_METADATA_ATTR)) == {HandlerKind.TOOL, HandlerKind.PROMPT}

    def test_undecorated_method_has_no_metadata(self):
        def plain() -> None:
            pass

        for kind in HandlerKind:
            assert get_handler_metadata(kind, plain) is None

    def test_static_and_class_methods(self):
        class Handlers:
            @mcp_tool(name="static_tool")
            @staticmethod
            def static_tool() -> str:
                return "static"

            @mcp_tool(name="class_tool")
            @classmethod
            def class_tool(cls) -> str:
                return "class"

        raw_static = Handlers.__dict__["static_tool"]
        raw_class = Handlers.__dict__["class_tool"]
        static_metadata = get_handler_metadata(HandlerKind.TOOL, raw_static)
        class_metadata = get_handler_metadata(HandlerKind.TOOL, raw_class)
        assert static_metadata is not None and static_metadata.options.name == "static_tool"
        assert class_metadata is not None and class_metadata.options.name == "class_tool"
        assert get_handler_metadata(HandlerKind.TOOL, Handlers.class_tool) is not None

    def test_bound_method_sees_metadata(self):
        class Handlers:
            @mcp_tool(name="bound")
            def bound(self) -> str:
                return "bound"

        assert get_handler_metadata(HandlerKind.TOOL, Handlers().bound) is not None

    @pytest.mark.parametrize("decorator", [mcp_tool, mcp_prompt, mcp_resource])
    def test_decorator_used_without_call(self, decorator):
        def handler() -> None:
            pass

        with pytest.raises(TypeError, match="Did you forget to call it"):
            decorator(handler)

    def test_handler_kind_labels(self):
        assert HandlerKind.RESOURCE.label == "resource"
        assert HandlerKind.TOOL.label == "tool"
        assert HandlerKind.PROMPT.label == "prompt"
        assert HandlerKind.TOOL.value == "mcp:tool"
