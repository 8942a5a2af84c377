"""Custom exceptions for mcp-autowire."""


class McpAutowireError(Exception):
    """Base error for mcp-autowire."""


class OptionsError(McpAutowireError):
    """Error in the module configuration."""


class DefinitionError(McpAutowireError):
    """A handler definition cannot be turned into an engine registration."""
