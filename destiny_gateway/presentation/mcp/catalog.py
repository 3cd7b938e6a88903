"""
Tool catalog for the Destiny MCP gateway

Static table of every exposed tool: its description, JSON input schema, and
the operation it is bound to with the order its arguments are passed in.
Bindings are resolved once at start-up; a tool whose operation is missing or
cannot accept its declared arguments is a configuration error, not a runtime
surprise.
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from jsonschema import Draft7Validator
from mcp import types

from ...core.exceptions import ConfigurationError, MalformedInvocationError

logger = logging.getLogger(__name__)

API_TARGET = "api"
ADMIN_TARGET = "admin"


@dataclass(frozen=True)
class ToolBinding:
    """Declaration of one tool"""
    name: str
    description: str
    operation: str
    arguments: Tuple[str, ...] = ()
    properties: Dict[str, Any] = field(default_factory=dict)
    required: Tuple[str, ...] = ()
    target: str = API_TARGET

    @property
    def input_schema(self) -> Dict[str, Any]:
        """JSON schema for the tool arguments."""
        return {
            "type": "object",
            "properties": self.properties,
            "required": list(self.required)
        }

    def to_tool(self) -> types.Tool:
        """Render as an MCP Tool definition."""
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema
        )

    def prepare_arguments(self, arguments: Mapping[str, Any]) -> List[Any]:
        """
        Map validated arguments onto the operation's positional parameters.

        Omitted arguments take the schema default, or None when there is none.
        Integral floats are turned into ints for integer fields.
        """
        values = []
        for name in self.arguments:
            schema = self.properties.get(name, {})
            if name in arguments:
                value = _coerce(arguments[name], schema)
            else:
                value = schema.get("default")
            values.append(value)
        return values


@dataclass
class BoundTool:
    """A tool resolved against a live operation"""
    binding: ToolBinding
    operation: Callable[..., Awaitable[Any]]
    validator: Draft7Validator

    def validate(self, arguments: Mapping[str, Any]) -> None:
        """
        Validate arguments against the tool's schema.

        Raises:
            MalformedInvocationError: With the first schema violation
        """
        errors = sorted(self.validator.iter_errors(dict(arguments)), key=lambda e: list(e.path))
        if not errors:
            return

        error = errors[0]
        field_name = ".".join(str(p) for p in error.path) or None
        if error.validator == "required" and error.validator_value:
            missing = [name for name in error.validator_value if name not in arguments]
            field_name = missing[0] if missing else field_name

        raise MalformedInvocationError(
            f"Invalid arguments for {self.binding.name}: {error.message}",
            field=field_name,
            value=error.instance if error.path else None
        )

    async def __call__(self, arguments: Mapping[str, Any]) -> Any:
        return await self.operation(*self.binding.prepare_arguments(arguments))


def _coerce(value: Any, schema: Mapping[str, Any]) -> Any:
    """Turn integral floats into ints where the schema says integer."""
    if schema.get("type") == "integer" and isinstance(value, float) and value.is_integer():
        return int(value)
    if schema.get("type") == "array" and isinstance(value, list):
        items = schema.get("items", {})
        return [_coerce(v, items) for v in value]
    return value


class ToolCatalog:
    """Registry of tool declarations"""

    def __init__(self, bindings: Iterable[ToolBinding] = ()):
        self._bindings: Dict[str, ToolBinding] = {}
        for binding in bindings:
            self.register(binding)

    def register(self, binding: ToolBinding) -> None:
        """Add a tool declaration."""
        if binding.name in self._bindings:
            raise ConfigurationError(f"Duplicate tool: {binding.name}", config_key=binding.name)
        self._bindings[binding.name] = binding
        logger.debug(f"Registered tool: {binding.name} -> {binding.target}.{binding.operation}")

    def get(self, name: str) -> Optional[ToolBinding]:
        """Get a tool declaration by name."""
        return self._bindings.get(name)

    def names(self) -> List[str]:
        """Names of all declared tools, in declaration order."""
        return list(self._bindings)

    def list_tools(self) -> List[types.Tool]:
        """All tools as MCP Tool definitions."""
        return [binding.to_tool() for binding in self._bindings.values()]

    def bind(self, targets: Mapping[str, Any]) -> Dict[str, BoundTool]:
        """
        Resolve every declaration against live objects.

        Args:
            targets: Objects providing the operations, keyed by target name

        Returns:
            Bound tools keyed by name

        Raises:
            ConfigurationError: If any declaration cannot be bound
        """
        bound: Dict[str, BoundTool] = {}

        for binding in self._bindings.values():
            bound[binding.name] = BoundTool(
                binding=binding,
                operation=self._resolve(binding, targets),
                validator=Draft7Validator(binding.input_schema)
            )

        logger.info(f"Bound {len(bound)} tools")
        return bound

    @staticmethod
    def _resolve(binding: ToolBinding, targets: Mapping[str, Any]) -> Callable[..., Awaitable[Any]]:
        """Find and check the operation behind one declaration."""
        if binding.target not in targets:
            raise ConfigurationError(
                f"Tool {binding.name} is bound to unknown target '{binding.target}'",
                config_key=binding.name
            )

        operation = getattr(targets[binding.target], binding.operation, None)
        if operation is None or not inspect.iscoroutinefunction(operation):
            raise ConfigurationError(
                f"Tool {binding.name} is bound to missing operation "
                f"'{binding.target}.{binding.operation}'",
                config_key=binding.name
            )

        undeclared = [name for name in binding.arguments if name not in binding.properties]
        if undeclared:
            raise ConfigurationError(
                f"Tool {binding.name} passes undeclared arguments: {', '.join(undeclared)}",
                config_key=binding.name
            )

        try:
            inspect.signature(operation).bind(*binding.arguments)
        except TypeError as e:
            raise ConfigurationError(
                f"Tool {binding.name} arguments do not fit "
                f"'{binding.target}.{binding.operation}': {e}",
                config_key=binding.name
            ) from e

        return operation


# Shared property declarations
_MEMBERSHIP_TYPE = {
    "type": "integer",
    "description": "Platform membership type (1=Xbox, 2=PSN, 3=Steam, 4=Blizzard, 5=Stadia, 6=Epic, 254=BungieNext)"
}
_MEMBERSHIP_ID = {"type": "string", "description": "Platform-specific membership ID"}
_CHARACTER_ID = {"type": "string", "description": "Character ID"}


def _components(default: List[int], description: str) -> Dict[str, Any]:
    return {
        "type": "array",
        "items": {"type": "integer"},
        "description": description,
        "default": default
    }


_ACCOUNT = ("membershipType", "membershipId")
_CHARACTER = ("membershipType", "membershipId", "characterId")
_ACCOUNT_PROPS = {"membershipType": _MEMBERSHIP_TYPE, "membershipId": _MEMBERSHIP_ID}
_CHARACTER_PROPS = {**_ACCOUNT_PROPS, "characterId": _CHARACTER_ID}


DESTINY_TOOLS: Tuple[ToolBinding, ...] = (
    ToolBinding(
        name="get_destiny_profile",
        description="Get Destiny 2 profile information for a player",
        operation="get_profile",
        arguments=_ACCOUNT + ("components",),
        properties={
            **_ACCOUNT_PROPS,
            "components": _components(
                [100, 200],
                "Component types to include (100=Profiles, 200=Characters, 201=CharacterInventories, etc.)"
            )
        },
        required=_ACCOUNT
    ),
    ToolBinding(
        name="get_destiny_character",
        description="Get detailed information about a specific Destiny 2 character",
        operation="get_character",
        arguments=_CHARACTER + ("components",),
        properties={**_CHARACTER_PROPS, "components": _components([200], "Component types to include")},
        required=_CHARACTER
    ),
    ToolBinding(
        name="get_destiny_item",
        description="Get detailed information about a specific Destiny 2 item",
        operation="get_item",
        arguments=_ACCOUNT + ("itemInstanceId", "components"),
        properties={
            **_ACCOUNT_PROPS,
            "itemInstanceId": {"type": "string", "description": "Item instance ID"},
            "components": _components([300], "Component types to include")
        },
        required=_ACCOUNT + ("itemInstanceId",)
    ),
    ToolBinding(
        name="search_destiny_player",
        description="Search for a Destiny 2 player by display name",
        operation="search_destiny_player",
        arguments=("membershipType", "displayName"),
        properties={
            "membershipType": {"type": "integer", "description": "Platform membership type to search on"},
            "displayName": {"type": "string", "description": "Player display name to search for"}
        },
        required=("membershipType", "displayName")
    ),
    ToolBinding(
        name="get_activity_history",
        description="Get activity history for a Destiny 2 character",
        operation="get_activity_history",
        arguments=_CHARACTER + ("count", "mode", "page"),
        properties={
            **_CHARACTER_PROPS,
            "count": {"type": "integer", "description": "Number of activities to return", "default": 25},
            "mode": {"type": "integer", "description": "Activity mode filter (optional)"},
            "page": {"type": "integer", "description": "Page number for pagination (optional)"}
        },
        required=_CHARACTER
    ),
    ToolBinding(
        name="get_destiny_manifest",
        description="Get the Destiny 2 manifest containing game definitions and metadata",
        operation="get_manifest"
    ),
    ToolBinding(
        name="get_linked_profiles",
        description="Get linked profiles for a Destiny 2 player across platforms",
        operation="get_linked_profiles",
        arguments=_ACCOUNT,
        properties=_ACCOUNT_PROPS,
        required=_ACCOUNT
    ),
    ToolBinding(
        name="get_destiny_entity_definition",
        description="Get definition data for a specific Destiny 2 entity (weapons, armor, etc.)",
        operation="get_entity_definition",
        arguments=("entityType", "hashIdentifier"),
        properties={
            "entityType": {
                "type": "string",
                "description": "Entity type (DestinyInventoryItemDefinition, DestinyActivityDefinition, etc.)"
            },
            "hashIdentifier": {"type": "integer", "description": "Hash identifier for the entity"}
        },
        required=("entityType", "hashIdentifier")
    ),
    ToolBinding(
        name="get_public_milestones",
        description="Get current public milestones available to all players",
        operation="get_public_milestones"
    ),
    ToolBinding(
        name="get_public_milestone_content",
        description="Get detailed content for a specific milestone",
        operation="get_public_milestone_content",
        arguments=("milestoneHash",),
        properties={"milestoneHash": {"type": "integer", "description": "Milestone hash identifier"}},
        required=("milestoneHash",)
    ),
    ToolBinding(
        name="get_public_vendors",
        description="Get public vendor information and their current inventories",
        operation="get_public_vendors",
        arguments=("components",),
        properties={
            "components": _components(
                [400, 401, 402],
                "Vendor component types (400=Vendors, 401=VendorCategories, 402=VendorSales)"
            )
        }
    ),
    ToolBinding(
        name="get_historical_stats",
        description="Get historical game statistics for a character",
        operation="get_historical_stats",
        arguments=_CHARACTER + ("periodType", "modes", "groups"),
        properties={
            **_CHARACTER_PROPS,
            "periodType": {"type": "integer", "description": "Period type (0=None, 1=Daily, 2=Weekly, 3=Monthly)"},
            "modes": {"type": "array", "items": {"type": "integer"}, "description": "Game mode filters"},
            "groups": {"type": "array", "items": {"type": "integer"}, "description": "Stat group filters"}
        },
        required=_CHARACTER
    ),
    ToolBinding(
        name="get_leaderboards",
        description="Get leaderboard data for a player",
        operation="get_leaderboards",
        arguments=_ACCOUNT + ("maxtop", "modes", "statid"),
        properties={
            **_ACCOUNT_PROPS,
            "maxtop": {"type": "integer", "description": "Maximum number of top entries to return"},
            "modes": {"type": "string", "description": "Game modes to include"},
            "statid": {"type": "string", "description": "Stat ID to query"}
        },
        required=_ACCOUNT
    ),
    ToolBinding(
        name="search_destiny_player_by_bungie_name",
        description="Search for a Destiny player using their Bungie Name and discriminator",
        operation="search_destiny_player_by_bungie_name",
        arguments=("membershipType", "displayName", "displayNameCode"),
        properties={
            "membershipType": _MEMBERSHIP_TYPE,
            "displayName": {"type": "string", "description": "Bungie display name"},
            "displayNameCode": {"type": "integer", "description": "Bungie name code (discriminator)"}
        },
        required=("membershipType", "displayName", "displayNameCode")
    ),
    ToolBinding(
        name="get_clan_weekly_reward_state",
        description="Get weekly reward state for a clan",
        operation="get_clan_weekly_reward_state",
        arguments=("groupId",),
        properties={"groupId": {"type": "string", "description": "Clan group ID"}},
        required=("groupId",)
    ),
    ToolBinding(
        name="get_clan_banner_source",
        description="Get the dictionary of available clan banner options",
        operation="get_clan_banner_source"
    ),
    ToolBinding(
        name="get_aggregate_activity_stats",
        description="Get aggregate activity statistics for a character",
        operation="get_aggregate_activity_stats",
        arguments=_CHARACTER,
        properties=_CHARACTER_PROPS,
        required=_CHARACTER
    ),
    ToolBinding(
        name="get_unique_weapon_history",
        description="Get unique weapon usage history for a character",
        operation="get_unique_weapon_history",
        arguments=_CHARACTER,
        properties=_CHARACTER_PROPS,
        required=_CHARACTER
    ),
    ToolBinding(
        name="get_post_game_carnage_report",
        description=(
            "Get detailed Post-Game Carnage Report (PGCR) for a specific activity instance, "
            "including all participants, their stats, loadouts, and performance data"
        ),
        operation="get_post_game_carnage_report",
        arguments=("activityId",),
        properties={
            "activityId": {
                "type": "string",
                "description": "The unique activity instance ID (obtained from activity history instanceId field)"
            }
        },
        required=("activityId",)
    ),
    ToolBinding(
        name="get_current_user_memberships",
        description="Get the Destiny memberships of the authenticated Bungie.net user (requires OAuth)",
        operation="get_memberships_for_current_user"
    ),
)


ADMIN_TOOLS: Tuple[ToolBinding, ...] = (
    ToolBinding(
        name="get_authorization_url",
        description="Get the Bungie.net URL a user opens to authorize this server",
        operation="get_authorization_url",
        arguments=("state",),
        properties={"state": {"type": "string", "description": "Anti-forgery state value echoed back on redirect"}},
        target=ADMIN_TARGET
    ),
    ToolBinding(
        name="exchange_authorization_code",
        description="Exchange the code from the OAuth redirect for an access token",
        operation="exchange_authorization_code",
        arguments=("code",),
        properties={"code": {"type": "string", "description": "Authorization code", "minLength": 1}},
        required=("code",),
        target=ADMIN_TARGET
    ),
    ToolBinding(
        name="refresh_access_token",
        description="Refresh the stored OAuth access token using its refresh token",
        operation="refresh_access_token",
        target=ADMIN_TARGET
    ),
    ToolBinding(
        name="get_auth_status",
        description="Show whether the server holds a valid, expired, or no OAuth credential",
        operation="get_auth_status",
        target=ADMIN_TARGET
    ),
    ToolBinding(
        name="get_rate_limit_status",
        description="Show remaining request slots in the current rate-limit window",
        operation="get_rate_limit_status",
        target=ADMIN_TARGET
    ),
)


def build_default_catalog() -> ToolCatalog:
    """Catalog of every tool the gateway exposes."""
    return ToolCatalog(DESTINY_TOOLS + ADMIN_TOOLS)
