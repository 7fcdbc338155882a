"""GraphQL query templates for the Cloudflare analytics API.

``$zoneTag`` / ``$accountTag``, ``$since`` and ``$until`` are always bound
as variables. Action filters, limits and the requested dimension fields are
fixed per use case and rendered into the template.
"""

import json
from collections.abc import Sequence

BLOCK_DIMENSIONS = ("clientRequestPath", "clientRequestHTTPHost", "clientIP", "action")
IP_DIMENSIONS = ("clientIP", "clientCountryName", "action")
PATH_DIMENSIONS = ("clientRequestPath", "clientRequestHTTPHost", "clientIP")
TIMELINE_DIMENSIONS = ("datetime", "clientIP", "action")

BLOCK_AND_CHALLENGE = ("block", "challenge")
BLOCK_ONLY = ("block",)

FULL_WINDOW_LIMIT = 10_000

_ATTACK_FIELDS = """
        startDatetime
        endDatetime
        attackType
        action
        peakBitsPerSecond
        peakPacketsPerSecond
        totalBits
        totalPackets
        attackVectors {
          protocol
          sourcePort
          destinationPort
        }"""


def firewall_events_query(
    *,
    actions: Sequence[str],
    limit: int,
    dimensions: Sequence[str] = (),
    name: str = "GetSecurityEvents",
) -> str:
    """Render a zone-scoped ``firewallEventsAdaptiveGroups`` query."""
    if limit < 1:
        raise ValueError("limit must be positive")
    selection = "count"
    if dimensions:
        fields = "\n".join(f"          {d}" for d in dimensions)
        selection = f"count\n        dimensions {{\n{fields}\n        }}"
    return f"""query {name}($zoneTag: String!, $since: Time!, $until: Time!) {{
  viewer {{
    zones(filter: {{ zoneTag: $zoneTag }}) {{
      firewallEventsAdaptiveGroups(
        filter: {{
          datetime_geq: $since
          datetime_leq: $until
          action_in: {json.dumps(list(actions))}
        }}
        limit: {int(limit)}
        orderBy: [count_DESC]
      ) {{
        {selection}
      }}
    }}
  }}
}}"""


def zone_attacks_query() -> str:
    """Render the zone-scoped ``dosdAttackAnalyticsGroups`` query."""
    return _attacks_query("GetZoneDDoSAttacks", "zones", "zoneTag")


def account_attacks_query() -> str:
    """Render the account-scoped ``dosdAttackAnalyticsGroups`` query."""
    return _attacks_query("GetAccountDDoSAttacks", "accounts", "accountTag")


def _attacks_query(name: str, scope: str, tag: str) -> str:
    return f"""query {name}(${tag}: String!, $since: Time!, $until: Time!) {{
  viewer {{
    {scope}(filter: {{ {tag}: ${tag} }}) {{
      dosdAttackAnalyticsGroups(
        filter: {{
          datetime_geq: $since
          datetime_leq: $until
        }}
        limit: {FULL_WINDOW_LIMIT}
        orderBy: [startDatetime_DESC]
      ) {{{_ATTACK_FIELDS}
      }}
    }}
  }}
}}"""
