"""Gmail label listing."""

from typing import Any

from gmail_calendar_mcp.api import GMAIL_API_BASE, ApiClient


async def list_labels(client: ApiClient) -> dict[str, Any]:
    """List system and user labels.

    Returns:
        Labels as ``{id, name, type}`` with ``type`` lower-cased (``system``
        or ``user``). A label without a name is reported under its ID.
    """
    response = await client.request("GET", f"{GMAIL_API_BASE}/users/me/labels")

    labels = []
    for label in response.get("labels") or []:
        labels.append(
            {
                "id": label.get("id"),
                "name": label.get("name") or label.get("id"),
                "type": (label.get("type") or "user").lower(),
            }
        )

    return {"labels": labels}
