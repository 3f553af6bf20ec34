"""Example plugin pulling structured data out of the current page."""

from __future__ import annotations

from typing import Any

_LINKS_SCRIPT = """
const limit = arguments[0];
const links = Array.from(document.querySelectorAll('a[href]')).map((a) => ({
  text: (a.textContent || '').trim(),
  href: a.href,
}));
return limit > 0 ? links.slice(0, limit) : links;
"""

_TABLE_SCRIPT = """
const table = document.querySelector(arguments[0]);
if (!table) {
  return null;
}
const rows = Array.from(table.querySelectorAll('tr'));
return rows.map((row) =>
  Array.from(row.querySelectorAll('th,td')).map((cell) => (cell.textContent || '').trim())
);
"""

_BROWSER_ID = {"type": "string", "description": "ID of the browser to read from."}


def extract_links(args: dict[str, Any], context: Any) -> dict[str, Any]:
    view = context.session(args["browserId"])
    links = view.evaluate(_LINKS_SCRIPT, int(args.get("limit", 0)))
    return {"success": True, "message": f"Found {len(links)} links", "data": {"links": links}}


def extract_table(args: dict[str, Any], context: Any) -> dict[str, Any]:
    selector = args.get("selector", "table")
    rows = context.session(args["browserId"]).evaluate(_TABLE_SCRIPT, selector)
    if rows is None:
        return {"success": False, "message": f"No table matches {selector}", "error": "DriverCallFailed"}
    header, *body = rows or [[]]
    records = [dict(zip(header, row)) for row in body] if header else []
    return {
        "success": True,
        "message": f"Extracted {len(body)} rows from {selector}",
        "data": {"header": header, "rows": body, "records": records},
    }


plugin = {
    "name": "page-extract",
    "version": "1.0.0",
    "description": "Extract links and tables from the page open in a browser",
    "tools": [
        {
            "name": "extract_links",
            "description": "List the links on the current page",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "browserId": _BROWSER_ID,
                    "limit": {"type": "integer", "description": "Maximum links to return; 0 for all."},
                },
                "required": ["browserId"],
            },
        },
        {
            "name": "extract_table",
            "description": "Read a table into header, rows and records",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "browserId": _BROWSER_ID,
                    "selector": {"type": "string", "description": "CSS selector of the table."},
                },
                "required": ["browserId"],
            },
        },
    ],
    "handlers": {"extract_links": extract_links, "extract_table": extract_table},
}
