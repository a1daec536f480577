from family_tree.routers import branches, creation_flow, families, health, links, members

__all__ = [
    "health",
    "families",
    "members",
    "branches",
    "creation_flow",
    "links",
]
