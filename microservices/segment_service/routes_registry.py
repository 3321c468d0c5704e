"""
Segment Service Routes Registry

Defines service metadata and routes for API documentation.
"""

SERVICE_METADATA = {
    "service_name": "segment_service",
    "version": "1.0.0",
    "tags": ["v1", "segments", "users", "microservice"],
    "capabilities": [
        "segment_management",
        "auto_enrollment",
        "user_segment_membership",
        "membership_expiration",
        "membership_history_export",
    ],
}

ROUTES = [
    # Health endpoints
    {"path": "/health", "methods": ["GET"], "description": "Health check"},
    {"path": "/info", "methods": ["GET"], "description": "Service information"},

    # Segments
    {"path": "/segments", "methods": ["POST"], "description": "Create segment"},
    {"path": "/segments", "methods": ["DELETE"], "description": "Delete segment"},
    {"path": "/segments", "methods": ["GET"], "description": "List segments"},

    # Users and memberships
    {"path": "/users", "methods": ["POST"], "description": "Create user"},
    {"path": "/users", "methods": ["PATCH"], "description": "Add segments to user"},
    {"path": "/users", "methods": ["DELETE"], "description": "Delete segments from user"},
    {"path": "/users/{user_id}", "methods": ["GET"], "description": "Get user segments"},
    {"path": "/users/{user_id}/history", "methods": ["GET"], "description": "Monthly membership history (CSV)"},
]


def get_route_summary():
    """Route metadata summary"""
    return {
        "route_count": str(len(ROUTES)),
        "routes": ",".join(sorted({r["path"] for r in ROUTES})),
        "api_version": "v1",
        "base_path": "/",
    }


__all__ = ["SERVICE_METADATA", "ROUTES", "get_route_summary"]
