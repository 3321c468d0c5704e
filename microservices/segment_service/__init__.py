"""
Segment Service

Dynamic user segmentation microservice.
Handles segment catalog, user-segment memberships with optional expiration,
random auto-enrollment and monthly membership history export.

Port: 8080
"""

__version__ = "1.0.0"
__service_name__ = "segment_service"
__service_port__ = 8080
