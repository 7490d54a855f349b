"""Permission router dependencies.

These are placeholder functions. Applications override them with
``app.dependency_overrides`` (``create_app`` does this for an engine built
by ``build_permission_engine``).
"""


def get_permission_resolver():
    """Placeholder for the PermissionResolver dependency."""
    raise NotImplementedError(
        "Services must provide their own permission resolver dependency"
    )


def get_invalidation_coordinator():
    """Placeholder for the InvalidationCoordinator dependency."""
    raise NotImplementedError(
        "Services must provide their own invalidation coordinator dependency"
    )
