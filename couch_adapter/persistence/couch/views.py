"""Resolution of logical view names to design documents and views."""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from couch_adapter.core.config import ViewDescriptor, ViewName
from couch_adapter.core.exceptions import MissingViewError
from couch_adapter.persistence.couch.store import ViewQueryParams

DEFAULT_DESIGN_ID = "couch-adapter"
TYPE_VIEW_ID = "type_id"
RELATIONSHIP_VIEW_ID = "type-ancestor_type-ancestor_id"

DEFAULT_VIEWS: dict[ViewName, ViewDescriptor] = {
    ViewName.BY_TYPE: ViewDescriptor(design_id=DEFAULT_DESIGN_ID, view_id=TYPE_VIEW_ID),
    ViewName.BY_RELATIONSHIP: ViewDescriptor(
        design_id=DEFAULT_DESIGN_ID, view_id=RELATIONSHIP_VIEW_ID
    ),
}


class ViewQuery(BaseModel):
    """A fully resolved view query, ready to send to the store."""

    design_id: str
    view_id: str
    params: ViewQueryParams


class ViewRegistry:
    """
    Resolves logical view names, honouring overrides over the defaults.

    Overrides merge per view and per field: an override that only sets
    ``view_id`` keeps the default ``design_id``, and overriding one view
    leaves the other untouched. An override of None removes the view.
    """

    def __init__(
        self,
        overrides: Mapping[ViewName, ViewDescriptor | Mapping[str, Any] | None]
        | None = None,
    ) -> None:
        """Initialize the registry from the defaults and any overrides."""
        self._views: dict[ViewName, ViewDescriptor | None] = dict(DEFAULT_VIEWS)
        for name, override in (overrides or {}).items():
            view_name = ViewName(name)
            if override is None:
                self._views[view_name] = None
                continue
            if not isinstance(override, ViewDescriptor):
                override = ViewDescriptor.model_validate(override)
            current = self._views.get(view_name) or ViewDescriptor()
            self._views[view_name] = current.model_copy(
                update=override.model_dump(exclude_unset=True)
            )

    def resolve(self, name: ViewName) -> ViewDescriptor:
        """
        Return the location of a view.

        :param name: The logical view name.
        :type name: ViewName
        :return: A descriptor with both a design id and a view id.
        :rtype: ViewDescriptor

        :raises MissingViewError: If the view is disabled or incomplete.
        """
        descriptor = self._views.get(name)
        if descriptor is None or not descriptor.is_complete:
            msg = (
                f"The '{name}' view is not configured. A design id and a view id "
                "are both required."
            )
            raise MissingViewError(msg, view_name=name)
        return descriptor

    def _query(self, name: ViewName, params: ViewQueryParams) -> ViewQuery:
        descriptor = self.resolve(name)
        return ViewQuery(
            design_id=descriptor.design_id,  # type: ignore[arg-type]
            view_id=descriptor.view_id,  # type: ignore[arg-type]
            params=params,
        )

    def by_type_query(self, type_name: str) -> ViewQuery:
        """Build a query for every document of a type, by key prefix."""
        return self._query(
            ViewName.BY_TYPE,
            ViewQueryParams(
                start_key=[type_name],
                end_key=[type_name, {}],
                include_docs=True,
            ),
        )

    def by_relationship_query(
        self, related_type: str, ancestor_type: str, ancestor_id: str
    ) -> ViewQuery:
        """Build a query for documents of a type that refer to an ancestor."""
        return self._query(
            ViewName.BY_RELATIONSHIP,
            ViewQueryParams(
                key=[related_type, ancestor_type, ancestor_id],
                include_docs=True,
            ),
        )
