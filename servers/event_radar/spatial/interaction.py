"""Turn map clicks into zoom or select actions."""

from typing import Mapping, Optional, Sequence, Union

import structlog

from ..errors import StaleIndexError
from ..models import ClusterNode, Event, SelectAction, ZoomAction
from .indexer import SpatialIndexer

logger = structlog.get_logger()

DEFAULT_MIN_SELECT_ZOOM = 14


class ClusterInteractionResolver:
    """Resolves the features under a click against the current index build."""

    def __init__(self, indexer: SpatialIndexer, min_select_zoom: float = DEFAULT_MIN_SELECT_ZOOM):
        self.indexer = indexer
        self.min_select_zoom = min_select_zoom

    def resolve(
        self,
        features: Sequence[ClusterNode],
        current_zoom: float,
        events_by_id: Optional[Mapping[str, Event]] = None,
    ) -> Optional[Union[ZoomAction, SelectAction]]:
        """
        Decide what a click does. Only the topmost feature counts.

        Args:
            features: Rendered features under the click, topmost first
            current_zoom: Map zoom when the click happened
            events_by_id: Events to resolve point clicks against; defaults
                to the indexer's loaded events

        Returns:
            ZoomAction for a cluster, SelectAction for a point, or None when
            nothing was hit or the feature no longer matches the index
        """
        if not features:
            return None

        top = features[0]
        if top.build_id != self.indexer.build_id:
            logger.warning(
                "stale_click_rejected",
                feature_build=top.build_id,
                current_build=self.indexer.build_id,
                feature_id=top.id,
            )
            return None

        if top.cluster:
            return self._zoom_to_cluster(top)
        return self._select_point(top, current_zoom, events_by_id)

    def _zoom_to_cluster(self, feature: ClusterNode) -> Optional[ZoomAction]:
        try:
            zoom = self.indexer.get_expansion_zoom(feature.id, build_id=feature.build_id)
        except StaleIndexError as e:
            logger.warning("stale_click_rejected", feature_id=feature.id, error=str(e))
            return None

        logger.debug("cluster_click", cluster_id=feature.id, expansion_zoom=zoom)
        return ZoomAction(center=feature.coordinates, zoom=zoom)

    def _select_point(
        self,
        feature: ClusterNode,
        current_zoom: float,
        events_by_id: Optional[Mapping[str, Event]],
    ) -> Optional[SelectAction]:
        event = None
        if feature.event_id is not None:
            if events_by_id is not None:
                event = events_by_id.get(feature.event_id)
            else:
                event = self.indexer.event(feature.event_id)

        if event is None:
            logger.warning("click_event_not_found", event_id=feature.event_id, feature_id=feature.id)
            return None

        return SelectAction(
            event_id=event.id,
            center=event.coordinates or feature.coordinates,
            zoom=max(current_zoom, self.min_select_zoom),
        )
